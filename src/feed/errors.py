"""Error taxonomy shared by the credential and aggregation layers."""

from __future__ import annotations


class FeedError(Exception):
    """Base error for calendar feed issues."""


class Unauthenticated(FeedError):
    """Raised when there is no signed-in principal or no stored credential."""


class CredentialNeedsRefresh(FeedError):
    """Raised when a credential exists but cannot be used until it is refreshed."""


class TokenRefreshError(FeedError):
    """Raised when the provider refuses or fails a refresh-token exchange."""


class UpstreamUnavailable(FeedError):
    """Raised when the calendar provider fails a list call."""


class UpstreamUnauthorized(UpstreamUnavailable):
    """Raised when the calendar provider rejects the access token."""


class ConfigurationError(FeedError):
    """Raised when provider credentials or settings are missing."""
