from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import requests

from ..feed.errors import (
    CredentialNeedsRefresh,
    TokenRefreshError,
    Unauthenticated,
    UpstreamUnavailable,
)
from .credentials import AuthorizedCredential, LoadStatus
from .store import CredentialStore

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"


@dataclass(slots=True)
class ClientRegistration:
    """OAuth client settings registered with the calendar provider."""

    client_id: str
    client_secret: str
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    registration_id: str = "google"


TokenFetcher = Callable[[ClientRegistration, dict[str, Any]], dict[str, Any]]


class TokenRefresher:
    """Exchanges a refresh token for a new access token."""

    def __init__(
        self,
        registration: ClientRegistration,
        *,
        token_fetcher: TokenFetcher | None = None,
        timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self.registration = registration
        self._token_fetcher = token_fetcher or _requests_token_fetcher(timeout)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._logger = logger_instance or logger

    def refresh(self, refresh_token: str, registration: ClientRegistration | None = None) -> AuthorizedCredential:
        registration = registration or self.registration
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": registration.client_id,
            "client_secret": registration.client_secret,
        }
        try:
            token_payload = self._token_fetcher(registration, payload)
        except TokenRefreshError:
            raise
        except Exception as exc:
            self._logger.exception("Token refresh failed: %s", exc)
            raise UpstreamUnavailable("Token endpoint unavailable") from exc

        credential = credential_from_token_response(
            token_payload,
            registration=registration,
            now=self._clock(),
            previous_refresh_token=refresh_token,
        )
        self._logger.debug("Refreshed access token expiring at %s", credential.expires_at)
        return credential


class CredentialProvider:
    """Resolves a principal to a usable credential, refreshing when needed."""

    def __init__(
        self,
        store: CredentialStore,
        refresher: TokenRefresher,
        *,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._logger = logger_instance or logger

    @property
    def store(self) -> CredentialStore:
        return self._store

    def authorized(self, principal: str | None) -> AuthorizedCredential:
        if not principal:
            raise Unauthenticated("Not logged in")

        result = self._store.load(principal)
        if result.credential is not None:
            return result.credential
        if result.status is LoadStatus.ABSENT:
            raise Unauthenticated(f"No credential stored for {principal}")

        refresh_token = self._store.refresh_token(principal)
        if refresh_token is None:
            raise CredentialNeedsRefresh(f"Credential for {principal} expired without refresh token")

        registration = self._store.registration(principal)
        if not isinstance(registration, ClientRegistration):
            registration = None
        try:
            refreshed = self._refresher.refresh(refresh_token, registration)
        except TokenRefreshError as exc:
            self._logger.warning("Refresh rejected for principal %s, removing credential: %s", principal, exc)
            self._store.remove(principal)
            raise Unauthenticated(f"Refresh token for {principal} was rejected") from exc

        if not self._store.replace_if_refresh_token(principal, refresh_token, refreshed):
            # Removed meanwhile, or another refresh already stored a newer credential.
            current = self._store.load(principal)
            if current.credential is not None:
                return current.credential
            raise Unauthenticated(f"Credential for {principal} was removed during refresh")
        retry = self._store.load(principal)
        if retry.credential is None:
            raise CredentialNeedsRefresh(f"Refreshed credential for {principal} is not usable")
        self._logger.info("Refreshed access token for principal %s", principal)
        return retry.credential

    def revoke_access(self, principal: str) -> None:
        """Forget the access token after the provider rejected it."""

        self._logger.info("Discarding rejected access token for principal %s", principal)
        self._store.discard_access(principal)


def credential_from_token_response(
    payload: dict[str, Any],
    *,
    registration: Any = None,
    now: datetime | None = None,
    previous_refresh_token: str | None = None,
) -> AuthorizedCredential:
    access_token = payload.get("access_token")
    if not access_token:
        raise TokenRefreshError("Token response did not contain an access token")
    expires_at: datetime | None = None
    expires_in = payload.get("expires_in")
    if isinstance(expires_in, (int, float)):
        reference = now or datetime.now(timezone.utc)
        expires_at = reference + timedelta(seconds=float(expires_in))
    return AuthorizedCredential(
        access_token=access_token,
        expires_at=expires_at,
        refresh_token=payload.get("refresh_token") or previous_refresh_token,
        registration=registration,
    )


def _requests_token_fetcher(timeout: float) -> TokenFetcher:
    def fetch(registration: ClientRegistration, payload: dict[str, Any]) -> dict[str, Any]:
        response = requests.post(registration.token_endpoint, data=payload, timeout=timeout)
        if response.status_code in (400, 401):
            raise TokenRefreshError(f"Token endpoint rejected refresh: {response.status_code}")
        response.raise_for_status()
        return response.json()

    return fetch
