"""Settings for the calendar feed service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone as dt_timezone
from datetime import tzinfo
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .auth.refresh import GOOGLE_TOKEN_ENDPOINT, ClientRegistration
from .feed.cache import CALENDAR_TTL_SECONDS, DEFAULT_MAX_ENTRIES
from .feed.errors import ConfigurationError


@dataclass(slots=True)
class FeedConfig:
    """Configuration required to talk to the calendar provider."""

    client_id: str
    client_secret: str
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    timezone: str = "UTC"
    default_window_days: int = 7
    cache_ttl_seconds: float = CALENDAR_TTL_SECONDS
    request_timeout: float = 10.0
    application_name: str = "Daily Calendar Feed"
    cache_max_entries: int = DEFAULT_MAX_ENTRIES

    def __post_init__(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Google client id and secret are required")
        if self.default_window_days <= 0:
            raise ConfigurationError("default_window_days must be positive")
        if self.cache_max_entries <= 0:
            raise ConfigurationError("cache_max_entries must be positive")
        self.tzinfo()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "FeedConfig":
        env = os.environ if environ is None else environ
        try:
            return cls(
                client_id=env.get("GOOGLE_CLIENT_ID", ""),
                client_secret=env.get("GOOGLE_CLIENT_SECRET", ""),
                token_endpoint=env.get("GOOGLE_TOKEN_ENDPOINT", GOOGLE_TOKEN_ENDPOINT),
                timezone=env.get("FEED_TIMEZONE", "UTC"),
                default_window_days=int(env.get("FEED_DEFAULT_DAYS", "7")),
                cache_ttl_seconds=float(env.get("FEED_CACHE_TTL", str(CALENDAR_TTL_SECONDS))),
                request_timeout=float(env.get("FEED_REQUEST_TIMEOUT", "10")),
                application_name=env.get("FEED_APPLICATION_NAME", "Daily Calendar Feed"),
                cache_max_entries=int(env.get("FEED_CACHE_MAX_ENTRIES", str(DEFAULT_MAX_ENTRIES))),
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc

    def tzinfo(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return dt_timezone.utc
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone '{self.timezone}'") from exc

    def registration(self) -> ClientRegistration:
        return ClientRegistration(
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_endpoint=self.token_endpoint,
        )
