from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

EXPIRY_GUARD = timedelta(seconds=60)


@dataclass(frozen=True, slots=True)
class AuthorizedCredential:
    """Access token granted by the calendar provider on behalf of a principal."""

    access_token: str
    expires_at: datetime | None = None
    refresh_token: str | None = None
    registration: Any = None

    def __post_init__(self) -> None:
        # Naive expiry times are read as UTC so they compare with aware clocks.
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc))

    def is_valid(self, *, now: datetime | None = None) -> bool:
        """True while the token has more than a minute of life left."""

        if self.expires_at is None:
            return False
        reference = now or datetime.now(timezone.utc)
        return self.expires_at > reference + EXPIRY_GUARD

    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


class LoadStatus(enum.Enum):
    VALID = "valid"
    NEEDS_REFRESH = "needs_refresh"
    ABSENT = "absent"


@dataclass(frozen=True, slots=True)
class LoadResult:
    """Outcome of a credential lookup.

    ``credential`` is populated only when ``status`` is ``VALID``.
    """

    status: LoadStatus
    credential: AuthorizedCredential | None = None

    @classmethod
    def valid(cls, credential: AuthorizedCredential) -> "LoadResult":
        return cls(LoadStatus.VALID, credential)

    @property
    def is_valid(self) -> bool:
        return self.status is LoadStatus.VALID


NEEDS_REFRESH = LoadResult(LoadStatus.NEEDS_REFRESH)
ABSENT = LoadResult(LoadStatus.ABSENT)
