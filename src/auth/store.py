"""In-memory credential store keyed by principal."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from ..feed.locks import StripedLock
from .credentials import ABSENT, NEEDS_REFRESH, AuthorizedCredential, LoadResult

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """Holds one authorized credential per principal.

    Refresh tokens are retained separately from the credential so that the
    refresh capability outlives both access-token expiry and
    :meth:`discard_access`. Nothing here raises or performs network I/O.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        stripes: int = 16,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self._clock = clock or _utcnow
        self._locks = StripedLock(stripes)
        self._sessions: Dict[str, AuthorizedCredential] = {}
        self._refresh_tokens: Dict[str, str] = {}
        self._registrations: Dict[str, Any] = {}
        self._logger = logger_instance or logger

    def save(self, principal: str, credential: AuthorizedCredential) -> None:
        self._logger.debug("Saving authorized credential for principal %s", principal)
        with self._locks.for_key(principal):
            self._sessions[principal] = credential
            if credential.registration is not None:
                self._registrations[principal] = credential.registration
            if credential.refresh_token:
                self._logger.debug("Retaining refresh token for principal %s", principal)
                self._refresh_tokens[principal] = credential.refresh_token

    def load(self, principal: str) -> LoadResult:
        with self._locks.for_key(principal):
            credential = self._sessions.get(principal)
            refreshable = principal in self._refresh_tokens

        if credential is None:
            if refreshable:
                self._logger.debug(
                    "No credential but refresh token retained for principal %s", principal
                )
                return NEEDS_REFRESH
            return ABSENT
        if not credential.is_valid(now=self._clock()):
            self._logger.debug("Access token expired for principal %s", principal)
            return NEEDS_REFRESH
        return LoadResult.valid(credential)

    def remove(self, principal: str) -> None:
        self._logger.debug("Removing authorized credential for principal %s", principal)
        with self._locks.for_key(principal):
            self._sessions.pop(principal, None)
            self._refresh_tokens.pop(principal, None)
            self._registrations.pop(principal, None)

    def replace_if_refresh_token(
        self, principal: str, expected_refresh_token: str, credential: AuthorizedCredential
    ) -> bool:
        """Save ``credential`` only while ``expected_refresh_token`` is still retained.

        Returns False, leaving the entry untouched, when the principal was
        removed or its refresh token replaced in the meantime.
        """

        with self._locks.for_key(principal):
            if self._refresh_tokens.get(principal) != expected_refresh_token:
                self._logger.debug("Refresh token for principal %s changed, discarding refresh", principal)
                return False
            self._sessions[principal] = credential
            if credential.registration is not None:
                self._registrations[principal] = credential.registration
            if credential.refresh_token:
                self._refresh_tokens[principal] = credential.refresh_token
            return True

    def discard_access(self, principal: str) -> AuthorizedCredential | None:
        """Drop the access credential while keeping any retained refresh token."""

        with self._locks.for_key(principal):
            return self._sessions.pop(principal, None)

    def has_refresh_capability(self, principal: str) -> bool:
        with self._locks.for_key(principal):
            return principal in self._refresh_tokens

    def refresh_token(self, principal: str) -> str | None:
        with self._locks.for_key(principal):
            return self._refresh_tokens.get(principal)

    def registration(self, principal: str) -> Any:
        with self._locks.for_key(principal):
            return self._registrations.get(principal)

    def peek(self, principal: str) -> AuthorizedCredential | None:
        """Stored credential regardless of validity."""

        with self._locks.for_key(principal):
            return self._sessions.get(principal)
