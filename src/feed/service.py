"""Calendar feed operations exposed to the HTTP layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Sequence, TypeVar

from ..auth.credentials import AuthorizedCredential
from ..auth.refresh import CredentialProvider, TokenRefresher
from ..auth.store import CredentialStore
from ..config import FeedConfig
from ..integrations.google_calendar import GoogleCalendarClient
from .aggregator import CalendarSourceClient, EventAggregator
from .cache import ResultCache, calendar_events_key, calendar_list_key
from .errors import CredentialNeedsRefresh, FeedError, UpstreamUnauthorized
from .models import PRIMARY_CALENDAR, AggregationQuery, CalendarDescriptor, Event

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class UserStatus:
    authenticated: bool
    principal: str | None = None
    needs_refresh: bool = False


class CalendarFeedService:
    """Serves calendars and merged event feeds for signed-in principals."""

    def __init__(
        self,
        credentials: CredentialProvider,
        client: CalendarSourceClient,
        aggregator: EventAggregator,
        cache: ResultCache,
        *,
        cache_ttl: float,
        default_window_days: int = 7,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self._credentials = credentials
        self._client = client
        self._aggregator = aggregator
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._default_window_days = default_window_days
        self._logger = logger_instance or logger

    def get_calendars(self, principal: str | None) -> List[CalendarDescriptor]:
        credential = self._credentials.authorized(principal)
        key = calendar_list_key(credential.access_token)
        calendars = self._guarded(
            principal,
            lambda: self._cache.get_or_compute(
                key, self._cache_ttl, lambda: self._client.list_calendars(credential)
            ),
        )
        return list(calendars)

    def get_events(
        self,
        principal: str | None,
        calendar_ids: Sequence[str] | None = None,
        window_days: int | None = None,
    ) -> List[Event]:
        credential = self._credentials.authorized(principal)
        ids = tuple(calendar_ids) if calendar_ids else (PRIMARY_CALENDAR,)
        days = window_days if window_days is not None else self._default_window_days
        query = AggregationQuery(calendar_ids=ids, window_days=days, credential=credential)
        key = calendar_events_key(credential.access_token, ids, days)
        self._logger.debug("Loading events for %s calendars over %s days", len(ids), days)
        events = self._guarded(
            principal,
            lambda: self._cache.get_or_compute(
                key, self._cache_ttl, lambda: self._aggregator.aggregate(query)
            ),
        )
        return list(events)

    def sign_in(self, principal: str, credential: AuthorizedCredential) -> None:
        """Store the credential granted after a successful provider authorization."""

        self._credentials.store.save(principal, credential)
        self._logger.info("Stored credential for principal %s", principal)

    def current_user(self, principal: str | None) -> UserStatus:
        """Report session state, refreshing the token early when possible."""

        if not principal:
            return UserStatus(authenticated=False)
        try:
            self._credentials.authorized(principal)
        except CredentialNeedsRefresh:
            return UserStatus(authenticated=True, principal=principal, needs_refresh=True)
        except FeedError as exc:
            self._logger.debug("Early token refresh for %s failed: %s", principal, exc)
            return UserStatus(authenticated=False)
        return UserStatus(authenticated=True, principal=principal)

    def logout(self, principal: str) -> None:
        stored = self._credentials.store.peek(principal)
        if stored is not None:
            self._forget_token(stored.access_token)
        self._credentials.store.remove(principal)
        self._logger.info("Logged out principal %s", principal)

    def _guarded(self, principal: str | None, call: Callable[[], T]) -> T:
        try:
            return call()
        except UpstreamUnauthorized as exc:
            if principal:
                self._credentials.revoke_access(principal)
            raise CredentialNeedsRefresh(f"Access token for {principal} was rejected") from exc

    def _forget_token(self, access_token: str) -> int:
        return self._cache.invalidate_where(
            lambda key: isinstance(key, tuple) and len(key) > 1 and key[1] == access_token
        )


def build_service(config: FeedConfig, client: CalendarSourceClient | None = None) -> CalendarFeedService:
    """Wire the default collaborators from configuration."""

    store = CredentialStore()
    refresher = TokenRefresher(config.registration(), timeout=config.request_timeout)
    source = client or GoogleCalendarClient(timeout=config.request_timeout)
    aggregator = EventAggregator(source, tz=config.tzinfo())
    return CalendarFeedService(
        CredentialProvider(store, refresher),
        source,
        aggregator,
        ResultCache("calendar", max_entries=config.cache_max_entries),
        cache_ttl=config.cache_ttl_seconds,
        default_window_days=config.default_window_days,
    )


def calendar_ids_from(values: Iterable[str] | None) -> tuple[str, ...]:
    return tuple(value for value in (values or ()) if value)
