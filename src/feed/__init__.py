"""Event aggregation, ordering and result caching."""

from .aggregator import CalendarSourceClient, EventAggregator, TimeWindow, compute_window
from .cache import ResultCache, calendar_events_key, calendar_list_key
from .errors import (
    ConfigurationError,
    CredentialNeedsRefresh,
    FeedError,
    TokenRefreshError,
    Unauthenticated,
    UpstreamUnauthorized,
    UpstreamUnavailable,
)
from .models import (
    NO_START,
    AggregationQuery,
    AllDayStart,
    CalendarDescriptor,
    Event,
    EventPage,
    TimedStart,
    UnspecifiedStart,
)
from .ordering import compare_starts, sort_events

__all__ = [
    "AggregationQuery",
    "AllDayStart",
    "CalendarDescriptor",
    "CalendarSourceClient",
    "ConfigurationError",
    "CredentialNeedsRefresh",
    "Event",
    "EventAggregator",
    "EventPage",
    "FeedError",
    "NO_START",
    "ResultCache",
    "TimeWindow",
    "TimedStart",
    "TokenRefreshError",
    "Unauthenticated",
    "UnspecifiedStart",
    "UpstreamUnauthorized",
    "UpstreamUnavailable",
    "calendar_events_key",
    "calendar_list_key",
    "compare_starts",
    "compute_window",
    "sort_events",
]
