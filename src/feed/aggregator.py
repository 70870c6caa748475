from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import TYPE_CHECKING, Callable, List, Protocol, Sequence

from .errors import FeedError, UpstreamUnavailable
from .models import AggregationQuery, CalendarDescriptor, Event, EventPage
from .ordering import sort_events

if TYPE_CHECKING:  # pragma: no cover
    from ..auth.credentials import AuthorizedCredential

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 100


class CalendarSourceClient(Protocol):
    """Performs one authenticated provider call per invocation."""

    def list_calendars(self, credential: "AuthorizedCredential") -> List[CalendarDescriptor]:
        ...

    def list_events(
        self,
        credential: "AuthorizedCredential",
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        page_token: str | None = None,
    ) -> EventPage:
        ...


@dataclass(frozen=True, slots=True)
class TimeWindow:
    start: datetime
    end: datetime


def compute_window(window_days: int, tz: tzinfo, now: datetime | None = None) -> TimeWindow:
    """Whole local days from the start of today through the end of the last day.

    ``end`` is the final microsecond of day ``window_days - 1``, so a one day
    window covers today in full.
    """

    if window_days <= 0:
        raise ValueError("window_days must be positive")
    reference = now.astimezone(tz) if now is not None else datetime.now(tz)
    today: date = reference.date()
    start = datetime.combine(today, time.min, tzinfo=tz)
    last_day = today + timedelta(days=window_days - 1)
    end = datetime.combine(last_day, time.max, tzinfo=tz)
    return TimeWindow(start=start, end=end)


class EventAggregator:
    """Fans an events query out to every requested calendar.

    Calendars are paged through one after another and their events are
    concatenated in the order the ids were supplied before sorting. The first
    failing calendar aborts the whole aggregation.
    """

    def __init__(
        self,
        client: CalendarSourceClient,
        *,
        tz: tzinfo,
        clock: Callable[[], datetime] | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._tz = tz
        self._clock = clock
        self._max_pages = max_pages
        self._logger = logger_instance or logger

    def window(self, window_days: int) -> TimeWindow:
        now = self._clock() if self._clock is not None else None
        return compute_window(window_days, self._tz, now)

    def aggregate(self, query: AggregationQuery) -> List[Event]:
        if not query.calendar_ids:
            return []
        window = self.window(query.window_days)
        merged = self.collect(query.credential, query.calendar_ids, window)
        return sort_events(merged)

    def collect(
        self,
        credential: "AuthorizedCredential",
        calendar_ids: Sequence[str],
        window: TimeWindow,
    ) -> List[Event]:
        """Concatenate every calendar's events without reordering them."""

        merged: List[Event] = []
        for calendar_id in calendar_ids:
            merged.extend(self.fetch_calendar(credential, calendar_id, window))
        self._logger.info(
            "Aggregated %s events from %s calendars", len(merged), len(calendar_ids)
        )
        return merged

    def fetch_calendar(
        self,
        credential: "AuthorizedCredential",
        calendar_id: str,
        window: TimeWindow,
    ) -> List[Event]:
        events: List[Event] = []
        page_token: str | None = None
        pages = 0
        while True:
            if pages >= self._max_pages:
                raise UpstreamUnavailable(
                    f"Calendar {calendar_id} returned more than {self._max_pages} pages"
                )
            try:
                page = self._client.list_events(
                    credential, calendar_id, window.start, window.end, page_token
                )
            except FeedError:
                self._logger.error("Fetching events for calendar %s failed", calendar_id)
                raise
            except Exception as exc:
                self._logger.exception("Fetching events for calendar %s failed: %s", calendar_id, exc)
                raise UpstreamUnavailable(f"Failed to load events for calendar {calendar_id}") from exc
            pages += 1
            events.extend(page.items)
            page_token = page.next_page_token
            if not page_token:
                break
        self._logger.debug(
            "Fetched %s events in %s pages from calendar %s", len(events), pages, calendar_id
        )
        return events
