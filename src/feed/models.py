from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Union

if TYPE_CHECKING:  # pragma: no cover
    from ..auth.credentials import AuthorizedCredential

PRIMARY_CALENDAR = "primary"


@dataclass(frozen=True, slots=True)
class TimedStart:
    """Event boundary at a timezone-aware point in time."""

    instant: datetime

    def __post_init__(self) -> None:
        if self.instant.tzinfo is None:
            raise ValueError("Timed boundaries must be timezone-aware")


@dataclass(frozen=True, slots=True)
class AllDayStart:
    """Event boundary expressed as a calendar date without time of day."""

    day: date


@dataclass(frozen=True, slots=True)
class UnspecifiedStart:
    """Event boundary carrying no date information at all."""


NO_START = UnspecifiedStart()

EventStart = Union[TimedStart, AllDayStart, UnspecifiedStart]


def parse_event_start(raw: Mapping[str, Any] | None) -> EventStart:
    """Convert a provider ``{"dateTime": ..., "date": ...}`` mapping.

    ``dateTime`` wins when both keys are populated, so the result is always
    exactly one variant.
    """

    if not raw:
        return NO_START
    date_time = raw.get("dateTime")
    if date_time:
        return TimedStart(_parse_instant(date_time))
    day = raw.get("date")
    if day:
        return AllDayStart(date.fromisoformat(day))
    return NO_START


def _parse_instant(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class Event:
    """Calendar event normalized from a provider item.

    ``payload`` is the provider item exactly as received; it is passed through
    to callers untouched.
    """

    calendar_id: str
    event_id: str | None
    summary: str | None
    start: EventStart = NO_START
    end: EventStart = NO_START
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_provider(cls, calendar_id: str, item: Mapping[str, Any]) -> "Event":
        return cls(
            calendar_id=calendar_id,
            event_id=item.get("id"),
            summary=item.get("summary"),
            start=parse_event_start(item.get("start")),
            end=parse_event_start(item.get("end")),
            payload=item,
        )


@dataclass(frozen=True, slots=True)
class CalendarDescriptor:
    """Calendar available to the signed-in principal."""

    id: str
    summary: str | None = None
    color: str | None = None
    primary: bool = False

    @classmethod
    def from_provider(cls, item: Mapping[str, Any]) -> "CalendarDescriptor":
        return cls(
            id=item["id"],
            summary=item.get("summaryOverride") or item.get("summary"),
            color=item.get("backgroundColor"),
            primary=bool(item.get("primary", False)),
        )


@dataclass(frozen=True, slots=True)
class EventPage:
    """One page of a list-events response."""

    items: tuple[Event, ...]
    next_page_token: str | None = None


@dataclass(frozen=True)
class AggregationQuery:
    """Events request spanning several calendars over a window of days."""

    calendar_ids: tuple[str, ...]
    window_days: int
    credential: "AuthorizedCredential"

    def __post_init__(self) -> None:
        if self.window_days <= 0:
            raise ValueError("window_days must be positive")
        object.__setattr__(self, "calendar_ids", tuple(self.calendar_ids))
