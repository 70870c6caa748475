"""Ordering of events by their start boundary."""

from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable, List

from .models import AllDayStart, Event, EventStart, TimedStart


def compare_starts(first: EventStart, second: EventStart) -> int:
    """Three-way comparison of two start boundaries.

    Timed starts precede all-day starts, which precede unspecified ones.
    Unspecified starts compare equal to each other.
    """

    if isinstance(first, TimedStart) and isinstance(second, TimedStart):
        return _cmp(first.instant, second.instant)
    if isinstance(first, TimedStart):
        return -1
    if isinstance(second, TimedStart):
        return 1
    if isinstance(first, AllDayStart) and isinstance(second, AllDayStart):
        return _cmp(first.day, second.day)
    if isinstance(first, AllDayStart):
        return -1
    if isinstance(second, AllDayStart):
        return 1
    return 0


def compare_events(first: Event, second: Event) -> int:
    return compare_starts(first.start, second.start)


def sort_events(events: Iterable[Event]) -> List[Event]:
    """Return a new list ordered by start; ties keep their input order."""

    return sorted(events, key=cmp_to_key(compare_events))


def _cmp(left, right) -> int:
    return (left > right) - (left < right)
