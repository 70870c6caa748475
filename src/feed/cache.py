"""Time-boxed memoization for calendar results."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Tuple, TypeVar

from .locks import StripedLock

logger = logging.getLogger(__name__)

T = TypeVar("T")

CALENDAR_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 100


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    inserted_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now > self.inserted_at + self.ttl


class ResultCache:
    """Thread-safe TTL cache with lazy expiry.

    Expired entries are dropped when read. Once more than ``max_entries``
    keys are held, the least recently stored ones are evicted.
    Concurrent misses on one key may compute twice; the last store wins.
    """

    def __init__(
        self,
        name: str,
        *,
        clock: Callable[[], float] | None = None,
        stripes: int = 16,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.name = name
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._locks = StripedLock(stripes)
        self._stats_lock = threading.Lock()
        self._entries: Dict[Hashable, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Any | None:
        with self._locks.for_key(key):
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def get_or_compute(self, key: Hashable, ttl: float, compute: Callable[[], T]) -> T:
        lock = self._locks.for_key(key)
        with lock:
            entry = self._entries.get(key)
            hit = entry is not None and not entry.expired(self._clock())
        self._count(hit)
        if hit:
            return entry.value

        logger.debug("Cache miss in %s cache, computing value", self.name)
        value = compute()
        with lock:
            # Re-inserting moves the key to the end of the eviction order.
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)
        self._evict_overflow()
        return value

    def invalidate(self, key: Hashable) -> bool:
        with self._locks.for_key(key):
            return self._entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        count = 0
        for key in list(self._entries):
            if predicate(key) and self.invalidate(key):
                count += 1
        if count:
            logger.debug("Invalidated %s entries from %s cache", count, self.name)
        return count

    def clear(self) -> None:
        for key in list(self._entries):
            self.invalidate(key)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            hits, misses = self.hits, self.misses
        total = hits + misses
        return {
            "name": self.name,
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "hits": hits,
            "misses": misses,
            "hit_ratio": hits / total if total else 0,
        }

    def _count(self, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self.hits += 1
            else:
                self.misses += 1

    def _evict_overflow(self) -> None:
        excess = len(self._entries) - self.max_entries
        if excess <= 0:
            return
        evicted = 0
        for key in list(self._entries)[:excess]:
            if self.invalidate(key):
                evicted += 1
        if evicted:
            logger.debug("Evicted %s oldest entries from %s cache", evicted, self.name)


def calendar_events_key(
    access_token: str, calendar_ids: Iterable[str], window_days: int
) -> Tuple[str, str, Tuple[str, ...], int]:
    return ("events", access_token, tuple(calendar_ids), window_days)


def calendar_list_key(access_token: str) -> Tuple[str, str]:
    return ("calendars", access_token)
