from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.feed.cache import ResultCache, calendar_events_key, calendar_list_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Counter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        return f"value-{self.calls}"


def test_hit_within_ttl_does_not_recompute() -> None:
    clock = FakeClock()
    cache = ResultCache("test", clock=clock)
    compute = Counter()

    first = cache.get_or_compute("key", 300, compute)
    clock.advance(299)
    second = cache.get_or_compute("key", 300, compute)

    assert first == second == "value-1"
    assert compute.calls == 1


def test_expired_entry_is_recomputed_and_replaced() -> None:
    clock = FakeClock()
    cache = ResultCache("test", clock=clock)
    compute = Counter()

    cache.get_or_compute("key", 300, compute)
    clock.advance(301)
    refreshed = cache.get_or_compute("key", 300, compute)

    assert refreshed == "value-2"
    assert compute.calls == 2
    assert cache.get("key") == "value-2"


def test_entry_is_usable_at_exact_ttl_boundary() -> None:
    clock = FakeClock()
    cache = ResultCache("test", clock=clock)
    cache.get_or_compute("key", 300, Counter())

    clock.advance(300)

    assert cache.get("key") == "value-1"


def test_failed_computation_is_not_cached() -> None:
    cache = ResultCache("test", clock=FakeClock())

    def explode() -> str:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_compute("key", 300, explode)

    assert cache.get("key") is None
    assert len(cache) == 0


def test_keys_are_independent() -> None:
    cache = ResultCache("test", clock=FakeClock())
    compute = Counter()

    cache.get_or_compute(calendar_events_key("token", ["a", "b"], 1), 300, compute)
    cache.get_or_compute(calendar_events_key("token", ["a", "b"], 2), 300, compute)
    cache.get_or_compute(calendar_events_key("token", ["b", "a"], 1), 300, compute)

    assert compute.calls == 3


def test_invalidate_where_drops_matching_entries() -> None:
    cache = ResultCache("test", clock=FakeClock())
    cache.get_or_compute(calendar_list_key("alice-token"), 300, Counter())
    cache.get_or_compute(calendar_events_key("alice-token", ["primary"], 7), 300, Counter())
    cache.get_or_compute(calendar_list_key("bob-token"), 300, Counter())

    removed = cache.invalidate_where(lambda key: key[1] == "alice-token")

    assert removed == 2
    assert cache.get(calendar_list_key("bob-token")) == "value-1"


def test_stats_track_hits_and_misses() -> None:
    cache = ResultCache("calendar", clock=FakeClock())
    compute = Counter()
    cache.get_or_compute("key", 300, compute)
    cache.get_or_compute("key", 300, compute)

    stats = cache.stats()

    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert stats["hit_ratio"] == 0.5

    cache.clear()
    assert len(cache) == 0


def test_size_is_bounded_by_max_entries() -> None:
    cache = ResultCache("test", clock=FakeClock())

    for index in range(1000):
        cache.get_or_compute(calendar_list_key(f"token-{index}"), 300, Counter())

    assert len(cache) <= 100
    assert cache.get(calendar_list_key("token-999")) == "value-1"
    assert cache.get(calendar_list_key("token-0")) is None


def test_oldest_stored_entries_are_evicted_first() -> None:
    clock = FakeClock()
    cache = ResultCache("test", clock=clock, max_entries=2)

    cache.get_or_compute("a", 300, Counter())
    cache.get_or_compute("b", 300, Counter())
    clock.advance(301)
    cache.get_or_compute("a", 300, Counter())
    cache.get_or_compute("c", 300, Counter())

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == "value-1"
    assert cache.get("c") == "value-1"


def test_events_key_keeps_calendar_ids_distinct() -> None:
    joined = calendar_events_key("token", ["a,b"], 7)
    separate = calendar_events_key("token", ["a", "b"], 7)

    assert joined != separate
    assert separate == ("events", "token", ("a", "b"), 7)


def test_counters_are_exact_under_concurrent_lookups() -> None:
    cache = ResultCache("test", clock=FakeClock())
    cache.get_or_compute("shared", 300, Counter())

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: cache.get_or_compute("shared", 300, Counter()), range(400)))

    stats = cache.stats()
    assert stats["hits"] == 400
    assert stats["misses"] == 1
