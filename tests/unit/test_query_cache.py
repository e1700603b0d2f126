import pytest

from rescue_timeline.services.cache.query_cache import QueryCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_get_or_fetch_memoizes_until_stale():
    clock = FakeClock()
    cache = QueryCache(stale_seconds=300, clock=clock)
    calls = []

    async def fetcher():
        calls.append(clock.now)
        return ["row"]

    await cache.get_or_fetch(("dogs", "org_1"), fetcher)
    clock.now = 299
    await cache.get_or_fetch(("dogs", "org_1"), fetcher)
    clock.now = 300
    await cache.get_or_fetch(("dogs", "org_1"), fetcher)

    assert calls == [0.0, 300]


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.set(("calendar-events", "org_1", "a"), 1)
    cache.set(("calendar-events", "org_2", "b"), 2)
    cache.set(("dogs", "org_1"), 3)

    removed = cache.invalidate("calendar-events")

    assert removed == 2
    assert cache.get(("calendar-events", "org_1", "a")) is None
    assert cache.get(("dogs", "org_1")) == 3


def test_clear():
    cache = QueryCache()
    cache.set(("dogs",), 1)

    cache.clear()

    assert cache.get(("dogs",)) is None


def test_stale_entries_are_pruned_when_full():
    clock = FakeClock()
    cache = QueryCache(stale_seconds=300, max_items=3, clock=clock)
    for i in range(3):
        cache.set(("calendar-events", f"caller-{i}"), i)

    clock.now = 300
    cache.set(("calendar-events", "caller-new"), "fresh")

    assert len(cache) == 1
    assert cache.get(("calendar-events", "caller-new")) == "fresh"


def test_oldest_entries_are_evicted_at_capacity():
    clock = FakeClock()
    cache = QueryCache(stale_seconds=300, max_items=3, clock=clock)

    for i in range(10):
        clock.now = float(i)
        cache.set(("calendar-events", f"caller-{i}"), i)

    assert len(cache) == 3
    assert cache.get(("calendar-events", "caller-0")) is None
    assert cache.get(("calendar-events", "caller-9")) == 9


def test_overwriting_a_key_does_not_evict():
    cache = QueryCache(max_items=2)
    cache.set(("dogs", "a"), 1)
    cache.set(("dogs", "b"), 2)

    cache.set(("dogs", "a"), 3)

    assert cache.get(("dogs", "a")) == 3
    assert cache.get(("dogs", "b")) == 2
