import pytest

from workorders.core.cache import QueryCache


def test_invalidate_drops_every_key_with_prefix():
    cache = QueryCache()
    cache.set(("tickets", "all"), [1])
    cache.set(("tickets", "open"), [2])
    cache.set(("ticket-history", "t-1"), [3])
    cache.set(("ticket-history", "t-2"), [4])

    removed = cache.invalidate(("tickets",), ("ticket-history", "t-1"))

    assert removed == 3
    assert cache.get(("tickets", "all")) is None
    assert cache.get(("ticket-history", "t-2")) == [4]
    assert len(cache) == 1


def test_entries_expire_after_ttl():
    now = [100.0]
    cache = QueryCache(ttl_seconds=10, clock=lambda: now[0])
    cache.set(("equipment",), ["eq"])

    now[0] = 105.0
    assert cache.get(("equipment",)) == ["eq"]
    now[0] = 111.0
    assert cache.get(("equipment",)) is None


@pytest.mark.asyncio
async def test_get_or_load_only_calls_loader_on_miss():
    cache = QueryCache()
    calls = []

    async def loader():
        calls.append(1)
        return ["row"]

    assert await cache.get_or_load(("tickets", "x"), loader) == ["row"]
    assert await cache.get_or_load(("tickets", "x"), loader) == ["row"]
    assert len(calls) == 1

    cache.clear()
    await cache.get_or_load(("tickets", "x"), loader)
    assert len(calls) == 2


def test_expired_entries_are_swept_on_write():
    now = [100.0]
    cache = QueryCache(ttl_seconds=10, clock=lambda: now[0])
    cache.set(("current-user", "old-token"), "user-1")
    cache.set(("tickets", "search-a"), [1])

    now[0] = 120.0
    cache.set(("tickets", "search-b"), [2])

    assert len(cache) == 1
    assert cache.get(("tickets", "search-b")) == [2]


def test_oldest_entries_are_dropped_past_max_entries():
    cache = QueryCache(max_entries=2)
    cache.set(("tickets", "a"), [1])
    cache.set(("tickets", "b"), [2])
    cache.set(("tickets", "a"), [3])
    cache.set(("tickets", "c"), [4])

    assert len(cache) == 2
    assert cache.get(("tickets", "b")) is None
    assert cache.get(("tickets", "a")) == [3]
    assert cache.get(("tickets", "c")) == [4]
