"""Tests for the TTL cache and the venue snapshot cache."""

import asyncio
import json

import pytest
from unittest.mock import AsyncMock

from tests.fakes import FakeClock, MemoryStore
from utils.cache import CacheSource, TTLCache, VenueCache

KEY = "bowlingalleys_venues_cache_v4"
TTL = 8 * 60 * 60

VENUES = [{"id": "a", "name": "Alpha Lanes"}, {"id": "b", "name": "Beta Bowl"}]


def make_cache(fetcher, store=None, clock=None):
    return VenueCache(
        fetcher=fetcher,
        store=store if store is not None else MemoryStore(),
        key=KEY,
        ttl=TTL,
        clock=clock or FakeClock(),
    )


def blob(venues, fetched_at):
    return json.dumps({"venues": venues, "timestamp": int(fetched_at * 1000)})


class GatedFetcher:
    """Fetcher that blocks until released and counts calls."""

    def __init__(self, result=VENUES):
        self.calls = 0
        self.gate = asyncio.Event()
        self.result = result

    async def __call__(self):
        self.calls += 1
        await self.gate.wait()
        return self.result


class OverlapFetcher(GatedFetcher):
    """Gated fetcher that records how many fetches run at the same time."""

    def __init__(self, results):
        super().__init__()
        self.results = list(results)
        self.active = 0
        self.max_active = 0

    async def __call__(self):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.gate.wait()
            return self.results.pop(0)
        finally:
            self.active -= 1


async def settle(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============== TTLCache ==============

def test_ttl_cache_set_and_get():
    cache = TTLCache(default_ttl=60)
    cache.set("key1", "value1")
    assert cache.get("key1") == "value1"


def test_ttl_cache_get_missing_key():
    cache = TTLCache(default_ttl=60)
    assert cache.get("nonexistent") is None


def test_ttl_cache_expiration():
    clock = FakeClock()
    cache = TTLCache(default_ttl=60, clock=clock)
    cache.set("short", "val", ttl=10)
    cache.set("long", "val")

    clock.advance(10)
    assert cache.get("short") is None
    assert cache.get("long") == "val"


def test_ttl_cache_invalidate_and_prefix():
    cache = TTLCache(default_ttl=60)
    cache.set("venue:1", [1])
    cache.set("venue:2", [2])
    cache.set("other", 3)

    cache.invalidate("nonexistent")  # Should not raise
    cache.invalidate("venue:1")
    assert cache.get("venue:1") is None

    cache.invalidate_prefix("venue:")
    assert cache.get("venue:2") is None
    assert cache.get("other") == 3


def test_ttl_cache_clear():
    cache = TTLCache(default_ttl=60)
    cache.set("key1", "val1")
    cache.set("key2", "val2")

    cache.clear()

    assert cache.get("key1") is None
    assert cache.get("key2") is None


# ============== VenueCache: tiers ==============

@pytest.mark.asyncio
async def test_first_read_fetches_and_persists():
    store = MemoryStore()
    clock = FakeClock()
    fetcher = AsyncMock(return_value=VENUES)
    cache = make_cache(fetcher, store, clock)

    result = await cache.get_all()

    assert result == VENUES
    assert fetcher.await_count == 1
    assert cache.last_source == CacheSource.NETWORK
    assert json.loads(store.data[KEY]) == {"venues": VENUES, "timestamp": int(clock.now * 1000)}


@pytest.mark.asyncio
async def test_memory_hit_within_ttl():
    clock = FakeClock()
    fetcher = AsyncMock(return_value=VENUES)
    cache = make_cache(fetcher, clock=clock)

    await cache.get_all()
    clock.advance(TTL - 1)
    result = await cache.get_all()

    assert result == VENUES
    assert fetcher.await_count == 1
    assert cache.last_source == CacheSource.MEMORY


@pytest.mark.asyncio
async def test_snapshot_expires_exactly_at_ttl():
    clock = FakeClock()
    fetcher = AsyncMock(return_value=VENUES)
    cache = make_cache(fetcher, clock=clock)

    await cache.get_all()
    clock.advance(TTL)
    await cache.get_all()

    assert fetcher.await_count == 2


@pytest.mark.asyncio
async def test_valid_persisted_snapshot_skips_network():
    clock = FakeClock()
    store = MemoryStore({KEY: blob(VENUES, clock.now - 3600)})
    fetcher = AsyncMock(return_value=[])
    cache = make_cache(fetcher, store, clock)

    result = await cache.get_all()

    assert result == VENUES
    fetcher.assert_not_awaited()
    assert cache.last_source == CacheSource.PERSISTED
    assert cache.fetched_at == clock.now - 3600


@pytest.mark.asyncio
async def test_snapshot_survives_restart():
    store = MemoryStore()
    clock = FakeClock()
    first = make_cache(AsyncMock(return_value=VENUES), store, clock)
    await first.get_all()

    second_fetcher = AsyncMock(return_value=[])
    second = make_cache(second_fetcher, store, clock)
    result = await second.get_all()

    assert result == VENUES
    second_fetcher.assert_not_awaited()


@pytest.mark.asyncio
async def test_unreadable_persisted_snapshot_is_ignored():
    store = MemoryStore({KEY: "{not json"})
    fetcher = AsyncMock(return_value=VENUES)
    cache = make_cache(fetcher, store)

    assert await cache.get_all() == VENUES
    assert fetcher.await_count == 1


@pytest.mark.asyncio
async def test_empty_persisted_snapshot_is_ignored():
    clock = FakeClock()
    store = MemoryStore({KEY: blob([], clock.now)})
    fetcher = AsyncMock(return_value=VENUES)
    cache = make_cache(fetcher, store, clock)

    assert await cache.get_all() == VENUES
    assert fetcher.await_count == 1


# ============== VenueCache: failures ==============

@pytest.mark.asyncio
async def test_fetch_error_serves_stale_memory():
    clock = FakeClock()
    fetcher = AsyncMock(side_effect=[VENUES, ConnectionError("down")])
    cache = make_cache(fetcher, clock=clock)

    await cache.get_all()
    clock.advance(TTL + 1)
    result = await cache.get_all()

    assert result == VENUES
    assert cache.last_source == CacheSource.STALE_MEMORY


@pytest.mark.asyncio
async def test_fetch_error_serves_stale_persisted():
    clock = FakeClock()
    store = MemoryStore({KEY: blob(VENUES, clock.now - TTL - 60)})
    fetcher = AsyncMock(side_effect=ConnectionError("down"))
    cache = make_cache(fetcher, store, clock)

    result = await cache.get_all()

    assert result == VENUES
    assert fetcher.await_count == 1
    assert cache.last_source == CacheSource.STALE_PERSISTED


@pytest.mark.asyncio
async def test_fetch_error_without_data_returns_empty():
    fetcher = AsyncMock(side_effect=ConnectionError("down"))
    cache = make_cache(fetcher)

    assert await cache.get_all() == []
    assert cache.last_source == CacheSource.EMPTY


@pytest.mark.asyncio
async def test_non_list_response_counts_as_failure():
    store = MemoryStore()
    fetcher = AsyncMock(return_value={"error": "oops"})
    cache = make_cache(fetcher, store)

    assert await cache.get_all() == []
    assert KEY not in store.data


@pytest.mark.asyncio
async def test_empty_fetch_is_never_valid():
    fetcher = AsyncMock(side_effect=[[], VENUES])
    cache = make_cache(fetcher)

    assert await cache.get_all() == []
    assert await cache.get_all() == VENUES
    assert fetcher.await_count == 2


# ============== VenueCache: concurrency ==============

@pytest.mark.asyncio
async def test_concurrent_misses_share_one_fetch():
    fetcher = GatedFetcher()
    cache = make_cache(fetcher)

    tasks = [asyncio.create_task(cache.get_all()) for _ in range(5)]
    await asyncio.sleep(0)
    assert cache.status().fetching is True

    fetcher.gate.set()
    results = await asyncio.gather(*tasks)

    assert fetcher.calls == 1
    assert all(r is results[0] for r in results)
    assert cache.status().fetching is False


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_fetch():
    fetcher = GatedFetcher()
    cache = make_cache(fetcher)

    first = asyncio.create_task(cache.get_all())
    second = asyncio.create_task(cache.get_all())
    await asyncio.sleep(0)

    first.cancel()
    fetcher.gate.set()

    assert await second == VENUES
    assert fetcher.calls == 1
    with pytest.raises(asyncio.CancelledError):
        await first


# ============== VenueCache: invalidation ==============

@pytest.mark.asyncio
async def test_invalidate_triggers_exactly_one_refetch():
    store = MemoryStore()
    fetcher = AsyncMock(return_value=VENUES)
    cache = make_cache(fetcher, store)

    await cache.get_all()
    cache.invalidate()

    assert KEY not in store.data
    assert cache.fetched_at == 0

    await cache.get_all()
    await cache.get_all()
    assert fetcher.await_count == 2


@pytest.mark.asyncio
async def test_invalidate_during_fetch_discards_result():
    store = MemoryStore()
    fetcher = GatedFetcher()
    cache = make_cache(fetcher, store)

    pending = asyncio.create_task(cache.get_all())
    await asyncio.sleep(0)
    cache.invalidate()
    fetcher.gate.set()

    # The waiter still gets the fetched list
    assert await pending == VENUES
    assert cache.status().item_count == 0
    assert KEY not in store.data


@pytest.mark.asyncio
async def test_fetched_at_never_moves_backwards():
    clock = FakeClock()
    fetcher = AsyncMock(side_effect=[[], VENUES])
    cache = make_cache(fetcher, clock=clock)

    await cache.get_all()
    first_fetch = cache.fetched_at
    clock.advance(-5)
    await cache.get_all()

    assert cache.fetched_at == first_fetch


@pytest.mark.asyncio
async def test_status_reports_age_and_expiry():
    clock = FakeClock()
    cache = make_cache(AsyncMock(return_value=VENUES), clock=clock)

    empty = cache.status()
    assert empty.fetched_at is None
    assert empty.expired is True

    await cache.get_all()
    clock.advance(60)
    status = cache.status()
    assert status.item_count == 2
    assert status.age_seconds == 60
    assert status.expired is False
    assert status.last_source == CacheSource.NETWORK

    clock.advance(TTL)
    assert cache.status().expired is True


@pytest.mark.asyncio
async def test_fetch_after_invalidate_waits_for_running_fetch():
    store = MemoryStore()
    fresh = [{"id": "c", "name": "Gamma Lanes"}]
    fetcher = OverlapFetcher([VENUES, fresh])
    cache = make_cache(fetcher, store)

    first = asyncio.create_task(cache.get_all())
    await settle()
    cache.invalidate()
    second = asyncio.create_task(cache.get_all())
    await settle()

    # The new fetch is queued behind the running one
    assert fetcher.calls == 1
    assert cache.status().fetching is True

    fetcher.gate.set()
    assert await first == VENUES
    assert await second == fresh

    assert fetcher.calls == 2
    assert fetcher.max_active == 1
    assert cache.status().item_count == 1
    assert json.loads(store.data[KEY])["venues"] == fresh


@pytest.mark.asyncio
async def test_get_all_with_source_names_tier_of_each_call():
    clock = FakeClock()
    fetcher = AsyncMock(side_effect=[VENUES, ConnectionError("down")])
    cache = make_cache(fetcher, clock=clock)

    assert await cache.get_all_with_source() == (VENUES, CacheSource.NETWORK)
    assert await cache.get_all_with_source() == (VENUES, CacheSource.MEMORY)

    clock.advance(TTL + 1)
    assert await cache.get_all_with_source() == (VENUES, CacheSource.STALE_MEMORY)


@pytest.mark.asyncio
async def test_eight_hour_ttl_scenario():
    hour = 60 * 60
    clock = FakeClock()
    start = clock.now
    v1 = [{"id": f"v1-{i}"} for i in range(10)]
    v2 = [{"id": f"v2-{i}"} for i in range(12)]
    fetcher = AsyncMock(side_effect=[v1, ConnectionError("backend down"), v2])
    cache = make_cache(fetcher, clock=clock)

    # t=0: nothing cached, one fetch
    assert await cache.get_all() == v1
    assert fetcher.await_count == 1

    # t=1h: served from memory
    clock.now = start + hour
    assert await cache.get_all() == v1
    assert fetcher.await_count == 1

    # t=9h: expired, the fetch fails, stale V1 is served
    clock.now = start + 9 * hour
    assert await cache.get_all() == v1
    assert fetcher.await_count == 2
    assert cache.last_source == CacheSource.STALE_MEMORY

    # t=9h+1s: invalidate, then a successful fetch of V2
    clock.now = start + 9 * hour + 1
    cache.invalidate()
    result = await cache.get_all()

    assert result == v2
    assert len(result) == 12
    assert fetcher.await_count == 3
    assert cache.fetched_at == start + 9 * hour + 1
