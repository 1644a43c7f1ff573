"""Tests for the response cache, key derivation and TTL classification."""

from typing import Any, List

import anyio
import pytest

from orderproxy.application.cache import (
    CacheStatistics,
    ResponseCache,
    build_cache_key,
    classify,
    ttl_for,
)
from orderproxy.application.cache.keys import describe_ttls
from orderproxy.constants import CACHE_TTL_SECONDS
from orderproxy.enums import CacheClass


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(max_age_seconds=3600, sweep_interval_seconds=600, clock=clock)


class TestCacheKeys:
    def test_key_without_body_uses_sentinel(self) -> None:
        assert build_cache_key("/locations", None) == "/locations:no_body"

    def test_key_includes_exact_body(self) -> None:
        body = '{"object_types":["ITEM"]}'
        assert build_cache_key("/catalog/search", body) == f"/catalog/search:{body}"

    def test_different_bodies_produce_different_keys(self) -> None:
        assert build_cache_key("/catalog/search", '{"a":1}') != build_cache_key(
            "/catalog/search", '{"a":2}'
        )

    def test_locations_endpoint_classified_as_locations(self) -> None:
        assert classify("/locations", None) == CacheClass.LOCATIONS

    @pytest.mark.parametrize(
        "object_type, expected",
        [
            ("ITEM", CacheClass.PRODUCTS),
            ("CATEGORY", CacheClass.CATEGORIES),
            ("MODIFIER_LIST", CacheClass.MODIFIERS),
            ("DISCOUNT", CacheClass.DISCOUNTS),
            ("MEASUREMENT_UNIT", CacheClass.DEFAULT),
        ],
    )
    def test_catalog_search_classified_by_object_type(
        self, object_type: str, expected: CacheClass
    ) -> None:
        body = f'{{"object_types":["{object_type}"]}}'
        assert classify("/catalog/search", body) == expected

    def test_first_marker_wins_when_body_mentions_several(self) -> None:
        body = '{"object_types":["CATEGORY","ITEM"]}'
        assert classify("/catalog/search", body) == CacheClass.PRODUCTS

    def test_catalog_search_without_body_is_default(self) -> None:
        assert classify("/catalog/search", None) == CacheClass.DEFAULT

    def test_other_endpoints_are_default(self) -> None:
        assert classify("/catalog/list?types=CATEGORY", None) == CacheClass.DEFAULT

    def test_ttl_for_uses_class_table(self) -> None:
        assert ttl_for(CacheClass.DISCOUNTS) == 15 * 60
        assert ttl_for(CacheClass.CATEGORIES) == 60 * 60
        assert ttl_for(CacheClass.DEFAULT) == 5 * 60

    def test_ttl_for_falls_back_to_default_entry(self) -> None:
        ttls = {CacheClass.DEFAULT: 42}
        assert ttl_for(CacheClass.PRODUCTS, ttls) == 42

    def test_describe_ttls(self) -> None:
        described = describe_ttls()
        assert described["products"] == CACHE_TTL_SECONDS[CacheClass.PRODUCTS]
        assert len(described) == len(CACHE_TTL_SECONDS)


class TestResponseCache:
    def test_get_returns_fresh_entry(self, cache: ResponseCache, clock: FakeClock) -> None:
        cache.set("k", {"v": 1})
        clock.advance(59)
        assert cache.get("k", 60) == {"v": 1}

    def test_entry_at_exact_ttl_is_a_miss(
        self, cache: ResponseCache, clock: FakeClock
    ) -> None:
        cache.set("k", {"v": 1})
        clock.advance(60)
        assert cache.get("k", 60) is None
        # Stale entries stay until the sweep removes them
        assert "k" in cache

    def test_freshness_depends_on_caller_ttl(
        self, cache: ResponseCache, clock: FakeClock
    ) -> None:
        cache.set("k", "data")
        clock.advance(120)
        assert cache.get("k", 60) is None
        assert cache.get("k", 300) == "data"

    def test_statistics_track_hits_and_misses(self, cache: ResponseCache) -> None:
        cache.get("missing", 60)
        cache.set("k", 1)
        cache.get("k", 60)
        stats = cache.get_stats()
        assert stats["cache_hits"] == 1
        assert stats["cache_misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["size"] == 1

    def test_delete(self, cache: ResponseCache) -> None:
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.peek("k") is None

    def test_clear_resets_entries_and_statistics(self, cache: ResponseCache) -> None:
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a", 60)
        assert cache.clear() == 2
        assert len(cache) == 0
        assert cache.get_stats()["cache_hits"] == 0

    def test_sweep_removes_only_entries_past_max_age(
        self, cache: ResponseCache, clock: FakeClock
    ) -> None:
        cache.set("old", 1)
        clock.advance(3000)
        cache.set("young", 2)
        clock.advance(601)
        assert cache.sweep() == 1
        assert "old" not in cache
        assert "young" in cache
        stats = cache.get_stats()
        assert stats["evictions"] == 1
        assert stats["sweeps"] == 1

    @pytest.mark.anyio
    async def test_get_or_fetch_caches_result(self, cache: ResponseCache) -> None:
        calls: List[int] = []

        async def fetch() -> Any:
            calls.append(1)
            return {"objects": []}

        first = await cache.get_or_fetch("k", 60, fetch)
        second = await cache.get_or_fetch("k", 60, fetch)
        assert first == second == {"objects": []}
        assert len(calls) == 1
        assert cache.get_stats()["upstream_fetches"] == 1

    @pytest.mark.anyio
    async def test_get_or_fetch_refetches_after_ttl(
        self, cache: ResponseCache, clock: FakeClock
    ) -> None:
        values = iter(["first", "second"])

        async def fetch() -> Any:
            return next(values)

        assert await cache.get_or_fetch("k", 60, fetch) == "first"
        clock.advance(61)
        assert await cache.get_or_fetch("k", 60, fetch) == "second"

    @pytest.mark.anyio
    async def test_get_or_fetch_does_not_cache_failures(
        self, cache: ResponseCache
    ) -> None:
        async def failing() -> Any:
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("k", 60, failing)
        assert cache.peek("k") is None

    @pytest.mark.anyio
    async def test_failed_fetches_leave_no_key_locks(
        self, cache: ResponseCache
    ) -> None:
        async def failing() -> Any:
            raise RuntimeError("upstream down")

        for i in range(100):
            with pytest.raises(RuntimeError):
                await cache.get_or_fetch(f"k{i}", 60, failing)
        assert cache._key_locks == {}

    @pytest.mark.anyio
    async def test_sweep_drops_locks_without_entries(
        self, cache: ResponseCache, clock: FakeClock
    ) -> None:
        async def fetch() -> Any:
            return "payload"

        await cache.get_or_fetch("kept", 60, fetch)
        cache._key_locks["orphan"] = anyio.Lock()
        cache.sweep()
        assert set(cache._key_locks) == {"kept"}

        clock.advance(3601)
        cache.sweep()
        assert cache._key_locks == {}

    @pytest.mark.anyio
    async def test_concurrent_misses_are_coalesced(self, cache: ResponseCache) -> None:
        calls: List[int] = []
        results: List[Any] = []

        async def slow_fetch() -> Any:
            calls.append(1)
            await anyio.sleep(0.05)
            return "payload"

        async def worker() -> None:
            results.append(await cache.get_or_fetch("k", 60, slow_fetch))

        async with anyio.create_task_group() as tg:
            for _ in range(5):
                tg.start_soon(worker)

        assert results == ["payload"] * 5
        assert len(calls) == 1

    @pytest.mark.anyio
    async def test_run_sweeper_sweeps_until_cancelled(self, clock: FakeClock) -> None:
        cache = ResponseCache(
            max_age_seconds=10, sweep_interval_seconds=0.01, clock=clock
        )
        cache.set("old", 1)
        clock.advance(11)

        with anyio.move_on_after(0.2):
            await cache.run_sweeper()

        assert "old" not in cache
        assert cache.get_stats()["sweeps"] >= 1


class TestCacheStatistics:
    def test_hit_rate_without_lookups_is_zero(self) -> None:
        assert CacheStatistics().hit_rate == 0.0

    def test_reset(self) -> None:
        stats = CacheStatistics()
        stats.record_hit()
        stats.record_fetch()
        stats.record_eviction(3)
        stats.reset()
        snapshot = stats.get_stats()
        assert snapshot["cache_hits"] == 0
        assert snapshot["upstream_fetches"] == 0
        assert snapshot["evictions"] == 0
