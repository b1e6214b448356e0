"""Tests for the response cache."""

from __future__ import annotations

import asyncio

import pytest

from errorwise.orchestrator.cache_store import CacheStore, make_cache_key
from errorwise.orchestrator.types import AnalysisResult, Tier


def _result(explanation: str = "cached explanation") -> AnalysisResult:
    return AnalysisResult(explanation=explanation, solution="cached solution", provider_name="primary")


class TestCacheKey:
    def test_deterministic(self):
        a = make_cache_key("TypeError: x", "javascript", "type", Tier.FREE)
        b = make_cache_key("TypeError: x", "javascript", "type", Tier.FREE)
        assert a == b
        assert len(a) == 64

    def test_whitespace_and_case_insensitive(self):
        a = make_cache_key("TypeError:   X is undefined", None, None, Tier.PRO)
        b = make_cache_key("typeerror: x\nis undefined", None, None, Tier.PRO)
        assert a == b

    def test_tier_and_hints_change_key(self):
        base = make_cache_key("TypeError: x", None, None, Tier.FREE)
        assert make_cache_key("TypeError: x", None, None, Tier.PRO) != base
        assert make_cache_key("TypeError: x", "python", None, Tier.FREE) != base
        assert make_cache_key("TypeError: x", None, "type", Tier.FREE) != base

    def test_none_and_empty_hint_equivalent(self):
        assert make_cache_key("TypeError: x", None, None, Tier.FREE) == make_cache_key("TypeError: x", "", " ", Tier.FREE)


class TestCacheStore:
    def test_put_then_get(self, clock):
        cache = CacheStore(ttl=60, clock=clock)
        cache.put("k", _result())
        assert cache.get("k") == _result()

    def test_missing_key(self, clock):
        assert CacheStore(clock=clock).get("nope") is None

    def test_expired_entry_is_dropped_on_get(self, clock):
        cache = CacheStore(ttl=60, clock=clock)
        cache.put("k", _result())
        clock.advance(59)
        assert cache.get("k") is not None
        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_put_is_idempotent_upsert(self, clock):
        cache = CacheStore(clock=clock)
        cache.put("k", _result("first"))
        cache.put("k", _result("second"))
        assert len(cache) == 1
        assert cache.get("k").explanation == "second"

    def test_overwrite_refreshes_expiry(self, clock):
        cache = CacheStore(ttl=60, clock=clock)
        cache.put("k", _result())
        clock.advance(50)
        cache.put("k", _result())
        clock.advance(50)
        assert cache.get("k") is not None

    def test_per_entry_ttl(self, clock):
        cache = CacheStore(ttl=60, clock=clock)
        cache.put("short", _result(), ttl=5)
        cache.put("long", _result())
        clock.advance(10)
        assert cache.get("short") is None
        assert cache.get("long") is not None

    def test_max_entries_evicts_oldest(self, clock):
        cache = CacheStore(max_entries=2, clock=clock)
        cache.put("a", _result())
        cache.put("b", _result())
        cache.put("c", _result())
        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.get("c") is not None
        assert cache.stats()["evictions"] == 1

    def test_sweep_removes_only_expired(self, clock):
        cache = CacheStore(ttl=60, clock=clock)
        for key in ("a", "b", "c"):
            cache.put(key, _result())
        clock.advance(61)
        cache.put("fresh", _result())

        assert cache.sweep() == 3
        assert len(cache) == 1
        assert cache.get("fresh") is not None

    def test_sweep_bounds_memory_without_lookups(self, clock):
        cache = CacheStore(ttl=1, clock=clock)
        for i in range(100):
            cache.put(f"key-{i}", _result())
        clock.advance(2)
        cache.sweep()
        assert len(cache) == 0

    def test_clear(self, clock):
        cache = CacheStore(clock=clock)
        cache.put("a", _result())
        cache.put("b", _result())
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_stats(self, clock):
        cache = CacheStore(clock=clock)
        cache.put("a", _result())
        cache.get("a")
        cache.get("missing")
        stats = cache.stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["sweeper_running"] is False


class TestSweeper:
    @pytest.mark.asyncio
    async def test_background_sweep_removes_expired_entries(self, clock):
        cache = CacheStore(ttl=1, clock=clock)
        cache.put("a", _result())
        cache.put("b", _result())
        clock.advance(5)

        cache.start_sweeper(interval=0.01)
        try:
            await asyncio.sleep(0.05)
            assert len(cache) == 0
        finally:
            await cache.stop_sweeper()

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_cancels(self, clock):
        cache = CacheStore(clock=clock)
        first = cache.start_sweeper(interval=10)
        second = cache.start_sweeper(interval=10)
        assert first is second
        assert cache.sweeper_running

        await cache.stop_sweeper()
        assert not cache.sweeper_running
        assert first.cancelled()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, clock):
        await CacheStore(clock=clock).stop_sweeper()
