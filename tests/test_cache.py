"""Unit tests for the per-entry TTL CacheLayer.

Time is driven by a fake clock so expiry is deterministic.
"""

from __future__ import annotations

import asyncio

import pytest

from tracker.cache import CacheLayer


class TestGetSet:
    def test_miss_returns_none(self, cache: CacheLayer) -> None:
        assert cache.get("trader-0xabc") is None

    def test_hit_before_expiry(self, cache: CacheLayer, clock) -> None:
        cache.set("trader-0xabc", {"found": True}, ttl=60)
        clock.advance(59)
        assert cache.get("trader-0xabc") == {"found": True}

    def test_expired_entry_is_absent_and_evicted(self, cache: CacheLayer, clock) -> None:
        cache.set("trader-0xabc", "snapshot", ttl=60)
        clock.advance(61)
        assert cache.get("trader-0xabc") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, cache: CacheLayer, clock) -> None:
        """A 60 s entry and a 300 s entry expire independently."""
        cache.set("trader-0xabc", "short", ttl=60)
        cache.set("closed-0xabc", "long", ttl=300)

        clock.advance(120)
        assert cache.get("trader-0xabc") is None
        assert cache.get("closed-0xabc") == "long"

        clock.advance(200)
        assert cache.get("closed-0xabc") is None

    def test_entry_served_at_exact_expiry(self, cache: CacheLayer, clock) -> None:
        cache.set("k", "v", ttl=60)
        clock.advance(60)
        assert cache.get("k") == "v"

        clock.advance(0.001)
        assert cache.get("k") is None

    def test_set_overwrites_unconditionally(self, cache: CacheLayer, clock) -> None:
        cache.set("k", "first", ttl=300)
        cache.set("k", "second", ttl=60)
        assert cache.get("k") == "second"

        clock.advance(61)
        # The overwrite also replaced the lifetime.
        assert cache.get("k") is None

    def test_empty_list_is_a_hit(self, cache: CacheLayer) -> None:
        cache.set("closed-0xabc", [], ttl=300)
        assert cache.get("closed-0xabc") == []

    def test_len_counts_live_entries(self, cache: CacheLayer, clock) -> None:
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=100)
        assert len(cache) == 2
        clock.advance(50)
        assert len(cache) == 1

    def test_maxsize_bounds_entries(self, clock) -> None:
        cache = CacheLayer(maxsize=2, timer=clock)
        for key in ("a", "b", "c"):
            cache.set(key, key, ttl=60)
        assert len(cache) == 2


class TestInvalidate:
    def test_invalidate_key(self, cache: CacheLayer) -> None:
        cache.set("trader-0xabc", "x", ttl=60)
        cache.invalidate("trader-0xabc")
        assert cache.get("trader-0xabc") is None

    def test_invalidate_missing_key_is_noop(self, cache: CacheLayer) -> None:
        cache.invalidate("nope")

    def test_invalidate_prefix(self, cache: CacheLayer) -> None:
        cache.set("trader-0xa", 1, ttl=60)
        cache.set("trader-0xb", 2, ttl=60)
        cache.set("closed-0xa", 3, ttl=60)
        cache.invalidate_prefix("trader-")
        assert cache.get("trader-0xa") is None
        assert cache.get("trader-0xb") is None
        assert cache.get("closed-0xa") == 3


class TestGetOrFetch:
    async def test_fetches_on_miss_and_caches(self, cache: CacheLayer) -> None:
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return "value"

        assert await cache.get_or_fetch("k", fetch, ttl=60) == "value"
        assert await cache.get_or_fetch("k", fetch, ttl=60) == "value"
        assert calls == 1

    async def test_concurrent_callers_share_one_fetch(self, cache: CacheLayer) -> None:
        calls = 0
        release = asyncio.Event()

        async def fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        first = asyncio.create_task(cache.get_or_fetch("k", fetch, ttl=60))
        second = asyncio.create_task(cache.get_or_fetch("k", fetch, ttl=60))
        await asyncio.sleep(0)
        release.set()

        assert await asyncio.gather(first, second) == ["value", "value"]
        assert calls == 1

    async def test_failure_caches_nothing_and_reaches_waiters(self, cache: CacheLayer) -> None:
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            raise RuntimeError("upstream down")

        first = asyncio.create_task(cache.get_or_fetch("k", fetch, ttl=60))
        second = asyncio.create_task(cache.get_or_fetch("k", fetch, ttl=60))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)
        assert cache.get("k") is None

    async def test_failure_then_retry_fetches_again(self, cache: CacheLayer) -> None:
        async def broken():
            raise RuntimeError("boom")

        async def working():
            return "ok"

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("k", broken, ttl=60)
        assert await cache.get_or_fetch("k", working, ttl=60) == "ok"

    async def test_cancelled_leader_hands_fetch_to_waiter(self, cache: CacheLayer) -> None:
        never = asyncio.Event()

        async def stuck():
            await never.wait()
            return "leader"

        async def working():
            return "waiter"

        leader = asyncio.create_task(cache.get_or_fetch("k", stuck, ttl=60))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_or_fetch("k", working, ttl=60))
        await asyncio.sleep(0)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader

        assert await waiter == "waiter"
        assert cache.get("k") == "waiter"

    async def test_cancelled_waiter_leaves_leader_running(self, cache: CacheLayer) -> None:
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return "value"

        leader = asyncio.create_task(cache.get_or_fetch("k", fetch, ttl=60))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_or_fetch("k", fetch, ttl=60))
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        release.set()

        assert await leader == "value"
