"""
Cache & Dedup Store — Singleflight and TTL Tests
Level 1: In-process asyncio tests, no network.

Tests key normalization, TTL expiry on an injected clock, request
coalescing, failure propagation without negative caching, and
cancellation of shared loads.
"""

from __future__ import annotations

import asyncio

import pytest

from fii_screener.tools.cache_store import CacheStore, cache_key


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def _drain(n: int = 5) -> None:
    for _ in range(n):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# TestCacheKey
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestCacheKey:

    def test_namespace_and_normalized_identifier(self):
        assert cache_key("detail", " hglg11 ") == "detail:HGLG11"

    def test_case_variants_share_key(self):
        assert cache_key("instrument", "knri11") == cache_key("instrument", "KNRI11")


# ---------------------------------------------------------------------------
# TestTtl
# ---------------------------------------------------------------------------

@pytest.mark.behavior
class TestTtl:

    @pytest.mark.asyncio
    async def test_hit_before_expiry(self):
        """A stored value is served without calling the loader again."""
        clock = FakeClock()
        cache = CacheStore(clock=clock)
        calls = []

        async def loader():
            calls.append(1)
            return "v"

        assert await cache.get_or_load("k", 10, loader) == "v"
        clock.now = 9.99
        assert await cache.get_or_load("k", 10, loader) == "v"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_reloads(self):
        """At the expiry instant the entry is gone and the loader runs again."""
        clock = FakeClock()
        cache = CacheStore(clock=clock)
        values = iter(["first", "second"])

        async def loader():
            return next(values)

        assert await cache.get_or_load("k", 10, loader) == "first"
        clock.now = 10.0
        assert "k" not in cache
        assert await cache.get_or_load("k", 10, loader) == "second"

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self):
        cache = CacheStore()

        async def loader():
            return 1

        await cache.get_or_load("a", 60, loader)
        await cache.get_or_load("b", 60, loader)
        assert len(cache) == 2
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.clear()
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# TestSingleflight
# ---------------------------------------------------------------------------

@pytest.mark.behavior
class TestSingleflight:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self):
        """N concurrent callers for one key trigger exactly one loader run."""
        cache = CacheStore()
        calls = []

        async def loader():
            calls.append(1)
            await asyncio.sleep(0.01)
            return {"rate": 10.5}

        results = await asyncio.gather(
            *(cache.get_or_load("k", 60, loader) for _ in range(10))
        )
        assert len(calls) == 1
        assert all(r == {"rate": 10.5} for r in results)
        assert cache.inflight_count() == 0

    @pytest.mark.asyncio
    async def test_unrelated_keys_load_concurrently(self):
        """A slow load for one key does not block another key."""
        cache = CacheStore()
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "slow"

        async def fast():
            return "fast"

        slow_task = asyncio.create_task(cache.get_or_load("a", 60, slow))
        await _drain()
        assert await asyncio.wait_for(cache.get_or_load("b", 60, fast), 1) == "fast"
        assert not slow_task.done()
        release.set()
        assert await slow_task == "slow"

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self):
        cache = CacheStore()
        calls = []

        async def loader():
            calls.append(1)
            await asyncio.sleep(0.01)
            raise ValueError("boom")

        results = await asyncio.gather(
            *(cache.get_or_load("k", 60, loader) for _ in range(3)),
            return_exceptions=True,
        )
        assert len(calls) == 1
        assert all(isinstance(r, ValueError) for r in results)

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        """The next call after a failed load starts a fresh load."""
        cache = CacheStore()
        outcomes = [ValueError("boom"), "ok"]

        async def loader():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        with pytest.raises(ValueError):
            await cache.get_or_load("k", 60, loader)
        assert "k" not in cache
        assert await cache.get_or_load("k", 60, loader) == "ok"


# ---------------------------------------------------------------------------
# TestCancellation
# ---------------------------------------------------------------------------

@pytest.mark.behavior
class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_load(self):
        cache = CacheStore()
        started = asyncio.Event()
        release = asyncio.Event()

        async def loader():
            started.set()
            await release.wait()
            return 42

        first = asyncio.create_task(cache.get_or_load("k", 60, loader))
        second = asyncio.create_task(cache.get_or_load("k", 60, loader))
        await started.wait()

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        release.set()
        assert await second == 42
        assert "k" in cache

    @pytest.mark.asyncio
    async def test_last_waiter_cancels_load(self):
        """With no waiters left the load is cancelled and nothing is stored."""
        cache = CacheStore()
        started = asyncio.Event()
        loader_cancelled = []

        async def loader():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                loader_cancelled.append(True)
                raise
            return 1

        task = asyncio.create_task(cache.get_or_load("k", 60, loader))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await _drain()
        assert loader_cancelled == [True]
        assert cache.inflight_count() == 0
        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_late_caller_starts_fresh_load(self):
        """A caller arriving while a cancelled load winds down gets its own load."""
        cache = CacheStore()
        started = asyncio.Event()

        async def stuck():
            started.set()
            await asyncio.sleep(10)
            return "stale"

        async def fresh():
            return "fresh"

        task = asyncio.create_task(cache.get_or_load("k", 60, stuck))
        await started.wait()
        task.cancel()
        await asyncio.sleep(0)

        assert await cache.get_or_load("k", 60, fresh) == "fresh"
        with pytest.raises(asyncio.CancelledError):
            await task
        await _drain()
        assert cache.inflight_count() == 0
        assert cache.peek("k").value == "fresh"
