"""
FII Screener Tool: Cache & Dedup Store

Process-lifetime TTL cache with per-key request coalescing:
- At most one loader runs per key; concurrent callers share its result
- Successful loads are stored with an absolute expiry (monotonic clock)
- Failures propagate to every waiter and are never cached

The store is the only shared mutable state in the screener. It is an
explicit instance handed to the repository and the benchmark client.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from fii_screener.schemas.instrument_output import normalize_identifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CacheEntry:
    """Cached value + absolute expiry on the store's clock."""
    value: Any
    expires_at: float


@dataclass
class _Flight:
    task: asyncio.Task
    waiters: int = 0


def cache_key(namespace: str, identifier: str) -> str:
    """``cache_key("detail", " hglg11")`` -> ``"detail:HGLG11"``."""
    return f"{namespace}:{normalize_identifier(identifier)}"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class CacheStore:
    """
    TTL cache with singleflight loading.

    Check-and-insert of the in-flight map happens without an intervening
    await, so no lock is needed and nothing is held while a loader runs.
    Unrelated keys load concurrently.

    Args:
        clock: Monotonic time source in seconds. Injected by tests.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, _Flight] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.peek(key) is not None

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or None if missing/expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            return None
        return entry

    def inflight_count(self) -> int:
        return len(self._inflight)

    async def get_or_load(
        self,
        key: str,
        ttl: float,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for *key*, loading it at most once.

        Concurrent callers for the same key await one shared task. A caller
        being cancelled does not cancel the shared load while other callers
        still wait on it; the last remaining caller's cancellation does.

        Raises:
            Whatever *loader* raises, to every waiter of that load.
        """
        entry = self.peek(key)
        if entry is not None:
            logger.debug(f"[Cache] hit {key}")
            return entry.value

        flight = self._inflight.get(key)
        if flight is None or flight.task.done():
            logger.debug(f"[Cache] miss {key}; starting load")
            task = asyncio.ensure_future(self._load(key, ttl, loader))
            flight = _Flight(task=task)
            self._inflight[key] = flight
            task.add_done_callback(functools.partial(self._settle, key))
        else:
            logger.debug(f"[Cache] joining in-flight load for {key}")

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                logger.debug(f"[Cache] last waiter cancelled; cancelling load {key}")
                # Late callers must start a fresh load, not join this one.
                if self._inflight.get(key) is flight:
                    del self._inflight[key]
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    async def _load(
        self,
        key: str,
        ttl: float,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        value = await loader()
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        logger.debug(f"[Cache] stored {key} (ttl={ttl:.0f}s)")
        return value

    def _settle(self, key: str, task: asyncio.Task) -> None:
        # A newer flight may already own the key.
        flight = self._inflight.get(key)
        if flight is not None and flight.task is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"[Cache] load failed for {key}: {task.exception()!r}")

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if something was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry. In-flight loads are left to settle."""
        self._entries.clear()
