"""In-memory TTL cache shared by the fetcher, aggregator and refresh loop."""
from __future__ import annotations

import asyncio
import math
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any, NamedTuple

from cachetools import TLRUCache


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _entry_expiry(_key: str, entry: _Entry, now: float) -> float:
    # TLRUCache drops an item once timer() >= expiry; an entry must still be
    # served at exactly now + ttl.
    return math.nextafter(now + entry.ttl, math.inf)


class CacheLayer:
    """Thread-safe key/value store with a per-entry TTL.

    Wraps ``cachetools.TLRUCache`` so each entry carries its own lifetime
    (60 s trader snapshots next to 300 s closed-position lists).  Expired
    entries are purged lazily on the next read; there is no sweeper.
    ``maxsize=None`` leaves the cache unbounded.
    """

    def __init__(
        self,
        maxsize: int | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=maxsize if maxsize else math.inf,
            ttu=_entry_expiry,
            timer=timer,
        )
        self._lock = threading.Lock()
        self._pending: dict[str, asyncio.Future[Any]] = {}

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)

    def get(self, key: str) -> Any | None:
        """Return cached value or ``None`` on miss."""
        with self._lock:
            self._cache.expire()
            entry = self._cache.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store *value* for *ttl* seconds, replacing any existing entry."""
        with self._lock:
            self._cache[key] = _Entry(value, ttl)

    def invalidate(self, key: str) -> None:
        """Remove a specific key from the cache."""
        with self._lock:
            self._cache.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        """Remove all keys starting with *prefix*."""
        with self._lock:
            keys_to_remove = [k for k in self._cache if k.startswith(prefix)]
            for k in keys_to_remove:
                del self._cache[k]

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: float,
    ) -> Any:
        """Get from cache or call *fetch_fn*, coalescing concurrent requests for the same key.

        A failed fetch writes nothing; the exception reaches every caller
        waiting on the same key.  When the leading caller is cancelled, the
        waiters are not: the next one in line runs the fetch itself.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        pending = self._pending.get(key)
        if pending is not None:
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
            # The leading caller was cancelled; fetch on our own.
            return await self.get_or_fetch(key, fetch_fn, ttl)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            result = await fetch_fn()
            self.set(key, result, ttl)
            future.set_result(result)
            return result
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a future nobody else awaited does not warn at GC.
            future.exception()
            raise
        finally:
            self._pending.pop(key, None)
