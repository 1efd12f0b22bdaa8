"""Compute-once caches.

OnceCache       -- synchronous compute-if-absent keyed map.
AsyncOnceCache  -- awaitable compute-if-absent keyed map; concurrent callers
                   for the same key share one computation, success or failure.
AsyncLazy       -- a single awaitable value computed at most once.

All three are meant for use from one event loop.  OnceCache factories run
without suspending, so two coroutines can never interleave inside one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def _consume_result(future: asyncio.Future[object]) -> None:
    # Mark the outcome as retrieved even when every waiter was cancelled.
    if not future.cancelled():
        future.exception()


class OnceCache(Generic[K, V]):
    """Map where each key's value is computed at most once."""

    def __init__(self) -> None:
        self._entries: dict[K, V] = {}
        self.computations = 0

    def get_or_compute(self, key: K, factory: Callable[[], V]) -> V:
        if key in self._entries:
            return self._entries[key]
        value = factory()
        self.computations += 1
        return self._entries.setdefault(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class AsyncOnceCache(Generic[K, V]):
    """Map where each key's value is awaited from a single shared computation.

    A failed computation stays cached: every later caller for that key gets
    the same exception.  Cancelling one waiter does not cancel the shared
    computation.  Use ``cancel_pending`` to stop them at shutdown.
    """

    def __init__(self) -> None:
        self._futures: dict[K, asyncio.Future[V]] = {}
        self.computations = 0

    async def get_or_compute(self, key: K, factory: Callable[[], Awaitable[V]]) -> V:
        future = self._futures.get(key)
        if future is None:
            future = asyncio.ensure_future(factory())
            future.add_done_callback(_consume_result)
            self._futures[key] = future
            self.computations += 1
        return await asyncio.shield(future)

    def cancel_pending(self) -> int:
        """Cancel every computation still running; returns how many were cancelled.

        Cancelled keys stay cached, so later callers get CancelledError.
        """
        pending = [future for future in self._futures.values() if not future.done()]
        for future in pending:
            future.cancel()
        return len(pending)

    def __contains__(self, key: object) -> bool:
        return key in self._futures

    def __len__(self) -> int:
        return len(self._futures)


class AsyncLazy(Generic[V]):
    """A value produced by *factory* the first time it is awaited."""

    def __init__(self, factory: Callable[[], Awaitable[V]]) -> None:
        self._factory = factory
        self._cache: AsyncOnceCache[None, V] = AsyncOnceCache()

    async def get(self) -> V:
        return await self._cache.get_or_compute(None, self._factory)

    @property
    def computations(self) -> int:
        return self._cache.computations
