"""
Concurrency primitives for the pipeline.

- ConcurrencyGate: non-blocking admission control in front of inference.
  Callers that cannot enter immediately take the fallback path instead of
  queuing.
- KeyedLock: one asyncio.Lock per key (content hash, job id), created on
  demand and dropped when nobody holds or waits for it.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ConcurrencyGate:
    """Counting gate with try-acquire semantics only."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def try_acquire(self) -> bool:
        """Take a slot if one is free. Never waits."""
        if self._in_flight >= self.limit:
            return False
        self._in_flight += 1
        return True

    def release(self) -> None:
        if self._in_flight == 0:
            raise RuntimeError("release() called without a matching try_acquire()")
        self._in_flight -= 1


class KeyedLock:
    """Mutex per key. Different keys never contend."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
