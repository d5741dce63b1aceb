from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class ConcurrencyController:
    """Bounds the number of page tasks in flight on one event loop.

    A task waits on the condition until a slot is free, runs, then releases
    the slot and wakes the waiters."""

    def __init__(self, limit: int) -> None:
        self._cv = asyncio.Condition()
        self._limit = max(1, int(limit))
        self._active = 0
        self._peak_active = 0

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once a slot is available."""
        async with self._cv:
            while self._active >= self._limit:
                await self._cv.wait()
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
        try:
            return await fn()
        finally:
            async with self._cv:
                self._active = max(0, self._active - 1)
                self._cv.notify_all()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        return self._active

    @property
    def peak_active(self) -> int:
        return self._peak_active
