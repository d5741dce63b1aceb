from __future__ import annotations

import asyncio
import time


class AsyncRateLimiter:
    """Requests-per-second limiter for coroutines sharing one event loop.

    Calling acquire() suspends the caller until the next request is allowed,
    ensuring the crawl does not exceed the configured rate."""

    def __init__(self, qps: float) -> None:
        self._interval = 1.0 / qps if qps > 0 else 0.0
        self._lock = asyncio.Lock()
        self._next_allowed = 0.0

    async def acquire(self) -> None:
        """Wait until the next request is permitted under the QPS limit."""
        if self._interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            if now < self._next_allowed:
                await asyncio.sleep(self._next_allowed - now)
                now = self._next_allowed
            self._next_allowed = now + self._interval
