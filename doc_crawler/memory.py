from __future__ import annotations

import asyncio
import gc
import logging
from typing import Callable, Optional

import psutil

from .config import StreamingConfig
from .events import CrawlEvent, EventDispatcher
from .metrics import MetricsCollector

logger = logging.getLogger(__name__)


def process_memory_mb() -> float:
    """Resident set size of the current process in megabytes."""
    return psutil.Process().memory_info().rss / 1024 / 1024


class MemoryMonitor:
    """Samples process memory for one crawl job.

    ``check()`` takes a sample, records it in the job metrics and reports
    whether usage is above the backpressure watermark. ``start()`` runs
    ``check()`` on a fixed interval as a background task and calls
    ``on_pressure`` whenever the watermark is crossed."""

    def __init__(
        self,
        options: StreamingConfig,
        metrics: MetricsCollector,
        events: Optional[EventDispatcher] = None,
        sampler: Callable[[], float] = process_memory_mb,
        on_pressure: Optional[Callable[[], None]] = None,
        reclaim: Callable[[], int] = gc.collect,
    ) -> None:
        self._options = options
        self._metrics = metrics
        self._events = events
        self._sampler = sampler
        self._on_pressure = on_pressure
        self._reclaim = reclaim
        self._task: Optional[asyncio.Task] = None
        self.last_sample = 0.0

    @property
    def warning_mb(self) -> float:
        return self._options.memory_budget_mb * self._options.backpressure_threshold

    @property
    def reclaim_mb(self) -> float:
        return self._options.memory_budget_mb * self._options.reclaim_threshold

    def check(self) -> bool:
        current = self._sampler()
        self.last_sample = current
        self._metrics.record_memory(current)
        if current <= self.warning_mb:
            return False
        logger.warning(
            "Memory usage %.1f MB above %.1f MB watermark (budget %.1f MB)",
            current,
            self.warning_mb,
            self._options.memory_budget_mb,
        )
        if self._events is not None:
            self._events.emit(CrawlEvent.MEMORY_WARNING, current=current, limit=self._options.memory_budget_mb)
        if current > self.reclaim_mb:
            self._reclaim()
        return True

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._poll())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._options.sample_interval)
            if self.check() and self._on_pressure is not None:
                self._on_pressure()
