from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator, Callable, Iterable, List, Optional, Sequence

from .base import PagePipeline
from .context import JobContext
from .controller import ConcurrencyController
from .errors import CrawlerError
from .events import CrawlEvent
from .memory import MemoryMonitor, process_memory_mb
from .models import PageResult, PageState, PageTask
from .prioritizer import UrlPrioritizer

logger = logging.getLogger(__name__)

FlushHandler = Callable[[List[PageResult]], None]


def chunked(tasks: Sequence[PageTask], size: int) -> List[List[PageTask]]:
    size = max(1, int(size))
    return [list(tasks[i:i + size]) for i in range(0, len(tasks), size)]


class StreamingScheduler:
    """Runs prioritized pages in fixed-size chunks under bounded memory and concurrency.

    Chunks run strictly one after another in priority order; inside a chunk
    up to ``concurrency_limit`` pages are in flight. Completed results are
    yielded as they arrive and also collected in the job buffer, which is
    handed to ``on_flush`` whenever it reaches the batch size or memory
    crosses the backpressure watermark. Page failures come back as failed
    results; only a failing flush handler (the output sink) stops the run.
    """

    def __init__(
        self,
        pipeline: PagePipeline,
        context: JobContext,
        on_flush: Optional[FlushHandler] = None,
        prioritizer: Optional[UrlPrioritizer] = None,
        concurrency_limit: Optional[int] = None,
        chunk_size: Optional[int] = None,
        memory_sampler: Callable[[], float] = process_memory_mb,
    ) -> None:
        options = context.config.streaming
        self._pipeline = pipeline
        self._context = context
        self._on_flush = on_flush
        self._prioritizer = prioritizer or UrlPrioritizer()
        self._controller = ConcurrencyController(concurrency_limit or context.config.concurrency)
        self._chunk_size = chunk_size or options.chunk_size
        self._batch_size = options.batch_size
        self._pause = options.backpressure_pause
        self._monitor = MemoryMonitor(
            options,
            context.metrics,
            events=context.events,
            sampler=memory_sampler,
            on_pressure=self._pressure_flush,
        )
        self._flush_error: Optional[CrawlerError] = None
        self.flush_count = 0

    @property
    def controller(self) -> ConcurrencyController:
        return self._controller

    async def run(self, urls: Iterable[str]) -> List[PageResult]:
        return [result async for result in self.stream(urls)]

    async def stream(self, urls: Iterable[str]) -> AsyncIterator[PageResult]:
        ctx = self._context
        tasks = self._prioritizer.prioritize(urls)
        chunks = chunked(tasks, self._chunk_size)
        ctx.events.emit(CrawlEvent.CHUNK_PROCESSING_STARTED, total_chunks=len(chunks), chunk_size=self._chunk_size)

        self._monitor.start()
        try:
            completed = 0
            for index, chunk in enumerate(chunks):
                if ctx.aborted:
                    logger.info("Job aborted; %d chunk(s) not scheduled", len(chunks) - index)
                    break
                ctx.events.emit(CrawlEvent.CHUNK_STARTED, chunk_index=index, chunk_size=len(chunk))

                pending = [asyncio.ensure_future(self._process(task)) for task in chunk]
                try:
                    for fut in asyncio.as_completed(pending):
                        yield await fut
                finally:
                    for fut in pending:
                        if not fut.done():
                            fut.cancel()

                self._raise_flush_error()
                if self._monitor.check():
                    self.flush()
                    await asyncio.sleep(self._pause)
                completed += len(chunk)
                ctx.events.emit(
                    CrawlEvent.CHUNK_COMPLETED,
                    chunk_index=index,
                    completed=completed,
                    total=len(tasks),
                    memory_usage=self._monitor.last_sample,
                )
            self.flush()
        finally:
            await self._monitor.stop()

    async def _process(self, task: PageTask) -> PageResult:
        ctx = self._context
        # Claimed before the first await, so no two tasks ever fetch the same URL.
        if not ctx.mark_seen(task.url):
            result = PageResult.duplicate(task.url)
            ctx.metrics.record(result)
            self._append(result)
            return result

        task.state = PageState.IN_FLIGHT
        result = await self._controller.run(lambda: self._fetch_page(task.url))
        task.state = PageState.DONE if result.success else PageState.FAILED

        ctx.metrics.record(result)
        if result.success:
            ctx.events.emit(
                CrawlEvent.PAGE_PROCESSED,
                url=task.url,
                status=result.status.value,
                processing_time=result.processing_ms,
                page_size=result.size,
            )
        else:
            ctx.errors.append(f"{task.url}: {result.error}")
            ctx.events.emit(CrawlEvent.PAGE_ERROR, url=task.url, error=result.error, category=result.error_category)
            if not ctx.config.continue_on_error:
                ctx.abort()
        self._append(result)

        if self._monitor.check():
            self.flush()
            await asyncio.sleep(self._pause)
        return result

    async def _fetch_page(self, url: str) -> PageResult:
        cache = self._context.cache
        if cache is not None:
            cached = cache.get(url)
            if cached is not None:
                self._context.events.emit(CrawlEvent.PAGE_CACHE_HIT, url=url)
                return PageResult.from_cache_value(cached)

        result = await self._pipeline.run(url)
        if cache is not None and result.success:
            cache.set(url, result.to_cache_value())
        return result

    def _append(self, result: PageResult) -> None:
        self._context.buffer.append(result)
        if len(self._context.buffer) >= self._batch_size:
            self.flush()

    def flush(self) -> int:
        """Hand the buffered results to the flush handler in arrival order."""
        buffer = self._context.buffer
        if not buffer:
            return 0
        batch = list(buffer)
        started = time.perf_counter()
        if self._on_flush is not None:
            self._on_flush(batch)
        # Cleared only once the handler has taken the batch.
        buffer.clear()
        self.flush_count += 1
        self._context.events.emit(
            CrawlEvent.BUFFER_FLUSHED,
            batch_size=len(batch),
            flush_ms=(time.perf_counter() - started) * 1000,
        )
        return len(batch)

    def _pressure_flush(self) -> None:
        try:
            self.flush()
        except CrawlerError as exc:
            self._flush_error = exc

    def _raise_flush_error(self) -> None:
        if self._flush_error is not None:
            error, self._flush_error = self._flush_error, None
            raise error
