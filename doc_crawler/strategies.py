from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, List

from .base import Fetcher, PagePipeline
from .context import CrawlJob
from .events import CrawlEvent
from .fetcher import PageFetcher
from .formatter import PAGE_SEPARATOR, assemble, render_page
from .models import CrawlResult, CrawlStatistics, PageResult, StrategyName
from .scheduler import StreamingScheduler
from .storage import JsonlPageLog

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_fetcher(job: CrawlJob, configured: bool) -> AsyncIterator[Fetcher]:
    """Yield the job's injected fetcher, or open (and later close) a PageFetcher."""
    if job.fetcher is not None:
        yield job.fetcher
        return
    fetcher = PageFetcher.configured(job.config) if configured else PageFetcher.plain(job.config)
    async with fetcher:
        yield fetcher


def build_result(job: CrawlJob, output_file: str) -> CrawlResult:
    ctx = job.context
    metrics = ctx.metrics.finalize()
    statistics = CrawlStatistics(
        total_pages=metrics.total_pages,
        successful_pages=metrics.successful_pages,
        failed_pages=metrics.failed_pages,
        processing_secs=metrics.elapsed_secs,
        avg_page_size=metrics.average_page_size,
        total_size=metrics.total_bytes,
    )
    warnings: List[str] = []
    if metrics.failed_pages:
        warnings.append(f"{metrics.failed_pages} page(s) failed to process")
    if metrics.skipped_pages:
        warnings.append(f"{metrics.skipped_pages} duplicate URL(s) skipped")
    if ctx.aborted:
        warnings.append("Crawl stopped after the first page error")
    return CrawlResult(
        success=metrics.successful_pages > 0,
        strategy=job.strategy,
        output_file=output_file,
        statistics=statistics,
        analysis=job.analysis,
        confidence=job.confidence,
        errors=list(ctx.errors),
        warnings=warnings,
        error_distribution=dict(metrics.error_distribution),
        reasoning=list(job.reasoning),
        metrics=metrics,
    )


class CrawlStrategy(ABC):
    """Abstract base class for crawl strategies.

    A strategy takes a prepared CrawlJob, turns its discovered URLs into
    page results and writes the assembled document to the job's sink."""

    name: StrategyName

    @abstractmethod
    async def execute(self, job: CrawlJob) -> CrawlResult:
        """Crawl every page of ``job`` and return the summarized result."""
        raise NotImplementedError


class SequentialStrategy(CrawlStrategy):
    """Fetches pages one at a time in discovery order, then writes one document."""

    configured_fetcher = False

    async def execute(self, job: CrawlJob) -> CrawlResult:
        urls = job.urls
        job.context.metrics.start(len(urls))
        logger.info("Crawling %d page(s) from %s with the %s strategy", len(urls), job.url, self.name.value)
        async with open_fetcher(job, self.configured_fetcher) as fetcher:
            pipeline = PagePipeline(fetcher, job.content_selector, job.exclude_selectors)
            results = await self.crawl_pages(job, pipeline, urls)
        path = job.sink.write(job.config.output.output_file, self.render(job, results))
        return build_result(job, path)

    async def crawl_pages(self, job: CrawlJob, pipeline: PagePipeline, urls) -> List[PageResult]:
        ctx = job.context
        results: List[PageResult] = []
        for url in urls:
            if not ctx.mark_seen(url):
                result = PageResult.duplicate(url)
                ctx.metrics.record(result)
                results.append(result)
                continue
            result = await pipeline.run(url)
            ctx.metrics.record(result)
            results.append(result)
            if result.success:
                ctx.events.emit(
                    CrawlEvent.PAGE_PROCESSED,
                    url=url,
                    status=result.status.value,
                    processing_time=result.processing_ms,
                    page_size=result.size,
                )
                continue
            ctx.errors.append(f"{url}: {result.error}")
            ctx.events.emit(CrawlEvent.PAGE_ERROR, url=url, error=result.error, category=result.error_category)
            if not job.config.continue_on_error:
                ctx.abort()
                break
        return results

    def render(self, job: CrawlJob, results: List[PageResult]) -> str:
        return assemble(results, job.config.output, toc=job.config.output.include_toc)


class BasicStrategy(SequentialStrategy):
    name = StrategyName.BASIC


class ConfigurableStrategy(SequentialStrategy):
    """Like basic, but through a fetcher honouring proxy, headers, retry and rate limits."""

    name = StrategyName.CONFIGURABLE
    configured_fetcher = True


class FormatStrategy(SequentialStrategy):
    """Basic crawl, assembled with per-page metadata blocks, a document TOC and
    collection statistics (word counts and reading time)."""

    name = StrategyName.FORMAT

    def render(self, job: CrawlJob, results: List[PageResult]) -> str:
        output = replace(job.config.output, include_toc=True, include_metadata=True)
        return assemble(results, output, toc=True, stats=True)


class PerformanceStrategy(CrawlStrategy):
    """Streams pages through the StreamingScheduler.

    Each flushed batch is appended to the output file as it arrives, so the
    assembled document never has to sit in memory as a whole."""

    name = StrategyName.PERFORMANCE

    async def execute(self, job: CrawlJob) -> CrawlResult:
        urls = job.urls
        ctx = job.context
        output = job.config.output
        ctx.metrics.start(len(urls))
        path = job.sink.write(output.output_file, "")
        page_log = JsonlPageLog(output.page_log) if output.page_log else None
        written = 0

        def on_flush(batch: List[PageResult]) -> None:
            nonlocal written
            if page_log is not None:
                page_log.write_batch(batch)
            rendered = [render_page(p, output) for p in batch if p.success and p.content]
            if not rendered:
                return
            prefix = PAGE_SEPARATOR if written else ""
            job.sink.append(output.output_file, prefix + PAGE_SEPARATOR.join(rendered))
            written += len(rendered)

        logger.info("Streaming %d page(s) from %s in chunks of %d", len(urls), job.url, job.config.streaming.chunk_size)
        async with open_fetcher(job, configured=True) as fetcher:
            pipeline = PagePipeline(fetcher, job.content_selector, job.exclude_selectors)
            scheduler = StreamingScheduler(pipeline, ctx, on_flush=on_flush, memory_sampler=job.memory_sampler)
            async for _ in scheduler.stream(urls):
                pass
        logger.info("Wrote %d page(s) in %d flush(es) to %s", written, scheduler.flush_count, path)
        return build_result(job, path)

