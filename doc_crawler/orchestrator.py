from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, List, Optional

from .analyzer import SiteAnalyzer
from .base import Fetcher
from .cache import CacheStore
from .config import CrawlConfig
from .context import CrawlJob, JobContext
from .errors import CacheError, ProbeError, SinkError, UnknownStrategyError
from .events import CrawlEvent, EventDispatcher
from .factory import StrategyFactory
from .memory import process_memory_mb
from .metrics import MetricsCollector
from .models import AnalysisRecord, CrawlResult, CrawlStatistics, StrategyName
from .selector import Selection, StrategySelector
from .storage import FileSink, StorageBase

logger = logging.getLogger(__name__)

NO_ANALYSIS_REPORT = "No analysis available. Run analyze() first."


class CrawlOrchestrator:
    """Analyzes a site, picks a strategy for it and runs the crawl.

    - ``analyze`` probes the start page and fills in the recommended strategy.
    - ``crawl`` reuses that analysis (or runs one) and dispatches through
      StrategyFactory; fatal errors come back as a failed CrawlResult.
    - Each crawl gets a fresh JobContext, cleared again when the job ends.
    """

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        events: Optional[EventDispatcher] = None,
        fetcher: Optional[Fetcher] = None,
        sink: Optional[StorageBase] = None,
        factory: Optional[StrategyFactory] = None,
        memory_sampler: Callable[[], float] = process_memory_mb,
    ) -> None:
        self.config = config or CrawlConfig()
        self.events = events or EventDispatcher()
        self._fetcher = fetcher
        self._sink = sink or FileSink(self.config.output.output_dir)
        self._factory = factory or StrategyFactory()
        self._selector = StrategySelector(self.config)
        self._memory_sampler = memory_sampler
        self.analysis: Optional[AnalysisRecord] = None
        self.selection: Optional[Selection] = None
        self.last_result: Optional[CrawlResult] = None
        self._cache: Optional[CacheStore] = None

    async def analyze(self, url: str) -> AnalysisRecord:
        """Probe ``url`` and return its AnalysisRecord with strategy and confidence set."""
        self.events.emit(CrawlEvent.ANALYSIS_STARTED, url=url)
        try:
            analyzer = SiteAnalyzer(self.config, self._fetcher, cache=self._job_cache(), events=self.events)
            record = await analyzer.analyze(url)
        except ProbeError as exc:
            logger.error("Analysis of %s failed: %s", url, exc)
            self.events.emit(CrawlEvent.ANALYSIS_ERROR, url=url, error=str(exc))
            raise

        selection = self._selector.select(record)
        record = replace(record, recommended_strategy=selection.strategy, confidence=selection.confidence)
        self.analysis = record
        self.selection = selection
        self.events.emit(CrawlEvent.URLS_DISCOVERED, url=url, count=record.estimated_pages, urls=list(record.discovered_urls))
        self.events.emit(
            CrawlEvent.ANALYSIS_COMPLETED,
            url=url,
            strategy=selection.strategy.value,
            confidence=selection.confidence,
            estimated_pages=record.estimated_pages,
        )
        return record

    async def crawl(self, url: Optional[str] = None) -> CrawlResult:
        """Crawl ``url`` (or the last analyzed URL) with the recommended strategy."""
        if url is None:
            if self.analysis is None:
                raise ValueError("crawl() needs a url when no analysis has been run")
            url = self.analysis.url

        if self.analysis is None or self.analysis.url != url:
            try:
                await self.analyze(url)
            except ProbeError as exc:
                result = self._failure(StrategyName.BASIC, None, [str(exc)], [])
                self.last_result = result
                return result

        record = self.analysis
        selection = self.selection
        job = CrawlJob(
            url=url,
            analysis=record,
            strategy=selection.strategy,
            context=self._new_context(),
            sink=self._sink,
            confidence=selection.confidence,
            reasoning=list(selection.reasons),
            fetcher=self._fetcher,
            memory_sampler=self._memory_sampler,
        )
        self.events.emit(
            CrawlEvent.CRAWL_STARTED,
            url=url,
            strategy=job.strategy.value,
            total_pages=len(job.urls),
        )
        try:
            strategy = self._factory.create(job.strategy)
            result = await strategy.execute(job)
        except (SinkError, UnknownStrategyError) as exc:
            logger.error("Crawl of %s failed: %s", url, exc)
            self.events.emit(CrawlEvent.CRAWL_ERROR, url=url, error=str(exc))
            result = self._failure(job.strategy, record, job.context.errors + [str(exc)], job.reasoning, job.confidence)
        else:
            self.events.emit(
                CrawlEvent.CRAWL_COMPLETED,
                url=url,
                success=result.success,
                output_file=result.output_file,
                statistics=result.statistics,
            )
        finally:
            self._persist_cache(job.context)
            job.context.clear()
            self._cache = None

        self.last_result = result
        return result

    def generate_report(self) -> str:
        """Markdown summary of the last analysis and, if any, the last crawl."""
        record = self.analysis
        if record is None:
            return NO_ANALYSIS_REPORT

        def mark(flag: bool) -> str:
            return "yes" if flag else "no"

        lines = [
            "# Crawler Analysis Report",
            "",
            "## Website Analysis",
            f"- **URL**: {record.url}",
            f"- **Estimated Pages**: {record.estimated_pages}",
            f"- **Complexity**: {record.complexity.value}",
            f"- **Recommended Strategy**: {record.recommended_strategy.value}",
            f"- **Confidence**: {record.confidence * 100:.1f}%",
        ]
        if record.site_profile is not None:
            lines.append(f"- **Known Site**: {record.site_profile.name}")
        lines += [
            "",
            "## Requirements Assessment",
            f"- **Requires Retry Mechanisms**: {mark(record.requires_retry)}",
            f"- **Requires Proxy Support**: {mark(record.requires_proxy)}",
            f"- **Requires Enhanced Formatting**: {mark(record.requires_formatting)}",
            f"- **Requires Performance Optimization**: {mark(record.requires_performance)}",
            "",
            "## Recommendation",
            f"Based on the analysis, the **{record.recommended_strategy.value}** strategy is recommended for this website.",
            "",
            "### Why this strategy?",
        ]
        reasons = self.selection.reasons if self.selection else []
        lines += [f"- {reason}" for reason in reasons]

        result = self.last_result
        if result is not None and result.analysis is not None and result.analysis.url == record.url:
            stats = result.statistics
            lines += [
                "",
                "## Crawl Result",
                f"- **Success**: {mark(result.success)}",
                f"- **Output File**: {result.output_file}",
                f"- **Pages**: {stats.successful_pages}/{stats.total_pages} succeeded, {stats.failed_pages} failed",
                f"- **Total Size**: {stats.total_size} chars",
                f"- **Processing Time**: {stats.processing_secs:.2f}s",
            ]
            for category, count in sorted(result.error_distribution.items()):
                lines.append(f"- **Errors ({category})**: {count}")
        return "\n".join(lines)

    def _job_cache(self) -> Optional[CacheStore]:
        """The cache shared by discovery and page fetches until the current job ends."""
        options = self.config.cache
        if self._cache is None and options.enabled:
            cache = CacheStore(
                max_size=options.max_size,
                ttl=options.ttl,
                directory=options.directory if options.persist else None,
                events=self.events,
            )
            if options.persist:
                try:
                    cache.restore()
                except CacheError as exc:
                    logger.warning("Ignoring unreadable cache: %s", exc)
                    self.events.emit(CrawlEvent.CACHE_PERSIST_ERROR, error=str(exc))
            self._cache = cache
        return self._cache

    def _new_context(self) -> JobContext:
        return JobContext(config=self.config, events=self.events, metrics=MetricsCollector(), cache=self._job_cache())

    def _persist_cache(self, context: JobContext) -> None:
        if context.cache is None or not self.config.cache.persist:
            return
        try:
            context.cache.persist()
        except CacheError as exc:
            logger.warning("Cache not persisted: %s", exc)
            self.events.emit(CrawlEvent.CACHE_PERSIST_ERROR, error=str(exc))

    def _failure(
        self,
        strategy: StrategyName,
        record: Optional[AnalysisRecord],
        errors: List[str],
        reasoning: List[str],
        confidence: float = 0.0,
    ) -> CrawlResult:
        return CrawlResult(
            success=False,
            strategy=strategy,
            output_file=self.config.output_path,
            statistics=CrawlStatistics(),
            analysis=record,
            confidence=confidence,
            errors=errors,
            reasoning=reasoning,
        )
