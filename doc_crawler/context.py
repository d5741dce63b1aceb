from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from .base import Fetcher
from .cache import CacheStore
from .config import DEFAULT_CONTENT_SELECTOR, CrawlConfig
from .events import EventDispatcher
from .memory import process_memory_mb
from .metrics import MetricsCollector
from .models import AnalysisRecord, PageResult, StrategyName
from .storage import StorageBase


@dataclass
class JobContext:
    """Mutable state of one crawl job, passed explicitly to whatever runs its pages.

    Nothing here is shared between jobs; two jobs only meet through a
    persisted cache file."""

    config: CrawlConfig
    events: EventDispatcher = field(default_factory=EventDispatcher)
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    cache: Optional[CacheStore] = None
    seen: Set[str] = field(default_factory=set)
    buffer: List[PageResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    aborted: bool = False

    def mark_seen(self, url: str) -> bool:
        """Claim ``url`` for this job. Returns False if it was already claimed."""
        if url in self.seen:
            return False
        self.seen.add(url)
        return True

    def abort(self) -> None:
        self.aborted = True

    def clear(self) -> None:
        self.seen.clear()
        self.buffer.clear()
        if self.cache is not None:
            self.cache.clear()


@dataclass
class CrawlJob:
    """Everything a strategy needs to crawl one site."""

    url: str
    analysis: AnalysisRecord
    strategy: StrategyName
    context: JobContext
    sink: StorageBase
    confidence: float = 0.0
    reasoning: List[str] = field(default_factory=list)
    # When set, every strategy uses this fetcher instead of opening its own.
    fetcher: Optional[Fetcher] = None
    memory_sampler: Callable[[], float] = process_memory_mb

    @property
    def config(self) -> CrawlConfig:
        return self.context.config

    @property
    def urls(self) -> Tuple[str, ...]:
        return self.analysis.discovered_urls or (self.url,)

    @property
    def content_selector(self) -> str:
        profile = self.analysis.site_profile
        if profile is not None and self.config.selectors.content == DEFAULT_CONTENT_SELECTOR:
            return profile.content
        return self.config.selectors.content

    @property
    def exclude_selectors(self) -> Tuple[str, ...]:
        profile = self.analysis.site_profile
        extra = profile.exclude if profile is not None else ()
        return tuple(self.config.selectors.exclude) + tuple(s for s in extra if s not in self.config.selectors.exclude)
