from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import ErrorCategory, ErrorCode


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class StrategyName(str, Enum):
    """The closed set of crawl strategies. Declaration order is the selector tie-break."""

    BASIC = "basic"
    CONFIGURABLE = "configurable"
    PERFORMANCE = "performance"
    FORMAT = "format"


class PageState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class PageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SiteProfile:
    """Selectors and a recommended strategy for a well-known documentation platform."""

    name: str
    patterns: Tuple[str, ...]
    navigation: str
    content: str
    exclude: Tuple[str, ...]
    recommended_strategy: StrategyName
    notes: str = ""


@dataclass(frozen=True)
class AnalysisRecord:
    url: str
    estimated_pages: int
    complexity: Complexity
    requires_retry: bool
    requires_proxy: bool
    requires_formatting: bool
    requires_performance: bool
    recommended_strategy: StrategyName = StrategyName.BASIC
    confidence: float = 0.0
    site_profile: Optional[SiteProfile] = None
    discovered_urls: Tuple[str, ...] = ()


@dataclass
class PageTask:
    url: str
    priority: float
    index: int
    state: PageState = PageState.PENDING


@dataclass(frozen=True)
class PageResult:
    url: str
    status: PageStatus
    title: str = ""
    content: str = ""
    size: int = 0
    processing_ms: float = 0.0
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    error_category: Optional[ErrorCategory] = None
    from_cache: bool = False
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status is PageStatus.SUCCESS

    @classmethod
    def ok(
        cls,
        url: str,
        title: str,
        content: str,
        processing_ms: float,
        from_cache: bool = False,
        metadata: Optional[Dict[str, str]] = None,
    ) -> "PageResult":
        return cls(
            url=url,
            status=PageStatus.SUCCESS,
            title=title,
            content=content,
            size=len(content),
            processing_ms=processing_ms,
            from_cache=from_cache,
            metadata=dict(metadata or {}),
        )

    @classmethod
    def failure(
        cls,
        url: str,
        error: str,
        processing_ms: float,
        error_code: Optional[ErrorCode] = None,
        error_category: Optional[ErrorCategory] = None,
    ) -> "PageResult":
        return cls(
            url=url,
            status=PageStatus.FAILED,
            processing_ms=processing_ms,
            error=error,
            error_code=error_code,
            error_category=error_category,
        )

    @classmethod
    def duplicate(cls, url: str) -> "PageResult":
        return cls(url=url, status=PageStatus.SKIPPED, error="Duplicate URL skipped")

    def to_cache_value(self) -> Dict[str, Any]:
        """Plain JSON-safe payload stored in the cache for a successful page."""
        return {"url": self.url, "title": self.title, "content": self.content, "metadata": dict(self.metadata)}

    @classmethod
    def from_cache_value(cls, value: Dict[str, Any]) -> "PageResult":
        return cls.ok(
            value["url"],
            value.get("title", ""),
            value.get("content", ""),
            0.0,
            from_cache=True,
            metadata=value.get("metadata"),
        )


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


@dataclass(frozen=True)
class PageTiming:
    url: str
    processing_ms: float


@dataclass(frozen=True)
class PageSize:
    url: str
    size: int


@dataclass(frozen=True)
class CrawlMetrics:
    total_pages: int
    successful_pages: int
    failed_pages: int
    skipped_pages: int
    cache_hits: int
    total_bytes: int
    average_page_size: float
    average_processing_ms: float
    throughput_pages_per_sec: float
    elapsed_secs: float
    peak_memory_mb: float
    memory_history: Tuple[float, ...]
    error_distribution: Dict[str, int]
    slowest_pages: Tuple[PageTiming, ...]
    largest_pages: Tuple[PageSize, ...]


@dataclass(frozen=True)
class CrawlStatistics:
    total_pages: int = 0
    successful_pages: int = 0
    failed_pages: int = 0
    processing_secs: float = 0.0
    avg_page_size: float = 0.0
    total_size: int = 0


@dataclass(frozen=True)
class CrawlResult:
    success: bool
    strategy: StrategyName
    output_file: str
    statistics: CrawlStatistics
    analysis: Optional[AnalysisRecord]
    confidence: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error_distribution: Dict[str, int] = field(default_factory=dict)
    reasoning: List[str] = field(default_factory=list)
    metrics: Optional[CrawlMetrics] = None
