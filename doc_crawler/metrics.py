from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict
from typing import Callable, Deque, Dict, List, Optional

from .errors import ErrorCategory, ErrorCode
from .models import CrawlMetrics, PageResult, PageSize, PageStatus, PageTiming

TOP_N = 10
MEMORY_HISTORY_SIZE = 100

_CODE_CATEGORIES: Dict[ErrorCode, ErrorCategory] = {
    ErrorCode.TIMEOUT: ErrorCategory.TIMEOUT,
    ErrorCode.HTTP_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.HTTP_FORBIDDEN: ErrorCategory.FORBIDDEN,
    ErrorCode.HTTP_SERVER_ERROR: ErrorCategory.SERVER_ERROR,
    ErrorCode.CONNECTION: ErrorCategory.NETWORK,
    ErrorCode.CONTENT_MISSING: ErrorCategory.CONTENT_MISSING,
    ErrorCode.HTTP_CLIENT_ERROR: ErrorCategory.OTHER,
    ErrorCode.NOT_HTML: ErrorCategory.OTHER,
    ErrorCode.UNKNOWN: ErrorCategory.OTHER,
}

# Checked in order; the first match wins. Matching is case-sensitive, so
# "Content not found" does not hit the "Not Found" rule.
_MESSAGE_RULES = (
    (ErrorCategory.TIMEOUT, ("timeout",)),
    (ErrorCategory.NOT_FOUND, ("404", "Not Found")),
    (ErrorCategory.FORBIDDEN, ("403", "Forbidden")),
    (ErrorCategory.SERVER_ERROR, ("500", "Internal Server Error")),
    (ErrorCategory.NETWORK, ("network", "ECONNREFUSED")),
    (ErrorCategory.CONTENT_MISSING, ("Content not found",)),
)


def classify_error(message: Optional[str], code: Optional[ErrorCode] = None) -> ErrorCategory:
    """Map a page failure to its category, preferring the structured code."""
    if code is not None and code is not ErrorCode.UNKNOWN:
        return _CODE_CATEGORIES[code]
    text = message or ""
    for category, needles in _MESSAGE_RULES:
        if any(n in text for n in needles):
            return category
    return ErrorCategory.OTHER


class MetricsCollector:
    """Accumulates per-job crawl statistics.

    Counters are updated as results arrive; throughput and average
    processing time are derived once in finalize(). All calls come from the
    crawl's event loop, so no locking is needed."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started_at = clock()
        self._expected_pages = 0
        self.successful_pages = 0
        self.failed_pages = 0
        self.skipped_pages = 0
        self.cache_hits = 0
        self.total_bytes = 0
        self.error_distribution: Dict[str, int] = {}
        self.slowest_pages: List[PageTiming] = []
        self.largest_pages: List[PageSize] = []
        self.memory_history: Deque[float] = deque(maxlen=MEMORY_HISTORY_SIZE)
        self.peak_memory_mb = 0.0

    def start(self, expected_pages: int) -> None:
        """Reset the clock and note how many pages discovery produced."""
        self._started_at = self._clock()
        self._expected_pages = expected_pages

    @property
    def processed_pages(self) -> int:
        return self.successful_pages + self.failed_pages

    def record(self, result: PageResult) -> None:
        """Fold one page result into the counters."""
        if result.status is PageStatus.SKIPPED:
            self.skipped_pages += 1
            return
        if result.from_cache:
            self.cache_hits += 1
        if result.success:
            self.successful_pages += 1
            self.total_bytes += result.size

            self.slowest_pages.append(PageTiming(result.url, result.processing_ms))
            self.slowest_pages.sort(key=lambda p: p.processing_ms, reverse=True)
            del self.slowest_pages[TOP_N:]

            self.largest_pages.append(PageSize(result.url, result.size))
            self.largest_pages.sort(key=lambda p: p.size, reverse=True)
            del self.largest_pages[TOP_N:]
            return

        self.failed_pages += 1
        category = result.error_category or classify_error(result.error, result.error_code)
        self.error_distribution[category.value] = self.error_distribution.get(category.value, 0) + 1

    def record_memory(self, megabytes: float) -> None:
        self.memory_history.append(megabytes)
        self.peak_memory_mb = max(self.peak_memory_mb, megabytes)

    def finalize(self) -> CrawlMetrics:
        """Derive the summary figures and return an immutable snapshot."""
        elapsed = max(self._clock() - self._started_at, 1e-9)
        total = max(self._expected_pages, self.processed_pages)
        avg_processing = (
            sum(p.processing_ms for p in self.slowest_pages) / len(self.slowest_pages)
            if self.slowest_pages
            else 0.0
        )
        avg_size = self.total_bytes / self.successful_pages if self.successful_pages else 0.0
        return CrawlMetrics(
            total_pages=total,
            successful_pages=self.successful_pages,
            failed_pages=self.failed_pages,
            skipped_pages=self.skipped_pages,
            cache_hits=self.cache_hits,
            total_bytes=self.total_bytes,
            average_page_size=avg_size,
            average_processing_ms=avg_processing,
            throughput_pages_per_sec=total / elapsed,
            elapsed_secs=elapsed,
            peak_memory_mb=self.peak_memory_mb,
            memory_history=tuple(self.memory_history),
            error_distribution=dict(self.error_distribution),
            slowest_pages=tuple(self.slowest_pages),
            largest_pages=tuple(self.largest_pages),
        )

    def export_json(self) -> Dict:
        """Export the finalized metrics as a plain dictionary."""
        return asdict(self.finalize())
