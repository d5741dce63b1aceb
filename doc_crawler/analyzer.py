from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import urlsplit

from .base import Fetcher
from .cache import CacheStore
from .config import CrawlConfig
from .errors import ErrorCode, NetworkError, ProbeError
from .events import CrawlEvent, EventDispatcher
from .extractor import extract_links
from .fetcher import PageFetcher
from .models import AnalysisRecord, Complexity
from .sites import detect_site

logger = logging.getLogger(__name__)

SIMPLE_MAX_PAGES = 10
MODERATE_MAX_PAGES = 50
PERFORMANCE_MIN_PAGES = 100
PERFORMANCE_MIN_CONCURRENCY = 5
DISCOVERY_KEY_PREFIX = "urls:"

_UNSTABLE_HOST = re.compile(r"(^|\.)(beta|staging|dev|test)\.")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def determine_complexity(page_count: int) -> Complexity:
    if page_count <= SIMPLE_MAX_PAGES:
        return Complexity.SIMPLE
    if page_count <= MODERATE_MAX_PAGES:
        return Complexity.MODERATE
    return Complexity.COMPLEX


def needs_retry(url: str) -> bool:
    """True for hosts that look like unstable environments."""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if _UNSTABLE_HOST.search(host) or host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        port = parts.port
    except ValueError:
        return False
    return port is not None and port != _DEFAULT_PORTS.get(parts.scheme)


def needs_proxy(config: CrawlConfig) -> bool:
    return bool(config.proxy.enabled or config.proxy.host)


def needs_formatting(config: CrawlConfig) -> bool:
    return bool(config.output.include_toc or config.output.include_metadata)


def needs_performance(page_count: int, config: CrawlConfig) -> bool:
    return page_count > PERFORMANCE_MIN_PAGES or config.concurrency > PERFORMANCE_MIN_CONCURRENCY


class SiteAnalyzer:
    """Probes a documentation site once and describes what crawling it will need."""

    def __init__(
        self,
        config: CrawlConfig,
        fetcher: Optional[Fetcher] = None,
        cache: Optional[CacheStore] = None,
        events: Optional[EventDispatcher] = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._cache = cache
        self._events = events

    async def analyze(self, url: str, navigation_selector: Optional[str] = None) -> AnalysisRecord:
        """Read the start page and count its navigation links.

        A discovery list cached under ``urls:<url>`` is reused without probing.
        Raises ProbeError if the page cannot be fetched or is not HTML."""
        profile = detect_site(url)
        if navigation_selector is None:
            navigation_selector = profile.navigation if profile else self._config.selectors.navigation
        if profile:
            logger.info("Detected %s: %s", profile.name, profile.notes)

        links = self._cached_links(url)
        if links is None:
            links = await self._discover(url, navigation_selector)
        logger.info("Found %d unique navigation links at %s", len(links), url)
        return AnalysisRecord(
            url=url,
            estimated_pages=len(links),
            complexity=determine_complexity(len(links)),
            requires_retry=needs_retry(url),
            requires_proxy=needs_proxy(self._config),
            requires_formatting=needs_formatting(self._config),
            requires_performance=needs_performance(len(links), self._config),
            site_profile=profile,
            discovered_urls=tuple(links),
        )

    def _cached_links(self, url: str) -> Optional[List[str]]:
        if self._cache is None:
            return None
        cached = self._cache.get(DISCOVERY_KEY_PREFIX + url)
        if cached is None:
            return None
        logger.debug("Reusing %d cached navigation links for %s", len(cached), url)
        if self._events is not None:
            self._events.emit(CrawlEvent.URLS_CACHE_HIT, url=url, count=len(cached))
        return list(cached)

    async def _discover(self, url: str, navigation_selector: str) -> List[str]:
        response = await self._probe(url)
        if not response.is_html:
            raise ProbeError(
                f"Expected an HTML page at {url}, got {response.content_type or 'unknown content type'}",
                url=url,
                code=ErrorCode.NOT_HTML,
            )
        links = extract_links(response.text, response.url, navigation_selector)
        if self._cache is not None:
            self._cache.set(DISCOVERY_KEY_PREFIX + url, links)
        return links

    async def _probe(self, url: str):
        if self._fetcher is not None:
            return await self._fetch(self._fetcher, url)
        async with PageFetcher.plain(self._config) as fetcher:
            return await self._fetch(fetcher, url)

    @staticmethod
    async def _fetch(fetcher: Fetcher, url: str):
        try:
            return await fetcher.fetch(url)
        except NetworkError as exc:
            raise ProbeError(f"Could not probe {url}: {exc}", url=url, code=exc.code) from exc
