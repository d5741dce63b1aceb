from __future__ import annotations

import logging
import time
from typing import Optional, Protocol, Sequence

from .errors import PageError
from .extractor import ConvertedPage, convert_page
from .fetcher import FetchResponse
from .metrics import classify_error
from .models import PageResult

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str, headers=None, timeout: Optional[float] = None) -> FetchResponse:
        ...


class PagePipeline:
    """Fetch-then-convert pipeline shared by every crawl strategy.

    - Any failure becomes a failed PageResult, never an exception.
    - Failures keep the structured ErrorCode and the derived category.
    - Latency covers both fetch and conversion.
    """

    def __init__(self, fetcher: Fetcher, content_selector: str, exclude_selectors: Sequence[str] = ()) -> None:
        self._fetcher = fetcher
        self._content_selector = content_selector
        self._exclude = tuple(exclude_selectors)

    async def run(self, url: str) -> PageResult:
        start = time.perf_counter()
        try:
            self.validate(url)
            response = await self._fetcher.fetch(url)
            page = self.parse(response)
        except PageError as exc:
            return self._failure(url, str(exc), start, exc)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Unexpected failure processing %s", url, exc_info=True)
            return self._failure(url, f"{type(exc).__name__}: {exc}", start, None)

        elapsed_ms = (time.perf_counter() - start) * 1000
        return PageResult.ok(url, page.title, page.markdown, elapsed_ms, metadata=page.metadata)

    def validate(self, url: str) -> None:
        if not url:
            raise ValueError("url is required")

    def parse(self, response: FetchResponse) -> ConvertedPage:
        return convert_page(response.text, response.url, self._content_selector, self._exclude)

    @staticmethod
    def _failure(url: str, message: str, start: float, exc: Optional[PageError]) -> PageResult:
        code = exc.code if exc is not None else None
        logger.warning("Failed to process %s: %s", url, message)
        return PageResult.failure(
            url,
            message,
            (time.perf_counter() - start) * 1000,
            error_code=code,
            error_category=classify_error(message, code),
        )
