from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from curl_cffi.requests import AsyncSession

from .backoff import BackoffStrategy
from .config import CrawlConfig
from .errors import ErrorCode, NetworkError, code_for_status
from .rate_limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResponse:
    url: str
    status_code: int
    text: str
    content_type: str = ""

    @property
    def is_html(self) -> bool:
        # Servers that omit the header are given the benefit of the doubt.
        if not self.content_type:
            return True
        ct = self.content_type.lower()
        return "html" in ct or "xml" in ct


def _code_for_exception(exc: Exception) -> ErrorCode:
    name = type(exc).__name__
    text = str(exc).lower()
    if "Timeout" in name or "timed out" in text or "timeout" in text:
        return ErrorCode.TIMEOUT
    return ErrorCode.CONNECTION


class PageFetcher:
    """Async HTTP client for documentation pages.

    Wraps a ``curl_cffi`` ``AsyncSession`` with browser impersonation.
    Failed attempts on retryable statuses or transport errors are retried
    with exponential backoff; an optional rate limiter spaces requests out.
    Every failure surfaces as a ``NetworkError`` carrying an ``ErrorCode``."""

    def __init__(
        self,
        config: CrawlConfig,
        use_proxy: bool = True,
        use_custom_headers: bool = True,
        max_retries: Optional[int] = None,
        rate_limiter: Optional[AsyncRateLimiter] = None,
        backoff: Optional[BackoffStrategy] = None,
        session_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._config = config
        self._use_proxy = use_proxy
        self._max_retries = config.retry.max_retries if max_retries is None else max_retries
        self._rate_limiter = rate_limiter
        self._backoff = backoff or BackoffStrategy.from_config(config.retry)
        self._session_factory = session_factory or AsyncSession
        self._session: Any = None
        self._headers: Dict[str, str] = {"User-Agent": config.user_agent}
        if use_custom_headers:
            self._headers.update(config.headers)

    @classmethod
    def plain(cls, config: CrawlConfig) -> "PageFetcher":
        """Single attempt, default headers, no proxy."""
        return cls(config, use_proxy=False, use_custom_headers=False, max_retries=0)

    @classmethod
    def configured(cls, config: CrawlConfig) -> "PageFetcher":
        """Honours proxy, custom headers, retry policy and rate limiting."""
        limiter = AsyncRateLimiter(config.rate_limit.requests_per_second) if config.rate_limit.enabled else None
        return cls(config, rate_limiter=limiter)

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_session(self) -> Any:
        if self._session is None:
            kwargs: Dict[str, Any] = {"impersonate": self._config.impersonate}
            proxy_url = self._config.proxy.url if self._use_proxy else None
            if proxy_url:
                kwargs["proxies"] = {"http": proxy_url, "https": proxy_url}
            self._session = self._session_factory(**kwargs)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> FetchResponse:
        """GET ``url`` and return the body, raising NetworkError on failure."""
        merged = {**self._headers, **(headers or {})}
        timeout = self._config.timeout if timeout is None else timeout
        attempt = 0
        while True:
            attempt += 1
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()
            try:
                response = await self._get_session().get(url, headers=merged, timeout=timeout, allow_redirects=True)
            except Exception as exc:  # noqa: BLE001
                error = NetworkError(
                    f"{type(exc).__name__}: {exc}",
                    url=url,
                    code=_code_for_exception(exc),
                    retry_count=attempt - 1,
                )
                if attempt > self._max_retries:
                    raise error from exc
                await self._sleep_before_retry(url, attempt, type(exc).__name__)
                continue

            status = int(response.status_code)
            if 200 <= status < 300:
                return FetchResponse(
                    url=str(getattr(response, "url", url) or url),
                    status_code=status,
                    text=response.text,
                    content_type=response.headers.get("content-type", "") or "",
                )

            retryable = status in self._config.retry.retry_on_status
            if not retryable or attempt > self._max_retries:
                reason = getattr(response, "reason", "") or ""
                raise NetworkError(
                    f"Request failed with status code {status} {reason}".strip(),
                    url=url,
                    code=code_for_status(status),
                    status_code=status,
                    retry_count=attempt - 1,
                )
            await self._sleep_before_retry(url, attempt, f"HTTP_{status}")

    async def _sleep_before_retry(self, url: str, attempt: int, error_type: str) -> None:
        sleep_s = self._backoff.get_sleep(attempt, error_type)
        logger.info("Retrying %s after %s (attempt %d, sleeping %.2fs)", url, error_type, attempt, sleep_s)
        await asyncio.sleep(sleep_s)
