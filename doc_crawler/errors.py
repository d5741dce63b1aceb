from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Structured failure codes raised by the fetch and convert collaborators."""

    TIMEOUT = "timeout"
    HTTP_NOT_FOUND = "http_not_found"
    HTTP_FORBIDDEN = "http_forbidden"
    HTTP_CLIENT_ERROR = "http_client_error"
    HTTP_SERVER_ERROR = "http_server_error"
    CONNECTION = "connection"
    NOT_HTML = "not_html"
    CONTENT_MISSING = "content_missing"
    UNKNOWN = "unknown"


class ErrorCategory(str, Enum):
    """Coarse buckets used for the error distribution of a crawl."""

    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    CONTENT_MISSING = "content_missing"
    OTHER = "other"


class CrawlerError(Exception):
    """Base class for all errors raised by the crawler."""


class ConfigError(CrawlerError):
    """Raised when a configuration file cannot be loaded or is invalid."""


class ProbeError(CrawlerError):
    """The analyzer could not reach the site or read its navigation. Fatal to the job."""

    def __init__(self, message: str, url: str, code: ErrorCode = ErrorCode.UNKNOWN) -> None:
        super().__init__(message)
        self.url = url
        self.code = code


class PageError(CrawlerError):
    """A single page could not be fetched or converted. Recovered per page."""

    def __init__(self, message: str, url: Optional[str] = None, code: ErrorCode = ErrorCode.UNKNOWN) -> None:
        super().__init__(message)
        self.url = url
        self.code = code


class NetworkError(PageError):
    """HTTP transport failure or an error status from the server."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONNECTION,
        status_code: Optional[int] = None,
        retry_count: int = 0,
    ) -> None:
        super().__init__(message, url=url, code=code)
        self.status_code = status_code
        self.retry_count = retry_count


class ContentNotFoundError(PageError):
    """None of the content selectors matched anything on the page."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message, url=url, code=ErrorCode.CONTENT_MISSING)


class CacheError(CrawlerError):
    """Reading or writing the persisted cache failed. Never fatal."""


class SinkError(CrawlerError):
    """Writing the assembled output failed. Fatal to the job."""


class UnknownStrategyError(CrawlerError):
    """A strategy name outside the closed strategy set reached the dispatcher."""


def code_for_status(status_code: int) -> ErrorCode:
    """Map an HTTP error status to its structured error code."""
    if status_code == 404:
        return ErrorCode.HTTP_NOT_FOUND
    if status_code == 403:
        return ErrorCode.HTTP_FORBIDDEN
    if status_code == 408:
        return ErrorCode.TIMEOUT
    if status_code >= 500:
        return ErrorCode.HTTP_SERVER_ERROR
    return ErrorCode.HTTP_CLIENT_ERROR
