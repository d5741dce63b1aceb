"""Crawler configuration.

Configuration is a tree of frozen dataclasses so a crawl job can hold an
immutable snapshot. ``config_from_dict`` deep-merges a partial mapping (as
read from a JSON file) over the defaults; unknown keys are rejected.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "doc-crawler/1.0 (Web Documentation Crawler)"

DEFAULT_NAVIGATION_SELECTOR = (
    ".nav, .navigation, .sidebar, .toc, [role=\"navigation\"], nav, .menu, .nav-list, "
    ".site-nav, .docs-nav, .documentation-nav, .doc-nav, aside nav"
)
DEFAULT_CONTENT_SELECTOR = (
    "main, .content, .main-content, article, .article, .post-content, .entry-content, "
    "[role=\"main\"], .documentation-content, .doc-content, .page-content, .article-body"
)


@dataclass(frozen=True)
class ProxyConfig:
    enabled: bool = False
    host: Optional[str] = None
    port: Optional[int] = None
    protocol: str = "http"
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def url(self) -> Optional[str]:
        if not self.enabled or not self.host:
            return None
        auth = f"{self.username}:{self.password}@" if self.username else ""
        port = f":{self.port}" if self.port else ""
        return f"{self.protocol}://{auth}{self.host}{port}"


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    retry_on_status: Tuple[int, ...] = (408, 429, 500, 502, 503, 504)


@dataclass(frozen=True)
class RateLimitConfig:
    enabled: bool = False
    requests_per_second: float = 2.0


@dataclass(frozen=True)
class SelectorConfig:
    navigation: str = DEFAULT_NAVIGATION_SELECTOR
    content: str = DEFAULT_CONTENT_SELECTOR
    exclude: Tuple[str, ...] = ()
    include: Tuple[str, ...] = ()

    @property
    def is_custom(self) -> bool:
        return bool(self.exclude or self.include)


@dataclass(frozen=True)
class OutputConfig:
    include_toc: bool = False
    include_metadata: bool = False
    toc_max_depth: int = 3
    output_dir: str = "."
    output_file: str = "output.md"
    page_log: Optional[str] = None


@dataclass(frozen=True)
class StreamingConfig:
    chunk_size: int = 50
    batch_size: int = 10
    memory_budget_mb: float = 512.0
    backpressure_threshold: float = 0.8
    reclaim_threshold: float = 0.9
    sample_interval: float = 1.0
    backpressure_pause: float = 0.1


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    max_size: int = 1000
    ttl: float = 3600.0
    persist: bool = False
    directory: str = ".cache"


@dataclass(frozen=True)
class CrawlConfig:
    timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    impersonate: str = "chrome120"
    concurrency: int = 5
    headers: Dict[str, str] = field(default_factory=dict)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    selectors: SelectorConfig = field(default_factory=SelectorConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    continue_on_error: bool = True

    @property
    def has_custom_headers(self) -> bool:
        return bool(self.headers)

    @property
    def output_path(self) -> str:
        return os.path.join(self.output.output_dir, self.output.output_file)

    def validate(self) -> List[str]:
        """Return a list of human-readable problems; empty when the config is usable."""
        errors: List[str] = []
        if not self.selectors.navigation:
            errors.append("Navigation selector is required")
        if not self.selectors.content:
            errors.append("Content selector is required")
        if self.timeout <= 0:
            errors.append("Timeout must be positive")
        if self.retry.max_retries < 0:
            errors.append("Max retries cannot be negative")
        if self.retry.base_delay <= 0:
            errors.append("Base delay must be positive")
        if self.proxy.enabled:
            if not self.proxy.host:
                errors.append("Proxy host is required when proxy is enabled")
            if not self.proxy.port or self.proxy.port <= 0:
                errors.append("Valid proxy port is required when proxy is enabled")
        if self.rate_limit.enabled and self.rate_limit.requests_per_second <= 0:
            errors.append("Requests per second must be positive")
        if self.output.toc_max_depth <= 0:
            errors.append("TOC max depth must be positive")
        if self.concurrency <= 0:
            errors.append("Concurrency must be positive")
        if self.streaming.chunk_size <= 0:
            errors.append("Chunk size must be positive")
        if self.streaming.batch_size <= 0:
            errors.append("Batch size must be positive")
        if not 0 < self.streaming.backpressure_threshold <= 1:
            errors.append("Backpressure threshold must be in (0, 1]")
        if self.cache.max_size <= 0:
            errors.append("Cache max size must be positive")
        if self.cache.ttl <= 0:
            errors.append("Cache TTL must be positive")
        return errors

    def ensure_valid(self) -> "CrawlConfig":
        errors = self.validate()
        if errors:
            raise ConfigError("Invalid configuration: " + "; ".join(errors))
        return self

    def summary(self) -> str:
        lines = [
            "Configuration Summary:",
            f"   Navigation Selector: {self.selectors.navigation}",
            f"   Content Selector: {self.selectors.content}",
            f"   Concurrency: {self.concurrency}",
            f"   Timeout: {self.timeout}s",
            f"   Max Retries: {self.retry.max_retries}",
            f"   Output: {self.output_path}",
        ]
        if self.proxy.enabled:
            lines.append(f"   Proxy: {self.proxy.protocol}://{self.proxy.host}:{self.proxy.port}")
        if self.rate_limit.enabled:
            lines.append(f"   Rate Limit: {self.rate_limit.requests_per_second} req/s")
        if self.headers:
            lines.append(f"   Custom Headers: {len(self.headers)} defined")
        if self.selectors.exclude:
            lines.append(f"   Exclude Selectors: {len(self.selectors.exclude)} defined")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _merge(base: Any, overrides: Mapping[str, Any], path: str = "") -> Any:
    known = {f.name: f for f in fields(base)}
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key: {path}{key}")
        current = getattr(base, key)
        if is_dataclass(current):
            if not isinstance(value, Mapping):
                raise ConfigError(f"Expected an object for {path}{key}")
            changes[key] = _merge(current, value, f"{path}{key}.")
        elif isinstance(current, tuple) and isinstance(value, list):
            changes[key] = tuple(value)
        elif isinstance(current, dict) and isinstance(value, Mapping):
            changes[key] = {**current, **value}
        else:
            changes[key] = value
    return replace(base, **changes)


def config_from_dict(data: Mapping[str, Any], base: Optional[CrawlConfig] = None) -> CrawlConfig:
    """Deep-merge ``data`` over ``base`` (defaults when omitted)."""
    return _merge(base or CrawlConfig(), data)


def load_config(path: str) -> CrawlConfig:
    """Load a JSON configuration file and merge it over the defaults."""
    ext = os.path.splitext(path)[1].lower()
    if ext != ".json":
        raise ConfigError(f"Unsupported config file format: {ext or path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    config = config_from_dict(data).ensure_valid()
    logger.info("Loaded configuration from %s", path)
    return config
