from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)


class CrawlEvent(str, Enum):
    ANALYSIS_STARTED = "analysis-started"
    ANALYSIS_COMPLETED = "analysis-completed"
    ANALYSIS_ERROR = "analysis-error"
    CRAWL_STARTED = "crawl-started"
    CRAWL_COMPLETED = "crawl-completed"
    CRAWL_ERROR = "crawl-error"
    URLS_DISCOVERED = "urls-discovered"
    URLS_CACHE_HIT = "urls-cache-hit"
    CHUNK_PROCESSING_STARTED = "chunk-processing-started"
    CHUNK_STARTED = "chunk-started"
    CHUNK_COMPLETED = "chunk-completed"
    MEMORY_WARNING = "memory-warning"
    BUFFER_FLUSHED = "buffer-flushed"
    PAGE_PROCESSED = "page-processed"
    PAGE_ERROR = "page-error"
    PAGE_CACHE_HIT = "page-cache-hit"
    CACHE_CLEARED = "cache-cleared"
    CACHE_PERSISTED = "cache-persisted"
    CACHE_PERSIST_ERROR = "cache-persist-error"


Listener = Callable[[CrawlEvent, Dict[str, Any]], None]
Handler = Callable[[Dict[str, Any]], None]


class EventDispatcher:
    """Progress reporting for a single orchestrator and the jobs it runs.

    Listeners subscribed with ``subscribe`` receive every event; handlers
    registered with ``on`` receive only the named one. A listener that raises
    is logged and skipped so observers can never break a crawl."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._handlers: Dict[CrawlEvent, List[Handler]] = defaultdict(list)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def on(self, event: Union[CrawlEvent, str], handler: Handler) -> None:
        self._handlers[CrawlEvent(event)].append(handler)

    def emit(self, event: CrawlEvent, **payload: Any) -> None:
        logger.debug("event=%s payload_keys=%s", event.value, sorted(payload))
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:  # noqa: BLE001
                logger.exception("Progress listener failed on %s", event.value)
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:  # noqa: BLE001
                logger.exception("Event handler failed on %s", event.value)
