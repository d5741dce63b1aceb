from __future__ import annotations

import json
import logging
import math
import os
import time
from typing import Any, Callable, Dict, Optional

from .errors import CacheError
from .events import CrawlEvent, EventDispatcher
from .models import CacheEntry

logger = logging.getLogger(__name__)

CACHE_FILENAME = "crawl-cache.json"
EVICTION_FRACTION = 0.2


class CacheStore:
    """Key/value store with per-entry TTL and size-bounded eviction.

    Expiry is checked lazily on read. When the entry count exceeds
    ``max_size`` the oldest entries by insertion time are removed (about 20%
    of ``max_size``). Reads do not refresh an entry, so this is insertion-order
    eviction rather than LRU.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float = 3600.0,
        directory: Optional[str] = None,
        events: Optional[EventDispatcher] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_size = max(1, int(max_size))
        self._ttl = ttl
        self._directory = directory
        self._events = events
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if the key is absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        # Re-inserting moves the key to the end of dict order, matching its new timestamp.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            ttl=self._ttl if ttl is None else ttl,
        )
        self.evict_if_oversize()

    def evict_if_oversize(self) -> int:
        """Drop the oldest entries once the store grows past ``max_size``."""
        if len(self._entries) <= self._max_size:
            return 0
        count = max(1, math.floor(self._max_size * EVICTION_FRACTION))
        count = max(count, len(self._entries) - self._max_size)
        oldest = sorted(self._entries.values(), key=lambda e: e.inserted_at)[:count]
        for entry in oldest:
            del self._entries[entry.key]
        logger.debug("Evicted %d cache entries (size now %d)", len(oldest), len(self._entries))
        self._emit(CrawlEvent.CACHE_CLEARED, removed_count=len(oldest))
        return len(oldest)

    def clear(self) -> None:
        removed = len(self._entries)
        self._entries.clear()
        self._emit(CrawlEvent.CACHE_CLEARED, removed_count=removed)

    @property
    def path(self) -> Optional[str]:
        if not self._directory:
            return None
        return os.path.join(self._directory, CACHE_FILENAME)

    def persist(self) -> str:
        """Write every entry to ``<directory>/crawl-cache.json``."""
        path = self.path
        if path is None:
            raise CacheError("Cache persistence requested without a cache directory")
        data = {
            key: {"value": e.value, "inserted_at": e.inserted_at, "ttl": e.ttl}
            for key, e in self._entries.items()
        }
        try:
            os.makedirs(self._directory, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except (OSError, TypeError, ValueError) as exc:
            raise CacheError(f"Failed to persist cache to {path}: {exc}") from exc
        self._emit(CrawlEvent.CACHE_PERSISTED, file=path, entries=len(data))
        logger.info("Persisted %d cache entries to %s", len(data), path)
        return path

    def restore(self) -> int:
        """Load persisted entries, skipping expired ones. Returns the number loaded."""
        path = self.path
        if path is None or not os.path.exists(path):
            return 0
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            now = self._clock()
            loaded = 0
            for key, raw in sorted(data.items(), key=lambda kv: kv[1]["inserted_at"]):
                entry = CacheEntry(key=key, value=raw["value"], inserted_at=float(raw["inserted_at"]), ttl=float(raw["ttl"]))
                if entry.is_fresh(now):
                    self._entries[key] = entry
                    loaded += 1
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CacheError(f"Failed to restore cache from {path}: {exc}") from exc
        self.evict_if_oversize()
        logger.info("Restored %d cache entries from %s", loaded, path)
        return loaded

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _emit(self, event: CrawlEvent, **payload: Any) -> None:
        if self._events is not None:
            self._events.emit(event, **payload)
