from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Iterable

from .errors import SinkError
from .models import PageResult

logger = logging.getLogger(__name__)


class StorageBase(ABC):
    """Abstract base class for output sinks.

    A failure to write is fatal to the crawl job, so every backend raises
    SinkError rather than swallowing I/O problems."""

    @abstractmethod
    def write(self, filename: str, content: str) -> str:
        """Replace ``filename`` with ``content``; return the written path."""

    @abstractmethod
    def append(self, filename: str, content: str) -> str:
        """Append ``content`` to ``filename``; return the written path."""


class FileSink(StorageBase):
    """Writes the assembled document to disk, relative to ``output_dir``."""

    def __init__(self, output_dir: str = ".") -> None:
        self._output_dir = output_dir

    def path_for(self, filename: str) -> str:
        return os.path.join(self._output_dir, filename)

    def write(self, filename: str, content: str) -> str:
        return self._write(filename, content, "w")

    def append(self, filename: str, content: str) -> str:
        return self._write(filename, content, "a")

    def _write(self, filename: str, content: str, mode: str) -> str:
        path = self.path_for(filename)
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, mode, encoding="utf-8") as f:
                f.write(content)
        except OSError as exc:
            raise SinkError(f"Failed to write {path}: {exc}") from exc
        logger.debug("Wrote %d chars to %s (mode=%s)", len(content), path, mode)
        return path


class JsonlPageLog:
    """Records flushed page results as JSON Lines, one object per page."""

    def __init__(self, path: str) -> None:
        self._path = path

    def write_batch(self, results: Iterable[PageResult]) -> None:
        try:
            os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                for item in results:
                    record = {
                        "timestamp": time.time(),
                        "url": item.url,
                        "status": item.status.value,
                        "title": item.title,
                        "size": item.size,
                        "latency_ms": round(item.processing_ms, 1),
                        "error": item.error,
                        "error_category": item.error_category.value if item.error_category else None,
                        "from_cache": item.from_cache,
                    }
                    f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise SinkError(f"Failed to write page log {self._path}: {exc}") from exc
