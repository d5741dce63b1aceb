from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple
from urllib.parse import urlsplit

from .models import PageTask

DEFAULT_PRIORITY = 1.0

DEFAULT_RULES: Tuple[Tuple[re.Pattern, float], ...] = (
    (re.compile(r"/(index|overview|introduction|getting-started)", re.IGNORECASE), 3.0),
    (re.compile(r"/(guide|tutorial|how-to)", re.IGNORECASE), 2.0),
    (re.compile(r"/(api|reference|changelog)", re.IGNORECASE), 0.5),
)


class UrlPrioritizer:
    """Orders discovered URLs so entry-point pages are converted first.

    The first matching rule sets the priority. Sorting is by descending
    priority with the discovery index as an explicit tie-break, so pages of
    equal priority keep their navigation order."""

    def __init__(self, rules: Sequence[Tuple[re.Pattern, float]] = DEFAULT_RULES) -> None:
        self._rules = tuple(rules)

    def score(self, url: str) -> float:
        path = urlsplit(url).path or "/"
        for pattern, priority in self._rules:
            if pattern.search(path):
                return priority
        return DEFAULT_PRIORITY

    def prioritize(self, urls: Iterable[str]) -> List[PageTask]:
        tasks = [PageTask(url=url, priority=self.score(url), index=i) for i, url in enumerate(urls)]
        return sorted(tasks, key=lambda t: (-t.priority, t.index))
