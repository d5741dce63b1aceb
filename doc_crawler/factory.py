from __future__ import annotations

from typing import Dict, Type, Union

from .errors import UnknownStrategyError
from .models import StrategyName
from .strategies import (
    BasicStrategy,
    ConfigurableStrategy,
    CrawlStrategy,
    FormatStrategy,
    PerformanceStrategy,
)

STRATEGIES: Dict[StrategyName, Type[CrawlStrategy]] = {
    StrategyName.BASIC: BasicStrategy,
    StrategyName.CONFIGURABLE: ConfigurableStrategy,
    StrategyName.PERFORMANCE: PerformanceStrategy,
    StrategyName.FORMAT: FormatStrategy,
}


class StrategyFactory:
    """The single place where a strategy name becomes a strategy object.

    Strategies hold no per-job state, so instances are cached and reused
    across jobs."""

    def __init__(self) -> None:
        self._cache: Dict[StrategyName, CrawlStrategy] = {}

    def create(self, name: Union[StrategyName, str]) -> CrawlStrategy:
        try:
            key = StrategyName(name)
        except ValueError:
            raise UnknownStrategyError(f"Unknown strategy: {name}") from None
        if key not in self._cache:
            self._cache[key] = STRATEGIES[key]()
        return self._cache[key]
