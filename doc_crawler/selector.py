from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List

from .config import CrawlConfig
from .models import AnalysisRecord, Complexity, StrategyName

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
PROFILE_CONFIDENCE = 0.9
PROFILE_LARGE_SITE_PAGES = 50


@dataclass(frozen=True)
class Selection:
    strategy: StrategyName
    confidence: float
    scores: Dict[StrategyName, int] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class StrategySelector:
    """Turns an AnalysisRecord into a strategy choice and a confidence score.

    Each strategy accumulates points from the record's requirements; the
    strictly highest score wins and ties go to the strategy declared first
    (basic, configurable, performance, format). A pure function of the record
    and the configuration: no I/O, no failure modes."""

    def __init__(self, config: CrawlConfig) -> None:
        self._config = config

    def has_complex_selectors(self) -> bool:
        return self._config.selectors.is_custom or self._config.has_custom_headers

    def score(self, record: AnalysisRecord) -> Dict[StrategyName, int]:
        scores = {name: 0 for name in StrategyName}
        scores[StrategyName.BASIC] = 1
        if record.requires_formatting:
            scores[StrategyName.FORMAT] += 3
        if record.requires_performance or record.estimated_pages > 100:
            scores[StrategyName.PERFORMANCE] += 2
        if record.requires_proxy or self.has_complex_selectors():
            scores[StrategyName.CONFIGURABLE] += 2
        if record.requires_retry or record.complexity is not Complexity.SIMPLE:
            scores[StrategyName.CONFIGURABLE] += 1
        if record.estimated_pages > 200:
            scores[StrategyName.PERFORMANCE] += 1
            scores[StrategyName.FORMAT] -= 1
        return scores

    @staticmethod
    def pick(scores: Dict[StrategyName, int]) -> StrategyName:
        best = StrategyName.BASIC
        for name in StrategyName:
            if scores[name] > scores[best]:
                best = name
        return best

    @staticmethod
    def confidence(record: AnalysisRecord) -> float:
        value = BASE_CONFIDENCE
        if record.estimated_pages > 0:
            value += 0.2
        if record.requires_formatting:
            value += 0.1
        if record.requires_performance:
            value += 0.1
        if record.requires_proxy:
            value += 0.1
        return _clamp(round(value, 6))

    def select(self, record: AnalysisRecord) -> Selection:
        scores = self.score(record)
        profile = record.site_profile
        if profile is not None:
            strategy = profile.recommended_strategy
            confidence = 1.0 if record.estimated_pages > PROFILE_LARGE_SITE_PAGES else PROFILE_CONFIDENCE
        else:
            strategy = self.pick(scores)
            confidence = self.confidence(record)

        selection = Selection(
            strategy=strategy,
            confidence=confidence,
            scores=scores,
            reasons=self.explain(record, strategy, scores),
        )
        log = {
            "timestamp": time.time(),
            "strategy": strategy.value,
            "confidence": confidence,
            "scores": {k.value: v for k, v in scores.items()},
            "reason": {
                "estimated_pages": record.estimated_pages,
                "complexity": record.complexity.value,
                "requires_retry": record.requires_retry,
                "requires_proxy": record.requires_proxy,
                "requires_formatting": record.requires_formatting,
                "requires_performance": record.requires_performance,
                "site_profile": profile.name if profile else None,
            },
        }
        logger.info(json.dumps(log, ensure_ascii=False))
        return selection

    def explain(self, record: AnalysisRecord, strategy: StrategyName, scores: Dict[StrategyName, int]) -> List[str]:
        """Human-readable trace of why ``strategy`` was chosen."""
        reasons: List[str] = []
        if record.site_profile is not None:
            reasons.append(f"Known site detected ({record.site_profile.name}): {record.site_profile.notes}")
        if record.requires_formatting:
            reasons.append("Enhanced formatting features are needed")
        if record.requires_performance:
            reasons.append("High-performance processing is required for large scale")
        if record.requires_proxy:
            reasons.append("Proxy configuration is needed")
        if self.has_complex_selectors():
            reasons.append("Custom selectors or headers are configured")
        if record.requires_retry:
            reasons.append("Retry mechanisms are recommended for reliability")
        if record.complexity is Complexity.COMPLEX:
            reasons.append("Complex website structure requires advanced features")
        if not reasons:
            reasons.append("Basic requirements match the recommended crawler capabilities")
        ranked = ", ".join(f"{k.value}={v}" for k, v in scores.items())
        reasons.append(f"Scores: {ranked}; selected {strategy.value}")
        return reasons
