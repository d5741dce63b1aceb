"""Tests for the StrategySelector class."""

import itertools
import unittest
from dataclasses import replace

from doc_crawler.config import CrawlConfig, config_from_dict
from doc_crawler.models import AnalysisRecord, Complexity, StrategyName
from doc_crawler.selector import StrategySelector
from doc_crawler.sites import detect_site


def _make_record(**overrides) -> AnalysisRecord:
    """Helper to build an AnalysisRecord with sensible defaults."""
    defaults = dict(
        url="https://docs.example.com",
        estimated_pages=5,
        complexity=Complexity.SIMPLE,
        requires_retry=False,
        requires_proxy=False,
        requires_formatting=False,
        requires_performance=False,
    )
    defaults.update(overrides)
    return AnalysisRecord(**defaults)


class TestScenarios(unittest.TestCase):
    """Verify the documented end-to-end selection cases."""

    def test_moderate_site_without_extras_is_basic(self):
        """74 pages, complex structure, nothing else: configurable scores 1 and ties basic."""
        selector = StrategySelector(CrawlConfig())
        record = _make_record(estimated_pages=74, complexity=Complexity.COMPLEX)
        selection = selector.select(record)
        self.assertEqual(selection.scores[StrategyName.CONFIGURABLE], 1)
        self.assertIs(selection.strategy, StrategyName.BASIC)
        self.assertAlmostEqual(selection.confidence, 0.7)

    def test_large_site_is_performance(self):
        """250 pages needing performance: performance 3, format goes negative."""
        selector = StrategySelector(CrawlConfig())
        record = _make_record(estimated_pages=250, complexity=Complexity.COMPLEX, requires_performance=True)
        selection = selector.select(record)
        self.assertEqual(
            selection.scores,
            {
                StrategyName.BASIC: 1,
                StrategyName.CONFIGURABLE: 1,
                StrategyName.PERFORMANCE: 3,
                StrategyName.FORMAT: -1,
            },
        )
        self.assertIs(selection.strategy, StrategyName.PERFORMANCE)
        self.assertAlmostEqual(selection.confidence, 0.8)

    def test_formatting_wins(self):
        """Formatting needs outweigh everything below the large-site threshold."""
        selection = StrategySelector(CrawlConfig()).select(_make_record(requires_formatting=True))
        self.assertIs(selection.strategy, StrategyName.FORMAT)

    def test_proxy_selects_configurable(self):
        """A proxy requirement pushes configurable above basic."""
        selection = StrategySelector(CrawlConfig()).select(_make_record(requires_proxy=True))
        self.assertIs(selection.strategy, StrategyName.CONFIGURABLE)
        self.assertEqual(selection.scores[StrategyName.CONFIGURABLE], 2)

    def test_custom_headers_count_as_complex_selectors(self):
        """Custom headers give configurable the +2 bonus."""
        config = config_from_dict({"headers": {"X-Token": "abc"}})
        selection = StrategySelector(config).select(_make_record())
        self.assertIs(selection.strategy, StrategyName.CONFIGURABLE)

    def test_exclude_selectors_count_as_complex_selectors(self):
        """Exclude selectors give configurable the +2 bonus."""
        config = config_from_dict({"selectors": {"exclude": [".ads"]}})
        scores = StrategySelector(config).score(_make_record())
        self.assertEqual(scores[StrategyName.CONFIGURABLE], 2)


class TestTieBreak(unittest.TestCase):
    """Verify ties resolve in declaration order."""

    def test_tie_goes_to_earliest(self):
        """Equal top scores pick the strategy declared first."""
        scores = {
            StrategyName.BASIC: 1,
            StrategyName.CONFIGURABLE: 3,
            StrategyName.PERFORMANCE: 3,
            StrategyName.FORMAT: 3,
        }
        self.assertIs(StrategySelector.pick(scores), StrategyName.CONFIGURABLE)

    def test_basic_wins_all_zero_ties(self):
        """Basic keeps the choice when nobody beats it."""
        scores = {name: 1 for name in StrategyName}
        self.assertIs(StrategySelector.pick(scores), StrategyName.BASIC)


class TestProperties(unittest.TestCase):
    """Verify determinism and the confidence range over many records."""

    def _records(self):
        flags = itertools.product((False, True), repeat=4)
        for retry, proxy, fmt, perf in flags:
            for pages in (0, 8, 40, 150, 300):
                for complexity in Complexity:
                    yield _make_record(
                        estimated_pages=pages,
                        complexity=complexity,
                        requires_retry=retry,
                        requires_proxy=proxy,
                        requires_formatting=fmt,
                        requires_performance=perf,
                    )

    def test_deterministic_and_bounded(self):
        """Same record gives the same selection; confidence stays in [0, 1]."""
        selector = StrategySelector(CrawlConfig())
        for record in self._records():
            first = selector.select(record)
            second = selector.select(record)
            self.assertEqual(first, second)
            self.assertGreaterEqual(first.confidence, 0.0)
            self.assertLessEqual(first.confidence, 1.0)

    def test_confidence_formula(self):
        """Every requirement adds its share on top of the base."""
        record = _make_record(requires_formatting=True, requires_performance=True, requires_proxy=True)
        self.assertAlmostEqual(StrategySelector.confidence(record), 1.0)
        self.assertAlmostEqual(StrategySelector.confidence(_make_record(estimated_pages=0)), 0.5)


class TestKnownSites(unittest.TestCase):
    """Verify the known-site override."""

    def test_profile_overrides_scores(self):
        """A known platform's recommendation wins with high confidence."""
        profile = detect_site("https://developer.mozilla.org/en-US/docs/Web")
        record = _make_record(estimated_pages=20, requires_formatting=True, site_profile=profile)
        selection = StrategySelector(CrawlConfig()).select(record)
        self.assertIs(selection.strategy, StrategyName.PERFORMANCE)
        self.assertAlmostEqual(selection.confidence, 0.9)
        self.assertTrue(selection.reasons[0].startswith("Known site detected"))

    def test_large_known_site_is_certain(self):
        """More than 50 pages on a known platform gives full confidence."""
        profile = detect_site("https://vuejs.org/guide/introduction.html")
        record = replace(_make_record(estimated_pages=51), site_profile=profile)
        selection = StrategySelector(CrawlConfig()).select(record)
        self.assertIs(selection.strategy, StrategyName.CONFIGURABLE)
        self.assertEqual(selection.confidence, 1.0)


if __name__ == "__main__":
    unittest.main()
