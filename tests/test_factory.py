"""Tests for the StrategyFactory class."""

import unittest

from doc_crawler.errors import UnknownStrategyError
from doc_crawler.factory import StrategyFactory
from doc_crawler.models import StrategyName
from doc_crawler.strategies import (
    BasicStrategy,
    ConfigurableStrategy,
    FormatStrategy,
    PerformanceStrategy,
)


class TestStrategyFactory(unittest.TestCase):
    """Verify that the factory creates the correct strategy type."""

    def setUp(self):
        """Set up shared factory instance."""
        self.factory = StrategyFactory()

    def test_creates_each_strategy(self):
        """Every strategy name maps onto its class."""
        expected = {
            StrategyName.BASIC: BasicStrategy,
            StrategyName.CONFIGURABLE: ConfigurableStrategy,
            StrategyName.PERFORMANCE: PerformanceStrategy,
            StrategyName.FORMAT: FormatStrategy,
        }
        for name, cls in expected.items():
            with self.subTest(name=name):
                strategy = self.factory.create(name)
                self.assertIsInstance(strategy, cls)
                self.assertIs(strategy.name, name)

    def test_accepts_plain_strings(self):
        """The string value of a strategy name works too."""
        self.assertIsInstance(self.factory.create("performance"), PerformanceStrategy)

    def test_instances_are_reused(self):
        """Strategies are stateless, so the same instance comes back."""
        self.assertIs(self.factory.create(StrategyName.BASIC), self.factory.create("basic"))

    def test_unknown_strategy_raises_error(self):
        """A name outside the closed set raises UnknownStrategyError."""
        with self.assertRaises(UnknownStrategyError) as ctx:
            self.factory.create("turbo")
        self.assertIn("turbo", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
