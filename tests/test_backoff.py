"""Tests for the BackoffStrategy class."""

import unittest

from doc_crawler.backoff import BackoffStrategy
from doc_crawler.config import RetryConfig


class TestBackoffStrategy(unittest.TestCase):
    """Verify exponential backoff produces correct sleep durations."""

    def test_first_attempt_returns_base(self):
        """First retry should sleep the base duration plus at most 10% jitter."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=30.0)
        sleep = backoff.get_sleep(attempt=1)
        self.assertGreaterEqual(sleep, 1.0)
        self.assertLessEqual(sleep, 1.1)

    def test_exponential_growth(self):
        """Each attempt doubles the delay; jitter is too small to reorder them."""
        backoff = BackoffStrategy(base_seconds=0.5, max_seconds=100.0)
        sleeps = [backoff.get_sleep(attempt=n) for n in (1, 2, 3)]
        self.assertLess(sleeps[0], sleeps[1])
        self.assertLess(sleeps[1], sleeps[2])

    def test_respects_max_seconds(self):
        """The delay is capped at max_seconds before jitter is added."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=5.0)
        self.assertLessEqual(backoff.get_sleep(attempt=20), 5.5)

    def test_rate_limited_waits_longer(self):
        """An HTTP_429 retry waits twice the normal delay."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=100.0)
        sleep = backoff.get_sleep(attempt=2, error_type="HTTP_429")
        self.assertGreaterEqual(sleep, 4.0)
        self.assertLessEqual(sleep, 4.4)

    def test_from_config(self):
        """Delays come from the retry section of the configuration."""
        backoff = BackoffStrategy.from_config(RetryConfig(base_delay=0.2, max_delay=0.3))
        self.assertLessEqual(backoff.get_sleep(attempt=5), 0.33)
        self.assertGreaterEqual(backoff.get_sleep(attempt=1), 0.2)


if __name__ == "__main__":
    unittest.main()
