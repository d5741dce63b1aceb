"""Tests for the CacheStore class."""

import json
import os
import tempfile
import unittest

from doc_crawler.cache import CACHE_FILENAME, CacheStore
from doc_crawler.errors import CacheError
from doc_crawler.events import CrawlEvent, EventDispatcher


class _FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestCacheTTL(unittest.TestCase):
    """Verify lazy expiry on read."""

    def test_get_returns_fresh_value(self):
        """A value read back within its TTL is returned."""
        cache = CacheStore(ttl=10.0, clock=_FakeClock())
        cache.set("k", {"v": 1})
        self.assertEqual(cache.get("k"), {"v": 1})

    def test_expired_entry_is_absent_and_removed(self):
        """After the TTL the entry reads as absent and is dropped."""
        clock = _FakeClock()
        cache = CacheStore(ttl=10.0, clock=clock)
        cache.set("k", "v")
        clock.now += 10.5
        self.assertIsNone(cache.get("k"))
        self.assertEqual(len(cache), 0)

    def test_per_entry_ttl_override(self):
        """set() may give one entry a shorter TTL."""
        clock = _FakeClock()
        cache = CacheStore(ttl=100.0, clock=clock)
        cache.set("short", 1, ttl=1.0)
        cache.set("long", 2)
        clock.now += 5
        self.assertNotIn("short", cache)
        self.assertIn("long", cache)

    def test_missing_key(self):
        """An unknown key reads as None."""
        self.assertIsNone(CacheStore().get("nope"))


class TestCacheEviction(unittest.TestCase):
    """Verify insertion-time eviction."""

    def test_evicts_oldest_fifth(self):
        """Growing past max_size removes the oldest 20% of max_size."""
        clock = _FakeClock()
        cache = CacheStore(max_size=10, clock=clock)
        for i in range(11):
            clock.now += 1
            cache.set(f"k{i}", i)
        self.assertEqual(len(cache), 9)
        self.assertNotIn("k0", cache)
        self.assertNotIn("k1", cache)
        self.assertIn("k2", cache)
        self.assertIn("k10", cache)

    def test_small_cache_evicts_at_least_one(self):
        """With max_size below 5 one entry is still removed."""
        clock = _FakeClock()
        cache = CacheStore(max_size=2, clock=clock)
        for key in ("a", "b", "c"):
            clock.now += 1
            cache.set(key, key)
        self.assertEqual(len(cache), 2)
        self.assertNotIn("a", cache)

    def test_reads_do_not_protect_entries(self):
        """Reading an old entry does not save it from eviction."""
        clock = _FakeClock()
        cache = CacheStore(max_size=5, clock=clock)
        for i in range(5):
            clock.now += 1
            cache.set(f"k{i}", i)
        cache.get("k0")
        clock.now += 1
        cache.set("k5", 5)
        self.assertNotIn("k0", cache)

    def test_eviction_emits_event(self):
        """Eviction reports how many entries were removed."""
        events = EventDispatcher()
        seen = []
        events.on(CrawlEvent.CACHE_CLEARED, seen.append)
        clock = _FakeClock()
        cache = CacheStore(max_size=5, clock=clock, events=events)
        for i in range(6):
            clock.now += 1
            cache.set(f"k{i}", i)
        self.assertEqual(seen, [{"removed_count": 1}])

    def test_clear(self):
        """clear() empties the store."""
        cache = CacheStore()
        cache.set("a", 1)
        cache.clear()
        self.assertEqual(len(cache), 0)


class TestCachePersistence(unittest.TestCase):
    """Verify persist() and restore()."""

    def test_round_trip_skips_expired(self):
        """Only entries still fresh at restore time are loaded."""
        with tempfile.TemporaryDirectory() as tmp:
            clock = _FakeClock()
            cache = CacheStore(ttl=100.0, directory=tmp, clock=clock)
            cache.set("old", "x", ttl=5.0)
            cache.set("new", {"title": "T"})
            path = cache.persist()
            self.assertEqual(path, os.path.join(tmp, CACHE_FILENAME))

            clock.now += 10
            restored = CacheStore(ttl=100.0, directory=tmp, clock=clock)
            self.assertEqual(restored.restore(), 1)
            self.assertEqual(restored.get("new"), {"title": "T"})
            self.assertIsNone(restored.get("old"))

    def test_restore_without_file(self):
        """Restoring when nothing was persisted loads nothing."""
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(CacheStore(directory=tmp).restore(), 0)

    def test_corrupt_file_raises_cache_error(self):
        """An unreadable cache file raises CacheError."""
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, CACHE_FILENAME), "w", encoding="utf-8") as f:
                f.write("{not json")
            with self.assertRaises(CacheError):
                CacheStore(directory=tmp).restore()

    def test_persist_without_directory(self):
        """Persisting a memory-only cache is an error."""
        with self.assertRaises(CacheError):
            CacheStore().persist()

    def test_persisted_format(self):
        """Each key maps to its value, insertion time and TTL."""
        with tempfile.TemporaryDirectory() as tmp:
            cache = CacheStore(ttl=50.0, directory=tmp, clock=_FakeClock(7.0))
            cache.set("k", [1, 2])
            with open(cache.persist(), encoding="utf-8") as f:
                data = json.load(f)
        self.assertEqual(data, {"k": {"value": [1, 2], "inserted_at": 7.0, "ttl": 50.0}})


if __name__ == "__main__":
    unittest.main()
