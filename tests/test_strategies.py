"""Tests for the crawl strategy classes."""

import json
import os
import tempfile
import unittest

from doc_crawler.cache import CacheStore
from doc_crawler.config import config_from_dict
from doc_crawler.context import CrawlJob, JobContext
from doc_crawler.errors import ErrorCode, NetworkError
from doc_crawler.fetcher import FetchResponse
from doc_crawler.formatter import PAGE_SEPARATOR
from doc_crawler.models import AnalysisRecord, Complexity, StrategyName
from doc_crawler.storage import StorageBase
from doc_crawler.strategies import BasicStrategy, ConfigurableStrategy, FormatStrategy, PerformanceStrategy

BASE = "https://docs.example.com"


def _page(title: str, body: str = "Some text.") -> str:
    return f"<html><head><title>{title}</title></head><body><main><h2>{title}</h2><p>{body}</p></main></body></html>"


class _FakeFetcher:
    """Serves pages from a dict; unknown URLs fail with a 404."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def fetch(self, url, headers=None, timeout=None):
        self.calls.append(url)
        if url not in self.pages:
            raise NetworkError(
                "Request failed with status code 404 Not Found",
                url=url,
                code=ErrorCode.HTTP_NOT_FOUND,
                status_code=404,
            )
        return FetchResponse(url=url, status_code=200, text=self.pages[url], content_type="text/html")


class _MemorySink(StorageBase):
    def __init__(self):
        self.files = {}
        self.appends = 0

    def write(self, filename, content):
        self.files[filename] = content
        return filename

    def append(self, filename, content):
        self.files[filename] = self.files.get(filename, "") + content
        self.appends += 1
        return filename


def _make_job(urls, pages, strategy=StrategyName.BASIC, config=None, cache=None):
    config = config or config_from_dict({})
    record = AnalysisRecord(
        url=BASE,
        estimated_pages=len(urls),
        complexity=Complexity.SIMPLE,
        requires_retry=False,
        requires_proxy=False,
        requires_formatting=False,
        requires_performance=False,
        discovered_urls=tuple(urls),
    )
    fetcher = _FakeFetcher(pages)
    job = CrawlJob(
        url=BASE,
        analysis=record,
        strategy=strategy,
        context=JobContext(config=config, cache=cache),
        sink=_MemorySink(),
        confidence=0.7,
        reasoning=["because"],
        fetcher=fetcher,
        memory_sampler=lambda: 10.0,
    )
    return job, fetcher


class TestSequentialStrategies(unittest.IsolatedAsyncioTestCase):
    """Verify the basic, configurable and format crawls."""

    async def test_basic_crawl_isolates_failures(self):
        """A failing page is reported while the others are still written."""
        urls = [f"{BASE}/a", f"{BASE}/missing", f"{BASE}/b"]
        pages = {urls[0]: _page("Page A"), urls[2]: _page("Page B")}
        job, fetcher = _make_job(urls, pages)

        result = await BasicStrategy().execute(job)

        self.assertTrue(result.success)
        self.assertEqual(fetcher.calls, urls)
        self.assertEqual(result.statistics.total_pages, 3)
        self.assertEqual(result.statistics.successful_pages, 2)
        self.assertEqual(result.statistics.failed_pages, 1)
        self.assertEqual(result.error_distribution, {"not_found": 1})
        self.assertEqual(len(result.errors), 1)
        self.assertIn("/missing", result.errors[0])
        self.assertEqual(result.reasoning, ["because"])
        self.assertEqual(result.confidence, 0.7)

        output = job.sink.files["output.md"]
        self.assertIn("# Page A", output)
        self.assertIn("# Page B", output)
        self.assertIn("\n\n---\n\n", output)

    async def test_all_pages_failing_is_not_success(self):
        """Success needs at least one converted page."""
        job, _ = _make_job([f"{BASE}/x", f"{BASE}/y"], {})
        result = await ConfigurableStrategy().execute(job)
        self.assertFalse(result.success)
        self.assertEqual(result.statistics.failed_pages, 2)

    async def test_stop_on_first_error(self):
        """With continue_on_error off the crawl stops at the first failure."""
        urls = [f"{BASE}/missing", f"{BASE}/a"]
        config = config_from_dict({"continue_on_error": False})
        job, fetcher = _make_job(urls, {urls[1]: _page("A")}, config=config)
        result = await BasicStrategy().execute(job)
        self.assertEqual(fetcher.calls, [urls[0]])
        self.assertTrue(job.context.aborted)
        self.assertIn("Crawl stopped after the first page error", result.warnings)

    async def test_duplicate_urls_are_skipped(self):
        """A repeated URL is fetched once and reported as skipped."""
        url = f"{BASE}/a"
        job, fetcher = _make_job([url, url], {url: _page("A")})
        result = await BasicStrategy().execute(job)
        self.assertEqual(fetcher.calls, [url])
        self.assertEqual(result.statistics.failed_pages, 0)
        self.assertEqual(result.metrics.skipped_pages, 1)

    async def test_format_adds_toc_and_metadata(self):
        """The format crawl prefixes a TOC and gives each page a metadata block."""
        urls = [f"{BASE}/a", f"{BASE}/b"]
        job, _ = _make_job(urls, {u: _page(f"Title {u[-1]}") for u in urls}, strategy=StrategyName.FORMAT)
        result = await FormatStrategy().execute(job)
        output = job.sink.files["output.md"]
        self.assertTrue(result.success)
        self.assertTrue(output.startswith('---\ntitle: "Documentation Collection"'))
        self.assertIn("## Table of Contents", output)
        self.assertIn("word_count: ", output)
        self.assertTrue(output.rsplit(PAGE_SEPARATOR, 1)[1].startswith("## Collection Statistics"))
        self.assertIn("- [Title a](#title-a)", output)
        self.assertIn('title: "Title b"', output)
        self.assertIn(f'url: "{BASE}/a"', output)


class TestPerformanceStrategy(unittest.IsolatedAsyncioTestCase):
    """Verify the streaming crawl."""

    async def test_streams_batches_to_output(self):
        """Every page ends up in the output, appended batch by batch."""
        urls = [f"{BASE}/p{i}" for i in range(12)]
        config = config_from_dict({"streaming": {"chunk_size": 10, "batch_size": 5}})
        job, _ = _make_job(urls, {u: _page(f"Page {i}") for i, u in enumerate(urls)}, StrategyName.PERFORMANCE, config)

        result = await PerformanceStrategy().execute(job)

        self.assertTrue(result.success)
        self.assertEqual(result.statistics.successful_pages, 12)
        self.assertGreaterEqual(job.sink.appends, 3)
        output = job.sink.files["output.md"]
        for i in range(12):
            self.assertIn(f"# Page {i}\n", output)
        self.assertEqual(output.count("\n\n---\n\n"), 11)
        self.assertIsNotNone(result.metrics)
        self.assertEqual(result.metrics.peak_memory_mb, 10.0)

    async def test_cached_pages_are_not_fetched(self):
        """A fresh cache entry is served without a network call."""
        urls = [f"{BASE}/a", f"{BASE}/b"]
        cache = CacheStore()
        cache.set(urls[0], {"url": urls[0], "title": "Cached", "content": "## Cached\n\nfrom cache"})
        job, fetcher = _make_job(urls, {urls[1]: _page("B")}, StrategyName.PERFORMANCE, cache=cache)

        result = await PerformanceStrategy().execute(job)

        self.assertEqual(fetcher.calls, [urls[1]])
        self.assertEqual(result.metrics.cache_hits, 1)
        self.assertIn("from cache", job.sink.files["output.md"])
        self.assertIn(urls[1], cache)

    async def test_writes_page_log(self):
        """Flushed batches are recorded as JSON lines when a page log is set."""
        with tempfile.TemporaryDirectory() as tmp:
            log_path = os.path.join(tmp, "pages.jsonl")
            urls = [f"{BASE}/a", f"{BASE}/missing"]
            config = config_from_dict({"output": {"page_log": log_path}})
            job, _ = _make_job(urls, {urls[0]: _page("A")}, StrategyName.PERFORMANCE, config)

            await PerformanceStrategy().execute(job)

            with open(log_path, encoding="utf-8") as f:
                records = [json.loads(line) for line in f]
        self.assertEqual(sorted(r["status"] for r in records), ["failed", "success"])
        failed = next(r for r in records if r["status"] == "failed")
        self.assertEqual(failed["error_category"], "not_found")


if __name__ == "__main__":
    unittest.main()
