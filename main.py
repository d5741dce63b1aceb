from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, replace
from typing import Optional

from doc_crawler.config import CrawlConfig, load_config
from doc_crawler.errors import ConfigError, ProbeError
from doc_crawler.events import CrawlEvent
from doc_crawler.orchestrator import CrawlOrchestrator

logger = logging.getLogger("doc_crawler")


def _build_config(args: argparse.Namespace) -> CrawlConfig:
    config = load_config(args.config) if args.config else CrawlConfig()
    if args.output:
        config = replace(config, output=replace(config.output, output_file=args.output))
    if args.concurrency:
        config = replace(config, concurrency=args.concurrency)
    return config.ensure_valid()


def _print_progress(event: CrawlEvent, payload: dict) -> None:
    if event is CrawlEvent.CHUNK_COMPLETED:
        print(f"  chunk {payload['chunk_index'] + 1}: {payload['completed']}/{payload['total']} pages")
    elif event is CrawlEvent.PAGE_ERROR:
        print(f"  failed: {payload['url']} ({payload['error']})")


async def run(args: argparse.Namespace, config: CrawlConfig) -> int:
    orchestrator = CrawlOrchestrator(config)
    orchestrator.events.subscribe(_print_progress)

    if args.analyze_only:
        try:
            await orchestrator.analyze(args.url)
        except ProbeError as exc:
            print(f"Analysis failed: {exc}", file=sys.stderr)
            return 1
        print(orchestrator.generate_report())
        return 0

    result = await orchestrator.crawl(args.url)
    print(orchestrator.generate_report())
    for error in result.errors:
        print(f"error: {error}", file=sys.stderr)
    if args.metrics and result.metrics is not None:
        with open(args.metrics, "w", encoding="utf-8") as f:
            json.dump(asdict(result.metrics), f, ensure_ascii=False, indent=2)
        print(f"\nMetrics written to {args.metrics}")

    stats = result.statistics
    print(f"\nDONE: success={result.success} pages={stats.successful_pages}/{stats.total_pages} output={result.output_file}")
    return 0 if result.success else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl a documentation site into a single markdown file")
    parser.add_argument("url", help="Start page of the documentation site")
    parser.add_argument("--config", help="Path to a JSON configuration file")
    parser.add_argument("--output", help="Output file name (overrides the config)")
    parser.add_argument("--concurrency", type=int, help="Max pages in flight (overrides the config)")
    parser.add_argument("--analyze-only", action="store_true", help="Print the analysis report without crawling")
    parser.add_argument("--metrics", help="Write crawl metrics as JSON to this path")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    logger.debug(config.summary())
    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
