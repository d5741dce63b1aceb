"""Adaptive documentation crawler package.

Analyzes a documentation site, selects a crawl strategy for it and runs
the crawl, streaming large sites under bounded memory and concurrency.

Key modules:
    orchestrator -- CrawlOrchestrator: analyze, crawl, generate_report
    analyzer     -- SiteAnalyzer probing the start page
    selector     -- StrategySelector scoring strategies for an analysis
    strategies   -- CrawlStrategy and the basic/configurable/performance/format crawls
    factory      -- StrategyFactory, the single strategy dispatch point
    scheduler    -- StreamingScheduler for chunked, bounded-memory crawling
    controller   -- ConcurrencyController bounding in-flight pages
    memory       -- MemoryMonitor sampling process memory
    cache        -- CacheStore with TTL and size-bounded eviction
    prioritizer  -- UrlPrioritizer ordering pages by URL pattern
    metrics      -- MetricsCollector and error classification
    base         -- PagePipeline fetching and converting one page
    fetcher      -- PageFetcher HTTP client with retry and rate limiting
    extractor    -- link extraction and HTML to markdown conversion
    formatter    -- output assembly, table of contents, metadata blocks
    storage      -- FileSink and JsonlPageLog outputs
    config       -- CrawlConfig and JSON config loading
    sites        -- known documentation platform profiles
    events       -- CrawlEvent and the per-job EventDispatcher
    models       -- AnalysisRecord, PageResult, CrawlResult dataclasses
    errors       -- CrawlerError hierarchy and error codes
    backoff      -- BackoffStrategy for exponential retry delays
    rate_limiter -- AsyncRateLimiter for QPS throttling
"""
