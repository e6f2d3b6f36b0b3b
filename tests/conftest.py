"""
Test configuration and fixtures for sitemapper tests
"""

import asyncio

import pytest

from sitemapper.crawler.fetcher import LinkFetcher, FetchError
from sitemapper.crawler.scheduler import CrawlScheduler
from sitemapper.crawler.supervisor import FetchSupervisor
from sitemapper.storage.sitemap import SitemapSink, SinkError
from sitemapper.utils.config import CrawlerConfig


class FakeFetcher(LinkFetcher):
    """In-memory site: maps each URL to the links on it."""

    def __init__(self, site=None, failures=None, delay=0.0, errors=None):
        self.site = site or {}
        # url -> number of attempts that fail before one succeeds
        self.failures = dict(failures or {})
        # url -> exception raised on every attempt
        self.errors = errors or {}
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self.on_fetch = None

    async def fetch(self, url, timeout_ms):
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.on_fetch:
                self.on_fetch(url)
            if url in self.errors:
                raise self.errors[url]
            await asyncio.sleep(self.delay)
            if self.failures.get(url, 0) > 0:
                self.failures[url] -= 1
                raise FetchError(f"Simulated failure for {url}")
            return list(self.site.get(url, []))
        finally:
            self.active -= 1


class RecordingSink(SitemapSink):
    def __init__(self, fail=False):
        self.writes = []
        self.fail = fail

    async def write(self, urls):
        self.writes.append(list(urls))
        if self.fail:
            raise SinkError("disk full")


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return RecordingSink(fail=True)


@pytest.fixture
def make_config():
    def _make(**overrides):
        options = {
            'base': '/',
            'crawl_level': 1,
            'max_concurrent': 3,
            'fetch_timeout_ms': 1000,
            'retry_attempts': 3,
            'retry_delay_ms': 0,
            'sort_by': 'asc',
        }
        options.update(overrides)
        return CrawlerConfig(**options)
    return _make


@pytest.fixture
def make_scheduler(make_config, recording_sink):
    """Build a scheduler around a fetcher; extra keywords go to CrawlerConfig."""
    def _make(fetcher, sink=None, monitor=None, on_complete=None, write_partial=True, **overrides):
        config = make_config(**overrides)
        supervisor = FetchSupervisor(
            fetcher,
            timeout_ms=config.fetch_timeout_ms,
            retry_attempts=config.retry_attempts,
            retry_delay_ms=config.retry_delay_ms,
            monitor=monitor,
        )
        return CrawlScheduler(
            config, supervisor, sink if sink is not None else recording_sink,
            monitor=monitor, on_complete=on_complete, write_partial=write_partial,
        )
    return _make
