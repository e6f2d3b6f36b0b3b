"""
Browser Link Fetcher Tests

The browser is replaced by mocks; no Chromium is launched.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitemapper.crawler.browser import BrowserLinkFetcher
from sitemapper.crawler.fetcher import FetchError, CollaboratorUnavailableError
from sitemapper.utils.config import BrowserConfig


class FakeBrowser:
    """Stands in for a connected Playwright browser and tracks open pages."""

    def __init__(self, links=None, goto_delay=0.0, failing_urls=()):
        self.links = links or []
        self.goto_delay = goto_delay
        self.failing_urls = set(failing_urls)
        self.pages = []
        self.open_pages = 0
        self.max_open_pages = 0
        self.is_connected = MagicMock(return_value=True)
        self.new_page = AsyncMock(side_effect=self._new_page)
        self.close = AsyncMock()

    async def _new_page(self, **kwargs):
        page = MagicMock()
        page.on = MagicMock()
        page.goto = AsyncMock(side_effect=self._goto)
        page.wait_for_selector = AsyncMock()
        page.eval_on_selector_all = AsyncMock(return_value=list(self.links))
        page.close = AsyncMock(side_effect=self._closed)
        self.pages.append(page)
        self.open_pages += 1
        self.max_open_pages = max(self.max_open_pages, self.open_pages)
        return page

    async def _goto(self, url, **kwargs):
        if url == 'about:blank':
            return None
        if url in self.failing_urls:
            raise PlaywrightTimeoutError(f"Timeout exceeded loading {url}")
        await asyncio.sleep(self.goto_delay)

    async def _closed(self):
        self.open_pages -= 1


def make_fetcher(browser, **options):
    options.setdefault('settle_ms', 0)
    fetcher = BrowserLinkFetcher(BrowserConfig(**options), user_agent='test-agent')
    fetcher._browser = browser
    return fetcher


@pytest.mark.asyncio
async def test_returns_rendered_links():
    browser = FakeBrowser(links=['https://ex.com/a', 'https://ex.com/b'])
    fetcher = make_fetcher(browser)

    links = await fetcher.fetch('https://ex.com/', 5000)

    assert links == ['https://ex.com/a', 'https://ex.com/b']
    page = browser.pages[0]
    page.goto.assert_any_await('https://ex.com/', wait_until='domcontentloaded', timeout=5000)
    browser.new_page.assert_awaited_once_with(
        user_agent='test-agent', viewport={'width': 1920, 'height': 1080},
    )


@pytest.mark.asyncio
async def test_pages_are_reused():
    browser = FakeBrowser(links=[])
    fetcher = make_fetcher(browser)

    await fetcher.fetch('https://ex.com/1', 5000)
    await fetcher.fetch('https://ex.com/2', 5000)

    assert browser.new_page.await_count == 1
    assert fetcher.idle_page_count == 1


@pytest.mark.asyncio
async def test_navigation_timeout_raises_fetch_error_and_returns_page():
    browser = FakeBrowser(failing_urls=['https://ex.com/slow'])
    fetcher = make_fetcher(browser)

    with pytest.raises(FetchError):
        await fetcher.fetch('https://ex.com/slow', 5000)

    assert fetcher.idle_page_count == 1
    assert browser.open_pages == 1


@pytest.mark.asyncio
async def test_page_pool_is_bounded():
    browser = FakeBrowser(goto_delay=0.02)
    fetcher = make_fetcher(browser, max_pages=2)

    await asyncio.gather(*(fetcher.fetch(f'https://ex.com/{i}', 5000) for i in range(6)))

    assert browser.max_open_pages <= 2
    assert fetcher.idle_page_count <= 2


@pytest.mark.asyncio
async def test_cancelled_fetch_releases_page():
    browser = FakeBrowser(goto_delay=5)
    fetcher = make_fetcher(browser, max_pages=1)

    task = asyncio.create_task(fetcher.fetch('https://ex.com/hang', 10000))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert fetcher.idle_page_count == 1
    # the slot was released, so another fetch can proceed
    browser.goto_delay = 0
    assert await asyncio.wait_for(fetcher.fetch('https://ex.com/next', 5000), 1) == []


@pytest.mark.asyncio
async def test_launch_failure_is_fatal():
    playwright_cm = MagicMock()
    playwright_cm.start = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))
    fetcher = BrowserLinkFetcher(BrowserConfig(settle_ms=0))

    with patch('sitemapper.crawler.browser.async_playwright', return_value=playwright_cm):
        with pytest.raises(CollaboratorUnavailableError):
            await fetcher.fetch('https://ex.com/', 5000)


@pytest.mark.asyncio
async def test_close_shuts_down_pages_and_browser():
    browser = FakeBrowser()
    fetcher = make_fetcher(browser)
    await fetcher.fetch('https://ex.com/', 5000)

    await fetcher.close()

    browser.pages[0].close.assert_awaited_once()
    browser.close.assert_awaited_once()
    assert fetcher.idle_page_count == 0
