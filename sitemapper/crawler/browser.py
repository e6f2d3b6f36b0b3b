"""
Headless-browser link fetcher.

Pages are rendered in Chromium through Playwright so that links produced by
client-side JavaScript are discovered. Browser pages are expensive, so they
are pooled: at most ``max_pages`` exist at once, no matter how many fetches
the scheduler runs concurrently.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from playwright.async_api import async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .fetcher import LinkFetcher, FetchError, CollaboratorUnavailableError
from .parser import SKIPPED_PREFIXES
from ..utils.config import BrowserConfig

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
]

EXTRACT_LINKS_JS = """
(anchors, skipped) => {
    const links = new Set();
    for (const anchor of anchors) {
        const href = anchor.href;
        if (!href || skipped.some(prefix => href.toLowerCase().startsWith(prefix))) {
            continue;
        }
        try {
            links.add(new URL(href, window.location.origin).href);
        } catch (e) {
            // unparseable href
        }
    }
    return Array.from(links);
}
"""


class BrowserLinkFetcher(LinkFetcher):
    """Renders pages in a pooled headless Chromium and collects their links."""

    def __init__(self, config: Optional[BrowserConfig] = None, user_agent: Optional[str] = None):
        self.config = config or BrowserConfig()
        self.user_agent = user_agent
        self.logger = logging.getLogger(__name__)

        self._playwright = None
        self._browser = None
        self._launch_lock = asyncio.Lock()
        self._page_slots = asyncio.Semaphore(self.config.max_pages)
        self._idle_pages: list = []

    async def start(self):
        """Launch the browser if it is not running."""
        async with self._launch_lock:
            if self._browser is not None and self._browser.is_connected():
                return

            self.logger.info("Launching headless browser")
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.config.headless,
                    args=LAUNCH_ARGS,
                )
            except Exception as e:
                await self._stop_playwright()
                raise CollaboratorUnavailableError(f"Failed to launch browser: {e}") from e

            self._idle_pages = []
            self._browser.on('disconnected', self._on_disconnected)
            self.logger.info("Browser launched")

    def _on_disconnected(self, browser):
        self.logger.warning("Browser disconnected, it will be relaunched on next use")
        if browser is self._browser:
            self._browser = None
            self._idle_pages = []

    async def close(self):
        """Close pooled pages, the browser and Playwright."""
        for page in self._idle_pages:
            try:
                await page.close()
            except PlaywrightError as e:
                self.logger.error(f"Error closing pooled page: {e}")
        self._idle_pages = []

        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                self.logger.error(f"Error closing browser: {e}")
            self._browser = None
            self.logger.info("Browser closed")

        await self._stop_playwright()

    async def _stop_playwright(self):
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                self.logger.error(f"Error stopping Playwright: {e}")
            self._playwright = None

    @property
    def idle_page_count(self) -> int:
        return len(self._idle_pages)

    async def _new_page(self):
        await self.start()
        page = await self._browser.new_page(
            user_agent=self.user_agent,
            viewport={'width': 1920, 'height': 1080},
        )
        page.on('console', self._on_console)
        page.on('pageerror', lambda error: self.logger.error(f"[Page Error] {error}"))
        page.on('requestfailed', self._on_request_failed)
        page.on('response', self._on_response)
        page.on('dialog', self._on_dialog)
        return page

    def _on_console(self, message):
        if message.type == 'error':
            self.logger.warning(f"[Page Console] {message.text}")
        elif self.config.verbose:
            self.logger.debug(f"[Page Console {message.type}] {message.text}")

    async def _on_dialog(self, dialog):
        self.logger.info(f"[Page Dialog] {dialog.type}: {dialog.message}")
        await dialog.dismiss()

    def _on_request_failed(self, request):
        self.logger.debug(f"[Request Failed] {request.url}: {request.failure}")

    def _on_response(self, response):
        if response.status >= 400:
            self.logger.debug(f"[HTTP Error] {response.status} - {response.url}")

    async def _release_page(self, page):
        """Reset a page and return it to the pool, closing it if that fails."""
        try:
            await page.goto('about:blank')
            if len(self._idle_pages) < self.config.max_pages:
                self._idle_pages.append(page)
                return
        except PlaywrightError as e:
            self.logger.warning(f"Error resetting page, closing it: {e}")

        try:
            await page.close()
        except PlaywrightError as e:
            self.logger.error(f"Error closing page: {e}")

    @asynccontextmanager
    async def _lease_page(self):
        async with self._page_slots:
            page = self._idle_pages.pop() if self._idle_pages else await self._new_page()
            try:
                yield page
            finally:
                await self._release_page(page)

    async def fetch(self, url: str, timeout_ms: int) -> List[str]:
        """
        Render ``url`` and return the links in the final DOM.

        Raises:
            FetchError: navigation failed or timed out
            CollaboratorUnavailableError: the browser could not be started
        """
        async with self._lease_page() as page:
            start_time = time.time()
            try:
                await page.goto(url, wait_until=self.config.wait_until, timeout=timeout_ms)
            except PlaywrightTimeoutError as e:
                raise FetchError(f"Timeout loading {url} after {timeout_ms}ms") from e
            except PlaywrightError as e:
                raise FetchError(f"Navigation to {url} failed: {e}") from e

            self.logger.debug(f"Loaded {url} in {time.time() - start_time:.2f}s")

            # Single-page apps render their navigation after load
            settle_ms = min(self.config.settle_ms, timeout_ms / 6)
            if settle_ms > 0:
                await asyncio.sleep(settle_ms / 1000)

            try:
                await page.wait_for_selector('a[href]', timeout=3000)
            except PlaywrightTimeoutError:
                self.logger.debug(f"No links rendered on {url} yet, continuing")

            try:
                links = await page.eval_on_selector_all(
                    'a[href]', EXTRACT_LINKS_JS, list(SKIPPED_PREFIXES)
                )
            except PlaywrightError as e:
                raise FetchError(f"Link extraction failed on {url}: {e}") from e

            self.logger.info(f"Fetched {len(links)} unique links from {url}")
            return links
