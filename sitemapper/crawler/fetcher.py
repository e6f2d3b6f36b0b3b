"""
Link fetchers: turn a URL into the list of links found on that page.
"""

import asyncio
import aiohttp
import logging
from typing import List, Optional
from aiohttp import ClientSession, ClientTimeout, ClientError

from .parser import LinkParser


class FetchError(Exception):
    """A single fetch attempt failed. Transient, safe to retry."""
    pass


class CollaboratorUnavailableError(Exception):
    """The fetching backend cannot run at all (e.g. the browser will not start)."""
    pass


class LinkFetcher:
    """
    Base class for link fetchers.

    ``fetch`` must be safe to call concurrently and must release whatever it
    acquired on every exit path, cancellation included.
    """

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        pass

    async def close(self):
        pass

    async def fetch(self, url: str, timeout_ms: int) -> List[str]:
        raise NotImplementedError


class HttpLinkFetcher(LinkFetcher):
    """
    Fetches pages over plain HTTP and parses links out of the returned HTML.

    No JavaScript is executed, so links rendered client-side are missed.
    """

    HTML_TYPES = ('text/html', 'application/xhtml+xml')

    def __init__(self, user_agent: str, max_connections: int = 10,
                 max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.max_connections = max_connections
        self.max_content_size = max_content_size

        self.logger = logging.getLogger(__name__)
        self.parser = LinkParser()
        self.session: Optional[ClientSession] = None

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={'User-Agent': self.user_agent},
                connector=aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=300,
                )
            )
            self.logger.info("HTTP fetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("HTTP fetcher session closed")

    async def fetch(self, url: str, timeout_ms: int) -> List[str]:
        """
        Fetch a single URL and return the links on it.

        Raises:
            FetchError: on timeouts, transport errors and HTTP error statuses
        """
        if self.session is None:
            await self.start()

        timeout = ClientTimeout(total=timeout_ms / 1000)
        try:
            async with self.session.get(url, timeout=timeout) as response:
                if response.status >= 400:
                    raise FetchError(f"HTTP {response.status} for {url}")

                content_type = response.headers.get('content-type', '').lower()
                if not any(html_type in content_type for html_type in self.HTML_TYPES):
                    self.logger.debug(f"Skipping non-HTML content: {url} ({content_type})")
                    return []

                html = await self._read_content(response, url)
                return self.parser.extract_links(str(response.url), html)

        except asyncio.TimeoutError as e:
            raise FetchError(f"Timeout fetching {url}") from e
        except ClientError as e:
            raise FetchError(f"Client error fetching {url}: {e}") from e

    async def _read_content(self, response, url: str) -> str:
        """Read the body in chunks, refusing anything over ``max_content_size``."""
        content_length = response.headers.get('content-length')
        if content_length and int(content_length) > self.max_content_size:
            raise FetchError(f"Content too large ({content_length} bytes): {url}")

        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if len(content_bytes) > self.max_content_size:
                raise FetchError(f"Content exceeded size limit during reading: {url}")

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding, errors='replace')
        except LookupError:
            self.logger.debug(f"Unknown charset {encoding!r} for {url}, decoding as utf-8")
            return content_bytes.decode('utf-8', errors='replace')
