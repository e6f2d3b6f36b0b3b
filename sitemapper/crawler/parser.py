"""
HTML link extraction.
"""

import logging
from typing import List
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup


SKIPPED_PREFIXES = ('javascript:', 'mailto:', 'tel:')


class LinkParser:
    """
    Extracts outbound links from an HTML document.

    Fragments are preserved: whether a hash route counts as a separate page
    is decided later by the crawl rules.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def extract_links(self, page_url: str, html_content: str) -> List[str]:
        """
        Return absolute http(s) links found in ``a[href]`` elements.

        Args:
            page_url: URL the document was served from, used to resolve
                relative links
            html_content: Raw HTML

        Returns:
            Unique links in document order
        """
        soup = BeautifulSoup(html_content, 'lxml')

        base_tag = soup.find('base', href=True)
        base_url = page_url
        if base_tag:
            resolved_base = self._normalize_url(page_url, base_tag['href'].strip())
            if resolved_base:
                base_url = resolved_base

        links = {}
        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.lower().startswith(SKIPPED_PREFIXES):
                continue

            absolute_url = self._normalize_url(base_url, href)
            if absolute_url and self._is_valid_url(absolute_url):
                links[absolute_url] = None

        self.logger.debug(f"Extracted {len(links)} unique links from {page_url}")
        return list(links)

    def _normalize_url(self, base_url: str, href: str) -> str:
        """Resolve against the base and lowercase the host; everything else is kept as written."""
        try:
            parsed = urlparse(urljoin(base_url, href))
        except ValueError:
            return ""
        return urlunparse((
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path,
            parsed.params,
            parsed.query,
            parsed.fragment,
        ))

    def _is_valid_url(self, url: str) -> bool:
        parsed = urlparse(url)
        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)
