"""
URL admission rules and sitemap ordering.

All functions here are pure: the same URL and configuration always produce
the same decision.
"""

import logging
from typing import Iterable, List, Tuple
from urllib.parse import urlsplit

from ..utils.config import CrawlerConfig, SortOrder

logger = logging.getLogger(__name__)


def path_depth(url: str) -> int:
    """
    Count the non-empty path segments of a URL.

    ``https://example.com/docs/guide/`` has depth 2, ``/`` has depth 0.
    Raises ValueError for values that cannot be parsed as a URL.
    """
    if not isinstance(url, str):
        raise ValueError(f"URL must be a string, got {type(url).__name__}")
    path = urlsplit(url).path
    return len([segment for segment in path.split('/') if segment])


def passes_rules(url: str, config: CrawlerConfig) -> bool:
    """Content rules: well-formed URL, hash routes, required substring and ignored substrings."""
    if not isinstance(url, str) or not url:
        return False

    try:
        urlsplit(url)
    except ValueError:
        return False

    if config.disable_hash_routes and '#' in url:
        return False

    if config.strict_presence not in url:
        return False

    return not any(ignored in url for ignored in config.ignore_strings)


def within_depth(url: str, config: CrawlerConfig, base_depth: int) -> bool:
    """True when the URL is at most ``crawl_level`` segments below the base."""
    try:
        depth = path_depth(url)
    except ValueError:
        return False
    return depth <= base_depth + config.crawl_level


def accept(url: str, config: CrawlerConfig, base_depth: int) -> bool:
    """Decide whether a URL may ever enter the frontier."""
    return passes_rules(url, config) and within_depth(url, config, base_depth)


def sort_links(links: Iterable[str], order: SortOrder) -> List[str]:
    """Return a new list of links ordered for output."""
    if order is SortOrder.ASC:
        return sorted(links)
    if order is SortOrder.DESC:
        return sorted(links, reverse=True)
    return list(links)


class RuleFilter:
    """Rules bound to one crawl configuration."""

    def __init__(self, config: CrawlerConfig):
        self.config = config
        try:
            self.base_depth = path_depth(config.base) if config.base else 0
        except ValueError:
            logger.warning(f"Base URL {config.base!r} could not be parsed, using depth 0")
            self.base_depth = 0

    @property
    def max_depth(self) -> int:
        return self.base_depth + self.config.crawl_level

    def admits(self, url: str) -> bool:
        return passes_rules(url, self.config)

    def accept(self, url: str) -> bool:
        return accept(url, self.config, self.base_depth)

    def check_rules(self, urls: Iterable[str]) -> List[str]:
        """Keep the URLs that pass the content rules, in input order."""
        return [url for url in urls if self.admits(url)]

    def partition(self, urls: Iterable[str]) -> Tuple[List[str], List[str]]:
        """Split admitted URLs into (within depth bound, too deep)."""
        eligible, too_deep = [], []
        for url in urls:
            if within_depth(url, self.config, self.base_depth):
                eligible.append(url)
            else:
                too_deep.append(url)
        return eligible, too_deep
