"""
Crawl orchestration components.
"""

from .rules import RuleFilter, accept, path_depth, sort_links
from .url_frontier import URLFrontier
from .fetcher import LinkFetcher, HttpLinkFetcher, FetchError, CollaboratorUnavailableError
from .parser import LinkParser
from .supervisor import FetchSupervisor
from .scheduler import CrawlScheduler, CrawlState, CrawlPhase

__all__ = [
    'RuleFilter', 'accept', 'path_depth', 'sort_links',
    'URLFrontier',
    'LinkFetcher', 'HttpLinkFetcher', 'FetchError', 'CollaboratorUnavailableError',
    'LinkParser',
    'FetchSupervisor',
    'CrawlScheduler', 'CrawlState', 'CrawlPhase',
]
