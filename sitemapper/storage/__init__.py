"""
Output layer for finished sitemaps.
"""

from .sitemap import SitemapSink, FileSitemapSink, SinkError

__all__ = ['SitemapSink', 'FileSitemapSink', 'SinkError']
