"""
Sitemapper

Crawls a website from a base URL (or a fixed list of pages) and writes a
sorted, deduplicated sitemap.
"""

__version__ = "1.0.0"
__description__ = "Concurrent sitemap generator with browser or HTTP link discovery"
