"""
Utility modules for the sitemap crawler.
"""

from .config import Config, ConfigManager, CrawlerConfig, SortOrder, load_config

__all__ = ['Config', 'ConfigManager', 'CrawlerConfig', 'SortOrder', 'load_config']
