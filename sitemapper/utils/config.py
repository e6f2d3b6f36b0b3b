"""
Configuration management for the sitemap crawler.
"""

import yaml
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass, field, fields


class SortOrder(Enum):
    """Output ordering of the finished sitemap."""
    ASC = "asc"
    DESC = "desc"
    NONE = "none"

    @classmethod
    def parse(cls, value) -> 'SortOrder':
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NONE
        text = str(value).strip().lower()
        if text == "dsc":
            return cls.DESC
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"sort_by must be one of asc, desc, none (got {value!r})")


def _as_tuple(value) -> Tuple[str, ...]:
    """A single string is one entry, not a sequence of characters."""
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class CrawlerConfig:
    """Configuration for crawler behavior. Immutable for the lifetime of a crawl."""
    base: str = ""
    urls: Tuple[str, ...] = ()
    crawl_level: int = 1
    max_concurrent: int = 3
    auto_crawl: bool = True
    disable_hash_routes: bool = True
    strict_presence: str = ""
    ignore_strings: Tuple[str, ...] = ()
    sort_by: SortOrder = SortOrder.ASC
    fetch_timeout_ms: int = 30000
    retry_attempts: int = 3
    retry_delay_ms: int = 2000
    fetcher: str = "browser"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    def __post_init__(self):
        # YAML hands us lists and plain strings
        object.__setattr__(self, 'urls', _as_tuple(self.urls))
        object.__setattr__(self, 'ignore_strings', _as_tuple(self.ignore_strings))
        object.__setattr__(self, 'strict_presence', self.strict_presence or "")
        object.__setattr__(self, 'sort_by', SortOrder.parse(self.sort_by))


@dataclass
class BrowserConfig:
    """Configuration for the headless browser fetcher."""
    headless: bool = True
    max_pages: int = 5
    wait_until: str = "domcontentloaded"
    settle_ms: int = 5000
    verbose: bool = False


@dataclass
class OutputConfig:
    """Configuration for sitemap output."""
    directory: str = "."
    xml_file: str = "sitemap.xml"
    json_file: str = "sitemap.json"
    changefreq: str = "weekly"
    priority: float = 0.8
    write_partial: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/sitemapper.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _section(cls, data: Optional[Dict[str, Any]]):
    """Build a section dataclass, rejecting keys it does not know."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} options: {', '.join(sorted(unknown))}")
    return cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self, validate: bool = True) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = Config(
            crawler=_section(CrawlerConfig, config_data.get('crawler')),
            browser=_section(BrowserConfig, config_data.get('browser')),
            output=_section(OutputConfig, config_data.get('output')),
            logging=_section(LoggingConfig, config_data.get('logging')),
            monitoring=_section(MonitoringConfig, config_data.get('monitoring')),
        )

        if validate:
            validate_config(self._config)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler

    if crawler.auto_crawl and not crawler.base:
        raise ValueError("A base URL must be provided when auto_crawl is enabled")

    if not crawler.auto_crawl and not crawler.urls:
        raise ValueError("At least one URL must be provided when auto_crawl is disabled")

    if crawler.crawl_level < 0:
        raise ValueError("crawl_level must be non-negative")

    if crawler.max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")

    if crawler.fetch_timeout_ms <= 0:
        raise ValueError("fetch_timeout_ms must be positive")

    if crawler.retry_attempts < 1:
        raise ValueError("retry_attempts must be at least 1")

    if crawler.retry_delay_ms < 0:
        raise ValueError("retry_delay_ms must be non-negative")

    if crawler.fetcher not in ('browser', 'http'):
        raise ValueError("fetcher must be 'browser' or 'http'")

    if config.browser.max_pages < 1:
        raise ValueError("browser.max_pages must be at least 1")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: str = "config.yaml", validate: bool = True) -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config(validate)
