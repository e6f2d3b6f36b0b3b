#!/usr/bin/env python3
"""
Main entry point for the sitemap crawler.
"""

import asyncio
import argparse
import dataclasses
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from sitemapper import __version__
from sitemapper.crawler.fetcher import LinkFetcher, HttpLinkFetcher, CollaboratorUnavailableError
from sitemapper.crawler.scheduler import CrawlScheduler
from sitemapper.crawler.supervisor import FetchSupervisor
from sitemapper.storage.sitemap import FileSitemapSink
from sitemapper.utils.config import Config, load_config, validate_config
from sitemapper.utils.logger import setup_logging, log_system_info
from sitemapper.utils.monitoring import CrawlerMonitor


class CrawlerApp:
    """Main application class for the sitemap crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlScheduler] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self, loop: asyncio.AbstractEventLoop):
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self.scheduler:
                loop.call_soon_threadsafe(self.scheduler.request_shutdown)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def build_fetcher(self, config: Config) -> LinkFetcher:
        if config.crawler.fetcher == 'http':
            return HttpLinkFetcher(
                user_agent=config.crawler.user_agent,
                max_connections=config.crawler.max_concurrent * 2,
            )

        from sitemapper.crawler.browser import BrowserLinkFetcher
        return BrowserLinkFetcher(config.browser, user_agent=config.crawler.user_agent)

    async def run(self, config: Config) -> int:
        """Run one crawl and write the sitemap."""
        self.setup_signal_handlers(asyncio.get_running_loop())
        crawler = config.crawler

        self.logger.info("=== SITEMAP CRAWLER STARTING ===")
        self.logger.info(f"Mode: {'Auto-crawl' if crawler.auto_crawl else 'Fixed list'}")
        self.logger.info(f"Max concurrent fetches: {crawler.max_concurrent}")
        self.logger.info(f"Fetcher: {crawler.fetcher}")

        monitor = CrawlerMonitor()
        if config.monitoring.metrics_enabled:
            monitor.start_server(config.monitoring.prometheus_port)

        sink = FileSitemapSink(
            directory=config.output.directory,
            xml_filename=config.output.xml_file,
            json_filename=config.output.json_file,
            changefreq=config.output.changefreq,
            priority=config.output.priority,
        )

        try:
            async with self.build_fetcher(config) as fetcher:
                supervisor = FetchSupervisor(
                    fetcher,
                    timeout_ms=crawler.fetch_timeout_ms,
                    retry_attempts=crawler.retry_attempts,
                    retry_delay_ms=crawler.retry_delay_ms,
                    monitor=monitor,
                )
                self.scheduler = CrawlScheduler(
                    crawler, supervisor, sink,
                    monitor=monitor,
                    write_partial=config.output.write_partial,
                )
                await self.scheduler.crawl()

        except CollaboratorUnavailableError as e:
            self.logger.error(f"Fatal error: {e}")
            return 1

        finally:
            self.logger.info(f"Metrics: {monitor.get_summary()}")
            self.logger.info("=== SITEMAP CRAWLER FINISHED ===")

        if self.scheduler.state.sink_error is not None:
            return 1
        return 0


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command line overrides to the crawler section."""
    overrides = {}
    if args.base is not None:
        overrides['base'] = args.base
    if args.urls:
        overrides['urls'] = tuple(args.urls)
        overrides['auto_crawl'] = False
    if args.auto is not None:
        overrides['auto_crawl'] = args.auto
    if args.crawl_level is not None:
        overrides['crawl_level'] = args.crawl_level
    if args.max_concurrent is not None:
        overrides['max_concurrent'] = args.max_concurrent
    if args.fetcher is not None:
        overrides['fetcher'] = args.fetcher

    if overrides:
        config.crawler = dataclasses.replace(config.crawler, **overrides)
    if args.output_dir is not None:
        config.output.directory = args.output_dir

    validate_config(config)
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sitemap crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                    # Run with default config.yaml
  python main.py --config my_config.yaml           # Run with custom config
  python main.py --base https://example.com/ --crawl-level 2
  python main.py --urls https://example.com/a https://example.com/b
  python main.py --fetcher http                     # Skip the headless browser
        """
    )

    parser.add_argument('--config', default='config.yaml',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--base', help='Base URL for auto-crawl')
    parser.add_argument('--urls', nargs='+', help='Fixed list of URLs to fetch (disables auto-crawl)')
    parser.add_argument('--auto', dest='auto', action='store_true', default=None,
                        help='Follow links from the base URL')
    parser.add_argument('--no-auto', dest='auto', action='store_false',
                        help='Only fetch the configured URL list')
    parser.add_argument('--crawl-level', type=int, help='Path levels below the base URL to crawl')
    parser.add_argument('--max-concurrent', type=int, help='Maximum concurrent fetches')
    parser.add_argument('--fetcher', choices=['browser', 'http'], help='Link fetcher to use')
    parser.add_argument('--output-dir', help='Directory for sitemap.xml and sitemap.json')
    parser.add_argument('--version', action='version', version=f'Sitemapper {__version__}')
    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    try:
        config = apply_overrides(load_config(args.config, validate=False), args)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 1

    setup_logging(config.logging)
    log_system_info()

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
