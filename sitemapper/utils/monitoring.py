"""
Monitoring and metrics collection for the sitemap crawler.
"""

import time
import logging
from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


class CrawlerMonitor:
    """
    Prometheus metrics for one crawler process.

    Each monitor owns its registry so several crawls (or tests) can run in
    the same interpreter without clashing on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()
        self.start_time = time.time()

        self.urls_dispatched = Counter(
            'sitemapper_urls_dispatched_total',
            'URLs dispatched for fetching',
            registry=self.registry
        )
        self.fetch_attempts = Counter(
            'sitemapper_fetch_attempts_total',
            'Individual fetch attempts, retries included',
            registry=self.registry
        )
        self.fetch_failures = Counter(
            'sitemapper_fetch_failures_total',
            'Failed fetch attempts',
            ['reason'],
            registry=self.registry
        )
        self.sink_writes = Counter(
            'sitemapper_sink_writes_total',
            'Sitemap sink writes',
            ['status'],
            registry=self.registry
        )
        self.fetch_duration = Histogram(
            'sitemapper_fetch_duration_seconds',
            'Duration of successful fetch attempts',
            registry=self.registry
        )
        self.frontier_size = Gauge(
            'sitemapper_frontier_size',
            'URLs waiting to be fetched',
            registry=self.registry
        )
        self.in_flight = Gauge(
            'sitemapper_in_flight',
            'Fetches dispatched but not resolved',
            registry=self.registry
        )
        self.discovered = Gauge(
            'sitemapper_urls_discovered',
            'URLs discovered so far',
            registry=self.registry
        )

    def start_server(self, port: int):
        """Expose the registry over HTTP for Prometheus to scrape."""
        try:
            start_http_server(port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def record_dispatch(self):
        self.urls_dispatched.inc()

    def record_attempt(self):
        self.fetch_attempts.inc()

    def record_fetch_success(self, duration: float):
        self.fetch_duration.observe(duration)

    def record_fetch_failure(self, reason: str):
        self.fetch_failures.labels(reason=reason).inc()

    def record_sink_write(self, ok: bool):
        self.sink_writes.labels(status='ok' if ok else 'error').inc()

    def update_crawl_state(self, frontier_size: int, in_flight: int, discovered: int):
        """Refresh the gauges describing the live crawl state."""
        self.frontier_size.set(frontier_size)
        self.in_flight.set(in_flight)
        self.discovered.set(discovered)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read a sample from the registry, 0.0 if it was never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def export_text(self) -> bytes:
        return generate_latest(self.registry)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        runtime = time.time() - self.start_time
        dispatched = self.get_value('sitemapper_urls_dispatched_total')
        return {
            'runtime_seconds': runtime,
            'urls_dispatched': dispatched,
            'fetch_attempts': self.get_value('sitemapper_fetch_attempts_total'),
            'urls_discovered': self.get_value('sitemapper_urls_discovered'),
            'urls_per_second': dispatched / runtime if runtime > 0 else 0,
        }
