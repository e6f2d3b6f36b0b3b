"""
Crawl scheduler that drives the frontier, dispatches fetches with bounded
concurrency and finalizes the sitemap exactly once.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .fetcher import CollaboratorUnavailableError
from .rules import RuleFilter, sort_links
from .supervisor import FetchSupervisor
from .url_frontier import URLFrontier
from ..storage.sitemap import SitemapSink
from ..utils.config import CrawlerConfig
from ..utils.monitoring import CrawlerMonitor


class CrawlPhase(Enum):
    """Lifecycle of a single crawl."""
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    COMPLETED = "completed"


@dataclass
class CrawlState:
    """Mutable state of one crawl. Only the owning scheduler mutates it."""
    frontier: URLFrontier = field(default_factory=URLFrontier)
    phase: CrawlPhase = CrawlPhase.IDLE
    expand: bool = True
    in_flight: int = 0
    dispatched: int = 0
    completed: int = 0
    finalized: bool = False
    aborted_by: Optional[str] = None
    sink_error: Optional[Exception] = None
    result: Optional[List[str]] = None
    start_time: float = field(default_factory=time.time)

    @property
    def is_active(self) -> bool:
        return self.phase in (CrawlPhase.RUNNING, CrawlPhase.DRAINING)

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time


class CrawlScheduler:
    """
    Coordinates one crawl at a time.

    Two modes share the same state machine:

    * auto-crawl (``crawl_site``) seeds the frontier with the base URL and
      feeds every admitted link within the depth bound back into it;
    * fixed-list (``crawl_urls``) fetches only the given URLs and records the
      links they contain without following them.

    Fetches run as tasks, but their results are applied by the dispatch loop
    itself, so every frontier and counter mutation happens in one place.
    """

    def __init__(self, config: CrawlerConfig, supervisor: FetchSupervisor, sink: SitemapSink,
                 monitor: Optional[CrawlerMonitor] = None,
                 on_complete: Optional[Callable[[List[str]], None]] = None,
                 write_partial: bool = True):
        self.config = config
        self.supervisor = supervisor
        self.sink = sink
        self.monitor = monitor
        self.on_complete = on_complete
        self.write_partial = write_partial
        self.logger = logging.getLogger(__name__)

        self.rules = RuleFilter(config)
        self.state = CrawlState()
        self._tasks: Set[asyncio.Task] = set()
        self._shutdown_requested = False

    @property
    def phase(self) -> CrawlPhase:
        return self.state.phase

    async def crawl(self) -> Optional[List[str]]:
        """Run the crawl selected by ``config.auto_crawl``."""
        if self.config.auto_crawl:
            return await self.crawl_site()
        return await self.crawl_urls(self.config.urls)

    async def crawl_site(self) -> Optional[List[str]]:
        """Crawl outward from the base URL until the depth-bounded site is exhausted."""
        self.logger.info(
            f"Starting auto-crawl from base URL: {self.config.base} "
            f"(crawl level {self.config.crawl_level})"
        )
        return await self._start([self.config.base], expand=True)

    async def crawl_urls(self, urls: Iterable[str]) -> Optional[List[str]]:
        """Fetch a fixed list of URLs without following their links."""
        urls = list(urls)
        self.logger.info(f"Processing {len(urls)} URLs from a fixed list")
        return await self._start(urls, expand=False)

    async def _start(self, seeds: List[str], expand: bool) -> Optional[List[str]]:
        # No await before the phase changes, so concurrent starts see RUNNING
        if self.state.is_active:
            self.logger.warning("Crawl already in progress, ignoring duplicate start request")
            return None

        self.state = CrawlState(expand=expand)
        self._shutdown_requested = False

        seeds = [url for url in seeds if url]
        if not seeds:
            self.logger.warning("No seed URLs given, nothing to crawl")
            return []

        self.state.frontier.enqueue_many(seeds)
        self.state.phase = CrawlPhase.RUNNING

        try:
            await self._run()
        except CollaboratorUnavailableError as e:
            self.logger.error(f"Fetcher unavailable, aborting crawl: {e}")
            self.state.aborted_by = 'error'
            await self._cancel_pending()
            await self._finalize()
            raise
        except asyncio.CancelledError:
            self.logger.warning("Crawl cancelled")
            self.state.aborted_by = 'cancelled'
            await self._cancel_pending()
            await self._finalize()
            raise
        except Exception as e:
            self.logger.error(f"Unexpected error during crawl: {e}", exc_info=True)
            self.state.aborted_by = 'error'
            await self._cancel_pending()
            await self._finalize()
            raise

        return await self._finalize()

    async def _run(self):
        """Dispatch while slots are free, then sleep until a fetch completes."""
        state = self.state
        while True:
            self._dispatch()
            self._update_phase()
            if not self._tasks:
                break

            done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                self._tasks.discard(task)
                state.in_flight -= 1
                state.completed += 1
                url, links = task.result()
                self._apply_links(url, links)

    def _dispatch(self):
        state = self.state
        while not self._shutdown_requested and state.in_flight < self.config.max_concurrent:
            url = state.frontier.dequeue()
            if url is None:
                break

            task = asyncio.create_task(self._fetch(url))
            self._tasks.add(task)
            state.in_flight += 1
            state.dispatched += 1
            if self.monitor:
                self.monitor.record_dispatch()

            self.logger.info(
                f"[{state.completed + 1}/{state.dispatched}] Fetching {url} "
                f"(active {state.in_flight}, queued {state.frontier.pending_count()})"
            )

    async def _fetch(self, url: str) -> Tuple[str, List[str]]:
        return url, await self.supervisor.fetch(url)

    def _apply_links(self, url: str, links: List[str]):
        """Fold the links found on ``url`` into the crawl state."""
        state = self.state
        admitted = self.rules.check_rules(links)
        state.frontier.record(admitted)
        self.logger.debug(f"{url}: {len(links)} links found, {len(admitted)} admitted")

        if not state.expand or not admitted:
            return

        eligible, too_deep = self.rules.partition(admitted)
        if too_deep:
            self.logger.debug(f"Ignoring {len(too_deep)} URLs due to crawl level restrictions")

        added = state.frontier.enqueue_many(eligible)
        if added:
            self.logger.info(f"Adding {added} new URLs to queue")

    def _update_phase(self):
        state = self.state
        if state.frontier.is_empty() or self._shutdown_requested:
            phase = CrawlPhase.DRAINING if state.in_flight > 0 else state.phase
        else:
            phase = CrawlPhase.RUNNING

        if phase is not state.phase:
            self.logger.debug(f"Crawl phase {state.phase.value} -> {phase.value}")
            state.phase = phase

        if self.monitor:
            self.monitor.update_crawl_state(
                state.frontier.pending_count(), state.in_flight, state.frontier.discovered_count()
            )

    async def _cancel_pending(self):
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.state.in_flight = 0

    async def _finalize(self) -> List[str]:
        """Hand the discovered URLs to the sink. Runs at most once per crawl."""
        state = self.state
        if state.finalized:
            return state.result
        state.finalized = True

        urls = sort_links(state.frontier.discovered(), self.config.sort_by)
        state.result = urls
        self.logger.info(f"Finalizing sitemap with {len(urls)} unique URLs")

        if state.aborted_by and not self.write_partial:
            self.logger.warning(f"Crawl ended early ({state.aborted_by}), skipping sitemap output")
        else:
            try:
                await self.sink.write(urls)
                if self.monitor:
                    self.monitor.record_sink_write(True)
            except Exception as e:
                self.logger.error(f"Error writing sitemap: {e}", exc_info=True)
                state.sink_error = e
                if self.monitor:
                    self.monitor.record_sink_write(False)

        state.phase = CrawlPhase.COMPLETED
        self._log_final_stats()

        if self.on_complete:
            self.on_complete(urls)
        return urls

    def request_shutdown(self):
        """Stop dispatching new fetches; in-flight ones finish and the crawl finalizes."""
        if not self.state.is_active:
            self.logger.info("Shutdown requested but no crawl is running")
            return
        if self._shutdown_requested:
            return

        self._shutdown_requested = True
        self.state.aborted_by = 'shutdown'
        self.logger.info(
            f"Shutdown requested, waiting for {self.state.in_flight} in-flight fetches; "
            f"{self.state.frontier.pending_count()} queued URLs will not be fetched"
        )

    def _log_final_stats(self):
        stats = self.get_stats()
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"URLs fetched: {stats['dispatched']}")
        self.logger.info(f"URLs discovered: {stats['total_discovered']}")
        self.logger.info(f"URLs left in queue: {stats['total_queued']}")
        self.logger.info(f"Total time: {stats['elapsed_time']:.2f} seconds")
        self.logger.info(f"Fetch stats: {stats['fetch']}")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        state = self.state
        return {
            'phase': state.phase.value,
            'in_flight': state.in_flight,
            'dispatched': state.dispatched,
            'completed': state.completed,
            'aborted_by': state.aborted_by,
            'elapsed_time': state.elapsed_time,
            **state.frontier.get_stats(),
            'fetch': self.supervisor.get_stats(),
        }
