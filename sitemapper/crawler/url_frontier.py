"""
URL frontier: the dedup authority for a single crawl.

Tracks three collections:

* the frontier, URLs discovered but not yet dispatched;
* the visited set, URLs dispatched at least once;
* the discovered set, every URL seen, which becomes the sitemap.

A URL moves from the frontier to the visited set in the same critical
section that hands it out, so two discoveries of the same URL before its
fetch completes can never cause a second fetch.
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Set


class URLFrontier:
    """
    FIFO frontier with visited and discovered bookkeeping.

    Removal order is first-in first-out, which expands the site breadth
    first. Every method holds the same lock, so calls are atomic with
    respect to each other.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._queue: Deque[str] = deque()
        self._queued: Set[str] = set()
        self._visited: Set[str] = set()
        # dict keeps insertion order for unsorted output
        self._discovered: Dict[str, None] = {}

    def enqueue_many(self, urls: Iterable[str]) -> int:
        """
        Add URLs that are neither visited nor already queued.

        Returns the number of URLs actually added to the frontier.
        """
        added = 0
        with self._lock:
            for url in urls:
                if url in self._visited or url in self._queued:
                    continue
                self._queue.append(url)
                self._queued.add(url)
                self._discovered[url] = None
                added += 1
        if added:
            self.logger.debug(f"Added {added} URLs to frontier")
        return added

    def record(self, urls: Iterable[str]) -> int:
        """Mark URLs as discovered without making them eligible for fetching."""
        added = 0
        with self._lock:
            for url in urls:
                if url not in self._discovered:
                    self._discovered[url] = None
                    added += 1
        return added

    def dequeue(self) -> Optional[str]:
        """Remove the next URL and mark it visited, or return None when empty."""
        with self._lock:
            if not self._queue:
                return None
            url = self._queue.popleft()
            self._queued.discard(url)
            self._visited.add(url)
            return url

    def is_empty(self) -> bool:
        with self._lock:
            return not self._queue

    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def __len__(self) -> int:
        return self.pending_count()

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return url in self._visited

    def is_queued(self, url: str) -> bool:
        with self._lock:
            return url in self._queued

    def queued(self) -> List[str]:
        """Snapshot of the frontier in removal order."""
        with self._lock:
            return list(self._queue)

    def visited(self) -> Set[str]:
        with self._lock:
            return set(self._visited)

    def discovered(self) -> List[str]:
        """Snapshot of every discovered URL in first-seen order."""
        with self._lock:
            return list(self._discovered)

    def discovered_count(self) -> int:
        with self._lock:
            return len(self._discovered)

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        with self._lock:
            return {
                'total_queued': len(self._queue),
                'total_visited': len(self._visited),
                'total_discovered': len(self._discovered),
            }
