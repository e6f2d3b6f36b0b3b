"""
Fetch supervision: timeouts and a fixed retry budget around a link fetcher.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from .fetcher import LinkFetcher, CollaboratorUnavailableError
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


def _is_retryable(exc: BaseException) -> bool:
    # CancelledError is a BaseException and must never be retried
    return isinstance(exc, Exception) and not isinstance(exc, CollaboratorUnavailableError)


class FetchSupervisor:
    """
    Wraps one link fetch in a per-attempt timeout and a fixed retry policy.

    ``fetch`` turns every fetch failure into an empty link list. The only
    exception it lets through is CollaboratorUnavailableError, which means
    no further fetch can succeed.
    """

    def __init__(self, fetcher: LinkFetcher, timeout_ms: int = 30000,
                 retry_attempts: int = 3, retry_delay_ms: int = 2000,
                 monitor: Optional[CrawlerMonitor] = None):
        self.fetcher = fetcher
        self.timeout_ms = timeout_ms
        self.retry_attempts = retry_attempts
        self.retry_delay_ms = retry_delay_ms
        self.monitor = monitor
        self.logger = get_crawler_logger(__name__)

        self.stats = {
            'attempts': 0,
            'retries': 0,
            'successes': 0,
            'failures': 0,
        }

    async def fetch(self, url: str) -> List[str]:
        """
        Fetch the links on ``url``.

        Returns:
            The links found, or an empty list once every attempt has failed
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_delay_ms / 1000),
            retry=retry_if_exception(_is_retryable),
            before_sleep=lambda retry_state: self._log_retry(url, retry_state),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    links = await self._attempt(url, attempt.retry_state.attempt_number)
            self.stats['successes'] += 1
            return links
        except CollaboratorUnavailableError:
            raise
        except Exception as e:
            self.stats['failures'] += 1
            self.logger.log_url_event(
                logging.ERROR, url,
                f"Unable to fetch {url} after {self.retry_attempts} attempts: {self._describe(e)}"
            )
            return []

    async def _attempt(self, url: str, attempt_number: int) -> List[str]:
        self.stats['attempts'] += 1
        if self.monitor:
            self.monitor.record_attempt()

        self.logger.log_url_event(
            logging.DEBUG, url,
            f"[Attempt {attempt_number}/{self.retry_attempts}] Fetching {url}",
            extra={'attempt': attempt_number}
        )

        start_time = time.time()
        try:
            links = await asyncio.wait_for(
                self.fetcher.fetch(url, self.timeout_ms),
                timeout=self.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            self._record_failure('timeout')
            raise
        except CollaboratorUnavailableError:
            raise
        except Exception:
            self._record_failure('error')
            raise

        if self.monitor:
            self.monitor.record_fetch_success(time.time() - start_time)
        return list(links)

    def _record_failure(self, reason: str):
        if self.monitor:
            self.monitor.record_fetch_failure(reason)

    def _log_retry(self, url: str, retry_state: RetryCallState):
        self.stats['retries'] += 1
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.retry_attempts} for {url} failed "
            f"({self._describe(exc)}), retrying in {self.retry_delay_ms}ms"
        )

    @staticmethod
    def _describe(exc: Optional[BaseException]) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return "timed out"
        return str(exc) or type(exc).__name__

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
