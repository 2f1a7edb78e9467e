"""Request pacing for polite crawling.

RequestThrottle spaces out one fetcher's requests with a randomized delay.
DomainConcurrencyLimiter caps simultaneous requests per domain across all
fetchers sharing it.
"""

import asyncio
import random
import time
from typing import Callable, Dict, Optional
from urllib.parse import urlparse


class RequestThrottle:
    """Randomized minimum spacing between consecutive requests of one fetcher.

    Before every request the caller awaits ``wait()``. A fresh delay is drawn
    uniformly from [max(crawl_delay, min_delay), max_delay] each time and only
    the part not already elapsed since the previous request is slept.
    """

    def __init__(
        self,
        min_delay: float,
        max_delay: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], "asyncio.Future"] = asyncio.sleep,
    ):
        """Initialize throttle.

        Args:
            min_delay: Configured lower bound in seconds
            max_delay: Configured upper bound in seconds
            clock: Monotonic clock, injectable for tests
            sleep: Async sleep, injectable for tests
        """
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.crawl_delay: float = 0.0
        self._clock = clock
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self._lock = asyncio.Lock()

    def next_delay(self) -> float:
        """Draw the delay for the next request."""
        low = max(self.crawl_delay, self.min_delay)
        high = max(self.max_delay, low)
        return random.uniform(low, high)

    async def wait(self) -> float:
        """Sleep until the next request is allowed. Returns seconds slept."""
        async with self._lock:
            slept = 0.0
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                remaining = self.next_delay() - elapsed
                if remaining > 0:
                    await self._sleep(remaining)
                    slept = remaining
            self._last_request = self._clock()
            return slept


class DomainConcurrencyLimiter:
    """Per-domain semaphore limiting in-flight requests."""

    def __init__(self, max_concurrent: int = 2):
        self.max_concurrent = max(1, max_concurrent)
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def _get_semaphore(self, domain: str) -> asyncio.Semaphore:
        if domain not in self._semaphores:
            self._semaphores[domain] = asyncio.Semaphore(self.max_concurrent)
        return self._semaphores[domain]

    def slot(self, url: str) -> asyncio.Semaphore:
        """Return the semaphore for the URL's domain, for use as ``async with``."""
        return self._get_semaphore(urlparse(url).netloc.lower())
