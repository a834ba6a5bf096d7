"""Token bucket rate limiting shared by every fetch worker in a run.

One ``TokenBucket`` gates every outbound request in a run, across all
workers. The token count is the only mutable shared state and is only
touched under ``_lock``. Tokens refill lazily on each ``take`` from elapsed
monotonic time instead of from a background timer.

Usage:
    limiter = TokenBucket(rate=0.8, burst=2)
    limiter.take()   # blocks until a token is available
    response = session.get(url)
"""

import logging
import random
import threading
import time
from typing import Callable, Optional

from catalog_sync.shared.constants import LIMITER

__all__ = [
    'TokenBucket',
]


class TokenBucket:
    """Thread-safe token bucket.

    Args:
        rate: Average refill rate in tokens per second
        burst: Bucket capacity; the bucket starts full
        clock: Monotonic clock (injectable for tests)
        sleep: Sleep function used while polling (injectable for tests)
    """

    def __init__(
        self,
        rate: float = LIMITER.REQUESTS_PER_SECOND,
        burst: int = LIMITER.BURST,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        poll_min: float = LIMITER.POLL_MIN,
        poll_max: float = LIMITER.POLL_MAX,
    ):
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")
        self.rate = max(LIMITER.MIN_REQUESTS_PER_SECOND, float(rate))
        self.burst = int(burst)
        self._clock = clock
        self._sleep = sleep
        self._poll_min = poll_min
        self._poll_max = poll_max
        self._tokens = float(self.burst)
        self._last_refill = clock()
        self._lock = threading.Lock()

        logging.debug(f"[TokenBucket] rate={self.rate:.2f}/s burst={self.burst}")

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
            self._last_refill = now

    @property
    def tokens(self) -> float:
        """Current token count (after refill)."""
        with self._lock:
            self._refill()
            return self._tokens

    def try_take(self) -> bool:
        """Take one token without blocking.

        Returns:
            True if a token was taken
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def take(self, timeout: Optional[float] = None) -> None:
        """Block until a token is available, then take it.

        Args:
            timeout: Optional maximum wait in seconds

        Raises:
            TimeoutError: If no token became available within timeout
        """
        start = self._clock()
        while not self.try_take():
            if timeout is not None and self._clock() - start >= timeout:
                raise TimeoutError(f"No rate limit token available within {timeout}s")
            self._sleep(random.uniform(self._poll_min, self._poll_max))
