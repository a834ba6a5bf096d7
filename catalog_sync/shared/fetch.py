"""Rate-limited enrichment fetches.

``FetchEngine.fetch`` turns one product page request into exactly one of
three outcomes:

- ``Found(value, aux)``: the page carried a product code.
- ``Absent(reason, aux)``: confirmed absent (HTTP 404/410, or a well-formed
  page without a code). The caller records the empty marker.
- ``Error(cause)``: retries exhausted, unexpected status or network failure.
  The caller leaves the field unknown so a later run tries again.

The engine has no file side effects. ``fetch_all`` drains a fixed worklist
with a bounded thread pool and hands every outcome back to the calling
thread, which is the only place results are applied.
"""

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

import requests

from catalog_sync.shared.constants import HTTP, WORKERS
from catalog_sync.shared.logging_config import sanitize_url
from catalog_sync.shared.rate_limiter import TokenBucket
from catalog_sync.shared.retry import (
    ABSENT_STATUS_CODES,
    RETRYABLE_STATUS_CODES,
    RetryPolicy,
    parse_retry_after,
)
from catalog_sync.shared.session import FetchSession

__all__ = [
    'Absent',
    'Error',
    'FetchEngine',
    'FetchResult',
    'FetchTarget',
    'Found',
    'Outcome',
]


class FetchResult(Enum):
    """Result taxonomy reported in logs and run summaries."""

    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Found:
    value: str
    aux: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def result(self) -> FetchResult:
        return FetchResult.FOUND


@dataclass(frozen=True)
class Absent:
    reason: str
    aux: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def result(self) -> FetchResult:
        return FetchResult.NOT_FOUND


@dataclass(frozen=True)
class Error:
    cause: str

    @property
    def result(self) -> FetchResult:
        return FetchResult.ERROR


Outcome = Union[Found, Absent, Error]


@dataclass(frozen=True)
class FetchTarget:
    """One worklist item: a master index and the page to fetch."""

    key: Any
    url: str


class FetchEngine:
    """Fetch product pages for one region under a shared rate limit.

    Args:
        adapter: Region adapter (page parsing, soft-block detection)
        session: Shared per-run session (cookies, warm-up, cooldowns)
        limiter: Token bucket shared by all workers
        policy: Retry/backoff settings
        workers: Thread pool size
        worker_delay: (min, max) randomized delay before every attempt
        sleep: Sleep function (injectable for tests)
    """

    def __init__(
        self,
        adapter,
        session: FetchSession,
        limiter: Optional[TokenBucket] = None,
        policy: Optional[RetryPolicy] = None,
        workers: int = WORKERS.FETCH_WORKERS,
        worker_delay: Tuple[float, float] = (HTTP.WORKER_DELAY_MIN, HTTP.WORKER_DELAY_MAX),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.adapter = adapter
        self.session = session
        self.limiter = limiter or TokenBucket()
        self.policy = policy or RetryPolicy()
        self.workers = max(1, min(int(workers), WORKERS.MAX_FETCH_WORKERS))
        self.worker_delay = worker_delay
        self._sleep = sleep
        self.region = adapter.region

    def _before_attempt(self) -> None:
        self.session.wait_if_paused()
        low, high = self.worker_delay
        if high > 0:
            self._sleep(random.uniform(low, high))
        self.limiter.take()
        self.session.record_attempt()

    def _parse(self, html: str) -> Outcome:
        parsed = self.adapter.parse_enrichment_response(html)
        aux = self.adapter.enrichment_aux(parsed)
        if parsed.product_code:
            return Found(parsed.product_code, aux)
        return Absent('no-code', aux)

    def fetch(self, target: FetchTarget) -> Outcome:
        """Fetch one target, retrying transient failures.

        Returns:
            Found, Absent or Error. Never raises for network or HTTP errors.
        """
        url = target.url
        cause = "no attempt made"

        for attempt in range(1, self.policy.max_attempts + 1):
            self._before_attempt()
            retry_after = None

            try:
                response = self.session.get(url)
            except requests.exceptions.RequestException as e:
                cause = f"network error: {type(e).__name__}: {e}"
                logging.warning(
                    f"[{self.region}] Attempt {attempt}/{self.policy.max_attempts} failed for "
                    f"{sanitize_url(url)}: {cause}"
                )
            else:
                status = response.status_code
                if status in ABSENT_STATUS_CODES:
                    logging.debug(f"[{self.region}] HTTP {status} for {sanitize_url(url)}")
                    return Absent(f"http-{status}")

                if status == 200:
                    body = response.text or ''
                    if not self.adapter.looks_blocked(body):
                        return self._parse(body)
                    cause = "soft block page"
                elif status in RETRYABLE_STATUS_CODES:
                    cause = f"HTTP {status}"
                    retry_after = parse_retry_after(response.headers.get('Retry-After'))
                else:
                    logging.warning(f"[{self.region}] Unexpected HTTP {status} for {sanitize_url(url)}")
                    return Error(f"unexpected HTTP {status}")

                logging.warning(
                    f"[{self.region}] Attempt {attempt}/{self.policy.max_attempts} for "
                    f"{sanitize_url(url)}: {cause}"
                )

            if not self.policy.should_retry(attempt):
                break
            delay = self.policy.compute_delay(attempt, retry_after)
            logging.info(f"[{self.region}] Backing off {delay:.1f}s before retry")
            self._sleep(delay)

        logging.error(f"[{self.region}] Giving up on {sanitize_url(url)} after {self.policy.max_attempts} attempts: {cause}")
        return Error(cause)

    def _fetch_safe(self, target: FetchTarget) -> Outcome:
        try:
            return self.fetch(target)
        except Exception as e:
            logging.warning(f"[{self.region}] Error fetching {sanitize_url(target.url)}: {e}")
            return Error(f"{type(e).__name__}: {e}")

    def fetch_all(
        self,
        targets: Iterable[FetchTarget],
        on_outcome: Callable[[FetchTarget, Outcome], None],
    ) -> Dict[FetchResult, int]:
        """Fetch every target with a bounded worker pool.

        ``on_outcome`` runs on the calling thread, once per target, in
        completion order.

        Returns:
            Count of outcomes per result type
        """
        targets = list(targets)
        counts = {result: 0 for result in FetchResult}
        if not targets:
            return counts

        total = len(targets)
        completed = 0
        logging.info(f"[{self.region}] Fetching {total} targets with {self.workers} worker(s)")

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {executor.submit(self._fetch_safe, target): target for target in targets}

            for future in as_completed(futures):
                target = futures[future]
                outcome = future.result()
                counts[outcome.result] += 1
                completed += 1
                on_outcome(target, outcome)

                if completed % 50 == 0:
                    logging.info(
                        f"[{self.region}] Progress: {completed}/{total} "
                        f"({completed / total * 100:.1f}%) - found={counts[FetchResult.FOUND]} "
                        f"absent={counts[FetchResult.NOT_FOUND]} errors={counts[FetchResult.ERROR]}"
                    )

        return counts
