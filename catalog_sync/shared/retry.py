"""Retry policy for remote lookups.

``RetryPolicy`` is the one place backoff arithmetic lives: exponential
growth from a base delay, random jitter on top, an optional server hint
(``Retry-After``) replacing the computed value, and a cap on any single
wait.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, FrozenSet, Optional

from catalog_sync.shared.constants import HTTP

__all__ = [
    'ABSENT_STATUS_CODES',
    'RETRYABLE_STATUS_CODES',
    'RetryPolicy',
    'parse_retry_after',
]


# Transient failures worth retrying: blocked, throttled, timed out, server side
RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({403, 408, 429, 500, 502, 503, 504})

# Confirmed-absent statuses
ABSENT_STATUS_CODES: FrozenSet[int] = frozenset({404, 410})


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a Retry-After header (delta-seconds or HTTP-date).

    Args:
        value: Raw header value
        now: Reference time for HTTP-date values (defaults to current UTC)

    Returns:
        Seconds to wait (>= 0), or None if missing or unparseable
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings consumed uniformly by the fetch engine.

    Attributes:
        max_attempts: Hard ceiling on attempts per target (>= 1)
        base_delay: Backoff before the second attempt, doubled afterwards
        max_delay: Cap applied to computed and hinted delays
        jitter_min: Minimum random seconds added to every delay
        jitter_max: Maximum random seconds added to every delay
    """

    max_attempts: int = HTTP.MAX_ATTEMPTS
    base_delay: float = HTTP.BACKOFF_BASE
    max_delay: float = HTTP.BACKOFF_MAX
    jitter_min: float = HTTP.JITTER_MIN
    jitter_max: float = HTTP.JITTER_MAX

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.jitter_min > self.jitter_max:
            raise ValueError("jitter_min cannot be greater than jitter_max")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'RetryPolicy':
        """Build a policy from a region config dict, falling back to defaults."""
        return cls(
            max_attempts=int(config.get('max_attempts', HTTP.MAX_ATTEMPTS)),
            base_delay=float(config.get('backoff_base', HTTP.BACKOFF_BASE)),
            max_delay=float(config.get('backoff_max', HTTP.BACKOFF_MAX)),
            jitter_min=float(config.get('jitter_min', HTTP.JITTER_MIN)),
            jitter_max=float(config.get('jitter_max', HTTP.JITTER_MAX)),
        )

    def should_retry(self, attempt: int) -> bool:
        """True if another attempt is allowed after ``attempt`` (1-based)."""
        return attempt < self.max_attempts

    def compute_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Delay before the attempt following ``attempt`` (1-based).

        Args:
            attempt: The attempt that just failed
            retry_after: Server hint in seconds; replaces the computed backoff

        Returns:
            Seconds to sleep
        """
        if retry_after is not None:
            base = min(self.max_delay, retry_after)
        else:
            base = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return base + random.uniform(self.jitter_min, self.jitter_max)
