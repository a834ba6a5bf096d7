"""Run-wide attempt counter and cooldown scheduling."""

import logging
import random
import threading
from typing import Optional, Tuple

from catalog_sync.shared.constants import COOLDOWN

__all__ = [
    'CooldownSchedule',
    'RequestCounter',
]


class RequestCounter:
    """Thread-safe request counter for tracking attempts across workers.

    Uses a threading lock so concurrent increments each observe a distinct
    count.
    """

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def increment(self) -> int:
        """Increment counter and return the updated count (thread-safe)."""
        with self._lock:
            self._count += 1
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._count = 0


class CooldownSchedule:
    """Decides when the run should pause and refresh its session.

    Args:
        every: Cool down after every N attempts (0 disables cooldowns)
        min_seconds: Minimum cooldown duration
        max_seconds: Maximum cooldown duration
    """

    def __init__(
        self,
        every: int = COOLDOWN.EVERY_ATTEMPTS,
        min_seconds: float = COOLDOWN.MIN_SECONDS,
        max_seconds: float = COOLDOWN.MAX_SECONDS,
    ):
        if min_seconds > max_seconds:
            raise ValueError("cooldown min_seconds cannot be greater than max_seconds")
        self.every = max(0, int(every))
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds

    @property
    def range(self) -> Tuple[float, float]:
        return self.min_seconds, self.max_seconds

    def cooldown_for(self, count: int, label: Optional[str] = None) -> float:
        """Return the cooldown due after ``count`` attempts, or 0.

        Only the attempt whose count lands exactly on a multiple of ``every``
        triggers, so exactly one worker schedules each cooldown.
        """
        if not self.every or count <= 0 or count % self.every:
            return 0.0
        duration = random.uniform(self.min_seconds, self.max_seconds)
        prefix = f"[{label}] " if label else ""
        logging.info(f"{prefix}Cooldown after {count} attempts: {duration:.0f} seconds")
        return duration
