"""Centralized constants for the catalog sync pipeline.

This module provides frozen dataclass-based configuration groups for all
magic numbers used throughout the codebase. Values can be overridden per
region in config/regions.yaml.

Usage:
    from catalog_sync.shared.constants import HTTP, LIMITER, WORKERS

    timeout = HTTP.TIMEOUT
    rate = LIMITER.REQUESTS_PER_SECOND
"""

from dataclasses import dataclass

__all__ = [
    'CHECKPOINT',
    'COOLDOWN',
    'CheckpointDefaults',
    'CooldownDefaults',
    'HTTP',
    'HttpDefaults',
    'LIMITER',
    'LOGGING',
    'LimiterDefaults',
    'LoggingDefaults',
    'PATHS',
    'PathDefaults',
    'STREAMING',
    'StreamingDefaults',
    'WORKERS',
    'WorkerDefaults',
]


@dataclass(frozen=True)
class HttpDefaults:
    """HTTP request configuration defaults.

    These values control retry behavior, timeouts, and per-attempt jitter.
    """

    TIMEOUT: int = 20
    """Request timeout in seconds."""

    MAX_ATTEMPTS: int = 3
    """Maximum attempts per target before giving up with an error outcome."""

    BACKOFF_BASE: float = 1.5
    """Base backoff in seconds; doubled on every retry."""

    BACKOFF_MAX: float = 45.0
    """Upper bound for a single computed or server-hinted backoff."""

    JITTER_MIN: float = 0.2
    """Minimum random jitter added to every backoff, in seconds."""

    JITTER_MAX: float = 0.6
    """Maximum random jitter added to every backoff, in seconds."""

    WORKER_DELAY_MIN: float = 0.2
    """Minimum randomized delay a worker sleeps before each attempt."""

    WORKER_DELAY_MAX: float = 0.8
    """Maximum randomized delay a worker sleeps before each attempt."""


@dataclass(frozen=True)
class LimiterDefaults:
    """Token bucket defaults shared by every worker in a run."""

    REQUESTS_PER_SECOND: float = 0.8
    """Average refill rate in tokens per second."""

    MIN_REQUESTS_PER_SECOND: float = 0.2
    """Floor applied to configured rates so the bucket always refills."""

    BURST: int = 2
    """Bucket capacity."""

    POLL_MIN: float = 0.12
    """Minimum poll interval while waiting for a token."""

    POLL_MAX: float = 0.3
    """Maximum poll interval while waiting for a token."""


@dataclass(frozen=True)
class CooldownDefaults:
    """Session cooldown thresholds.

    After every EVERY_ATTEMPTS attempts across the run, the session sleeps
    for a random duration and re-runs warm-up before resuming.
    """

    EVERY_ATTEMPTS: int = 40
    """Attempt count threshold for a cooldown."""

    MIN_SECONDS: float = 45.0
    """Minimum cooldown duration in seconds."""

    MAX_SECONDS: float = 90.0
    """Maximum cooldown duration in seconds."""


@dataclass(frozen=True)
class WorkerDefaults:
    """Parallel worker configuration."""

    FETCH_WORKERS: int = 2
    """Default worker pool size for enrichment fetches."""

    MAX_FETCH_WORKERS: int = 8
    """Hard upper bound accepted from config or CLI."""


@dataclass(frozen=True)
class CheckpointDefaults:
    """Checkpoint intervals for master and snapshot writes."""

    EVERY_COMPLETIONS: int = 10
    """Flush master + snapshot after this many fetch completions."""


@dataclass(frozen=True)
class LoggingDefaults:
    """Logging configuration.

    Controls log file rotation settings.
    """

    MAX_BYTES: int = 10 * 1024 * 1024
    """Maximum log file size before rotation (10MB)."""

    BACKUP_COUNT: int = 5
    """Number of backup log files to keep."""


@dataclass(frozen=True)
class StreamingDefaults:
    """Streaming and memory thresholds."""

    LARGE_FILE_THRESHOLD_BYTES: int = 50 * 1024 * 1024
    """File size threshold (50MB) above which streaming is used."""


@dataclass(frozen=True)
class PathDefaults:
    """Default file locations, relative to the working directory."""

    DATA_DIR: str = "data"
    OUTPUT_DIR: str = "output"
    LOG_DIR: str = "logs"
    CONFIG_FILE: str = "config/regions.yaml"
    STRICT_SLUGS_FILE: str = "config/strict_slugs.txt"
    SLUG_REPLACEMENTS_FILE: str = "config/slug_replacements.txt"
    MERGED_OUTPUT_FILE: str = "output/merged_enriched.json"
    MERGE_LOG_FILE: str = "logs/merge_unmatched.log"


# Singleton instances for easy import
HTTP = HttpDefaults()
LIMITER = LimiterDefaults()
COOLDOWN = CooldownDefaults()
WORKERS = WorkerDefaults()
CHECKPOINT = CheckpointDefaults()
LOGGING = LoggingDefaults()
STREAMING = StreamingDefaults()
PATHS = PathDefaults()
