"""Shared pipeline components for all regions"""

from .logging_config import (
    setup_logging,
    sanitize_url,
)

from .errors import (
    CatalogSyncError,
    CatalogLoadError,
    ConfigError,
)

from .sentinel import (
    Sentinel,
    SentinelState,
)

from .records import (
    CatalogRecord,
    MasterRecord,
    records_to_dicts,
    utc_now_iso,
)

from .storage import (
    load_json_array,
    write_json_atomic,
)

from .rate_limiter import (
    TokenBucket,
)

from .retry import (
    RetryPolicy,
    parse_retry_after,
)

from .request_counter import (
    RequestCounter,
    CooldownSchedule,
)

from .session import (
    FetchSession,
    get_headers,
)

from .fetch import (
    FetchEngine,
    FetchResult,
    FetchTarget,
    Found,
    Absent,
    Error,
)

from .region_config import (
    load_region_config,
    load_merge_config,
    validate_config,
)

from .resolver import (
    Match,
    RegionIndex,
    build_region_index,
    resolve,
)

from .overrides import (
    load_strict_slugs,
    load_slug_replacements,
)

from .merge_engine import (
    MergeEngine,
    MergeRunStats,
    apply_outcome,
    merge_records,
    select_worklist,
)

from .multi_region import (
    MergeReport,
    MultiRegionMerger,
)

__all__ = [
    # Logging
    'setup_logging',
    'sanitize_url',
    # Errors
    'CatalogSyncError',
    'CatalogLoadError',
    'ConfigError',
    # Records and sentinels
    'Sentinel',
    'SentinelState',
    'CatalogRecord',
    'MasterRecord',
    'records_to_dicts',
    'utc_now_iso',
    # Storage
    'load_json_array',
    'write_json_atomic',
    # Fetching
    'TokenBucket',
    'RetryPolicy',
    'parse_retry_after',
    'RequestCounter',
    'CooldownSchedule',
    'FetchSession',
    'get_headers',
    'FetchEngine',
    'FetchResult',
    'FetchTarget',
    'Found',
    'Absent',
    'Error',
    # Configuration
    'load_region_config',
    'load_merge_config',
    'validate_config',
    # Resolution
    'Match',
    'RegionIndex',
    'build_region_index',
    'resolve',
    'load_strict_slugs',
    'load_slug_replacements',
    # Merging
    'MergeEngine',
    'MergeRunStats',
    'apply_outcome',
    'merge_records',
    'select_worklist',
    'MergeReport',
    'MultiRegionMerger',
]
