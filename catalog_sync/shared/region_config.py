"""Per-region settings from config/regions.yaml.

The YAML file has three sections::

    defaults:        # applied to every region
      requests_per_second: 0.8
      workers: 2
    regions:
      hk:
        enabled: true
        requests_per_second: 0.5
    merge:
      canonical: us
      regions: [jp, hk, eu]
      append_regions: [eu]
      title_fallback: true

Region values override ``defaults``, and the CATALOG_SYNC_RPS and
CATALOG_SYNC_WORKERS environment variables override both.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from catalog_sync.shared.constants import CHECKPOINT, COOLDOWN, HTTP, LIMITER, PATHS, WORKERS
from catalog_sync.shared.errors import ConfigError

__all__ = [
    'DEFAULT_MERGE_CONFIG',
    'DEFAULT_REGION_CONFIG',
    'load_merge_config',
    'load_region_config',
    'read_config_file',
    'validate_config',
]


DEFAULT_REGION_CONFIG: Dict[str, Any] = {
    'enabled': True,
    'requests_per_second': LIMITER.REQUESTS_PER_SECOND,
    'burst': LIMITER.BURST,
    'workers': WORKERS.FETCH_WORKERS,
    'timeout': HTTP.TIMEOUT,
    'max_attempts': HTTP.MAX_ATTEMPTS,
    'backoff_base': HTTP.BACKOFF_BASE,
    'backoff_max': HTTP.BACKOFF_MAX,
    'jitter_min': HTTP.JITTER_MIN,
    'jitter_max': HTTP.JITTER_MAX,
    'worker_delay_min': HTTP.WORKER_DELAY_MIN,
    'worker_delay_max': HTTP.WORKER_DELAY_MAX,
    'cooldown_every': COOLDOWN.EVERY_ATTEMPTS,
    'cooldown_min': COOLDOWN.MIN_SECONDS,
    'cooldown_max': COOLDOWN.MAX_SECONDS,
    'checkpoint_every': CHECKPOINT.EVERY_COMPLETIONS,
}

DEFAULT_MERGE_CONFIG: Dict[str, Any] = {
    'canonical': 'us',
    'regions': ['jp', 'hk', 'eu'],
    'append_regions': ['eu'],
    'title_fallback': True,
}

NUMERIC_FIELDS = (
    'requests_per_second', 'timeout', 'backoff_base', 'backoff_max', 'jitter_min', 'jitter_max',
    'worker_delay_min', 'worker_delay_max', 'cooldown_min', 'cooldown_max',
)
INTEGER_FIELDS = ('burst', 'workers', 'max_attempts', 'cooldown_every', 'checkpoint_every')
PAIRED_FIELDS = (
    ('jitter_min', 'jitter_max'),
    ('worker_delay_min', 'worker_delay_max'),
    ('cooldown_min', 'cooldown_max'),
)

ENV_RPS = 'CATALOG_SYNC_RPS'
ENV_WORKERS = 'CATALOG_SYNC_WORKERS'


def read_config_file(config_path: str = PATHS.CONFIG_FILE) -> Optional[Dict[str, Any]]:
    """Parse the YAML file.

    Returns:
        The parsed mapping, or None when the file does not exist

    Raises:
        ConfigError: On YAML syntax errors or a non-mapping document
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        return None
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    # Handle empty YAML files (safe_load returns None)
    config = config or {}
    if not isinstance(config, dict):
        raise ConfigError(f"{config_path}: configuration must be a dictionary")
    return config


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    rps = os.getenv(ENV_RPS)
    if rps:
        try:
            overrides['requests_per_second'] = float(rps)
        except ValueError as e:
            raise ConfigError(f"{ENV_RPS} must be a number, got {rps!r}") from e
    workers = os.getenv(ENV_WORKERS)
    if workers:
        try:
            overrides['workers'] = int(workers)
        except ValueError as e:
            raise ConfigError(f"{ENV_WORKERS} must be an integer, got {workers!r}") from e
    return overrides


def load_region_config(region: str, config_path: str = PATHS.CONFIG_FILE) -> Dict[str, Any]:
    """Effective settings for one region.

    A missing config file falls back to the built-in defaults.

    Raises:
        ConfigError: If the file is malformed or a value is invalid
    """
    config = read_config_file(config_path)
    if config is None:
        logging.warning(f"[{region}] Config file {config_path} not found, using defaults")
        config = {}

    effective = dict(DEFAULT_REGION_CONFIG)
    effective.update(config.get('defaults') or {})
    effective.update((config.get('regions') or {}).get(region) or {})
    effective.update(_env_overrides())
    effective['name'] = region

    errors = _validate_values(f"Region '{region}'", effective)
    if errors:
        raise ConfigError("; ".join(errors))
    return effective


def load_merge_config(config_path: str = PATHS.CONFIG_FILE) -> Dict[str, Any]:
    config = read_config_file(config_path) or {}
    effective = dict(DEFAULT_MERGE_CONFIG)
    effective.update(config.get('merge') or {})
    return effective


def _validate_values(prefix: str, values: Dict[str, Any]) -> List[str]:
    errors = []
    for name in NUMERIC_FIELDS:
        if name in values:
            value = values[name]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                errors.append(f"{prefix}: '{name}' must be a non-negative number")
    for name in INTEGER_FIELDS:
        if name in values:
            value = values[name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                errors.append(f"{prefix}: '{name}' must be a non-negative integer")
    for name in ('burst', 'workers', 'max_attempts', 'checkpoint_every'):
        value = values.get(name)
        if isinstance(value, int) and not isinstance(value, bool) and value < 1:
            errors.append(f"{prefix}: '{name}' must be at least 1")
    workers = values.get('workers')
    if isinstance(workers, int) and workers > WORKERS.MAX_FETCH_WORKERS:
        errors.append(f"{prefix}: 'workers' cannot exceed {WORKERS.MAX_FETCH_WORKERS}")
    for low, high in PAIRED_FIELDS:
        low_value, high_value = values.get(low), values.get(high)
        if isinstance(low_value, (int, float)) and isinstance(high_value, (int, float)) and low_value > high_value:
            errors.append(f"{prefix}: '{low}' cannot be greater than '{high}'")
    if 'enabled' in values and not isinstance(values['enabled'], bool):
        errors.append(f"{prefix}: 'enabled' must be true or false")
    return errors


def validate_config(config_path: str = PATHS.CONFIG_FILE, known_regions: Optional[List[str]] = None) -> List[str]:
    """Check config/regions.yaml for errors.

    Args:
        config_path: Path to the YAML file
        known_regions: Region codes with a registered adapter

    Returns:
        List of validation errors (empty if config is valid)
    """
    try:
        config = read_config_file(config_path)
    except ConfigError as e:
        return [str(e)]
    if config is None:
        return [f"Configuration file not found: {config_path}"]

    errors = []
    defaults = config.get('defaults') or {}
    if not isinstance(defaults, dict):
        errors.append("'defaults' must be a dictionary")
    else:
        errors.extend(_validate_values("Defaults", defaults))

    regions = config.get('regions') or {}
    if not isinstance(regions, dict):
        errors.append("'regions' must be a dictionary")
        regions = {}
    for region, values in regions.items():
        prefix = f"Region '{region}'"
        if known_regions is not None and region not in known_regions:
            errors.append(f"{prefix}: no adapter registered (known: {', '.join(known_regions)})")
        if not isinstance(values, dict):
            errors.append(f"{prefix}: configuration must be a dictionary")
            continue
        errors.extend(_validate_values(prefix, values))

    merge = config.get('merge') or {}
    if not isinstance(merge, dict):
        errors.append("'merge' must be a dictionary")
    else:
        for name in ('regions', 'append_regions'):
            value = merge.get(name)
            if value is not None and (not isinstance(value, list) or not all(isinstance(r, str) for r in value)):
                errors.append(f"Merge: '{name}' must be a list of region codes")
            elif value and known_regions is not None:
                unknown = [r for r in value if r not in known_regions]
                if unknown:
                    errors.append(f"Merge: unknown regions in '{name}': {', '.join(unknown)}")
        canonical = merge.get('canonical')
        if canonical is not None and known_regions is not None and canonical not in known_regions:
            errors.append(f"Merge: unknown canonical region '{canonical}'")
        if 'title_fallback' in merge and not isinstance(merge['title_fallback'], bool):
            errors.append("Merge: 'title_fallback' must be true or false")

    return errors
