"""Exception types raised by the catalog sync pipeline."""

__all__ = [
    'CatalogLoadError',
    'CatalogSyncError',
    'ConfigError',
]


class CatalogSyncError(Exception):
    """Base class for all pipeline errors."""


class CatalogLoadError(CatalogSyncError):
    """A source, master or merge input file could not be read or parsed.

    Raised before any write happens so previously good master data is
    never partially overwritten.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to load {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(CatalogSyncError):
    """Invalid values in config/regions.yaml or the resolver config files."""
