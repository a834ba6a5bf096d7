"""Multi-region game catalog sync: per-region enrichment and cross-region merge."""

__version__ = "0.1.0"
