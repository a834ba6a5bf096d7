"""Region adapter registry"""

import importlib
from typing import Dict, List

from catalog_sync.regions.base import RegionAdapter

# Registry of available region adapters
REGION_REGISTRY: Dict[str, str] = {
    'us': 'catalog_sync.regions.us',
    'jp': 'catalog_sync.regions.jp',
    'hk': 'catalog_sync.regions.hk',
    'kr': 'catalog_sync.regions.kr',
    'eu': 'catalog_sync.regions.eu',
}


def get_available_regions() -> List[str]:
    """Get list of all registered region codes"""
    return list(REGION_REGISTRY.keys())


def get_region_module(region: str):
    """Dynamically import and return a region module"""
    if region not in REGION_REGISTRY:
        raise ValueError(f"Unknown region: {region}. Available: {get_available_regions()}")
    return importlib.import_module(REGION_REGISTRY[region])


def get_region_adapter(region: str) -> RegionAdapter:
    return get_region_module(region).get_adapter()


__all__ = ['REGION_REGISTRY', 'get_available_regions', 'get_region_adapter', 'get_region_module']
