"""Configuration module for region adapters"""

from typing import Dict
import importlib

# Mapping of region codes to their config modules
CONFIG_MODULES: Dict[str, str] = {
    'us': 'config.us_config',
    'jp': 'config.jp_config',
    'hk': 'config.hk_config',
    'kr': 'config.kr_config',
    'eu': 'config.eu_config',
}

def get_config(region: str):
    """Get configuration module for a region"""
    if region not in CONFIG_MODULES:
        raise ValueError(f"Unknown region: {region}")
    return importlib.import_module(CONFIG_MODULES[region])

__all__ = ['get_config', 'CONFIG_MODULES']
