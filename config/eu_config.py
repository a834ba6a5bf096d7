"""Configuration constants for the EU storefront.

The EU search index already returns product codes with every listing row,
so EU needs no per-product enrichment fetch.
"""

BASE_URL = "https://www.nintendo.com/en-gb"
SITE_ROOT = f"{BASE_URL}/"

ACCEPT_LANGUAGE = "en-GB,en;q=0.9"

REFERERS = [SITE_ROOT]

ID_PREFIXES = ()
