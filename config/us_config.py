"""Configuration constants for the US storefront.

The US listing comes from the storefront search index and already carries
absolute or site-relative product URLs. Enrichment fetches each product page
and reads the SKU (product code) from page markup.
"""

# Base URLs
BASE_URL = "https://www.nintendo.com"
SITE_ROOT = f"{BASE_URL}/"

ACCEPT_LANGUAGE = "en-US,en;q=0.9"

REFERERS = [
    f"{BASE_URL}/",
    f"{BASE_URL}/us/store/",
    f"{BASE_URL}/us/store/sales-and-deals/",
]

# The US listing never prefixes ids
ID_PREFIXES = ()
