"""Configuration constants for the KR storefront.

KR shares the HK storefront platform: Magento product pages keyed by nsuid,
with the same SKU and platform attribute markup.
"""

HOST = "store.nintendo.co.kr"
BASE_URL = f"https://{HOST}"
SITE_ROOT = f"{BASE_URL}/"
ITEM_URL_PATTERN = f"{BASE_URL}/{{nsuid}}"

ACCEPT_LANGUAGE = "ko-KR,ko;q=0.9,en;q=0.8"

REFERERS = [
    f"{BASE_URL}/",
    f"{BASE_URL}/all-product",
    f"{BASE_URL}/digital/sale",
    f"{BASE_URL}/nintendo-switch.html",
    f"{BASE_URL}/games.html",
]

ID_PREFIXES = ()
