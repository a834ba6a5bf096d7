"""Configuration constants for the HK storefront.

HK runs a Magento storefront behind an Akamai edge that answers with an
"Access Denied ... Reference #<hex>" page when it decides to block. Product
pages live at the site root keyed by nsuid.
"""

HOST = "store.nintendo.com.hk"
BASE_URL = f"https://{HOST}"
SITE_ROOT = f"{BASE_URL}/"
ITEM_URL_PATTERN = f"{BASE_URL}/{{nsuid}}"

ACCEPT_LANGUAGE = "zh-HK,zh;q=0.9,en;q=0.8"

REFERERS = [
    f"{BASE_URL}/",
    f"{BASE_URL}/nintendo-switch.html",
    f"{BASE_URL}/games.html",
    f"{BASE_URL}/console.html",
    f"{BASE_URL}/accessories.html",
]

ID_PREFIXES = ()
