"""Configuration constants for the JP storefront.

JP product pages embed their product data as JSON inside <script> blocks.
The group code (c_groupCode) is the product code, c_labelPlatform names the
platform, and c_original_specification.supportLanguages lists the languages.

Only "D"-prefixed ids are individual software titles; other ids (bundles,
tickets) have no product page worth fetching.
"""

BASE_URL = "https://store-jp.nintendo.com"
SITE_ROOT = f"{BASE_URL}/"
ITEM_URL_PATTERN = f"{BASE_URL}/item/software/{{nsuid}}"

ACCEPT_LANGUAGE = "ja,en;q=0.9"

REFERERS = [
    f"{BASE_URL}/",
    f"{BASE_URL}/list/software",
]

ID_PREFIXES = ("D",)

# c_labelPlatform values
PLATFORM_LABELS = {
    "BEE": "Nintendo Switch 2",
    "HAC": "Nintendo Switch",
}

# Language codes that mean the title ships with English text
ENGLISH_LANGUAGE_CODES = frozenset({"en", "en_US"})
