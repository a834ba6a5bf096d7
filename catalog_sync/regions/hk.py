"""HK storefront adapter.

HK product pages are Magento pages at ``https://<host>/<nsuid>``. The SKU
attribute carries the product code and the ``label_platform_attr`` block
names the platform.
"""

from typing import Optional

from bs4 import BeautifulSoup

from config import hk_config
from catalog_sync.regions.base import (
    EnrichmentResult,
    RegionAdapter,
    extract_hac_code,
    extract_platform_label,
    extract_sku,
    platform_from_text,
)


def parse_magento_page(html: str) -> EnrichmentResult:
    """Product code and platform from a Magento product page.

    The platform falls back to a page-wide text scan when the attribute
    block is missing.
    """
    soup = BeautifulSoup(html, 'html.parser')
    code = extract_sku(soup) or extract_hac_code(html)
    platform = extract_platform_label(soup) or platform_from_text(soup.get_text(' ', strip=True))
    return EnrichmentResult(product_code=code, platform=platform)


class HKAdapter(RegionAdapter):

    item_url_pattern = hk_config.ITEM_URL_PATTERN

    def build_lookup_url(self, record) -> Optional[str]:
        raw = str(record.raw_id or '').strip()
        if not raw:
            return None
        return self.item_url_pattern.format(nsuid=raw)

    def parse_enrichment_response(self, html: str) -> EnrichmentResult:
        return parse_magento_page(html)


def get_adapter() -> HKAdapter:
    return HKAdapter(
        region='hk',
        site_root=hk_config.SITE_ROOT,
        referers=hk_config.REFERERS,
        accept_language=hk_config.ACCEPT_LANGUAGE,
        id_prefixes=hk_config.ID_PREFIXES,
    )
