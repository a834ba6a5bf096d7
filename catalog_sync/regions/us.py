"""US storefront adapter.

US product pages are fetched by the record's own URL. The product code is
the page SKU; US pages carry no platform markup worth reading, so platform
comes from the listing only.
"""

from typing import Optional

from bs4 import BeautifulSoup

from config import us_config
from catalog_sync.regions.base import EnrichmentResult, RegionAdapter, extract_hac_code, extract_sku


def resolve_url(raw: Optional[str]) -> Optional[str]:
    """Absolute product URL from a listing value (relative paths allowed)."""
    if not raw:
        return None
    text = str(raw).strip()
    if not text:
        return None
    if text.lower().startswith(('http://', 'https://')):
        return text
    if not text.startswith('/'):
        text = '/' + text
    return f"{us_config.BASE_URL}{text}"


class USAdapter(RegionAdapter):

    def build_lookup_url(self, record) -> Optional[str]:
        return resolve_url(record.fields.get('url'))

    def parse_enrichment_response(self, html: str) -> EnrichmentResult:
        soup = BeautifulSoup(html, 'html.parser')
        code = extract_sku(soup, labels=('SKU', 'Model')) or extract_hac_code(html)
        return EnrichmentResult(product_code=code)


def get_adapter() -> USAdapter:
    return USAdapter(
        region='us',
        site_root=us_config.SITE_ROOT,
        referers=us_config.REFERERS,
        accept_language=us_config.ACCEPT_LANGUAGE,
        id_prefixes=us_config.ID_PREFIXES,
        detects_platform=False,
    )
