"""EU storefront adapter.

The EU listing already includes product codes, so EU records are merged
but never fetched.
"""

from typing import Optional

from config import eu_config
from catalog_sync.regions.base import EnrichmentResult, RegionAdapter


class EUAdapter(RegionAdapter):

    def build_lookup_url(self, record) -> Optional[str]:
        return None

    def parse_enrichment_response(self, html: str) -> EnrichmentResult:
        return EnrichmentResult()


def get_adapter() -> EUAdapter:
    return EUAdapter(
        region='eu',
        site_root=eu_config.SITE_ROOT,
        referers=eu_config.REFERERS,
        accept_language=eu_config.ACCEPT_LANGUAGE,
        id_prefixes=eu_config.ID_PREFIXES,
        detects_platform=False,
        fetches_enrichment=False,
    )
