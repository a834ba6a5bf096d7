"""KR storefront adapter (same Magento storefront platform as HK)."""

from config import kr_config
from catalog_sync.regions.hk import HKAdapter


class KRAdapter(HKAdapter):

    item_url_pattern = kr_config.ITEM_URL_PATTERN


def get_adapter() -> KRAdapter:
    return KRAdapter(
        region='kr',
        site_root=kr_config.SITE_ROOT,
        referers=kr_config.REFERERS,
        accept_language=kr_config.ACCEPT_LANGUAGE,
        id_prefixes=kr_config.ID_PREFIXES,
    )
