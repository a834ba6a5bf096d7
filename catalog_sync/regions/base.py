"""Region adapter interface and shared page extractors.

A region adapter knows three things about one storefront: how its ids are
normalized into identities, how to build the product page URL for a record,
and how to read the product code, platform and (optionally) support
language out of that page. Everything else (pacing, retries, merging) is
region-agnostic and lives in ``catalog_sync.shared``.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Sequence

from bs4 import BeautifulSoup

__all__ = [
    'DEFAULT_SOFT_BLOCK_PATTERN',
    'EnrichmentResult',
    'RegionAdapter',
    'extract_hac_code',
    'extract_platform_label',
    'extract_sku',
    'platform_from_text',
]


# Akamai-style block page served with HTTP 200
DEFAULT_SOFT_BLOCK_PATTERN = re.compile(r'Access Denied|Reference #[0-9a-f]+', re.IGNORECASE)

HAC_CODE_PATTERN = re.compile(r'\bHAC[0-9A-Z\-]{4,}\b', re.IGNORECASE)
LABEL_CODE_PATTERN = re.compile(r'[A-Z0-9\-_]{4,}')

SWITCH_2 = "Nintendo Switch 2"
SWITCH = "Nintendo Switch"


@dataclass
class EnrichmentResult:
    """What one product page told us.

    ``None`` means the page did not carry that attribute.
    """

    product_code: Optional[str] = None
    platform: Optional[str] = None
    support_language: Optional[str] = None

    def aux(self, platform: bool = True, support_language: bool = False) -> Dict[str, Optional[str]]:
        """Auxiliary fields reported alongside the product code.

        Only fields the region actually reads from its pages are included, so
        a page without them never confirms them absent.
        """
        out: Dict[str, Optional[str]] = {}
        if platform:
            out['platform'] = self.platform
        if support_language:
            out['supportLanguage'] = self.support_language
        return out


def extract_hac_code(text: str) -> Optional[str]:
    """Find the first HAC-style product code anywhere in text."""
    if not text:
        return None
    match = HAC_CODE_PATTERN.search(text)
    return match.group(0).upper() if match else None


def extract_sku(soup: BeautifulSoup, labels: Sequence[str] = ('SKU',)) -> Optional[str]:
    """Read a product code from common storefront markup.

    Tries, in order: ``itemprop="sku"`` (meta content or element text), the
    Magento ``.product.attribute.sku .value`` block, and a heading whose text
    is one of ``labels`` followed by a code-looking token.
    """
    meta = soup.find('meta', attrs={'itemprop': 'sku'})
    if meta and meta.get('content', '').strip():
        return meta['content'].strip()

    tagged = soup.find(lambda tag: tag.name != 'meta' and tag.get('itemprop') == 'sku')
    if tagged:
        text = tagged.get_text(strip=True)
        if text:
            return text

    value = soup.select_one('.product.attribute.sku .value')
    if value:
        text = value.get_text(strip=True)
        if text:
            return text

    wanted = {label.lower() for label in labels}
    for heading in soup.find_all(string=lambda s: s and s.strip().lower() in wanted):
        parent = heading.parent
        for sibling in parent.find_all_next(string=True, limit=12):
            match = LABEL_CODE_PATTERN.search(sibling.upper())
            if match and sibling.strip().lower() not in wanted:
                return match.group(0)
    return None


def platform_from_text(text: str) -> Optional[str]:
    """Map free text to a platform name, preferring the more specific one."""
    if not text:
        return None
    lowered = text.lower()
    if SWITCH_2.lower() in lowered:
        return SWITCH_2
    if SWITCH.lower() in lowered:
        return SWITCH
    return None


def extract_platform_label(soup: BeautifulSoup) -> Optional[str]:
    """Read the platform from a Magento ``label_platform_attr`` block."""
    value = soup.select_one('.label_platform_attr .product-attribute-val')
    if value is None:
        return None
    return platform_from_text(value.get_text(' ', strip=True))


@dataclass
class RegionAdapter:
    """Per-region knowledge used by the merge and fetch engines.

    Subclasses override ``build_lookup_url`` and ``parse_enrichment_response``.
    """

    region: str
    site_root: str = ""
    referers: Sequence[str] = ()
    accept_language: str = "en-US,en;q=0.9"
    id_prefixes: Sequence[str] = ()
    detects_platform: bool = True
    detects_support_language: bool = False
    fetches_enrichment: bool = True
    soft_block_pattern: Pattern = field(default=DEFAULT_SOFT_BLOCK_PATTERN)

    @property
    def id_field(self) -> str:
        return f"nsuid_{self.region}"

    @property
    def code_field(self) -> str:
        return f"productCode_{self.region}"

    def normalize_id(self, raw_id) -> str:
        """Strip source-specific prefixes so the id is a stable identity."""
        text = str(raw_id or '').strip()
        for prefix in self.id_prefixes:
            if text.upper().startswith(prefix.upper()):
                return text[len(prefix):]
        return text

    def first4(self, raw_id) -> str:
        """First four digits of the normalized id, or "" when it has fewer."""
        digits = re.sub(r"\D", "", self.normalize_id(raw_id))
        return digits[:4] if len(digits) >= 4 else ""

    def build_lookup_url(self, record) -> Optional[str]:
        """Product page URL for a record, or None when it cannot be fetched."""
        return None

    def is_fetch_eligible(self, record) -> bool:
        return self.fetches_enrichment and self.build_lookup_url(record) is not None

    def parse_enrichment_response(self, html: str) -> EnrichmentResult:
        raise NotImplementedError

    def enrichment_aux(self, result: EnrichmentResult) -> Dict[str, Optional[str]]:
        return result.aux(self.detects_platform, self.detects_support_language)

    def looks_blocked(self, html: str) -> bool:
        """True if a 200 body is actually a block page."""
        return bool(html) and self.soft_block_pattern.search(html) is not None
