"""JP storefront adapter.

JP product pages ship their product model as JSON inside <script> tags.
The first object carrying ``c_groupCode`` is the product node: its group
code (underscores removed, uppercased) is the product code and its
``c_original_specification.supportLanguages`` tells whether English is
supported. ``c_labelPlatform`` may sit on a different node.
"""

import json
import logging
import re
from typing import Any, Optional, Tuple

from bs4 import BeautifulSoup

from config import jp_config
from catalog_sync.regions.base import EnrichmentResult, RegionAdapter

GROUP_CODE_PATTERN = re.compile(r'"c_groupCode"\s*:\s*"([A-Za-z0-9_\-]+)"')


def normalize_group_code(code: str) -> str:
    return code.replace('_', '').strip().upper()


def find_group_code(node: Any) -> Tuple[Optional[str], Optional[dict]]:
    """Depth-first search for the first non-blank ``c_groupCode``.

    Returns:
        (code, owning node) or (None, None)
    """
    if isinstance(node, list):
        for child in node:
            code, owner = find_group_code(child)
            if code:
                return code, owner
        return None, None
    if not isinstance(node, dict):
        return None, None
    value = node.get('c_groupCode')
    if isinstance(value, str) and value.strip():
        return value.strip(), node
    for child in node.values():
        code, owner = find_group_code(child)
        if code:
            return code, owner
    return None, None


def find_label_platform(node: Any) -> Optional[str]:
    if isinstance(node, list):
        for child in node:
            found = find_label_platform(child)
            if found:
                return found
        return None
    if not isinstance(node, dict):
        return None
    value = node.get('c_labelPlatform')
    if isinstance(value, str) and value.strip():
        return value.strip()
    for child in node.values():
        found = find_label_platform(child)
        if found:
            return found
    return None


def has_english_support(product: Optional[dict]) -> bool:
    if not product:
        return False
    spec = product.get('c_original_specification')
    if not isinstance(spec, dict):
        return False
    languages = spec.get('supportLanguages') or []
    return bool({str(lang).strip() for lang in languages} & jp_config.ENGLISH_LANGUAGE_CODES)


def _json_payloads(soup: BeautifulSoup):
    for script in soup.find_all('script'):
        text = (script.string or script.get_text() or '').strip()
        if not text:
            continue
        if not ((text.startswith('{') and text.endswith('}')) or (text.startswith('[') and text.endswith(']'))):
            continue
        try:
            yield json.loads(text)
        except json.JSONDecodeError as e:
            logging.debug(f"[jp] Skipping unparseable script JSON: {e}")


class JPAdapter(RegionAdapter):

    def build_lookup_url(self, record) -> Optional[str]:
        # Only D-prefixed ids are individual software titles
        raw = str(record.raw_id or '').strip()
        if not raw.upper().startswith('D'):
            return None
        return jp_config.ITEM_URL_PATTERN.format(nsuid=raw)

    def parse_enrichment_response(self, html: str) -> EnrichmentResult:
        soup = BeautifulSoup(html, 'html.parser')
        code = None
        english = False
        platform = None

        for payload in _json_payloads(soup):
            if code is None:
                found, product = find_group_code(payload)
                if found:
                    code = normalize_group_code(found)
                    english = has_english_support(product)
            if platform is None:
                label = find_label_platform(payload)
                if label:
                    platform = jp_config.PLATFORM_LABELS.get(label.upper())
            if code and platform:
                break

        if code is None:
            match = GROUP_CODE_PATTERN.search(html)
            if match:
                code = normalize_group_code(match.group(1))

        return EnrichmentResult(
            product_code=code,
            platform=platform,
            support_language='en' if english else None,
        )


def get_adapter() -> JPAdapter:
    return JPAdapter(
        region='jp',
        site_root=jp_config.SITE_ROOT,
        referers=jp_config.REFERERS,
        accept_language=jp_config.ACCEPT_LANGUAGE,
        id_prefixes=jp_config.ID_PREFIXES,
        detects_support_language=True,
    )
