"""Cross-region entity resolution.

Decides which row of another region's catalog denotes the same product as
a canonical (US) row. Storefronts share no common product id, so matching
walks a ladder of progressively looser keys and the first hit wins:

- ``K1``: first 4 id digits + full product code + platform
- ``K2``: first 4 id digits + first 8 code characters + platform
- ``K3``: first 4 id digits + code characters 4-8 + platform
- ``K4``: loose slug (hyphens removed), platform-agnostic
- ``KT``: normalized title + platform

A canonical slug listed in the strict-slug file is matched by loose slug only
(rule ``strict-slug``), with no fallback to the other keys.

Everything here is pure: indexes are built from in-memory rows and no
function performs I/O.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from catalog_sync.shared.records import CatalogRecord, is_non_empty

__all__ = [
    'Match',
    'RULES',
    'RegionIndex',
    'build_region_index',
    'loose_slug',
    'normalize_platform',
    'normalize_slug',
    'normalize_title',
    'resolve',
    'slug_for',
]


RULES = ('strict-slug', 'K1', 'K2', 'K3', 'K4', 'KT')

SLUG_ALIASES = ('urlKey', 'slug', 'url_key')

_SCHEME_HOST = re.compile(r'^https?://[^/]+', re.IGNORECASE)
_NON_SLUG = re.compile(r'[^a-z0-9]+')
_URL_TAIL = re.compile(r'/([^/?#]+?)(?:\.html)?/?(?:[?#]|$)', re.IGNORECASE)
_COMBINING = re.compile('[\u0300-\u036f]')
_APOSTROPHES = re.compile("[\u2019']")
_NON_TITLE = re.compile(r'[^a-z0-9]+')


def normalize_slug(value: Any) -> Optional[str]:
    """Lowercase, drop scheme/host and slashes, collapse non-alphanumerics to '-'."""
    if value is None:
        return None
    text = str(value).strip().lower()
    text = _SCHEME_HOST.sub('', text)
    text = text.strip('/')
    text = _NON_SLUG.sub('-', text).strip('-')
    return text or None


def slug_for(row: Mapping[str, Any], replacements: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Normalized slug of a row.

    Uses ``urlKey`` (or its aliases) when present, else the last path
    segment of ``url`` minus ``.html``. Rewrites from ``replacements`` are
    applied last.
    """
    slug = None
    for key in SLUG_ALIASES:
        if is_non_empty(row.get(key)):
            slug = normalize_slug(row[key])
            break
    if slug is None and is_non_empty(row.get('url')):
        match = _URL_TAIL.search(str(row['url']))
        if match:
            slug = normalize_slug(match.group(1))
    if slug and replacements:
        slug = replacements.get(slug, slug)
    return slug


def loose_slug(slug: Optional[str]) -> Optional[str]:
    return slug.replace('-', '') if slug else None


def normalize_title(value: Any) -> Optional[str]:
    """Accent-, apostrophe- and punctuation-insensitive title key."""
    if not value:
        return None
    text = unicodedata.normalize('NFKD', str(value).lower())
    text = _COMBINING.sub('', text)
    text = _APOSTROPHES.sub('', text)
    text = _NON_TITLE.sub(' ', text).strip()
    return text or None


def normalize_platform(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def _code_keys(first4: str, code: str, platform: str) -> Dict[str, str]:
    code = code.strip().upper()
    keys = {'K1': f"{first4}|{code}|{platform}"}
    if len(code) >= 8:
        keys['K2'] = f"{first4}|{code[:8]}|{platform}"
        keys['K3'] = f"{first4}|{code[3:8]}|{platform}"
    return keys


def _row_code(row: Mapping[str, Any], adapter) -> Optional[str]:
    for key in (adapter.code_field, 'productCode'):
        if is_non_empty(row.get(key)):
            return str(row[key])
    return None


@dataclass(frozen=True)
class Match:
    """A resolved counterpart row and the rule that found it."""

    item: Dict[str, Any]
    rule: str
    candidates: int = 1


@dataclass
class RegionIndex:
    """Lookup tables over one region's rows.

    Exact keys keep the first row written for a key. Loose slugs keep
    every candidate in input order.
    """

    adapter: Any
    replacements: Mapping[str, str] = field(default_factory=dict)
    title_fallback: bool = True
    k1: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    k2: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    k3: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    k4: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    kt: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def region(self) -> str:
        return self.adapter.region

    def first4_of(self, row: Mapping[str, Any]) -> str:
        raw_id = CatalogRecord.extract_raw_id(dict(row), self.adapter)
        return self.adapter.first4(raw_id) if raw_id else ""

    def add(self, row: Dict[str, Any]) -> None:
        first4 = self.first4_of(row)
        code = _row_code(row, self.adapter)
        platform = normalize_platform(row.get('platform'))

        if first4 and code and platform:
            for rule, key in _code_keys(first4, code, platform).items():
                table = getattr(self, rule.lower())
                table.setdefault(key, row)

        loose = loose_slug(slug_for(row, self.replacements))
        if loose:
            self.k4.setdefault(loose, []).append(row)

        if self.title_fallback and platform:
            title = normalize_title(row.get('title'))
            if title:
                self.kt.setdefault(f"{title}|{platform}", row)


def build_region_index(
    rows: Iterable[Dict[str, Any]],
    adapter,
    replacements: Optional[Mapping[str, str]] = None,
    title_fallback: bool = True,
) -> RegionIndex:
    """Index a region's rows for ``resolve``."""
    index = RegionIndex(adapter=adapter, replacements=dict(replacements or {}), title_fallback=title_fallback)
    for row in rows:
        if isinstance(row, dict):
            index.add(row)
    return index


def _pick_loose(candidates: List[Dict[str, Any]], first4: str, index: RegionIndex) -> Dict[str, Any]:
    if len(candidates) > 1:
        logging.debug(f"[{index.region}] {len(candidates)} loose-slug candidates, preferring id prefix {first4 or '-'}")
        if first4:
            for candidate in candidates:
                if index.first4_of(candidate) == first4:
                    return candidate
    return candidates[0]


def resolve(
    canonical: Mapping[str, Any],
    index: RegionIndex,
    canonical_adapter,
    strict_slugs: Optional[Set[str]] = None,
) -> Optional[Match]:
    """Find the row in ``index`` that denotes the same product as ``canonical``.

    Args:
        canonical: The canonical (US) row
        index: Target region index
        canonical_adapter: Adapter of the canonical region (id normalization)
        strict_slugs: Slugs restricted to slug-only matching

    Returns:
        Match, or None when no rule applies
    """
    slug = slug_for(canonical, index.replacements)
    loose = loose_slug(slug)
    raw_id = CatalogRecord.extract_raw_id(dict(canonical), canonical_adapter)
    first4 = canonical_adapter.first4(raw_id) if raw_id else ""

    if slug and strict_slugs and (slug in strict_slugs or slug_for(canonical) in strict_slugs):
        candidates = index.k4.get(loose)
        if not candidates:
            return None
        return Match(_pick_loose(candidates, first4, index), 'strict-slug', len(candidates))

    code = _row_code(canonical, canonical_adapter)
    platform = normalize_platform(canonical.get('platform'))

    if first4 and code and platform:
        for rule, key in _code_keys(first4, code, platform).items():
            hit = getattr(index, rule.lower()).get(key)
            if hit is not None:
                return Match(hit, rule)

    if loose and loose in index.k4:
        candidates = index.k4[loose]
        return Match(_pick_loose(candidates, first4, index), 'K4', len(candidates))

    if index.title_fallback and platform:
        title = normalize_title(canonical.get('title'))
        if title:
            hit = index.kt.get(f"{title}|{platform}")
            if hit is not None:
                return Match(hit, 'KT')

    return None
