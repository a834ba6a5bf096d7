"""Catalog and master record models.

A ``CatalogRecord`` is one product row from a region's freshly gathered
source file. A ``MasterRecord`` is the durable per-region row that
accumulates every identity ever seen plus bookkeeping timestamps.

Both keep descriptive fields (title, url, genres, ...) in an ordered
``fields`` dict so passthrough keys survive a round trip, while the three
enrichable fields are held as ``Sentinel`` values.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catalog_sync.shared.sentinel import Sentinel

__all__ = [
    'BOOKKEEPING_FIELDS',
    'CatalogRecord',
    'DESCRIPTIVE_FIELDS',
    'MasterRecord',
    'PLATFORM_FIELD',
    'SUPPORT_LANGUAGE_FIELD',
    'is_non_empty',
    'records_to_dicts',
    'utc_now_iso',
]


# Descriptive fields in the order they are written to master files
DESCRIPTIVE_FIELDS = (
    'title',
    'url',
    'urlKey',
    'genres',
    'releaseDate',
    'imageSquare',
    'imageKey',
    'publisher',
    'dlcType',
    'playerCount',
)

BOOKKEEPING_FIELDS = (
    'active_in_base',
    'first_seen_at',
    'last_seen_at',
    'last_checked_at',
)

PLATFORM_FIELD = 'platform'
SUPPORT_LANGUAGE_FIELD = 'supportLanguage'

# Generic id/code aliases used by some listing adapters
ID_ALIASES = ('nsuid', 'nsuid_txt', 'objectID')
CODE_ALIASES = ('productCode',)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def is_non_empty(value: Any) -> bool:
    """True for anything other than None, blank strings and empty lists."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ''
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def _first_scalar(value: Any) -> Any:
    # EU listings wrap ids in single-element lists
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _reserved_keys(adapter) -> set:
    return {
        adapter.id_field,
        adapter.code_field,
        PLATFORM_FIELD,
        SUPPORT_LANGUAGE_FIELD,
        *BOOKKEEPING_FIELDS,
        *CODE_ALIASES,
    }


@dataclass
class CatalogRecord:
    """One product row for one region."""

    region: str
    record_id: str
    raw_id: str
    platform: Sentinel = field(default_factory=Sentinel.unknown)
    product_code: Sentinel = field(default_factory=Sentinel.unknown)
    support_language: Sentinel = field(default_factory=Sentinel.unknown)
    fields: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def extract_raw_id(row: Dict[str, Any], adapter) -> Optional[str]:
        """Return the region's external id as stored in a row, or None."""
        for key in (adapter.id_field, *ID_ALIASES):
            value = _first_scalar(row.get(key))
            if is_non_empty(value):
                return str(value).strip()
        return None

    @classmethod
    def from_source(cls, row: Dict[str, Any], adapter) -> Optional['CatalogRecord']:
        """Build a record from a source file row.

        Returns:
            The record, or None when the row has no usable id.
        """
        raw_id = cls.extract_raw_id(row, adapter)
        if raw_id is None:
            return None
        record_id = adapter.normalize_id(raw_id)
        if not record_id:
            return None

        code_raw = row.get(adapter.code_field)
        if not is_non_empty(code_raw):
            code_raw = next((row.get(k) for k in CODE_ALIASES if is_non_empty(row.get(k))), None)

        reserved = _reserved_keys(adapter)
        return cls(
            region=adapter.region,
            record_id=record_id,
            raw_id=raw_id,
            platform=Sentinel.from_fresh(row.get(PLATFORM_FIELD)),
            product_code=Sentinel.from_fresh(code_raw),
            support_language=Sentinel.from_fresh(row.get(SUPPORT_LANGUAGE_FIELD)),
            fields={k: v for k, v in row.items() if k not in reserved},
        )

    @property
    def title(self) -> str:
        return str(self.fields.get('title') or '')


@dataclass
class MasterRecord(CatalogRecord):
    """Durable per-region row with presence bookkeeping."""

    active: bool = False
    first_seen_at: Optional[str] = None
    last_seen_at: Optional[str] = None
    last_checked_at: Optional[str] = None

    @classmethod
    def from_master(cls, row: Dict[str, Any], adapter) -> Optional['MasterRecord']:
        """Build a record from a row previously written to the master file."""
        raw_id = CatalogRecord.extract_raw_id(row, adapter)
        if raw_id is None:
            return None
        record_id = adapter.normalize_id(raw_id)
        if not record_id:
            return None

        reserved = _reserved_keys(adapter)
        return cls(
            region=adapter.region,
            record_id=record_id,
            raw_id=raw_id,
            platform=Sentinel.from_stored(row.get(PLATFORM_FIELD)),
            product_code=Sentinel.from_stored(row.get(adapter.code_field)),
            support_language=Sentinel.from_stored(row.get(SUPPORT_LANGUAGE_FIELD)),
            fields={k: v for k, v in row.items() if k not in reserved},
            active=row.get('active_in_base') is True,
            first_seen_at=row.get('first_seen_at'),
            last_seen_at=row.get('last_seen_at'),
            last_checked_at=row.get('last_checked_at'),
        )

    @classmethod
    def new(cls, region: str, record_id: str, raw_id: str) -> 'MasterRecord':
        return cls(region=region, record_id=record_id, raw_id=raw_id)

    def to_dict(self, adapter) -> Dict[str, Any]:
        """Serialize with a fixed key order so unchanged rows are byte-stable."""
        out: Dict[str, Any] = {}
        if 'title' in self.fields:
            out['title'] = self.fields['title']
        out[adapter.id_field] = self.raw_id
        for key in DESCRIPTIVE_FIELDS[1:]:
            if key in self.fields:
                out[key] = self.fields[key]
        out[PLATFORM_FIELD] = self.platform.to_stored()
        out[adapter.code_field] = self.product_code.to_stored()
        out[SUPPORT_LANGUAGE_FIELD] = self.support_language.to_stored()
        for key, value in self.fields.items():
            if key not in out and key not in DESCRIPTIVE_FIELDS:
                out[key] = value
        out['active_in_base'] = self.active
        out['first_seen_at'] = self.first_seen_at
        out['last_seen_at'] = self.last_seen_at
        if self.last_checked_at is not None:
            out['last_checked_at'] = self.last_checked_at
        return out


def records_to_dicts(records: List[MasterRecord], adapter, active_only: bool = False) -> List[Dict[str, Any]]:
    """Serialize a master array, optionally filtered to active rows."""
    return [r.to_dict(adapter) for r in records if r.active or not active_only]
