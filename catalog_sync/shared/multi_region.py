"""Multi-region merge over per-region masters.

Walks the canonical (US) master once. For every canonical row it resolves a
counterpart in each other region, copies that region's id, product code,
support language and square image onto the row, and ORs the region's
``active_in_base`` into the merged flag. Afterwards ``nsuid_<region>`` is
kept only for regions where the product is currently active.

Region rows that no canonical row claimed are leftovers. Leftovers of the
append regions (EU by default) are added to the output as-is; all of them
are listed in the merge log.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from catalog_sync.shared.constants import PATHS
from catalog_sync.shared.errors import CatalogLoadError
from catalog_sync.shared.records import CatalogRecord, is_non_empty, utc_now_iso
from catalog_sync.shared.resolver import RULES, build_region_index, resolve, slug_for
from catalog_sync.shared.storage import load_json_array, write_json_atomic

__all__ = [
    'MergeReport',
    'MultiRegionMerger',
    'order_keys',
    'pick_support_language',
]


ENGLISH_CODES = frozenset({'en', 'en_US'})

KEY_ORDER_HEAD = (
    'title', 'url', 'urlKey', 'platform', 'genres', 'releaseDate', 'publisher', 'dlcType', 'playerCount',
    'imageSquare',
)
KEY_ORDER_REGIONS = ('us', 'eu', 'jp', 'hk', 'kr')


def _preferred_keys(regions: Sequence[str]) -> List[str]:
    ordered_regions = [r for r in KEY_ORDER_REGIONS if r in regions] + [r for r in regions if r not in KEY_ORDER_REGIONS]
    keys = list(KEY_ORDER_HEAD)
    keys += [f"imageSquare_{r}" for r in ordered_regions]
    keys.append('imageKey')
    for prefix in ('nsuid', 'productCode', 'supportLanguage'):
        keys += [f"{prefix}_{r}" for r in ordered_regions]
    keys.append('active_in_base')
    return keys


def order_keys(row: Mapping[str, Any], regions: Sequence[str] = KEY_ORDER_REGIONS) -> Dict[str, Any]:
    """Copy of ``row`` with preferred keys first, then the rest in original order."""
    out: Dict[str, Any] = {}
    for key in _preferred_keys(regions):
        if key in row:
            out[key] = row[key]
    for key, value in row.items():
        if key not in out:
            out[key] = value
    return out


def _english_in(languages: Any) -> bool:
    if not isinstance(languages, list):
        return False
    return bool({str(lang).strip() for lang in languages} & ENGLISH_CODES)


def pick_support_language(row: Mapping[str, Any]) -> Optional[str]:
    """Support language of a region row, 'en' when English is listed."""
    if _english_in(row.get('supportLanguages')):
        return 'en'
    if is_non_empty(row.get('supportLanguage')):
        return str(row['supportLanguage']).strip()
    spec = row.get('c_original_specification')
    if isinstance(spec, dict) and _english_in(spec.get('supportLanguages')):
        return 'en'
    return None


@dataclass
class MergeReport:
    """Counts and listings for one multi-region merge."""

    regions: List[str]
    generated_at: str = ""
    canonical_count: int = 0
    output_count: int = 0
    matched: Dict[str, int] = field(default_factory=dict)
    rule_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    ambiguous: Dict[str, int] = field(default_factory=dict)
    raise_counts: Dict[str, int] = field(default_factory=dict)
    raise_events: List[str] = field(default_factory=list)
    leftovers: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    appended: Dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        parts = [f"base={self.canonical_count}", f"output={self.output_count}"]
        for region in self.regions:
            parts.append(
                f"{region}: matched {self.matched.get(region, 0)}/{self.canonical_count}, "
                f"leftover {len(self.leftovers.get(region, []))}"
            )
        return " | ".join(parts)

    def log_lines(self, adapters: Mapping[str, Any]) -> List[str]:
        """Human-readable merge log."""
        lines = [f"Merge run @ {self.generated_at}"]
        lines.append(f"Base entries: {self.canonical_count}")
        for region, count in self.appended.items():
            lines.append(f"{region.upper()}-only entries appended to final output: {count}")
        lines.append(f"Final output total: {self.output_count}")
        for region in self.regions:
            lines.append(f"Matched {region.upper()}: {self.matched.get(region, 0)} / {self.canonical_count}")
        lines.append('')

        for region in self.regions:
            lines.append(f"{region.upper()} entries not matched to any base row: {len(self.leftovers.get(region, []))}")
        lines.append('')

        lines.append('Rule usage (how matches were made):')
        for region in self.regions:
            lines.append(f"  {region.upper()}: {json.dumps(self.rule_counts.get(region, {}))}")
            if self.ambiguous.get(region):
                lines.append(f"  {region.upper()} ambiguous slug matches: {self.ambiguous[region]}")
        lines.append('')

        lines.append('active_in_base raises (region flipped merged value from false to true):')
        lines.append(f"  by region counts: {json.dumps(self.raise_counts)}")
        if self.raise_events:
            lines.extend(f"  - {event}" for event in self.raise_events)
        else:
            lines.append('  (none)')
        lines.append('')

        for region in self.regions:
            adapter = adapters[region]
            lines.append(f"--- {region.upper()} entries not matched to any base row ---")
            for row in self.leftovers.get(region, []):
                listing = {
                    adapter.id_field: row.get(adapter.id_field, row.get('nsuid')),
                    adapter.code_field: row.get(adapter.code_field, row.get('productCode')),
                    'urlKey': slug_for(row),
                    'title': row.get('title'),
                    'platform': row.get('platform'),
                }
                if row.get('active_in_base') is True:
                    listing['active_in_base'] = True
                lines.append(json.dumps(listing, ensure_ascii=False))
            lines.append('')
        return lines


class MultiRegionMerger:
    """Merge region masters onto the canonical master.

    Args:
        canonical_adapter: Adapter of the canonical region (US)
        region_adapters: Adapters of the regions to match, in merge order
        strict_slugs: Canonical slugs matched by slug only
        replacements: Slug rewrites applied before indexing and lookup
        append_regions: Regions whose leftovers are appended to the output
        title_fallback: Enable the normalized-title rule
        clock: Returns the ISO timestamp written to the log
    """

    def __init__(
        self,
        canonical_adapter,
        region_adapters: Sequence[Any],
        strict_slugs: Optional[Set[str]] = None,
        replacements: Optional[Mapping[str, str]] = None,
        append_regions: Sequence[str] = ('eu',),
        title_fallback: bool = True,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.canonical = canonical_adapter
        self.adapters = {adapter.region: adapter for adapter in region_adapters}
        self.regions = [adapter.region for adapter in region_adapters]
        self.strict_slugs = set(strict_slugs or ())
        self.replacements = dict(replacements or {})
        self.append_regions = [r for r in append_regions if r in self.adapters]
        self.title_fallback = title_fallback
        self._clock = clock

    def _region_id(self, row: Mapping[str, Any], adapter) -> Optional[str]:
        raw_id = CatalogRecord.extract_raw_id(dict(row), adapter)
        return adapter.normalize_id(raw_id) if raw_id else None

    def _append_region_fields(self, merged: Dict[str, Any], region: str, matched: Mapping[str, Any]) -> bool:
        """Copy a matched region row onto the merged row.

        Returns:
            True if the matched row is active in its region
        """
        adapter = self.adapters[region]
        region_id = self._region_id(matched, adapter)
        if region_id:
            merged[f"nsuid_{region}"] = region_id

        code = matched.get(adapter.code_field, matched.get('productCode'))
        if is_non_empty(code):
            merged[f"productCode_{region}"] = str(code).strip().upper()

        language = pick_support_language(matched)
        if language:
            merged[f"supportLanguage_{region}"] = language

        if not is_non_empty(merged.get('platform')) and is_non_empty(matched.get('platform')):
            merged['platform'] = str(matched['platform']).strip()

        image = matched.get('imageSquare', matched.get('image_square'))
        image_key = f"imageSquare_{region}"
        if is_non_empty(image) and not is_non_empty(merged.get(image_key)):
            merged[image_key] = str(image).strip()

        return matched.get('active_in_base') is True

    def merge(
        self,
        canonical_rows: List[Dict[str, Any]],
        region_rows: Mapping[str, List[Dict[str, Any]]],
    ) -> Tuple[List[Dict[str, Any]], MergeReport]:
        """Merge in memory.

        Returns:
            (merged rows, report)
        """
        report = MergeReport(regions=list(self.regions), generated_at=self._clock())
        report.canonical_count = len(canonical_rows)
        all_regions = [self.canonical.region] + self.regions

        indexes = {}
        seen: Dict[str, Set[str]] = {}
        for region in self.regions:
            indexes[region] = build_region_index(
                region_rows.get(region, []),
                self.adapters[region],
                replacements=self.replacements,
                title_fallback=self.title_fallback,
            )
            seen[region] = set()
            report.matched[region] = 0
            report.rule_counts[region] = {rule: 0 for rule in RULES}
            report.ambiguous[region] = 0
            report.raise_counts[region] = 0

        output: List[Dict[str, Any]] = []
        canonical_id_field = self.canonical.id_field

        for row_id, original in enumerate(canonical_rows):
            merged = dict(original)
            was_active = original.get('active_in_base') is True
            active_regions = set()
            if was_active:
                active_regions.add(self.canonical.region)
                if not is_non_empty(merged.get(canonical_id_field)):
                    canonical_id = self._region_id(original, self.canonical)
                    if canonical_id:
                        merged[canonical_id_field] = canonical_id

            for region in self.regions:
                match = resolve(original, indexes[region], self.canonical, self.strict_slugs)
                if match is None:
                    continue

                region_active = self._append_region_fields(merged, region, match.item)
                if region_active:
                    if merged.get('active_in_base') is not True and not was_active:
                        report.raise_counts[region] += 1
                        title = f'"{original["title"]}" ' if original.get('title') else ''
                        base_id = original.get(canonical_id_field, original.get('nsuid', 'N/A'))
                        report.raise_events.append(
                            f"raised active_in_base by {region.upper()} for rowId {row_id} {title}"
                            f"({self.canonical.region.upper()} nsuid: {base_id})"
                        )
                    merged['active_in_base'] = True
                    active_regions.add(region)

                region_id = self._region_id(match.item, self.adapters[region])
                if region_id:
                    seen[region].add(region_id)
                report.matched[region] += 1
                report.rule_counts[region][match.rule] += 1
                if match.candidates > 1:
                    report.ambiguous[region] += 1

            for region in all_regions:
                if region not in active_regions:
                    merged.pop(f"nsuid_{region}", None)

            if not is_non_empty(merged.get('urlKey')):
                slug = slug_for(merged)
                if slug:
                    merged['urlKey'] = slug

            output.append(order_keys(merged, all_regions))

        for region in self.regions:
            adapter = self.adapters[region]
            report.leftovers[region] = [
                row for row in region_rows.get(region, [])
                if isinstance(row, dict)
                and self._region_id(row, adapter)
                and self._region_id(row, adapter) not in seen[region]
            ]

        for region in self.append_regions:
            leftovers = report.leftovers.get(region, [])
            for row in leftovers:
                clone = dict(row)
                if not is_non_empty(clone.get('urlKey')):
                    slug = slug_for(row)
                    if slug:
                        clone['urlKey'] = slug
                output.append(order_keys(clone, all_regions))
            report.appended[region] = len(leftovers)
            logging.info(f"Appended {region.upper()}-only entries: {len(leftovers)}")

        report.output_count = len(output)
        return output, report

    @staticmethod
    def _load_master(data_dir: Path, region: str) -> List[Dict[str, Any]]:
        path = data_dir / f"{region}_games_enriched.json"
        rows = load_json_array(path)
        for position, row in enumerate(rows):
            if not isinstance(row, dict):
                raise CatalogLoadError(str(path), f"row {position} is not an object")
        return rows

    def run(
        self,
        data_dir: Union[str, Path] = PATHS.DATA_DIR,
        output_file: Union[str, Path] = PATHS.MERGED_OUTPUT_FILE,
        log_file: Union[str, Path] = PATHS.MERGE_LOG_FILE,
    ) -> MergeReport:
        """Load masters, merge, write the merged output and the merge log.

        All inputs are loaded before anything is written.

        Raises:
            CatalogLoadError: If any master is missing or malformed
        """
        data_dir = Path(data_dir)
        canonical_rows = self._load_master(data_dir, self.canonical.region)
        region_rows = {region: self._load_master(data_dir, region) for region in self.regions}

        merged, report = self.merge(canonical_rows, region_rows)

        write_json_atomic(merged, output_file)
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, 'w', encoding='utf-8') as f:
            f.write('\n'.join(report.log_lines(self.adapters)))

        logging.info(f"Merged to {output_file}: {report.summary()}")
        logging.info(f"Merge log written to {log_path}")
        return report
