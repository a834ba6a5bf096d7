"""Incremental per-region merge.

One run for one region:

1. Load the fresh source view and the prior master. A missing master is an
   empty master; anything unreadable aborts before a single write.
2. Union both by identity. Prior rows keep their order and new ids are
   appended in source order. Fresh non-blank values overlay prior ones;
   blanks never erase anything.
3. Mark presence: ``active_in_base`` follows the source view,
   ``first_seen_at`` is set once and ``last_seen_at`` only moves while the
   row is active.
4. Fetch the worklist (active rows whose enrichable fields are still
   unknown) and apply each outcome as it completes.
5. Checkpoint master + active-only snapshot every N completions and once at
   the end.

Identities are never removed from the master, and enrichable fields only
ever move out of the unknown state.
"""

import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from catalog_sync.shared.constants import CHECKPOINT, PATHS
from catalog_sync.shared.errors import CatalogLoadError
from catalog_sync.shared.fetch import Absent, Error, FetchEngine, FetchResult, FetchTarget, Found, Outcome
from catalog_sync.shared.rate_limiter import TokenBucket
from catalog_sync.shared.records import (
    CatalogRecord,
    MasterRecord,
    SUPPORT_LANGUAGE_FIELD,
    is_non_empty,
    records_to_dicts,
    utc_now_iso,
)
from catalog_sync.shared.region_config import DEFAULT_REGION_CONFIG
from catalog_sync.shared.request_counter import CooldownSchedule
from catalog_sync.shared.retry import RetryPolicy
from catalog_sync.shared.session import FetchSession
from catalog_sync.shared.storage import load_json_array, write_json_atomic

__all__ = [
    'MergeEngine',
    'MergeRunStats',
    'apply_outcome',
    'build_fetch_engine',
    'merge_records',
    'needs_fetch',
    'select_worklist',
]


@dataclass
class MergeRunStats:
    """Summary of one region run."""

    region: str
    source_rows: int = 0
    skipped_rows: int = 0
    union: int = 0
    active: int = 0
    worklist: int = 0
    found: int = 0
    absent: int = 0
    errors: int = 0
    checkpoints: int = 0

    def summary(self) -> str:
        return (
            f"[{self.region}] union={self.union} active={self.active} worklist={self.worklist} "
            f"found={self.found} absent={self.absent} errors={self.errors} "
            f"skipped={self.skipped_rows} checkpoints={self.checkpoints}"
        )


def _overlay_fields(prior: Dict[str, Any], fresh: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(prior)
    for key, value in fresh.items():
        if key == 'genres':
            if isinstance(value, list) and value:
                merged[key] = value
            elif key not in merged:
                merged[key] = value if isinstance(value, list) else []
        elif is_non_empty(value):
            merged[key] = value
        elif key not in merged:
            merged[key] = value
    return merged


def _overlay(prior: MasterRecord, fresh: CatalogRecord) -> MasterRecord:
    return replace(
        prior,
        raw_id=fresh.raw_id or prior.raw_id,
        platform=prior.platform.overlay(fresh.platform),
        product_code=prior.product_code.overlay(fresh.product_code),
        support_language=prior.support_language.overlay(fresh.support_language),
        fields=_overlay_fields(prior.fields, fresh.fields),
    )


def merge_records(prior: List[MasterRecord], source: List[CatalogRecord], now: str) -> List[MasterRecord]:
    """Union a source view into the prior master.

    Args:
        prior: Prior master rows (not modified)
        source: Fresh source rows
        now: ISO timestamp for presence bookkeeping

    Returns:
        New master rows: prior order first, then new ids in source order
    """
    fresh_by_id: Dict[str, CatalogRecord] = {}
    for record in source:
        if record.record_id in fresh_by_id:
            logging.debug(f"[{record.region}] Duplicate source id {record.record_id}; later row overlays earlier")
            first = fresh_by_id[record.record_id]
            fresh_by_id[record.record_id] = replace(
                record,
                platform=first.platform.overlay(record.platform),
                product_code=first.product_code.overlay(record.product_code),
                support_language=first.support_language.overlay(record.support_language),
                fields=_overlay_fields(first.fields, record.fields),
            )
        else:
            fresh_by_id[record.record_id] = record

    merged: List[MasterRecord] = []
    seen = set()
    for row in prior:
        if row.record_id in seen:
            continue
        seen.add(row.record_id)
        fresh = fresh_by_id.get(row.record_id)
        merged.append(_overlay(row, fresh) if fresh else replace(row, fields=dict(row.fields)))

    for record_id, fresh in fresh_by_id.items():
        if record_id in seen:
            continue
        seen.add(record_id)
        merged.append(_overlay(MasterRecord.new(fresh.region, record_id, fresh.raw_id), fresh))

    for row in merged:
        row.active = row.record_id in fresh_by_id
        row.first_seen_at = row.first_seen_at or now
        if row.active or not row.last_seen_at:
            row.last_seen_at = now

    return merged


def needs_fetch(record: MasterRecord, adapter, force: bool = False) -> bool:
    """Whether an enrichment fetch could still move one of the row's fields.

    A confirmed-empty product code excludes the row entirely.
    """
    if not record.active or not adapter.is_fetch_eligible(record):
        return False
    code = record.product_code
    if code.is_empty:
        return False
    if force or code.is_unknown:
        return True
    if adapter.detects_platform and record.platform.is_unknown:
        return True
    if adapter.detects_support_language and record.support_language.is_unknown:
        return True
    return False


def select_worklist(records: List[MasterRecord], adapter, force: bool = False) -> List[int]:
    """Indices of the rows to fetch (``to_process``)."""
    return [i for i, record in enumerate(records) if needs_fetch(record, adapter, force)]


def apply_outcome(record: MasterRecord, outcome: Outcome, now: str) -> None:
    """Apply one fetch outcome in place.

    ``Error`` leaves every field unknown. Fields missing from an outcome's
    ``aux`` (not read by the region, or a 404 with no page) are untouched.
    """
    if isinstance(outcome, Found):
        record.product_code = record.product_code.advance(outcome.value)
    elif isinstance(outcome, Absent):
        record.product_code = record.product_code.advance(None)

    if isinstance(outcome, (Found, Absent)):
        if 'platform' in outcome.aux:
            record.platform = record.platform.advance(outcome.aux['platform'])
        if SUPPORT_LANGUAGE_FIELD in outcome.aux:
            record.support_language = record.support_language.advance(outcome.aux[SUPPORT_LANGUAGE_FIELD])

    record.last_checked_at = now


def build_fetch_engine(adapter, config: Dict[str, Any]) -> FetchEngine:
    """Create the per-run session, limiter and fetch engine from region config."""
    config = {**DEFAULT_REGION_CONFIG, **config}
    session = FetchSession(
        site_root=adapter.site_root,
        referers=adapter.referers,
        accept_language=adapter.accept_language,
        timeout=config.get('timeout'),
        cooldown=CooldownSchedule(
            every=config.get('cooldown_every'),
            min_seconds=config.get('cooldown_min'),
            max_seconds=config.get('cooldown_max'),
        ),
        label=adapter.region,
    )
    limiter = TokenBucket(rate=config.get('requests_per_second'), burst=config.get('burst'))
    return FetchEngine(
        adapter,
        session,
        limiter=limiter,
        policy=RetryPolicy.from_config(config),
        workers=config.get('workers'),
        worker_delay=(config.get('worker_delay_min'), config.get('worker_delay_max')),
    )


class MergeEngine:
    """Run the incremental merge for one region.

    Args:
        adapter: Region adapter
        config: Effective region config (see ``load_region_config``)
        data_dir: Directory holding source, master and snapshot files
        clock: Returns the current ISO timestamp (injectable for tests)
        fetcher: Object with ``fetch_all(targets, on_outcome)``; built from
            config when omitted
    """

    def __init__(
        self,
        adapter,
        config: Optional[Dict[str, Any]] = None,
        data_dir: Union[str, Path] = PATHS.DATA_DIR,
        clock: Callable[[], str] = utc_now_iso,
        fetcher=None,
    ):
        self.adapter = adapter
        self.region = adapter.region
        self.config = config or {}
        self.data_dir = Path(data_dir)
        self.clock = clock
        self.fetcher = fetcher
        self.checkpoint_every = max(1, int(self.config.get('checkpoint_every', CHECKPOINT.EVERY_COMPLETIONS)))

    @property
    def source_path(self) -> Path:
        return self.data_dir / f"{self.region}_games.json"

    @property
    def master_path(self) -> Path:
        return self.data_dir / f"{self.region}_games_enriched.json"

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / f"{self.region}_games_enriched_current.json"

    def load(self) -> Tuple[List[CatalogRecord], List[MasterRecord], int]:
        """Load and validate source and master.

        Malformed source rows are skipped with a warning. Malformed master
        rows abort the run, because dropping them would lose history.

        Returns:
            (source records, prior master records, skipped source rows)

        Raises:
            CatalogLoadError: If either file cannot be used
        """
        source_rows = load_json_array(self.source_path, required=True)
        master_rows = load_json_array(self.master_path, required=False)

        source: List[CatalogRecord] = []
        skipped = 0
        for position, row in enumerate(source_rows):
            record = CatalogRecord.from_source(row, self.adapter) if isinstance(row, dict) else None
            if record is None:
                skipped += 1
                logging.warning(f"[{self.region}] Skipping source row {position}: not an object with an id")
                continue
            source.append(record)

        prior: List[MasterRecord] = []
        for position, row in enumerate(master_rows):
            record = MasterRecord.from_master(row, self.adapter) if isinstance(row, dict) else None
            if record is None:
                raise CatalogLoadError(str(self.master_path), f"row {position} is not an object with an id")
            prior.append(record)

        logging.info(
            f"[{self.region}] Loaded {len(source)} source rows ({skipped} skipped) "
            f"and {len(prior)} master rows"
        )
        return source, prior, skipped

    def checkpoint(self, records: List[MasterRecord]) -> None:
        """Write master and active-only snapshot atomically."""
        write_json_atomic(records_to_dicts(records, self.adapter), self.master_path)
        write_json_atomic(records_to_dicts(records, self.adapter, active_only=True), self.snapshot_path)

    def run(self, force: bool = False) -> MergeRunStats:
        """Merge, enrich and persist one region.

        Args:
            force: Re-fetch active rows whose product code is not confirmed
                empty, to fill missing platform or support language

        Returns:
            Run statistics
        """
        stats = MergeRunStats(region=self.region)
        source, prior, skipped = self.load()
        stats.source_rows = len(source)
        stats.skipped_rows = skipped

        records = merge_records(prior, source, self.clock())
        stats.union = len(records)
        stats.active = sum(1 for r in records if r.active)

        worklist = select_worklist(records, self.adapter, force)
        stats.worklist = len(worklist)
        logging.info(f"[{self.region}] union={stats.union} active={stats.active} fetchCandidates={stats.worklist}")

        if worklist:
            self._enrich(records, worklist, stats)

        self.checkpoint(records)
        stats.checkpoints += 1
        logging.info(stats.summary())
        return stats

    def _enrich(self, records: List[MasterRecord], worklist: List[int], stats: MergeRunStats) -> None:
        targets = [FetchTarget(key=i, url=self.adapter.build_lookup_url(records[i])) for i in worklist]
        completed = [0]

        def on_outcome(target: FetchTarget, outcome: Outcome) -> None:
            record = records[target.key]
            apply_outcome(record, outcome, self.clock())
            if isinstance(outcome, Found):
                logging.info(f"[{self.region}] {record.raw_id} -> {outcome.value}")
            elif isinstance(outcome, Absent):
                logging.info(f"[{self.region}] {record.raw_id} has no product code ({outcome.reason})")
            elif isinstance(outcome, Error):
                logging.warning(f"[{self.region}] {record.raw_id} left unknown: {outcome.cause}")

            completed[0] += 1
            if completed[0] % self.checkpoint_every == 0:
                self.checkpoint(records)
                stats.checkpoints += 1
                logging.info(f"[{self.region}] Checkpoint saved after {completed[0]} completions")

        fetcher = self.fetcher
        owns_fetcher = fetcher is None
        if owns_fetcher:
            fetcher = build_fetch_engine(self.adapter, self.config)
            fetcher.session.warm_up()

        started = time.monotonic()
        try:
            counts = fetcher.fetch_all(targets, on_outcome)
        finally:
            if owns_fetcher:
                fetcher.session.close()

        stats.found = counts[FetchResult.FOUND]
        stats.absent = counts[FetchResult.NOT_FOUND]
        stats.errors = counts[FetchResult.ERROR]
        logging.info(f"[{self.region}] Fetched {len(targets)} targets in {time.monotonic() - started:.1f}s")
