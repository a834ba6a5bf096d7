"""Tests for the incremental per-region merge engine."""

from unittest.mock import patch

import pytest

from catalog_sync.regions import get_region_adapter
from catalog_sync.shared.errors import CatalogLoadError
from catalog_sync.shared.fetch import Absent, Error, Found
from catalog_sync.shared.merge_engine import (
    MergeEngine,
    apply_outcome,
    merge_records,
    needs_fetch,
    select_worklist,
)
from catalog_sync.shared.records import CatalogRecord, MasterRecord
from catalog_sync.shared.sentinel import Sentinel

FIXED_NOW = "2025-06-01T12:00:00.000Z"  # fixed_clock
EARLIER = "2025-01-01T00:00:00.000Z"
HK_URL = "https://store.nintendo.com.hk/{}"


@pytest.fixture
def hk():
    return get_region_adapter('hk')


@pytest.fixture
def make_engine(hk, data_dir, fixed_clock, scripted_fetcher):
    def _make(outcomes=None, adapter=None, **config):
        fetcher = scripted_fetcher(outcomes or {})
        engine = MergeEngine(
            adapter or hk,
            config=config,
            data_dir=data_dir,
            clock=fixed_clock,
            fetcher=fetcher,
        )
        return engine, fetcher
    return _make


def master_row(nsuid, code=None, platform=None, active=True, last_seen=EARLIER, **extra):
    row = {
        'title': extra.pop('title', f"Game {nsuid}"),
        'nsuid_hk': nsuid,
        'platform': platform,
        'productCode_hk': code,
        'supportLanguage': None,
        'active_in_base': active,
        'first_seen_at': EARLIER,
        'last_seen_at': last_seen,
    }
    row.update(extra)
    return row


def by_id(rows):
    return {row['nsuid_hk']: row for row in rows}


class TestFirstRun:

    def test_fetches_and_records_every_outcome(self, make_engine, data_dir, write_json, read_json):
        write_json(data_dir / "hk_games.json", [
            {'title': 'Alpha', 'nsuid_hk': '70010000000001', 'platform': ''},
            {'title': 'Beta', 'nsuid_hk': '70010000000002'},
            {'title': 'Gamma', 'nsuid_hk': '70010000000003'},
        ])
        engine, fetcher = make_engine({
            HK_URL.format('70010000000001'): Found('HACPAAAAA', {'platform': 'Nintendo Switch'}),
            HK_URL.format('70010000000002'): Absent('http-404'),
            HK_URL.format('70010000000003'): Error('HTTP 503'),
        })

        stats = engine.run()

        master = by_id(read_json(engine.master_path))
        assert master['70010000000001']['productCode_hk'] == 'HACPAAAAA'
        assert master['70010000000001']['platform'] == 'Nintendo Switch'
        assert master['70010000000002']['productCode_hk'] == ''
        assert master['70010000000002']['platform'] is None
        assert master['70010000000003']['productCode_hk'] is None
        for row in master.values():
            assert row['active_in_base'] is True
            assert row['first_seen_at'] == FIXED_NOW
            assert row['last_checked_at'] == FIXED_NOW
        assert (stats.found, stats.absent, stats.errors) == (1, 1, 1)
        assert len(read_json(engine.snapshot_path)) == 3

    def test_rerun_with_same_inputs_is_byte_identical(self, make_engine, data_dir, write_json):
        write_json(data_dir / "hk_games.json", [
            {'title': 'Alpha', 'nsuid_hk': '70010000000001'},
            {'title': 'Beta', 'nsuid_hk': '70010000000002'},
        ])
        engine, _ = make_engine({
            HK_URL.format('70010000000001'): Found('HACPAAAAA', {'platform': 'Nintendo Switch'}),
            HK_URL.format('70010000000002'): Absent('http-404'),
        })
        engine.run()
        first_master = engine.master_path.read_bytes()
        first_snapshot = engine.snapshot_path.read_bytes()

        again, fetcher = make_engine({})
        again.run()

        assert fetcher.requested == []
        assert engine.master_path.read_bytes() == first_master
        assert engine.snapshot_path.read_bytes() == first_snapshot


class TestWorklist:

    def test_confirmed_empty_code_is_never_refetched(self, make_engine, data_dir, write_json, read_json):
        write_json(data_dir / "hk_games.json", [{'title': 'Bundle', 'nsuid_hk': '70010000000009'}])
        write_json(data_dir / "hk_games_enriched.json", [master_row('70010000000009', code='')])
        engine, fetcher = make_engine({})

        stats = engine.run()

        assert stats.worklist == 0
        assert fetcher.requested == []
        assert read_json(engine.master_path)[0]['productCode_hk'] == ''

    def test_absent_today_excluded_next_run(self, make_engine, data_dir, write_json, read_json, hk):
        write_json(data_dir / "hk_games.json", [{'title': 'Alpha', 'nsuid_hk': '70010000000001'}])
        engine, _ = make_engine({HK_URL.format('70010000000001'): Absent('no-code', {'platform': None})})
        engine.run()

        row = read_json(engine.master_path)[0]
        assert row['productCode_hk'] == ''
        assert row['active_in_base'] is True

        source, prior, _ = engine.load()
        records = merge_records(prior, source, FIXED_NOW)
        assert select_worklist(records, hk) == []
        assert select_worklist(records, hk, force=True) == []

    def test_error_leaves_row_on_worklist(self, make_engine, data_dir, write_json):
        write_json(data_dir / "hk_games.json", [{'title': 'Alpha', 'nsuid_hk': '70010000000001'}])
        url = HK_URL.format('70010000000001')
        engine, _ = make_engine({url: Error('HTTP 503')})
        engine.run()

        retry, fetcher = make_engine({url: Found('HACPAAAAA', {'platform': 'Nintendo Switch'})})
        stats = retry.run()

        assert fetcher.requested == [url]
        assert stats.found == 1

    def test_inactive_rows_are_not_fetched(self, hk):
        record = MasterRecord.new('hk', '1', '1')
        assert not needs_fetch(record, hk)
        record.active = True
        assert needs_fetch(record, hk)

    def test_missing_platform_triggers_fetch_where_detected(self, hk):
        record = MasterRecord.new('hk', '1', '1')
        record.active = True
        record.product_code = Sentinel.present('HACPAAAAA')
        assert needs_fetch(record, hk)

        record.platform = Sentinel.empty()
        assert not needs_fetch(record, hk)
        assert needs_fetch(record, hk, force=True)

    def test_us_never_fetches_for_platform(self):
        us = get_region_adapter('us')
        record = MasterRecord.new('us', '1', '1')
        record.active = True
        record.fields['url'] = '/us/store/products/alpha-switch/'
        record.product_code = Sentinel.present('HACPAAAAA')
        assert not needs_fetch(record, us)

    def test_jp_support_language_and_prefix_rules(self):
        jp = get_region_adapter('jp')
        record = MasterRecord.new('jp', '70010000000001', 'D70010000000001')
        record.active = True
        record.product_code = Sentinel.present('HACPAAAAA')
        record.platform = Sentinel.present('Nintendo Switch')
        assert needs_fetch(record, jp)

        record.support_language = Sentinel.empty()
        assert not needs_fetch(record, jp)

        bundle = MasterRecord.new('jp', 'B0001', 'B0001')
        bundle.active = True
        assert not needs_fetch(bundle, jp)

    def test_eu_is_never_fetched(self):
        eu = get_region_adapter('eu')
        record = MasterRecord.new('eu', '1', '1')
        record.active = True
        assert not needs_fetch(record, eu)


class TestApplyOutcome:

    def test_found_does_not_overwrite_known_values(self):
        record = MasterRecord.new('hk', '1', '1')
        record.product_code = Sentinel.present('OLD')
        apply_outcome(record, Found('NEW', {'platform': 'Nintendo Switch'}), FIXED_NOW)

        assert record.product_code.value == 'OLD'
        assert record.platform.value == 'Nintendo Switch'

    def test_fields_missing_from_aux_stay_unknown(self):
        record = MasterRecord.new('hk', '1', '1')
        apply_outcome(record, Absent('http-404'), FIXED_NOW)

        assert record.product_code.is_empty
        assert record.platform.is_unknown
        assert record.support_language.is_unknown

    def test_error_only_stamps_check_time(self):
        record = MasterRecord.new('hk', '1', '1')
        apply_outcome(record, Error('timeout'), FIXED_NOW)

        assert record.product_code.is_unknown
        assert record.last_checked_at == FIXED_NOW


class TestPresence:

    def test_disappeared_row_is_kept_inactive(self, make_engine, data_dir, write_json, read_json):
        write_json(data_dir / "hk_games.json", [{'title': 'Stays', 'nsuid_hk': '1001'}])
        write_json(data_dir / "hk_games_enriched.json", [
            master_row('1001', code='HACPAAAAA', platform='Nintendo Switch'),
            master_row('1002', code='HACPBBBBB', platform='Nintendo Switch', publisher='Nintendo'),
        ])
        engine, _ = make_engine({})

        engine.run()

        master = by_id(read_json(engine.master_path))
        gone = master['1002']
        assert gone['active_in_base'] is False
        assert gone['last_seen_at'] == EARLIER
        assert gone['productCode_hk'] == 'HACPBBBBB'
        assert gone['publisher'] == 'Nintendo'
        assert master['1001']['last_seen_at'] == FIXED_NOW
        assert [row['nsuid_hk'] for row in read_json(engine.snapshot_path)] == ['1001']

    def test_reappearing_row_becomes_active(self):
        hk = get_region_adapter('hk')
        prior = [MasterRecord.from_master(master_row('1001', code='X', active=False), hk)]
        source = [CatalogRecord.from_source({'nsuid_hk': '1001', 'title': 'Back'}, hk)]

        merged = merge_records(prior, source, FIXED_NOW)

        assert merged[0].active
        assert merged[0].first_seen_at == EARLIER
        assert merged[0].last_seen_at == FIXED_NOW
        assert merged[0].title == 'Back'

    def test_prior_order_then_new_ids(self):
        hk = get_region_adapter('hk')
        prior = [MasterRecord.from_master(master_row(i), hk) for i in ('3', '1')]
        source = [CatalogRecord.from_source({'nsuid_hk': i}, hk) for i in ('2', '1', '4')]

        merged = merge_records(prior, source, FIXED_NOW)

        assert [r.record_id for r in merged] == ['3', '1', '2', '4']


class TestOverlay:

    def test_blank_source_values_never_erase(self):
        hk = get_region_adapter('hk')
        prior = [MasterRecord.from_master(master_row('1', code='HACPAAAAA', platform='Nintendo Switch', genres=['Action']), hk)]
        source = [CatalogRecord.from_source(
            {'nsuid_hk': '1', 'title': '', 'platform': '', 'productCode_hk': '', 'genres': []}, hk
        )]

        row = merge_records(prior, source, FIXED_NOW)[0]

        assert row.product_code.value == 'HACPAAAAA'
        assert row.platform.value == 'Nintendo Switch'
        assert row.fields['genres'] == ['Action']
        assert row.title == 'Game 1'

    def test_fresh_values_replace_stored(self):
        hk = get_region_adapter('hk')
        prior = [MasterRecord.from_master(master_row('1', code=''), hk)]
        source = [CatalogRecord.from_source({'nsuid_hk': '1', 'productCode_hk': 'HACPNEW01'}, hk)]

        row = merge_records(prior, source, FIXED_NOW)[0]

        assert row.product_code.value == 'HACPNEW01'

    def test_duplicate_source_ids_collapse(self):
        hk = get_region_adapter('hk')
        source = [
            CatalogRecord.from_source({'nsuid_hk': '1', 'title': 'First', 'platform': 'Nintendo Switch'}, hk),
            CatalogRecord.from_source({'nsuid_hk': '1', 'title': 'Second'}, hk),
        ]

        merged = merge_records([], source, FIXED_NOW)

        assert len(merged) == 1
        assert merged[0].title == 'Second'
        assert merged[0].platform.value == 'Nintendo Switch'


class TestLoading:

    def test_malformed_source_rows_are_skipped(self, make_engine, data_dir, write_json, read_json):
        write_json(data_dir / "hk_games.json", [
            {'title': 'No id'},
            "not an object",
            master_row('1001', code='HACPAAAAA', platform='Nintendo Switch'),
        ])
        engine, _ = make_engine({})

        stats = engine.run()

        assert stats.skipped_rows == 2
        assert [row['nsuid_hk'] for row in read_json(engine.master_path)] == ['1001']

    def test_malformed_master_aborts_without_writing(self, make_engine, data_dir, write_json):
        write_json(data_dir / "hk_games.json", [{'nsuid_hk': '1001'}])
        master = write_json(data_dir / "hk_games_enriched.json", [master_row('1001'), {'title': 'no id'}])
        before = master.read_bytes()
        engine, _ = make_engine({})

        with pytest.raises(CatalogLoadError):
            engine.run()

        assert master.read_bytes() == before
        assert not engine.snapshot_path.exists()

    def test_corrupt_master_aborts(self, make_engine, data_dir, write_json):
        write_json(data_dir / "hk_games.json", [{'nsuid_hk': '1001'}])
        (data_dir / "hk_games_enriched.json").write_text('[{"nsuid_hk": ', encoding='utf-8')
        engine, _ = make_engine({})

        with pytest.raises(CatalogLoadError, match="invalid JSON"):
            engine.run()

    def test_large_master_with_object_top_level_aborts(self, make_engine, data_dir, write_json):
        write_json(data_dir / "hk_games.json", [{'nsuid_hk': '1001'}])
        master = write_json(data_dir / "hk_games_enriched.json", {'rows': [master_row('9999', code='HACPAAAAA')]})
        before = master.read_bytes()
        engine, _ = make_engine({})

        with patch('catalog_sync.shared.storage.STREAMING') as streaming:
            streaming.LARGE_FILE_THRESHOLD_BYTES = 1
            with pytest.raises(CatalogLoadError, match="expected a JSON array"):
                engine.run()

        assert master.read_bytes() == before
        assert not engine.snapshot_path.exists()

    def test_missing_source_aborts(self, make_engine):
        engine, _ = make_engine({})
        with pytest.raises(CatalogLoadError, match="file not found"):
            engine.run()


class TestCheckpoints:

    def test_checkpoint_every_n_completions(self, make_engine, data_dir, write_json):
        write_json(data_dir / "hk_games.json", [{'nsuid_hk': str(i)} for i in range(1, 5)])
        outcomes = {HK_URL.format(i): Absent('http-404') for i in range(1, 5)}
        engine, _ = make_engine(outcomes, checkpoint_every=2)

        stats = engine.run()

        # two mid-run checkpoints plus the final write
        assert stats.checkpoints == 3
