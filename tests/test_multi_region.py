"""Tests for the multi-region merge."""

import pytest

from catalog_sync.regions import get_region_adapter
from catalog_sync.shared.errors import CatalogLoadError
from catalog_sync.shared.multi_region import MultiRegionMerger, order_keys, pick_support_language

NOW = "2025-06-01T12:00:00.000Z"


@pytest.fixture
def merger():
    return MultiRegionMerger(
        get_region_adapter('us'),
        [get_region_adapter(r) for r in ('jp', 'hk', 'eu')],
        append_regions=('eu',),
        clock=lambda: NOW,
    )


def us_row(nsuid, slug, active=True, **extra):
    row = {
        'title': extra.pop('title', slug.replace('-', ' ').title()),
        'nsuid_us': nsuid,
        'url': f"/us/store/products/{slug}/",
        'platform': 'Nintendo Switch',
        'productCode_us': None,
        'active_in_base': active,
    }
    row.update(extra)
    return row


class TestPickSupportLanguage:

    def test_sources(self):
        assert pick_support_language({'supportLanguages': ['ja', 'en']}) == 'en'
        assert pick_support_language({'supportLanguage': 'en'}) == 'en'
        assert pick_support_language({'c_original_specification': {'supportLanguages': ['en_US']}}) == 'en'
        assert pick_support_language({'supportLanguage': ''}) is None


class TestOrderKeys:

    def test_preferred_then_original(self):
        row = {'zzz': 1, 'productCode_jp': 'X', 'title': 'T', 'nsuid_us': '1'}
        assert list(order_keys(row)) == ['title', 'nsuid_us', 'productCode_jp', 'zzz']


class TestMerge:

    def test_matched_region_fields_are_copied(self, merger):
        canonical = [us_row('70010000000001', 'mario-kart-8-deluxe-switch')]
        regions = {
            'jp': [{
                'nsuid_jp': 'D70010000000010', 'urlKey': 'mario-kart-8-deluxe-switch',
                'productCode_jp': 'hacaaaaaa', 'supportLanguage': 'en', 'active_in_base': True,
                'imageSquare': 'https://img/jp.png',
            }],
            'hk': [],
            'eu': [],
        }

        rows, report = merger.merge(canonical, regions)

        row = rows[0]
        assert row['nsuid_jp'] == '70010000000010'
        assert row['productCode_jp'] == 'HACAAAAAA'
        assert row['supportLanguage_jp'] == 'en'
        assert row['imageSquare_jp'] == 'https://img/jp.png'
        assert row['urlKey'] == 'mario-kart-8-deluxe-switch'
        assert report.matched['jp'] == 1
        assert report.rule_counts['jp']['K4'] == 1

    def test_inactive_region_ids_are_pruned(self, merger):
        canonical = [us_row('70010000000001', 'old-game', active=False)]
        regions = {
            'jp': [{'nsuid_jp': 'D70010000000010', 'urlKey': 'old-game', 'active_in_base': False}],
            'hk': [{'nsuid_hk': '70010000000020', 'urlKey': 'old-game', 'active_in_base': True}],
            'eu': [],
        }

        rows, report = merger.merge(canonical, regions)

        row = rows[0]
        assert 'nsuid_us' not in row
        assert 'nsuid_jp' not in row
        assert row['nsuid_hk'] == '70010000000020'
        assert row['active_in_base'] is True
        assert report.raise_counts['hk'] == 1
        assert report.raise_counts['jp'] == 0
        assert 'by HK for rowId 0' in report.raise_events[0]

    def test_raise_counted_once_per_row(self, merger):
        canonical = [us_row('70010000000001', 'old-game', active=False)]
        regions = {
            'jp': [{'nsuid_jp': 'D70010000000010', 'urlKey': 'old-game', 'active_in_base': True}],
            'hk': [{'nsuid_hk': '70010000000020', 'urlKey': 'old-game', 'active_in_base': True}],
            'eu': [],
        }

        _, report = merger.merge(canonical, regions)

        assert report.raise_counts == {'jp': 1, 'hk': 0, 'eu': 0}

    def test_leftovers_and_eu_append(self, merger):
        canonical = [us_row('70010000000001', 'zelda-switch')]
        regions = {
            'jp': [{'nsuid_jp': 'D70010000000099', 'urlKey': 'jp-only', 'active_in_base': True}],
            'hk': [],
            'eu': [
                {'nsuid_eu': '70010000000050', 'urlKey': 'zelda-switch', 'productCode_eu': 'HACPAAAAA', 'active_in_base': True},
                {'nsuid_eu': '70010000000051', 'url': '/en-gb/Games/eu-exclusive.html', 'title': 'EU Exclusive', 'active_in_base': True},
            ],
        }

        rows, report = merger.merge(canonical, regions)

        assert len(rows) == 2
        assert rows[1]['nsuid_eu'] == '70010000000051'
        assert rows[1]['urlKey'] == 'eu-exclusive'
        assert [r['nsuid_jp'] for r in report.leftovers['jp']] == ['D70010000000099']
        assert report.appended == {'eu': 1}
        assert report.output_count == 2

    def test_log_lines(self, merger):
        canonical = [us_row('70010000000001', 'zelda-switch')]
        regions = {
            'jp': [{'nsuid_jp': 'D70010000000099', 'urlKey': 'jp-only', 'title': 'JP Only', 'active_in_base': True}],
            'hk': [],
            'eu': [],
        }
        _, report = merger.merge(canonical, regions)

        lines = report.log_lines(merger.adapters)

        assert lines[0] == f"Merge run @ {NOW}"
        assert "Matched JP: 0 / 1" in lines
        assert any('"urlKey": "jp-only"' in line and '"active_in_base": true' in line for line in lines)


class TestRun:

    def test_writes_output_and_log(self, merger, data_dir, write_json, read_json, tmp_path):
        write_json(data_dir / "us_games_enriched.json", [us_row('70010000000001', 'zelda-switch')])
        for region in ('jp', 'hk', 'eu'):
            write_json(data_dir / f"{region}_games_enriched.json", [])
        output = tmp_path / "output" / "merged_enriched.json"
        log = tmp_path / "logs" / "merge_unmatched.log"

        report = merger.run(data_dir=data_dir, output_file=output, log_file=log)

        assert read_json(output)[0]['nsuid_us'] == '70010000000001'
        assert log.read_text(encoding='utf-8').startswith(f"Merge run @ {NOW}")
        assert report.canonical_count == 1

    def test_missing_region_master_writes_nothing(self, merger, data_dir, write_json, tmp_path):
        write_json(data_dir / "us_games_enriched.json", [])
        output = tmp_path / "output" / "merged_enriched.json"

        with pytest.raises(CatalogLoadError):
            merger.run(data_dir=data_dir, output_file=output, log_file=tmp_path / "merge.log")

        assert not output.exists()

    def test_non_object_canonical_row_writes_nothing(self, merger, data_dir, write_json, tmp_path):
        write_json(data_dir / "us_games_enriched.json", ["not a row", us_row('70010000000001', 'mario-kart')])
        for region in ('jp', 'hk', 'eu'):
            write_json(data_dir / f"{region}_games_enriched.json", [])
        output = tmp_path / "output" / "merged_enriched.json"

        with pytest.raises(CatalogLoadError, match="row 0 is not an object"):
            merger.run(data_dir=data_dir, output_file=output, log_file=tmp_path / "merge.log")

        assert not output.exists()
        assert not (tmp_path / "merge.log").exists()

    def test_non_object_region_row_writes_nothing(self, merger, data_dir, write_json, tmp_path):
        write_json(data_dir / "us_games_enriched.json", [us_row('70010000000001', 'mario-kart')])
        write_json(data_dir / "jp_games_enriched.json", [])
        write_json(data_dir / "hk_games_enriched.json", [{'title': 'Ok'}, 42])
        write_json(data_dir / "eu_games_enriched.json", [])
        output = tmp_path / "output" / "merged_enriched.json"

        with pytest.raises(CatalogLoadError, match="hk_games_enriched.json.*row 1 is not an object"):
            merger.run(data_dir=data_dir, output_file=output, log_file=tmp_path / "merge.log")

        assert not output.exists()
