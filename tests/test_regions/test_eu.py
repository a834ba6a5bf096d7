"""Tests for the EU adapter."""

from catalog_sync.regions.eu import get_adapter
from catalog_sync.shared.records import CatalogRecord


class TestEUAdapter:

    def test_listing_supplies_code(self):
        adapter = get_adapter()
        record = CatalogRecord.from_source({'nsuid_txt': ['70010000000001'], 'productCode': 'HACPAAAAA'}, adapter)

        assert record.product_code.value == 'HACPAAAAA'
        assert adapter.build_lookup_url(record) is None
        assert not adapter.is_fetch_eligible(record)

    def test_parse_is_empty(self):
        assert get_adapter().parse_enrichment_response('<html></html>').product_code is None
