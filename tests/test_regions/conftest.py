"""Shared page fixtures for region adapter tests."""

import json

import pytest


@pytest.fixture
def jp_product_page():
    """JP product page with the product model embedded as script JSON."""
    def _create(group_code="HAC_P_AURNA", languages=("ja", "en"), label_platform="HAC"):
        product = {
            'id': 'D70010000000001',
            'c_groupCode': group_code,
            'c_original_specification': {'supportLanguages': list(languages)},
        }
        payload = {'props': {'pageProps': {'product': product, 'meta': {'c_labelPlatform': label_platform}}}}
        return (
            "<html><head><script>window.dataLayer = [];</script>"
            f'<script type="application/json" id="__NEXT_DATA__">{json.dumps(payload)}</script>'
            "</head><body><h1>ゲーム</h1></body></html>"
        )
    return _create


@pytest.fixture
def magento_page():
    """HK/KR Magento product page."""
    def _create(sku="HACPAURNA", platform="Nintendo Switch"):
        sku_block = (
            f'<div class="product attribute sku"><strong class="type">SKU</strong>'
            f'<div class="value" itemprop="sku">{sku}</div></div>'
        ) if sku else ''
        platform_block = (
            f'<div class="label_platform_attr"><span class="product-attribute-label">Platform</span>'
            f'<span class="product-attribute-val">{platform}</span></div>'
        ) if platform else ''
        return f"<html><body><div class=\"product-info-main\">{sku_block}{platform_block}</div></body></html>"
    return _create
