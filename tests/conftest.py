"""Pytest configuration and fixtures for catalog sync tests"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from unittest.mock import Mock

from catalog_sync.shared.fetch import FetchResult


FIXED_NOW = "2025-06-01T12:00:00.000Z"


@pytest.fixture
def fixed_clock():
    """Clock returning a constant timestamp so reruns are byte-comparable."""
    return lambda: FIXED_NOW


@pytest.fixture
def mock_response_factory():
    """Factory for creating mock HTTP responses with various scenarios.

    Usage:
        response = mock_response_factory(status_code=200, text="<html>...</html>")
        response = mock_response_factory(status_code=404, text="Not Found")
        response = mock_response_factory(status_code=429, headers={"Retry-After": "3"})
    """
    def _create_response(
        status_code: int = 200,
        text: str = "",
        headers: Optional[dict] = None,
    ):
        response = Mock()
        response.status_code = status_code
        response.text = text
        response.content = text.encode('utf-8') if text else b''
        response.headers = headers or {}
        return response

    return _create_response


@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def write_json():
    """Write a JSON document and return its path."""
    def _write(path: Path, data: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')
        return path
    return _write


@pytest.fixture
def read_json():
    def _read(path: Path) -> Any:
        return json.loads(Path(path).read_text(encoding='utf-8'))
    return _read


class ScriptedFetcher:
    """Fetcher stand-in that replays outcomes by lookup URL.

    URLs without a scripted outcome raise, so a test notices any fetch it
    did not expect.
    """

    def __init__(self, outcomes: Dict[str, Any]):
        self.outcomes = outcomes
        self.requested: List[str] = []

    def fetch_all(self, targets, on_outcome):
        counts = {result: 0 for result in FetchResult}
        for target in targets:
            self.requested.append(target.url)
            if target.url not in self.outcomes:
                raise AssertionError(f"unexpected fetch: {target.url}")
            outcome = self.outcomes[target.url]
            counts[outcome.result] += 1
            on_outcome(target, outcome)
        return counts


@pytest.fixture
def scripted_fetcher():
    """Build a ScriptedFetcher from a {url: outcome} mapping."""
    return ScriptedFetcher
