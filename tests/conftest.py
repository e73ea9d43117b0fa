"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixture_path() -> Any:
    """Path of tests/fixtures/<subdir>/<name>."""

    def _path(subdir: str, name: str) -> Path:
        return FIXTURES_DIR / subdir / name

    return _path


@pytest.fixture
def load_fixture(fixture_path: Any) -> Any:
    """Load a JSON fixture from tests/fixtures/<subdir>/<name>."""

    def _load(subdir: str, name: str) -> dict[str, Any]:
        return json.loads(fixture_path(subdir, name).read_text())  # type: ignore[no-any-return]

    return _load
