"""Shared fixtures for the test suite."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import pytest

from queryadvisor.config import reset_config

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> Any:
    """Parse a JSON file from tests/fixtures."""
    return json.loads((FIXTURES / name).read_text())


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Keep QUERYADVISOR_* variables from the host out of every test."""
    for key in list(os.environ):
        if key.startswith("QUERYADVISOR_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def pg_hash_join_plan() -> Any:
    return load_fixture("pg_hash_join_spill.json")


@pytest.fixture
def pg_subplan_plan() -> Any:
    return load_fixture("pg_correlated_subplan.json")


@pytest.fixture
def mysql_rows_plan() -> Any:
    return load_fixture("mysql_rows.json")


@pytest.fixture
def mysql_json_plan() -> Any:
    return load_fixture("mysql_format_json.json")


@pytest.fixture
def shop_stats() -> dict[str, Any]:
    return load_fixture("shop_stats.json")
