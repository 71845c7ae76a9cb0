"""Pytest configuration for test isolation.

The ``db`` library keeps one engine per process (bound to the first
``DATABASE_URL`` it sees) and ``agency_finance`` configures its package
logger at most once. Both are reset around every test so each test can bind
its own temporary SQLite database and capture log output with ``caplog``.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from agency_finance.logging_setup import reset_logging
from db.client import reset_engine
from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("AGENCY_FINANCE_UTC_OFFSET", raising=False)
    monkeypatch.delenv("AGENCY_FINANCE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("AGENCY_FINANCE_LOG_FORMAT", raising=False)
    reset_engine()
    reset_logging()
    yield
    reset_engine()
    reset_logging()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """URL of a freshly migrated SQLite database for this test."""

    return bootstrap_sqlite_db(tmp_path / "agency.sqlite3")
