from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from db.client import get_engine, reset_engine, resolve_database_url, session_scope
from db.models.agency import Installment


def test_url_comes_from_override_or_env(monkeypatch):
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        resolve_database_url()
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///env.db")
    assert resolve_database_url() == "sqlite+pysqlite:///env.db"
    assert resolve_database_url("sqlite+pysqlite:///cli.db") == "sqlite+pysqlite:///cli.db"


def test_engine_is_bound_to_one_url(tmp_path):
    first = f"sqlite+pysqlite:///{tmp_path / 'a.db'}"
    engine = get_engine(database_url=first)
    assert get_engine(database_url=first) is engine
    with pytest.raises(RuntimeError, match="reset_engine"):
        get_engine(database_url=f"sqlite+pysqlite:///{tmp_path / 'b.db'}")
    reset_engine()
    assert get_engine(database_url=f"sqlite+pysqlite:///{tmp_path / 'b.db'}") is not engine


def test_sqlite_enforces_foreign_keys(db_url):
    with pytest.raises(IntegrityError):
        with session_scope(database_url=db_url) as session:
            session.add(
                Installment(
                    contract_id="no-such-contract",
                    value=Decimal("10.00"),
                    due_date=date(2025, 1, 1),
                )
            )
    with session_scope(database_url=db_url) as session:
        assert session.query(Installment).count() == 0
