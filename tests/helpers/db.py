"""DB helpers for tests: bootstrap a temporary SQLite DB and seed agency data."""

from __future__ import annotations

import importlib.util
import os
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from types import ModuleType

from alembic.migration import MigrationContext
from alembic.operations import Operations
from db import Base
from db.client import get_engine, session_scope
from db.models.agency import Client, Expense
from sqlalchemy import inspect

_MIGRATION = (
    Path(__file__).resolve().parents[2]
    / "libs"
    / "db"
    / "alembic"
    / "versions"
    / "0001_agency_core.py"
)


def _load_migration() -> ModuleType:
    spec = importlib.util.spec_from_file_location("agency_core_migration", _MIGRATION)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, run migration 0001 on it, return the URL.

    A file-backed DB lets every SQLAlchemy connection see the same state
    (in-memory SQLite is per-connection).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    migration = _load_migration()
    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            migration.upgrade()

    _assert_schema_in_sync(engine)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def _assert_schema_in_sync(engine) -> None:
    """ORM column sets must match the tables the migration created."""

    insp = inspect(engine)
    problems: list[str] = []
    for table in Base.metadata.sorted_tables:
        expected = {c.name for c in table.columns}
        got = {c["name"] for c in insp.get_columns(table.name)}
        if expected != got:
            problems.append(
                f"{table.name}: missing={expected - got or '∅'}, extra={got - expected or '∅'}"
            )
    assert "financial_overview" in insp.get_view_names(), "financial_overview view missing"
    assert not problems, "schema drift: " + "; ".join(problems)


def seed_client(
    database_url: str,
    *,
    name: str,
    stage: str = "negociacao",
    nationality: str | None = None,
    school: str | None = None,
    updated_at: datetime | None = None,
) -> str:
    with session_scope(database_url=database_url) as session:
        client = Client(
            name=name,
            stage=stage,
            nationality=nationality,
            school=school,
            updated_at=updated_at or datetime.now(UTC),
        )
        session.add(client)
        session.flush()
        return client.id


def seed_expense(
    database_url: str,
    *,
    description: str,
    amount: str,
    due_date: date,
    category: str = "fixo",
    status: str = "pending",
) -> str:
    with session_scope(database_url=database_url) as session:
        expense = Expense(
            description=description,
            amount=Decimal(amount),
            category=category,
            due_date=due_date,
            status=status,
        )
        session.add(expense)
        session.flush()
        return expense.id
