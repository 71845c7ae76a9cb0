# ruff: noqa: I001
"""Data-access adapter for the ``financial_overview`` view.

The hosted backend exposes one read-only view that unions installments
(inbound), commissions and expenses (outbound). This module is the only
place that knows its column names and vocabulary: rows are validated with
pydantic and turned into :class:`~agency_finance.models.FinancialRecord`
before they reach the rollup engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.agency import financial_overview
from .logging_setup import get_logger
from .models import DataIntegrityError, Direction, FinancialRecord, Matrix
from .rollup import aggregate

logger = get_logger("agency_finance.overview")

# Backend direction vocabulary across schema versions.
_DIRECTION_ALIASES: dict[str, Direction] = {
    "entrada": Direction.INBOUND,
    "income": Direction.INBOUND,
    "inbound": Direction.INBOUND,
    "receita": Direction.INBOUND,
    "saida": Direction.OUTBOUND,
    "saída": Direction.OUTBOUND,
    "expense": Direction.OUTBOUND,
    "outbound": Direction.OUTBOUND,
    "despesa": Direction.OUTBOUND,
}


class OverviewRow(BaseModel):
    """One validated row of ``financial_overview``.

    Unknown direction tags are not fatal: they are read as outbound (and so
    default-bucketed into expense by the classifier) and logged.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    id: str
    contract_id: str | None = None
    title: str | None = None
    type: str | None = None
    direction: Direction
    amount: Decimal
    date: datetime | date | str
    status: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> Any:
        # uuid.UUID from Postgres drivers, str from SQLite
        return str(v) if v is not None else v

    @field_validator("direction", mode="before")
    @classmethod
    def _adapt_direction(cls, v: Any) -> Direction:
        if isinstance(v, Direction):
            return v
        key = str(v or "").strip().lower()
        direction = _DIRECTION_ALIASES.get(key)
        if direction is None:
            logger.warning("overview:unknown_direction value=%r treated_as=outbound", v)
            return Direction.OUTBOUND
        return direction

    @field_validator("date", mode="before")
    @classmethod
    def _date_present(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("date is required")
        return v


def record_from_row(row: Mapping[str, Any]) -> FinancialRecord:
    """Adapt one backend row to the engine's input contract.

    Raises
    ------
    DataIntegrityError
        When the row does not match the view's schema (missing id/amount/date,
        non-numeric amount, ...).
    """

    try:
        parsed = OverviewRow.model_validate(dict(row))
    except ValidationError as exc:
        raise DataIntegrityError(
            f"financial_overview row {row.get('id')!r} failed validation: {exc}"
        ) from exc
    return FinancialRecord(
        id=parsed.id,
        title=parsed.title,
        category=parsed.type,
        direction=parsed.direction,
        amount=parsed.amount,
        date=parsed.date,
        status=parsed.status,
    )


def fetch_financial_records(session: Session) -> list[FinancialRecord]:
    """Fetch every financial record, ordered by date ascending."""

    fo = financial_overview
    stmt = select(fo).order_by(fo.c.date.asc(), fo.c.created_at.asc(), fo.c.id.asc())
    rows = session.execute(stmt).mappings().all()
    logger.debug("overview:fetch rows=%d", len(rows))
    return [record_from_row(r) for r in rows]


def load_matrix(*, database_url: str | None = None, tz: tzinfo | None = None) -> Matrix:
    """Full reload: read the view and rebuild the matrix from scratch."""

    with session_scope(database_url=database_url) as session:
        records = fetch_financial_records(session)
    return aggregate(records, tz=tz)


__all__ = ["OverviewRow", "record_from_row", "fetch_financial_records", "load_matrix"]
