# ruff: noqa: I001
"""Expense bookkeeping on the ``expenses`` table.

Expenses are the only source of the ``(-) Despesas`` row of the DRE: each
row reaches ``financial_overview`` tagged with its category and direction
``saida``. Like :mod:`agency_finance.contracts`, these functions take a
session and leave the transaction scope to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.agency import EXPENSE_CATEGORIES, Expense
from .contracts import to_cents
from .logging_setup import get_logger

logger = get_logger("agency_finance.expenses")

_ZERO = Decimal("0")


def _check_category(category: str) -> str:
    key = category.strip().lower()
    if key not in EXPENSE_CATEGORIES:
        raise ValueError(
            f"invalid expense category {category!r}; "
            f"expected one of {', '.join(EXPENSE_CATEGORIES)}"
        )
    return key


def create_expense(
    session: Session,
    *,
    description: str,
    amount: Decimal | int | str,
    due_date: date,
    category: str = "variavel",
    paid: bool = False,
    is_recurring: bool = False,
) -> Expense:
    """Insert an expense; a paid one is stamped with ``paid_at`` now.

    Raises ``ValueError`` for a description shorter than two characters, a
    negative or non-numeric amount, or a category outside the table's
    CHECK set.
    """

    text = (description or "").strip()
    if len(text) < 2:
        raise ValueError("expense description must have at least 2 characters")
    value = to_cents(amount)
    if value < _ZERO:
        raise ValueError(f"expense amount must not be negative, got {value}")

    expense = Expense(
        description=text,
        amount=value,
        category=_check_category(category),
        due_date=due_date,
        status="paid" if paid else "pending",
        paid_at=datetime.now(UTC) if paid else None,
        is_recurring=is_recurring,
    )
    session.add(expense)
    session.flush()
    logger.info(
        "expenses:create id=%s category=%s amount=%s due=%s",
        expense.id,
        expense.category,
        value,
        due_date.isoformat(),
    )
    return expense


def list_expenses(session: Session, search: str = "") -> Sequence[Expense]:
    """Expenses by due date, newest first; ``search`` matches the description."""

    stmt = select(Expense)
    term = search.strip().lower()
    if term:
        stmt = stmt.where(func.lower(Expense.description).contains(term, autoescape=True))
    stmt = stmt.order_by(Expense.due_date.desc(), Expense.created_at.desc(), Expense.id)
    return session.execute(stmt).scalars().all()


def delete_expense(session: Session, expense_id: str) -> None:
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise LookupError(f"expense not found: {expense_id!r}")
    session.delete(expense)
    session.flush()
    logger.info("expenses:delete id=%s", expense_id)


__all__ = ["create_expense", "delete_expense", "list_expenses"]
