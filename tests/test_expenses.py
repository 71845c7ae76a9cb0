from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from agency_finance import Category
from agency_finance.expenses import create_expense, delete_expense, list_expenses
from agency_finance.overview import load_matrix
from db.client import session_scope
from db.models.agency import Expense


def _add(db_url: str, **kwargs) -> str:
    fields = {
        "description": "Aluguel",
        "amount": Decimal("500"),
        "due_date": date(2025, 2, 10),
    }
    fields.update(kwargs)
    with session_scope(database_url=db_url) as session:
        return create_expense(session, **fields).id


def test_create_defaults_to_pending_variable_cost(db_url):
    expense_id = _add(db_url, description="  Marketing  ", amount="120.5")
    with session_scope(database_url=db_url) as session:
        expense = session.get(Expense, expense_id)
        assert expense.description == "Marketing"
        assert expense.amount == Decimal("120.50")
        assert expense.category == "variavel"
        assert expense.status == "pending"
        assert expense.paid_at is None
        assert expense.is_recurring is False


def test_paid_expense_is_stamped(db_url):
    expense_id = _add(db_url, category="FIXO", paid=True, is_recurring=True)
    with session_scope(database_url=db_url) as session:
        expense = session.get(Expense, expense_id)
        assert expense.category == "fixo"
        assert expense.status == "paid"
        assert expense.paid_at is not None
        assert expense.is_recurring is True


@pytest.mark.parametrize(
    "over",
    [
        {"description": "x"},
        {"description": "   "},
        {"amount": "-0.01"},
        {"amount": "abc"},
        {"amount": "NaN"},
        {"category": "salario"},
    ],
)
def test_create_rejects_bad_input(db_url, over):
    with pytest.raises(ValueError):
        _add(db_url, **over)
    with session_scope(database_url=db_url) as session:
        assert session.execute(select(Expense)).first() is None


def test_zero_amount_is_allowed(db_url):
    expense_id = _add(db_url, amount="0")
    with session_scope(database_url=db_url) as session:
        assert session.get(Expense, expense_id).amount == Decimal("0.00")


def test_list_newest_first_with_case_insensitive_search(db_url):
    _add(db_url, description="Aluguel escritório", due_date=date(2025, 1, 5))
    _add(db_url, description="Passagens aéreas", due_date=date(2025, 3, 1))
    _add(db_url, description="Aluguel depósito", due_date=date(2025, 2, 5))

    with session_scope(database_url=db_url) as session:
        every = list_expenses(session)
        assert [e.due_date for e in every] == [
            date(2025, 3, 1),
            date(2025, 2, 5),
            date(2025, 1, 5),
        ]
        found = list_expenses(session, search="  ALUGUEL ")
        assert [e.description for e in found] == ["Aluguel depósito", "Aluguel escritório"]
        assert list_expenses(session, search="100%") == []


def test_delete_expense(db_url):
    keep = _add(db_url, description="Contador")
    gone = _add(db_url, description="Aluguel")
    with session_scope(database_url=db_url) as session:
        delete_expense(session, gone)
    with session_scope(database_url=db_url) as session:
        assert [e.id for e in list_expenses(session)] == [keep]
        with pytest.raises(LookupError):
            delete_expense(session, gone)


def test_recorded_expense_reaches_the_dre(db_url):
    _add(db_url, description="Aluguel", amount="500", category="fixo")
    _add(
        db_url, description="Impostos", amount="80", category="imposto", due_date=date(2025, 3, 20)
    )

    m = load_matrix(database_url=db_url)

    expenses = m.rollup(Category.EXPENSE)
    assert m.months == ("2025-02", "2025-03")
    assert expenses.totals_by_month == {"2025-02": Decimal("500.00"), "2025-03": Decimal("80.00")}
    assert list(expenses.items) == ["Aluguel", "Impostos"]
    assert m.net_result() == Decimal("-580.00")
    assert not m.unrecognized_tags
