from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest

from agency_finance.contracts import CommissionSplit, create_contract, generate_installments
from agency_finance.models import Category, DataIntegrityError, Direction
from agency_finance.overview import fetch_financial_records, load_matrix, record_from_row
from db.client import session_scope
from db.models.agency import Contract
from tests.helpers.db import seed_client, seed_expense


def _row(**over):
    base = {
        "id": "1",
        "contract_id": None,
        "title": "Client A",
        "type": "parcela",
        "direction": "entrada",
        "amount": Decimal("10.00"),
        "date": date(2024, 1, 5),
        "status": "paid",
        "created_at": None,
    }
    base.update(over)
    return base


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("entrada", Direction.INBOUND),
        ("income", Direction.INBOUND),
        ("INBOUND", Direction.INBOUND),
        ("saida", Direction.OUTBOUND),
        ("saída", Direction.OUTBOUND),
        ("expense", Direction.OUTBOUND),
        ("outbound", Direction.OUTBOUND),
    ],
)
def test_direction_vocabulary(raw, expected):
    assert record_from_row(_row(direction=raw)).direction is expected


def test_unknown_direction_is_outbound_and_logged(caplog):
    caplog.set_level(logging.WARNING, logger="agency_finance")
    record = record_from_row(_row(direction="transfer"))
    assert record.direction is Direction.OUTBOUND
    assert any("overview:unknown_direction" in r.getMessage() for r in caplog.records)


def test_row_maps_type_to_category_tag():
    record = record_from_row(_row(type="comissao", direction="saida", title="Agent X"))
    assert record.category == "comissao"
    assert record.title == "Agent X"
    assert record.amount == Decimal("10.00")


@pytest.mark.parametrize(
    "bad",
    [
        {"amount": None},
        {"amount": "ten"},
        {"date": None},
        {"date": "  "},
        {"id": None},
    ],
)
def test_schema_errors_raise_data_integrity_error(bad):
    with pytest.raises(DataIntegrityError):
        record_from_row(_row(**bad))


def _seed_contract(db_url: str) -> str:
    client_id = seed_client(db_url, name="Ana Souza", nationality="Brasil")
    with session_scope(database_url=db_url) as session:
        contract = create_contract(
            session,
            client_id=client_id,
            total_value=Decimal("3000"),
            installments=generate_installments(Decimal("3000"), 3, date(2024, 1, 1)),
            commissions=[CommissionSplit("Carlos", Decimal("10"))],
        )
        return contract.id


def test_view_unions_installments_commissions_and_expenses(db_url):
    _seed_contract(db_url)
    seed_expense(db_url, description="Aluguel", amount="500", due_date=date(2024, 2, 10))

    with session_scope(database_url=db_url) as session:
        records = fetch_financial_records(session)

    assert len(records) == 3 + 3 + 1
    dates = [r.date for r in records]
    assert dates == sorted(dates)
    inbound = [r for r in records if r.direction is Direction.INBOUND]
    assert {r.title for r in inbound} == {"Ana Souza"}
    commissions = [r for r in records if r.category == "comissao"]
    assert {r.amount for r in commissions} == {Decimal("100.00")}


def test_load_matrix_end_to_end(db_url):
    _seed_contract(db_url)
    seed_expense(db_url, description="Aluguel", amount="500", due_date=date(2024, 2, 10))

    m = load_matrix(database_url=db_url)

    assert m.months == ("2024-01", "2024-02", "2024-03")
    assert m.rollup(Category.REVENUE).totals_by_month["2024-01"] == Decimal("1000.00")
    assert m.rollup(Category.COMMISSION).totals_by_month["2024-02"] == Decimal("100.00")
    assert m.rollup(Category.EXPENSE).totals_by_month["2024-02"] == Decimal("500.00")
    assert m.grand_total_by_month["2024-02"] == Decimal("400.00")
    assert m.net_result() == Decimal("2200.00")
    assert list(m.rollup(Category.COMMISSION).items) == ["Carlos"]


def test_cancelled_contracts_are_left_out_of_the_view(db_url):
    contract_id = _seed_contract(db_url)
    with session_scope(database_url=db_url) as session:
        session.get(Contract, contract_id).status = "cancelled"

    m = load_matrix(database_url=db_url)
    assert m.is_empty
