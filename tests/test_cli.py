from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import pytest
from typer.testing import CliRunner

from agency_finance.cli import (
    app,
    cmd_contracts_complete,
    cmd_contracts_create,
    cmd_contracts_plan,
    cmd_contracts_show,
    cmd_dre,
    cmd_expenses_add,
    cmd_expenses_delete,
    cmd_expenses_list,
    cmd_installments_set_status,
    cmd_installments_set_value,
    cmd_pipeline_list,
    cmd_pipeline_move,
)
from agency_finance.contracts import get_contract_details
from db.client import session_scope
from db.models.agency import Client, Contract, Installment
from tests.helpers.db import seed_client, seed_expense


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    # rich sizes tables from COLUMNS when stdout is not a terminal
    monkeypatch.setenv("COLUMNS", "220")


def test_plan_prints_schedule_without_db(capsys):
    assert cmd_contracts_plan("1000", 3, "2025-01-31", commissions=["Carlos:10"]) == 0
    out = capsys.readouterr().out
    assert "2025-02-28" in out
    assert "R$ 333,34" in out
    assert "Comissão estimada Carlos: R$ 100,00" in out


def test_plan_rejects_bad_input(capsys):
    assert cmd_contracts_plan("abc", 3, "2025-01-01") == 2
    assert cmd_contracts_plan("1000", 3, "31/01/2025") == 2
    assert cmd_contracts_plan("1000", 3, "2025-01-01", commissions=["Carlos"]) == 2
    err = capsys.readouterr().err
    assert err.count("Error:") == 3


def test_dre_requires_database_url(capsys):
    assert cmd_dre() == 1
    assert "DATABASE_URL" in capsys.readouterr().err


def test_dre_rejects_unknown_category(capsys, db_url):
    assert cmd_dre(expand=["profits"], database_url=db_url) == 2
    assert "unknown category" in capsys.readouterr().err


def test_dre_empty_database(capsys, db_url):
    assert cmd_dre(database_url=db_url) == 0
    assert "No financial records." in capsys.readouterr().out


def _full_flow(db_url: str) -> tuple[str, str]:
    client_id = seed_client(db_url, name="Ana Souza", nationality="Brasil")
    seed_expense(db_url, description="Aluguel", amount="500", due_date=date(2025, 2, 10))
    code = cmd_contracts_create(
        client_id, "3000", 3, "2025-01-05", commissions=["Carlos:10"], database_url=db_url
    )
    assert code == 0
    with session_scope(database_url=db_url) as session:
        contract_id = session.query(Contract.id).scalar()
    return client_id, contract_id


def test_dre_json_after_contract_creation(capsys, db_url):
    _full_flow(db_url)
    capsys.readouterr()

    assert cmd_dre(as_json=True, database_url=db_url) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["months"] == ["2025-01", "2025-02", "2025-03"]
    assert payload["grand_total_by_month"]["2025-02"] == "400.00"
    assert payload["totals"]["net_result"] == "2200.00"


def test_dre_table_output(capsys, db_url):
    _full_flow(db_url)
    capsys.readouterr()

    assert cmd_dre(year=2025, expand=["expense"], database_url=db_url) == 0
    out = capsys.readouterr().out
    assert "RESULTADO" in out
    assert "Aluguel" in out

    assert cmd_dre(year=2019, database_url=db_url) == 0
    assert "No financial records in 2019" in capsys.readouterr().out


def test_contract_lifecycle_through_handlers(capsys, db_url):
    client_id, contract_id = _full_flow(db_url)
    with session_scope(database_url=db_url) as session:
        assert session.get(Client, client_id).stage == "fechado"
        installment_ids = [i.id for i in get_contract_details(session, contract_id).installments]

    assert cmd_contracts_show(contract_id, database_url=db_url) == 0
    out = capsys.readouterr().out
    assert "Ana Souza" in out
    assert "Carlos" in out

    code = cmd_installments_set_value(installment_ids[0], "1000", fee="3.5", database_url=db_url)
    assert code == 0
    for inst_id in installment_ids[:-1]:
        assert cmd_installments_set_status(inst_id, "paid", database_url=db_url) == 0
    assert cmd_contracts_complete(contract_id, database_url=db_url) == 0
    assert "still has unpaid installments" in capsys.readouterr().out

    assert cmd_installments_set_status(installment_ids[-1], "PAID", database_url=db_url) == 0
    assert f"Contract {contract_id} completed." in capsys.readouterr().out
    with session_scope(database_url=db_url) as session:
        assert session.get(Contract, contract_id).status == "completed"
        assert session.get(Installment, installment_ids[0]).transaction_fee == Decimal("3.50")


def test_installment_errors(capsys, db_url):
    assert cmd_installments_set_status("missing", "paid", database_url=db_url) == 1
    assert cmd_contracts_show("missing", database_url=db_url) == 1
    assert cmd_contracts_complete("missing", database_url=db_url) == 1
    assert capsys.readouterr().err.count("Error:") == 3


def test_pipeline_handlers(capsys, db_url):
    client_id = seed_client(db_url, name="Ana Souza", stage="contato", nationality="Brasil")
    seed_client(db_url, name="Luis Perez", stage="radar", nationality="Chile")

    assert cmd_pipeline_list(nationality="bras", database_url=db_url) == 0
    out = capsys.readouterr().out
    assert "Ana Souza" in out
    assert "Luis Perez" not in out

    assert cmd_pipeline_move(client_id, "fechado", database_url=db_url) == 0
    out = capsys.readouterr().out
    assert "Deal closed" in out

    assert cmd_pipeline_move(client_id, "won", database_url=db_url) == 1
    assert "unknown pipeline stage" in capsys.readouterr().err


def test_typer_app_wiring(db_url, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["contracts", "plan", "--total", "900", "--count", "3", "--first-due", "2025-01-10"],
    )
    assert result.exit_code == 0, result.output
    assert "R$ 300,00" in result.output

    result = runner.invoke(app, ["dre", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["months"] == []

    result = runner.invoke(app, ["pipeline", "move", "missing", "radar"])
    assert result.exit_code == 1


@pytest.mark.parametrize("split", ["Ana:NaN", "Ana:-10", "Ana:150", "Ana:0", "Ana:inf"])
def test_plan_rejects_out_of_range_commission(capsys, split):
    assert cmd_contracts_plan("1000", 2, "2024-01-10", commissions=[split]) == 2
    captured = capsys.readouterr()
    assert captured.err.startswith("Error:")
    assert captured.out == ""


def test_plan_and_create_agree_on_commission_bounds(capsys, db_url):
    client_id = seed_client(db_url, name="Ana Souza")
    assert cmd_contracts_plan("1000", 2, "2024-01-10", commissions=["Carlos:100"]) == 0
    assert "Comissão estimada Carlos: R$ 1.000,00" in capsys.readouterr().out

    assert cmd_contracts_create(
        client_id, "1000", 2, "2024-01-10", commissions=["Carlos:-10"], database_url=db_url
    ) == 2
    assert "Error:" in capsys.readouterr().err
    with session_scope(database_url=db_url) as session:
        assert session.query(Contract).count() == 0


def test_dre_json_honours_year(capsys, db_url):
    seed_expense(db_url, description="Aluguel", amount="500", due_date=date(2024, 12, 10))
    seed_expense(db_url, description="Aluguel", amount="600", due_date=date(2025, 1, 10))

    assert cmd_dre(as_json=True, year=2025, database_url=db_url) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["year"] == 2025
    assert payload["months"] == ["2025-01"]
    expense = payload["categories"]["expense"]
    assert expense["totals_by_month"] == {"2025-01": "600.00"}
    assert expense["items"] == {
        "Aluguel": {"2025-01": {"amount": "600.00", "statuses": ["pending"]}}
    }
    assert expense["variance_by_month"] == {"2025-01": "20.00"}
    assert payload["totals"] == {"revenue": "0.00", "outflow": "600.00", "net_result": "-600.00"}


def test_expense_handlers(capsys, db_url):
    code = cmd_expenses_add("Aluguel", "500", "2025-02-10", category="fixo", database_url=db_url)
    assert code == 0
    expense_id = capsys.readouterr().out.strip()
    code = cmd_expenses_add("Passagens", "1200,00", "2025-03-01", paid=True, database_url=db_url)
    assert code == 0
    capsys.readouterr()

    assert cmd_expenses_list(search="alug", database_url=db_url) == 0
    out = capsys.readouterr().out
    assert "Aluguel" in out
    assert "R$ 500,00" in out
    assert "Passagens" not in out

    assert cmd_dre(expand=["expense"], database_url=db_url) == 0
    out = capsys.readouterr().out
    assert "Aluguel" in out
    assert "-R$ 1.700,00" in out

    assert cmd_expenses_delete(expense_id, database_url=db_url) == 0
    assert cmd_expenses_delete(expense_id, database_url=db_url) == 1
    assert "expense not found" in capsys.readouterr().err
    assert cmd_expenses_list(search="alug", database_url=db_url) == 0
    assert "No expenses." in capsys.readouterr().out


@pytest.mark.parametrize(
    ("args", "fragment"),
    [
        (("Aluguel", "abc", "2025-02-10"), "amount is not a number"),
        (("Aluguel", "-5", "2025-02-10"), "must not be negative"),
        (("Aluguel", "5", "10/02/2025"), "due must be YYYY-MM-DD"),
        (("A", "5", "2025-02-10"), "at least 2 characters"),
    ],
)
def test_expense_add_rejects_bad_input(capsys, db_url, args, fragment):
    assert cmd_expenses_add(*args, database_url=db_url) == 2
    assert fragment in capsys.readouterr().err


def test_expense_add_rejects_unknown_category(capsys, db_url):
    code = cmd_expenses_add("Salários", "5", "2025-02-10", category="folha", database_url=db_url)
    assert code == 2
    assert "invalid expense category" in capsys.readouterr().err


def test_typer_expenses_wiring(db_url, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    runner = CliRunner()

    result = runner.invoke(
        app, ["expenses", "add", "Aluguel", "500", "--due", "2025-02-10", "--category", "fixo"]
    )
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["expenses", "list"])
    assert result.exit_code == 0, result.output
    assert "Aluguel" in result.output
    result = runner.invoke(app, ["dre", "--json", "--year", "2024"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["months"] == []
