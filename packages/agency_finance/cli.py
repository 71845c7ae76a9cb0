# ruff: noqa: I001
"""CLI for the ``agency_finance`` package.

Command handlers (``cmd_*``) are plain functions returning a process exit
code; they print results to stdout and ``Error: ...`` lines to stderr. The
Typer app at the bottom only parses options and delegates to them.
Environment variables (``DATABASE_URL``, ``AGENCY_FINANCE_UTC_OFFSET``,
``AGENCY_FINANCE_LOG_LEVEL``) are loaded from a local ``.env`` with
``python-dotenv`` without overriding the ones already set.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Sequence
from datetime import date, tzinfo
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .logging_setup import configure_logging
from .models import Category, DataIntegrityError
from .periods import parse_utc_offset

_CATEGORY_ALIASES: dict[str, Category] = {
    "revenue": Category.REVENUE,
    "receitas": Category.REVENUE,
    "commission": Category.COMMISSION,
    "comissoes": Category.COMMISSION,
    "expense": Category.EXPENSE,
    "despesas": Category.EXPENSE,
}


# ---- Small module-level helpers used by CLI commands -------------------------


def _err(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def _console() -> Console:
    return Console(highlight=False)


def _resolve_tz(utc_offset: str | None) -> tzinfo:
    """Reporting zone from ``--utc-offset`` or ``AGENCY_FINANCE_UTC_OFFSET`` (UTC default)."""

    raw = utc_offset if utc_offset is not None else os.getenv("AGENCY_FINANCE_UTC_OFFSET")
    return parse_utc_offset(raw)


def _parse_categories(values: Sequence[str]) -> list[Category]:
    out: list[Category] = []
    for raw in values:
        key = raw.strip().lower()
        if key == "all":
            return list(Category)
        try:
            out.append(_CATEGORY_ALIASES[key])
        except KeyError:
            choices = ", ".join(sorted(_CATEGORY_ALIASES)) + ", all"
            raise ValueError(f"unknown category {raw!r}; expected one of {choices}") from None
    return out


def _parse_money(raw: str, *, what: str) -> Decimal:
    try:
        value = Decimal(raw.strip().replace(",", "."))
    except InvalidOperation:
        raise ValueError(f"{what} is not a number: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"{what} is not a number: {raw!r}")
    return value


def _parse_date(raw: str, *, what: str) -> date:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ValueError(f"{what} must be YYYY-MM-DD, got {raw!r}") from None


def _parse_splits(values: Sequence[str]):
    """``NAME:PCT`` strings -> :class:`CommissionSplit` list."""

    from .contracts import CommissionSplit, validate_split

    splits = []
    for raw in values:
        name, sep, pct = raw.rpartition(":")
        if not sep or not name.strip():
            raise ValueError(f"commission must look like NAME:PCT, got {raw!r}")
        split = CommissionSplit(
            employee_name=name.strip(), percentage=_parse_money(pct, what="percentage")
        )
        validate_split(split)
        splits.append(split)
    return splits


# ---- Financial summary (DRE) -------------------------------------------------


def cmd_dre(
    *,
    year: int | None = None,
    expand: Sequence[str] = (),
    show_variance: bool = True,
    as_json: bool = False,
    database_url: str | None = None,
    utc_offset: str | None = None,
) -> int:
    """Render the category x month DRE from ``financial_overview``.

    With ``as_json`` the matrix is dumped as JSON (Decimals as strings)
    instead of the table; ``year`` restricts both views to that year's months.
    A data-integrity problem in any record aborts the report.
    """

    from .overview import load_matrix
    from .presentation import ViewState, build_dre_table, build_kpi_panel, matrix_to_dict

    try:
        tz = _resolve_tz(utc_offset)
        expanded = _parse_categories(expand)
    except ValueError as e:
        _err(str(e))
        return 2

    try:
        matrix = load_matrix(database_url=database_url, tz=tz)
    except DataIntegrityError as e:
        _err(f"financial data rejected: {e}")
        return 1
    except Exception as e:
        _err(f"failed to load financial overview: {e}")
        return 1

    if as_json:
        print(json.dumps(matrix_to_dict(matrix, year=year), ensure_ascii=False, indent=2))
        return 0

    if matrix.is_empty:
        print("No financial records.")
        return 0
    if year is not None and not matrix.months_in_year(year):
        years = ", ".join(str(y) for y in matrix.years())
        print(f"No financial records in {year} (available: {years}).")
        return 0

    state = ViewState(year=year)
    for category in expanded:
        state.expanded[category] = True

    console = _console()
    console.print(build_kpi_panel(matrix, state))
    console.print(build_dre_table(matrix, state, show_variance=show_variance))
    if matrix.unrecognized_tags:
        tags = ", ".join(f"{t or '(vazio)'}={n}" for t, n in matrix.unrecognized_tags.items())
        console.print(f"[yellow]Unrecognized tags counted as expense:[/yellow] {tags}")
    return 0


# ---- Contracts -----------------------------------------------------------------


def cmd_contracts_plan(
    total: str,
    count: int,
    first_due: str,
    *,
    commissions: Sequence[str] = (),
) -> int:
    """Preview an installment schedule and commission estimates (no DB access)."""

    from .contracts import (
        commission_value,
        estimated_commission,
        generate_installments,
        schedule_total,
    )
    from .presentation import format_currency

    try:
        total_value = _parse_money(total, what="total")
        drafts = generate_installments(total_value, count, _parse_date(first_due, what="first-due"))
        splits = _parse_splits(commissions)
        rows = [
            [str(i), d.due_date.isoformat(), format_currency(d.value)]
            + [format_currency(commission_value(d.value, s.percentage)) for s in splits]
            for i, d in enumerate(drafts, start=1)
        ]
        estimates = [
            (s.employee_name, estimated_commission(total_value, s.percentage)) for s in splits
        ]
    except ValueError as e:
        _err(str(e))
        return 2

    table = Table(title="Parcelas", header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Vencimento")
    table.add_column("Valor", justify="right")
    for split in splits:
        table.add_column(f"{split.employee_name} ({split.percentage}%)", justify="right")
    for row in rows:
        table.add_row(*row)

    console = _console()
    console.print(table)
    console.print(f"Total: {format_currency(schedule_total(drafts))}")
    for name, est in estimates:
        console.print(f"Comissão estimada {name}: {format_currency(est)}")
    return 0


def cmd_contracts_create(
    client_id: str,
    total: str,
    count: int,
    first_due: str,
    *,
    commissions: Sequence[str] = (),
    notes: str | None = None,
    database_url: str | None = None,
) -> int:
    """Create a contract with an evenly split schedule and close the client's deal."""

    from db.client import session_scope
    from .contracts import create_contract, generate_installments

    try:
        total_value = _parse_money(total, what="total")
        drafts = generate_installments(total_value, count, _parse_date(first_due, what="first-due"))
        splits = _parse_splits(commissions)
    except ValueError as e:
        _err(str(e))
        return 2

    try:
        with session_scope(database_url=database_url) as session:
            contract = create_contract(
                session,
                client_id=client_id,
                total_value=total_value,
                installments=drafts,
                commissions=splits,
                notes=notes,
            )
            contract_id = contract.id
    except (ValueError, LookupError) as e:
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"failed to create contract: {e}")
        return 1

    print(contract_id)
    return 0


def cmd_contracts_show(contract_id: str, *, database_url: str | None = None) -> int:
    """Print a contract with its client, installments, commissions and progress."""

    from db.client import session_scope
    from .contracts import get_contract_details, summarize_contract
    from .presentation import format_currency

    try:
        with session_scope(database_url=database_url) as session:
            details = get_contract_details(session, contract_id)
    except Exception as e:
        _err(f"failed to load contract: {e}")
        return 1
    if details is None:
        _err(f"contract not found: {contract_id}")
        return 1

    summary = summarize_contract(details, date.today())
    client_name = details.client.name if details.client is not None else "?"
    console = _console()
    console.print(f"[bold]{client_name}[/bold]  contrato {details.contract.id}")
    console.print(f"Status: {details.contract.status}")
    pct = "-" if summary.received_pct is None else f"{summary.received_pct}%"
    console.print(
        f"Total: {format_currency(summary.total)}  Recebido: "
        f"{format_currency(summary.received)} ({pct})"
    )
    if summary.next_due is not None:
        console.print(f"Próximo vencimento: {summary.next_due.isoformat()}")
    if summary.overdue_count:
        console.print(f"[red]Parcelas em atraso: {summary.overdue_count}[/red]")

    inst_table = Table(title="Parcelas", header_style="bold")
    inst_table.add_column("ID")
    inst_table.add_column("Vencimento")
    inst_table.add_column("Valor", justify="right")
    inst_table.add_column("Taxa", justify="right")
    inst_table.add_column("Status")
    for inst in details.installments:
        inst_table.add_row(
            inst.id,
            inst.due_date.isoformat(),
            format_currency(inst.value),
            format_currency(inst.transaction_fee),
            inst.status,
        )
    console.print(inst_table)

    if details.commissions:
        com_table = Table(title="Comissões", header_style="bold")
        com_table.add_column("Funcionário")
        com_table.add_column("%", justify="right")
        com_table.add_column("Valor", justify="right")
        for com in details.commissions:
            com_table.add_row(com.employee_name, str(com.percentage), format_currency(com.value))
        console.print(com_table)
    return 0


def cmd_contracts_complete(contract_id: str, *, database_url: str | None = None) -> int:
    """Mark the contract completed when all of its installments are paid."""

    from db.client import session_scope
    from .contracts import check_and_complete_contract

    try:
        with session_scope(database_url=database_url) as session:
            completed = check_and_complete_contract(session, contract_id)
    except LookupError as e:
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"failed to check contract: {e}")
        return 1

    if completed:
        print(f"Contract {contract_id} completed.")
    else:
        print(f"Contract {contract_id} still has unpaid installments.")
    return 0


# ---- Installments -------------------------------------------------------------


def cmd_installments_set_status(
    installment_id: str, status: str, *, database_url: str | None = None
) -> int:
    """Update an installment's status; paying the last one completes the contract."""

    from db.client import session_scope
    from .contracts import check_and_complete_contract, update_installment_status

    try:
        with session_scope(database_url=database_url) as session:
            inst = update_installment_status(session, installment_id, status.strip().lower())
            completed = False
            if inst.status == "paid":
                completed = check_and_complete_contract(session, inst.contract_id)
            contract_id = inst.contract_id
    except (ValueError, LookupError) as e:
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"failed to update installment: {e}")
        return 1

    print(f"Installment {installment_id} -> {status.strip().lower()}")
    if completed:
        print(f"Contract {contract_id} completed.")
    return 0


def cmd_installments_set_value(
    installment_id: str,
    value: str,
    *,
    fee: str | None = None,
    database_url: str | None = None,
) -> int:
    from db.client import session_scope
    from .contracts import update_installment_value
    from .presentation import format_currency

    try:
        new_value = _parse_money(value, what="value")
        new_fee = _parse_money(fee, what="fee") if fee is not None else None
        with session_scope(database_url=database_url) as session:
            inst = update_installment_value(
                session, installment_id, new_value, transaction_fee=new_fee
            )
            shown = format_currency(inst.value)
    except (ValueError, LookupError) as e:
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"failed to update installment: {e}")
        return 1

    print(f"Installment {installment_id} -> {shown}")
    return 0


# ---- Expenses -----------------------------------------------------------------


def cmd_expenses_add(
    description: str,
    amount: str,
    due: str,
    *,
    category: str = "variavel",
    paid: bool = False,
    recurring: bool = False,
    database_url: str | None = None,
) -> int:
    """Record an expense; it shows up under ``(-) Despesas`` in the DRE."""

    from db.client import session_scope
    from .expenses import create_expense

    try:
        value = _parse_money(amount, what="amount")
        due_date = _parse_date(due, what="due")
    except ValueError as e:
        _err(str(e))
        return 2

    try:
        with session_scope(database_url=database_url) as session:
            expense = create_expense(
                session,
                description=description,
                amount=value,
                due_date=due_date,
                category=category,
                paid=paid,
                is_recurring=recurring,
            )
            expense_id = expense.id
    except ValueError as e:
        _err(str(e))
        return 2
    except Exception as e:
        _err(f"failed to create expense: {e}")
        return 1

    print(expense_id)
    return 0


def cmd_expenses_list(*, search: str = "", database_url: str | None = None) -> int:
    from db.client import session_scope
    from .expenses import list_expenses
    from .presentation import format_currency

    try:
        with session_scope(database_url=database_url) as session:
            expenses = list_expenses(session, search)
    except Exception as e:
        _err(f"failed to load expenses: {e}")
        return 1

    if not expenses:
        print("No expenses.")
        return 0

    table = Table(title=f"Despesas ({len(expenses)})", header_style="bold")
    table.add_column("ID")
    table.add_column("Vencimento")
    table.add_column("Descrição")
    table.add_column("Categoria")
    table.add_column("Valor", justify="right")
    table.add_column("Status")
    for exp in expenses:
        table.add_row(
            exp.id,
            exp.due_date.isoformat(),
            exp.description,
            exp.category,
            format_currency(exp.amount),
            exp.status,
        )
    _console().print(table)
    return 0


def cmd_expenses_delete(expense_id: str, *, database_url: str | None = None) -> int:
    from db.client import session_scope
    from .expenses import delete_expense

    try:
        with session_scope(database_url=database_url) as session:
            delete_expense(session, expense_id)
    except LookupError as e:
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"failed to delete expense: {e}")
        return 1

    print(f"Expense {expense_id} deleted.")
    return 0


# ---- Pipeline -----------------------------------------------------------------


def cmd_pipeline_list(
    *,
    search: str = "",
    nationality: str = "",
    database_url: str | None = None,
) -> int:
    """Print the CRM board, one section per stage."""

    from db.client import session_scope
    from .pipeline import filter_clients, group_by_stage, list_clients
    from .presentation import format_currency

    try:
        with session_scope(database_url=database_url) as session:
            clients = filter_clients(list_clients(session), search, nationality)
            board = group_by_stage(clients)
    except Exception as e:
        _err(f"failed to load clients: {e}")
        return 1

    console = _console()
    for stage, members in board.items():
        table = Table(title=f"{stage.label} ({len(members)})", header_style="bold")
        table.add_column("ID")
        table.add_column("Nome")
        table.add_column("Nacionalidade")
        table.add_column("Escola")
        table.add_column("Valor", justify="right")
        for c in members:
            table.add_row(
                c.id,
                c.name,
                c.nationality or "",
                c.school or "",
                format_currency(c.value) if c.value is not None else "",
            )
        console.print(table)
    return 0


def cmd_pipeline_move(client_id: str, stage: str, *, database_url: str | None = None) -> int:
    """Move a client to another stage of the board."""

    from db.client import session_scope
    from .pipeline import move_client

    try:
        with session_scope(database_url=database_url) as session:
            move = move_client(session, client_id, stage)
    except (ValueError, LookupError) as e:
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"failed to move client: {e}")
        return 1

    if not move.changed:
        print(f"Client {client_id} already in {move.current.label}.")
        return 0
    print(f"Client {client_id}: {move.previous.label} -> {move.current.label}")
    if move.closed_deal:
        print(
            "Deal closed. Create the contract with: "
            f"agency-finance contracts create {client_id} --total ... --count ... --first-due ..."
        )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Sports-agency finance: DRE report, contracts, installments, expenses and CRM pipeline.",
)
contracts_app = typer.Typer(no_args_is_help=True, help="Draft, create and follow up contracts.")
installments_app = typer.Typer(no_args_is_help=True, help="Update contract installments.")
pipeline_app = typer.Typer(no_args_is_help=True, help="CRM pipeline board.")
expenses_app = typer.Typer(no_args_is_help=True, help="Record, search and remove expenses.")
app.add_typer(contracts_app, name="contracts")
app.add_typer(installments_app, name="installments")
app.add_typer(expenses_app, name="expenses")
app.add_typer(pipeline_app, name="pipeline")

# Module-level option objects keep calls out of parameter defaults (ruff B008).
DATABASE_URL_OPTION = typer.Option(None, help="Override DATABASE_URL (falls back to env var).")
COMMISSION_OPTION = typer.Option(
    None, "--commission", "-c", help="Commission split as NAME:PCT (repeatable)."
)


@app.command("dre")
def dre_cmd(
    *,
    year: int | None = typer.Option(None, help="Only show months of this year."),
    expand: list[str] | None = typer.Option(
        None,
        "--expand",
        "-e",
        help="Expand item rows of a category: revenue, commission, expense or all.",
    ),
    variance: bool = typer.Option(True, "--variance/--no-variance", help="Show AH columns."),
    as_json: bool = typer.Option(False, "--json", help="Dump the matrix as JSON."),
    utc_offset: str | None = typer.Option(
        None, help="Reporting zone as ±HH:MM (falls back to AGENCY_FINANCE_UTC_OFFSET)."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Category x month profit-and-loss report with month-over-month variance."""

    raise typer.Exit(
        cmd_dre(
            year=year,
            expand=expand or (),
            show_variance=variance,
            as_json=as_json,
            database_url=database_url,
            utc_offset=utc_offset,
        )
    )


@contracts_app.command("plan")
def contracts_plan_cmd(
    *,
    total: str = typer.Option(..., help="Contract total value."),
    count: int = typer.Option(..., help="Number of monthly installments."),
    first_due: str = typer.Option(..., help="First due date (YYYY-MM-DD)."),
    commission: list[str] | None = COMMISSION_OPTION,
) -> None:
    """Preview the installment schedule without touching the database."""

    raise typer.Exit(
        cmd_contracts_plan(total, count, first_due, commissions=commission or ())
    )


@contracts_app.command("create")
def contracts_create_cmd(
    client_id: str = typer.Argument(..., help="Client the contract belongs to."),
    *,
    total: str = typer.Option(..., help="Contract total value."),
    count: int = typer.Option(..., help="Number of monthly installments."),
    first_due: str = typer.Option(..., help="First due date (YYYY-MM-DD)."),
    commission: list[str] | None = COMMISSION_OPTION,
    notes: str | None = typer.Option(None, help="Free-text notes."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Create the contract, its installments and commissions; close the deal."""

    raise typer.Exit(
        cmd_contracts_create(
            client_id,
            total,
            count,
            first_due,
            commissions=commission or (),
            notes=notes,
            database_url=database_url,
        )
    )


@contracts_app.command("show")
def contracts_show_cmd(
    contract_id: str = typer.Argument(...),
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show a contract with its installments and commissions."""

    raise typer.Exit(cmd_contracts_show(contract_id, database_url=database_url))


@contracts_app.command("complete")
def contracts_complete_cmd(
    contract_id: str = typer.Argument(...),
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Mark a fully paid contract as completed."""

    raise typer.Exit(cmd_contracts_complete(contract_id, database_url=database_url))


@installments_app.command("set-status")
def installments_set_status_cmd(
    installment_id: str = typer.Argument(...),
    status: str = typer.Argument(..., help="pending, paid, overdue or cancelled."),
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Change an installment's status."""

    raise typer.Exit(
        cmd_installments_set_status(installment_id, status, database_url=database_url)
    )


@installments_app.command("set-value")
def installments_set_value_cmd(
    installment_id: str = typer.Argument(...),
    value: str = typer.Argument(...),
    *,
    fee: str | None = typer.Option(None, help="Transaction fee withheld."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Change an installment's value (and optionally its fee)."""

    raise typer.Exit(
        cmd_installments_set_value(installment_id, value, fee=fee, database_url=database_url)
    )


@expenses_app.command("add")
def expenses_add_cmd(
    description: str = typer.Argument(..., help="What the expense is for."),
    amount: str = typer.Argument(..., help="Amount (non-negative)."),
    *,
    due: str = typer.Option(..., help="Due date (YYYY-MM-DD)."),
    category: str = typer.Option("variavel", help="fixo, variavel, extra or imposto."),
    paid: bool = typer.Option(False, "--paid", help="Already paid."),
    recurring: bool = typer.Option(False, "--recurring", help="Repeats every month."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Record an expense."""

    raise typer.Exit(
        cmd_expenses_add(
            description,
            amount,
            due,
            category=category,
            paid=paid,
            recurring=recurring,
            database_url=database_url,
        )
    )


@expenses_app.command("list")
def expenses_list_cmd(
    *,
    search: str = typer.Option("", help="Filter by description (case-insensitive)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """List expenses, newest due date first."""

    raise typer.Exit(cmd_expenses_list(search=search, database_url=database_url))


@expenses_app.command("delete")
def expenses_delete_cmd(
    expense_id: str = typer.Argument(...),
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete an expense."""

    raise typer.Exit(cmd_expenses_delete(expense_id, database_url=database_url))


@pipeline_app.command("list")
def pipeline_list_cmd(
    *,
    search: str = typer.Option("", help="Filter by name (case-insensitive)."),
    nationality: str = typer.Option("", help="Filter by nationality (case-insensitive)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show the CRM board."""

    raise typer.Exit(
        cmd_pipeline_list(search=search, nationality=nationality, database_url=database_url)
    )


@pipeline_app.command("move")
def pipeline_move_cmd(
    client_id: str = typer.Argument(...),
    stage: str = typer.Argument(..., help="radar, contato, negociacao, fechado or perdido."),
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Move a client to another pipeline stage."""

    raise typer.Exit(cmd_pipeline_move(client_id, stage, database_url=database_url))


@app.callback()
def _root() -> None:
    """Load ``.env`` (without overriding set variables) and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
