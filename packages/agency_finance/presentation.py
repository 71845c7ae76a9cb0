"""Terminal rendering of the DRE matrix with ``rich``.

Everything here is a consumer of :class:`~agency_finance.models.Matrix`:
view-local state (expanded categories, selected year) lives in
:class:`ViewState`, outside the matrix, and "good/bad" colouring of variance
is decided here rather than by the calculator.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import Category, Matrix, MonthKey
from .periods import month_label

_ZERO = Decimal("0")

CATEGORY_LABELS: dict[Category, str] = {
    Category.REVENUE: "Receitas",
    Category.COMMISSION: "(-) Comissões",
    Category.EXPENSE: "(-) Despesas",
}
RESULT_LABEL = "(=) RESULTADO"


# ---------------------------
# Status indicator
# ---------------------------


class StatusIndicator(Enum):
    PAID = ("paid", "●", "green")
    PENDING = ("pending", "◐", "yellow")
    OTHER = ("other", "▲", "red")

    def __init__(self, key: str, glyph: str, style: str) -> None:
        self.key = key
        self.glyph = glyph
        self.style = style


def status_indicator(statuses: Iterable[str]) -> StatusIndicator | None:
    """Summarize an item-month status list.

    Empty -> ``None``; all ``paid`` -> ``PAID``; any ``pending`` -> ``PENDING``;
    anything else (overdue, cancelled, unknown) -> ``OTHER``.
    """

    seen = [s.strip().lower() for s in statuses]
    if not seen:
        return None
    if all(s == "paid" for s in seen):
        return StatusIndicator.PAID
    if any(s == "pending" for s in seen):
        return StatusIndicator.PENDING
    return StatusIndicator.OTHER


# ---------------------------
# View-local state
# ---------------------------


@dataclass
class ViewState:
    """Expanded rows and year filter of one DRE view."""

    expanded: dict[Category, bool] = field(default_factory=dict)
    year: int | None = None

    def toggle(self, category: Category) -> bool:
        self.expanded[category] = not self.expanded.get(category, False)
        return self.expanded[category]

    def is_expanded(self, category: Category) -> bool:
        return self.expanded.get(category, False)

    def visible_months(self, matrix: Matrix) -> tuple[MonthKey, ...]:
        return matrix.months_in_year(self.year)


# ---------------------------
# Formatting
# ---------------------------


def format_currency(value: Decimal) -> str:
    """pt-BR currency, e.g. ``R$ 1.234,56`` / ``-R$ 10,00``."""

    q = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    body = f"{abs(q):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {body}" if q < 0 else f"R$ {body}"


def format_variance(value: Decimal | None) -> str:
    """``+12,5%`` / ``-3,0%`` / ``0,0%``; ``-`` when not applicable."""

    if value is None:
        return "-"
    q = value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if q == 0:
        q = abs(q)
    sign = "+" if q > 0 else ""
    return f"{sign}{q:.1f}%".replace(".", ",")


def _variance_text(value: Decimal | None, *, higher_is_better: bool) -> Text:
    text = format_variance(value)
    if value is None or value == 0:
        return Text(text, style="dim")
    good = (value > 0) == higher_is_better
    return Text(text, style="green" if good else "red")


# ---------------------------
# Tables
# ---------------------------


def build_dre_table(matrix: Matrix, state: ViewState, *, show_variance: bool = True) -> Table:
    """DRE grid: categories (with optional item rows) x months, plus result row.

    One column per visible month in chronological order, an ``AH`` column
    after each month when ``show_variance`` is set, and a ``TOTAL`` column
    for the visible period.
    """

    months = state.visible_months(matrix)
    title = "DRE" if state.year is None else f"DRE {state.year}"
    table = Table(title=title, show_lines=False, header_style="bold")
    table.add_column("Categoria", no_wrap=True)
    for m in months:
        table.add_column(month_label(m), justify="right")
        if show_variance:
            table.add_column("AH", justify="right", style="dim")
    table.add_column("TOTAL", justify="right", style="bold")

    for category in Category:
        rollup = matrix.rollup(category)
        higher_is_better = not category.is_outflow
        expanded = state.is_expanded(category)
        marker = "▾" if expanded else "▸"
        row: list[Any] = [Text(f"{marker} {CATEGORY_LABELS[category]}", style="bold")]
        for m in months:
            row.append(format_currency(rollup.total_for(m)))
            if show_variance:
                row.append(
                    _variance_text(
                        matrix.category_variance(category, m),
                        higher_is_better=higher_is_better,
                    )
                )
        row.append(format_currency(matrix.total(category, year=state.year)))
        table.add_row(*row)

        if not expanded:
            continue
        for item in rollup.item_titles():
            cells = rollup.items[item]
            if not any(m in cells for m in months):
                continue
            sub: list[Any] = [Text(f"    {item}", style="italic")]
            item_total = _ZERO
            for m in months:
                cell = cells.get(m)
                if cell is None:
                    sub.append("")
                else:
                    item_total += cell.amount
                    indicator = status_indicator(cell.statuses)
                    text = Text(format_currency(cell.amount))
                    if indicator is not None:
                        text.append(f" {indicator.glyph}", style=indicator.style)
                    sub.append(text)
                if show_variance:
                    sub.append(
                        _variance_text(
                            rollup.item_variance(item, m), higher_is_better=higher_is_better
                        )
                    )
            sub.append(format_currency(item_total))
            table.add_row(*sub)

    table.add_section()
    result: list[Any] = [Text(RESULT_LABEL, style="bold")]
    for m in months:
        gt = matrix.grand_total(m)
        result.append(Text(format_currency(gt), style="green" if gt >= 0 else "red"))
        if show_variance:
            result.append(_variance_text(matrix.result_variance(m), higher_is_better=True))
    net = matrix.net_result(year=state.year)
    result.append(Text(format_currency(net), style="green" if net >= 0 else "red"))
    table.add_row(*result)
    return table


def build_kpi_panel(matrix: Matrix, state: ViewState) -> Panel:
    """Summary cards for the visible period: revenue, outflows, net result."""

    revenue = matrix.total_revenue(year=state.year)
    outflow = matrix.total_outflow(year=state.year)
    net = matrix.net_result(year=state.year)

    grid = Table.grid(padding=(0, 3))
    grid.add_column()
    grid.add_column(justify="right")
    grid.add_row("Receita Total", Text(format_currency(revenue), style="green"))
    grid.add_row("Saídas (Comissões + Despesas)", Text(format_currency(outflow), style="red"))
    grid.add_row(
        "Resultado Líquido",
        Text(format_currency(net), style="bold green" if net >= 0 else "bold red"),
    )
    period = "todo o período" if state.year is None else str(state.year)
    return Panel(grid, title=f"Resumo ({period})", border_style="blue")


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _pct(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def matrix_to_dict(matrix: Matrix, *, year: int | None = None) -> dict[str, Any]:
    """JSON-friendly dump of the matrix; Decimals become strings.

    ``year`` keeps only that year's months. Variances are still taken against
    the calendar-previous month, so January compares with the prior December.
    """

    months = matrix.months_in_year(year)
    keep = set(months)
    categories: dict[str, Any] = {}
    for category in Category:
        rollup = matrix.rollup(category)
        items: dict[str, Any] = {}
        for title, cells in rollup.items.items():
            row = {
                m: {"amount": _money(cell.amount), "statuses": list(cell.statuses)}
                for m, cell in cells.items()
                if m in keep
            }
            if row:
                items[title] = row
        categories[category.value] = {
            "label": CATEGORY_LABELS[category],
            "totals_by_month": {
                m: _money(v) for m, v in rollup.totals_by_month.items() if m in keep
            },
            "variance_by_month": {m: _pct(matrix.category_variance(category, m)) for m in months},
            "items": items,
        }
    return {
        "year": year,
        "months": list(months),
        "categories": categories,
        "grand_total_by_month": {
            m: _money(v) for m, v in matrix.grand_total_by_month.items() if m in keep
        },
        "result_variance_by_month": {m: _pct(matrix.result_variance(m)) for m in months},
        "totals": {
            "revenue": _money(matrix.total_revenue(year=year)),
            "outflow": _money(matrix.total_outflow(year=year)),
            "net_result": _money(matrix.net_result(year=year)),
        },
        "unrecognized_tags": dict(matrix.unrecognized_tags),
    }


__all__ = [
    "CATEGORY_LABELS",
    "RESULT_LABEL",
    "StatusIndicator",
    "status_indicator",
    "ViewState",
    "format_currency",
    "format_variance",
    "build_dre_table",
    "build_kpi_panel",
    "matrix_to_dict",
]
