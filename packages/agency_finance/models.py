"""Data models and type aliases for ``agency_finance``.

The rollup engine works on a narrow, storage-agnostic input record
(:class:`FinancialRecord`) and produces an immutable :class:`Matrix`. The
data-access layer (``agency_finance.overview``) is the only place that knows
about the backend's column names and vocabulary.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from types import MappingProxyType
from typing import TypeAlias

# ---------------------------------------------------------------------------
# Keys, enums and errors
# ---------------------------------------------------------------------------

MonthKey: TypeAlias = str
"""Canonical ``YYYY-MM`` month bucket.

Lexicographic order equals chronological order, so sorting keys as strings
is enough to lay out the matrix columns.
"""

RawDate: TypeAlias = date | datetime | str
"""Date representations accepted from the backend (ISO strings included)."""

_ZERO = Decimal("0")


class DataIntegrityError(ValueError):
    """A record cannot be placed in the matrix without guessing.

    Raised for unparseable dates, negative or non-numeric amounts, and rows
    that cannot be adapted to :class:`FinancialRecord`. The whole aggregation
    is rejected rather than silently dropping or misbucketing a record.
    """


class Direction(StrEnum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Category(StrEnum):
    """Fixed 3-way partition of the DRE, in display order."""

    REVENUE = "revenue"
    COMMISSION = "commission"
    EXPENSE = "expense"

    @property
    def is_outflow(self) -> bool:
        return self is not Category.REVENUE


# ---------------------------------------------------------------------------
# Engine input
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FinancialRecord:
    """One dated money movement as seen by the rollup engine.

    ``amount`` is a non-negative magnitude; whether it adds to or subtracts
    from the result is decided by ``direction`` and ``category`` (the raw
    backend tag, e.g. ``"comissao"`` or ``"fixo"``).
    """

    id: str
    title: str | None
    category: str | None
    direction: Direction
    amount: Decimal
    date: RawDate
    status: str | None = None


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ItemCell:
    """Sum and lifecycle statuses of one item title in one month."""

    amount: Decimal
    statuses: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CategoryRollup:
    """Per-category slice of the matrix.

    ``items`` maps item title to month to :class:`ItemCell`; titles keep the
    order in which they were first seen. For every month,
    ``totals_by_month[m]`` equals the sum of ``items[*][m].amount``.
    """

    category: Category
    totals_by_month: Mapping[MonthKey, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )
    items: Mapping[str, Mapping[MonthKey, ItemCell]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def total_for(self, month: MonthKey) -> Decimal:
        return self.totals_by_month.get(month, _ZERO)

    def item_titles(self) -> tuple[str, ...]:
        return tuple(self.items)

    def cell(self, title: str, month: MonthKey) -> ItemCell | None:
        return self.items.get(title, {}).get(month)

    def item_series(self, title: str) -> Mapping[MonthKey, Decimal]:
        cells = self.items.get(title, {})
        return {m: c.amount for m, c in cells.items()}

    def item_variance(self, title: str, month: MonthKey) -> Decimal | None:
        from .variance import month_over_month

        return month_over_month(self.item_series(title), month)


@dataclass(frozen=True, slots=True)
class Matrix:
    """Category x month summary of a record set.

    ``months`` lists every month with activity in chronological order;
    ``categories`` always holds all three :class:`Category` members.
    ``grand_total_by_month[m]`` is ``revenue - commission - expense`` for
    month ``m``, computed once while the matrix is built. Tags that were
    bucketed into ``expense`` only by default are counted in
    ``unrecognized_tags``.
    """

    months: tuple[MonthKey, ...]
    categories: Mapping[Category, CategoryRollup]
    grand_total_by_month: Mapping[MonthKey, Decimal]
    unrecognized_tags: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_empty(self) -> bool:
        return not self.months

    def rollup(self, category: Category) -> CategoryRollup:
        return self.categories[category]

    def grand_total(self, month: MonthKey) -> Decimal:
        return self.grand_total_by_month.get(month, _ZERO)

    # ---- period filters -----------------------------------------------------

    def years(self) -> tuple[int, ...]:
        return tuple(sorted({int(m[:4]) for m in self.months}))

    def months_in_year(self, year: int | None) -> tuple[MonthKey, ...]:
        if year is None:
            return self.months
        prefix = f"{year:04d}-"
        return tuple(m for m in self.months if m.startswith(prefix))

    # ---- period KPIs --------------------------------------------------------

    def total(self, category: Category, *, year: int | None = None) -> Decimal:
        series = self.categories[category].totals_by_month
        return sum((series[m] for m in self.months_in_year(year) if m in series), _ZERO)

    def total_revenue(self, *, year: int | None = None) -> Decimal:
        return self.total(Category.REVENUE, year=year)

    def total_outflow(self, *, year: int | None = None) -> Decimal:
        return self.total(Category.COMMISSION, year=year) + self.total(
            Category.EXPENSE, year=year
        )

    def net_result(self, *, year: int | None = None) -> Decimal:
        return sum(
            (self.grand_total_by_month[m] for m in self.months_in_year(year)), _ZERO
        )

    # ---- month-over-month ---------------------------------------------------

    def category_variance(self, category: Category, month: MonthKey) -> Decimal | None:
        from .variance import month_over_month

        return month_over_month(self.categories[category].totals_by_month, month)

    def result_variance(self, month: MonthKey) -> Decimal | None:
        from .variance import month_over_month

        return month_over_month(self.grand_total_by_month, month)


__all__ = [
    "MonthKey",
    "RawDate",
    "DataIntegrityError",
    "Direction",
    "Category",
    "FinancialRecord",
    "ItemCell",
    "CategoryRollup",
    "Matrix",
]
