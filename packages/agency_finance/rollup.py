"""Matrix aggregation: records -> category x month x item summary.

``aggregate`` walks the input once, in order. Each record is bucketed
(:func:`~agency_finance.periods.to_month_key`), classified
(:func:`~agency_finance.classify.classify`) and its amount is added to the
category/month total and to the item/month cell in the same step, so the
category total always equals the sum of its items. The matrix is rebuilt
from scratch on every call and returned frozen.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import tzinfo
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any

from .classify import classify, is_recognized_tag
from .logging_setup import get_logger
from .models import (
    Category,
    CategoryRollup,
    DataIntegrityError,
    Direction,
    FinancialRecord,
    ItemCell,
    Matrix,
    MonthKey,
)
from .periods import to_month_key

logger = get_logger("agency_finance.rollup")

NO_DESCRIPTION = "(sem descrição)"

_ZERO = Decimal("0")


def _checked_amount(record: FinancialRecord) -> Decimal:
    raw: Any = record.amount
    if isinstance(raw, bool) or raw is None:
        raise DataIntegrityError(f"record {record.id!r}: missing or invalid amount {raw!r}")
    try:
        amount = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise DataIntegrityError(f"record {record.id!r}: invalid amount {raw!r}") from exc
    if not amount.is_finite():
        raise DataIntegrityError(f"record {record.id!r}: non-finite amount {raw!r}")
    if amount < 0:
        raise DataIntegrityError(f"record {record.id!r}: negative amount {amount}")
    return amount


def _item_title(record: FinancialRecord) -> str:
    title = (record.title or "").strip()
    return title or NO_DESCRIPTION


class _Cell:
    __slots__ = ("amount", "statuses")

    def __init__(self) -> None:
        self.amount = _ZERO
        self.statuses: list[str] = []


def aggregate(records: Iterable[FinancialRecord], *, tz: tzinfo | None = None) -> Matrix:
    """Build the :class:`~agency_finance.models.Matrix` for ``records``.

    Parameters
    ----------
    records:
        Flat record list, usually ordered by date ascending. Order only
        affects item-title order and status-list order, never totals.
    tz:
        Reporting zone forwarded to the month normalizer.

    Raises
    ------
    DataIntegrityError
        On the first record with an unparseable date or a negative or
        non-numeric amount. No partial matrix is returned.
    """

    totals: dict[Category, dict[MonthKey, Decimal]] = {c: {} for c in Category}
    items: dict[Category, dict[str, dict[MonthKey, _Cell]]] = {c: {} for c in Category}
    unrecognized: dict[str, int] = {}
    months: set[MonthKey] = set()
    count = 0

    for record in records:
        try:
            month = to_month_key(record.date, tz=tz)
        except DataIntegrityError as exc:
            raise DataIntegrityError(f"record {record.id!r}: {exc}") from exc
        amount = _checked_amount(record)
        category = classify(record)

        if record.direction != Direction.INBOUND and not is_recognized_tag(record.category):
            tag = record.category or ""
            unrecognized[tag] = unrecognized.get(tag, 0) + 1

        by_month = totals[category]
        by_month[month] = by_month.get(month, _ZERO) + amount

        cells = items[category].setdefault(_item_title(record), {})
        cell = cells.get(month)
        if cell is None:
            cell = cells[month] = _Cell()
        cell.amount += amount
        if record.status is not None:
            cell.statuses.append(record.status)

        months.add(month)
        count += 1

    ordered_months = tuple(sorted(months))
    grand_total = {
        m: totals[Category.REVENUE].get(m, _ZERO)
        - totals[Category.COMMISSION].get(m, _ZERO)
        - totals[Category.EXPENSE].get(m, _ZERO)
        for m in ordered_months
    }

    for tag, n in unrecognized.items():
        logger.warning("rollup:unrecognized_tag tag=%r count=%d bucket=expense", tag, n)
    logger.debug("rollup:aggregate records=%d months=%d", count, len(ordered_months))

    return Matrix(
        months=ordered_months,
        categories=MappingProxyType(
            {c: _freeze_rollup(c, totals[c], items[c]) for c in Category}
        ),
        grand_total_by_month=MappingProxyType(grand_total),
        unrecognized_tags=MappingProxyType(dict(unrecognized)),
    )


def _freeze_rollup(
    category: Category,
    totals: dict[MonthKey, Decimal],
    items: dict[str, dict[MonthKey, _Cell]],
) -> CategoryRollup:
    frozen_items = {
        title: MappingProxyType(
            {
                m: ItemCell(amount=c.amount, statuses=tuple(c.statuses))
                for m, c in sorted(cells.items())
            }
        )
        for title, cells in items.items()
    }
    return CategoryRollup(
        category=category,
        totals_by_month=MappingProxyType(dict(sorted(totals.items()))),
        items=MappingProxyType(frozen_items),
    )


__all__ = ["aggregate", "NO_DESCRIPTION"]
