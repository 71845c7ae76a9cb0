"""Month-over-month variance ("AH", análise horizontal).

Percentages are computed in ``Decimal``; a zero baseline yields ``None``
("not applicable"), which callers must render differently from a true 0%.
The baseline month is always the calendar month before the one being
compared. A month without activity counts as zero; the comparison never
skips back to the last month that had data.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from .models import MonthKey
from .periods import previous_month

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def variance(current: Decimal | int, previous: Decimal | int) -> Decimal | None:
    """Return ``(current - previous) / previous * 100`` or ``None`` when previous is 0.

    >>> variance(Decimal("150"), Decimal("100"))
    Decimal('50')
    >>> variance(Decimal("100"), Decimal("0")) is None
    True
    """

    cur = Decimal(current)
    prev = Decimal(previous)
    if prev == _ZERO:
        return None
    return (cur - prev) * _HUNDRED / prev


def month_over_month(series: Mapping[MonthKey, Decimal], month: MonthKey) -> Decimal | None:
    """Variance of ``series[month]`` against the calendar-previous month."""

    baseline = series.get(previous_month(month), _ZERO)
    return variance(series.get(month, _ZERO), baseline)


__all__ = ["variance", "month_over_month"]
