"""Public interface for the ``agency_finance`` package.

Re-exports the rollup engine (normalize, classify, aggregate, variance) and
its models. Database-backed helpers live in ``agency_finance.overview``,
``agency_finance.contracts``, ``agency_finance.expenses`` and
``agency_finance.pipeline`` and are imported from there so that the pure
engine can be used without the ``db`` library.
"""

from .classify import classify, is_recognized_tag
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
from .periods import month_label, previous_month, to_month_key
from .rollup import NO_DESCRIPTION, aggregate
from .variance import month_over_month, variance

__all__ = [
    # Engine
    "to_month_key",
    "previous_month",
    "month_label",
    "classify",
    "is_recognized_tag",
    "aggregate",
    "variance",
    "month_over_month",
    "NO_DESCRIPTION",
    # Models / types
    "MonthKey",
    "Direction",
    "Category",
    "FinancialRecord",
    "ItemCell",
    "CategoryRollup",
    "Matrix",
    "DataIntegrityError",
]
