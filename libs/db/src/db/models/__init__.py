"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the agency domain models (CRM, contracts, expenses) and the
read-only ``financial_overview`` view used by ``agency_finance``.
"""

from .agency import (
    Base,
    Client,
    Commission,
    Contract,
    Expense,
    Installment,
    financial_overview,
)

__all__ = [
    "Base",
    "Client",
    "Contract",
    "Installment",
    "Commission",
    "Expense",
    "financial_overview",
]
