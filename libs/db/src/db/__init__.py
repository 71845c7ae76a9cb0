"""db: shared database library (SQLAlchemy/Alembic/Supabase).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models.agency`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.agency import (
    Base,
    Client,
    Commission,
    Contract,
    Expense,
    Installment,
    financial_overview,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Client",
    "Contract",
    "Installment",
    "Commission",
    "Expense",
    "financial_overview",
]
