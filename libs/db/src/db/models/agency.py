from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# Enumerations mirrored from the hosted schema (Postgres enums there; CHECK
# constraints here so the same models run against SQLite in tests).
PIPELINE_STAGES: tuple[str, ...] = ("radar", "contato", "negociacao", "fechado", "perdido")
CONTRACT_STATUSES: tuple[str, ...] = ("draft", "active", "completed", "cancelled")
TRANSACTION_STATUSES: tuple[str, ...] = ("pending", "paid", "overdue", "cancelled")
EXPENSE_CATEGORIES: tuple[str, ...] = ("fixo", "variavel", "extra", "imposto", "comissao")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ",".join(f"'{v}'" for v in values)
    return f"{column} in ({quoted})"


# ---------------------------
# CRM: clients
# ---------------------------


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    school: Mapped[str | None] = mapped_column(Text, nullable=True)
    nationality: Mapped[str | None] = mapped_column(Text, nullable=True)
    stage: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'radar'"))
    # Estimated deal value shown on the pipeline card.
    value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint(_in_clause("stage", PIPELINE_STAGES), name="ck_clients_stage"),
    )


# ---------------------------
# Contracts and their schedule
# ---------------------------


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), nullable=False)
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'draft'"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint(_in_clause("status", CONTRACT_STATUSES), name="ck_contracts_status"),
    )


class Installment(Base):
    __tablename__ = "installments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    contract_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contracts.id"), nullable=False
    )
    value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
    # Card/transfer fee withheld from this installment (informational).
    transaction_fee: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", TRANSACTION_STATUSES), name="ck_installments_status"
        ),
    )


class Commission(Base):
    __tablename__ = "commissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    contract_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contracts.id"), nullable=False
    )
    # Commissions are computed per installment; the installment's due date is
    # the date the payout lands in the financial overview.
    installment_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("installments.id"), nullable=True
    )
    employee_name: Mapped[str] = mapped_column(Text, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint(
            "percentage > 0 AND percentage <= 100", name="ck_commissions_percentage"
        ),
    )


# ---------------------------
# Operating expenses
# ---------------------------


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    category: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'variavel'")
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_recurring: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    recurrence_period: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint(
            _in_clause("category", EXPENSE_CATEGORIES), name="ck_expenses_category"
        ),
        CheckConstraint(_in_clause("status", TRANSACTION_STATUSES), name="ck_expenses_status"),
    )


# ---------------------------
# Read-only view: financial_overview
# ---------------------------

# Kept out of ``Base.metadata`` so ``create_all``/autogenerate never try to
# create a table for it; the view itself is created by migration 0001.
views_metadata = MetaData()

financial_overview = Table(
    "financial_overview",
    views_metadata,
    Column("id", String(36), primary_key=True),
    Column("contract_id", String(36), nullable=True),
    Column("title", Text, nullable=True),
    Column("type", String, nullable=True),
    Column("direction", String, nullable=False),
    Column("amount", Numeric(14, 2), nullable=False),
    Column("date", Date, nullable=True),
    Column("status", String, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=True),
    info={"is_view": True},
)


__all__ = [
    "Base",
    "Client",
    "Contract",
    "Installment",
    "Commission",
    "Expense",
    "financial_overview",
    "views_metadata",
    "PIPELINE_STAGES",
    "CONTRACT_STATUSES",
    "TRANSACTION_STATUSES",
    "EXPENSE_CATEGORIES",
]
