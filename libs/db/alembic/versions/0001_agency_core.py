# ruff: noqa: I001
"""Agency core tables (CRM, contracts, expenses) and the financial_overview view.

Revision ID: 0001_agency_core
Revises: None
Create Date: 2025-11-03
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_agency_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


# One row per money movement. Installments are inbound ("entrada") and carry
# the athlete's name; commissions and expenses are outbound ("saida"), tagged
# "comissao" or with the expense category. Commissions are dated by the
# installment they were computed against. Cancelled contracts are excluded.
FINANCIAL_OVERVIEW_SQL = """
CREATE VIEW financial_overview AS
SELECT i.id AS id,
       i.contract_id AS contract_id,
       cl.name AS title,
       'parcela' AS type,
       'entrada' AS direction,
       i.value AS amount,
       i.due_date AS date,
       i.status AS status,
       i.created_at AS created_at
FROM installments i
JOIN contracts c ON c.id = i.contract_id
JOIN clients cl ON cl.id = c.client_id
WHERE c.status <> 'cancelled'
UNION ALL
SELECT cm.id,
       cm.contract_id,
       cm.employee_name,
       'comissao',
       'saida',
       cm.value,
       i.due_date,
       i.status,
       cm.created_at
FROM commissions cm
JOIN installments i ON i.id = cm.installment_id
JOIN contracts c ON c.id = cm.contract_id
WHERE c.status <> 'cancelled'
UNION ALL
SELECT e.id,
       NULL,
       e.description,
       e.category,
       'saida',
       e.amount,
       e.due_date,
       e.status,
       e.created_at
FROM expenses e
"""


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def upgrade() -> None:
    # clients
    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("school", sa.Text(), nullable=True),
        sa.Column("nationality", sa.Text(), nullable=True),
        sa.Column("stage", sa.String(), nullable=False, server_default=sa.text("'radar'")),
        sa.Column("value", sa.Numeric(14, 2), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "stage in ('radar','contato','negociacao','fechado','perdido')",
            name="ck_clients_stage",
        ),
    )

    # contracts
    op.create_table(
        "contracts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("total_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], name="contracts_client_id_fkey"),
        sa.CheckConstraint(
            "status in ('draft','active','completed','cancelled')",
            name="ck_contracts_status",
        ),
    )

    # installments
    op.create_table(
        "installments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), nullable=False),
        sa.Column("value", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column(
            "transaction_fee", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.ForeignKeyConstraint(
            ["contract_id"], ["contracts.id"], name="installments_contract_id_fkey"
        ),
        sa.CheckConstraint(
            "status in ('pending','paid','overdue','cancelled')",
            name="ck_installments_status",
        ),
    )

    # commissions
    op.create_table(
        "commissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), nullable=False),
        sa.Column("installment_id", sa.String(36), nullable=True),
        sa.Column("employee_name", sa.Text(), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("value", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.ForeignKeyConstraint(
            ["contract_id"], ["contracts.id"], name="commissions_contract_id_fkey"
        ),
        sa.ForeignKeyConstraint(
            ["installment_id"], ["installments.id"], name="commissions_installment_id_fkey"
        ),
        sa.CheckConstraint(
            "percentage > 0 AND percentage <= 100", name="ck_commissions_percentage"
        ),
    )

    # expenses
    op.create_table(
        "expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "category", sa.String(), nullable=False, server_default=sa.text("'variavel'")
        ),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=True),
        sa.Column("recurrence_period", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "category in ('fixo','variavel','extra','imposto','comissao')",
            name="ck_expenses_category",
        ),
        sa.CheckConstraint(
            "status in ('pending','paid','overdue','cancelled')",
            name="ck_expenses_status",
        ),
    )

    # Indexes backing the dashboard queries
    op.create_index("ix_clients_updated_at", "clients", ["updated_at"], unique=False)
    op.create_index("ix_installments_contract_id", "installments", ["contract_id"], unique=False)
    op.create_index("ix_installments_due_date", "installments", ["due_date"], unique=False)
    op.create_index("ix_commissions_contract_id", "commissions", ["contract_id"], unique=False)
    op.create_index("ix_expenses_due_date", "expenses", ["due_date"], unique=False)

    op.execute(FINANCIAL_OVERVIEW_SQL)


def downgrade() -> None:
    op.execute("DROP VIEW IF EXISTS financial_overview")
    op.drop_index("ix_expenses_due_date", table_name="expenses")
    op.drop_index("ix_commissions_contract_id", table_name="commissions")
    op.drop_index("ix_installments_due_date", table_name="installments")
    op.drop_index("ix_installments_contract_id", table_name="installments")
    op.drop_index("ix_clients_updated_at", table_name="clients")
    op.drop_table("expenses")
    op.drop_table("commissions")
    op.drop_table("installments")
    op.drop_table("contracts")
    op.drop_table("clients")
