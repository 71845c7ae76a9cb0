# ruff: noqa: I001
"""Contract and installment service operations.

Two halves:

- Pure schedule helpers used while a contract is being drafted
  (:func:`generate_installments`, :func:`schedule_total`,
  :func:`commission_value`). Money is kept in cents with half-up rounding.
- Session-bound operations on the ``contracts``/``installments``/
  ``commissions`` tables. Callers own the transaction scope (usually
  ``db.client.session_scope``); a failure anywhere rolls back the whole
  contract including its installments, commissions and the client's stage
  change.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.agency import (
    TRANSACTION_STATUSES,
    Client,
    Commission,
    Contract,
    Installment,
)
from .logging_setup import get_logger
from .periods import add_months

logger = get_logger("agency_finance.contracts")

CENT = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def to_cents(raw: Any) -> Decimal:
    """Coerce ``raw`` to a 2dp ``Decimal`` (half-up); ``ValueError`` if not numeric."""

    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"not a monetary value: {raw!r}")
    try:
        d = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"not a monetary value: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"not a monetary value: {raw!r}")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------
# Drafting helpers
# ---------------------------


@dataclass(frozen=True, slots=True)
class InstallmentDraft:
    value: Decimal
    due_date: date
    status: str = "pending"
    transaction_fee: Decimal = _ZERO


@dataclass(frozen=True, slots=True)
class CommissionSplit:
    """An employee's share of every installment, in percent (0, 100]."""

    employee_name: str
    percentage: Decimal


def generate_installments(
    total_value: Decimal | int | str, count: int, first_due: date
) -> list[InstallmentDraft]:
    """Split ``total_value`` into ``count`` monthly installments.

    Each installment is ``total / count`` rounded to cents; the last one
    absorbs the rounding difference so the schedule sums to the total
    exactly. Due dates step one calendar month at a time from ``first_due``
    (day clamped to the month end).
    """

    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValueError("count must be a positive integer")
    total = to_cents(total_value)
    if total <= _ZERO:
        raise ValueError("total_value must be positive")

    base = (total / count).quantize(CENT, rounding=ROUND_HALF_UP)
    last = total - base * (count - 1)
    if last < _ZERO:
        raise ValueError(f"total_value {total} is too small to split into {count} installments")
    values = [base] * (count - 1) + [last]
    return [
        InstallmentDraft(value=v, due_date=add_months(first_due, i))
        for i, v in enumerate(values)
    ]


def schedule_total(drafts: Iterable[InstallmentDraft]) -> Decimal:
    """Contract total implied by a (possibly hand-edited) schedule."""

    return sum((d.value for d in drafts), _ZERO)


def commission_value(installment_value: Decimal, percentage: Decimal) -> Decimal:
    return to_cents(Decimal(installment_value) * Decimal(percentage) / _HUNDRED)


def estimated_commission(total_value: Decimal, percentage: Decimal) -> Decimal:
    """Commission over the whole contract, as shown while drafting."""

    return commission_value(total_value, percentage)


def validate_split(split: CommissionSplit) -> None:
    """``ValueError`` unless the split names someone and its percentage is in (0, 100]."""

    if not split.employee_name or not split.employee_name.strip():
        raise ValueError("commission employee_name is required")
    pct = Decimal(split.percentage)
    if not pct.is_finite() or not (_ZERO < pct <= _HUNDRED):
        raise ValueError(
            f"commission percentage for {split.employee_name!r} must be in (0, 100], got {pct}"
        )


# ---------------------------
# Service operations
# ---------------------------


def create_contract(
    session: Session,
    *,
    client_id: str,
    total_value: Decimal | int | str,
    installments: Sequence[InstallmentDraft],
    commissions: Sequence[CommissionSplit] = (),
    notes: str | None = None,
) -> Contract:
    """Persist a contract with its schedule and commissions; close the deal.

    Inserts the contract as ``active``, one installment row per draft, one
    commission row per (split x installment) valued against that
    installment, then moves the client to stage ``fechado``.

    Raises
    ------
    ValueError
        No installments, schedule total different from ``total_value``, or
        a percentage outside (0, 100].
    LookupError
        ``client_id`` does not exist.
    """

    if not installments:
        raise ValueError("a contract needs at least one installment")
    total = to_cents(total_value)
    scheduled = schedule_total(installments)
    if scheduled != total:
        raise ValueError(
            f"installments sum to {scheduled} but the contract total is {total}"
        )
    for split in commissions:
        validate_split(split)

    client = session.get(Client, client_id)
    if client is None:
        raise LookupError(f"client not found: {client_id!r}")

    contract = Contract(client_id=client_id, total_value=total, status="active", notes=notes)
    session.add(contract)
    session.flush()

    rows: list[Installment] = []
    for draft in installments:
        if draft.status not in TRANSACTION_STATUSES:
            raise ValueError(f"invalid installment status {draft.status!r}")
        inst = Installment(
            contract_id=contract.id,
            value=to_cents(draft.value),
            due_date=draft.due_date,
            status=draft.status,
            transaction_fee=to_cents(draft.transaction_fee),
        )
        session.add(inst)
        rows.append(inst)
    session.flush()

    for split in commissions:
        pct = Decimal(split.percentage)
        for inst in rows:
            session.add(
                Commission(
                    contract_id=contract.id,
                    installment_id=inst.id,
                    employee_name=split.employee_name.strip(),
                    percentage=pct,
                    value=commission_value(inst.value, pct),
                )
            )

    client.stage = "fechado"
    client.updated_at = datetime.now(UTC)
    session.flush()

    logger.info(
        "contracts:create id=%s client=%s total=%s installments=%d commissions=%d",
        contract.id,
        client_id,
        total,
        len(rows),
        len(rows) * len(commissions),
    )
    return contract


def delete_contract(session: Session, contract_id: str) -> None:
    """Delete a contract together with its commissions and installments."""

    contract = session.get(Contract, contract_id)
    if contract is None:
        raise LookupError(f"contract not found: {contract_id!r}")
    # Children first (FKs); commissions reference installments.
    session.execute(delete(Commission).where(Commission.contract_id == contract_id))
    session.execute(delete(Installment).where(Installment.contract_id == contract_id))
    session.delete(contract)
    session.flush()
    logger.info("contracts:delete id=%s", contract_id)


def _get_installment(session: Session, installment_id: str) -> Installment:
    inst = session.get(Installment, installment_id)
    if inst is None:
        raise LookupError(f"installment not found: {installment_id!r}")
    return inst


def update_installment_status(session: Session, installment_id: str, status: str) -> Installment:
    if status not in TRANSACTION_STATUSES:
        raise ValueError(
            f"invalid installment status {status!r}; "
            f"expected one of {', '.join(TRANSACTION_STATUSES)}"
        )
    inst = _get_installment(session, installment_id)
    inst.status = status
    session.flush()
    logger.info("contracts:installment_status id=%s status=%s", installment_id, status)
    return inst


def update_installment_value(
    session: Session,
    installment_id: str,
    value: Decimal | int | str,
    *,
    transaction_fee: Decimal | int | str | None = None,
) -> Installment:
    """Change an installment's value (and optionally its transaction fee).

    Commission rows already computed for the installment are left as they
    are.
    """

    new_value = to_cents(value)
    if new_value < _ZERO:
        raise ValueError("installment value must not be negative")
    inst = _get_installment(session, installment_id)
    inst.value = new_value
    if transaction_fee is not None:
        fee = to_cents(transaction_fee)
        if fee < _ZERO:
            raise ValueError("transaction_fee must not be negative")
        inst.transaction_fee = fee
    session.flush()
    return inst


def check_and_complete_contract(session: Session, contract_id: str) -> bool:
    """Mark the contract ``completed`` when every installment is paid.

    A contract without installments counts as fully paid. Returns whether
    the contract was (or already is) completed by this check.
    """

    contract = session.get(Contract, contract_id)
    if contract is None:
        raise LookupError(f"contract not found: {contract_id!r}")
    statuses = session.execute(
        select(Installment.status).where(Installment.contract_id == contract_id)
    ).scalars()
    if all(s == "paid" for s in statuses):
        if contract.status != "completed":
            contract.status = "completed"
            contract.updated_at = datetime.now(UTC)
            session.flush()
            logger.info("contracts:completed id=%s", contract_id)
        return True
    return False


@dataclass(frozen=True, slots=True)
class ContractDetails:
    contract: Contract
    client: Client | None
    installments: tuple[Installment, ...]
    commissions: tuple[Commission, ...]


def get_contract_details(session: Session, contract_id: str) -> ContractDetails | None:
    """Contract, its client, installments (by due date) and commissions."""

    contract = session.get(Contract, contract_id)
    if contract is None:
        return None
    client = session.get(Client, contract.client_id)
    installments = session.execute(
        select(Installment)
        .where(Installment.contract_id == contract_id)
        .order_by(Installment.due_date.asc(), Installment.created_at.asc())
    ).scalars()
    commissions = session.execute(
        select(Commission)
        .where(Commission.contract_id == contract_id)
        .order_by(Commission.employee_name.asc(), Commission.created_at.asc())
    ).scalars()
    return ContractDetails(
        contract=contract,
        client=client,
        installments=tuple(installments),
        commissions=tuple(commissions),
    )


@dataclass(frozen=True, slots=True)
class ContractSummary:
    total: Decimal
    received: Decimal
    received_pct: Decimal | None
    pending_count: int
    overdue_count: int
    next_due: date | None


def summarize_contract(details: ContractDetails, today: date) -> ContractSummary:
    """Progress figures for the contract detail view.

    ``received`` sums paid installments; ``received_pct`` is relative to the
    contract total (``None`` for a zero total). Pending installments whose due
    date is before ``today`` count as overdue even if not flagged yet.
    """

    total = Decimal(details.contract.total_value)
    received = sum(
        (Decimal(i.value) for i in details.installments if i.status == "paid"), _ZERO
    )
    open_items = [i for i in details.installments if i.status in ("pending", "overdue")]
    overdue = [i for i in open_items if i.status == "overdue" or i.due_date < today]
    pct = None
    if total != _ZERO:
        pct = (received * _HUNDRED / total).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return ContractSummary(
        total=total,
        received=received,
        received_pct=pct,
        pending_count=len(open_items),
        overdue_count=len(overdue),
        next_due=min((i.due_date for i in open_items), default=None),
    )


__all__ = [
    "CENT",
    "to_cents",
    "InstallmentDraft",
    "CommissionSplit",
    "generate_installments",
    "schedule_total",
    "commission_value",
    "estimated_commission",
    "validate_split",
    "create_contract",
    "delete_contract",
    "update_installment_status",
    "update_installment_value",
    "check_and_complete_contract",
    "ContractDetails",
    "get_contract_details",
    "ContractSummary",
    "summarize_contract",
]
