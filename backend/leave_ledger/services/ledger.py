"""Append-only leave ledger with a transactional balance snapshot."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select
from sqlmodel import col

from leave_ledger.config import local_today
from leave_ledger.exceptions import AppError, ConflictError
from leave_ledger.models.balance import LIFETIME_PERIOD, LeaveBalanceSnapshot
from leave_ledger.models.enums import (
    AuditAction,
    AuditEntityType,
    AutoGeneratedType,
    LeaveType,
    LedgerSourceType,
    TransactionType,
)
from leave_ledger.models.ledger import LeaveLedgerTransaction
from leave_ledger.schemas.ledger import (
    BalanceListResponse,
    LeaveBalance,
    LedgerEntry,
    LedgerListResponse,
    LedgerTransactionResponse,
)
from leave_ledger.services.audit import SYSTEM_ACTOR_ID, model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.cycle import CycleResolver

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
HALF_DAY = Decimal("0.5")
FULL_DAY = Decimal("1.0")

# Debit-like transaction types reduce the balance.
_NEGATIVE_TYPES = (TransactionType.DEBIT.value, TransactionType.EXPIRY.value)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def signed_days(transaction_type: TransactionType | str, days: Decimal) -> Decimal:
    """Contribution of a transaction to the balance."""
    if transaction_type in _NEGATIVE_TYPES:
        return -days
    return days


def round_to_half(value: Decimal) -> Decimal:
    """Round a credit to the nearest half day.

    Non-positive values credit nothing; anything in (0, 0.5) still earns half a day.
    """
    if value <= 0:
        return Decimal("0.0")
    if value < HALF_DAY:
        return HALF_DAY
    return ((value * 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP) / 2).quantize(Decimal("0.1"))


def period_key_for(leave_type: LeaveType | str, day: date, cycles: CycleResolver) -> str:
    """CL balances live per financial year; EL and CCL are lifetime."""
    if leave_type == LeaveType.CL:
        return cycles.financial_year_for_date(day).label
    return LIFETIME_PERIOD


def build_transaction_response(txn: LeaveLedgerTransaction) -> LedgerTransactionResponse:
    return LedgerTransactionResponse.model_validate(txn, from_attributes=True)


_SIGNED_DAYS_SUM = func.coalesce(
    func.sum(
        case(
            (
                col(LeaveLedgerTransaction.transaction_type).in_(_NEGATIVE_TYPES),
                -col(LeaveLedgerTransaction.days),
            ),
            else_=col(LeaveLedgerTransaction.days),
        )
    ),
    0,
)


# ---------------------------------------------------------------------------
# Balance queries
# ---------------------------------------------------------------------------


async def _sum_between(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType | str,
    start: date | None,
    end: date,
) -> Decimal:
    filters = [
        col(LeaveLedgerTransaction.employee_id) == employee_id,
        col(LeaveLedgerTransaction.leave_type) == str(leave_type),
        col(LeaveLedgerTransaction.start_date) <= end,
    ]
    if start is not None:
        filters.append(col(LeaveLedgerTransaction.start_date) >= start)
    result = await session.execute(select(_SIGNED_DAYS_SUM).where(*filters))
    return Decimal(str(result.scalar_one())).quantize(TWO_PLACES)


async def get_balance(
    session: AsyncSession,
    cycles: CycleResolver,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    as_of: date,
) -> Decimal:
    """Signed sum of transactions dated on or before ``as_of``.

    CL is scoped to the financial year containing ``as_of``; EL and CCL are lifetime.
    """
    start = cycles.financial_year_for_date(as_of).start_date if leave_type == LeaveType.CL else None
    return await _sum_between(session, employee_id, leave_type, start, as_of)


async def compute_period_balance(
    session: AsyncSession,
    cycles: CycleResolver,
    employee_id: uuid.UUID,
    leave_type: LeaveType | str,
    day: date,
) -> Decimal:
    """Full-period total backing a snapshot row (future-dated entries included)."""
    if leave_type == LeaveType.CL:
        fy = cycles.financial_year_for_date(day)
        return await _sum_between(session, employee_id, leave_type, fy.start_date, fy.end_date)
    return await _sum_between(session, employee_id, leave_type, None, date.max)


async def _get_or_create_snapshot_for_update(
    session: AsyncSession,
    cycles: CycleResolver,
    employee_id: uuid.UUID,
    leave_type: LeaveType | str,
    day: date,
) -> tuple[LeaveBalanceSnapshot, bool]:
    """Lock the snapshot row for ``day``'s period, creating it from the ledger if absent.

    Returns (snapshot, created). A freshly created snapshot already includes
    every flushed ledger row.
    """
    period_key = period_key_for(leave_type, day, cycles)
    result = await session.execute(
        select(LeaveBalanceSnapshot)
        .where(
            col(LeaveBalanceSnapshot.employee_id) == employee_id,
            col(LeaveBalanceSnapshot.leave_type) == str(leave_type),
            col(LeaveBalanceSnapshot.period_key) == period_key,
        )
        .with_for_update()
    )
    snapshot = result.scalar_one_or_none()
    if snapshot is not None:
        return snapshot, False

    balance = await compute_period_balance(session, cycles, employee_id, leave_type, day)
    snapshot = LeaveBalanceSnapshot(
        employee_id=employee_id,
        leave_type=str(leave_type),
        period_key=period_key,
        balance=balance,
        version=1,
    )
    session.add(snapshot)
    await session.flush()
    return snapshot, True


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def find_by_source(
    session: AsyncSession,
    source_type: LedgerSourceType,
    source_id: str,
    transaction_type: TransactionType,
) -> LeaveLedgerTransaction | None:
    result = await session.execute(
        select(LeaveLedgerTransaction).where(
            col(LeaveLedgerTransaction.source_type) == source_type.value,
            col(LeaveLedgerTransaction.source_id) == source_id,
            col(LeaveLedgerTransaction.transaction_type) == transaction_type.value,
        )
    )
    return result.scalar_one_or_none()


async def find_auto_generated(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    auto_generated_type: AutoGeneratedType,
    start_date: date,
) -> LeaveLedgerTransaction | None:
    """Existing auto-generated transaction for an employee/type/date, if any."""
    result = await session.execute(
        select(LeaveLedgerTransaction)
        .where(
            col(LeaveLedgerTransaction.employee_id) == employee_id,
            col(LeaveLedgerTransaction.leave_type) == leave_type.value,
            col(LeaveLedgerTransaction.auto_generated_type) == auto_generated_type.value,
            col(LeaveLedgerTransaction.start_date) == start_date,
        )
        .limit(1)
    )
    return result.scalars().first()


async def add_transaction(
    session: AsyncSession,
    cycles: CycleResolver,
    entry: LedgerEntry,
    *,
    actor_id: uuid.UUID = SYSTEM_ACTOR_ID,
) -> LeaveLedgerTransaction:
    """Append one transaction and update the balance snapshot.

    No balance sufficiency check is made. Runs inside the caller's
    transaction; the caller commits.
    """
    days = entry.days.quantize(TWO_PLACES)
    if days < 0 and entry.transaction_type != TransactionType.ADJUSTMENT:
        msg = f"{entry.transaction_type.value} transactions require non-negative days"
        raise AppError(msg, status_code=400)
    end_date = entry.end_date or entry.start_date
    if end_date < entry.start_date:
        raise AppError("end_date must be >= start_date", status_code=400)

    existing = await find_by_source(session, entry.source_type, entry.source_id, entry.transaction_type)
    if existing is not None:
        msg = f"Transaction already recorded for source {entry.source_type.value}:{entry.source_id}"
        raise ConflictError(msg)

    snapshot, created = await _get_or_create_snapshot_for_update(
        session, cycles, entry.employee_id, entry.leave_type, entry.start_date
    )

    txn = LeaveLedgerTransaction(
        employee_id=entry.employee_id,
        leave_type=entry.leave_type.value,
        transaction_type=entry.transaction_type.value,
        days=days,
        start_date=entry.start_date,
        end_date=end_date,
        reason=entry.reason,
        auto_generated=entry.auto_generated_type is not None,
        auto_generated_type=entry.auto_generated_type.value if entry.auto_generated_type else None,
        source_type=entry.source_type.value,
        source_id=entry.source_id,
        metadata_json=entry.metadata_json,
    )
    session.add(txn)
    await session.flush()

    snapshot.balance = Decimal(snapshot.balance) + signed_days(entry.transaction_type, days)
    if not created:
        snapshot.version += 1
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.LEDGER_TRANSACTION,
        entity_id=txn.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(txn),
    )
    return txn


async def add_adjustment(
    session: AsyncSession,
    cycles: CycleResolver,
    *,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    days: Decimal,
    reason: str,
    effective_date: date | None = None,
    actor_id: uuid.UUID = SYSTEM_ACTOR_ID,
) -> LeaveLedgerTransaction:
    """Record a manual signed correction and commit it."""
    txn = await add_transaction(
        session,
        cycles,
        LedgerEntry(
            employee_id=employee_id,
            leave_type=leave_type,
            transaction_type=TransactionType.ADJUSTMENT,
            days=days,
            start_date=effective_date or local_today(),
            reason=reason,
            source_type=LedgerSourceType.ADMIN,
            source_id=f"adjustment:{uuid.uuid4()}",
            metadata_json={"actor_id": str(actor_id)},
        ),
        actor_id=actor_id,
    )
    await session.commit()
    await session.refresh(txn)
    return txn


async def reconcile_snapshot(
    session: AsyncSession,
    cycles: CycleResolver,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    day: date,
) -> LeaveBalanceSnapshot:
    """Rebuild the snapshot for ``day``'s period from the ledger."""
    snapshot, created = await _get_or_create_snapshot_for_update(session, cycles, employee_id, leave_type, day)
    if not created:
        recomputed = await compute_period_balance(session, cycles, employee_id, leave_type, day)
        if Decimal(snapshot.balance) != recomputed:
            logger.warning(
                "Snapshot drift employee=%s leave_type=%s period=%s snapshot=%s ledger=%s",
                employee_id,
                leave_type,
                snapshot.period_key,
                snapshot.balance,
                recomputed,
            )
            snapshot.balance = recomputed
            snapshot.version += 1
    await session.commit()
    await session.refresh(snapshot)
    return snapshot


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balances(
    session: AsyncSession,
    cycles: CycleResolver,
    employee_id: uuid.UUID,
    as_of: date,
) -> BalanceListResponse:
    """CL, EL and CCL balances as of a date, with the cached snapshot value alongside."""
    items: list[LeaveBalance] = []
    for leave_type in LeaveType:
        period_key = period_key_for(leave_type, as_of, cycles)
        snapshot_result = await session.execute(
            select(LeaveBalanceSnapshot.balance).where(
                col(LeaveBalanceSnapshot.employee_id) == employee_id,
                col(LeaveBalanceSnapshot.leave_type) == leave_type.value,
                col(LeaveBalanceSnapshot.period_key) == period_key,
            )
        )
        snapshot_balance = snapshot_result.scalar_one_or_none()
        items.append(
            LeaveBalance(
                leave_type=leave_type,
                balance=await get_balance(session, cycles, employee_id, leave_type, as_of),
                period_key=period_key,
                snapshot_balance=Decimal(snapshot_balance) if snapshot_balance is not None else None,
            )
        )
    return BalanceListResponse(employee_id=employee_id, as_of=as_of, items=items)


async def list_transactions(
    session: AsyncSession,
    employee_id: uuid.UUID,
    *,
    leave_type: LeaveType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LedgerListResponse:
    """Paginated ledger for an employee, newest first."""
    filters = [col(LeaveLedgerTransaction.employee_id) == employee_id]
    if leave_type is not None:
        filters.append(col(LeaveLedgerTransaction.leave_type) == leave_type.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerTransaction).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveLedgerTransaction)
        .where(*filters)
        .order_by(col(LeaveLedgerTransaction.start_date).desc(), col(LeaveLedgerTransaction.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    items = [build_transaction_response(txn) for txn in result.scalars().all()]
    return LedgerListResponse(items=items, total=total)
