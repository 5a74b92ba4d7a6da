"""Tests for the append-only ledger, balances and the snapshot cache."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.exceptions import AppError, ConflictError
from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LIFETIME_PERIOD, LeaveBalanceSnapshot
from leave_ledger.models.enums import AuditEntityType, LeaveType, LedgerSourceType, TransactionType
from leave_ledger.schemas.ledger import LedgerEntry
from leave_ledger.services import ledger as ledger_service
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.ledger import (
    add_adjustment,
    add_transaction,
    get_balance,
    get_balances,
    list_transactions,
    reconcile_snapshot,
    round_to_half,
    signed_days,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

EMPLOYEE_ID = uuid.uuid4()
CYCLES = CycleResolver()


def _entry(
    leave_type: LeaveType,
    transaction_type: TransactionType,
    days: str,
    on: date,
    source_id: str | None = None,
) -> LedgerEntry:
    return LedgerEntry(
        employee_id=EMPLOYEE_ID,
        leave_type=leave_type,
        transaction_type=transaction_type,
        days=Decimal(days),
        start_date=on,
        reason="test",
        source_type=LedgerSourceType.ADMIN,
        source_id=source_id or f"test:{uuid.uuid4()}",
    )


async def _snapshot(session: AsyncSession, leave_type: LeaveType, period_key: str) -> LeaveBalanceSnapshot:
    result = await session.execute(
        select(LeaveBalanceSnapshot).where(
            col(LeaveBalanceSnapshot.employee_id) == EMPLOYEE_ID,
            col(LeaveBalanceSnapshot.leave_type) == leave_type.value,
            col(LeaveBalanceSnapshot.period_key) == period_key,
        )
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_signed_days() -> None:
    assert signed_days(TransactionType.CREDIT, Decimal("1.5")) == Decimal("1.5")
    assert signed_days(TransactionType.DEBIT, Decimal("1.5")) == Decimal("-1.5")
    assert signed_days(TransactionType.EXPIRY, Decimal("2")) == Decimal("-2")
    assert signed_days(TransactionType.ADJUSTMENT, Decimal("-3")) == Decimal("-3")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("-1", "0"),
        ("0", "0"),
        ("0.2", "0.5"),
        ("0.74", "0.5"),
        ("0.75", "1.0"),
        ("1", "1.0"),
        ("1.25", "1.5"),
        ("1.7", "1.5"),
    ],
)
def test_round_to_half(raw: str, expected: str) -> None:
    assert round_to_half(Decimal(raw)) == Decimal(expected)


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def test_negative_credit_rejected(db_session: AsyncSession) -> None:
    with pytest.raises(AppError) as exc_info:
        await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.CREDIT, "-1", date(2026, 1, 5)))
    assert exc_info.value.status_code == 400


async def test_duplicate_source_rejected(db_session: AsyncSession) -> None:
    entry = _entry(LeaveType.EL, TransactionType.CREDIT, "1", date(2026, 1, 5), source_id="dup")
    await add_transaction(db_session, CYCLES, entry)
    with pytest.raises(ConflictError):
        await add_transaction(db_session, CYCLES, entry)


async def test_same_source_different_type_allowed(db_session: AsyncSession) -> None:
    await add_transaction(
        db_session, CYCLES, _entry(LeaveType.CL, TransactionType.EXPIRY, "1", date(2025, 12, 31), source_id="reset")
    )
    await add_transaction(
        db_session, CYCLES, _entry(LeaveType.CL, TransactionType.ADJUSTMENT, "2", date(2026, 1, 1), source_id="reset")
    )
    await db_session.commit()
    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.CL, date(2026, 1, 1)) == Decimal("2")


async def test_transaction_is_audited(db_session: AsyncSession) -> None:
    txn = await add_transaction(
        db_session, CYCLES, _entry(LeaveType.EL, TransactionType.CREDIT, "1", date(2026, 1, 5))
    )
    await db_session.commit()
    result = await db_session.execute(
        select(func.count())
        .select_from(AuditLog)
        .where(
            col(AuditLog.entity_type) == AuditEntityType.LEDGER_TRANSACTION.value,
            col(AuditLog.entity_id) == txn.id,
        )
    )
    assert result.scalar_one() == 1


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


async def test_cl_balance_is_scoped_to_financial_year(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "5", date(2025, 6, 1)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "2", date(2026, 2, 1)))
    await db_session.commit()

    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.CL, date(2025, 12, 31)) == Decimal("5")
    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.CL, date(2026, 3, 1)) == Decimal("2")
    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.CL, date(2026, 1, 31)) == Decimal("0")


async def test_el_balance_is_lifetime_and_signed(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.CREDIT, "3", date(2025, 3, 31)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.DEBIT, "1", date(2026, 1, 10)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.EXPIRY, "0.5", date(2026, 2, 1)))
    await db_session.commit()

    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.EL, date(2026, 1, 31)) == Decimal("2")
    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.EL, date(2026, 2, 1)) == Decimal("1.5")


async def test_balance_independent_of_posting_order(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CCL, TransactionType.DEBIT, "1", date(2026, 3, 1)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CCL, TransactionType.CREDIT, "1", date(2026, 1, 1)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CCL, TransactionType.CREDIT, "0.5", date(2026, 2, 1)))
    await db_session.commit()

    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.CCL, date(2026, 3, 1)) == Decimal("0.5")
    snapshot = await _snapshot(db_session, LeaveType.CCL, LIFETIME_PERIOD)
    assert Decimal(snapshot.balance) == Decimal("0.5")


async def test_balance_can_go_negative(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.DEBIT, "2", date(2026, 1, 10)))
    await db_session.commit()
    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.EL, date(2026, 1, 10)) == Decimal("-2")


# ---------------------------------------------------------------------------
# Snapshot cache
# ---------------------------------------------------------------------------


async def test_snapshot_tracks_ledger_and_bumps_version(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "1", date(2026, 1, 31)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "1", date(2026, 2, 28)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.DEBIT, "0.5", date(2026, 3, 4)))
    await db_session.commit()

    snapshot = await _snapshot(db_session, LeaveType.CL, "2026")
    assert Decimal(snapshot.balance) == Decimal("1.5")
    assert snapshot.version == 3


async def test_reconcile_repairs_drift(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.CREDIT, "2", date(2026, 1, 31)))
    await db_session.commit()
    snapshot = await _snapshot(db_session, LeaveType.EL, LIFETIME_PERIOD)
    snapshot.balance = Decimal("99")
    await db_session.commit()

    repaired = await reconcile_snapshot(db_session, CYCLES, EMPLOYEE_ID, LeaveType.EL, date(2026, 2, 1))
    assert Decimal(repaired.balance) == Decimal("2")
    assert repaired.version == 2


# ---------------------------------------------------------------------------
# Adjustments and listings
# ---------------------------------------------------------------------------


async def test_adjustment_accepts_negative_days(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.CREDIT, "3", date(2026, 1, 31)))
    txn = await add_adjustment(
        db_session,
        CYCLES,
        employee_id=EMPLOYEE_ID,
        leave_type=LeaveType.EL,
        days=Decimal("-1.5"),
        reason="Correction",
        effective_date=date(2026, 2, 1),
    )
    assert txn.transaction_type == TransactionType.ADJUSTMENT
    assert txn.source_id.startswith("adjustment:")
    assert await get_balance(db_session, CYCLES, EMPLOYEE_ID, LeaveType.EL, date(2026, 2, 1)) == Decimal("1.5")


async def test_adjustment_defaults_to_business_date(db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ledger_service, "local_today", lambda: date(2026, 3, 1))
    txn = await add_adjustment(
        db_session,
        CYCLES,
        employee_id=EMPLOYEE_ID,
        leave_type=LeaveType.EL,
        days=Decimal("2"),
        reason="Opening balance",
    )
    assert txn.start_date == date(2026, 3, 1)


async def test_get_balances_reports_all_types(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "1", date(2026, 1, 31)))
    await db_session.commit()

    balances = await get_balances(db_session, CYCLES, EMPLOYEE_ID, date(2026, 2, 1))
    by_type = {item.leave_type: item for item in balances.items}
    assert set(by_type) == {LeaveType.CL, LeaveType.EL, LeaveType.CCL}
    assert by_type[LeaveType.CL].balance == Decimal("1")
    assert by_type[LeaveType.CL].period_key == "2026"
    assert by_type[LeaveType.EL].balance == Decimal("0")
    assert by_type[LeaveType.EL].snapshot_balance is None


async def test_list_transactions_newest_first(db_session: AsyncSession) -> None:
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "1", date(2026, 1, 31)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.EL, TransactionType.CREDIT, "1", date(2026, 2, 28)))
    await add_transaction(db_session, CYCLES, _entry(LeaveType.CL, TransactionType.CREDIT, "1", date(2026, 3, 31)))
    await db_session.commit()

    everything = await list_transactions(db_session, EMPLOYEE_ID)
    cl_only = await list_transactions(db_session, EMPLOYEE_ID, leave_type=LeaveType.CL, limit=1)
    assert everything.total == 3
    assert [t.start_date for t in everything.items] == [date(2026, 3, 31), date(2026, 2, 28), date(2026, 1, 31)]
    assert cl_only.total == 2
    assert len(cl_only.items) == 1
    assert cl_only.items[0].start_date == date(2026, 3, 31)
