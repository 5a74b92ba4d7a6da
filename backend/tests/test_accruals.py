"""Tests for the monthly accrual run: CL pro-rating, EL credits, CCL expiry and idempotency."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlmodel import col

from leave_ledger.models.ccl import CCLGrant
from leave_ledger.models.enums import CCLStatus, LeaveType, LedgerSourceType, SettingsCategory, TransactionType
from leave_ledger.models.ledger import LeaveLedgerTransaction
from leave_ledger.schemas.ledger import LedgerEntry
from leave_ledger.schemas.settings import PayrollSettings
from leave_ledger.services import accrual
from leave_ledger.services.accrual import compute_cl_credit, post_monthly_accruals, preview_earned_leave, previous_month
from leave_ledger.services.attendance import AttendanceSummary, InMemoryAttendanceService, set_attendance_service
from leave_ledger.services.config_repository import InMemoryConfigRepository
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.employee import EmployeeInfo
from leave_ledger.services.ledger import add_transaction, get_balance

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.employee import InMemoryEmployeeService

ADMIN_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "super_admin"}
EMPLOYEE_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "employee"}

CYCLES = CycleResolver(PayrollSettings(start_day=26, end_day=25))
FEB_CYCLE = CYCLES.payroll_cycle_for_month(2, 2026)
CYCLE_END = date(2026, 2, 25)


@pytest.fixture
def repo() -> InMemoryConfigRepository:
    repository = InMemoryConfigRepository()
    repository.set_global(SettingsCategory.PAYROLL, {"start_day": 26, "end_day": 25})
    return repository


def _employee(emp_no: str, joining_date: date | None) -> EmployeeInfo:
    return EmployeeInfo(id=uuid.uuid4(), emp_no=emp_no, name=f"Employee {emp_no}", joining_date=joining_date)


async def _count(session: AsyncSession, employee_id: uuid.UUID, leave_type: LeaveType) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(LeaveLedgerTransaction)
        .where(
            col(LeaveLedgerTransaction.employee_id) == employee_id,
            col(LeaveLedgerTransaction.leave_type) == leave_type.value,
        )
    )
    return result.scalar_one()


def _approved_grant(employee: EmployeeInfo, date_worked: date) -> CCLGrant:
    return CCLGrant(
        employee_id=employee.id,
        emp_no=employee.emp_no,
        date_worked=date_worked,
        assigned_by=uuid.uuid4(),
        purpose="Stock audit",
        status=CCLStatus.APPROVED,
        applied_by=employee.id,
    )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_previous_month_wraps_year() -> None:
    assert previous_month(date(2026, 1, 3)) == (12, 2025)
    assert previous_month(date(2026, 7, 31)) == (6, 2026)


@pytest.mark.parametrize(
    ("joining_date", "expected"),
    [
        (None, "1.0"),
        (date(2020, 5, 1), "1.0"),
        (date(2026, 1, 26), "1.0"),
        (date(2026, 2, 5), "0.5"),
        (date(2026, 2, 25), "0.5"),
        (date(2026, 2, 26), "0"),
    ],
)
def test_compute_cl_credit(joining_date: date | None, expected: str) -> None:
    assert compute_cl_credit(Decimal(1), joining_date, FEB_CYCLE) == Decimal(expected)


# ---------------------------------------------------------------------------
# Monthly run
# ---------------------------------------------------------------------------


async def test_monthly_accrual_pro_rates_casual_leave(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
) -> None:
    early = _employee("E001", date(2026, 1, 10))
    mid = _employee("E002", date(2026, 2, 5))
    late = _employee("E003", date(2026, 3, 1))
    for employee in (early, mid, late):
        employees.seed(employee)

    result = await post_monthly_accruals(db_session, 2, 2026, repository=repo)

    assert (result.cycle_start, result.cycle_end) == (date(2026, 1, 26), CYCLE_END)
    assert result.processed == 3
    assert result.cl_credits == 2
    assert result.el_credits == 0
    assert result.skipped == 1
    assert result.errors == []
    assert await get_balance(db_session, CYCLES, early.id, LeaveType.CL, CYCLE_END) == Decimal("1.0")
    assert await get_balance(db_session, CYCLES, mid.id, LeaveType.CL, CYCLE_END) == Decimal("0.5")
    assert await get_balance(db_session, CYCLES, late.id, LeaveType.CL, CYCLE_END) == Decimal("0")


async def test_monthly_accrual_is_idempotent(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
) -> None:
    employee = _employee("E001", date(2020, 1, 1))
    employees.seed(employee)
    attendance.seed_summary(employee.id, FEB_CYCLE.start_date, AttendanceSummary(present_days=Decimal("24")))

    first = await post_monthly_accruals(db_session, 2, 2026, repository=repo)
    second = await post_monthly_accruals(db_session, 2, 2026, repository=repo)

    assert (first.cl_credits, first.el_credits) == (1, 1)
    assert (second.cl_credits, second.el_credits, second.skipped) == (0, 0, 1)
    assert await _count(db_session, employee.id, LeaveType.CL) == 1
    assert await _count(db_session, employee.id, LeaveType.EL) == 1
    assert await get_balance(db_session, CYCLES, employee.id, LeaveType.EL, CYCLE_END) == Decimal("1.0")


async def test_monthly_accrual_credits_dated_at_cycle_end(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
) -> None:
    employee = _employee("E001", date(2020, 1, 1))
    employees.seed(employee)
    await post_monthly_accruals(db_session, 2, 2026, repository=repo)

    result = await db_session.execute(
        select(LeaveLedgerTransaction).where(col(LeaveLedgerTransaction.employee_id) == employee.id)
    )
    txn = result.scalar_one()
    assert txn.start_date == CYCLE_END
    assert txn.transaction_type == TransactionType.CREDIT
    assert txn.auto_generated is True
    assert txn.source_id == f"accrual:{employee.id}:CL:2026-01-26"


class _FlakyAttendance(InMemoryAttendanceService):
    def __init__(self, failing: uuid.UUID) -> None:
        super().__init__()
        self._failing = failing

    async def get_cycle_summary(self, employee_id: uuid.UUID, start: date, end: date) -> AttendanceSummary | None:
        if employee_id == self._failing:
            msg = "attendance service unavailable"
            raise RuntimeError(msg)
        return await super().get_cycle_summary(employee_id, start, end)


async def test_monthly_accrual_isolates_failures(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
) -> None:
    broken = _employee("E001", date(2020, 1, 1))
    healthy = _employee("E002", date(2020, 1, 1))
    employees.seed(broken)
    employees.seed(healthy)
    set_attendance_service(_FlakyAttendance(broken.id))

    result = await post_monthly_accruals(db_session, 2, 2026, repository=repo)

    assert result.processed == 1
    assert result.cl_credits == 1
    assert len(result.errors) == 1
    assert result.errors[0]["emp_no"] == "E001"
    assert "unavailable" in result.errors[0]["error"]
    assert await _count(db_session, broken.id, LeaveType.CL) == 0
    assert await get_balance(db_session, CYCLES, healthy.id, LeaveType.CL, CYCLE_END) == Decimal("1.0")


async def test_monthly_accrual_expires_stale_ccl(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
) -> None:
    employee = _employee("E001", date(2020, 1, 1))
    employees.seed(employee)
    stale = _approved_grant(employee, date(2025, 7, 1))
    recent = _approved_grant(employee, date(2025, 12, 1))
    db_session.add(stale)
    db_session.add(recent)
    await add_transaction(
        db_session,
        CYCLES,
        LedgerEntry(
            employee_id=employee.id,
            leave_type=LeaveType.CCL,
            transaction_type=TransactionType.CREDIT,
            days=Decimal("1"),
            start_date=stale.date_worked,
            reason="Worked on holiday",
            source_type=LedgerSourceType.CCL,
            source_id=f"ccl-credit:{stale.id}",
        ),
    )
    await db_session.commit()

    first = await post_monthly_accruals(db_session, 2, 2026, repository=repo)
    second = await post_monthly_accruals(db_session, 2, 2026, repository=repo)

    assert first.expired_ccls == 1
    assert second.expired_ccls == 0
    await db_session.refresh(stale)
    await db_session.refresh(recent)
    assert stale.is_expired is True
    assert recent.is_expired is False
    assert await get_balance(db_session, CYCLES, employee.id, LeaveType.CCL, CYCLE_END) == Decimal("0")


async def test_monthly_accrual_keeps_credits_when_ccl_expiry_fails(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    employee = _employee("E001", date(2020, 1, 1))
    employees.seed(employee)
    stale = _approved_grant(employee, date(2025, 7, 1))
    db_session.add(stale)
    await db_session.commit()

    real_add_transaction = accrual.add_transaction

    async def _lock_timeout_on_expiry(
        session: AsyncSession, cycles: CycleResolver, entry: LedgerEntry
    ) -> LeaveLedgerTransaction:
        if entry.transaction_type == TransactionType.EXPIRY:
            raise OperationalError("INSERT INTO leave_ledger_transaction", {}, Exception("lock timeout"))
        return await real_add_transaction(session, cycles, entry)

    monkeypatch.setattr(accrual, "add_transaction", _lock_timeout_on_expiry)

    with caplog.at_level(logging.ERROR, logger="leave_ledger.services.accrual"):
        result = await post_monthly_accruals(db_session, 2, 2026, repository=repo)

    assert result.errors == []
    assert result.processed == 1
    assert result.cl_credits == 1
    assert result.expired_ccls == 0
    assert "Failed to expire CCL" in caplog.text
    assert await get_balance(db_session, CYCLES, employee.id, LeaveType.CL, CYCLE_END) == Decimal("1.0")
    await db_session.refresh(stale)
    assert stale.is_expired is False


async def test_preview_earned_leave_posts_nothing(
    db_session: AsyncSession,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
    repo: InMemoryConfigRepository,
) -> None:
    employee = _employee("E001", date(2020, 1, 1))
    employees.seed(employee)
    attendance.seed_summary(
        employee.id,
        FEB_CYCLE.start_date,
        AttendanceSummary(present_days=Decimal("18"), weekly_offs=Decimal("4")),
    )

    preview = await preview_earned_leave(db_session, employee.id, 2, 2026, repository=repo)

    assert preview.eligible is True
    assert preview.attendance_days == Decimal("22")
    assert preview.el_earned == Decimal("1.0")
    assert await _count(db_session, employee.id, LeaveType.EL) == 0


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


async def test_trigger_monthly_accrual_api(
    async_client: AsyncClient,
    employees: InMemoryEmployeeService,
    attendance: InMemoryAttendanceService,
) -> None:
    employee = _employee("E001", date(2026, 2, 5))
    employees.seed(employee)
    resp = await async_client.put(
        "/settings/global/payroll", json={"start_day": 26, "end_day": 25}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200

    resp = await async_client.post("/accruals/monthly?month=2&year=2026", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["cycle_start"] == "2026-01-26"
    assert data["cycle_end"] == "2026-02-25"
    assert data["cl_credits"] == 1

    resp = await async_client.get(
        f"/employees/{employee.id}/balances?as_of=2026-02-25",
        headers={**ADMIN_HEADERS, "X-Role": "hr"},
    )
    balances = {item["leave_type"]: item for item in resp.json()["items"]}
    assert Decimal(balances["CL"]["balance"]) == Decimal("0.5")


async def test_trigger_monthly_accrual_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.post("/accruals/monthly?month=2&year=2026", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"] == "AppError"
