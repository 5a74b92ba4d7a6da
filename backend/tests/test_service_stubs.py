"""Tests for the in-memory employee, attendance and configuration stubs."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from leave_ledger.models.enums import SettingsCategory
from leave_ledger.schemas.settings import DepartmentOverrides, LeaveOverrides
from leave_ledger.services.attendance import (
    AttendanceService,
    AttendanceSummary,
    InMemoryAttendanceService,
    OnDutyRecord,
    PunchRecord,
)
from leave_ledger.services.config_repository import ConfigRepository, InMemoryConfigRepository
from leave_ledger.services.employee import EmployeeInfo, EmployeeService, InMemoryEmployeeService

EMPLOYEE_ID = uuid.uuid4()


def _employee(emp_no: str, *, active: bool = True) -> EmployeeInfo:
    return EmployeeInfo(id=uuid.uuid4(), emp_no=emp_no, name=emp_no, is_active=active)


# ---------------------------------------------------------------------------
# Employee directory
# ---------------------------------------------------------------------------


async def test_employee_service_get_not_found() -> None:
    assert await InMemoryEmployeeService().get_employee(uuid.uuid4()) is None


async def test_employee_service_lists_active_sorted() -> None:
    svc = InMemoryEmployeeService()
    svc.seed(_employee("E003"))
    svc.seed(_employee("E001"))
    svc.seed(_employee("E002", active=False))

    employees = await svc.list_active_employees()

    assert [e.emp_no for e in employees] == ["E001", "E003"]


def test_employee_service_satisfies_protocol() -> None:
    assert isinstance(InMemoryEmployeeService(), EmployeeService)


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


async def test_attendance_summary_keyed_by_cycle_start() -> None:
    svc = InMemoryAttendanceService()
    summary = AttendanceSummary(present_days=Decimal("21.5"))
    svc.seed_summary(EMPLOYEE_ID, date(2026, 1, 26), summary)

    assert await svc.get_cycle_summary(EMPLOYEE_ID, date(2026, 1, 26), date(2026, 2, 25)) == summary
    assert await svc.get_cycle_summary(EMPLOYEE_ID, date(2026, 2, 26), date(2026, 3, 25)) is None


async def test_attendance_days_off_and_on_duty() -> None:
    svc = InMemoryAttendanceService()
    svc.seed_day_off(EMPLOYEE_ID, date(2026, 1, 26))
    svc.seed_on_duty(EMPLOYEE_ID, date(2026, 1, 26), OnDutyRecord(is_half_day=True))

    assert await svc.is_holiday_or_week_off(EMPLOYEE_ID, date(2026, 1, 26)) is True
    assert await svc.is_holiday_or_week_off(EMPLOYEE_ID, date(2026, 1, 27)) is False
    on_duty = await svc.get_approved_on_duty(EMPLOYEE_ID, date(2026, 1, 26))
    assert on_duty is not None
    assert on_duty.is_half_day is True


def test_punch_record_has_worked() -> None:
    assert PunchRecord(in_time=datetime(2026, 1, 26, 9, 0, tzinfo=UTC)).has_worked is True
    assert PunchRecord(total_hours=4).has_worked is True
    assert PunchRecord().has_worked is False


def test_attendance_service_satisfies_protocol() -> None:
    assert isinstance(InMemoryAttendanceService(), AttendanceService)


# ---------------------------------------------------------------------------
# Configuration repository
# ---------------------------------------------------------------------------


async def test_config_repository_division_fallback() -> None:
    repo = InMemoryConfigRepository()
    dept = uuid.uuid4()
    division = uuid.uuid4()
    dept_wide = DepartmentOverrides(leaves=LeaveOverrides(casual_leave_per_year=8))
    repo.set_department_overrides(dept, dept_wide)

    assert await repo.get_department_overrides(dept, division) == dept_wide
    assert await repo.get_department_overrides(uuid.uuid4()) is None


async def test_config_repository_globals() -> None:
    repo = InMemoryConfigRepository()
    repo.set_global(SettingsCategory.PAYROLL, {"start_day": 26})

    assert await repo.get_global(SettingsCategory.PAYROLL) == {"start_day": 26}
    assert await repo.get_global(SettingsCategory.LOAN) is None
    assert isinstance(repo, ConfigRepository)
