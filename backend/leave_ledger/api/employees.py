# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, status

from leave_ledger.api.deps import AdminDep, AuthDep, ensure_employee_access
from leave_ledger.exceptions import AppError, NotFoundError
from leave_ledger.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from leave_ledger.services.attendance import (
    AttendanceSummary,
    InMemoryAttendanceService,
    OnDutyRecord,
    PunchRecord,
    get_attendance_service,
)
from leave_ledger.services.employee import EmployeeInfo, InMemoryEmployeeService, get_employee_service

employees_router = APIRouter(prefix="/employees", tags=["employees"])

attendance_router = APIRouter(prefix="/attendance/{employee_id}", tags=["employees"])


def _stub_directory() -> InMemoryEmployeeService:
    svc = get_employee_service()
    if not isinstance(svc, InMemoryEmployeeService):
        raise AppError("Employee directory is read-only", status_code=status.HTTP_501_NOT_IMPLEMENTED)
    return svc


def _stub_attendance() -> InMemoryAttendanceService:
    svc = get_attendance_service()
    if not isinstance(svc, InMemoryAttendanceService):
        raise AppError("Attendance service is read-only", status_code=status.HTTP_501_NOT_IMPLEMENTED)
    return svc


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(auth: AdminDep) -> EmployeeListResponse:
    """List active employees from the directory."""
    employees = await get_employee_service().list_active_employees()
    return EmployeeListResponse(
        items=[EmployeeResponse.model_validate(e.model_dump()) for e in employees],
        total=len(employees),
    )


@employees_router.put("/{employee_id}", response_model=EmployeeResponse)
async def upsert_employee(
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    auth: AdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub directory (admin only)."""
    employee = EmployeeInfo(id=employee_id, **payload.model_dump())
    _stub_directory().seed(employee)
    return EmployeeResponse.model_validate(employee.model_dump())


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(employee_id: uuid.UUID, auth: AuthDep) -> EmployeeResponse:
    """Get employee info from the directory."""
    ensure_employee_access(auth, employee_id)
    employee = await get_employee_service().get_employee(employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return EmployeeResponse.model_validate(employee.model_dump())


# ---------------------------------------------------------------------------
# Attendance stub seeding
# ---------------------------------------------------------------------------


@attendance_router.put("/summaries/{cycle_start}", status_code=status.HTTP_204_NO_CONTENT)
async def put_cycle_summary(
    employee_id: uuid.UUID,
    cycle_start: date,
    payload: AttendanceSummary,
    auth: AdminDep,
) -> None:
    """Record attendance totals for the payroll cycle starting on cycle_start."""
    _stub_attendance().seed_summary(employee_id, cycle_start, payload)


@attendance_router.put("/days/{day}", status_code=status.HTTP_204_NO_CONTENT)
async def put_day_off(employee_id: uuid.UUID, day: date, auth: AdminDep) -> None:
    """Mark a day as a holiday or week-off on the employee's roster."""
    _stub_attendance().seed_day_off(employee_id, day)


@attendance_router.put("/punches/{day}", status_code=status.HTTP_204_NO_CONTENT)
async def put_punches(employee_id: uuid.UUID, day: date, payload: PunchRecord, auth: AdminDep) -> None:
    _stub_attendance().seed_punches(employee_id, day, payload)


@attendance_router.put("/on-duty/{day}", status_code=status.HTTP_204_NO_CONTENT)
async def put_on_duty(employee_id: uuid.UUID, day: date, payload: OnDutyRecord, auth: AdminDep) -> None:
    _stub_attendance().seed_on_duty(employee_id, day, payload)
