# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class AttendanceSummary(BaseModel):
    """Attendance totals for one employee over one payroll cycle."""

    present_days: Decimal = Decimal("0")  # present and half-day records, one each
    payable_shifts: Decimal = Decimal("0")
    weekly_offs: Decimal = Decimal("0")
    holidays: Decimal = Decimal("0")


class PunchRecord(BaseModel):
    """Punches recorded for an employee on one day."""

    in_time: datetime | None = None
    out_time: datetime | None = None
    total_hours: float | None = None

    @property
    def has_worked(self) -> bool:
        return self.in_time is not None or (self.total_hours or 0) > 0


class OnDutyRecord(BaseModel):
    """An approved on-duty (OD) application covering a day."""

    is_half_day: bool = False


@runtime_checkable
class AttendanceService(Protocol):
    """Interface for the attendance service."""

    async def get_cycle_summary(self, employee_id: uuid.UUID, start: date, end: date) -> AttendanceSummary | None:
        """Attendance totals for the inclusive range. None if nothing was recorded."""
        ...

    async def is_holiday_or_week_off(self, employee_id: uuid.UUID, day: date) -> bool:
        """True when the day is a holiday or week-off on the employee's roster."""
        ...

    async def get_punches(self, employee_id: uuid.UUID, day: date) -> PunchRecord | None: ...

    async def get_approved_on_duty(self, employee_id: uuid.UUID, day: date) -> OnDutyRecord | None: ...


class InMemoryAttendanceService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._summaries: dict[tuple[uuid.UUID, date], AttendanceSummary] = {}
        self._days_off: set[tuple[uuid.UUID, date]] = set()
        self._punches: dict[tuple[uuid.UUID, date], PunchRecord] = {}
        self._on_duty: dict[tuple[uuid.UUID, date], OnDutyRecord] = {}

    def seed_summary(self, employee_id: uuid.UUID, cycle_start: date, summary: AttendanceSummary) -> None:
        self._summaries[(employee_id, cycle_start)] = summary

    def seed_day_off(self, employee_id: uuid.UUID, day: date) -> None:
        self._days_off.add((employee_id, day))

    def seed_punches(self, employee_id: uuid.UUID, day: date, punches: PunchRecord) -> None:
        self._punches[(employee_id, day)] = punches

    def seed_on_duty(self, employee_id: uuid.UUID, day: date, record: OnDutyRecord) -> None:
        self._on_duty[(employee_id, day)] = record

    async def get_cycle_summary(
        self,
        employee_id: uuid.UUID,
        start: date,
        end: date,  # noqa: ARG002
    ) -> AttendanceSummary | None:
        return self._summaries.get((employee_id, start))

    async def is_holiday_or_week_off(self, employee_id: uuid.UUID, day: date) -> bool:
        return (employee_id, day) in self._days_off

    async def get_punches(self, employee_id: uuid.UUID, day: date) -> PunchRecord | None:
        return self._punches.get((employee_id, day))

    async def get_approved_on_duty(self, employee_id: uuid.UUID, day: date) -> OnDutyRecord | None:
        return self._on_duty.get((employee_id, day))


_attendance_service: AttendanceService = InMemoryAttendanceService()


def get_attendance_service() -> AttendanceService:
    """FastAPI dependency for the attendance service."""
    return _attendance_service


def set_attendance_service(service: AttendanceService) -> None:
    """Override the service (for testing or production wiring)."""
    global _attendance_service
    _attendance_service = service
