# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import CCLStatus, HalfDayType, StepStatus
from leave_ledger.schemas.settings import Approver

# ---------------------------------------------------------------------------
# Approval chain
# ---------------------------------------------------------------------------


class ApprovalStep(BaseModel):
    """One step of a CCL grant's approval chain."""

    step_order: int
    approver: Approver
    label: str
    status: StepStatus = StepStatus.PENDING
    acted_by: uuid.UUID | None = None
    acted_at: datetime | None = None
    comments: str | None = None


class HistoryEntry(BaseModel):
    action: str
    actor_id: uuid.UUID
    role: str
    comments: str | None = None
    at: datetime


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateCCLRequest(BaseModel):
    """Request body for filing a CCL grant."""

    employee_id: uuid.UUID
    date_worked: date
    is_half_day: bool = False
    half_day_type: HalfDayType | None = None
    assigned_by: uuid.UUID
    purpose: str = Field(min_length=1, max_length=500)
    save_as_draft: bool = False

    @model_validator(mode="after")
    def _validate_half_day(self) -> Self:
        if self.half_day_type is not None and not self.is_half_day:
            msg = "half_day_type is only valid for half-day grants"
            raise ValueError(msg)
        return self


class CCLActionRequest(BaseModel):
    """Request body for approve / reject / cancel."""

    comments: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CCLGrantResponse(BaseModel):
    """A CCL grant with its approval chain."""

    id: uuid.UUID
    employee_id: uuid.UUID
    emp_no: str | None
    date_worked: date
    is_half_day: bool
    half_day_type: HalfDayType | None
    assigned_by: uuid.UUID
    purpose: str
    status: CCLStatus
    approval_chain: list[ApprovalStep]
    history: list[HistoryEntry]
    in_time: datetime | None
    out_time: datetime | None
    total_hours: float | None
    attendance_note: str | None
    department_id: uuid.UUID | None
    division_id: uuid.UUID | None
    applied_by: uuid.UUID
    applied_at: datetime | None
    decided_at: datetime | None
    is_expired: bool
    is_used: bool
    created_at: datetime


class CCLListResponse(BaseModel):
    items: list[CCLGrantResponse]
    total: int


class DateValidationResponse(BaseModel):
    """Preview of whether a CCL could be filed for a date."""

    valid: bool
    is_holiday_or_week_off: bool
    has_attendance: bool
    half_day_only: bool
    has_conflict: bool
    message: str
