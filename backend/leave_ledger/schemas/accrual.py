# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class AccrualError(BaseModel):
    """One employee that failed during a batch run."""

    employee_id: uuid.UUID
    emp_no: str | None
    error: str


class MonthlyAccrualResponse(BaseModel):
    """Response from the monthly accrual trigger endpoint."""

    month: int
    year: int
    cycle_start: date
    cycle_end: date
    processed: int
    cl_credits: int
    el_credits: int
    expired_ccls: int
    skipped: int
    errors: list[AccrualError]


class EarnedLeavePreview(BaseModel):
    """EL an employee would earn for a payroll cycle (nothing is posted)."""

    employee_id: uuid.UUID
    month: int
    year: int
    cycle_start: date
    cycle_end: date
    eligible: bool
    earning_type: str
    attendance_days: Decimal
    effective_days: Decimal
    el_earned: Decimal
    reason: str


class AnnualResetResponse(BaseModel):
    """Response from the annual CL reset trigger."""

    reset_date: date
    processed: int
    reset: int
    skipped: int
    total_carry_forward: Decimal
    total_expired: Decimal
    errors: list[AccrualError]


class InitialSyncResponse(BaseModel):
    """Response from the initial CL balance sync."""

    as_of: date
    processed: int
    synced: int
    skipped: int
    errors: list[AccrualError]


class EmployeeResetStatus(BaseModel):
    employee_id: uuid.UUID
    emp_no: str
    current_cl: Decimal


class ResetStatusResponse(BaseModel):
    """Annual CL reset configuration and next run."""

    enabled: bool
    reset_to_balance: Decimal
    add_carry_forward: bool
    max_carry_forward: Decimal
    use_payroll_cycle_for_reset: bool
    next_reset_date: date
    days_until_reset: int
    last_reset_date: date | None
    employees: list[EmployeeResetStatus]
