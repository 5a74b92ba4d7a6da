# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AdminDep, AuthDep, ConfigRepoDep, ensure_employee_access
from leave_ledger.config import local_today
from leave_ledger.db import SessionDep
from leave_ledger.exceptions import NotFoundError
from leave_ledger.models.enums import LeaveType
from leave_ledger.schemas.accrual import EarnedLeavePreview
from leave_ledger.schemas.ledger import (
    BalanceListResponse,
    CreateAdjustmentRequest,
    LedgerListResponse,
    LedgerTransactionResponse,
)
from leave_ledger.services import ledger as ledger_service
from leave_ledger.services.accrual import preview_earned_leave, previous_month
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.settings_cascade import SettingsCascade

employee_balance_router = APIRouter(prefix="/employees/{employee_id}/balances", tags=["balances"])

employee_ledger_router = APIRouter(prefix="/employees/{employee_id}/ledger", tags=["balances"])

adjustment_router = APIRouter(prefix="/adjustments", tags=["balances"])

earned_leave_router = APIRouter(prefix="/employees/{employee_id}/earned-leave", tags=["accruals"])


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    repository: ConfigRepoDep,
    as_of: date | None = Query(default=None),
) -> BalanceListResponse:
    """CL, EL and CCL balances for an employee as of a date (default today)."""
    ensure_employee_access(auth, employee_id)
    cycles = await CycleResolver.from_cascade(SettingsCascade(repository))
    return await ledger_service.get_balances(session, cycles, employee_id, as_of or local_today())


@employee_ledger_router.get("", response_model=LedgerListResponse)
async def get_employee_ledger(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    leave_type: LeaveType | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Paginated ledger transactions for an employee."""
    ensure_employee_access(auth, employee_id)
    return await ledger_service.list_transactions(
        session, employee_id, leave_type=leave_type, offset=offset, limit=limit
    )


@adjustment_router.post("", response_model=LedgerTransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    payload: CreateAdjustmentRequest,
    session: SessionDep,
    auth: AdminDep,
    repository: ConfigRepoDep,
) -> LedgerTransactionResponse:
    """Create an admin balance adjustment."""
    if await get_employee_service().get_employee(payload.employee_id) is None:
        raise NotFoundError("Employee not found")
    cycles = await CycleResolver.from_cascade(SettingsCascade(repository))
    txn = await ledger_service.add_adjustment(
        session,
        cycles,
        employee_id=payload.employee_id,
        leave_type=payload.leave_type,
        days=payload.days,
        reason=payload.reason,
        effective_date=payload.effective_date or local_today(),
        actor_id=auth.user_id,
    )
    return LedgerTransactionResponse.model_validate(txn, from_attributes=True)


@earned_leave_router.get("/preview", response_model=EarnedLeavePreview)
async def earned_leave_preview(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    repository: ConfigRepoDep,
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> EarnedLeavePreview:
    """EL the employee would earn for a payroll cycle; nothing is posted."""
    ensure_employee_access(auth, employee_id)
    default_month, default_year = previous_month(local_today())
    return await preview_earned_leave(
        session, employee_id, month or default_month, year or default_year, repository=repository
    )
