# ruff: noqa: B008, TC001
"""API endpoints for the monthly accrual run and the annual CL reset."""

from __future__ import annotations

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AdminDep, AuthDep, ConfigRepoDep
from leave_ledger.config import local_today
from leave_ledger.db import SessionDep
from leave_ledger.schemas.accrual import (
    AccrualError,
    AnnualResetResponse,
    InitialSyncResponse,
    MonthlyAccrualResponse,
    ResetStatusResponse,
)
from leave_ledger.services import annual_reset as reset_service
from leave_ledger.services.accrual import post_monthly_accruals, previous_month

accrual_router = APIRouter(prefix="/accruals", tags=["accruals"])


@accrual_router.post("/monthly", response_model=MonthlyAccrualResponse)
async def trigger_monthly_accruals(
    session: SessionDep,
    auth: AdminDep,
    repository: ConfigRepoDep,
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> MonthlyAccrualResponse:
    """Run CL/EL accrual and CCL expiry for a payroll cycle (admin only).

    Defaults to the previous calendar month. Safe to re-run.
    """
    default_month, default_year = previous_month(local_today())
    result = await post_monthly_accruals(
        session,
        month or default_month,
        year or default_year,
        repository=repository,
    )
    return MonthlyAccrualResponse(
        month=result.month,
        year=result.year,
        cycle_start=result.cycle_start,
        cycle_end=result.cycle_end,
        processed=result.processed,
        cl_credits=result.cl_credits,
        el_credits=result.el_credits,
        expired_ccls=result.expired_ccls,
        skipped=result.skipped,
        errors=[AccrualError(**error) for error in result.errors],
    )


@accrual_router.post("/annual-reset", response_model=AnnualResetResponse)
async def trigger_annual_reset(
    session: SessionDep,
    auth: AdminDep,
    repository: ConfigRepoDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> AnnualResetResponse:
    """Reset CL balances for the reset date of ``year`` (default: the most recent one)."""
    result = await reset_service.perform_annual_reset(
        session, year, today=local_today(), repository=repository
    )
    return AnnualResetResponse(
        reset_date=result.reset_date,
        processed=result.processed,
        reset=result.reset,
        skipped=result.skipped,
        total_carry_forward=result.total_carry_forward,
        total_expired=result.total_expired,
        errors=[AccrualError(**error) for error in result.errors],
    )


@accrual_router.post("/initial-cl-sync", response_model=InitialSyncResponse)
async def trigger_initial_cl_sync(
    session: SessionDep,
    auth: AdminDep,
    repository: ConfigRepoDep,
) -> InitialSyncResponse:
    """Set every active employee's CL to policy entitlement plus capped carry forward."""
    result = await reset_service.perform_initial_cl_sync(session, today=local_today(), repository=repository)
    return InitialSyncResponse(
        as_of=result.as_of,
        processed=result.processed,
        synced=result.synced,
        skipped=result.skipped,
        errors=[AccrualError(**error) for error in result.errors],
    )


@accrual_router.get("/annual-reset/status", response_model=ResetStatusResponse)
async def annual_reset_status(
    session: SessionDep,
    auth: AuthDep,
    repository: ConfigRepoDep,
) -> ResetStatusResponse:
    return await reset_service.get_reset_status(session, today=local_today(), repository=repository)
