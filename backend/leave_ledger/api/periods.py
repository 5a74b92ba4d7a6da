# ruff: noqa: B008, TC003
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AuthDep, ConfigRepoDep
from leave_ledger.config import local_today
from leave_ledger.schemas.cycle import PayrollCycle, PeriodInfo
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.settings_cascade import SettingsCascade

periods_router = APIRouter(prefix="/periods", tags=["periods"])


@periods_router.get("", response_model=PeriodInfo)
async def get_period_info(
    auth: AuthDep,
    repository: ConfigRepoDep,
    on: date | None = Query(default=None, alias="date"),
) -> PeriodInfo:
    """Payroll cycle and financial year containing a date (default today)."""
    cycles = await CycleResolver.from_cascade(SettingsCascade(repository))
    return cycles.period_info(on or local_today())


@periods_router.get("/cycles", response_model=list[PayrollCycle])
async def list_payroll_cycles(
    auth: AuthDep,
    repository: ConfigRepoDep,
    start: date = Query(),
    end: date = Query(),
) -> list[PayrollCycle]:
    """Payroll cycles overlapping [start, end]."""
    cycles = await CycleResolver.from_cascade(SettingsCascade(repository))
    return cycles.payroll_cycles_in_range(start, end)
