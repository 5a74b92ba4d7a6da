# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AdminDep, ConfigRepoDep, HRDep
from leave_ledger.config import local_today
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import AuditAction, AuditEntityType, LeaveType, TransactionType
from leave_ledger.schemas.report import AuditLogListResponse, BalanceSummaryResponse, LedgerExportResponse
from leave_ledger.services import report as report_service
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.settings_cascade import SettingsCascade

reports_router = APIRouter(tags=["reports"])


@reports_router.get("/audit-log", response_model=AuditLogListResponse)
async def query_audit_log(
    session: SessionDep,
    auth: AdminDep,
    entity_type: AuditEntityType | None = Query(default=None),
    entity_id: uuid.UUID | None = Query(default=None),
    action: AuditAction | None = Query(default=None),
    actor_id: uuid.UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> AuditLogListResponse:
    """Query audit log entries with optional filters (admin only)."""
    return await report_service.query_audit_log(
        session,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        start_date=start_date,
        end_date=end_date,
        offset=offset,
        limit=limit,
    )


@reports_router.get("/reports/balances", response_model=BalanceSummaryResponse)
async def get_balance_summary(
    session: SessionDep,
    auth: HRDep,
    repository: ConfigRepoDep,
    as_of: date | None = Query(default=None),
    department_id: uuid.UUID | None = Query(default=None),
) -> BalanceSummaryResponse:
    """Balances for all active employees, flagging snapshots that drifted from the ledger."""
    cycles = await CycleResolver.from_cascade(SettingsCascade(repository))
    return await report_service.get_balance_summary(
        session, cycles, as_of or local_today(), department_id=department_id
    )


@reports_router.get("/reports/ledger", response_model=LedgerExportResponse)
async def export_ledger(
    session: SessionDep,
    auth: HRDep,
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type: LeaveType | None = Query(default=None),
    transaction_type: TransactionType | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerExportResponse:
    return await report_service.export_ledger(
        session,
        employee_id=employee_id,
        leave_type=leave_type,
        transaction_type=transaction_type,
        start_date=start_date,
        end_date=end_date,
        offset=offset,
        limit=limit,
    )
