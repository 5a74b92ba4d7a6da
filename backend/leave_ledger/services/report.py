"""Reporting: audit log queries, balance summaries and ledger exports."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.models.audit import AuditLog
from leave_ledger.models.enums import LeaveType
from leave_ledger.models.ledger import LeaveLedgerTransaction
from leave_ledger.schemas.report import (
    AuditLogEntryResponse,
    AuditLogListResponse,
    BalanceSummaryResponse,
    EmployeeBalanceSummary,
    LedgerExportResponse,
)
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.ledger import build_transaction_response, compute_period_balance, get_balances

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.enums import AuditAction, AuditEntityType, TransactionType
    from leave_ledger.services.cycle import CycleResolver


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


async def query_audit_log(
    session: AsyncSession,
    *,
    entity_type: AuditEntityType | None = None,
    entity_id: uuid.UUID | None = None,
    action: AuditAction | None = None,
    actor_id: uuid.UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    offset: int = 0,
    limit: int = 50,
) -> AuditLogListResponse:
    """Query audit log entries, newest first. Both date bounds are inclusive."""
    filters = []
    if entity_type is not None:
        filters.append(col(AuditLog.entity_type) == entity_type.value)
    if entity_id is not None:
        filters.append(col(AuditLog.entity_id) == entity_id)
    if action is not None:
        filters.append(col(AuditLog.action) == action.value)
    if actor_id is not None:
        filters.append(col(AuditLog.actor_id) == actor_id)
    if start_date is not None:
        filters.append(col(AuditLog.created_at) >= _day_start(start_date))
    if end_date is not None:
        filters.append(col(AuditLog.created_at) < _day_start(end_date + timedelta(days=1)))

    count_result = await session.execute(select(func.count()).select_from(AuditLog).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(AuditLog).where(*filters).order_by(col(AuditLog.created_at).desc()).offset(offset).limit(limit)
    )
    return AuditLogListResponse(
        items=[AuditLogEntryResponse.model_validate(e, from_attributes=True) for e in result.scalars().all()],
        total=total,
    )


async def get_balance_summary(
    session: AsyncSession,
    cycles: CycleResolver,
    as_of: date,
    *,
    department_id: uuid.UUID | None = None,
) -> BalanceSummaryResponse:
    """CL, EL and CCL balances for every active employee, optionally one department."""
    employees = await get_employee_service().list_active_employees()
    if department_id is not None:
        employees = [e for e in employees if e.department_id == department_id]

    items: list[EmployeeBalanceSummary] = []
    for employee in employees:
        balances = await get_balances(session, cycles, employee.id, as_of)
        by_type = {item.leave_type: item for item in balances.items}
        drift = False
        for item in balances.items:
            if item.snapshot_balance is None:
                continue
            ledger_total = await compute_period_balance(session, cycles, employee.id, item.leave_type, as_of)
            drift = drift or item.snapshot_balance != ledger_total
        items.append(
            EmployeeBalanceSummary(
                employee_id=employee.id,
                emp_no=employee.emp_no,
                name=employee.name,
                department_id=employee.department_id,
                cl=by_type[LeaveType.CL].balance,
                el=by_type[LeaveType.EL].balance,
                ccl=by_type[LeaveType.CCL].balance,
                snapshot_drift=drift,
            )
        )

    return BalanceSummaryResponse(as_of=as_of, items=items, total=len(items))


async def export_ledger(
    session: AsyncSession,
    *,
    employee_id: uuid.UUID | None = None,
    leave_type: LeaveType | None = None,
    transaction_type: TransactionType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LedgerExportResponse:
    """Export ledger transactions across employees, filtered on the transaction date."""
    filters = []
    if employee_id is not None:
        filters.append(col(LeaveLedgerTransaction.employee_id) == employee_id)
    if leave_type is not None:
        filters.append(col(LeaveLedgerTransaction.leave_type) == leave_type.value)
    if transaction_type is not None:
        filters.append(col(LeaveLedgerTransaction.transaction_type) == transaction_type.value)
    if start_date is not None:
        filters.append(col(LeaveLedgerTransaction.start_date) >= start_date)
    if end_date is not None:
        filters.append(col(LeaveLedgerTransaction.start_date) <= end_date)

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerTransaction).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveLedgerTransaction)
        .where(*filters)
        .order_by(col(LeaveLedgerTransaction.start_date).desc(), col(LeaveLedgerTransaction.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return LedgerExportResponse(
        items=[build_transaction_response(txn) for txn in result.scalars().all()],
        total=total,
    )
