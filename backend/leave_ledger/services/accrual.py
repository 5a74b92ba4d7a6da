"""Monthly accrual engine: CL pro-rating, EL crediting and CCL expiry."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import NotFoundError
from leave_ledger.models.ccl import CCLGrant
from leave_ledger.models.enums import (
    AuditAction,
    AuditEntityType,
    AutoGeneratedType,
    CCLStatus,
    LeaveType,
    LedgerSourceType,
    TransactionType,
)
from leave_ledger.schemas.accrual import EarnedLeavePreview
from leave_ledger.schemas.ledger import LedgerEntry
from leave_ledger.services.attendance import get_attendance_service
from leave_ledger.services.audit import SYSTEM_ACTOR_ID, model_to_audit_dict, write_audit_log
from leave_ledger.services.config_repository import SqlConfigRepository
from leave_ledger.services.cycle import CycleResolver, shift_months, total_days
from leave_ledger.services.earned_leave import calculate_earned_leave
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.ledger import (
    FULL_DAY,
    HALF_DAY,
    add_transaction,
    find_auto_generated,
    find_by_source,
    round_to_half,
)
from leave_ledger.services.settings_cascade import SettingsCascade

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.cycle import PayrollCycle
    from leave_ledger.schemas.settings import LeavePolicy
    from leave_ledger.services.config_repository import ConfigRepository
    from leave_ledger.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class MonthlyAccrualResult:
    """Summary of one monthly accrual run.

    ``processed`` counts employees whose postings committed; failures are
    reported in ``errors`` only.
    """

    month: int
    year: int
    cycle_start: date
    cycle_end: date
    processed: int = 0
    cl_credits: int = 0
    el_credits: int = 0
    expired_ccls: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class _EmployeeOutcome:
    cl_posted: bool = False
    el_posted: bool = False
    expired: int = 0


# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def previous_month(today: date) -> tuple[int, int]:
    """(month, year) of the calendar month before ``today``."""
    if today.month == 1:
        return 12, today.year - 1
    return today.month - 1, today.year


def compute_cl_credit(monthly_base: Decimal, joining_date: date | None, cycle: PayrollCycle) -> Decimal:
    """Pro-rated CL for one cycle, rounded to the nearest half day.

    Joining after the cycle earns nothing; joining on or before the cycle start
    (or an unknown joining date) earns the full monthly base.
    """
    if joining_date is not None and joining_date > cycle.end_date:
        return Decimal("0.0")
    if joining_date is None or joining_date <= cycle.start_date:
        return round_to_half(monthly_base)
    days_in_service = total_days(joining_date, cycle.end_date)
    return round_to_half(monthly_base * days_in_service / total_days(cycle.start_date, cycle.end_date))


def _accrual_source_id(employee_id: uuid.UUID, leave_type: LeaveType, cycle: PayrollCycle) -> str:
    return f"accrual:{employee_id}:{leave_type.value}:{cycle.start_date.isoformat()}"


# ---------------------------------------------------------------------------
# Per-employee posting
# ---------------------------------------------------------------------------


async def _already_accrued(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    auto_type: AutoGeneratedType,
    cycle: PayrollCycle,
) -> bool:
    if await find_auto_generated(session, employee_id, leave_type, auto_type, cycle.end_date) is not None:
        return True
    source_id = _accrual_source_id(employee_id, leave_type, cycle)
    return await find_by_source(session, LedgerSourceType.SYSTEM, source_id, TransactionType.CREDIT) is not None


async def _post_credit(
    session: AsyncSession,
    cycles: CycleResolver,
    *,
    employee: EmployeeInfo,
    leave_type: LeaveType,
    auto_type: AutoGeneratedType,
    cycle: PayrollCycle,
    days: Decimal,
    reason: str,
    metadata_json: dict[str, Any],
) -> bool:
    if days <= 0:
        return False
    if await _already_accrued(session, employee.id, leave_type, auto_type, cycle):
        return False
    await add_transaction(
        session,
        cycles,
        LedgerEntry(
            employee_id=employee.id,
            leave_type=leave_type,
            transaction_type=TransactionType.CREDIT,
            days=days,
            start_date=cycle.end_date,
            reason=reason,
            auto_generated_type=auto_type,
            source_type=LedgerSourceType.SYSTEM,
            source_id=_accrual_source_id(employee.id, leave_type, cycle),
            metadata_json={"month": cycle.month, "year": cycle.year, **metadata_json},
        ),
    )
    return True


async def expire_ccl_grants(
    session: AsyncSession,
    cycles: CycleResolver,
    employee_id: uuid.UUID,
    cycle: PayrollCycle,
    expiry_months: int,
) -> int:
    """Expire approved, unused CCL grants older than the rolling window.

    Returns the number of grants expired. Each grant is written in its own
    savepoint; a grant that cannot be expired is rolled back, logged and skipped.
    """
    if expiry_months <= 0:
        return 0
    threshold = shift_months(cycle.start_date, -expiry_months)
    result = await session.execute(
        select(CCLGrant)
        .where(
            col(CCLGrant.employee_id) == employee_id,
            col(CCLGrant.status) == CCLStatus.APPROVED.value,
            col(CCLGrant.is_used).is_(False),
            col(CCLGrant.is_expired).is_(False),
            col(CCLGrant.date_worked) < threshold,
        )
        .order_by(col(CCLGrant.date_worked))
    )
    expired = 0
    for grant in result.scalars().all():
        before = model_to_audit_dict(grant)
        grant_id = grant.id
        try:
            async with session.begin_nested():
                await add_transaction(
                    session,
                    cycles,
                    LedgerEntry(
                        employee_id=employee_id,
                        leave_type=LeaveType.CCL,
                        transaction_type=TransactionType.EXPIRY,
                        days=HALF_DAY if grant.is_half_day else FULL_DAY,
                        start_date=cycle.start_date,
                        reason=f"CCL for {grant.date_worked.isoformat()} expired after {expiry_months} months",
                        auto_generated_type=AutoGeneratedType.EXPIRY,
                        source_type=LedgerSourceType.CCL,
                        source_id=f"ccl-expiry:{grant_id}",
                        metadata_json={"grant_id": str(grant_id), "threshold": threshold.isoformat()},
                    ),
                )
                grant.is_expired = True
                await write_audit_log(
                    session,
                    actor_id=SYSTEM_ACTOR_ID,
                    entity_type=AuditEntityType.CCL_GRANT,
                    entity_id=grant_id,
                    action=AuditAction.EXPIRE,
                    before_json=before,
                    after_json=model_to_audit_dict(grant),
                )
        except Exception:
            logger.exception("Failed to expire CCL grant=%s employee=%s", grant_id, employee_id)
            continue
        expired += 1
    return expired


async def _accrue_employee(
    session: AsyncSession,
    cascade: SettingsCascade,
    cycles: CycleResolver,
    policy: LeavePolicy,
    employee: EmployeeInfo,
    cycle: PayrollCycle,
) -> _EmployeeOutcome:
    outcome = _EmployeeOutcome()
    leaves = await cascade.resolve_leaves(employee.department_id, employee.division_id)

    monthly_base = Decimal(str(leaves.casual_leave_per_year)) / 12
    cl_days = compute_cl_credit(monthly_base, employee.joining_date, cycle)
    outcome.cl_posted = await _post_credit(
        session,
        cycles,
        employee=employee,
        leave_type=LeaveType.CL,
        auto_type=AutoGeneratedType.MONTHLY_ACCRUAL,
        cycle=cycle,
        days=cl_days,
        reason=f"Monthly CL accrual for {cycle.month:02d}/{cycle.year}",
        metadata_json={"monthly_base": str(monthly_base)},
    )

    summary = await get_attendance_service().get_cycle_summary(employee.id, cycle.start_date, cycle.end_date)
    calculation = calculate_earned_leave(
        joining_date=employee.joining_date,
        cycle=cycle,
        policy=policy,
        leaves=leaves,
        summary=summary,
    )
    if calculation.eligible:
        outcome.el_posted = await _post_credit(
            session,
            cycles,
            employee=employee,
            leave_type=LeaveType.EL,
            auto_type=AutoGeneratedType.EARNED_LEAVE,
            cycle=cycle,
            days=calculation.el_earned,
            reason=f"Earned leave for {cycle.month:02d}/{cycle.year}",
            metadata_json={
                "earning_type": calculation.earning_type.value,
                "attendance_days": str(calculation.attendance_days),
                "effective_days": str(calculation.effective_days),
            },
        )

    outcome.expired = await expire_ccl_grants(session, cycles, employee.id, cycle, leaves.ccl_expiry_months)
    return outcome


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def post_monthly_accruals(
    session: AsyncSession,
    month: int,
    year: int,
    *,
    repository: ConfigRepository | None = None,
) -> MonthlyAccrualResult:
    """Post CL/EL credits and expire stale CCL for the cycle labelled (month, year).

    Employees are processed one at a time, each in its own transaction. A
    failure rolls back that employee only and is reported in ``errors``.
    Re-running for the same cycle posts nothing new.
    """
    cascade = SettingsCascade(repository or SqlConfigRepository(session))
    cycles = await CycleResolver.from_cascade(cascade)
    policy = await cascade.leave_policy()
    cycle = cycles.payroll_cycle_for_month(month, year)

    result = MonthlyAccrualResult(
        month=cycle.month,
        year=cycle.year,
        cycle_start=cycle.start_date,
        cycle_end=cycle.end_date,
    )
    logger.info("Monthly accrual started month=%s year=%s cycle=%s..%s", month, year, cycle.start_date, cycle.end_date)

    employees = await get_employee_service().list_active_employees()
    for employee in employees:
        try:
            outcome = await _accrue_employee(session, cascade, cycles, policy, employee, cycle)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.exception("Monthly accrual failed employee=%s emp_no=%s", employee.id, employee.emp_no)
            result.errors.append({"employee_id": employee.id, "emp_no": employee.emp_no, "error": str(exc)})
            continue

        result.processed += 1
        result.cl_credits += int(outcome.cl_posted)
        result.el_credits += int(outcome.el_posted)
        result.expired_ccls += outcome.expired
        if not outcome.cl_posted and not outcome.el_posted:
            result.skipped += 1

    logger.info(
        "Monthly accrual finished month=%s year=%s processed=%s cl=%s el=%s expired_ccl=%s skipped=%s errors=%s",
        result.month,
        result.year,
        result.processed,
        result.cl_credits,
        result.el_credits,
        result.expired_ccls,
        result.skipped,
        len(result.errors),
    )
    return result


async def preview_earned_leave(
    session: AsyncSession,
    employee_id: uuid.UUID,
    month: int,
    year: int,
    *,
    repository: ConfigRepository | None = None,
) -> EarnedLeavePreview:
    """EL the employee would earn for (month, year), without posting anything."""
    employee = await get_employee_service().get_employee(employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")

    cascade = SettingsCascade(repository or SqlConfigRepository(session))
    cycles = await CycleResolver.from_cascade(cascade)
    cycle = cycles.payroll_cycle_for_month(month, year)
    leaves = await cascade.resolve_leaves(employee.department_id, employee.division_id)
    summary = await get_attendance_service().get_cycle_summary(employee.id, cycle.start_date, cycle.end_date)
    calculation = calculate_earned_leave(
        joining_date=employee.joining_date,
        cycle=cycle,
        policy=await cascade.leave_policy(),
        leaves=leaves,
        summary=summary,
    )
    return EarnedLeavePreview(
        employee_id=employee.id,
        month=cycle.month,
        year=cycle.year,
        cycle_start=cycle.start_date,
        cycle_end=cycle.end_date,
        eligible=calculation.eligible,
        earning_type=calculation.earning_type.value,
        attendance_days=calculation.attendance_days,
        effective_days=calculation.effective_days,
        el_earned=calculation.el_earned,
        reason=calculation.reason,
    )
