"""Annual casual leave reset with capped carry forward."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.config import local_today
from leave_ledger.models.enums import AutoGeneratedType, LeaveType, LedgerSourceType, TransactionType
from leave_ledger.models.ledger import LeaveLedgerTransaction
from leave_ledger.schemas.accrual import EmployeeResetStatus, ResetStatusResponse
from leave_ledger.schemas.ledger import LedgerEntry
from leave_ledger.services.config_repository import SqlConfigRepository
from leave_ledger.services.cycle import CycleResolver, clamped_date, full_years_between
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.ledger import add_transaction, find_by_source, get_balance
from leave_ledger.services.settings_cascade import SettingsCascade

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.settings import LeavePolicy
    from leave_ledger.services.config_repository import ConfigRepository
    from leave_ledger.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)


@dataclass
class AnnualResetResult:
    """Summary of an annual CL reset run."""

    reset_date: date
    processed: int = 0
    reset: int = 0
    skipped: int = 0
    total_carry_forward: Decimal = Decimal("0")
    total_expired: Decimal = Decimal("0")
    errors: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class InitialSyncResult:
    """Summary of an initial CL balance sync."""

    as_of: date
    processed: int = 0
    synced: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def casual_leave_entitlement(policy: LeavePolicy, joining_date: date | None, as_of: date) -> Decimal:
    """CL granted at reset: the matching experience tier, else ``reset_to_balance``."""
    settings = policy.annual_cl_reset
    default = Decimal(str(settings.reset_to_balance))
    if not settings.casual_leave_by_experience:
        return default
    years = full_years_between(joining_date, as_of) if joining_date else 0
    for tier in sorted(settings.casual_leave_by_experience, key=lambda t: t.min_years):
        upper = tier.max_years if tier.max_years is not None else float("inf")
        if tier.min_years <= years < upper:
            return Decimal(str(tier.casual_leave))
    return default


def capped_carry_forward(policy: LeavePolicy, unused: Decimal) -> Decimal:
    """Unused CL that survives the reset."""
    rule = policy.carry_forward.casual_leave
    if not (rule.enabled and policy.annual_cl_reset.add_carry_forward) or unused <= 0:
        return Decimal("0")
    return min(unused, Decimal(str(rule.max_months)))


def reset_date_for_year(policy: LeavePolicy, cycles: CycleResolver, year: int) -> date:
    """Reset date in ``year``.

    When aligned with payroll, the reset happens on the first day of the
    payroll cycle labelled with the reset month (Dec 26 for a 26 -> 25 cycle
    and a January reset).
    """
    settings = policy.annual_cl_reset
    if settings.use_payroll_cycle_for_reset:
        return cycles.payroll_cycle_for_month(settings.reset_month, year).start_date
    return clamped_date(year, settings.reset_month, settings.reset_day)


def next_reset_date(policy: LeavePolicy, cycles: CycleResolver, today: date) -> date:
    """First reset date on or after ``today``."""
    for year in range(today.year - 1, today.year + 3):
        candidate = reset_date_for_year(policy, cycles, year)
        if candidate >= today:
            return candidate
    msg = f"No reset date found after {today.isoformat()}"
    raise ValueError(msg)


def latest_reset_date(policy: LeavePolicy, cycles: CycleResolver, today: date) -> date:
    """Most recent reset date on or before ``today``."""
    for year in range(today.year + 1, today.year - 3, -1):
        candidate = reset_date_for_year(policy, cycles, year)
        if candidate <= today:
            return candidate
    msg = f"No reset date found before {today.isoformat()}"
    raise ValueError(msg)


def _reset_source_id(employee_id: uuid.UUID, reset_date: date) -> str:
    return f"annual-reset:{employee_id}:{reset_date.isoformat()}"


# ---------------------------------------------------------------------------
# Per-employee reset
# ---------------------------------------------------------------------------


async def _reset_employee(
    session: AsyncSession,
    cycles: CycleResolver,
    policy: LeavePolicy,
    employee: EmployeeInfo,
    reset_date: date,
    result: AnnualResetResult,
) -> bool:
    source_id = _reset_source_id(employee.id, reset_date)
    if await find_by_source(session, LedgerSourceType.SYSTEM, source_id, TransactionType.ADJUSTMENT) is not None:
        return False
    if employee.joining_date is not None and employee.joining_date > reset_date:
        return False

    closing_date = reset_date - timedelta(days=1)
    unused = await get_balance(session, cycles, employee.id, LeaveType.CL, closing_date)
    carry_forward = capped_carry_forward(policy, unused)
    excess = max(unused, Decimal("0")) - carry_forward

    if excess > 0:
        existing = await find_by_source(session, LedgerSourceType.SYSTEM, source_id, TransactionType.EXPIRY)
        if existing is None:
            await add_transaction(
                session,
                cycles,
                LedgerEntry(
                    employee_id=employee.id,
                    leave_type=LeaveType.CL,
                    transaction_type=TransactionType.EXPIRY,
                    days=excess,
                    start_date=closing_date,
                    reason=f"Unused CL above carry-forward cap lapsed at reset {reset_date.isoformat()}",
                    auto_generated_type=AutoGeneratedType.ANNUAL_RESET,
                    source_type=LedgerSourceType.SYSTEM,
                    source_id=source_id,
                    metadata_json={"unused": str(unused), "carry_forward": str(carry_forward)},
                ),
            )

    entitlement = casual_leave_entitlement(policy, employee.joining_date, reset_date)
    target = entitlement + carry_forward
    current = await get_balance(session, cycles, employee.id, LeaveType.CL, reset_date)
    await add_transaction(
        session,
        cycles,
        LedgerEntry(
            employee_id=employee.id,
            leave_type=LeaveType.CL,
            transaction_type=TransactionType.ADJUSTMENT,
            days=target - current,
            start_date=reset_date,
            reason=f"Annual CL reset: entitlement {entitlement} + carry forward {carry_forward}",
            auto_generated_type=AutoGeneratedType.ANNUAL_RESET,
            source_type=LedgerSourceType.SYSTEM,
            source_id=source_id,
            metadata_json={
                "entitlement": str(entitlement),
                "carry_forward": str(carry_forward),
                "previous_balance": str(current),
                "new_balance": str(target),
            },
        ),
    )
    result.total_carry_forward += carry_forward
    result.total_expired += excess
    return True


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def perform_annual_reset(
    session: AsyncSession,
    year: int | None = None,
    *,
    today: date | None = None,
    repository: ConfigRepository | None = None,
) -> AnnualResetResult:
    """Reset every active employee's CL for the reset date of ``year``.

    Without ``year`` the most recent reset date on or before today is used.
    Each employee is committed separately; re-running is a no-op.
    """
    today = today or local_today()
    cascade = SettingsCascade(repository or SqlConfigRepository(session))
    cycles = await CycleResolver.from_cascade(cascade)
    policy = await cascade.leave_policy()
    reset_date = reset_date_for_year(policy, cycles, year) if year else latest_reset_date(policy, cycles, today)

    result = AnnualResetResult(reset_date=reset_date)
    if not policy.annual_cl_reset.enabled:
        logger.info("Annual CL reset is disabled; nothing to do for %s", reset_date)
        return result

    logger.info("Annual CL reset started reset_date=%s", reset_date)
    for employee in await get_employee_service().list_active_employees():
        try:
            was_reset = await _reset_employee(session, cycles, policy, employee, reset_date, result)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.exception("Annual CL reset failed employee=%s emp_no=%s", employee.id, employee.emp_no)
            result.errors.append({"employee_id": employee.id, "emp_no": employee.emp_no, "error": str(exc)})
            continue
        result.processed += 1
        if was_reset:
            result.reset += 1
        else:
            result.skipped += 1

    logger.info(
        "Annual CL reset finished reset_date=%s processed=%s reset=%s skipped=%s errors=%s",
        reset_date,
        result.processed,
        result.reset,
        result.skipped,
        len(result.errors),
    )
    return result


async def perform_initial_cl_sync(
    session: AsyncSession,
    *,
    today: date | None = None,
    repository: ConfigRepository | None = None,
) -> InitialSyncResult:
    """Bring every active employee's CL to policy entitlement plus capped carry forward.

    Used once when the ledger is introduced. No EXPIRY is posted.
    """
    today = today or local_today()
    cascade = SettingsCascade(repository or SqlConfigRepository(session))
    cycles = await CycleResolver.from_cascade(cascade)
    policy = await cascade.leave_policy()
    result = InitialSyncResult(as_of=today)

    for employee in await get_employee_service().list_active_employees():
        source_id = f"initial-cl-sync:{employee.id}:{today.isoformat()}"
        try:
            existing = await find_by_source(session, LedgerSourceType.SYSTEM, source_id, TransactionType.ADJUSTMENT)
            if existing is not None:
                result.processed += 1
                result.skipped += 1
                continue
            current = await get_balance(session, cycles, employee.id, LeaveType.CL, today)
            target = casual_leave_entitlement(policy, employee.joining_date, today) + capped_carry_forward(
                policy, current
            )
            await add_transaction(
                session,
                cycles,
                LedgerEntry(
                    employee_id=employee.id,
                    leave_type=LeaveType.CL,
                    transaction_type=TransactionType.ADJUSTMENT,
                    days=target - current,
                    start_date=today,
                    reason="Initial CL balance synced from leave policy",
                    auto_generated_type=AutoGeneratedType.INITIAL_BALANCE,
                    source_type=LedgerSourceType.SYSTEM,
                    source_id=source_id,
                    metadata_json={"previous_balance": str(current), "new_balance": str(target)},
                ),
            )
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.exception("Initial CL sync failed employee=%s emp_no=%s", employee.id, employee.emp_no)
            result.errors.append({"employee_id": employee.id, "emp_no": employee.emp_no, "error": str(exc)})
            continue
        result.processed += 1
        result.synced += 1

    logger.info(
        "Initial CL sync finished synced=%s skipped=%s errors=%s",
        result.synced,
        result.skipped,
        len(result.errors),
    )
    return result


async def get_reset_status(
    session: AsyncSession,
    *,
    today: date | None = None,
    repository: ConfigRepository | None = None,
) -> ResetStatusResponse:
    """Reset configuration, the next scheduled reset and each active employee's current CL."""
    today = today or local_today()
    cascade = SettingsCascade(repository or SqlConfigRepository(session))
    cycles = await CycleResolver.from_cascade(cascade)
    policy = await cascade.leave_policy()
    upcoming = next_reset_date(policy, cycles, today)

    last_result = await session.execute(
        select(func.max(col(LeaveLedgerTransaction.start_date))).where(
            col(LeaveLedgerTransaction.auto_generated_type) == AutoGeneratedType.ANNUAL_RESET.value,
            col(LeaveLedgerTransaction.transaction_type) == TransactionType.ADJUSTMENT.value,
        )
    )

    employees = [
        EmployeeResetStatus(
            employee_id=employee.id,
            emp_no=employee.emp_no,
            current_cl=await get_balance(session, cycles, employee.id, LeaveType.CL, today),
        )
        for employee in await get_employee_service().list_active_employees()
    ]

    return ResetStatusResponse(
        enabled=policy.annual_cl_reset.enabled,
        reset_to_balance=Decimal(str(policy.annual_cl_reset.reset_to_balance)),
        add_carry_forward=policy.annual_cl_reset.add_carry_forward,
        max_carry_forward=Decimal(str(policy.carry_forward.casual_leave.max_months)),
        use_payroll_cycle_for_reset=policy.annual_cl_reset.use_payroll_cycle_for_reset,
        next_reset_date=upcoming,
        days_until_reset=(upcoming - today).days,
        last_reset_date=last_result.scalar_one_or_none(),
        employees=employees,
    )
