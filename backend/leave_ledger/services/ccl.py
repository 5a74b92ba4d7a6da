"""Compensatory casual leave (CCL): filing, multi-step approval and ledger posting."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.config import local_today
from leave_ledger.exceptions import ConflictError, EligibilityError, ForbiddenError, NotFoundError
from leave_ledger.models.ccl import CCLGrant
from leave_ledger.models.enums import (
    TERMINAL_CCL_STATUSES,
    ApproverRole,
    AuditAction,
    AuditEntityType,
    CCLStatus,
    HalfDayType,
    LeaveType,
    LedgerSourceType,
    StepStatus,
    TransactionType,
)
from leave_ledger.schemas.auth import GLOBAL_ADMIN_ROLES, HR_ROLES
from leave_ledger.schemas.ccl import (
    ApprovalStep,
    CCLGrantResponse,
    CCLListResponse,
    DateValidationResponse,
    HistoryEntry,
)
from leave_ledger.schemas.ledger import LedgerEntry
from leave_ledger.schemas.settings import Approver, FixedRoleApprover, ReportingManagerApprover
from leave_ledger.services.attendance import get_attendance_service
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.config_repository import SqlConfigRepository
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.ledger import FULL_DAY, HALF_DAY, add_transaction
from leave_ledger.services.settings_cascade import SettingsCascade

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.ccl import CreateCCLRequest
    from leave_ledger.schemas.settings import CCLWorkflowSettings
    from leave_ledger.services.config_repository import ConfigRepository
    from leave_ledger.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

# Grants in these states never block another grant for the same date.
_INACTIVE_STATUSES = (CCLStatus.CANCELLED.value, CCLStatus.REJECTED.value)

_INTERMEDIATE_STATUS: dict[ApproverRole | str, CCLStatus] = {
    "reporting_manager": CCLStatus.REPORTING_MANAGER_APPROVED,
    ApproverRole.HOD: CCLStatus.HOD_APPROVED,
    ApproverRole.MANAGER: CCLStatus.MANAGER_APPROVED,
    ApproverRole.HR: CCLStatus.HR_APPROVED,
    ApproverRole.FINAL_AUTHORITY: CCLStatus.HR_APPROVED,
}


# ---------------------------------------------------------------------------
# Approvers
# ---------------------------------------------------------------------------


def _in_jurisdiction(auth: AuthContext, grant: CCLGrant) -> bool:
    """Actors scoped to departments may only act on grants filed in them."""
    if not auth.department_ids:
        return True
    return grant.department_id is not None and grant.department_id in auth.department_ids


def can_act(approver: Approver, auth: AuthContext, grant: CCLGrant) -> bool:
    """Whether ``auth`` may act on a step owned by ``approver``."""
    if auth.role in GLOBAL_ADMIN_ROLES:
        return True
    if isinstance(approver, ReportingManagerApprover):
        if str(auth.user_id) in grant.reporting_manager_ids:
            return True
        return auth.role == ApproverRole.HOD and _in_jurisdiction(auth, grant)
    role_match = auth.role == approver.role or (
        approver.role == ApproverRole.FINAL_AUTHORITY and auth.role == ApproverRole.HR
    )
    return role_match and _in_jurisdiction(auth, grant)


def _step_status_key(approver: Approver) -> ApproverRole | str:
    if isinstance(approver, ReportingManagerApprover):
        return approver.kind
    return approver.role


def build_approval_chain(employee: EmployeeInfo, workflow: CCLWorkflowSettings) -> list[ApprovalStep]:
    """Reporting manager if the employee has one, else the configured steps, else HOD then HR."""
    if employee.reporting_manager_ids:
        return [ApprovalStep(step_order=1, approver=ReportingManagerApprover(), label="Reporting Manager Approval")]
    if workflow.steps:
        return [
            ApprovalStep(
                step_order=index,
                approver=step.approver,
                label=step.label or f"{_step_status_key(step.approver).upper()} Approval",
            )
            for index, step in enumerate(workflow.steps, start=1)
        ]
    return [
        ApprovalStep(step_order=1, approver=FixedRoleApprover(role=ApproverRole.HOD), label="HOD Approval"),
        ApprovalStep(step_order=2, approver=FixedRoleApprover(role=ApproverRole.HR), label="HR Approval"),
    ]


# ---------------------------------------------------------------------------
# Conflict rule
# ---------------------------------------------------------------------------


def find_conflict(
    others: list[CCLGrant],
    is_half_day: bool,
    half_day_type: HalfDayType | str | None,
) -> str | None:
    """Describe why a grant clashes with ``others`` on the same date, or None.

    At most one full day, or two complementary halves, per employee per date.
    """
    this_half = half_day_type if is_half_day else None
    for other in others:
        other_half = other.half_day_type if other.is_half_day else None
        if not other.is_half_day:
            return "A full-day CCL already exists for this date"
        if not is_half_day:
            return "A half-day CCL already exists for this date; a full-day CCL is not allowed"
        if this_half is None or other_half is None:
            return "A half-day CCL already exists for this date; specify first_half or second_half"
        if str(this_half) == str(other_half):
            return f"A {str(other_half).replace('_', ' ')} CCL already exists for this date"
    return None


async def _active_grants_on(
    session: AsyncSession,
    employee_id: uuid.UUID,
    day: date,
    exclude_id: uuid.UUID | None = None,
) -> list[CCLGrant]:
    filters = [
        col(CCLGrant.employee_id) == employee_id,
        col(CCLGrant.date_worked) == day,
        col(CCLGrant.status).not_in(_INACTIVE_STATUSES),
    ]
    if exclude_id is not None:
        filters.append(col(CCLGrant.id) != exclude_id)
    result = await session.execute(select(CCLGrant).where(*filters))
    return list(result.scalars().all())


async def _ensure_no_conflict(session: AsyncSession, grant: CCLGrant) -> None:
    others = await _active_grants_on(session, grant.employee_id, grant.date_worked, exclude_id=grant.id)
    conflict = find_conflict(others, grant.is_half_day, grant.half_day_type)
    if conflict is not None:
        raise ConflictError(conflict)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(UTC)


def _chain(grant: CCLGrant) -> list[ApprovalStep]:
    return [ApprovalStep.model_validate(step) for step in grant.approval_chain]


def _store_chain(grant: CCLGrant, steps: list[ApprovalStep]) -> None:
    # Assign a new list so the JSON column is flagged dirty.
    grant.approval_chain = [step.model_dump(mode="json") for step in steps]


def _append_history(grant: CCLGrant, action: str, auth: AuthContext, comments: str | None = None) -> None:
    entry = HistoryEntry(action=action, actor_id=auth.user_id, role=auth.role, comments=comments, at=_now())
    grant.history = [*grant.history, entry.model_dump(mode="json")]


def build_grant_response(grant: CCLGrant) -> CCLGrantResponse:
    return CCLGrantResponse.model_validate(grant, from_attributes=True)


async def _get_grant(session: AsyncSession, grant_id: uuid.UUID) -> CCLGrant:
    grant = await session.get(CCLGrant, grant_id)
    if grant is None:
        raise NotFoundError("CCL grant not found")
    return grant


def _is_applicant(auth: AuthContext, grant: CCLGrant) -> bool:
    return auth.user_id == grant.applied_by or (auth.employee_id is not None and auth.employee_id == grant.employee_id)


def _can_view(auth: AuthContext, grant: CCLGrant) -> bool:
    if _is_applicant(auth, grant) or str(auth.user_id) in grant.reporting_manager_ids:
        return True
    if auth.role in (*HR_ROLES, ApproverRole.HOD, ApproverRole.MANAGER):
        return auth.role in GLOBAL_ADMIN_ROLES or _in_jurisdiction(auth, grant)
    return False


def _require_open(grant: CCLGrant) -> None:
    if grant.status in TERMINAL_CCL_STATUSES:
        msg = f"CCL is already {grant.status}"
        raise EligibilityError(msg)


async def _check_worked_day(
    employee_id: uuid.UUID,
    day: date,
    is_half_day: bool,
) -> DateValidationResponse:
    """Holiday/week-off and attendance checks for filing on ``day``."""
    attendance = get_attendance_service()
    day_off = await attendance.is_holiday_or_week_off(employee_id, day)
    punches = await attendance.get_punches(employee_id, day)
    worked = punches is not None and punches.has_worked
    on_duty = None if worked else await attendance.get_approved_on_duty(employee_id, day)
    half_day_only = not worked and on_duty is not None and on_duty.is_half_day

    if not day_off:
        message = "CCL can only be claimed for a holiday or week-off"
    elif not worked and on_duty is None:
        message = "No attendance or approved on-duty record for this date"
    elif half_day_only and not is_half_day:
        message = "A half-day on-duty record only permits a half-day CCL"
    else:
        message = "ok"

    return DateValidationResponse(
        valid=message == "ok",
        is_holiday_or_week_off=day_off,
        has_attendance=worked or on_duty is not None,
        half_day_only=half_day_only,
        has_conflict=False,
        message=message,
    )


# ---------------------------------------------------------------------------
# Filing
# ---------------------------------------------------------------------------


async def validate_date(
    session: AsyncSession,
    employee_id: uuid.UUID,
    day: date,
    *,
    is_half_day: bool = False,
    half_day_type: HalfDayType | None = None,
) -> DateValidationResponse:
    """Preview whether a CCL could be filed, without persisting anything."""
    if await get_employee_service().get_employee(employee_id) is None:
        raise NotFoundError("Employee not found")
    check = await _check_worked_day(employee_id, day, is_half_day)
    conflict = find_conflict(await _active_grants_on(session, employee_id, day), is_half_day, half_day_type)
    if conflict is not None:
        check.has_conflict = True
        if check.valid:
            check.valid = False
            check.message = conflict
    return check


async def create_grant(
    session: AsyncSession,
    payload: CreateCCLRequest,
    auth: AuthContext,
    *,
    repository: ConfigRepository | None = None,
) -> CCLGrantResponse:
    """File a CCL grant, optionally as a draft.

    Nothing is persisted when a precondition fails.
    """
    employee = await get_employee_service().get_employee(payload.employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    if auth.role == "employee" and auth.employee_id != employee.id:
        raise ForbiddenError("Employees may only file CCL for themselves")

    check = await _check_worked_day(employee.id, payload.date_worked, payload.is_half_day)
    if not check.valid:
        raise EligibilityError(check.message)

    conflict = find_conflict(
        await _active_grants_on(session, employee.id, payload.date_worked),
        payload.is_half_day,
        payload.half_day_type,
    )
    if conflict is not None:
        raise ConflictError(conflict)

    cascade = SettingsCascade(repository or SqlConfigRepository(session))
    chain = build_approval_chain(employee, await cascade.ccl_workflow())
    punches = await get_attendance_service().get_punches(employee.id, payload.date_worked)

    grant = CCLGrant(
        employee_id=employee.id,
        emp_no=employee.emp_no,
        date_worked=payload.date_worked,
        is_half_day=payload.is_half_day,
        half_day_type=payload.half_day_type.value if payload.half_day_type else None,
        assigned_by=payload.assigned_by,
        purpose=payload.purpose,
        status=CCLStatus.DRAFT if payload.save_as_draft else CCLStatus.PENDING,
        reporting_manager_ids=[str(m) for m in employee.reporting_manager_ids],
        in_time=punches.in_time if punches else None,
        out_time=punches.out_time if punches else None,
        total_hours=punches.total_hours if punches else None,
        attendance_note=None if punches and punches.has_worked else "Approved on-duty record",
        department_id=employee.department_id,
        division_id=employee.division_id,
        applied_by=auth.user_id,
        applied_at=None if payload.save_as_draft else _now(),
    )
    _store_chain(grant, chain)
    _append_history(grant, "draft_saved" if payload.save_as_draft else "submitted", auth)
    session.add(grant)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CCL_GRANT,
        entity_id=grant.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(grant),
    )
    await session.commit()
    await session.refresh(grant)
    logger.info(
        "CCL filed grant=%s employee=%s date=%s status=%s", grant.id, employee.id, grant.date_worked, grant.status
    )
    return build_grant_response(grant)


async def submit_grant(session: AsyncSession, grant_id: uuid.UUID, auth: AuthContext) -> CCLGrantResponse:
    """Move a draft into the approval workflow."""
    grant = await _get_grant(session, grant_id)
    if not _is_applicant(auth, grant) and auth.role not in HR_ROLES:
        raise ForbiddenError("Only the applicant may submit this CCL")
    if grant.status != CCLStatus.DRAFT:
        msg = f"Only drafts can be submitted; CCL is {grant.status}"
        raise EligibilityError(msg)
    await _ensure_no_conflict(session, grant)

    before = model_to_audit_dict(grant)
    grant.status = CCLStatus.PENDING
    grant.applied_at = _now()
    _append_history(grant, "submitted", auth)
    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CCL_GRANT,
        entity_id=grant.id,
        action=AuditAction.SUBMIT,
        before_json=before,
        after_json=model_to_audit_dict(grant),
    )
    await session.commit()
    await session.refresh(grant)
    return build_grant_response(grant)


# ---------------------------------------------------------------------------
# Approval workflow
# ---------------------------------------------------------------------------


def _active_step_index(steps: list[ApprovalStep]) -> int | None:
    for index, step in enumerate(steps):
        if step.status == StepStatus.PENDING:
            return index
    return None


def _claim_active_step(grant: CCLGrant, auth: AuthContext) -> tuple[list[ApprovalStep], int]:
    _require_open(grant)
    if grant.status == CCLStatus.DRAFT:
        raise EligibilityError("Draft CCL must be submitted before it can be processed")
    steps = _chain(grant)
    index = _active_step_index(steps)
    if index is None:
        raise EligibilityError("No active approval step")
    if not can_act(steps[index].approver, auth, grant):
        raise ForbiddenError("Not authorized to process this CCL")
    return steps, index


async def approve_grant(
    session: AsyncSession,
    grant_id: uuid.UUID,
    auth: AuthContext,
    comments: str | None = None,
    *,
    repository: ConfigRepository | None = None,
) -> CCLGrantResponse:
    """Approve the active step. The final approval credits the CCL to the ledger."""
    grant = await _get_grant(session, grant_id)
    steps, index = _claim_active_step(grant, auth)
    await _ensure_no_conflict(session, grant)

    before = model_to_audit_dict(grant)
    step = steps[index]
    step.status = StepStatus.APPROVED
    step.acted_by = auth.user_id
    step.acted_at = _now()
    step.comments = comments
    _store_chain(grant, steps)
    _append_history(grant, "approved", auth, comments)

    if index + 1 < len(steps):
        grant.status = _INTERMEDIATE_STATUS[_step_status_key(step.approver)]
    else:
        grant.status = CCLStatus.APPROVED
        grant.decided_at = _now()
        cycles = await CycleResolver.from_cascade(SettingsCascade(repository or SqlConfigRepository(session)))
        await add_transaction(
            session,
            cycles,
            LedgerEntry(
                employee_id=grant.employee_id,
                leave_type=LeaveType.CCL,
                transaction_type=TransactionType.CREDIT,
                days=HALF_DAY if grant.is_half_day else FULL_DAY,
                start_date=grant.date_worked,
                reason=f"Compensatory leave for working on {grant.date_worked.isoformat()}",
                source_type=LedgerSourceType.CCL,
                source_id=f"ccl-credit:{grant.id}",
                metadata_json={"grant_id": str(grant.id), "purpose": grant.purpose},
            ),
            actor_id=auth.user_id,
        )

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CCL_GRANT,
        entity_id=grant.id,
        action=AuditAction.APPROVE,
        before_json=before,
        after_json=model_to_audit_dict(grant),
    )
    await session.commit()
    await session.refresh(grant)
    return build_grant_response(grant)


def _close_remaining(steps: list[ApprovalStep], from_index: int) -> None:
    for step in steps[from_index:]:
        if step.status == StepStatus.PENDING:
            step.status = StepStatus.SKIPPED


async def reject_grant(
    session: AsyncSession,
    grant_id: uuid.UUID,
    auth: AuthContext,
    comments: str | None = None,
) -> CCLGrantResponse:
    grant = await _get_grant(session, grant_id)
    steps, index = _claim_active_step(grant, auth)

    before = model_to_audit_dict(grant)
    step = steps[index]
    step.status = StepStatus.REJECTED
    step.acted_by = auth.user_id
    step.acted_at = _now()
    step.comments = comments
    _close_remaining(steps, index + 1)
    _store_chain(grant, steps)
    _append_history(grant, "rejected", auth, comments)
    grant.status = CCLStatus.REJECTED
    grant.decided_at = _now()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CCL_GRANT,
        entity_id=grant.id,
        action=AuditAction.REJECT,
        before_json=before,
        after_json=model_to_audit_dict(grant),
    )
    await session.commit()
    await session.refresh(grant)
    return build_grant_response(grant)


async def cancel_grant(
    session: AsyncSession,
    grant_id: uuid.UUID,
    auth: AuthContext,
    comments: str | None = None,
) -> CCLGrantResponse:
    """Withdraw a grant that has not reached a terminal state."""
    grant = await _get_grant(session, grant_id)
    if not _is_applicant(auth, grant) and auth.role not in HR_ROLES:
        raise ForbiddenError("Only the applicant or HR may cancel this CCL")
    _require_open(grant)

    before = model_to_audit_dict(grant)
    steps = _chain(grant)
    _close_remaining(steps, 0)
    _store_chain(grant, steps)
    _append_history(grant, "cancelled", auth, comments)
    grant.status = CCLStatus.CANCELLED
    grant.decided_at = _now()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CCL_GRANT,
        entity_id=grant.id,
        action=AuditAction.CANCEL,
        before_json=before,
        after_json=model_to_audit_dict(grant),
    )
    await session.commit()
    await session.refresh(grant)
    return build_grant_response(grant)


async def use_grant(
    session: AsyncSession,
    grant_id: uuid.UUID,
    auth: AuthContext,
    used_on: date | None = None,
    *,
    repository: ConfigRepository | None = None,
) -> CCLGrantResponse:
    """Consume an approved grant: post a CCL debit and mark the grant used."""
    grant = await _get_grant(session, grant_id)
    if auth.role not in HR_ROLES and auth.employee_id != grant.employee_id:
        raise ForbiddenError("Only the employee or HR may use this CCL")
    if grant.status != CCLStatus.APPROVED:
        raise EligibilityError("Only approved CCL can be used")
    if grant.is_used or grant.is_expired:
        msg = "CCL has already been used" if grant.is_used else "CCL has expired"
        raise EligibilityError(msg)

    before = model_to_audit_dict(grant)
    cycles = await CycleResolver.from_cascade(SettingsCascade(repository or SqlConfigRepository(session)))
    await add_transaction(
        session,
        cycles,
        LedgerEntry(
            employee_id=grant.employee_id,
            leave_type=LeaveType.CCL,
            transaction_type=TransactionType.DEBIT,
            days=HALF_DAY if grant.is_half_day else FULL_DAY,
            start_date=used_on or local_today(),
            reason=f"Compensatory leave taken (earned {grant.date_worked.isoformat()})",
            source_type=LedgerSourceType.CCL,
            source_id=f"ccl-use:{grant.id}",
            metadata_json={"grant_id": str(grant.id)},
        ),
        actor_id=auth.user_id,
    )
    grant.is_used = True
    _append_history(grant, "used", auth)

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CCL_GRANT,
        entity_id=grant.id,
        action=AuditAction.USE,
        before_json=before,
        after_json=model_to_audit_dict(grant),
    )
    await session.commit()
    await session.refresh(grant)
    return build_grant_response(grant)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_grant(session: AsyncSession, grant_id: uuid.UUID, auth: AuthContext) -> CCLGrantResponse:
    grant = await _get_grant(session, grant_id)
    if not _can_view(auth, grant):
        raise ForbiddenError("Not authorized to view this CCL")
    return build_grant_response(grant)


async def list_grants(
    session: AsyncSession,
    auth: AuthContext,
    *,
    employee_id: uuid.UUID | None = None,
    status: CCLStatus | None = None,
    offset: int = 0,
    limit: int = 50,
) -> CCLListResponse:
    """Grants visible to the caller, newest worked date first."""
    filters = []
    if employee_id is not None:
        filters.append(col(CCLGrant.employee_id) == employee_id)
    if status is not None:
        filters.append(col(CCLGrant.status) == status.value)
    result = await session.execute(
        select(CCLGrant)
        .where(*filters)
        .order_by(col(CCLGrant.date_worked).desc(), col(CCLGrant.created_at).desc())
    )
    visible = [grant for grant in result.scalars().all() if _can_view(auth, grant)]
    return CCLListResponse(
        items=[build_grant_response(grant) for grant in visible[offset : offset + limit]],
        total=len(visible),
    )
