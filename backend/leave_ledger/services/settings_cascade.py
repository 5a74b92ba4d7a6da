"""Resolves effective settings through the division -> department -> global -> default cascade."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from leave_ledger.models.enums import EarningType, SettingsCategory
from leave_ledger.schemas.settings import (
    AttendanceDeductionRules,
    CCLWorkflowSettings,
    DeductionRules,
    DepartmentOverrides,
    EarlyOutSettings,
    LeavePolicy,
    LoanSettings,
    OvertimeSettings,
    PayrollSettings,
    PermissionSettings,
    ResolvedAttendanceSettings,
    ResolvedEarlyOutSettings,
    ResolvedLeaveSettings,
    ResolvedLoanSettings,
    ResolvedOvertimeSettings,
    ResolvedPermissionSettings,
)

if TYPE_CHECKING:
    from leave_ledger.services.config_repository import ConfigRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

# Schema of each global category's settings_json.
GLOBAL_CATEGORY_MODELS: dict[SettingsCategory, type[BaseModel]] = {
    SettingsCategory.LEAVE_POLICY: LeavePolicy,
    SettingsCategory.PAYROLL: PayrollSettings,
    SettingsCategory.LOAN: LoanSettings,
    SettingsCategory.SALARY_ADVANCE: LoanSettings,
    SettingsCategory.PERMISSIONS: PermissionSettings,
    SettingsCategory.OVERTIME: OvertimeSettings,
    SettingsCategory.ATTENDANCE_DEDUCTION: AttendanceDeductionRules,
    SettingsCategory.EARLY_OUT: EarlyOutSettings,
    SettingsCategory.CCL_WORKFLOW: CCLWorkflowSettings,
}

DEFAULT_CASUAL_LEAVE_PER_YEAR = 12.0
DEFAULT_CCL_EXPIRY_MONTHS = 6
DEFAULT_EL_MAX_CARRY_FORWARD = 24.0


def resolve(override: T | None, fallback: T | None, hard_default: T) -> T:
    """Pick the first value that is set. ``0`` and ``False`` count as set."""
    if override is not None:
        return override
    if fallback is not None:
        return fallback
    return hard_default


def resolve_optional(override: T | None, fallback: T | None) -> T | None:
    """Same as ``resolve`` for fields whose hard default is unset."""
    return override if override is not None else fallback


class SettingsCascade:
    """Effective settings for a department/division.

    Every resolver returns a fully populated model; missing or malformed
    configuration degrades to defaults instead of raising.
    """

    def __init__(self, repository: ConfigRepository) -> None:
        self._repository = repository

    # -- Globals ------------------------------------------------------------

    async def _load_global(self, category: SettingsCategory, model: type[M]) -> M | None:
        raw = await self._repository.get_global(category)
        if raw is None:
            return None
        try:
            return model.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring invalid global settings for category=%s", category.value)
            return None

    async def leave_policy(self) -> LeavePolicy:
        return await self._load_global(SettingsCategory.LEAVE_POLICY, LeavePolicy) or LeavePolicy()

    async def payroll_settings(self) -> PayrollSettings:
        return await self._load_global(SettingsCategory.PAYROLL, PayrollSettings) or PayrollSettings()

    async def ccl_workflow(self) -> CCLWorkflowSettings:
        return await self._load_global(SettingsCategory.CCL_WORKFLOW, CCLWorkflowSettings) or CCLWorkflowSettings()

    async def _overrides(self, department_id: uuid.UUID | None, division_id: uuid.UUID | None) -> DepartmentOverrides:
        if department_id is None:
            return DepartmentOverrides()
        return await self._repository.get_department_overrides(department_id, division_id) or DepartmentOverrides()

    # -- Leaves -------------------------------------------------------------

    async def resolve_leaves(
        self,
        department_id: uuid.UUID | None,
        division_id: uuid.UUID | None = None,
    ) -> ResolvedLeaveSettings:
        leaves = (await self._overrides(department_id, division_id)).leaves
        policy = await self._load_global(SettingsCategory.LEAVE_POLICY, LeavePolicy)

        def override(name: str) -> Any:
            return getattr(leaves, name) if leaves is not None else None

        return ResolvedLeaveSettings(
            leaves_per_day=override("leaves_per_day"),
            paid_leaves_count=override("paid_leaves_count"),
            daily_limit=override("daily_limit"),
            monthly_limit=override("monthly_limit"),
            casual_leave_per_year=resolve(
                override("casual_leave_per_year"),
                policy.annual_cl_reset.reset_to_balance if policy else None,
                DEFAULT_CASUAL_LEAVE_PER_YEAR,
            ),
            max_casual_leaves_per_month=override("max_casual_leaves_per_month"),
            el_earning_type=resolve(
                override("el_earning_type"),
                policy.earned_leave.earning_type if policy else None,
                EarningType.ATTENDANCE_BASED,
            ),
            el_max_carry_forward=resolve(
                override("el_max_carry_forward"),
                policy.carry_forward.earned_leave.max_months if policy else None,
                DEFAULT_EL_MAX_CARRY_FORWARD,
            ),
            ccl_expiry_months=resolve(
                override("ccl_expiry_months"),
                policy.carry_forward.compensatory_off.expiry_months if policy else None,
                DEFAULT_CCL_EXPIRY_MONTHS,
            ),
        )

    # -- Loans / salary advance ---------------------------------------------

    async def resolve_loans(
        self,
        department_id: uuid.UUID | None,
        division_id: uuid.UUID | None = None,
        *,
        salary_advance: bool = False,
    ) -> ResolvedLoanSettings:
        overrides = await self._overrides(department_id, division_id)
        category = SettingsCategory.SALARY_ADVANCE if salary_advance else SettingsCategory.LOAN
        dept = (overrides.salary_advance if salary_advance else overrides.loans) or LoanSettings()
        glob = await self._load_global(category, LoanSettings) or LoanSettings()

        return ResolvedLoanSettings(
            interest_rate=resolve(dept.interest_rate, glob.interest_rate, 0.0),
            is_interest_applicable=resolve(dept.is_interest_applicable, glob.is_interest_applicable, False),
            min_tenure=resolve(dept.min_tenure, glob.min_tenure, 1),
            max_tenure=resolve(dept.max_tenure, glob.max_tenure, 60),
            min_amount=resolve(dept.min_amount, glob.min_amount, 1000.0),
            max_amount=resolve_optional(dept.max_amount, glob.max_amount),
            max_per_employee=resolve_optional(dept.max_per_employee, glob.max_per_employee),
            max_active_per_employee=resolve(dept.max_active_per_employee, glob.max_active_per_employee, 1),
            min_service_period=resolve(dept.min_service_period, glob.min_service_period, 0),
        )

    # -- Permissions --------------------------------------------------------

    async def resolve_permissions(
        self,
        department_id: uuid.UUID | None,
        division_id: uuid.UUID | None = None,
    ) -> ResolvedPermissionSettings:
        dept = (await self._overrides(department_id, division_id)).permissions or PermissionSettings()
        glob = await self._load_global(SettingsCategory.PERMISSIONS, PermissionSettings) or PermissionSettings()
        dept_rules = dept.deduction_rules or DeductionRules()
        glob_rules = glob.deduction_rules or DeductionRules()

        return ResolvedPermissionSettings(
            per_day_limit=resolve(dept.per_day_limit, glob.per_day_limit, 0),
            monthly_limit=resolve(dept.monthly_limit, glob.monthly_limit, 0),
            deduct_from_salary=resolve(dept.deduct_from_salary, glob.deduct_from_salary, False),
            deduction_amount=resolve(dept.deduction_amount, glob.deduction_amount, 0.0),
            deduction_rules=DeductionRules(
                count_threshold=resolve_optional(dept_rules.count_threshold, glob_rules.count_threshold),
                deduction_type=resolve_optional(dept_rules.deduction_type, glob_rules.deduction_type),
                deduction_amount=resolve_optional(dept_rules.deduction_amount, glob_rules.deduction_amount),
                minimum_duration=resolve_optional(dept_rules.minimum_duration, glob_rules.minimum_duration),
                calculation_mode=resolve_optional(dept_rules.calculation_mode, glob_rules.calculation_mode),
            ),
        )

    # -- Overtime -----------------------------------------------------------

    async def resolve_overtime(
        self,
        department_id: uuid.UUID | None,
        division_id: uuid.UUID | None = None,
    ) -> ResolvedOvertimeSettings:
        dept = (await self._overrides(department_id, division_id)).ot or OvertimeSettings()
        glob = await self._load_global(SettingsCategory.OVERTIME, OvertimeSettings) or OvertimeSettings()
        return ResolvedOvertimeSettings(
            ot_pay_per_hour=resolve(dept.ot_pay_per_hour, glob.ot_pay_per_hour, 0.0),
            min_ot_hours=resolve(dept.min_ot_hours, glob.min_ot_hours, 0.0),
        )

    # -- Attendance deductions ----------------------------------------------

    async def resolve_attendance(
        self,
        department_id: uuid.UUID | None,
        division_id: uuid.UUID | None = None,
    ) -> ResolvedAttendanceSettings:
        attendance = (await self._overrides(department_id, division_id)).attendance
        dept_rules = (attendance.deduction_rules if attendance else None) or AttendanceDeductionRules()
        dept_early = (attendance.early_out if attendance else None) or EarlyOutSettings()
        glob_rules = (
            await self._load_global(SettingsCategory.ATTENDANCE_DEDUCTION, AttendanceDeductionRules)
            or AttendanceDeductionRules()
        )
        glob_early = await self._load_global(SettingsCategory.EARLY_OUT, EarlyOutSettings) or EarlyOutSettings()

        # A non-empty department list replaces the global ranges wholesale.
        ranges = dept_early.deduction_ranges or glob_early.deduction_ranges or []

        return ResolvedAttendanceSettings(
            deduction_rules=AttendanceDeductionRules(
                combined_count_threshold=resolve_optional(
                    dept_rules.combined_count_threshold, glob_rules.combined_count_threshold
                ),
                deduction_type=resolve_optional(dept_rules.deduction_type, glob_rules.deduction_type),
                deduction_amount=resolve_optional(dept_rules.deduction_amount, glob_rules.deduction_amount),
                minimum_duration=resolve_optional(dept_rules.minimum_duration, glob_rules.minimum_duration),
                calculation_mode=resolve_optional(dept_rules.calculation_mode, glob_rules.calculation_mode),
            ),
            early_out=ResolvedEarlyOutSettings(
                is_enabled=resolve(dept_early.is_enabled, glob_early.is_enabled, False),
                allowed_duration_minutes=resolve(
                    dept_early.allowed_duration_minutes, glob_early.allowed_duration_minutes, 0
                ),
                minimum_duration=resolve(dept_early.minimum_duration, glob_early.minimum_duration, 0),
                deduction_ranges=ranges,
            ),
        )

    # -- Dispatch -----------------------------------------------------------

    async def resolve_category(
        self,
        category: str,
        department_id: uuid.UUID | None,
        division_id: uuid.UUID | None = None,
    ) -> BaseModel:
        """Resolve one settings category by its route name."""
        if category == "leaves":
            return await self.resolve_leaves(department_id, division_id)
        if category in ("loans", "salary_advance"):
            return await self.resolve_loans(department_id, division_id, salary_advance=category == "salary_advance")
        if category == "permissions":
            return await self.resolve_permissions(department_id, division_id)
        if category in ("ot", "overtime"):
            return await self.resolve_overtime(department_id, division_id)
        if category == "attendance":
            return await self.resolve_attendance(department_id, division_id)
        if category == "leave_policy":
            return await self.leave_policy()
        if category == "payroll":
            return await self.payroll_settings()
        if category == "ccl_workflow":
            return await self.ccl_workflow()
        msg = f"Unknown settings category: {category}"
        raise ValueError(msg)


RESOLVABLE_CATEGORIES = (
    "leaves",
    "loans",
    "salary_advance",
    "permissions",
    "overtime",
    "attendance",
    "leave_policy",
    "payroll",
    "ccl_workflow",
)
