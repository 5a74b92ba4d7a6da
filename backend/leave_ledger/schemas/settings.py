# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Annotated, Literal, Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import ApproverRole, CalculationMode, DeductionType, EarningType

# ---------------------------------------------------------------------------
# Leave policy (global only)
# ---------------------------------------------------------------------------


class FinancialYearSettings(BaseModel):
    """Financial year boundaries; ``use_calendar_year`` wins over start month/day."""

    start_month: int = Field(default=4, ge=1, le=12)
    start_day: int = Field(default=1, ge=1, le=31)
    use_calendar_year: bool = True


class AttendanceRange(BaseModel):
    """One attendance bracket; brackets are cumulative, not exclusive."""

    min_days: float = Field(ge=0)
    max_days: float = Field(ge=0)
    el_earned: float = Field(ge=0)
    description: str = ""

    @model_validator(mode="after")
    def _validate_bounds(self) -> Self:
        if self.max_days < self.min_days:
            msg = "max_days must be >= min_days"
            raise ValueError(msg)
        return self


class AttendanceRules(BaseModel):
    """Attendance-based earned leave rules."""

    min_days_for_first_el: float = Field(default=20, ge=1, le=31)
    days_per_el: float = Field(default=20, ge=1, le=31)
    max_el_per_month: float = Field(default=2, ge=0, le=10)
    max_el_per_year: float = Field(default=12, ge=0, le=365)
    consider_present_days: bool = True
    consider_holidays: bool = True
    attendance_ranges: list[AttendanceRange] = []


class FixedRules(BaseModel):
    """Fixed-rate earned leave rules."""

    el_per_month: float = Field(default=1, ge=0, le=10)
    max_el_per_year: float = Field(default=12, ge=0, le=365)


class EarnedLeaveSettings(BaseModel):
    """Earned leave (EL) configuration."""

    enabled: bool = True
    earning_type: EarningType = EarningType.ATTENDANCE_BASED
    attendance_rules: AttendanceRules = Field(default_factory=AttendanceRules)
    fixed_rules: FixedRules = Field(default_factory=FixedRules)


class CarryForwardRule(BaseModel):
    """Carry forward limits for one leave type."""

    enabled: bool = True
    max_months: float = Field(default=12, ge=0)
    expiry_months: int = Field(default=12, ge=0)


class CarryForwardSettings(BaseModel):
    """Carry forward limits per leave type."""

    casual_leave: CarryForwardRule = Field(default_factory=CarryForwardRule)
    earned_leave: CarryForwardRule = Field(
        default_factory=lambda: CarryForwardRule(max_months=24, expiry_months=60),
    )
    compensatory_off: CarryForwardRule = Field(
        default_factory=lambda: CarryForwardRule(max_months=6, expiry_months=6),
    )


class ProbationPeriod(BaseModel):
    months: int = Field(default=6, ge=0, le=24)
    el_applicable_after: bool = True


class ComplianceSettings(BaseModel):
    """Which non-working days count towards EL attendance."""

    consider_weekly_offs: bool = True
    consider_paid_holidays: bool = True
    probation_period: ProbationPeriod = Field(default_factory=ProbationPeriod)


class ExperienceTier(BaseModel):
    """CL entitlement for employees whose full years of service fall in [min_years, max_years)."""

    min_years: int = Field(ge=0)
    max_years: int | None = Field(default=None, ge=0)
    casual_leave: float = Field(ge=0)


class AnnualCLResetSettings(BaseModel):
    """Annual casual leave reset configuration."""

    enabled: bool = True
    reset_to_balance: float = Field(default=12, ge=0, le=365)
    add_carry_forward: bool = True
    reset_month: int = Field(default=1, ge=1, le=12)
    reset_day: int = Field(default=1, ge=1, le=31)
    use_payroll_cycle_for_reset: bool = False
    casual_leave_by_experience: list[ExperienceTier] = []


class LeavePolicy(BaseModel):
    """Organisation-wide leave policy held in the ``leave_policy`` category."""

    financial_year: FinancialYearSettings = Field(default_factory=FinancialYearSettings)
    earned_leave: EarnedLeaveSettings = Field(default_factory=EarnedLeaveSettings)
    carry_forward: CarryForwardSettings = Field(default_factory=CarryForwardSettings)
    compliance: ComplianceSettings = Field(default_factory=ComplianceSettings)
    annual_cl_reset: AnnualCLResetSettings = Field(default_factory=AnnualCLResetSettings)


class PayrollSettings(BaseModel):
    """Payroll cycle cut-off days; start_day 1 means calendar months."""

    start_day: int = Field(default=1, ge=1, le=31)
    end_day: int = Field(default=31, ge=1, le=31)


# ---------------------------------------------------------------------------
# CCL approval workflow (tagged-union approvers)
# ---------------------------------------------------------------------------


class ReportingManagerApprover(BaseModel):
    """Step owned by the employee's reporting manager(s)."""

    kind: Literal["reporting_manager"] = "reporting_manager"


class FixedRoleApprover(BaseModel):
    """Step owned by a fixed organisational role."""

    kind: Literal["fixed_role"] = "fixed_role"
    role: ApproverRole


Approver = Annotated[ReportingManagerApprover | FixedRoleApprover, Field(discriminator="kind")]


class WorkflowStepConfig(BaseModel):
    approver: Approver
    label: str | None = None


class CCLWorkflowSettings(BaseModel):
    """Configured CCL approval steps; empty means the HOD then HR default."""

    steps: list[WorkflowStepConfig] = []


# ---------------------------------------------------------------------------
# Non-leave global categories
# ---------------------------------------------------------------------------


class DeductionRules(BaseModel):
    """Salary deduction rule; any unset field leaves the rule disabled."""

    count_threshold: int | None = Field(default=None, ge=1)
    deduction_type: DeductionType | None = None
    deduction_amount: float | None = Field(default=None, ge=0)
    minimum_duration: int | None = Field(default=None, ge=0)
    calculation_mode: CalculationMode | None = None


class AttendanceDeductionRules(BaseModel):
    combined_count_threshold: int | None = Field(default=None, ge=1)
    deduction_type: DeductionType | None = None
    deduction_amount: float | None = Field(default=None, ge=0)
    minimum_duration: int | None = Field(default=None, ge=0)
    calculation_mode: CalculationMode | None = None


class EarlyOutRange(BaseModel):
    min_minutes: int = Field(ge=0)
    max_minutes: int = Field(ge=0)
    deduction_type: DeductionType
    deduction_amount: float | None = Field(default=None, ge=0)
    description: str = ""


class EarlyOutSettings(BaseModel):
    is_enabled: bool | None = None
    allowed_duration_minutes: int | None = Field(default=None, ge=0)
    minimum_duration: int | None = Field(default=None, ge=0)
    deduction_ranges: list[EarlyOutRange] | None = None


class LoanSettings(BaseModel):
    """Loan / salary-advance block. Global rows use the same field names."""

    interest_rate: float | None = Field(default=None, ge=0)
    is_interest_applicable: bool | None = None
    min_tenure: int | None = Field(default=None, ge=1)
    max_tenure: int | None = Field(default=None, ge=1)
    min_amount: float | None = Field(default=None, ge=0)
    max_amount: float | None = Field(default=None, ge=0)
    max_per_employee: float | None = Field(default=None, ge=0)
    max_active_per_employee: int | None = Field(default=None, ge=0)
    min_service_period: int | None = Field(default=None, ge=0)


class PermissionSettings(BaseModel):
    per_day_limit: int | None = Field(default=None, ge=0)
    monthly_limit: int | None = Field(default=None, ge=0)
    deduct_from_salary: bool | None = None
    deduction_amount: float | None = Field(default=None, ge=0)
    deduction_rules: DeductionRules | None = None


class OvertimeSettings(BaseModel):
    ot_pay_per_hour: float | None = Field(default=None, ge=0)
    min_ot_hours: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Department overrides (every leaf nullable, null = inherit)
# ---------------------------------------------------------------------------


class LeaveOverrides(BaseModel):
    leaves_per_day: float | None = Field(default=None, ge=0)
    paid_leaves_count: float | None = Field(default=None, ge=0)
    daily_limit: float | None = Field(default=None, ge=0)
    monthly_limit: float | None = Field(default=None, ge=0)
    casual_leave_per_year: float | None = Field(default=None, ge=0)
    max_casual_leaves_per_month: float | None = Field(default=None, ge=0)
    el_earning_type: EarningType | None = None
    el_max_carry_forward: float | None = Field(default=None, ge=0)
    ccl_expiry_months: int | None = None


class AttendanceOverrides(BaseModel):
    deduction_rules: AttendanceDeductionRules | None = None
    early_out: EarlyOutSettings | None = None


class DepartmentOverrides(BaseModel):
    """Department override blocks; also the body of PUT /settings/departments/{department_id}.

    Blocks that are omitted keep their stored value.
    """

    leaves: LeaveOverrides | None = None
    loans: LoanSettings | None = None
    salary_advance: LoanSettings | None = None
    permissions: PermissionSettings | None = None
    ot: OvertimeSettings | None = None
    attendance: AttendanceOverrides | None = None


class DepartmentSettingsResponse(BaseModel):
    id: uuid.UUID
    department_id: uuid.UUID
    division_id: uuid.UUID | None
    leaves: LeaveOverrides | None
    loans: LoanSettings | None
    salary_advance: LoanSettings | None
    permissions: PermissionSettings | None
    ot: OvertimeSettings | None
    attendance: AttendanceOverrides | None


# ---------------------------------------------------------------------------
# Resolved settings (fully populated)
# ---------------------------------------------------------------------------


class ResolvedLeaveSettings(BaseModel):
    leaves_per_day: float | None
    paid_leaves_count: float | None
    daily_limit: float | None
    monthly_limit: float | None
    casual_leave_per_year: float
    max_casual_leaves_per_month: float | None
    el_earning_type: EarningType
    el_max_carry_forward: float
    ccl_expiry_months: int


class ResolvedLoanSettings(BaseModel):
    interest_rate: float
    is_interest_applicable: bool
    min_tenure: int
    max_tenure: int
    min_amount: float
    max_amount: float | None
    max_per_employee: float | None
    max_active_per_employee: int
    min_service_period: int


class ResolvedPermissionSettings(BaseModel):
    per_day_limit: int
    monthly_limit: int
    deduct_from_salary: bool
    deduction_amount: float
    deduction_rules: DeductionRules


class ResolvedOvertimeSettings(BaseModel):
    ot_pay_per_hour: float
    min_ot_hours: float


class ResolvedEarlyOutSettings(BaseModel):
    is_enabled: bool
    allowed_duration_minutes: int
    minimum_duration: int
    deduction_ranges: list[EarlyOutRange]


class ResolvedAttendanceSettings(BaseModel):
    deduction_rules: AttendanceDeductionRules
    early_out: ResolvedEarlyOutSettings
