from __future__ import annotations

import enum


class LeaveType(enum.StrEnum):
    """Leave types tracked in the ledger."""

    CL = "CL"
    EL = "EL"
    CCL = "CCL"


class TransactionType(enum.StrEnum):
    """Kind of balance movement recorded by a ledger transaction."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    EXPIRY = "EXPIRY"
    ADJUSTMENT = "ADJUSTMENT"


class TransactionStatus(enum.StrEnum):
    """Status stamped on a ledger transaction."""

    APPROVED = "APPROVED"


class AutoGeneratedType(enum.StrEnum):
    """Which system job produced an auto-generated transaction."""

    MONTHLY_ACCRUAL = "MONTHLY_ACCRUAL"
    EARNED_LEAVE = "EARNED_LEAVE"
    EXPIRY = "EXPIRY"
    ANNUAL_RESET = "ANNUAL_RESET"
    INITIAL_BALANCE = "INITIAL_BALANCE"


class LedgerSourceType(enum.StrEnum):
    """Origin of a ledger transaction."""

    SYSTEM = "SYSTEM"
    CCL = "CCL"
    ADMIN = "ADMIN"


class EarningType(enum.StrEnum):
    """How earned leave accumulates."""

    ATTENDANCE_BASED = "attendance_based"
    FIXED = "fixed"


class DeductionType(enum.StrEnum):
    """Salary deduction applied when a permission/attendance rule trips."""

    QUARTER_DAY = "quarter_day"
    HALF_DAY = "half_day"
    FULL_DAY = "full_day"
    CUSTOM_AMOUNT = "custom_amount"


class CalculationMode(enum.StrEnum):
    """Whether deductions count partial threshold multiples."""

    PROPORTIONAL = "proportional"
    FLOOR = "floor"


class SettingsCategory(enum.StrEnum):
    """Global settings categories held by the configuration store."""

    LEAVE_POLICY = "leave_policy"
    PAYROLL = "payroll"
    LOAN = "loan"
    SALARY_ADVANCE = "salary_advance"
    PERMISSIONS = "permissions"
    OVERTIME = "overtime"
    ATTENDANCE_DEDUCTION = "attendance_deduction"
    EARLY_OUT = "early_out"
    CCL_WORKFLOW = "ccl_workflow"


class CCLStatus(enum.StrEnum):
    """State machine for compensatory casual leave grants."""

    DRAFT = "draft"
    PENDING = "pending"
    REPORTING_MANAGER_APPROVED = "reporting_manager_approved"
    HOD_APPROVED = "hod_approved"
    MANAGER_APPROVED = "manager_approved"
    HR_APPROVED = "hr_approved"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


TERMINAL_CCL_STATUSES = frozenset({CCLStatus.APPROVED, CCLStatus.REJECTED, CCLStatus.CANCELLED})


class StepStatus(enum.StrEnum):
    """Status of a single approval step."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class HalfDayType(enum.StrEnum):
    """Which half of the day a half-day grant covers."""

    FIRST_HALF = "first_half"
    SECOND_HALF = "second_half"


class ApproverRole(enum.StrEnum):
    """Roles that can hold a fixed approval step."""

    HOD = "hod"
    MANAGER = "manager"
    HR = "hr"
    FINAL_AUTHORITY = "final_authority"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEDGER_TRANSACTION = "LEDGER_TRANSACTION"
    CCL_GRANT = "CCL_GRANT"
    DEPARTMENT_SETTINGS = "DEPARTMENT_SETTINGS"
    GLOBAL_SETTINGS = "GLOBAL_SETTINGS"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    EXPIRE = "EXPIRE"
    USE = "USE"
