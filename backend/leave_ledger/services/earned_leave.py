"""Earned leave (EL) calculation for one employee and payroll cycle."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from leave_ledger.models.enums import EarningType
from leave_ledger.services.cycle import total_days
from leave_ledger.services.ledger import round_to_half

if TYPE_CHECKING:
    from datetime import date

    from leave_ledger.schemas.cycle import PayrollCycle
    from leave_ledger.schemas.settings import (
        AttendanceRules,
        ComplianceSettings,
        LeavePolicy,
        ProbationPeriod,
        ResolvedLeaveSettings,
    )
    from leave_ledger.services.attendance import AttendanceSummary


@dataclass
class EarnedLeaveCalculation:
    """Outcome of an EL calculation; ``el_earned`` is already rounded to 0.5."""

    eligible: bool
    earning_type: EarningType
    el_earned: Decimal = Decimal("0")
    attendance_days: Decimal = Decimal("0")
    effective_days: Decimal = Decimal("0")
    reason: str = ""


def months_in_service(joining_date: date, as_of: date) -> int:
    """Calendar-month difference, ignoring the day of month."""
    return (as_of.year - joining_date.year) * 12 + (as_of.month - joining_date.month)


def probation_completed(joining_date: date | None, cycle_end: date, probation: ProbationPeriod) -> bool:
    if not probation.el_applicable_after:
        return True
    if joining_date is None:
        return False
    return months_in_service(joining_date, cycle_end) >= probation.months


def count_attendance_days(summary: AttendanceSummary, compliance: ComplianceSettings) -> Decimal:
    """Present/half days plus week-offs and holidays where the compliance flags allow."""
    days = summary.present_days
    if compliance.consider_weekly_offs:
        days += summary.weekly_offs
    if compliance.consider_paid_holidays:
        days += summary.holidays
    return days


def compute_effective_days(summary: AttendanceSummary, cycle_days: int) -> Decimal:
    return min(Decimal(cycle_days), max(summary.present_days, summary.payable_shifts))


def attendance_based_el(attendance_days: Decimal, effective_days: Decimal, rules: AttendanceRules) -> Decimal:
    """Unrounded EL for one cycle.

    Brackets are cumulative: every bracket containing ``effective_days`` contributes.
    Without brackets, one EL per ``days_per_el`` once the first threshold is met.
    """
    cap = Decimal(str(rules.max_el_per_month))
    if rules.attendance_ranges:
        earned = sum(
            (
                Decimal(str(r.el_earned))
                for r in sorted(rules.attendance_ranges, key=lambda r: r.min_days)
                if Decimal(str(r.min_days)) <= effective_days <= Decimal(str(r.max_days))
            ),
            Decimal("0"),
        )
        return min(earned, cap)

    if attendance_days < Decimal(str(rules.min_days_for_first_el)):
        return Decimal("0")
    earned = Decimal(math.floor(attendance_days / Decimal(str(rules.days_per_el))))
    return min(earned, cap)


def fixed_el(leaves: ResolvedLeaveSettings, policy: LeavePolicy) -> Decimal:
    if leaves.paid_leaves_count is not None:
        return Decimal(str(leaves.paid_leaves_count)) / 12
    return Decimal(str(policy.earned_leave.fixed_rules.el_per_month))


def calculate_earned_leave(
    *,
    joining_date: date | None,
    cycle: PayrollCycle,
    policy: LeavePolicy,
    leaves: ResolvedLeaveSettings,
    summary: AttendanceSummary | None,
) -> EarnedLeaveCalculation:
    """Compute the EL an employee earns for ``cycle``. No I/O."""
    earning_type = leaves.el_earning_type
    if not policy.earned_leave.enabled:
        return EarnedLeaveCalculation(eligible=False, earning_type=earning_type, reason="Earned leave is disabled")

    if not probation_completed(joining_date, cycle.end_date, policy.compliance.probation_period):
        reason = "Probation period not completed" if joining_date else "Joining date unknown; probation not evaluated"
        return EarnedLeaveCalculation(eligible=False, earning_type=earning_type, reason=reason)

    if earning_type == EarningType.FIXED:
        return EarnedLeaveCalculation(
            eligible=True,
            earning_type=earning_type,
            el_earned=round_to_half(fixed_el(leaves, policy)),
            reason="Fixed monthly earned leave",
        )

    if summary is None:
        return EarnedLeaveCalculation(eligible=True, earning_type=earning_type, reason="No attendance recorded")

    attendance_days = count_attendance_days(summary, policy.compliance)
    effective_days = compute_effective_days(summary, total_days(cycle.start_date, cycle.end_date))
    raw = attendance_based_el(attendance_days, effective_days, policy.earned_leave.attendance_rules)
    return EarnedLeaveCalculation(
        eligible=True,
        earning_type=earning_type,
        el_earned=round_to_half(raw),
        attendance_days=attendance_days,
        effective_days=effective_days,
        reason="Attendance-based earned leave",
    )
