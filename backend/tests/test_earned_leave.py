"""Tests for the earned leave (EL) calculation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from leave_ledger.models.enums import EarningType
from leave_ledger.schemas.settings import LeavePolicy, PayrollSettings, ResolvedLeaveSettings
from leave_ledger.services.attendance import AttendanceSummary
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.earned_leave import calculate_earned_leave, months_in_service

CYCLE = CycleResolver(PayrollSettings(start_day=26, end_day=25)).payroll_cycle_for_month(2, 2026)
VETERAN = date(2020, 1, 1)


def _leaves(**overrides: Any) -> ResolvedLeaveSettings:
    values: dict[str, Any] = {
        "leaves_per_day": None,
        "paid_leaves_count": None,
        "daily_limit": None,
        "monthly_limit": None,
        "casual_leave_per_year": 12,
        "max_casual_leaves_per_month": None,
        "el_earning_type": EarningType.ATTENDANCE_BASED,
        "el_max_carry_forward": 24,
        "ccl_expiry_months": 6,
    }
    values.update(overrides)
    return ResolvedLeaveSettings(**values)


def _policy(**earned_leave: Any) -> LeavePolicy:
    return LeavePolicy.model_validate({"earned_leave": earned_leave})


def _summary(present: str, weekly_offs: str = "0", holidays: str = "0", payable: str = "0") -> AttendanceSummary:
    return AttendanceSummary(
        present_days=Decimal(present),
        weekly_offs=Decimal(weekly_offs),
        holidays=Decimal(holidays),
        payable_shifts=Decimal(payable),
    )


def test_months_in_service_ignores_day() -> None:
    assert months_in_service(date(2025, 8, 31), date(2026, 2, 1)) == 6
    assert months_in_service(date(2026, 2, 20), date(2026, 2, 25)) == 0


def test_disabled_earned_leave() -> None:
    result = calculate_earned_leave(
        joining_date=VETERAN, cycle=CYCLE, policy=_policy(enabled=False), leaves=_leaves(), summary=_summary("25")
    )
    assert result.eligible is False
    assert result.el_earned == 0


def test_probation_blocks_earned_leave() -> None:
    result = calculate_earned_leave(
        joining_date=date(2025, 12, 1), cycle=CYCLE, policy=_policy(), leaves=_leaves(), summary=_summary("25")
    )
    assert result.eligible is False
    assert "Probation" in result.reason


def test_unknown_joining_date_is_not_past_probation() -> None:
    result = calculate_earned_leave(
        joining_date=None, cycle=CYCLE, policy=_policy(), leaves=_leaves(), summary=_summary("25")
    )
    assert result.eligible is False


def test_probation_not_applicable() -> None:
    policy = LeavePolicy.model_validate({"compliance": {"probation_period": {"el_applicable_after": False}}})
    result = calculate_earned_leave(
        joining_date=date(2026, 2, 1), cycle=CYCLE, policy=policy, leaves=_leaves(), summary=_summary("20")
    )
    assert result.eligible is True
    assert result.el_earned == Decimal("1.0")


def test_fixed_earned_leave() -> None:
    result = calculate_earned_leave(
        joining_date=VETERAN,
        cycle=CYCLE,
        policy=_policy(fixed_rules={"el_per_month": 1}),
        leaves=_leaves(el_earning_type=EarningType.FIXED),
        summary=None,
    )
    assert result.eligible is True
    assert result.el_earned == Decimal("1.0")


def test_fixed_earned_leave_from_paid_leaves_count() -> None:
    result = calculate_earned_leave(
        joining_date=VETERAN,
        cycle=CYCLE,
        policy=_policy(),
        leaves=_leaves(el_earning_type=EarningType.FIXED, paid_leaves_count=15),
        summary=None,
    )
    assert result.el_earned == Decimal("1.5")


def test_attendance_counts_week_offs_and_holidays() -> None:
    result = calculate_earned_leave(
        joining_date=VETERAN, cycle=CYCLE, policy=_policy(), leaves=_leaves(), summary=_summary("15", "4", "1")
    )
    assert result.attendance_days == Decimal("20")
    assert result.effective_days == Decimal("15")
    assert result.el_earned == Decimal("1.0")


def test_attendance_below_first_threshold() -> None:
    policy = LeavePolicy.model_validate({"compliance": {"consider_weekly_offs": False}})
    result = calculate_earned_leave(
        joining_date=VETERAN, cycle=CYCLE, policy=policy, leaves=_leaves(), summary=_summary("15", "4", "0.5")
    )
    assert result.attendance_days == Decimal("15.5")
    assert result.el_earned == 0


def test_attendance_ranges_are_cumulative() -> None:
    ranges = [
        {"min_days": 0, "max_days": 10, "el_earned": 0},
        {"min_days": 15, "max_days": 31, "el_earned": 1},
        {"min_days": 20, "max_days": 31, "el_earned": 0.5},
    ]
    result = calculate_earned_leave(
        joining_date=VETERAN,
        cycle=CYCLE,
        policy=_policy(attendance_rules={"attendance_ranges": ranges}),
        leaves=_leaves(),
        summary=_summary("22"),
    )
    assert result.el_earned == Decimal("1.5")


def test_attendance_ranges_capped_per_month() -> None:
    ranges = [
        {"min_days": 15, "max_days": 31, "el_earned": 1},
        {"min_days": 20, "max_days": 31, "el_earned": 1},
    ]
    result = calculate_earned_leave(
        joining_date=VETERAN,
        cycle=CYCLE,
        policy=_policy(attendance_rules={"attendance_ranges": ranges, "max_el_per_month": 1}),
        leaves=_leaves(),
        summary=_summary("22"),
    )
    assert result.el_earned == Decimal("1.0")


def test_effective_days_capped_by_cycle_length() -> None:
    result = calculate_earned_leave(
        joining_date=VETERAN, cycle=CYCLE, policy=_policy(), leaves=_leaves(), summary=_summary("10", payable="40")
    )
    assert result.effective_days == Decimal("31")


def test_no_attendance_recorded() -> None:
    result = calculate_earned_leave(
        joining_date=VETERAN, cycle=CYCLE, policy=_policy(), leaves=_leaves(), summary=None
    )
    assert result.eligible is True
    assert result.el_earned == 0
