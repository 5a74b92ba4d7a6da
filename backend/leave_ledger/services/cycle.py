"""Payroll cycle and financial year arithmetic."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import TYPE_CHECKING

from leave_ledger.schemas.cycle import FinancialYear, PayrollCycle, PeriodInfo
from leave_ledger.schemas.settings import FinancialYearSettings, PayrollSettings

if TYPE_CHECKING:
    from leave_ledger.services.settings_cascade import SettingsCascade

# Day used to pick the payroll cycle labelled with a given (month, year).
MID_MONTH_ANCHOR_DAY = 15


# ---------------------------------------------------------------------------
# Pure date helpers
# ---------------------------------------------------------------------------


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping the day to the month's length (31 -> 28 in February)."""
    return date(year, month, min(day, _last_day(year, month)))


def _add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def shift_months(day: date, delta: int) -> date:
    """Move a date by whole months, clamping to the target month's last day."""
    year, month = _add_months(day.year, day.month, delta)
    return clamped_date(year, month, day.day)


def total_days(start: date, end: date) -> int:
    """Inclusive day count of [start, end]."""
    return (end - start).days + 1


def full_years_between(start: date, end: date) -> int:
    """Completed years from start to end (0 if end precedes start)."""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return max(years, 0)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CycleResolver:
    """Maps calendar dates to payroll cycles and financial years."""

    def __init__(
        self,
        payroll: PayrollSettings | None = None,
        financial_year: FinancialYearSettings | None = None,
    ) -> None:
        self.payroll = payroll or PayrollSettings()
        self.financial_year = financial_year or FinancialYearSettings()

    @classmethod
    async def from_cascade(cls, cascade: SettingsCascade) -> CycleResolver:
        payroll = await cascade.payroll_settings()
        policy = await cascade.leave_policy()
        return cls(payroll, policy.financial_year)

    @property
    def is_custom_cycle(self) -> bool:
        return self.payroll.start_day != 1

    def payroll_cycle_for_date(self, day: date) -> PayrollCycle:
        """Return the payroll cycle containing ``day``.

        With a custom start day (e.g. 26 -> 25), a date on or after the start day
        opens a cycle this month; earlier dates belong to last month's cycle.
        """
        if not self.is_custom_cycle:
            return PayrollCycle(
                start_date=day.replace(day=1),
                end_date=day.replace(day=_last_day(day.year, day.month)),
                month=day.month,
                year=day.year,
                is_custom_cycle=False,
            )

        start_day = self.payroll.start_day
        if day >= clamped_date(day.year, day.month, start_day):
            start_year, start_month = day.year, day.month
        else:
            start_year, start_month = _add_months(day.year, day.month, -1)
        end_year, end_month = _add_months(start_year, start_month, 1)

        # The cycle carries the label of the month whose mid-month probe it contains.
        if start_day <= MID_MONTH_ANCHOR_DAY:
            label_month, label_year = start_month, start_year
        else:
            label_month, label_year = end_month, end_year

        return PayrollCycle(
            start_date=clamped_date(start_year, start_month, start_day),
            end_date=clamped_date(end_year, end_month, self.payroll.end_day),
            month=label_month,
            year=label_year,
            is_custom_cycle=True,
        )

    def payroll_cycle_for_month(self, month: int, year: int) -> PayrollCycle:
        """Return the cycle labelled (month, year)."""
        return self.payroll_cycle_for_date(date(year, month, MID_MONTH_ANCHOR_DAY))

    def payroll_cycles_in_range(self, start: date, end: date) -> list[PayrollCycle]:
        """All cycles overlapping [start, end], in order and without duplicates."""
        cycles: list[PayrollCycle] = []
        if end < start:
            return cycles
        cycle = self.payroll_cycle_for_date(start)
        while cycle.start_date <= end:
            cycles.append(cycle)
            cycle = self.payroll_cycle_for_date(cycle.end_date + timedelta(days=1))
        return cycles

    def financial_year_for_date(self, day: date) -> FinancialYear:
        """Return the financial year containing ``day``."""
        settings = self.financial_year
        if settings.use_calendar_year:
            return FinancialYear(
                start_date=date(day.year, 1, 1),
                end_date=date(day.year, 12, 31),
                year=day.year,
                label=str(day.year),
                is_custom_year=False,
            )

        year = day.year
        if day < clamped_date(year, settings.start_month, settings.start_day):
            year -= 1
        start = clamped_date(year, settings.start_month, settings.start_day)
        next_start = clamped_date(year + 1, settings.start_month, settings.start_day)
        return FinancialYear(
            start_date=start,
            end_date=next_start - timedelta(days=1),
            year=year,
            label=f"{year}-{year + 1}",
            is_custom_year=True,
        )

    def period_info(self, day: date) -> PeriodInfo:
        return PeriodInfo(
            as_of=day,
            payroll_cycle=self.payroll_cycle_for_date(day),
            financial_year=self.financial_year_for_date(day),
        )
