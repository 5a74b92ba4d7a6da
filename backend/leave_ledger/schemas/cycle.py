from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class PayrollCycle(BaseModel):
    """Inclusive date range of a payroll cycle and its (month, year) label."""

    start_date: date
    end_date: date
    month: int
    year: int
    is_custom_cycle: bool

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class FinancialYear(BaseModel):
    """Inclusive date range of a financial year."""

    start_date: date
    end_date: date
    year: int
    label: str
    is_custom_year: bool


class PeriodInfo(BaseModel):
    """Payroll cycle and financial year containing a date."""

    as_of: date
    payroll_cycle: PayrollCycle
    financial_year: FinancialYear
