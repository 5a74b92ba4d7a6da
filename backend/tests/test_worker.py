"""Tests for the scheduled job dispatcher."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leave_ledger import worker
from leave_ledger.models.enums import LeaveType
from leave_ledger.services import accrual
from leave_ledger.services.cycle import CycleResolver
from leave_ledger.services.employee import EmployeeInfo
from leave_ledger.services.ledger import get_balance

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from leave_ledger.services.employee import InMemoryEmployeeService

CYCLES = CycleResolver()


@pytest.fixture(autouse=True)
def _worker_sessions(engine: AsyncEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    factory = async_sessionmaker(engine, expire_on_commit=False)

    @asynccontextmanager
    async def _scope() -> AsyncIterator[AsyncSession]:
        async with factory() as session:
            yield session

    monkeypatch.setattr(worker, "session_scope", _scope)


@pytest.fixture
def staff(employees: InMemoryEmployeeService) -> EmployeeInfo:
    employee = EmployeeInfo(id=uuid.uuid4(), emp_no="E001", name="Asha", joining_date=date(2020, 1, 1))
    employees.seed(employee)
    return employee


async def test_accrual_runs_on_cycle_end(db_session: AsyncSession, staff: EmployeeInfo) -> None:
    await worker.run_daily_jobs(date(2026, 1, 31))
    assert await get_balance(db_session, CYCLES, staff.id, LeaveType.CL, date(2026, 1, 31)) == Decimal("1.0")


async def test_nothing_runs_mid_cycle(db_session: AsyncSession, staff: EmployeeInfo) -> None:
    await worker.run_daily_jobs(date(2026, 3, 14))
    assert await get_balance(db_session, CYCLES, staff.id, LeaveType.CL, date(2026, 3, 31)) == Decimal("0")


async def test_annual_reset_runs_on_reset_date(db_session: AsyncSession, staff: EmployeeInfo) -> None:
    await worker.run_daily_jobs(date(2026, 1, 1))
    assert await get_balance(db_session, CYCLES, staff.id, LeaveType.CL, date(2026, 1, 1)) == Decimal("12")


async def test_failed_job_is_logged(
    staff: EmployeeInfo,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _boom(*args: object, **kwargs: object) -> None:
        msg = "database went away"
        raise RuntimeError(msg)

    monkeypatch.setattr(accrual, "post_monthly_accruals", _boom)

    with caplog.at_level(logging.ERROR, logger="leave_ledger.worker"):
        await worker.run_daily_jobs(date(2026, 1, 31))

    assert "Monthly accrual run failed" in caplog.text
