"""Tests for the stub employee directory and attendance seeding endpoints."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from leave_ledger.services.employee import set_employee_service

if TYPE_CHECKING:
    from httpx import AsyncClient

    from leave_ledger.services.attendance import InMemoryAttendanceService
    from leave_ledger.services.employee import InMemoryEmployeeService

ADMIN_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "super_admin"}


async def test_upsert_and_get_employee(async_client: AsyncClient, employees: InMemoryEmployeeService) -> None:
    employee_id = uuid.uuid4()
    body = {"emp_no": "E001", "name": "Asha Rao", "joining_date": "2019-04-01"}

    resp = await async_client.put(f"/employees/{employee_id}", json=body, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is True

    resp = await async_client.put(
        f"/employees/{employee_id}", json={**body, "name": "Asha R."}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200

    resp = await async_client.get(f"/employees/{employee_id}", headers=ADMIN_HEADERS)
    assert resp.json()["name"] == "Asha R."
    stored = await employees.get_employee(employee_id)
    assert stored is not None
    assert stored.joining_date == date(2019, 4, 1)


async def test_list_employees_skips_inactive(async_client: AsyncClient, employees: InMemoryEmployeeService) -> None:
    await async_client.put(f"/employees/{uuid.uuid4()}", json={"emp_no": "E002", "name": "B"}, headers=ADMIN_HEADERS)
    await async_client.put(
        f"/employees/{uuid.uuid4()}",
        json={"emp_no": "E001", "name": "A", "is_active": False},
        headers=ADMIN_HEADERS,
    )

    resp = await async_client.get("/employees", headers=ADMIN_HEADERS)

    assert resp.json()["total"] == 1
    assert resp.json()["items"][0]["emp_no"] == "E002"


async def test_get_unknown_employee(async_client: AsyncClient, employees: InMemoryEmployeeService) -> None:
    resp = await async_client.get(f"/employees/{uuid.uuid4()}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404


async def test_employee_reads_only_self(async_client: AsyncClient, employees: InMemoryEmployeeService) -> None:
    own_id = uuid.uuid4()
    await async_client.put(f"/employees/{own_id}", json={"emp_no": "E001", "name": "A"}, headers=ADMIN_HEADERS)
    headers = {"X-User-Id": str(uuid.uuid4()), "X-Role": "employee", "X-Employee-Id": str(own_id)}

    assert (await async_client.get(f"/employees/{own_id}", headers=headers)).status_code == 200
    assert (await async_client.get(f"/employees/{uuid.uuid4()}", headers=headers)).status_code == 403


async def test_upsert_requires_admin(async_client: AsyncClient, employees: InMemoryEmployeeService) -> None:
    headers = {"X-User-Id": str(uuid.uuid4()), "X-Role": "hr"}
    resp = await async_client.put(f"/employees/{uuid.uuid4()}", json={"emp_no": "E1", "name": "A"}, headers=headers)
    assert resp.status_code == 403


class _ReadOnlyDirectory:
    async def get_employee(self, employee_id: uuid.UUID) -> None:
        return None

    async def list_active_employees(self) -> list:
        return []


async def test_upsert_rejected_for_external_directory(
    async_client: AsyncClient, employees: InMemoryEmployeeService
) -> None:
    set_employee_service(_ReadOnlyDirectory())
    resp = await async_client.put(
        f"/employees/{uuid.uuid4()}", json={"emp_no": "E1", "name": "A"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 501


async def test_seed_attendance(async_client: AsyncClient, attendance: InMemoryAttendanceService) -> None:
    employee_id = uuid.uuid4()
    base = f"/attendance/{employee_id}"

    resp = await async_client.put(
        f"{base}/summaries/2026-01-26", json={"present_days": "21.5", "weekly_offs": "4"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 204
    assert (await async_client.put(f"{base}/days/2026-01-26", headers=ADMIN_HEADERS)).status_code == 204
    resp = await async_client.put(f"{base}/punches/2026-01-26", json={"total_hours": 6}, headers=ADMIN_HEADERS)
    assert resp.status_code == 204
    resp = await async_client.put(f"{base}/on-duty/2026-01-27", json={"is_half_day": True}, headers=ADMIN_HEADERS)
    assert resp.status_code == 204

    summary = await attendance.get_cycle_summary(employee_id, date(2026, 1, 26), date(2026, 2, 25))
    assert summary is not None
    assert summary.present_days == Decimal("21.5")
    assert await attendance.is_holiday_or_week_off(employee_id, date(2026, 1, 26)) is True
    punches = await attendance.get_punches(employee_id, date(2026, 1, 26))
    assert punches is not None
    assert punches.has_worked is True
    on_duty = await attendance.get_approved_on_duty(employee_id, date(2026, 1, 27))
    assert on_duty is not None
    assert on_duty.is_half_day is True
