"""Seed script for development data.

Run with:  python -m leave_ledger.seed   (from backend/, with the API running)

The employee directory and attendance service are in-memory stubs, so the
seed has to be re-run whenever the API process restarts.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date

import httpx

BASE_URL = "http://localhost:8000"
ADMIN_USER_ID = "00000000-0000-0000-0000-000000000001"

HEADERS = {
    "Content-Type": "application/json",
    "X-User-Id": ADMIN_USER_ID,
    "X-Role": "super_admin",
}

SALES_DEPT_ID = "00000000-0000-0000-0000-0000000000d1"
WAREHOUSE_DEPT_ID = "00000000-0000-0000-0000-0000000000d2"

# Well-known employee UUIDs
ASHA_ID = "00000000-0000-0000-0000-000000000002"
RAVI_ID = "00000000-0000-0000-0000-000000000003"
MEERA_ID = "00000000-0000-0000-0000-000000000004"

EMPLOYEES = [
    {
        "id": ASHA_ID,
        "emp_no": "E001",
        "name": "Asha Rao",
        "joining_date": "2019-04-01",
        "department_id": SALES_DEPT_ID,
    },
    {
        "id": RAVI_ID,
        "emp_no": "E002",
        "name": "Ravi Kumar",
        "joining_date": "2026-01-10",
        "department_id": WAREHOUSE_DEPT_ID,
        "reporting_manager_ids": [ASHA_ID],
    },
    {
        "id": MEERA_ID,
        "emp_no": "E003",
        "name": "Meera Iyer",
        "joining_date": "2026-02-05",
        "department_id": WAREHOUSE_DEPT_ID,
    },
]

GLOBAL_SETTINGS = {
    "payroll": {"start_day": 26, "end_day": 25},
    "leave_policy": {
        "financial_year": {"use_calendar_year": True},
        "earned_leave": {
            "enabled": True,
            "earning_type": "attendance_based",
            "attendance_rules": {
                "min_days_for_first_el": 20,
                "days_per_el": 20,
                "max_el_per_month": 2,
                "consider_present_days": True,
                "consider_holidays": True,
            },
        },
        "compliance": {"consider_weekly_offs": True, "probation_period": {"months": 6}},
        "annual_cl_reset": {"enabled": True, "reset_to_balance": 12},
    },
}

DEPARTMENT_OVERRIDES = [
    (SALES_DEPT_ID, {"leaves": {"casual_leave_per_year": 15}}, "Sales: 15 CL per year"),
    (WAREHOUSE_DEPT_ID, {"leaves": {"ccl_expiry_months": 3}, "ot": {"ot_pay_per_hour": 150}}, "Warehouse: 3-month CCL"),
]

# (employee, cycle start, summary)
ATTENDANCE = [
    (ASHA_ID, "2026-01-26", {"present_days": "22", "weekly_offs": "4", "holidays": "1"}),
    (RAVI_ID, "2026-01-26", {"present_days": "18.5", "weekly_offs": "4"}),
    (MEERA_ID, "2026-01-26", {"present_days": "14", "weekly_offs": "2"}),
]

HOLIDAY_WORKED = date(2026, 1, 26)


async def _safe_post(client: httpx.AsyncClient, url: str, json: dict | None, label: str) -> dict | None:
    """POST with 409-conflict tolerance for idempotency."""
    resp = await client.post(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} (already exists)")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _safe_put(client: httpx.AsyncClient, url: str, json: dict | None, label: str) -> None:
    """PUT (upsert), naturally idempotent."""
    resp = await client.put(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201, 204):
        print(f"  [OK] {label}")
        return
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")


async def seed_settings(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding settings ---")
    for category, body in GLOBAL_SETTINGS.items():
        await _safe_put(client, f"{BASE_URL}/settings/global/{category}", body, f"Global {category}")
    for department_id, body, label in DEPARTMENT_OVERRIDES:
        await _safe_put(client, f"{BASE_URL}/settings/departments/{department_id}", body, label)


async def seed_employees(client: httpx.AsyncClient) -> None:
    """Seed the stub employee directory via PUT (upsert)."""
    print("\n--- Seeding employees ---")
    for emp in EMPLOYEES:
        body = {k: v for k, v in emp.items() if k != "id"}
        await _safe_put(client, f"{BASE_URL}/employees/{emp['id']}", body, f"{emp['emp_no']} {emp['name']}")


async def seed_attendance(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding attendance ---")
    for employee_id, cycle_start, summary in ATTENDANCE:
        await _safe_put(
            client,
            f"{BASE_URL}/attendance/{employee_id}/summaries/{cycle_start}",
            summary,
            f"Summary {employee_id[-4:]} cycle {cycle_start}",
        )
    day = HOLIDAY_WORKED.isoformat()
    await _safe_put(client, f"{BASE_URL}/attendance/{RAVI_ID}/days/{day}", None, f"Holiday {day} for Ravi")
    await _safe_put(
        client,
        f"{BASE_URL}/attendance/{RAVI_ID}/punches/{day}",
        {"in_time": f"{day}T09:05:00+05:30", "out_time": f"{day}T17:40:00+05:30", "total_hours": 8.5},
        f"Punches {day} for Ravi",
    )


async def seed_accruals(client: httpx.AsyncClient) -> None:
    """Run the February 2026 cycle (Jan 26 - Feb 25); re-runs are no-ops."""
    print("\n--- Running accruals ---")
    result = await _safe_post(client, f"{BASE_URL}/accruals/monthly?month=2&year=2026", None, "Monthly accrual 2/2026")
    if result:
        print(
            f"    processed={result['processed']} cl={result['cl_credits']} "
            f"el={result['el_credits']} skipped={result['skipped']} errors={len(result['errors'])}"
        )


async def seed_ccl(client: httpx.AsyncClient) -> None:
    """File and fully approve a CCL for Ravi's worked holiday."""
    print("\n--- Seeding CCL ---")
    grant = await _safe_post(
        client,
        f"{BASE_URL}/ccl",
        {
            "employee_id": RAVI_ID,
            "date_worked": HOLIDAY_WORKED.isoformat(),
            "assigned_by": ASHA_ID,
            "purpose": "Republic Day stock audit",
        },
        "CCL: Ravi worked on a holiday",
    )
    if grant is None:
        return
    for step in grant["approval_chain"]:
        await _safe_post(
            client,
            f"{BASE_URL}/ccl/{grant['id']}/approve",
            {"comments": "Seeded approval"},
            f"Approve step {step['step_order']} ({step['label']})",
        )


async def main() -> None:
    print("=" * 60)
    print("  Leave Ledger - Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        await seed_settings(client)
        await seed_employees(client)
        await seed_attendance(client)
        await seed_accruals(client)
        await seed_ccl(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
