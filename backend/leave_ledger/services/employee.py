# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EmployeeInfo(BaseModel):
    """Employee metadata from the employee directory."""

    id: uuid.UUID
    emp_no: str
    name: str
    joining_date: date | None = None  # None is treated as joined before any cycle
    department_id: uuid.UUID | None = None
    division_id: uuid.UUID | None = None
    is_active: bool = True
    reporting_manager_ids: list[uuid.UUID] = []


@runtime_checkable
class EmployeeService(Protocol):
    """Interface for the employee directory."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        ...

    async def list_active_employees(self) -> list[EmployeeInfo]:
        """List employees that are currently active."""
        ...


class InMemoryEmployeeService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.id] = employee

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get(employee_id)

    async def list_active_employees(self) -> list[EmployeeInfo]:
        return sorted(
            (e for e in self._employees.values() if e.is_active),
            key=lambda e: e.emp_no,
        )


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """FastAPI dependency for the employee directory."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the service (for testing or production wiring)."""
    global _employee_service
    _employee_service = service
