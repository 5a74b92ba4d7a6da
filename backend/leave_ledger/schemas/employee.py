# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the stub directory."""

    emp_no: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    joining_date: date | None = None
    department_id: uuid.UUID | None = None
    division_id: uuid.UUID | None = None
    is_active: bool = True
    reporting_manager_ids: list[uuid.UUID] = []


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    emp_no: str
    name: str
    joining_date: date | None
    department_id: uuid.UUID | None
    division_id: uuid.UUID | None
    is_active: bool
    reporting_manager_ids: list[uuid.UUID]


class EmployeeListResponse(BaseModel):
    """List of active employees."""

    items: list[EmployeeResponse]
    total: int
