# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase
from leave_ledger.models.enums import CCLStatus


class CCLGrant(UUIDBase, TimestampMixin, table=True):
    """Compensatory casual leave claimed for working a holiday or week-off.

    ``approval_chain`` and ``history`` are JSON lists; assign a new list when
    changing them so the ORM notices the mutation.
    """

    __tablename__ = "ccl_grant"
    __table_args__ = (
        sa.Index("ix_ccl_employee_date", "employee_id", "date_worked"),
        sa.Index("ix_ccl_status_date", "status", "date_worked"),
    )

    employee_id: uuid.UUID = Field(index=True)
    emp_no: str | None = Field(default=None, max_length=50)
    date_worked: date
    is_half_day: bool = False
    half_day_type: str | None = Field(default=None, max_length=20)
    assigned_by: uuid.UUID
    purpose: str = Field(max_length=500)
    status: str = Field(default=CCLStatus.DRAFT, max_length=50, index=True)
    approval_chain: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    history: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    reporting_manager_ids: list[str] = Field(default_factory=list, sa_type=sa.JSON)
    in_time: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    out_time: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    total_hours: float | None = None
    attendance_note: str | None = Field(default=None, max_length=500)
    department_id: uuid.UUID | None = None
    division_id: uuid.UUID | None = None
    applied_by: uuid.UUID
    applied_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    decided_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    is_expired: bool = False
    is_used: bool = False
