# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class DepartmentSettings(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Department (optionally division-specific) overrides of the global settings.

    Each category is a JSON block of nullable leaf fields; ``null`` means inherit.
    A row with ``division_id`` NULL applies department-wide.
    """

    __tablename__ = "department_settings"
    __table_args__ = (sa.UniqueConstraint("department_id", "division_id", name="uq_department_division_settings"),)

    department_id: uuid.UUID = Field(index=True)
    division_id: uuid.UUID | None = Field(default=None, index=True)
    leaves: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    loans: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    salary_advance: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    permissions: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    ot: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    attendance: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    updated_by: uuid.UUID | None = None


class GlobalSettings(UUIDBase, TimestampMixin, table=True):
    """Organisation-wide defaults for one settings category."""

    __tablename__ = "global_settings"
    __table_args__ = (sa.UniqueConstraint("category", name="uq_global_settings_category"),)

    category: str = Field(max_length=50)
    settings_json: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    updated_by: uuid.UUID | None = None
