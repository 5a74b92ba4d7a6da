# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from leave_ledger.models.base import timestamp_field

LIFETIME_PERIOD = "LIFETIME"


class LeaveBalanceSnapshot(SQLModel, table=True):
    """Derived balance cache updated transactionally with ledger writes.

    CL balances are kept per financial year (``period_key`` is the FY label);
    EL and CCL balances are lifetime running totals.
    """

    __tablename__ = "leave_balance_snapshot"
    __table_args__ = (sa.PrimaryKeyConstraint("employee_id", "leave_type", "period_key"),)

    employee_id: uuid.UUID = Field(index=True)
    leave_type: str = Field(max_length=10)
    period_key: str = Field(max_length=20)
    balance: Decimal = Field(
        default=Decimal("0"),
        sa_type=sa.Numeric(10, 2),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": "0"},
    )
    updated_at: datetime = timestamp_field(on_update=True)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
