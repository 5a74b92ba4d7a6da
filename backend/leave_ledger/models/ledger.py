# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UUIDBase, timestamp_field
from leave_ledger.models.enums import TransactionStatus


class LeaveLedgerTransaction(UUIDBase, table=True):
    """Append-only ledger entry recording every balance-affecting leave event."""

    __tablename__ = "leave_ledger_transaction"
    __table_args__ = (
        sa.Index("ix_ledger_employee_leave_type", "employee_id", "leave_type"),
        sa.Index("ix_ledger_auto_generated", "employee_id", "leave_type", "auto_generated_type", "start_date"),
        sa.UniqueConstraint("source_type", "source_id", "transaction_type", name="uq_ledger_idempotency"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type: str = Field(max_length=10)
    transaction_type: str = Field(max_length=20)
    days: Decimal = Field(sa_type=sa.Numeric(10, 2))  # ty: ignore[invalid-argument-type]
    start_date: date
    end_date: date
    reason: str = Field(max_length=1000)
    status: str = Field(default=TransactionStatus.APPROVED, max_length=20)
    auto_generated: bool = False
    auto_generated_type: str | None = Field(default=None, max_length=50)
    source_type: str = Field(max_length=50)
    source_id: str = Field(max_length=255)
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = timestamp_field()
