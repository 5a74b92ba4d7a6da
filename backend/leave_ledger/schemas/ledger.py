# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from leave_ledger.models.enums import AutoGeneratedType, LeaveType, LedgerSourceType, TransactionType

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class LeaveBalance(BaseModel):
    """Balance for one leave type as of a date."""

    leave_type: LeaveType
    balance: Decimal
    period_key: str
    snapshot_balance: Decimal | None


class BalanceListResponse(BaseModel):
    """All leave balances for an employee."""

    employee_id: uuid.UUID
    as_of: date
    items: list[LeaveBalance]


# ---------------------------------------------------------------------------
# Ledger schemas
# ---------------------------------------------------------------------------


class LedgerEntry(BaseModel):
    """Input for appending one ledger transaction."""

    employee_id: uuid.UUID
    leave_type: LeaveType
    transaction_type: TransactionType
    days: Decimal
    start_date: date
    end_date: date | None = None
    reason: str = Field(min_length=1, max_length=1000)
    auto_generated_type: AutoGeneratedType | None = None
    source_type: LedgerSourceType = LedgerSourceType.SYSTEM
    source_id: str = Field(min_length=1, max_length=255)
    metadata_json: dict[str, Any] | None = None


class LedgerTransactionResponse(BaseModel):
    """A single ledger transaction."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    transaction_type: TransactionType
    days: Decimal
    start_date: date
    end_date: date
    reason: str
    status: str
    auto_generated: bool
    auto_generated_type: AutoGeneratedType | None
    source_type: LedgerSourceType
    source_id: str
    metadata_json: dict[str, Any] | None
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger transactions."""

    items: list[LedgerTransactionResponse]
    total: int


# ---------------------------------------------------------------------------
# Adjustment request schema
# ---------------------------------------------------------------------------


class CreateAdjustmentRequest(BaseModel):
    """Request body for creating an admin balance adjustment."""

    employee_id: uuid.UUID
    leave_type: LeaveType
    days: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Signed amount: positive to add, negative to deduct",
    )
    reason: str = Field(min_length=1, max_length=1000)
    effective_date: date | None = None
