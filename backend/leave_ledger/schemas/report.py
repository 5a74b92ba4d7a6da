# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from leave_ledger.schemas.ledger import LedgerTransactionResponse


class AuditLogEntryResponse(BaseModel):
    """Response schema for a single audit log entry."""

    id: uuid.UUID
    actor_id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Paginated list of audit log entries."""

    items: list[AuditLogEntryResponse]
    total: int


class EmployeeBalanceSummary(BaseModel):
    """Ledger balances for one employee.

    ``snapshot_drift`` is set when a cached snapshot disagrees with the ledger;
    reconcile the snapshot to repair it.
    """

    employee_id: uuid.UUID
    emp_no: str
    name: str
    department_id: uuid.UUID | None
    cl: Decimal
    el: Decimal
    ccl: Decimal
    snapshot_drift: bool


class BalanceSummaryResponse(BaseModel):
    """Balance summary across all active employees."""

    as_of: date
    items: list[EmployeeBalanceSummary]
    total: int


class LedgerExportResponse(BaseModel):
    """Paginated ledger export across employees."""

    items: list[LedgerTransactionResponse]
    total: int
