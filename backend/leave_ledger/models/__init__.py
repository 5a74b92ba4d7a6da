from sqlmodel import SQLModel

from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LIFETIME_PERIOD, LeaveBalanceSnapshot
from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.ccl import CCLGrant
from leave_ledger.models.enums import (
    ApproverRole,
    AuditAction,
    AuditEntityType,
    AutoGeneratedType,
    CCLStatus,
    EarningType,
    HalfDayType,
    LeaveType,
    LedgerSourceType,
    SettingsCategory,
    StepStatus,
    TransactionType,
)
from leave_ledger.models.ledger import LeaveLedgerTransaction
from leave_ledger.models.settings import DepartmentSettings, GlobalSettings

__all__ = [
    "LIFETIME_PERIOD",
    "ApproverRole",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "AutoGeneratedType",
    "CCLGrant",
    "CCLStatus",
    "DepartmentSettings",
    "EarningType",
    "GlobalSettings",
    "HalfDayType",
    "LeaveBalanceSnapshot",
    "LeaveLedgerTransaction",
    "LeaveType",
    "LedgerSourceType",
    "SQLModel",
    "SettingsCategory",
    "StepStatus",
    "TimestampMixin",
    "TransactionType",
    "UUIDBase",
    "UpdatedAtMixin",
]
