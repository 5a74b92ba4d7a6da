import logging
from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.config import get_settings, local_today
from leave_ledger.db import SessionDep
from leave_ledger.models.ledger import LeaveLedgerTransaction

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class ScheduledJobs(BaseModel):
    accrual_enabled: bool
    annual_reset_enabled: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    database: Literal["ok", "unreachable"]
    business_date: date  # "today" as the scheduled jobs see it
    last_ledger_entry_at: datetime | None
    jobs: ScheduledJobs


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report service health; ``degraded`` when the ledger database is unreachable."""
    settings = get_settings()
    database: Literal["ok", "unreachable"] = "ok"
    last_entry: datetime | None = None

    try:
        result = await session.execute(select(func.max(col(LeaveLedgerTransaction.created_at))))
        last_entry = result.scalar_one_or_none()
    except Exception:
        logger.exception("Health check: ledger database query failed")
        database = "unreachable"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        business_date=local_today(),
        last_ledger_entry_at=last_entry,
        jobs=ScheduledJobs(
            accrual_enabled=settings.accrual_enabled,
            annual_reset_enabled=settings.annual_reset_enabled,
        ),
    )
