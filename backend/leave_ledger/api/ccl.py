# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AuthDep, ConfigRepoDep
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import CCLStatus, HalfDayType
from leave_ledger.schemas.ccl import (
    CCLActionRequest,
    CCLGrantResponse,
    CCLListResponse,
    CreateCCLRequest,
    DateValidationResponse,
)
from leave_ledger.services import ccl as ccl_service

ccl_router = APIRouter(prefix="/ccl", tags=["ccl"])


@ccl_router.post("", response_model=CCLGrantResponse, status_code=status.HTTP_201_CREATED)
async def create_ccl(
    payload: CreateCCLRequest,
    session: SessionDep,
    auth: AuthDep,
    repository: ConfigRepoDep,
) -> CCLGrantResponse:
    """File a CCL grant for a worked holiday or week-off (optionally as a draft)."""
    return await ccl_service.create_grant(session, payload, auth, repository=repository)


@ccl_router.get("", response_model=CCLListResponse)
async def list_ccl(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    ccl_status: CCLStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> CCLListResponse:
    return await ccl_service.list_grants(
        session, auth, employee_id=employee_id, status=ccl_status, offset=offset, limit=limit
    )


@ccl_router.get("/validate-date", response_model=DateValidationResponse)
async def validate_ccl_date(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID = Query(),
    on: date = Query(alias="date"),
    is_half_day: bool = Query(default=False),
    half_day_type: HalfDayType | None = Query(default=None),
) -> DateValidationResponse:
    """Check whether a CCL could be filed for a date without filing it."""
    return await ccl_service.validate_date(
        session, employee_id, on, is_half_day=is_half_day, half_day_type=half_day_type
    )


@ccl_router.get("/{grant_id}", response_model=CCLGrantResponse)
async def get_ccl(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> CCLGrantResponse:
    return await ccl_service.get_grant(session, grant_id, auth)


@ccl_router.post("/{grant_id}/submit", response_model=CCLGrantResponse)
async def submit_ccl(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> CCLGrantResponse:
    return await ccl_service.submit_grant(session, grant_id, auth)


@ccl_router.post("/{grant_id}/approve", response_model=CCLGrantResponse)
async def approve_ccl(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    repository: ConfigRepoDep,
    payload: CCLActionRequest | None = None,
) -> CCLGrantResponse:
    """Approve the active step; the final approval credits the CCL."""
    comments = payload.comments if payload else None
    return await ccl_service.approve_grant(session, grant_id, auth, comments, repository=repository)


@ccl_router.post("/{grant_id}/reject", response_model=CCLGrantResponse)
async def reject_ccl(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: CCLActionRequest | None = None,
) -> CCLGrantResponse:
    return await ccl_service.reject_grant(session, grant_id, auth, payload.comments if payload else None)


@ccl_router.post("/{grant_id}/cancel", response_model=CCLGrantResponse)
async def cancel_ccl(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: CCLActionRequest | None = None,
) -> CCLGrantResponse:
    return await ccl_service.cancel_grant(session, grant_id, auth, payload.comments if payload else None)


@ccl_router.post("/{grant_id}/use", response_model=CCLGrantResponse)
async def use_ccl(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    repository: ConfigRepoDep,
    used_on: date | None = Query(default=None),
) -> CCLGrantResponse:
    """Consume an approved CCL and debit the ledger."""
    return await ccl_service.use_grant(session, grant_id, auth, used_on, repository=repository)
