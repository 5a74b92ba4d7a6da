# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, status

from leave_ledger.db import SessionDep
from leave_ledger.exceptions import AppError
from leave_ledger.schemas.auth import HR_ROLES, AuthContext
from leave_ledger.services.config_repository import ConfigRepository, SqlConfigRepository


def _parse_department_ids(raw: str | None) -> list[uuid.UUID]:
    if not raw:
        return []
    try:
        return [uuid.UUID(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise AppError("X-Department-Ids must be comma separated UUIDs", status_code=400) from exc


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default="employee"),
    x_employee_id: uuid.UUID | None = Header(default=None),
    x_department_ids: str | None = Header(default=None),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(
        user_id=x_user_id,
        role=x_role,
        employee_id=x_employee_id,
        department_ids=_parse_department_ids(x_department_ids),
    )


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require a global admin role for the request."""
    if not auth.is_admin:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


def ensure_employee_access(auth: AuthContext, employee_id: uuid.UUID) -> None:
    """Plain employees may only read their own records."""
    if auth.role in HR_ROLES or auth.role in ("hod", "manager"):
        return
    if auth.employee_id != employee_id:
        raise AppError("Not allowed to view this employee", status_code=status.HTTP_403_FORBIDDEN)


async def get_config_repository(session: SessionDep) -> ConfigRepository:
    """Configuration source injected into services."""
    return SqlConfigRepository(session)


ConfigRepoDep = Annotated[ConfigRepository, Depends(get_config_repository)]


async def require_hr(
    auth: AuthDep,
) -> AuthContext:
    """Require HR or a global admin role."""
    if auth.role not in HR_ROLES:
        raise AppError("HR access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


HRDep = Annotated[AuthContext, Depends(require_hr)]
