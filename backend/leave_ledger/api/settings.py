# ruff: noqa: B008, TC001, TC003
"""API endpoints for global settings and department overrides."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Query, status
from pydantic import ValidationError

from leave_ledger.api.deps import AdminDep, AuthDep, ConfigRepoDep
from leave_ledger.db import SessionDep
from leave_ledger.exceptions import AppError
from leave_ledger.models.enums import SettingsCategory
from leave_ledger.schemas.settings import DepartmentOverrides, DepartmentSettingsResponse
from leave_ledger.services.config_repository import upsert_department_settings, upsert_global_settings
from leave_ledger.services.settings_cascade import GLOBAL_CATEGORY_MODELS, RESOLVABLE_CATEGORIES, SettingsCascade

settings_router = APIRouter(prefix="/settings", tags=["settings"])


@settings_router.get("/resolved/{category}")
async def get_resolved_settings(
    category: str,
    auth: AuthDep,
    repository: ConfigRepoDep,
    department_id: uuid.UUID | None = Query(default=None),
    division_id: uuid.UUID | None = Query(default=None),
) -> dict[str, Any]:
    """Effective settings for a category after applying the override cascade."""
    if category not in RESOLVABLE_CATEGORIES:
        msg = f"Unknown settings category '{category}'"
        raise AppError(msg, status_code=status.HTTP_404_NOT_FOUND)
    resolved = await SettingsCascade(repository).resolve_category(category, department_id, division_id)
    return resolved.model_dump(mode="json")


@settings_router.put("/departments/{department_id}", response_model=DepartmentSettingsResponse)
async def put_department_settings(
    department_id: uuid.UUID,
    payload: DepartmentOverrides,
    session: SessionDep,
    auth: AdminDep,
    division_id: uuid.UUID | None = Query(default=None),
) -> DepartmentSettingsResponse:
    """Create or update department (or division) overrides. Omitted blocks are kept."""
    row = await upsert_department_settings(
        session,
        department_id=department_id,
        division_id=division_id,
        overrides=payload,
        actor_id=auth.user_id,
    )
    return DepartmentSettingsResponse.model_validate(row, from_attributes=True)


@settings_router.put("/global/{category}")
async def put_global_settings(
    category: SettingsCategory,
    session: SessionDep,
    auth: AdminDep,
    payload: dict[str, Any] = Body(),
) -> dict[str, Any]:
    """Replace a global settings category after validating it against its schema."""
    try:
        validated = GLOBAL_CATEGORY_MODELS[category].model_validate(payload)
    except ValidationError as exc:
        raise AppError(f"Invalid {category.value} settings: {exc.error_count()} error(s)", status_code=422) from exc
    row = await upsert_global_settings(
        session,
        category=category,
        settings_json=validated.model_dump(mode="json"),
        actor_id=auth.user_id,
    )
    return {"category": row.category, "settings": row.settings_json}
