"""Storage for global settings and department overrides."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import AuditAction, AuditEntityType, SettingsCategory
from leave_ledger.models.settings import DepartmentSettings, GlobalSettings
from leave_ledger.schemas.settings import DepartmentOverrides
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

_OVERRIDE_BLOCKS = ("leaves", "loans", "salary_advance", "permissions", "ot", "attendance")


@runtime_checkable
class ConfigRepository(Protocol):
    """Read access to configuration, injected into the settings cascade."""

    async def get_global(self, category: SettingsCategory) -> dict[str, Any] | None:
        """Raw settings for a global category, or None if never configured."""
        ...

    async def get_department_overrides(
        self,
        department_id: uuid.UUID,
        division_id: uuid.UUID | None = None,
    ) -> DepartmentOverrides | None:
        """Division-specific overrides if present, else the department-wide row."""
        ...


def _row_to_overrides(row: DepartmentSettings) -> DepartmentOverrides:
    return DepartmentOverrides.model_validate({block: getattr(row, block) for block in _OVERRIDE_BLOCKS})


class SqlConfigRepository:
    """ConfigRepository backed by the ``global_settings`` and ``department_settings`` tables."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_global(self, category: SettingsCategory) -> dict[str, Any] | None:
        result = await self._session.execute(
            select(GlobalSettings).where(col(GlobalSettings.category) == category.value)
        )
        row = result.scalar_one_or_none()
        return row.settings_json if row is not None else None

    async def get_department_overrides(
        self,
        department_id: uuid.UUID,
        division_id: uuid.UUID | None = None,
    ) -> DepartmentOverrides | None:
        if division_id is not None:
            row = await get_department_settings_row(self._session, department_id, division_id)
            if row is not None:
                return _row_to_overrides(row)
        row = await get_department_settings_row(self._session, department_id, None)
        return _row_to_overrides(row) if row is not None else None


class InMemoryConfigRepository:
    """In-memory ConfigRepository for development and tests."""

    def __init__(self) -> None:
        self._globals: dict[SettingsCategory, dict[str, Any]] = {}
        self._overrides: dict[tuple[uuid.UUID, uuid.UUID | None], DepartmentOverrides] = {}

    def set_global(self, category: SettingsCategory, settings: dict[str, Any]) -> None:
        self._globals[category] = settings

    def set_department_overrides(
        self,
        department_id: uuid.UUID,
        overrides: DepartmentOverrides,
        division_id: uuid.UUID | None = None,
    ) -> None:
        self._overrides[(department_id, division_id)] = overrides

    async def get_global(self, category: SettingsCategory) -> dict[str, Any] | None:
        return self._globals.get(category)

    async def get_department_overrides(
        self,
        department_id: uuid.UUID,
        division_id: uuid.UUID | None = None,
    ) -> DepartmentOverrides | None:
        if division_id is not None and (department_id, division_id) in self._overrides:
            return self._overrides[(department_id, division_id)]
        return self._overrides.get((department_id, None))


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def get_department_settings_row(
    session: AsyncSession,
    department_id: uuid.UUID,
    division_id: uuid.UUID | None,
) -> DepartmentSettings | None:
    division_filter = (
        col(DepartmentSettings.division_id).is_(None)
        if division_id is None
        else col(DepartmentSettings.division_id) == division_id
    )
    result = await session.execute(
        select(DepartmentSettings).where(
            col(DepartmentSettings.department_id) == department_id,
            division_filter,
        )
    )
    return result.scalar_one_or_none()


async def upsert_department_settings(
    session: AsyncSession,
    *,
    department_id: uuid.UUID,
    division_id: uuid.UUID | None,
    overrides: DepartmentOverrides,
    actor_id: uuid.UUID,
) -> DepartmentSettings:
    """Create or update one override row. Blocks omitted from the payload are kept."""
    row = await get_department_settings_row(session, department_id, division_id)
    before = model_to_audit_dict(row) if row is not None else None
    if row is None:
        row = DepartmentSettings(department_id=department_id, division_id=division_id)
        session.add(row)

    for block in overrides.model_fields_set:
        value = getattr(overrides, block)
        setattr(row, block, value.model_dump(mode="json") if value is not None else None)
    row.updated_by = actor_id
    row.updated_at = now_utc()
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.DEPARTMENT_SETTINGS,
        entity_id=row.id,
        action=AuditAction.CREATE if before is None else AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(row),
    )
    await session.commit()
    await session.refresh(row)
    return row


async def upsert_global_settings(
    session: AsyncSession,
    *,
    category: SettingsCategory,
    settings_json: dict[str, Any],
    actor_id: uuid.UUID,
) -> GlobalSettings:
    """Replace the stored settings of a global category."""
    result = await session.execute(select(GlobalSettings).where(col(GlobalSettings.category) == category.value))
    row = result.scalar_one_or_none()
    before = model_to_audit_dict(row) if row is not None else None
    if row is None:
        row = GlobalSettings(category=category.value)
        session.add(row)
    row.settings_json = settings_json
    row.updated_by = actor_id
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.GLOBAL_SETTINGS,
        entity_id=row.id,
        action=AuditAction.CREATE if before is None else AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(row),
    )
    await session.commit()
    await session.refresh(row)
    return row
