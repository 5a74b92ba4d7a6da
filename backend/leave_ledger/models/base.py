from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    return datetime.now(UTC)


def timestamp_field(*, on_update: bool = False, index: bool = False) -> Any:
    """Timezone-aware timestamp column defaulting to now, in Python and on the server."""
    column_kwargs: dict[str, Any] = {"server_default": sa.func.now()}
    if on_update:
        column_kwargs["onupdate"] = sa.func.now()
    return Field(
        default_factory=now_utc,
        index=index,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs=column_kwargs,
    )


class UUIDBase(SQLModel):
    """Base model with a random UUID primary key."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    created_at: datetime = timestamp_field()


class UpdatedAtMixin(SQLModel):
    """Adds ``updated_at`` (bumped by the database on every UPDATE)."""

    updated_at: datetime = timestamp_field(on_update=True)
