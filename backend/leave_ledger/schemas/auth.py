# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

GLOBAL_ADMIN_ROLES = frozenset({"super_admin", "sub_admin"})
HR_ROLES = frozenset({"hr", *GLOBAL_ADMIN_ROLES})


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    role: str = "employee"
    employee_id: uuid.UUID | None = None
    department_ids: list[uuid.UUID] = []

    @property
    def is_admin(self) -> bool:
        return self.role in GLOBAL_ADMIN_ROLES
