"""Skill Portal Auth - role lookup.

Supabase access tokens only carry the Postgres role (`authenticated`); the
portal role lives in `user_roles(user_id, role)`. A user may hold several
rows; callers use the highest.
"""

from __future__ import annotations

from uuid import UUID

from skillportal.auth.schemas import ROLE_HIERARCHY
from skillportal.core.repository import BaseRepository


class RolesRepository(BaseRepository[dict]):
    """Read-only access to `user_roles`."""

    @property
    def table_name(self) -> str:
        return "user_roles"

    async def get_roles(self, user_id: UUID) -> list[str]:
        response = self._execute(
            self.table.select("role").eq("user_id", str(user_id)),
            "select",
        )
        roles = [row["role"] for row in response.data or [] if row.get("role") in ROLE_HIERARCHY]
        return sorted(set(roles), key=lambda r: ROLE_HIERARCHY[r], reverse=True)


def get_roles_repository() -> RolesRepository:
    return RolesRepository()
