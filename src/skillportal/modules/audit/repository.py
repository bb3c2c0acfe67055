"""
Skill Portal Audit - Repository.

Database operations for action logs. IMMUTABLE - only INSERT, never UPDATE/DELETE.
"""

from typing import Any
from uuid import UUID

from skillportal.core.repository import BaseRepository


class ActionLogRepository(BaseRepository[dict[str, Any]]):
    """
    Repository for `action_logs`.

    IMMUTABLE: Only INSERT operations allowed. Never UPDATE or DELETE.
    """

    @property
    def table_name(self) -> str:
        return "action_logs"

    async def list_logs(
        self,
        action_type: str | None = None,
        actor_id: UUID | None = None,
        target_id: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """List action logs newest first with optional filters."""
        query = self.table.select("*")

        if action_type:
            query = query.eq("action_type", action_type)
        if actor_id:
            query = query.eq("actor_id", str(actor_id))
        if target_id:
            query = query.eq("target_id", target_id)

        response = self._execute(
            query.order("created_at", desc=True).limit(limit),
            "select",
        )
        return response.data or []

    # NOTE: No update_where() callers - action logs are immutable
