"""
Skill Portal Pending Actions - Repository.

Database operations for `pending_actions`. Status changes are conditional
on the row still being pending.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from skillportal.core.repository import BaseRepository


class PendingActionRepository(BaseRepository[dict[str, Any]]):
    """Repository for delayed actions."""

    @property
    def table_name(self) -> str:
        return "pending_actions"

    async def list_pending(self) -> list[dict[str, Any]]:
        """Every pending action, soonest first."""
        response = self._execute(
            self.table.select("*").eq("status", "pending").order("scheduled_for"),
            "select",
        )
        return response.data or []

    async def list_finished(self, limit: int) -> list[dict[str, Any]]:
        """Executed, cancelled or expired actions, latest scheduled first."""
        response = self._execute(
            self.table.select("*").neq("status", "pending").order("scheduled_for", desc=True).limit(limit),
            "select",
        )
        return response.data or []

    async def list_due(self, now: datetime) -> list[dict[str, Any]]:
        """Pending actions whose scheduled time has arrived."""
        response = self._execute(
            self.table.select("*")
            .eq("status", "pending")
            .lte("scheduled_for", now.isoformat())
            .order("scheduled_for"),
            "select",
        )
        return response.data or []

    async def transition(
        self,
        action_id: UUID | str,
        status: str,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        Move a pending action to `status`.

        Returns the updated row, or None if the row was no longer pending.
        """
        rows = await self.update_where(
            {"status": status, **(extra or {})},
            {"id": str(action_id), "status": "pending"},
        )
        return rows[0] if rows else None

    async def record_failure(self, action_id: UUID | str, error_code: str) -> dict[str, Any] | None:
        """Note on an executed action that its mutation did not take effect."""
        rows = await self.update_where(
            {"execution_error": error_code},
            {"id": str(action_id), "status": "executed"},
        )
        return rows[0] if rows else None
