"""
Skill Portal Settings - Repository.

Database operations for `app_settings` and `app_settings_history`.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from skillportal.core.repository import BaseRepository


class SettingsRepository(BaseRepository[dict[str, Any]]):
    """Repository for the key/value settings table."""

    @property
    def table_name(self) -> str:
        return "app_settings"

    async def get_by_key(self, key: str) -> dict[str, Any] | None:
        """Read one setting fresh from the store."""
        response = self._execute(
            self.table.select("*").eq("key", key).limit(1),
            "select",
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def list_all(self) -> list[dict[str, Any]]:
        """List every setting ordered by key."""
        response = self._execute(self.table.select("*").order("key"), "select")
        return response.data or []

    async def compare_and_set(
        self,
        key: str,
        expected_value: str,
        new_value: str,
        updated_by: UUID | str,
        now: datetime,
    ) -> dict[str, Any] | None:
        """
        Write `new_value` only if the stored value is still `expected_value`.

        Returns the updated row, or None when another writer got there first.
        """
        rows = await self.update_where(
            {
                "value": new_value,
                "updated_by": str(updated_by),
                "updated_at": now.isoformat(),
            },
            {"key": key, "value": expected_value},
        )
        return rows[0] if rows else None


class SettingsHistoryRepository(BaseRepository[dict[str, Any]]):
    """
    Repository for settings versions.

    IMMUTABLE: Only INSERT operations allowed. Never UPDATE or DELETE.
    """

    @property
    def table_name(self) -> str:
        return "app_settings_history"

    async def list_history(
        self,
        setting_key: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """List versions newest first, optionally for one key."""
        query = self.table.select("*")
        if setting_key:
            query = query.eq("setting_key", setting_key)
        response = self._execute(
            query.order("created_at", desc=True).limit(limit),
            "select",
        )
        return response.data or []

    async def latest_for_key(self, setting_key: str) -> dict[str, Any] | None:
        """The newest version of a key (the one describing its current value)."""
        rows = await self.list_history(setting_key=setting_key, limit=1)
        return rows[0] if rows else None
