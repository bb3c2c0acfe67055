"""
Skill Portal Settings History - Schemas.
"""

from typing import Literal

from pydantic import BaseModel, Field

from skillportal.modules.settings.schemas import SettingChange, SettingsHistoryEntry

RestoreMode = Literal["previous_value", "version_value"]


class SettingsHistoryResponse(BaseModel):
    """Settings versions, newest first."""

    items: list[SettingsHistoryEntry]
    count: int
    setting_key: str | None = None


class RollbackRequest(BaseModel):
    """Request to restore a setting from one of its versions."""

    restore: RestoreMode = Field(
        default="previous_value",
        description="previous_value restores what the version replaced; version_value restores what it set",
    )
    password: str | None = Field(default=None, description="Required for settings guarded by dangerous actions")
    reason: str | None = Field(default=None, max_length=2000)


class RollbackResult(BaseModel):
    """Outcome of a rollback."""

    change: SettingChange
    rolled_back_from: SettingsHistoryEntry
    restore: RestoreMode
    fallback_to_new_value: bool = False
