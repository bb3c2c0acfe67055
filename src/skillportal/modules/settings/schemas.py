"""
Skill Portal Settings - Schemas.

Pydantic models for the key/value settings table and its version history.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from skillportal.catalog import ActionTier


class Setting(BaseModel):
    """One row of `app_settings`."""

    key: str
    value: str
    description: str | None = None
    updated_by: UUID | None = None
    updated_at: datetime | None = None
    tier: ActionTier = Field(..., description="Highest tier a change to this setting requires")
    tier_label: str


class SettingsListResponse(BaseModel):
    """All settings plus the two emergency flags callers check first."""

    items: list[Setting]
    system_frozen: bool
    maintenance_mode: bool


class SettingsHistoryEntry(BaseModel):
    """One row of `app_settings_history` (append-only)."""

    id: UUID
    setting_key: str
    old_value: str | None = None
    new_value: str
    changed_by: UUID | None = None
    change_reason: str | None = None
    is_rollback: bool = False
    rolled_back_from: UUID | None = None
    created_at: datetime


class SettingChange(BaseModel):
    """Outcome of one applied settings mutation."""

    setting_key: str
    old_value: str
    new_value: str
    history_entry: SettingsHistoryEntry
