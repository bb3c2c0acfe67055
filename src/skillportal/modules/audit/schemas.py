"""
Skill Portal Audit - Schemas.

Pydantic models for the append-only administrative action log.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


ActionLogType = Literal[
    "update_system_setting",
    "update_registration_fee",
    "approve_action",
    "schedule_pending_action",
    "cancel_pending_action",
    "execute_pending_action",
    "expire_pending_action",
    "pending_action_failed",
    "rollback_setting",
    "reauth_failed",
]


class ActionLogEntry(BaseModel):
    """Single action log record (immutable)."""

    id: UUID
    actor_id: UUID
    action_type: str
    target_table: str
    target_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ActionLogListResponse(BaseModel):
    """Newest-first slice of the action log."""

    items: list[ActionLogEntry]
    count: int
    pending_outbox: int = Field(
        default=0,
        description="Audit records that failed to write and are waiting for a retry",
    )
