"""
Skill Portal Pending Actions - Schemas.

Pydantic models for delayed (tier3) actions awaiting execution.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from skillportal.catalog import ActionTier


PendingActionStatus = Literal["pending", "executed", "cancelled", "expired"]


class PendingAction(BaseModel):
    """One row of `pending_actions`.

    Status only ever moves pending -> executed | cancelled | expired.
    """

    id: UUID
    actor_id: UUID
    action_type: str
    action_tier: ActionTier
    payload: dict[str, Any] = Field(default_factory=dict)
    target_table: str | None = None
    target_id: str | None = None
    justification: str
    scheduled_for: datetime
    status: PendingActionStatus
    executed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_reason: str | None = None
    execution_error: str | None = Field(
        default=None,
        description="Error code when the mutation failed after the action was claimed",
    )
    affected_users_count: int = 0
    created_at: datetime


class PendingActionView(PendingAction):
    """Pending action decorated for the operator console."""

    label: str
    tier_label: str
    time_remaining_seconds: int = Field(ge=0)
    time_remaining_display: str
    mutation_applied: bool | None = Field(
        default=None,
        description="For executed actions, whether the change actually took effect",
    )


class PendingActionListResponse(BaseModel):
    """Queue split into actions still waiting and recent finished ones."""

    pending: list[PendingActionView]
    history: list[PendingActionView]
    poll_interval_seconds: int


class CancelPendingActionRequest(BaseModel):
    """Request to cancel a pending action."""

    reason: str | None = Field(default=None, max_length=500)
