"""
Skill Portal Safe Actions - Schemas.

Pydantic models for tiered administrative action requests and results.
"""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from skillportal.catalog import ActionDescriptor
from skillportal.modules.pending_actions.schemas import PendingAction


SafeActionStatus = Literal["completed", "scheduled", "approved"]


class SafeActionRequest(BaseModel):
    """
    Request to perform an administrative action.

    For settings changes `action_id` may be omitted; it is derived from the
    setting and the proposed value.
    """

    action_id: str | None = Field(default=None, max_length=100)
    setting_key: str | None = Field(default=None, max_length=100)
    new_value: str | None = Field(default=None, max_length=1000)
    expected_value: str | None = Field(
        default=None,
        max_length=1000,
        description="Value the operator saw; the change is refused if it has moved on",
    )
    justification: str = Field(default="", max_length=2000)
    password: str | None = Field(default=None, description="Required for dangerous actions")
    target_table: str | None = None
    target_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    affected_users_count: int = Field(default=0, ge=0)


class SafeActionResult(BaseModel):
    """Outcome of a safe-action request."""

    status: SafeActionStatus
    action: ActionDescriptor
    setting_key: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    history_entry_id: UUID | None = None
    pending_action: PendingAction | None = None
    message: str


class ActionCatalogResponse(BaseModel):
    """The full action catalog."""

    items: list[ActionDescriptor]
    count: int


class RunDueSummary(BaseModel):
    """What one executor tick did."""

    executed: list[UUID] = Field(default_factory=list)
    expired: list[UUID] = Field(default_factory=list)
    failed: list[UUID] = Field(default_factory=list)
    skipped: list[UUID] = Field(default_factory=list)
    outbox_flushed: int = 0
    outbox_remaining: int = 0
