"""
Skill Portal Pending Actions - Service.

Queue of delayed actions: scheduling, listing with time remaining, and
operator cancellation. Execution lives with the safe-action executor.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from fastapi.encoders import jsonable_encoder

from skillportal.auth.schemas import User
from skillportal.catalog import ActionDescriptor, lookup
from skillportal.config import Settings, get_settings
from skillportal.exceptions import InvalidStateException, PersistenceException
from skillportal.modules.audit.service import AuditService
from skillportal.modules.pending_actions.repository import PendingActionRepository
from skillportal.modules.pending_actions.schemas import (
    PendingAction,
    PendingActionListResponse,
    PendingActionView,
)

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "No reason provided"


def time_remaining(action: PendingAction, now: datetime | None = None) -> timedelta:
    """Time until the action is due, never negative."""
    if now is None:
        now = datetime.now(timezone.utc)
    remaining = action.scheduled_for - now
    return max(remaining, timedelta(0))


def format_time_remaining(remaining: timedelta) -> str:
    """Render a countdown as "4m 12s", "12s" or "Executing..." once due."""
    total = int(remaining.total_seconds())
    if total <= 0:
        return "Executing..."
    minutes, seconds = divmod(total, 60)
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class PendingActionQueue:
    """Service for the delayed-action queue."""

    def __init__(
        self,
        repository: PendingActionRepository | None = None,
        audit: AuditService | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository or PendingActionRepository()
        self.settings = settings or get_settings()
        self.audit = audit or AuditService(settings=self.settings)

    async def schedule(
        self,
        descriptor: ActionDescriptor,
        actor_id: UUID | str,
        justification: str,
        payload: dict[str, Any],
        *,
        target_table: str | None = None,
        target_id: str | None = None,
        affected_users_count: int = 0,
        now: datetime | None = None,
    ) -> PendingAction:
        """Insert a pending action due `descriptor.delay_minutes` from now."""
        if now is None:
            now = datetime.now(timezone.utc)

        record = {
            "id": str(uuid4()),
            "actor_id": str(actor_id),
            "action_type": descriptor.action_id,
            "action_tier": descriptor.tier,
            "payload": jsonable_encoder(payload),
            "target_table": target_table,
            "target_id": target_id,
            "justification": justification,
            "scheduled_for": (now + timedelta(minutes=descriptor.delay_minutes)).isoformat(),
            "status": "pending",
            "affected_users_count": affected_users_count,
        }

        created = await self.repository.create(record)
        logger.info(
            f"Scheduled '{descriptor.action_id}' ({created['id']}) for {record['scheduled_for']} by {actor_id}"
        )
        return self.to_action(created)

    async def list_split(self, now: datetime | None = None) -> PendingActionListResponse:
        """List actions split into waiting ones and recent history."""
        if now is None:
            now = datetime.now(timezone.utc)

        pending = [self.to_view(self.to_action(row), now) for row in await self.repository.list_pending()]

        rows = await self.repository.list_finished(self.settings.safe_actions.recent_history_limit)
        finished = [self.to_action(row) for row in rows]
        finished.sort(key=lambda a: a.executed_at or a.cancelled_at or a.scheduled_for, reverse=True)
        history = [self.to_view(a, now) for a in finished]

        return PendingActionListResponse(
            pending=pending,
            history=history,
            poll_interval_seconds=self.settings.safe_actions.poll_interval_seconds,
        )

    async def get(self, action_id: UUID | str) -> PendingAction:
        row = await self.repository.get_by_id_or_raise(action_id)
        return self.to_action(row)

    async def list_due(self, now: datetime) -> list[PendingAction]:
        rows = await self.repository.list_due(now)
        return [self.to_action(row) for row in rows]

    async def cancel(
        self,
        action_id: UUID | str,
        reason: str | None,
        actor: User,
        now: datetime | None = None,
    ) -> PendingAction:
        """
        Cancel a pending action before it is due.

        The persisted row is re-read here; the caller's copy may be stale.

        Raises:
            NotFoundException: No such action
            InvalidStateException: Already executed, cancelled, expired or due
        """
        if now is None:
            now = datetime.now(timezone.utc)

        action = await self.get(action_id)
        if action.status != "pending":
            raise InvalidStateException(
                f"Action is already {action.status}",
                current_state=action.status,
                target_state="cancelled",
            )
        if now >= action.scheduled_for:
            raise InvalidStateException(
                "Action is due and can no longer be cancelled",
                current_state="executing",
                target_state="cancelled",
            )

        reason = (reason or "").strip() or DEFAULT_CANCEL_REASON
        row = await self.repository.transition(
            action.id,
            "cancelled",
            {"cancelled_at": now.isoformat(), "cancelled_reason": reason},
        )
        if row is None:
            # Lost the race against the executor or another operator
            latest = await self.get(action.id)
            raise InvalidStateException(
                f"Action is already {latest.status}",
                current_state=latest.status,
                target_state="cancelled",
            )

        cancelled = self.to_action(row)
        logger.info(f"Pending action {cancelled.id} ('{cancelled.action_type}') cancelled by {actor.id}")

        await self.audit.log_action(
            actor.id,
            "cancel_pending_action",
            self.repository.table_name,
            str(cancelled.id),
            {
                "action_type": cancelled.action_type,
                "reason": reason,
                "scheduled_for": cancelled.scheduled_for,
            },
        )
        return cancelled

    async def mark(
        self,
        action: PendingAction,
        status: str,
        now: datetime,
    ) -> PendingAction:
        """
        Move a pending action to executed or expired.

        Raises:
            InvalidStateException: The row was no longer pending
        """
        extra = {"executed_at": now.isoformat()} if status == "executed" else {}
        row = await self.repository.transition(action.id, status, extra)
        if row is None:
            latest = await self.get(action.id)
            raise InvalidStateException(
                f"Action is already {latest.status}",
                current_state=latest.status,
                target_state=status,
            )
        return self.to_action(row)

    async def record_failure(self, action: PendingAction, error_code: str) -> None:
        """Flag a claimed action whose mutation failed."""
        try:
            await self.repository.record_failure(action.id, error_code)
        except PersistenceException as e:
            logger.error(f"Could not flag pending action {action.id} as failed: {e.message}")

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def to_action(data: dict[str, Any]) -> PendingAction:
        """Convert database record to PendingAction."""
        return PendingAction(
            id=data["id"],
            actor_id=data["actor_id"],
            action_type=data["action_type"],
            action_tier=data["action_tier"],
            payload=data.get("payload") or {},
            target_table=data.get("target_table"),
            target_id=data.get("target_id"),
            justification=data["justification"],
            scheduled_for=data["scheduled_for"],
            status=data["status"],
            executed_at=data.get("executed_at"),
            cancelled_at=data.get("cancelled_at"),
            cancelled_reason=data.get("cancelled_reason"),
            execution_error=data.get("execution_error"),
            affected_users_count=data.get("affected_users_count") or 0,
            created_at=data["created_at"],
        )

    def to_view(self, action: PendingAction, now: datetime) -> PendingActionView:
        descriptor = lookup(action.action_type, self.settings.safe_actions.unknown_action_delay_minutes)
        remaining = time_remaining(action, now) if action.status == "pending" else timedelta(0)
        return PendingActionView(
            **action.model_dump(),
            label=descriptor.label,
            tier_label=descriptor.tier_label,
            time_remaining_seconds=int(remaining.total_seconds()),
            time_remaining_display=format_time_remaining(remaining) if action.status == "pending" else action.status,
            mutation_applied=action.execution_error is None if action.status == "executed" else None,
        )
