"""
Skill Portal Safe Actions - Pending Action Executor.

Execution trigger for delayed actions. Each due action is claimed with a
conditional pending -> executed update before its mutation runs, so a cancel
and an execution racing on the same row cannot both win, and two executor
ticks never apply the same action twice.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from skillportal.config import Settings, get_settings
from skillportal.exceptions import AuditTrailException, InvalidStateException, PortalException
from skillportal.modules.audit.service import AuditService
from skillportal.modules.pending_actions.schemas import PendingAction
from skillportal.modules.pending_actions.service import PendingActionQueue
from skillportal.modules.safe_actions.schemas import RunDueSummary
from skillportal.modules.safe_actions.service import SafeActionOrchestrator

logger = logging.getLogger(__name__)


class PendingActionExecutor:
    """Applies due pending actions."""

    def __init__(
        self,
        orchestrator: SafeActionOrchestrator | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator or SafeActionOrchestrator(settings=self.settings)

    @property
    def queue(self) -> PendingActionQueue:
        return self.orchestrator.queue

    @property
    def audit(self) -> AuditService:
        return self.orchestrator.audit

    async def execute(self, action_id: UUID | str, now: datetime | None = None) -> PendingAction:
        """
        Claim and apply one due pending action.

        Raises:
            NotFoundException: No such action
            InvalidStateException: Not pending, or not yet due
        """
        if now is None:
            now = datetime.now(timezone.utc)

        action = await self.queue.get(action_id)
        if action.status != "pending":
            raise InvalidStateException(
                f"Action is already {action.status}",
                current_state=action.status,
                target_state="executed",
            )
        if now < action.scheduled_for:
            raise InvalidStateException(
                "Action is not due yet",
                current_state="pending",
                target_state="executed",
            )

        claimed = await self.queue.mark(action, "executed", now)

        try:
            await self.orchestrator.execute_due(claimed, now)
        except AuditTrailException:
            # Mutation applied; the missing record is already queued for retry
            raise
        except PortalException as e:
            logger.error(f"Pending action {claimed.id} ('{claimed.action_type}') failed after claim: {e.code} {e.message}")
            await self.queue.record_failure(claimed, e.code)
            await self.audit.log_action(
                claimed.actor_id,
                "pending_action_failed",
                self.queue.repository.table_name,
                str(claimed.id),
                {
                    "action_id": claimed.action_type,
                    "error_code": e.code,
                    "error": e.message,
                    "payload": claimed.payload,
                },
                best_effort=True,
            )
            raise

        logger.info(f"Executed pending action {claimed.id} ('{claimed.action_type}')")
        return claimed

    async def expire(self, action: PendingAction, now: datetime | None = None) -> PendingAction:
        """Retire an action that was not executed within the grace window."""
        if now is None:
            now = datetime.now(timezone.utc)

        expired = await self.queue.mark(action, "expired", now)
        overdue = now - action.scheduled_for
        logger.warning(f"Pending action {action.id} ('{action.action_type}') expired, overdue by {overdue}")

        await self.audit.log_action(
            action.actor_id,
            "expire_pending_action",
            self.queue.repository.table_name,
            str(action.id),
            {
                "action_id": action.action_type,
                "scheduled_for": action.scheduled_for,
                "overdue_seconds": int(overdue.total_seconds()),
            },
            best_effort=True,
        )
        return expired

    async def run_due(self, now: datetime | None = None) -> RunDueSummary:
        """
        One executor tick.

        Flushes the audit outbox, then executes every due pending action, or
        expires it when it is overdue past the grace window. Failures of one
        action never stop the rest of the tick.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        summary = RunDueSummary()
        summary.outbox_flushed = await self.orchestrator.settings_service.flush_outbox()

        grace = timedelta(minutes=self.settings.safe_actions.expiry_grace_minutes)
        for action in await self.queue.list_due(now):
            try:
                if now - action.scheduled_for > grace:
                    await self.expire(action, now)
                    summary.expired.append(action.id)
                else:
                    await self.execute(action.id, now)
                    summary.executed.append(action.id)
            except InvalidStateException:
                # Cancelled or claimed by someone else since the listing
                summary.skipped.append(action.id)
            except AuditTrailException:
                summary.executed.append(action.id)
            except PortalException:
                summary.failed.append(action.id)

        summary.outbox_remaining = len(self.audit.outbox)
        if summary.executed or summary.expired or summary.failed:
            logger.info(
                f"Executor tick: {len(summary.executed)} executed, {len(summary.expired)} expired, "
                f"{len(summary.failed)} failed, {len(summary.skipped)} skipped"
            )
        return summary
