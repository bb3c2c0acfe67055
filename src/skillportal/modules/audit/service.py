"""
Skill Portal Audit - Service.

Business logic for the administrative action log. IMMUTABLE timeline.
"""

import logging
from typing import Any
from uuid import UUID, uuid4

from fastapi.encoders import jsonable_encoder

from skillportal.config import Settings, get_settings
from skillportal.core.repository import BaseRepository
from skillportal.exceptions import AuditTrailException, PersistenceException
from skillportal.modules.audit.outbox import AuditOutbox, get_audit_outbox
from skillportal.modules.audit.repository import ActionLogRepository
from skillportal.modules.audit.schemas import ActionLogEntry, ActionLogListResponse

logger = logging.getLogger(__name__)


class AuditService:
    """Service for action log operations."""

    def __init__(
        self,
        repository: ActionLogRepository | None = None,
        outbox: AuditOutbox | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository or ActionLogRepository()
        self.outbox = outbox or get_audit_outbox()
        self.settings = settings or get_settings()

    async def log_action(
        self,
        actor_id: UUID | str,
        action_type: str,
        target_table: str,
        target_id: str,
        metadata: dict[str, Any] | None = None,
        *,
        best_effort: bool = False,
    ) -> ActionLogEntry | None:
        """
        Append an action log record. This creates an immutable record.

        The append is retried; if it still fails the record is parked in the
        outbox and AuditTrailException is raised, unless `best_effort` is set
        (used for records that accompany an error already being reported).
        """
        record = {
            "id": str(uuid4()),
            "actor_id": str(actor_id),
            "action_type": action_type,
            "target_table": target_table,
            "target_id": str(target_id),
            "metadata": jsonable_encoder(metadata or {}),
        }

        try:
            created = await self.repository.append_with_retry(
                record, self.settings.safe_actions.audit_write_attempts
            )
        except PersistenceException:
            self.park(self.repository.table_name, record)
            if best_effort:
                return None
            raise AuditTrailException(self.repository.table_name, record, queued=True)

        return self._to_entry(created)

    async def log_change_with_parked_history(
        self,
        actor_id: UUID | str,
        action_type: str,
        target_table: str,
        target_id: str,
        metadata: dict[str, Any],
        error: AuditTrailException,
    ) -> None:
        """
        Record the action log for a settings change whose history version
        could not be written.

        The change itself is live, so its log entry is written now, or queued
        next to the parked history record when the store is still failing.
        """
        history = error.details["record"]
        await self.log_action(
            actor_id,
            action_type,
            target_table,
            target_id,
            {
                **metadata,
                "old_value": history.get("old_value"),
                "new_value": history.get("new_value"),
                "history_entry_id": history.get("id"),
                "history_queued": True,
            },
            best_effort=True,
        )

    def park(self, table: str, record: dict[str, Any]) -> None:
        """Queue an unwritten record for a later flush."""
        evicted = self.outbox.enqueue(table, record)
        logger.critical(f"Append to '{table}' failed after retries; queued for later: {record}")
        if evicted is not None:
            logger.critical(f"Audit outbox full; dropped record for '{evicted.table}': {evicted.record}")

    async def flush_outbox(self, repositories: dict[str, BaseRepository] | None = None) -> int:
        """
        Re-attempt queued records.

        Args:
            repositories: Extra writers by table name (e.g. settings history)

        Returns:
            Number of records written
        """
        writers: dict[str, BaseRepository] = {self.repository.table_name: self.repository}
        writers.update(repositories or {})

        records = self.outbox.drain()
        remaining = []
        written = 0

        for item in records:
            writer = writers.get(item.table)
            if writer is None:
                remaining.append(item)
                continue
            try:
                # A lost response may have hidden a successful insert
                if await writer.get_by_id(item.record["id"]) is None:
                    await writer.create(item.record)
                written += 1
            except PersistenceException:
                item.attempts += 1
                remaining.append(item)

        self.outbox.requeue(remaining)
        if written:
            logger.info(f"Audit outbox flushed {written} record(s); {len(remaining)} still queued")
        return written

    async def list_logs(
        self,
        action_type: str | None = None,
        actor_id: UUID | None = None,
        target_id: str | None = None,
        limit: int = 100,
    ) -> ActionLogListResponse:
        """Get the action log newest first."""
        rows = await self.repository.list_logs(
            action_type=action_type,
            actor_id=actor_id,
            target_id=target_id,
            limit=limit,
        )
        items = [self._to_entry(row) for row in rows]
        return ActionLogListResponse(items=items, count=len(items), pending_outbox=len(self.outbox))

    def _to_entry(self, data: dict[str, Any]) -> ActionLogEntry:
        """Convert database record to ActionLogEntry."""
        return ActionLogEntry(
            id=UUID(str(data["id"])),
            actor_id=UUID(str(data["actor_id"])),
            action_type=data["action_type"],
            target_table=data["target_table"],
            target_id=str(data["target_id"]),
            metadata=data.get("metadata") or {},
            created_at=data["created_at"],
        )
