"""
Skill Portal Audit Outbox.

In-process holding area for history and action-log records whose append
failed after the underlying mutation had already been applied. Records are
re-attempted by the pending-action executor on each tick.

Thread-safe via a lock. Singleton accessor for global access.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any


@dataclass
class OutboxRecord:
    """One record waiting to be appended."""

    table: str
    record: dict[str, Any]
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0


class AuditOutbox:
    """FIFO of unwritten append-only records."""

    # Oldest records are dropped past this size; each drop is logged by the caller
    MAX_RECORDS = 10_000

    def __init__(self):
        self._lock = threading.Lock()
        self._records: list[OutboxRecord] = []

    def enqueue(self, table: str, record: dict[str, Any]) -> OutboxRecord | None:
        """Queue a record. Returns the record evicted to make room, if any."""
        with self._lock:
            self._records.append(OutboxRecord(table=table, record=record))
            if len(self._records) > self.MAX_RECORDS:
                return self._records.pop(0)
            return None

    def drain(self) -> list[OutboxRecord]:
        """Take every queued record, leaving the outbox empty."""
        with self._lock:
            records, self._records = self._records, []
            return records

    def requeue(self, records: list[OutboxRecord]) -> None:
        """Put records back at the front, preserving their order."""
        if not records:
            return
        with self._lock:
            self._records = records + self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@lru_cache(maxsize=1)
def get_audit_outbox() -> AuditOutbox:
    """Get the global AuditOutbox singleton."""
    return AuditOutbox()
