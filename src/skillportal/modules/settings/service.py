"""
Skill Portal Settings - Service.

Settings store adapter: reads the key/value table and applies changes with a
compare-and-set write followed by an append to the version history.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from skillportal.catalog import TIER_LABELS, tier_for_setting
from skillportal.config import Settings, get_settings
from skillportal.exceptions import (
    AuditTrailException,
    ConcurrentModificationException,
    NotFoundException,
    PersistenceException,
    SystemFrozenException,
    ValidationException,
)
from skillportal.modules.audit.service import AuditService
from skillportal.modules.settings.repository import SettingsHistoryRepository, SettingsRepository
from skillportal.modules.settings.schemas import (
    Setting,
    SettingChange,
    SettingsHistoryEntry,
    SettingsListResponse,
)

logger = logging.getLogger(__name__)

BOOLEAN_SETTINGS = frozenset(
    {
        "registration_open",
        "payment_enabled",
        "form_submissions_open",
        "id_generation_enabled",
        "edit_requests_enabled",
        "maintenance_mode",
        "system_frozen",
    }
)

# Settings that stay writable while the system is frozen
FREEZE_EXEMPT_SETTINGS = frozenset({"system_frozen", "maintenance_mode"})


def validate_setting_value(key: str, value: Any) -> str:
    """Normalize a proposed value, rejecting values the key cannot hold."""
    text = str(value).strip() if value is not None else ""

    if key in BOOLEAN_SETTINGS:
        lowered = text.lower()
        if lowered not in ("true", "false"):
            raise ValidationException(f"'{key}' must be 'true' or 'false'")
        return lowered

    if key == "registration_fee":
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValidationException("Registration fee must be a number")
        if not amount.is_finite() or amount <= 0:
            raise ValidationException("Registration fee must be a positive number")
        return text

    if not text:
        raise ValidationException(f"A value for '{key}' is required")
    return text


class SettingsService:
    """Service for settings reads and versioned writes."""

    def __init__(
        self,
        repository: SettingsRepository | None = None,
        history_repository: SettingsHistoryRepository | None = None,
        audit: AuditService | None = None,
        settings: Settings | None = None,
    ):
        self.repository = repository or SettingsRepository()
        self.history_repository = history_repository or SettingsHistoryRepository()
        self.settings = settings or get_settings()
        self.audit = audit or AuditService(settings=self.settings)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_settings(self) -> SettingsListResponse:
        rows = await self.repository.list_all()
        items = [self._to_setting(row) for row in rows]
        values = {item.key: item.value for item in items}
        return SettingsListResponse(
            items=items,
            system_frozen=values.get("system_frozen") == "true",
            maintenance_mode=values.get("maintenance_mode") == "true",
        )

    async def get_setting(self, key: str) -> Setting:
        row = await self.repository.get_by_key(key)
        if row is None:
            raise NotFoundException("setting", key)
        return self._to_setting(row)

    async def get_value(self, key: str) -> str | None:
        row = await self.repository.get_by_key(key)
        return row["value"] if row else None

    async def flush_outbox(self) -> int:
        """Retry queued action-log and history records. Returns how many were written."""
        return await self.audit.flush_outbox({self.history_repository.table_name: self.history_repository})

    async def is_system_frozen(self) -> bool:
        return await self.get_value("system_frozen") == "true"

    async def is_maintenance_mode(self) -> bool:
        return await self.get_value("maintenance_mode") == "true"

    async def ensure_writable(self, key: str) -> None:
        """Refuse changes to ordinary settings while the system is frozen."""
        if not self.settings.safe_actions.enforce_freeze or key in FREEZE_EXEMPT_SETTINGS:
            return
        if await self.is_system_frozen():
            raise SystemFrozenException(key)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def apply_change(
        self,
        key: str,
        new_value: Any,
        actor_id: UUID | str,
        reason: str | None,
        *,
        expected_value: str | None = None,
        is_rollback: bool = False,
        rolled_back_from: UUID | str | None = None,
        now: datetime | None = None,
    ) -> SettingChange:
        """
        Apply one settings mutation and record it in the version history.

        The old value is read immediately before the write and the write is
        conditional on it still being current.

        Raises:
            NotFoundException: Unknown setting key
            ValidationException: Value not valid for the key, or unchanged
            ConcurrentModificationException: Value changed underneath us
            AuditTrailException: Write applied but history append failed
        """
        value = validate_setting_value(key, new_value)

        current = await self.repository.get_by_key(key)
        if current is None:
            raise NotFoundException("setting", key)
        old_value = current["value"]

        if expected_value is not None and expected_value != old_value:
            raise ConcurrentModificationException("setting", key, expected=expected_value, actual=old_value)
        if value == old_value and not is_rollback:
            raise ValidationException(f"'{key}' is already '{value}'")

        if now is None:
            now = datetime.now(timezone.utc)

        updated = await self.repository.compare_and_set(key, old_value, value, actor_id, now)
        if updated is None:
            actual = await self.get_value(key)
            logger.warning(f"Lost update prevented on setting '{key}' (expected {old_value!r}, found {actual!r})")
            raise ConcurrentModificationException("setting", key, expected=old_value, actual=actual)

        record = {
            "id": str(uuid4()),
            "setting_key": key,
            "old_value": old_value,
            "new_value": value,
            "changed_by": str(actor_id),
            "change_reason": reason,
            "is_rollback": is_rollback,
            "rolled_back_from": str(rolled_back_from) if rolled_back_from else None,
        }

        try:
            created = await self.history_repository.append_with_retry(
                record, self.settings.safe_actions.audit_write_attempts
            )
        except PersistenceException:
            self.audit.park(self.history_repository.table_name, record)
            raise AuditTrailException(self.history_repository.table_name, record, queued=True)

        logger.info(f"Setting '{key}' changed {old_value!r} -> {value!r} by {actor_id}")

        return SettingChange(
            setting_key=key,
            old_value=old_value,
            new_value=value,
            history_entry=self.to_history_entry(created),
        )

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def _to_setting(self, data: dict[str, Any]) -> Setting:
        tier = tier_for_setting(data["key"])
        return Setting(
            key=data["key"],
            value=data["value"],
            description=data.get("description"),
            updated_by=data.get("updated_by"),
            updated_at=data.get("updated_at"),
            tier=tier,
            tier_label=TIER_LABELS[tier],
        )

    @staticmethod
    def to_history_entry(data: dict[str, Any]) -> SettingsHistoryEntry:
        """Convert database record to SettingsHistoryEntry."""
        return SettingsHistoryEntry(
            id=data["id"],
            setting_key=data["setting_key"],
            old_value=data.get("old_value"),
            new_value=data["new_value"],
            changed_by=data.get("changed_by"),
            change_reason=data.get("change_reason"),
            is_rollback=bool(data.get("is_rollback")),
            rolled_back_from=data.get("rolled_back_from"),
            created_at=data["created_at"],
        )
