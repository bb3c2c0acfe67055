"""
Skill Portal Settings History - Service.

Version browsing and rollback. A rollback never rewrites history: it is a
new forward change, recorded with `is_rollback` and the version it came from.
"""

import logging
from datetime import datetime
from uuid import UUID

from skillportal.auth.identity import IdentityProvider, get_identity_provider
from skillportal.auth.schemas import User
from skillportal.catalog import action_for_setting, lookup
from skillportal.config import Settings, get_settings
from skillportal.exceptions import AuditTrailException, InvalidStateException, ReauthenticationFailedException
from skillportal.modules.audit.service import AuditService
from skillportal.modules.settings.service import SettingsService
from skillportal.modules.settings_history.schemas import (
    RestoreMode,
    RollbackResult,
    SettingsHistoryResponse,
)

logger = logging.getLogger(__name__)


class SettingsHistoryService:
    """Service for settings versions and rollback."""

    def __init__(
        self,
        settings_service: SettingsService | None = None,
        identity: IdentityProvider | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.settings_service = settings_service or SettingsService(settings=self.settings)
        self.identity = identity or get_identity_provider()

    @property
    def audit(self) -> AuditService:
        return self.settings_service.audit

    async def history(self, setting_key: str | None = None, limit: int | None = None) -> SettingsHistoryResponse:
        """Versions newest first, optionally for one key."""
        limit = min(limit or self.settings.safe_actions.history_limit, self.settings.safe_actions.history_limit)
        rows = await self.settings_service.history_repository.list_history(setting_key=setting_key, limit=limit)
        items = [SettingsService.to_history_entry(row) for row in rows]
        return SettingsHistoryResponse(items=items, count=len(items), setting_key=setting_key)

    async def rollback(
        self,
        entry_id: UUID | str,
        actor: User,
        *,
        restore: RestoreMode = "previous_value",
        password: str | None = None,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> RollbackResult:
        """
        Restore a setting from one of its versions.

        With `previous_value` the target is the value the version replaced;
        a version with no recorded old value restores its own new value
        instead, and the fallback is flagged on the result and the action log.

        Raises:
            NotFoundException: No such version
            InvalidStateException: The version already describes the live value
            ReauthenticationFailedException: Setting needs a password that was not given or is wrong
            SystemFrozenException: Setting locked while the system is frozen
        """
        history_repository = self.settings_service.history_repository
        entry = SettingsService.to_history_entry(await history_repository.get_by_id_or_raise(entry_id))

        latest = await history_repository.latest_for_key(entry.setting_key)
        if latest is not None and str(latest["id"]) == str(entry.id):
            raise InvalidStateException(
                "The newest version already describes the current value",
                current_state="current",
                target_state="rolled_back",
            )

        fallback = False
        if restore == "version_value":
            target = entry.new_value
        elif entry.old_value is None:
            fallback = True
            target = entry.new_value
            logger.warning(
                f"History entry {entry.id} for '{entry.setting_key}' has no old value; restoring its new value instead"
            )
        else:
            target = entry.old_value

        await self._check_reauth(entry.setting_key, target, actor, password)
        await self.settings_service.ensure_writable(entry.setting_key)

        change_reason = (reason or "").strip() or f"Rolled back to version from {entry.created_at.isoformat()}"
        try:
            change = await self.settings_service.apply_change(
                entry.setting_key,
                target,
                actor.id,
                change_reason,
                is_rollback=True,
                rolled_back_from=entry.id,
                now=now,
            )
        except AuditTrailException as e:
            await self.audit.log_change_with_parked_history(
                actor.id,
                "rollback_setting",
                self.settings_service.repository.table_name,
                entry.setting_key,
                {
                    "setting_key": entry.setting_key,
                    "restored_to": target,
                    "from_version_id": entry.id,
                    "restore": restore,
                    "fallback_to_new_value": fallback,
                },
                e,
            )
            raise

        await self.audit.log_action(
            actor.id,
            "rollback_setting",
            self.settings_service.repository.table_name,
            entry.setting_key,
            {
                "setting_key": entry.setting_key,
                "restored_to": change.new_value,
                "replaced_value": change.old_value,
                "from_version_id": entry.id,
                "restore": restore,
                "fallback_to_new_value": fallback,
                "history_entry_id": change.history_entry.id,
            },
        )

        return RollbackResult(
            change=change,
            rolled_back_from=entry,
            restore=restore,
            fallback_to_new_value=fallback,
        )

    async def _check_reauth(self, setting_key: str, target: str, actor: User, password: str | None) -> None:
        descriptor = lookup(action_for_setting(setting_key, target))
        if not descriptor.requires_reauth:
            return

        verified = False
        if password and actor.email:
            verified = await self.identity.reauthenticate(actor.email, password, actor.id)
        if verified:
            return

        logger.warning(f"Re-authentication failed for {actor.id} on rollback of '{setting_key}'")
        await self.audit.log_action(
            actor.id,
            "reauth_failed",
            "auth",
            str(actor.id),
            {"action_id": descriptor.action_id, "setting_key": setting_key, "rollback": True},
            best_effort=True,
        )
        raise ReauthenticationFailedException()
