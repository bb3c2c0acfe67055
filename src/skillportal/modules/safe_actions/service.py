"""
Skill Portal Safe Actions - Orchestrator.

Runs an administrative action through the gates its tier demands:

    Justify -> (Reauth) -> (Scheduled | Confirm) -> Done

Immediate actions mutate the setting, append a history version and write an
action log. Delayed actions are queued and applied later by the executor
through `execute_due`.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from skillportal.auth.identity import IdentityProvider, get_identity_provider
from skillportal.auth.schemas import User
from skillportal.catalog import ActionDescriptor, action_for_setting, is_known, lookup, require
from skillportal.config import Settings, get_settings
from skillportal.exceptions import AuditTrailException, ReauthenticationFailedException, ValidationException
from skillportal.modules.audit.service import AuditService
from skillportal.modules.pending_actions.schemas import PendingAction
from skillportal.modules.pending_actions.service import PendingActionQueue
from skillportal.modules.safe_actions.schemas import SafeActionRequest, SafeActionResult
from skillportal.modules.settings.schemas import SettingChange
from skillportal.modules.settings.service import SettingsService, validate_setting_value

logger = logging.getLogger(__name__)


def log_type_for_setting(setting_key: str) -> str:
    """Action-log type recorded for an applied settings change."""
    if setting_key == "registration_fee":
        return "update_registration_fee"
    return "update_system_setting"


class SafeActionOrchestrator:
    """Service that gates and performs tiered actions."""

    def __init__(
        self,
        settings_service: SettingsService | None = None,
        queue: PendingActionQueue | None = None,
        audit: AuditService | None = None,
        identity: IdentityProvider | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.audit = audit or AuditService(settings=self.settings)
        self.settings_service = settings_service or SettingsService(audit=self.audit, settings=self.settings)
        self.queue = queue or PendingActionQueue(audit=self.audit, settings=self.settings)
        self.identity = identity or get_identity_provider()

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def descriptor_for(self, action_id: str) -> ActionDescriptor:
        """Catalog entry for `action_id`, honouring the unknown-id policy."""
        policy = self.settings.safe_actions
        if policy.reject_unknown_actions:
            return require(action_id)
        if not is_known(action_id):
            logger.warning(f"Unknown action id '{action_id}' treated as dangerous")
        return lookup(action_id, policy.unknown_action_delay_minutes)

    def resolve(self, request: SafeActionRequest) -> tuple[ActionDescriptor, str | None, str | None]:
        """
        Work out which action governs a request.

        Returns the descriptor, the setting key and the normalized new value.
        A settings change is always governed by the action its key and value
        map to; a caller-supplied action id that disagrees is refused.
        """
        if request.setting_key:
            new_value = validate_setting_value(request.setting_key, request.new_value)
            governing = action_for_setting(request.setting_key, new_value)
            if request.action_id and request.action_id != governing:
                raise ValidationException(
                    f"Changing '{request.setting_key}' to '{new_value}' is governed by '{governing}', not '{request.action_id}'"
                )
            return self.descriptor_for(governing), request.setting_key, new_value

        if not request.action_id:
            raise ValidationException("Either action_id or setting_key is required")

        descriptor = self.descriptor_for(request.action_id)
        if descriptor.setting_key:
            new_value = validate_setting_value(descriptor.setting_key, request.new_value)
            governing = action_for_setting(descriptor.setting_key, new_value)
            if governing != descriptor.action_id:
                raise ValidationException(
                    f"'{descriptor.action_id}' cannot set '{descriptor.setting_key}' to '{new_value}'"
                )
            return descriptor, descriptor.setting_key, new_value
        return descriptor, None, request.new_value

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def check_justification(self, descriptor: ActionDescriptor, justification: str) -> str:
        text = (justification or "").strip()
        if descriptor.requires_justification and not text:
            raise ValidationException("justification required")
        return text

    async def check_reauth(self, descriptor: ActionDescriptor, user: User, password: str | None) -> None:
        """Verify the operator's password for actions that demand it."""
        if not descriptor.requires_reauth:
            return

        verified = False
        if password and user.email:
            verified = await self.identity.reauthenticate(user.email, password, user.id)

        if not verified:
            logger.warning(f"Re-authentication failed for {user.id} on '{descriptor.action_id}'")
            await self.audit.log_action(
                user.id,
                "reauth_failed",
                "auth",
                str(user.id),
                {"action_id": descriptor.action_id, "password_supplied": bool(password)},
                best_effort=True,
            )
            raise ReauthenticationFailedException()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def submit(
        self,
        request: SafeActionRequest,
        user: User,
        now: datetime | None = None,
    ) -> SafeActionResult:
        """
        Run one action request through its tier's gates.

        Raises:
            UnknownActionException: Action id not in the catalog
            ValidationException: Missing justification or invalid value
            ReauthenticationFailedException: Password missing or wrong
            SystemFrozenException: Setting locked while the system is frozen
            ConcurrentModificationException: Setting changed underneath us
        """
        if now is None:
            now = datetime.now(timezone.utc)

        descriptor, setting_key, new_value = self.resolve(request)
        justification = self.check_justification(descriptor, request.justification)
        await self.check_reauth(descriptor, user, request.password)

        if setting_key:
            await self.settings_service.ensure_writable(setting_key)

        if descriptor.is_delayed:
            return await self._schedule(descriptor, request, user, justification, setting_key, new_value, now)

        if setting_key:
            try:
                change = await self.settings_service.apply_change(
                    setting_key,
                    new_value,
                    user.id,
                    justification or None,
                    expected_value=request.expected_value,
                    now=now,
                )
            except AuditTrailException as e:
                await self.audit.log_change_with_parked_history(
                    user.id,
                    log_type_for_setting(setting_key),
                    self.settings_service.repository.table_name,
                    setting_key,
                    {"action_id": descriptor.action_id, "tier": descriptor.tier, "justification": justification},
                    e,
                )
                raise
            await self._log_change(user.id, descriptor, change, justification)
            return SafeActionResult(
                status="completed",
                action=descriptor,
                setting_key=setting_key,
                old_value=change.old_value,
                new_value=change.new_value,
                history_entry_id=change.history_entry.id,
                message=f"{descriptor.label} applied",
            )

        # Non-settings action: gates passed, the caller performs the domain change
        await self.audit.log_action(
            user.id,
            "approve_action",
            request.target_table or "safe_actions",
            request.target_id or descriptor.action_id,
            {
                "action_id": descriptor.action_id,
                "tier": descriptor.tier,
                "justification": justification,
                "payload": request.payload,
                "affected_users_count": request.affected_users_count,
            },
        )
        return SafeActionResult(
            status="approved",
            action=descriptor,
            new_value=new_value,
            message=f"{descriptor.label} approved",
        )

    async def execute_due(self, action: PendingAction, now: datetime | None = None) -> SettingChange | None:
        """
        Apply a due pending action on behalf of the operator who queued it.

        The executor claims the row before calling this.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        descriptor = lookup(action.action_type, self.settings.safe_actions.unknown_action_delay_minutes)
        setting_key = action.payload.get("setting_key")

        if not setting_key:
            await self.audit.log_action(
                action.actor_id,
                "execute_pending_action",
                action.target_table or self.queue.repository.table_name,
                action.target_id or str(action.id),
                {
                    "pending_action_id": action.id,
                    "action_id": action.action_type,
                    "payload": action.payload,
                    "affected_users_count": action.affected_users_count,
                },
            )
            return None

        await self.settings_service.ensure_writable(setting_key)
        try:
            change = await self.settings_service.apply_change(
                setting_key,
                action.payload.get("new_value"),
                action.actor_id,
                action.justification,
                expected_value=action.payload.get("expected_value"),
                now=now,
            )
        except AuditTrailException as e:
            await self.audit.log_change_with_parked_history(
                action.actor_id,
                "execute_pending_action",
                self.settings_service.repository.table_name,
                setting_key,
                {
                    "pending_action_id": action.id,
                    "action_id": descriptor.action_id,
                    "scheduled_for": action.scheduled_for,
                },
                e,
            )
            raise
        await self.audit.log_action(
            action.actor_id,
            "execute_pending_action",
            self.settings_service.repository.table_name,
            setting_key,
            {
                "pending_action_id": action.id,
                "action_id": descriptor.action_id,
                "old_value": change.old_value,
                "new_value": change.new_value,
                "history_entry_id": change.history_entry.id,
                "scheduled_for": action.scheduled_for,
            },
        )
        return change

    async def _schedule(
        self,
        descriptor: ActionDescriptor,
        request: SafeActionRequest,
        user: User,
        justification: str,
        setting_key: str | None,
        new_value: str | None,
        now: datetime,
    ) -> SafeActionResult:
        payload: dict[str, Any] = dict(request.payload)
        if setting_key:
            payload.update(
                {
                    "setting_key": setting_key,
                    "new_value": new_value,
                    "expected_value": request.expected_value,
                }
            )

        pending = await self.queue.schedule(
            descriptor,
            user.id,
            justification,
            payload,
            target_table=request.target_table or (self.settings_service.repository.table_name if setting_key else None),
            target_id=request.target_id or setting_key,
            affected_users_count=request.affected_users_count,
            now=now,
        )

        await self.audit.log_action(
            user.id,
            "schedule_pending_action",
            self.queue.repository.table_name,
            str(pending.id),
            {
                "action_id": descriptor.action_id,
                "tier": descriptor.tier,
                "justification": justification,
                "scheduled_for": pending.scheduled_for,
                "setting_key": setting_key,
                "new_value": new_value,
            },
        )

        return SafeActionResult(
            status="scheduled",
            action=descriptor,
            setting_key=setting_key,
            new_value=new_value,
            pending_action=pending,
            message=f"{descriptor.label} scheduled in {descriptor.delay_minutes} minutes",
        )

    async def _log_change(
        self,
        actor_id,
        descriptor: ActionDescriptor,
        change: SettingChange,
        justification: str,
    ) -> None:
        await self.audit.log_action(
            actor_id,
            log_type_for_setting(change.setting_key),
            self.settings_service.repository.table_name,
            change.setting_key,
            {
                "action_id": descriptor.action_id,
                "tier": descriptor.tier,
                "old_value": change.old_value,
                "new_value": change.new_value,
                "justification": justification,
                "history_entry_id": change.history_entry.id,
            },
        )
