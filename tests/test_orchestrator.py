"""
Tests for the safe-action orchestrator: justification and re-auth gates,
immediate vs delayed paths, unknown ids and the freeze lock.
"""

from datetime import timedelta

import pytest

from skillportal.catalog import ACTION_CATALOG
from skillportal.config import SafeActionSettings, Settings
from skillportal.exceptions import (
    ConcurrentModificationException,
    ReauthenticationFailedException,
    SystemFrozenException,
    UnknownActionException,
    ValidationException,
)
from skillportal.modules.safe_actions.schemas import SafeActionRequest
from skillportal.modules.safe_actions.service import SafeActionOrchestrator

from conftest import BASE_TIME, OPERATOR_PASSWORD

DANGEROUS_SETTINGS = [
    ("system_frozen", "true"),
    ("maintenance_mode", "true"),
    ("payment_enabled", "false"),
]


def _writes(db) -> list[tuple[str, str]]:
    return [call for call in db.calls if call[1] in ("insert", "update")]


class TestScenarios:
    """End-to-end flows through the orchestrator."""

    @pytest.mark.asyncio
    async def test_freeze_is_scheduled_not_applied(self, orchestrator, db, operator):
        result = await orchestrator.submit(
            SafeActionRequest(
                setting_key="system_frozen",
                new_value="true",
                justification="scheduled outage",
                password=OPERATOR_PASSWORD,
            ),
            operator,
            now=BASE_TIME,
        )

        assert result.status == "scheduled"
        pending = result.pending_action
        assert pending.status == "pending"
        assert pending.action_tier == "tier3"
        assert pending.action_type == "system_freeze"
        assert abs((pending.scheduled_for - (BASE_TIME + timedelta(minutes=5))).total_seconds()) <= 1
        assert pending.payload["setting_key"] == "system_frozen"
        assert pending.payload["new_value"] == "true"
        assert db.setting("system_frozen") == "false"
        assert db.rows("app_settings_history") == []

        log_types = [row["action_type"] for row in db.rows("action_logs")]
        assert log_types == ["schedule_pending_action"]

    @pytest.mark.asyncio
    async def test_fee_change_applies_immediately(self, orchestrator, db, operator, identity):
        result = await orchestrator.submit(
            SafeActionRequest(
                setting_key="registration_fee",
                new_value="7500",
                justification="fee increase for materials",
            ),
            operator,
        )

        assert result.status == "completed"
        assert result.action.action_id == "change_fee"
        assert result.old_value == "5000"
        assert result.new_value == "7500"
        assert db.setting("registration_fee") == "7500"

        history = db.rows("app_settings_history")
        assert len(history) == 1
        assert history[0]["old_value"] == "5000"
        assert history[0]["new_value"] == "7500"
        assert history[0]["change_reason"] == "fee increase for materials"
        assert str(result.history_entry_id) == history[0]["id"]

        logs = db.rows("action_logs")
        assert [row["action_type"] for row in logs] == ["update_registration_fee"]
        assert logs[0]["metadata"]["old_value"] == "5000"
        assert identity.calls == []


class TestJustificationGate:
    """Risky and dangerous actions need a reason before anything is written."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("justification", ["", "   ", "\n\t"])
    async def test_blank_justification_rejected_before_any_store_call(
        self, orchestrator, db, operator, identity, justification
    ):
        with pytest.raises(ValidationException) as exc:
            await orchestrator.submit(
                SafeActionRequest(
                    setting_key="registration_fee",
                    new_value="7500",
                    justification=justification,
                ),
                operator,
            )

        assert exc.value.message == "justification required"
        assert db.calls == []
        assert identity.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action_id",
        [a.action_id for a in ACTION_CATALOG.values() if a.requires_justification and not a.setting_key],
    )
    async def test_every_justified_action_is_gated(self, orchestrator, db, operator, action_id):
        with pytest.raises(ValidationException):
            await orchestrator.submit(
                SafeActionRequest(action_id=action_id, justification=" ", password=OPERATOR_PASSWORD),
                operator,
            )
        assert _writes(db) == []

    @pytest.mark.asyncio
    async def test_safe_action_needs_no_justification(self, orchestrator, db, operator):
        result = await orchestrator.submit(
            SafeActionRequest(action_id="edit_announcement", target_table="content_blocks", target_id="banner"),
            operator,
        )

        assert result.status == "approved"
        log = db.rows("action_logs")[0]
        assert log["action_type"] == "approve_action"
        assert log["target_table"] == "content_blocks"
        assert log["target_id"] == "banner"


class TestReauthGate:
    """Dangerous actions never run without a verified password."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("key", "value"), DANGEROUS_SETTINGS)
    @pytest.mark.parametrize("password", [None, "", "wrong-password"])
    async def test_dangerous_setting_without_valid_reauth(self, orchestrator, db, operator, key, value, password):
        before = db.setting(key)

        with pytest.raises(ReauthenticationFailedException) as exc:
            await orchestrator.submit(
                SafeActionRequest(setting_key=key, new_value=value, justification="outage", password=password),
                operator,
            )

        assert exc.value.status_code == 401
        assert exc.value.message == "invalid credentials"
        assert db.setting(key) == before
        assert db.rows("pending_actions") == []
        assert db.rows("app_settings_history") == []
        assert [row["action_type"] for row in db.rows("action_logs")] == ["reauth_failed"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action_id",
        [a.action_id for a in ACTION_CATALOG.values() if a.tier == "tier3" and not a.setting_key],
    )
    async def test_every_dangerous_action_is_gated(self, orchestrator, db, operator, action_id):
        with pytest.raises(ReauthenticationFailedException):
            await orchestrator.submit(
                SafeActionRequest(action_id=action_id, justification="needed", password="nope"),
                operator,
            )
        assert db.rows("pending_actions") == []

    @pytest.mark.asyncio
    async def test_reauth_checks_operator_identity(self, orchestrator, operator, identity):
        await orchestrator.submit(
            SafeActionRequest(
                setting_key="maintenance_mode",
                new_value="true",
                justification="upgrade",
                password=OPERATOR_PASSWORD,
            ),
            operator,
        )

        assert identity.calls == [(operator.email, operator.id)]

    @pytest.mark.asyncio
    async def test_failed_reauth_audit_never_masks_error(self, orchestrator, db, operator):
        db.fail("action_logs", "insert", times=5)

        with pytest.raises(ReauthenticationFailedException):
            await orchestrator.submit(
                SafeActionRequest(setting_key="system_frozen", new_value="true", justification="x", password="bad"),
                operator,
            )


class TestResolution:
    """Which catalog entry governs a request."""

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, orchestrator, db, operator):
        with pytest.raises(UnknownActionException):
            await orchestrator.submit(
                SafeActionRequest(action_id="chnage_fee", justification="typo"),
                operator,
            )
        assert db.calls == []

    @pytest.mark.asyncio
    async def test_unknown_action_fallback_is_dangerous(self, settings_service, queue, audit, identity, db, operator):
        lenient = Settings(safe_actions=SafeActionSettings(reject_unknown_actions=False))
        orchestrator = SafeActionOrchestrator(settings_service, queue, audit, identity, lenient)

        with pytest.raises(ReauthenticationFailedException):
            await orchestrator.submit(
                SafeActionRequest(action_id="mystery_action", justification="why not"),
                operator,
            )

        result = await orchestrator.submit(
            SafeActionRequest(action_id="mystery_action", justification="why not", password=OPERATOR_PASSWORD),
            operator,
            now=BASE_TIME,
        )
        assert result.status == "scheduled"
        assert result.pending_action.action_tier == "tier3"

    @pytest.mark.asyncio
    async def test_mismatched_action_for_setting_is_refused(self, orchestrator, db, operator):
        with pytest.raises(ValidationException):
            await orchestrator.submit(
                SafeActionRequest(
                    action_id="toggle_feature",
                    setting_key="system_frozen",
                    new_value="true",
                    justification="sneaky",
                ),
                operator,
            )
        assert db.setting("system_frozen") == "false"

    @pytest.mark.asyncio
    async def test_action_id_alone_resolves_setting(self, orchestrator, db, operator):
        result = await orchestrator.submit(
            SafeActionRequest(action_id="change_fee", new_value="6000", justification="adjustment"),
            operator,
        )

        assert result.setting_key == "registration_fee"
        assert db.setting("registration_fee") == "6000"

    @pytest.mark.asyncio
    async def test_enabling_payments_is_not_dangerous(self, orchestrator, db, operator, identity):
        db.seed_settings({"payment_enabled": "false", "system_frozen": "false"})

        result = await orchestrator.submit(
            SafeActionRequest(setting_key="payment_enabled", new_value="true", justification="reopen"),
            operator,
        )

        assert result.status == "completed"
        assert result.action.action_id == "toggle_feature"
        assert identity.calls == []
        assert [row["action_type"] for row in db.rows("action_logs")] == ["update_system_setting"]

    @pytest.mark.asyncio
    async def test_missing_target_is_rejected(self, orchestrator, operator):
        with pytest.raises(ValidationException):
            await orchestrator.submit(SafeActionRequest(justification="?"), operator)

    @pytest.mark.asyncio
    async def test_invalid_value_rejected(self, orchestrator, db, operator):
        with pytest.raises(ValidationException):
            await orchestrator.submit(
                SafeActionRequest(setting_key="registration_fee", new_value="-5", justification="refund"),
                operator,
            )
        assert db.calls == []


class TestGuards:
    """Freeze lock and optimistic concurrency on the immediate path."""

    @pytest.mark.asyncio
    async def test_frozen_system_blocks_fee_change(self, orchestrator, db, operator):
        db.seed_settings({"system_frozen": "true", "registration_fee": "5000"})

        with pytest.raises(SystemFrozenException):
            await orchestrator.submit(
                SafeActionRequest(setting_key="registration_fee", new_value="7500", justification="materials"),
                operator,
            )
        assert db.setting("registration_fee") == "5000"

    @pytest.mark.asyncio
    async def test_unfreeze_allowed_while_frozen(self, orchestrator, db, operator):
        db.seed_settings({"system_frozen": "true", "maintenance_mode": "false"})

        result = await orchestrator.submit(
            SafeActionRequest(
                setting_key="system_frozen",
                new_value="false",
                justification="outage over",
                password=OPERATOR_PASSWORD,
            ),
            operator,
        )
        assert result.status == "scheduled"

    @pytest.mark.asyncio
    async def test_stale_expected_value_is_refused(self, orchestrator, db, operator):
        with pytest.raises(ConcurrentModificationException):
            await orchestrator.submit(
                SafeActionRequest(
                    setting_key="registration_fee",
                    new_value="7500",
                    expected_value="4500",
                    justification="materials",
                ),
                operator,
            )
        assert db.setting("registration_fee") == "5000"
