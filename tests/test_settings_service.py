"""
Tests for the settings store: validation, compare-and-set writes, history
appends and the freeze lock.
"""

import pytest

from skillportal.exceptions import (
    AuditTrailException,
    ConcurrentModificationException,
    NotFoundException,
    PersistenceException,
    SystemFrozenException,
    ValidationException,
)
from skillportal.modules.settings.repository import SettingsHistoryRepository, SettingsRepository
from skillportal.modules.settings.service import SettingsService, validate_setting_value


class TestValidation:
    """Value rules per key."""

    def test_boolean_settings_are_normalized(self):
        assert validate_setting_value("registration_open", " TRUE ") == "true"
        assert validate_setting_value("system_frozen", "False") == "false"

    def test_boolean_settings_reject_other_values(self):
        with pytest.raises(ValidationException):
            validate_setting_value("payment_enabled", "yes")

    @pytest.mark.parametrize("value", ["0", "-100", "abc", "", "NaN", None])
    def test_fee_must_be_positive_number(self, value):
        with pytest.raises(ValidationException):
            validate_setting_value("registration_fee", value)

    def test_fee_accepts_decimal(self):
        assert validate_setting_value("registration_fee", "7500.50") == "7500.50"

    def test_free_text_requires_value(self):
        with pytest.raises(ValidationException):
            validate_setting_value("maintenance_message", "   ")


@pytest.mark.asyncio
async def test_list_settings_reports_emergency_flags(settings_service, db):
    db.seed_settings({"system_frozen": "true", "maintenance_mode": "false", "registration_fee": "5000"})

    result = await settings_service.list_settings()

    assert [item.key for item in result.items] == ["maintenance_mode", "registration_fee", "system_frozen"]
    assert result.system_frozen is True
    assert result.maintenance_mode is False
    fee = next(item for item in result.items if item.key == "registration_fee")
    assert fee.tier == "tier2"
    assert fee.tier_label == "RISKY"


@pytest.mark.asyncio
async def test_get_unknown_setting_raises(settings_service):
    with pytest.raises(NotFoundException):
        await settings_service.get_setting("does_not_exist")


@pytest.mark.asyncio
async def test_apply_change_writes_value_and_history(settings_service, db, operator):
    change = await settings_service.apply_change("registration_fee", "7500", operator.id, "materials")

    assert db.setting("registration_fee") == "7500"
    assert change.old_value == "5000"
    assert change.new_value == "7500"

    history = db.rows("app_settings_history")
    assert len(history) == 1
    assert history[0]["old_value"] == "5000"
    assert history[0]["new_value"] == "7500"
    assert history[0]["change_reason"] == "materials"
    assert history[0]["changed_by"] == str(operator.id)
    assert history[0]["is_rollback"] is False
    assert str(change.history_entry.id) == history[0]["id"]


@pytest.mark.asyncio
async def test_unchanged_value_is_rejected(settings_service, db, operator):
    with pytest.raises(ValidationException):
        await settings_service.apply_change("registration_fee", "5000", operator.id, "same")

    assert db.rows("app_settings_history") == []


@pytest.mark.asyncio
async def test_expected_value_mismatch_is_refused(settings_service, db, operator):
    with pytest.raises(ConcurrentModificationException) as exc:
        await settings_service.apply_change(
            "registration_fee", "7500", operator.id, "materials", expected_value="4000"
        )

    assert exc.value.status_code == 409
    assert exc.value.details == {"current_state": "5000", "target_state": "4000"}
    assert db.setting("registration_fee") == "5000"


class StaleSettingsRepository(SettingsRepository):
    """Returns the value as it was before another operator's write."""

    def __init__(self, client, stale_value):
        super().__init__(client)
        self.stale_value = stale_value

    async def get_by_key(self, key):
        row = await super().get_by_key(key)
        if row is not None and self.stale_value is not None:
            row = {**row, "value": self.stale_value}
            self.stale_value = None
        return row


@pytest.mark.asyncio
async def test_lost_update_is_prevented(db, audit, app_settings, operator):
    db.seed_settings({"registration_fee": "6000"})
    service = SettingsService(
        StaleSettingsRepository(db, stale_value="5000"),
        SettingsHistoryRepository(db),
        audit,
        app_settings,
    )

    with pytest.raises(ConcurrentModificationException):
        await service.apply_change("registration_fee", "7500", operator.id, "materials")

    assert db.setting("registration_fee") == "6000"
    assert db.rows("app_settings_history") == []


@pytest.mark.asyncio
async def test_store_failure_before_write_changes_nothing(settings_service, db, operator):
    db.fail("app_settings", "update")

    with pytest.raises(PersistenceException):
        await settings_service.apply_change("registration_fee", "7500", operator.id, "materials")

    assert db.setting("registration_fee") == "5000"
    assert db.rows("app_settings_history") == []


@pytest.mark.asyncio
async def test_history_append_is_retried_once(settings_service, db, operator):
    db.fail("app_settings_history", "insert", times=1)

    await settings_service.apply_change("registration_fee", "7500", operator.id, "materials")

    assert len(db.rows("app_settings_history")) == 1


@pytest.mark.asyncio
async def test_history_append_failure_is_distinct_and_queued(settings_service, db, outbox, operator):
    db.fail("app_settings_history", "insert", times=2)

    with pytest.raises(AuditTrailException) as exc:
        await settings_service.apply_change("registration_fee", "7500", operator.id, "materials")

    assert exc.value.code == "AUDIT_WRITE_FAILED"
    assert exc.value.details["mutation_applied"] is True
    assert exc.value.details["queued_for_retry"] is True
    assert db.setting("registration_fee") == "7500"
    assert len(outbox) == 1


class TestFreeze:
    """Only emergency controls change while frozen."""

    @pytest.mark.asyncio
    async def test_frozen_system_locks_ordinary_settings(self, settings_service, db):
        db.seed_settings({"system_frozen": "true", "registration_fee": "5000"})

        with pytest.raises(SystemFrozenException) as exc:
            await settings_service.ensure_writable("registration_fee")
        assert exc.value.status_code == 423

    @pytest.mark.asyncio
    async def test_emergency_controls_stay_writable(self, settings_service, db):
        db.seed_settings({"system_frozen": "true", "maintenance_mode": "false"})

        await settings_service.ensure_writable("system_frozen")
        await settings_service.ensure_writable("maintenance_mode")

    @pytest.mark.asyncio
    async def test_unfrozen_system_is_writable(self, settings_service):
        await settings_service.ensure_writable("registration_fee")

    @pytest.mark.asyncio
    async def test_emergency_flag_readers(self, settings_service, db):
        db.seed_settings({"system_frozen": "false", "maintenance_mode": "true"})

        assert await settings_service.is_system_frozen() is False
        assert await settings_service.is_maintenance_mode() is True
