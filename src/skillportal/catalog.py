"""
Skill Portal - Action Catalog.

Single source of truth for how risky each administrative action is and what
friction it requires before it runs:

- tier1 (SAFE): instant, no confirmation
- tier2 (RISKY): justification required
- tier3 (DANGEROUS): justification, password re-authentication, delayed
  execution that can be cancelled

Every tier/policy decision (orchestrator, pending queue, settings views)
reads from this table; nothing else switches on action id strings.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from skillportal.exceptions import UnknownActionException

ActionTier = Literal["tier1", "tier2", "tier3"]

TIER_LABELS: dict[str, str] = {
    "tier1": "SAFE",
    "tier2": "RISKY",
    "tier3": "DANGEROUS",
}

TIER_RANK: dict[str, int] = {"tier1": 1, "tier2": 2, "tier3": 3}


class ActionDescriptor(BaseModel):
    """Policy for one action id. Immutable."""

    model_config = ConfigDict(frozen=True)

    action_id: str
    tier: ActionTier
    label: str
    description: str
    requires_justification: bool
    requires_reauth: bool
    delay_minutes: int = Field(ge=0)
    affects_users: bool
    is_reversible: bool
    warning_message: str | None = None
    setting_key: str | None = Field(
        default=None,
        description="Setting this action mutates, when it is a settings action",
    )

    @property
    def tier_label(self) -> str:
        return TIER_LABELS[self.tier]

    @property
    def is_delayed(self) -> bool:
        return self.delay_minutes > 0


def _safe(action_id: str, label: str, description: str) -> ActionDescriptor:
    return ActionDescriptor(
        action_id=action_id,
        tier="tier1",
        label=label,
        description=description,
        requires_justification=False,
        requires_reauth=False,
        delay_minutes=0,
        affects_users=False,
        is_reversible=True,
    )


def _risky(
    action_id: str,
    label: str,
    description: str,
    *,
    affects_users: bool = True,
    warning: str | None = None,
    setting_key: str | None = None,
) -> ActionDescriptor:
    return ActionDescriptor(
        action_id=action_id,
        tier="tier2",
        label=label,
        description=description,
        requires_justification=True,
        requires_reauth=False,
        delay_minutes=0,
        affects_users=affects_users,
        is_reversible=True,
        warning_message=warning,
        setting_key=setting_key,
    )


def _dangerous(
    action_id: str,
    label: str,
    description: str,
    warning: str,
    *,
    delay_minutes: int = 5,
    reversible: bool = True,
    setting_key: str | None = None,
) -> ActionDescriptor:
    return ActionDescriptor(
        action_id=action_id,
        tier="tier3",
        label=label,
        description=description,
        requires_justification=True,
        requires_reauth=True,
        delay_minutes=delay_minutes,
        affects_users=True,
        is_reversible=reversible,
        warning_message=warning,
        setting_key=setting_key,
    )


# =============================================================================
# Catalog
# =============================================================================
ACTION_CATALOG: dict[str, ActionDescriptor] = {
    d.action_id: d
    for d in (
        # TIER 1 - SAFE
        _safe("edit_content_text", "Edit Content Text", "Edit non-critical text content"),
        _safe("edit_announcement", "Edit Announcement", "Update announcement banner"),
        _safe("view_data", "View Data", "Read-only data access"),
        # TIER 2 - RISKY
        _risky(
            "change_fee",
            "Change Registration Fee",
            "Modify the registration fee amount",
            warning="This will affect all future payments.",
            setting_key="registration_fee",
        ),
        _risky(
            "toggle_feature",
            "Toggle Feature",
            "Enable or disable a system feature",
            warning="This may prevent users from accessing certain features.",
        ),
        _risky(
            "change_role",
            "Change User Role",
            "Modify user permissions",
            warning="This affects what the user can access.",
        ),
        _risky("add_skill", "Add Skill", "Add a new skill option", affects_users=False),
        _risky("edit_skill", "Edit Skill", "Modify skill details"),
        _risky(
            "deactivate_skill",
            "Deactivate Skill",
            "Hide skill from selection",
            warning="Students will no longer be able to select this skill.",
        ),
        # TIER 3 - DANGEROUS
        _dangerous(
            "system_freeze",
            "Freeze System",
            "Disable all system operations",
            "This will prevent ALL users from performing any actions!",
            setting_key="system_frozen",
        ),
        _dangerous(
            "maintenance_mode",
            "Enable Maintenance Mode",
            "Put system in read-only mode",
            "Users will only be able to view, not modify data.",
            setting_key="maintenance_mode",
        ),
        _dangerous(
            "payment_override",
            "Override Payment Status",
            "Manually change payment status",
            "This bypasses payment verification. Use with extreme caution.",
            reversible=False,
        ),
        _dangerous(
            "force_status_change",
            "Force Application Status",
            "Manually override application status",
            "This bypasses the normal workflow.",
        ),
        _dangerous(
            "bulk_operation",
            "Bulk Operation",
            "Perform action on multiple records",
            "Bulk operations are difficult to reverse.",
            delay_minutes=10,
            reversible=False,
        ),
        _dangerous(
            "regenerate_id",
            "Regenerate ID Card",
            "Create new ID card version",
            "This invalidates the previous ID card.",
            reversible=False,
        ),
        _dangerous(
            "delete_user",
            "Delete User",
            "Permanently remove user account",
            "This action CANNOT be undone!",
            delay_minutes=10,
            reversible=False,
        ),
        _dangerous(
            "ban_user",
            "Ban User",
            "Permanently ban user from system",
            "User will lose all access immediately.",
        ),
        _dangerous(
            "reset_application",
            "Reset Application",
            "Delete all application data for user",
            "This will delete forms, ID cards, and reset status.",
            reversible=False,
        ),
        _dangerous(
            "disable_payments",
            "Disable All Payments",
            "Stop all payment processing",
            "No payments can be processed while disabled.",
            setting_key="payment_enabled",
        ),
    )
}


def is_known(action_id: str) -> bool:
    return action_id in ACTION_CATALOG


def lookup(action_id: str, fallback_delay_minutes: int = 5) -> ActionDescriptor:
    """
    Resolve an action id to its descriptor.

    Total: ids missing from the catalog get a guarded tier3 descriptor, so a
    mistyped id can never slip through with less friction than a dangerous
    action.
    """
    descriptor = ACTION_CATALOG.get(action_id)
    if descriptor is not None:
        return descriptor
    return ActionDescriptor(
        action_id=action_id,
        tier="tier3",
        label=action_id,
        description="Unknown action",
        requires_justification=True,
        requires_reauth=True,
        delay_minutes=fallback_delay_minutes,
        affects_users=True,
        is_reversible=False,
        warning_message="This action is not in the catalog and is treated as dangerous.",
    )


def require(action_id: str) -> ActionDescriptor:
    """Resolve an action id, rejecting ids missing from the catalog."""
    if not is_known(action_id):
        raise UnknownActionException(action_id)
    return ACTION_CATALOG[action_id]


def action_for_setting(setting_key: str, new_value: str) -> str:
    """Map a settings change to the action id that governs it."""
    if setting_key == "system_frozen":
        return "system_freeze"
    if setting_key == "maintenance_mode":
        return "maintenance_mode"
    if setting_key == "registration_fee":
        return "change_fee"
    if setting_key == "payment_enabled":
        return "toggle_feature" if new_value == "true" else "disable_payments"
    return "toggle_feature"


def tier_for_setting(setting_key: str) -> ActionTier:
    """Highest tier any change to `setting_key` can require."""
    tiers = [lookup(action_for_setting(setting_key, value)).tier for value in ("true", "false")]
    return max(tiers, key=lambda t: TIER_RANK[t])
