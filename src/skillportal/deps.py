"""
Skill Portal - Dependency Injection.

FastAPI dependencies for auth and feature flags.
"""

from typing import Annotated

from fastapi import Depends

from skillportal.auth import User, get_current_user
from skillportal.config import FeatureFlags, Settings, get_settings
from skillportal.exceptions import FeatureDisabledException, ForbiddenException


# =============================================================================
# Settings Dependencies
# =============================================================================


def get_features(settings: Annotated[Settings, Depends(get_settings)]) -> FeatureFlags:
    """Get feature flags from settings."""
    return settings.features


# =============================================================================
# Feature Flag Guards
# =============================================================================


def require_feature(feature_name: str):
    """Create a dependency that requires a specific feature to be enabled."""

    def check_feature(features: Annotated[FeatureFlags, Depends(get_features)]) -> bool:
        if not getattr(features, feature_name, False):
            raise FeatureDisabledException(feature_name)
        return True

    return check_feature


# Specific feature guards
require_safe_actions = Depends(require_feature("safe_actions"))
require_pending_actions = Depends(require_feature("pending_actions"))
require_settings = Depends(require_feature("settings"))
require_settings_history = Depends(require_feature("settings_history"))
require_audit = Depends(require_feature("audit"))


# =============================================================================
# Role Guards
# =============================================================================


def require_role(minimum_role: str):
    """Create a dependency that requires `minimum_role` or higher."""

    async def check_role(user: Annotated[User, Depends(get_current_user)]) -> bool:
        if not user.has_role_or_higher(minimum_role):
            raise ForbiddenException(
                "Insufficient permissions",
                required_role=minimum_role,
            )
        return True

    return Depends(check_role)


require_super_admin = require_role("super_admin")
require_admin = require_role("admin")
