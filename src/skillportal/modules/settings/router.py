"""
Skill Portal Settings - Router.

Read endpoints for system settings. Changes go through /safe-actions.
"""

from fastapi import APIRouter, Depends

from skillportal.auth import User, get_current_user
from skillportal.deps import require_admin, require_settings
from skillportal.modules.settings.schemas import Setting, SettingsListResponse
from skillportal.modules.settings.service import SettingsService

router = APIRouter(
    prefix="/settings",
    tags=["settings"],
    dependencies=[require_settings, require_admin],
)


def get_service() -> SettingsService:
    """Get settings service instance."""
    return SettingsService()


@router.get("", response_model=SettingsListResponse)
async def list_settings(
    user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_service),
):
    """List all settings with their safety tier."""
    return await service.list_settings()


@router.get("/{key}", response_model=Setting)
async def get_setting(
    key: str,
    user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_service),
):
    """Get one setting."""
    return await service.get_setting(key)
