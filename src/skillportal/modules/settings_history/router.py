"""
Skill Portal Settings History - Router.

API endpoints for settings versions and rollback.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from skillportal.auth import User, get_current_user
from skillportal.deps import require_admin, require_settings_history, require_super_admin
from skillportal.modules.settings_history.schemas import (
    RollbackRequest,
    RollbackResult,
    SettingsHistoryResponse,
)
from skillportal.modules.settings_history.service import SettingsHistoryService
from skillportal.schemas import MUTATION_ERROR_RESPONSES

router = APIRouter(
    prefix="/settings-history",
    tags=["settings-history"],
    dependencies=[require_settings_history],
)


def get_service() -> SettingsHistoryService:
    """Get settings history service instance."""
    return SettingsHistoryService()


@router.get("", response_model=SettingsHistoryResponse, dependencies=[require_admin])
async def list_history(
    setting_key: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    service: SettingsHistoryService = Depends(get_service),
):
    """List settings versions newest first."""
    return await service.history(setting_key=setting_key, limit=limit)


@router.post(
    "/{entry_id}/rollback",
    response_model=RollbackResult,
    responses=MUTATION_ERROR_RESPONSES,
    dependencies=[require_super_admin],
)
async def rollback_setting(
    entry_id: UUID,
    request: RollbackRequest | None = None,
    user: User = Depends(get_current_user),
    service: SettingsHistoryService = Depends(get_service),
):
    """Restore a setting from one of its versions."""
    request = request or RollbackRequest()
    return await service.rollback(
        entry_id,
        user,
        restore=request.restore,
        password=request.password,
        reason=request.reason,
    )
