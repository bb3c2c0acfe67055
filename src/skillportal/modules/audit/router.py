"""
Skill Portal Audit - Router.

API endpoints for the action log. READ-ONLY for super admins.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from skillportal.auth import User, get_current_user
from skillportal.deps import require_audit, require_super_admin
from skillportal.modules.audit.schemas import ActionLogListResponse
from skillportal.modules.audit.service import AuditService

router = APIRouter(
    prefix="/audit",
    tags=["audit"],
    dependencies=[require_audit, require_super_admin],
)


def get_service() -> AuditService:
    """Get audit service instance."""
    return AuditService()


@router.get("/logs", response_model=ActionLogListResponse)
async def list_action_logs(
    action_type: str | None = None,
    actor_id: UUID | None = None,
    target_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    user: User = Depends(get_current_user),
    service: AuditService = Depends(get_service),
):
    """Get the action log, newest first. Super admin only."""
    return await service.list_logs(
        action_type=action_type,
        actor_id=actor_id,
        target_id=target_id,
        limit=limit,
    )
