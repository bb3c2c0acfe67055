"""
Skill Portal Pending Actions - Router.

API endpoints for the delayed-action queue.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from skillportal.auth import User, get_current_user
from skillportal.deps import require_pending_actions, require_super_admin
from skillportal.modules.pending_actions.schemas import (
    CancelPendingActionRequest,
    PendingAction,
    PendingActionListResponse,
)
from skillportal.modules.pending_actions.service import PendingActionQueue
from skillportal.schemas import MUTATION_ERROR_RESPONSES

router = APIRouter(
    prefix="/pending-actions",
    tags=["pending-actions"],
    dependencies=[require_pending_actions, require_super_admin],
)


def get_service() -> PendingActionQueue:
    """Get pending action queue instance."""
    return PendingActionQueue()


@router.get("", response_model=PendingActionListResponse)
async def list_pending_actions(
    user: User = Depends(get_current_user),
    service: PendingActionQueue = Depends(get_service),
):
    """List waiting actions with countdowns, plus recent finished ones."""
    return await service.list_split()


@router.get("/{action_id}", response_model=PendingAction)
async def get_pending_action(
    action_id: UUID,
    user: User = Depends(get_current_user),
    service: PendingActionQueue = Depends(get_service),
):
    """Get one pending action."""
    return await service.get(action_id)


@router.post(
    "/{action_id}/cancel",
    response_model=PendingAction,
    responses=MUTATION_ERROR_RESPONSES,
)
async def cancel_pending_action(
    action_id: UUID,
    request: CancelPendingActionRequest | None = None,
    user: User = Depends(get_current_user),
    service: PendingActionQueue = Depends(get_service),
):
    """Cancel a pending action before it runs."""
    reason = request.reason if request else None
    return await service.cancel(action_id, reason, user)
