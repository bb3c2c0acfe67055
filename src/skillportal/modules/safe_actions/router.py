"""
Skill Portal Safe Actions - Router.

API endpoints for the action catalog and tiered action requests.
"""

from fastapi import APIRouter, Depends

from skillportal.auth import User, get_current_user
from skillportal.catalog import ACTION_CATALOG, ActionDescriptor, is_known
from skillportal.deps import require_admin, require_safe_actions, require_super_admin
from skillportal.exceptions import NotFoundException
from skillportal.modules.safe_actions.executor import PendingActionExecutor
from skillportal.modules.safe_actions.schemas import (
    ActionCatalogResponse,
    RunDueSummary,
    SafeActionRequest,
    SafeActionResult,
)
from skillportal.modules.safe_actions.service import SafeActionOrchestrator
from skillportal.schemas import MUTATION_ERROR_RESPONSES

router = APIRouter(
    prefix="/safe-actions",
    tags=["safe-actions"],
    dependencies=[require_safe_actions],
)


def get_service() -> SafeActionOrchestrator:
    """Get safe action orchestrator instance."""
    return SafeActionOrchestrator()


def get_executor() -> PendingActionExecutor:
    """Get pending action executor instance."""
    return PendingActionExecutor()


@router.get("/catalog", response_model=ActionCatalogResponse, dependencies=[require_admin])
async def list_catalog():
    """List every action with its tier and required friction."""
    items = list(ACTION_CATALOG.values())
    return ActionCatalogResponse(items=items, count=len(items))


@router.get("/catalog/{action_id}", response_model=ActionDescriptor, dependencies=[require_admin])
async def get_catalog_entry(action_id: str):
    """Get the policy for one action."""
    if not is_known(action_id):
        raise NotFoundException("action", action_id)
    return ACTION_CATALOG[action_id]


@router.post(
    "",
    response_model=SafeActionResult,
    responses=MUTATION_ERROR_RESPONSES,
    dependencies=[require_super_admin],
)
async def submit_action(
    request: SafeActionRequest,
    user: User = Depends(get_current_user),
    service: SafeActionOrchestrator = Depends(get_service),
):
    """
    Perform an administrative action.

    Safe actions apply at once, risky ones need a justification, dangerous
    ones also need the operator's password and are scheduled for later.
    """
    return await service.submit(request, user)


@router.post("/pending/run-due", response_model=RunDueSummary, dependencies=[require_super_admin])
async def run_due_actions(
    user: User = Depends(get_current_user),
    executor: PendingActionExecutor = Depends(get_executor),
):
    """Execute every due pending action. Intended for a cron caller."""
    return await executor.run_due()
