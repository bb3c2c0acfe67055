"""Skill Portal Pending Actions Module."""

from skillportal.modules.pending_actions.repository import PendingActionRepository
from skillportal.modules.pending_actions.router import router
from skillportal.modules.pending_actions.service import PendingActionQueue

__all__ = ["router", "PendingActionQueue", "PendingActionRepository"]
