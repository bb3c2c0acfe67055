"""Skill Portal Modules - All application modules."""

from skillportal.modules.audit import router as audit_router
from skillportal.modules.pending_actions import router as pending_actions_router
from skillportal.modules.safe_actions import router as safe_actions_router
from skillportal.modules.settings import router as settings_router
from skillportal.modules.settings_history import router as settings_history_router

__all__ = [
    "audit_router",
    "pending_actions_router",
    "safe_actions_router",
    "settings_router",
    "settings_history_router",
]
