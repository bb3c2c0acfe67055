"""Skill Portal Safe Actions Module."""

from skillportal.modules.safe_actions.executor import PendingActionExecutor
from skillportal.modules.safe_actions.router import router
from skillportal.modules.safe_actions.service import SafeActionOrchestrator

__all__ = ["router", "PendingActionExecutor", "SafeActionOrchestrator"]
