"""Skill Portal Settings History Module."""

from skillportal.modules.settings_history.router import router
from skillportal.modules.settings_history.service import SettingsHistoryService

__all__ = ["router", "SettingsHistoryService"]
