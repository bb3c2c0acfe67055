"""Skill Portal Settings Module - Versioned key/value system settings."""

from skillportal.modules.settings.router import router
from skillportal.modules.settings.service import SettingsService
from skillportal.modules.settings.repository import SettingsHistoryRepository, SettingsRepository

__all__ = ["router", "SettingsService", "SettingsRepository", "SettingsHistoryRepository"]
