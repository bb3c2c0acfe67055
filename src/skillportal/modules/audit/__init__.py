"""Skill Portal Audit Module - Immutable administrative action log."""

from skillportal.modules.audit.router import router
from skillportal.modules.audit.service import AuditService
from skillportal.modules.audit.repository import ActionLogRepository

__all__ = ["router", "AuditService", "ActionLogRepository"]
