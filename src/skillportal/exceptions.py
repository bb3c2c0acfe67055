"""
Skill Portal - Custom Exceptions.

Centralized exception handling with standardized error responses.
"""

from typing import Any
from uuid import UUID


class PortalException(Exception):
    """Base exception for the Skill Portal application."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        request_id: UUID | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        self.request_id = request_id
        super().__init__(message)


class UnauthorizedException(PortalException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ReauthenticationFailedException(PortalException):
    """Raised when step-up re-authentication is missing or rejected."""

    def __init__(self, message: str = "invalid credentials"):
        super().__init__(
            code="REAUTH_FAILED",
            message=message,
            status_code=401,
        )


class ForbiddenException(PortalException):
    """Raised when user lacks required permissions."""

    def __init__(self, message: str = "Insufficient permissions", required_role: str | None = None):
        details = {"required_role": required_role} if required_role else None
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
            details=details,
        )


class NotFoundException(PortalException):
    """Raised when a resource is not found."""

    def __init__(self, resource_type: str, resource_id: str | UUID):
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource_type} not found: {resource_id}",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class ConflictException(PortalException):
    """Raised when state transition is not allowed."""

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        target_state: str | None = None,
        code: str = "CONFLICT",
    ):
        details = {}
        if current_state:
            details["current_state"] = current_state
        if target_state:
            details["target_state"] = target_state
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details if details else None,
        )


class InvalidStateException(ConflictException):
    """Raised when acting on a record whose state no longer allows it."""

    def __init__(self, message: str, current_state: str | None = None, target_state: str | None = None):
        super().__init__(
            message,
            current_state=current_state,
            target_state=target_state,
            code="INVALID_STATE",
        )


class ConcurrentModificationException(ConflictException):
    """Raised when a conditional write finds the row already changed."""

    def __init__(self, resource_type: str, resource_id: str, expected: str | None = None, actual: str | None = None):
        super().__init__(
            f"{resource_type} '{resource_id}' was modified concurrently; reload and retry",
            current_state=actual,
            target_state=expected,
            code="CONCURRENT_MODIFICATION",
        )


class SystemFrozenException(PortalException):
    """Raised when a change is attempted while the system is frozen."""

    def __init__(self, setting_key: str):
        super().__init__(
            code="SYSTEM_FROZEN",
            message="System is frozen; only freeze and maintenance controls can change",
            status_code=423,
            details={"setting_key": setting_key},
        )


class ValidationException(PortalException):
    """Raised for validation errors."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details={"errors": errors} if errors else None,
        )


class UnknownActionException(PortalException):
    """Raised when an action id is not in the action catalog."""

    def __init__(self, action_id: str):
        super().__init__(
            code="UNKNOWN_ACTION",
            message=f"Unknown action: {action_id}",
            status_code=400,
            details={"action_id": action_id},
        )


class FeatureDisabledException(PortalException):
    """Raised when a feature flag is disabled."""

    def __init__(self, feature_name: str):
        super().__init__(
            code="FEATURE_DISABLED",
            message=f"Feature '{feature_name}' is currently disabled",
            status_code=503,
            details={"feature": feature_name},
        )


class PersistenceException(PortalException):
    """Raised when a backing-store call fails."""

    def __init__(self, table: str, operation: str, message: str):
        super().__init__(
            code="PERSISTENCE_ERROR",
            message="The data store request failed; no changes were made",
            status_code=503,
            details={"table": table, "operation": operation, "reason": message},
        )


class AuditTrailException(PortalException):
    """Raised when a mutation succeeded but its history or audit record could not be written."""

    def __init__(self, table: str, record: dict[str, Any], queued: bool = False):
        super().__init__(
            code="AUDIT_WRITE_FAILED",
            message="The change was applied but its audit record could not be written",
            status_code=500,
            details={
                "table": table,
                "mutation_applied": True,
                "queued_for_retry": queued,
                "record": record,
            },
        )
