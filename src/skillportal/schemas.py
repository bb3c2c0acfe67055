"""
Skill Portal - Common Schemas.

Shared Pydantic models used across all modules.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


# =============================================================================
# Error Responses
# =============================================================================


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional context")
    request_id: UUID | None = Field(default=None, description="Request ID for tracing")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail


# Shared OpenAPI error documentation for mutating endpoints
MUTATION_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation failed"},
    401: {"model": ErrorResponse, "description": "Not authenticated or re-authentication failed"},
    409: {"model": ErrorResponse, "description": "Invalid state or concurrent modification"},
    503: {"model": ErrorResponse, "description": "Data store unavailable"},
}


# =============================================================================
# Health Check
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., pattern="^(healthy|degraded)$")
    version: str
    features: dict[str, bool]
    app_env: str | None = None
    is_production: bool | None = None
