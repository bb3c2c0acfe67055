"""
Skill Portal Auth - Schemas.

Pydantic models for authentication and the portal's role hierarchy.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

ROLE_HIERARCHY: dict[str, int] = {
    "super_admin": 4,
    "admin": 3,
    "moderator": 2,
    "student": 1,
}


class TokenPayload(BaseModel):
    """JWT token payload from Supabase."""

    sub: UUID = Field(..., description="User ID")
    email: str | None = None
    role: str | None = None
    aud: str | None = None
    exp: datetime | None = None
    iat: datetime | None = None


class User(BaseModel):
    """Authenticated portal user."""

    id: UUID
    email: str | None = None
    display_name: str | None = None
    roles: list[str] = Field(default_factory=lambda: ["student"])

    @property
    def role(self) -> str:
        """Highest role held by the user."""
        return max(self.roles or ["student"], key=lambda r: ROLE_HIERARCHY.get(r, 0))

    @property
    def is_super_admin(self) -> bool:
        return "super_admin" in self.roles

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role or higher."""
        return self.has_role_or_higher("admin")

    def has_role_or_higher(self, required_role: str) -> bool:
        """Check the user's highest role against the hierarchy."""
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(required_role, 0)
