"""Skill Portal Auth Module.

Operators authenticate with Supabase-issued access tokens. Portal roles are
read from `user_roles`. Dangerous actions additionally require password
re-authentication through an IdentityProvider.
"""

from skillportal.auth.identity import IdentityProvider, SupabaseIdentityProvider, get_identity_provider
from skillportal.auth.schemas import TokenPayload, User
from skillportal.auth.supabase import get_current_user, verify_jwt

__all__ = [
    "get_current_user",
    "get_identity_provider",
    "verify_jwt",
    "IdentityProvider",
    "SupabaseIdentityProvider",
    "TokenPayload",
    "User",
]
