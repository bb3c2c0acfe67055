"""Skill Portal Auth - step-up re-authentication.

Dangerous actions require the operator to re-enter their password right
before the action is accepted. The check signs in against Supabase Auth on a
throwaway anon-key client and confirms the session belongs to the operator.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable
from uuid import UUID

import httpx
from supabase import AuthApiError, AuthError, Client

from skillportal.core.supabase_client import create_auth_client
from skillportal.exceptions import PortalException

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Verifies fresh credentials for an already-authenticated operator."""

    @abstractmethod
    async def reauthenticate(
        self,
        email: str,
        secret: str,
        expected_user_id: UUID | None = None,
    ) -> bool:
        """Return True when the credentials are valid (and belong to `expected_user_id`)."""
        ...


class SupabaseIdentityProvider(IdentityProvider):
    """Password re-authentication through Supabase Auth."""

    def __init__(self, client_factory: Callable[[], Client] | None = None):
        self._client_factory = client_factory or create_auth_client

    async def reauthenticate(
        self,
        email: str,
        secret: str,
        expected_user_id: UUID | None = None,
    ) -> bool:
        if not email or not secret:
            return False

        client = self._client_factory()
        try:
            response = client.auth.sign_in_with_password({"email": email, "password": secret})
        except AuthApiError as e:
            logger.info(f"Re-authentication rejected for {email}: {e}")
            return False
        except (AuthError, httpx.HTTPError) as e:
            logger.error(f"Identity provider unavailable during re-authentication: {e}")
            raise PortalException(
                code="AUTH_PROVIDER_DOWN",
                message="Identity provider is unavailable; try again shortly",
                status_code=503,
            ) from e
        finally:
            self._end_session(client, email)

        user = getattr(response, "user", None)
        if user is None:
            return False
        if expected_user_id is not None and str(user.id) != str(expected_user_id):
            logger.warning(f"Re-authentication for {email} resolved to a different user")
            return False
        return True

    @staticmethod
    def _end_session(client: Client, email: str) -> None:
        """Drop the session the check created so no refresh token outlives it."""
        try:
            client.auth.sign_out()
        except (AuthError, httpx.HTTPError) as e:
            logger.warning(f"Could not end re-authentication session for {email}: {e}")


def get_identity_provider() -> IdentityProvider:
    """Get identity provider instance."""
    return SupabaseIdentityProvider()
