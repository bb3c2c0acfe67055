"""
Skill Portal Auth - Supabase JWT Validation.

Validates JWT tokens issued by Supabase Auth and resolves the caller's
portal roles.
"""

from datetime import datetime, timezone
from typing import Annotated
from uuid import NAMESPACE_URL, UUID, uuid5

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from skillportal.auth.roles import RolesRepository, get_roles_repository
from skillportal.auth.schemas import TokenPayload, User
from skillportal.config import Settings, get_settings
from skillportal.exceptions import UnauthorizedException

# Security scheme
security = HTTPBearer(auto_error=False)

DEV_USER_ID = uuid5(NAMESPACE_URL, "skillportal:user:local-dev-super-admin")


def verify_jwt(
    token: str,
    secret: str,
    audience: str | None = "authenticated",
    algorithms: list[str] | None = None,
) -> TokenPayload:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string
        secret: The secret key for verification
        audience: Expected `aud` claim (None disables the check)
        algorithms: List of allowed algorithms (default: HS256)

    Returns:
        Decoded token payload

    Raises:
        UnauthorizedException: If token is invalid or expired
    """
    if algorithms is None:
        algorithms = ["HS256"]

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=algorithms,
            audience=audience,
            options={"verify_aud": audience is not None},
        )

        # jose checks exp when present; tokens without exp are refused
        exp = payload.get("exp")
        if exp is None:
            raise UnauthorizedException("Token has no expiry")
        if datetime.fromtimestamp(exp, tz=timezone.utc) < datetime.now(tz=timezone.utc):
            raise UnauthorizedException("Token has expired")

        return TokenPayload(
            sub=UUID(payload["sub"]),
            email=payload.get("email"),
            role=payload.get("role"),
            aud=payload.get("aud"),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if payload.get("iat") else None,
        )
    except JWTError as e:
        raise UnauthorizedException(f"Invalid token: {e}")
    except (KeyError, ValueError) as e:
        raise UnauthorizedException(f"Malformed token payload: {e}")


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    roles_repository: Annotated[RolesRepository, Depends(get_roles_repository)],
) -> User:
    """
    Get the current authenticated user from the request.

    This is a FastAPI dependency that extracts and validates the JWT
    from the Authorization header, then loads the user's portal roles.

    Raises:
        UnauthorizedException: If no token or invalid token
    """
    # Local bypass: OFF by default; enable via AUTH_INSECURE_DEV_BYPASS=true.
    if settings.auth_insecure_dev_bypass and not settings.is_production:
        user = User(
            id=DEV_USER_ID,
            email=settings.dev_user_email,
            display_name="Local Dev",
            roles=["super_admin"],
        )
        request.state.user = user.model_dump()
        return user

    if not credentials:
        raise UnauthorizedException("Missing authentication token")

    token_payload = verify_jwt(
        token=credentials.credentials,
        secret=settings.supabase.jwt_secret,
        audience=settings.supabase.jwt_audience,
    )

    roles = await roles_repository.get_roles(token_payload.sub)

    user = User(
        id=token_payload.sub,
        email=token_payload.email,
        roles=roles or ["student"],
    )

    # Store user in request state for access in other dependencies
    request.state.user = user.model_dump()

    return user
