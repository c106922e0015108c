"""JWT validation and user authentication dependencies.

This module provides:
- JWT validation against Supabase JWKS
- User authentication and auto-creation
- Admin gate for operator endpoints
"""

import logging
import time
import uuid as uuid_pkg
from typing import Annotated, Any

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.backends import ECKey
from sqlalchemy.ext.asyncio import AsyncSession

from zephra.config import settings
from zephra.core.audit_log import SecurityEventType, SecuritySeverity, log_security_event
from zephra.core.database import get_db
from zephra.core.exceptions import AuthenticationError, ForbiddenError
from zephra.domain import user_ops
from zephra.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cache for JWKS with TTL to handle key rotation
_jwks_cache: dict[str, Any] = {}
_jwks_cache_timestamp: float = 0.0
_JWKS_CACHE_TTL_SECONDS: float = 3600.0  # 1 hour


async def _fetch_jwks() -> dict[str, Any]:
    """Fetch JWKS from Supabase and update the cache."""
    global _jwks_cache_timestamp
    async with httpx.AsyncClient() as client:
        response = await client.get(settings.supabase_jwks_url)
        response.raise_for_status()
        jwks = response.json()
        _jwks_cache.clear()
        _jwks_cache.update(jwks)
        _jwks_cache_timestamp = time.monotonic()
        return jwks


async def get_jwks(force_refresh: bool = False) -> dict[str, Any]:
    """Fetch and cache JWKS from Supabase with a 1-hour TTL."""
    cache_age = time.monotonic() - _jwks_cache_timestamp
    if _jwks_cache and not force_refresh and cache_age < _JWKS_CACHE_TTL_SECONDS:
        return _jwks_cache

    return await _fetch_jwks()


def get_signing_key(jwks: dict[str, Any], token: str) -> ECKey:
    """Get the signing key from JWKS that matches the token's kid."""
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return ECKey(key, algorithm="ES256")

    raise ValueError("Unable to find matching key in JWKS")


async def decode_token(token: str, force_refresh: bool = False) -> dict[str, Any]:
    jwks = await get_jwks(force_refresh=force_refresh)
    signing_key = get_signing_key(jwks, token)
    payload: dict[str, Any] = jwt.decode(
        token,
        signing_key,
        algorithms=["ES256"],
        audience="authenticated",
    )
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    # Supabase subjects are auth.users ids; anything else is a bad token
    uuid_pkg.UUID(str(subject))
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate Supabase JWT and return current user.

    Creates user record on first API call if not exists.
    """
    if not credentials:
        raise AuthenticationError()

    token = credentials.credentials

    try:
        payload = await decode_token(token)
    except (JWTError, ValueError) as first_error:
        # Key rotation may have occurred - force a JWKS refresh and retry once
        try:
            logger.info("JWT validation failed with cached JWKS, forcing refresh")
            payload = await decode_token(token, force_refresh=True)
        except (JWTError, ValueError, httpx.HTTPError):
            raise AuthenticationError("Could not validate credentials") from first_error
    except httpx.HTTPError:
        raise AuthenticationError("Could not validate credentials") from None

    user_id = uuid_pkg.UUID(payload["sub"])
    user = await user_ops.get(db, user_id)

    if not user:
        # Create user on first API call (fallback if the signup trigger didn't run)
        user_metadata = payload.get("user_metadata", {})
        user = await user_ops.create(
            db,
            {
                "id": user_id,
                "email": (payload.get("email") or "").strip().lower(),
                "full_name": user_metadata.get("full_name") or user_metadata.get("name"),
                "avatar_url": user_metadata.get("avatar_url"),
            },
        )

    return user


async def require_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require the current user to be an admin.

    Returns the user if authorized; records an unauthorized_access event and
    raises 403 otherwise.
    """
    if not current_user.is_admin:
        await log_security_event(
            SecurityEventType.UNAUTHORIZED_ACCESS,
            SecuritySeverity.HIGH,
            f"Non-admin user attempted {request.url.path}",
            request,
            user_id=str(current_user.id),
        )
        raise ForbiddenError("Admin access required")
    return current_user


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
