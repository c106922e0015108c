"""API dependencies."""

from .auth import (
    AdminUser,
    CurrentUser,
    DbSession,
    get_current_user,
    get_jwks,
    get_signing_key,
    require_admin,
    security,
)

__all__ = [
    "security",
    "get_jwks",
    "get_signing_key",
    "get_current_user",
    "require_admin",
    "AdminUser",
    "CurrentUser",
    "DbSession",
]
