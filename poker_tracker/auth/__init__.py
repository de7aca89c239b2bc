"""Authentication module."""
from .jwt_handler import create_access_token, verify_token, TokenError, TokenPayload
from .roles import Role
from .middleware import (
    AuthenticatedUser,
    AuthMiddleware,
    auth_middleware,
    get_admin_user,
    get_current_user,
)

__all__ = [
    "create_access_token",
    "verify_token",
    "TokenError",
    "TokenPayload",
    "Role",
    "AuthenticatedUser",
    "AuthMiddleware",
    "auth_middleware",
    "get_admin_user",
    "get_current_user",
]
