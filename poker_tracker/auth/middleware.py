"""Bearer-token authentication for API routes."""
import hashlib
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from poker_tracker.auth.jwt_handler import TokenError, verify_token
from poker_tracker.auth.roles import Role
from poker_tracker.errors import AuthorizationError
from poker_tracker.state.player_store import PlayerStore, player_store
from poker_tracker.state.redis_client import RedisClient, redis_client
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass
class AuthenticatedUser:
    """Authenticated caller context."""
    computing_id: str
    first_name: str
    last_name: str
    role: Role
    token: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> dict:
        return {
            "computing_id": self.computing_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "is_admin": self.is_admin,
        }


def _revoked_key(token: str) -> str:
    return f"revoked:{hashlib.sha256(token.encode()).hexdigest()}"


def extract_bearer(authorization: Optional[str]) -> str:
    """Pull the token out of an Authorization header.

    Raises:
        TokenError: If the header is missing or not a bearer header.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise TokenError("No token provided")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise TokenError("No token provided")
    return token


class AuthMiddleware:
    """Resolves bearer tokens to players."""

    def __init__(self, players: PlayerStore = player_store, revoked: RedisClient = redis_client):
        self.players = players
        self.revoked = revoked

    async def authenticate(self, token: str) -> AuthenticatedUser:
        """Authenticate a request using its JWT.
        
        The role comes from the player row rather than the token, so a
        promotion or demotion takes effect on the next request.
        
        Args:
            token: JWT from the Authorization header.
            
        Returns:
            Authenticated user context.
            
        Raises:
            TokenError: If the token is invalid, expired or revoked, or its
                player no longer exists.
        """
        payload = verify_token(token)
        
        if await self.revoked.exists(_revoked_key(token)):
            raise TokenError("Token has been revoked")
        
        player = await self.players.get(payload.computing_id)
        if not player:
            raise TokenError("User not found")
        
        return AuthenticatedUser(
            computing_id=player.computing_id,
            first_name=player.first_name,
            last_name=player.last_name,
            role=Role.for_player(player.is_admin),
            token=token,
        )
    
    async def revoke_token(self, token: str) -> None:
        """Revoke a token (logout).
        
        Args:
            token: Token to revoke.
        """
        try:
            payload = verify_token(token)
        except TokenError:
            # Already unusable
            return
        ttl = payload.remaining_seconds
        if ttl > 0:
            await self.revoked.set(_revoked_key(token), "1", ex=ttl)
        logger.info(f"Token revoked for {payload.computing_id}")


auth_middleware = AuthMiddleware()


def get_auth() -> AuthMiddleware:
    """Dependency returning the auth middleware (overridable in tests)."""
    return auth_middleware


async def get_current_user(
    authorization: Optional[str] = Header(None),
    auth: AuthMiddleware = Depends(get_auth),
) -> AuthenticatedUser:
    """Dependency requiring a valid bearer token."""
    return await auth.authenticate(extract_bearer(authorization))


async def get_admin_user(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    """Dependency requiring an admin caller."""
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user
