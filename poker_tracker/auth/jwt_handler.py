"""JWT token handling."""
import jwt
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass

from poker_tracker.config import config
from poker_tracker.auth.roles import Role


@dataclass
class TokenPayload:
    """Decoded token payload."""
    computing_id: str
    role: Role
    exp: datetime
    iat: datetime

    @property
    def remaining_seconds(self) -> int:
        """Seconds until the token expires, never negative."""
        return max(0, int((self.exp - datetime.now(timezone.utc)).total_seconds()))


class TokenError(Exception):
    """Token validation error."""
    pass


def create_access_token(computing_id: str, role: Role) -> str:
    """Create a bearer token for a player.
    
    Args:
        computing_id: The player's computing ID.
        role: Role at the time of login.
        
    Returns:
        Encoded JWT.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": computing_id,
        "role": role.value,
        "iat": now,
        "exp": now + timedelta(hours=config.jwt_expiry_hours),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def verify_token(token: str) -> TokenPayload:
    """Verify and decode a JWT token.
    
    Args:
        token: The JWT token to verify.
        
    Returns:
        Decoded token payload.
        
    Raises:
        TokenError: If the token is malformed, badly signed or expired.
    """
    try:
        payload = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    
    try:
        return TokenPayload(
            computing_id=payload["sub"],
            role=Role(payload.get("role", Role.PLAYER.value)),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        )
    except (KeyError, ValueError) as e:
        raise TokenError(f"Invalid token payload: {e}")
