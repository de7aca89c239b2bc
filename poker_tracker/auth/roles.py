"""Role definitions."""
from enum import Enum


class Role(str, Enum):
    """User roles."""
    PLAYER = "player"
    ADMIN = "admin"

    @classmethod
    def for_player(cls, is_admin: bool) -> "Role":
        return cls.ADMIN if is_admin else cls.PLAYER
