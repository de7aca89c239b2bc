"""Player persistence using PostgreSQL."""
from decimal import Decimal
from typing import Any, Optional

import asyncpg

from poker_tracker.db.connection import db
from poker_tracker.errors import ConflictError, ValidationError
from poker_tracker.ledger.models import Player
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "years_of_experience", "level", "major")


class PlayerStore:
    """Player rows. Every method accepts an optional connection so callers
    can run it inside their own transaction."""

    async def get(self, computing_id: str, conn: Any = None) -> Optional[Player]:
        """Get a player by computing ID."""
        record = await (conn or db).fetchrow(
            "SELECT * FROM players WHERE computing_id = $1",
            computing_id
        )
        return Player.from_record(record) if record else None

    async def get_for_update(self, computing_id: str, conn: Any) -> Optional[Player]:
        """Get a player and lock the row until the transaction ends."""
        record = await conn.fetchrow(
            "SELECT * FROM players WHERE computing_id = $1 FOR UPDATE",
            computing_id
        )
        return Player.from_record(record) if record else None

    async def list_all(self, conn: Any = None) -> list[Player]:
        """List all players ordered by computing ID."""
        records = await (conn or db).fetch("SELECT * FROM players ORDER BY computing_id")
        return [Player.from_record(r) for r in records]

    async def create(self, player: Player, conn: Any = None) -> Player:
        """Insert a new player.

        Raises:
            ConflictError: If the computing ID is taken.
        """
        try:
            record = await (conn or db).fetchrow(
                """
                INSERT INTO players (
                    computing_id, first_name, last_name,
                    years_of_experience, level, major, is_admin
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                player.computing_id,
                player.first_name,
                player.last_name,
                player.years_of_experience,
                player.level,
                player.major,
                player.is_admin,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("A player with this computing ID already exists")

        logger.info(f"Created player {player.computing_id}")
        return Player.from_record(record)

    async def update_profile(self, computing_id: str, updates: dict, conn: Any = None) -> Optional[Player]:
        """Update editable profile fields.

        Args:
            computing_id: Player to update.
            updates: Field -> value; keys outside PROFILE_FIELDS are ignored.

        Returns:
            The updated player, or None if not found.

        Raises:
            ValidationError: If no editable field is given.
        """
        fields = [k for k in PROFILE_FIELDS if k in updates]
        if not fields:
            raise ValidationError("No valid fields to update")

        assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, 2))
        record = await (conn or db).fetchrow(
            f"UPDATE players SET {assignments} WHERE computing_id = $1 RETURNING *",
            computing_id,
            *(updates[name] for name in fields)
        )
        return Player.from_record(record) if record else None

    async def set_total_winnings(self, computing_id: str, total: Decimal, conn: Any = None) -> None:
        """Store a recomputed total."""
        await (conn or db).execute(
            "UPDATE players SET total_winnings = $2 WHERE computing_id = $1",
            computing_id, total
        )

    async def adjust_total_winnings(self, computing_id: str, delta: Decimal, conn: Any = None) -> Decimal:
        """Add delta to a player's total and return the new total."""
        return await (conn or db).fetchval(
            """
            UPDATE players SET total_winnings = total_winnings + $2
            WHERE computing_id = $1
            RETURNING total_winnings
            """,
            computing_id, delta
        )

    async def set_admin(self, computing_id: str, is_admin: bool, conn: Any = None) -> bool:
        """Grant or revoke admin rights. Returns False if the player is unknown."""
        result = await (conn or db).execute(
            "UPDATE players SET is_admin = $2 WHERE computing_id = $1",
            computing_id, is_admin
        )
        return result != "UPDATE 0"


# Global instance
player_store = PlayerStore()
