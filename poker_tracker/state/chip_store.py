"""Chip value persistence using PostgreSQL."""
from decimal import Decimal
from typing import Any, Mapping

from poker_tracker.db.connection import db


class ChipStore:
    """The color -> value table."""

    async def get_values(self, conn: Any = None) -> dict[str, Decimal]:
        """Current chip values."""
        records = await (conn or db).fetch("SELECT color, value FROM chip_values ORDER BY value")
        return {r["color"]: r["value"] for r in records}

    async def get_values_for_update(self, conn: Any) -> dict[str, Decimal]:
        """Current chip values, locked against concurrent updates."""
        await conn.execute("LOCK TABLE chip_values IN SHARE ROW EXCLUSIVE MODE")
        return await self.get_values(conn)

    async def upsert_values(self, values: Mapping[str, Decimal], conn: Any = None) -> None:
        """Insert or replace the given colors."""
        await (conn or db).executemany(
            """
            INSERT INTO chip_values (color, value) VALUES ($1, $2)
            ON CONFLICT (color) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
            """,
            list(values.items())
        )


# Global instance
chip_store = ChipStore()
