"""Session entry persistence using PostgreSQL."""
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import asyncpg

from poker_tracker.db.connection import db
from poker_tracker.errors import ConflictError
from poker_tracker.ledger.models import SessionEntry
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class EntryStore:
    """Session entry rows."""

    async def get(self, entry_id: int, conn: Any = None) -> Optional[SessionEntry]:
        """Get an entry by ID."""
        record = await (conn or db).fetchrow(
            "SELECT * FROM session_entries WHERE entry_id = $1",
            entry_id
        )
        return SessionEntry.from_record(record) if record else None

    async def get_for_update(self, entry_id: int, conn: Any) -> Optional[SessionEntry]:
        """Get an entry and lock it until the transaction ends."""
        record = await conn.fetchrow(
            "SELECT * FROM session_entries WHERE entry_id = $1 FOR UPDATE",
            entry_id
        )
        return SessionEntry.from_record(record) if record else None

    async def get_open(self, computing_id: str, conn: Any = None) -> Optional[SessionEntry]:
        """Get the player's incomplete entry, if any."""
        record = await (conn or db).fetchrow(
            """
            SELECT * FROM session_entries
            WHERE computing_id = $1 AND NOT is_completed
            """,
            computing_id
        )
        return SessionEntry.from_record(record) if record else None

    async def create(
        self,
        computing_id: str,
        session_date: date,
        start_chips: Decimal,
        start_chip_breakdown: dict[str, int],
        start_photo_url: Optional[str] = None,
        conn: Any = None,
    ) -> SessionEntry:
        """Insert an open entry (check-in).

        Raises:
            ConflictError: If the player already has an open entry.
        """
        try:
            record = await (conn or db).fetchrow(
                """
                INSERT INTO session_entries (
                    computing_id, session_date, start_chips,
                    start_chip_breakdown, start_photo_url
                ) VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                computing_id,
                session_date,
                start_chips,
                start_chip_breakdown,
                start_photo_url,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("You already have an incomplete session. Please check out first.")
        return SessionEntry.from_record(record)

    async def save(self, entry: SessionEntry, conn: Any = None) -> SessionEntry:
        """Write back every mutable column of an entry."""
        record = await (conn or db).fetchrow(
            """
            UPDATE session_entries SET
                start_chips = $2,
                start_photo_url = $3,
                end_chips = $4,
                end_chip_breakdown = $5,
                end_photo_url = $6,
                net_winnings = $7,
                is_completed = $8,
                admin_override = $9
            WHERE entry_id = $1
            RETURNING *
            """,
            entry.entry_id,
            entry.start_chips,
            entry.start_photo_url,
            entry.end_chips,
            entry.end_chip_breakdown,
            entry.end_photo_url,
            entry.net_winnings,
            entry.is_completed,
            entry.admin_override,
        )
        return SessionEntry.from_record(record)

    async def list_for_player(self, computing_id: str, conn: Any = None) -> list[SessionEntry]:
        """All of a player's entries, newest session first."""
        records = await (conn or db).fetch(
            """
            SELECT * FROM session_entries
            WHERE computing_id = $1
            ORDER BY session_date DESC, entry_id DESC
            """,
            computing_id
        )
        return [SessionEntry.from_record(r) for r in records]

    async def list_all(self, conn: Any = None) -> list[SessionEntry]:
        """Every entry, oldest first."""
        records = await (conn or db).fetch("SELECT * FROM session_entries ORDER BY entry_id")
        return [SessionEntry.from_record(r) for r in records]

    async def list_priced_for_update(self, conn: Any) -> list[SessionEntry]:
        """Lock and return the entries whose amounts come from chip breakdowns."""
        records = await conn.fetch(
            """
            SELECT * FROM session_entries
            WHERE NOT admin_override
              AND (start_chip_breakdown <> '{}'::jsonb OR end_chip_breakdown <> '{}'::jsonb)
            ORDER BY entry_id
            FOR UPDATE
            """
        )
        return [SessionEntry.from_record(r) for r in records]

    async def completed_total(self, computing_id: str, conn: Any = None) -> Decimal:
        """Sum of net winnings over a player's completed entries."""
        return await (conn or db).fetchval(
            """
            SELECT COALESCE(SUM(net_winnings), 0)
            FROM session_entries
            WHERE computing_id = $1 AND is_completed
            """,
            computing_id
        )


# Global instance
entry_store = EntryStore()
