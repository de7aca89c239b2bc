"""Session check-in / check-out lifecycle."""
from datetime import date
from decimal import Decimal
from typing import Optional

from poker_tracker.db.connection import Database, db
from poker_tracker.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from poker_tracker.ledger.chips import chip_total, to_money
from poker_tracker.ledger.models import SessionEntry
from poker_tracker.ledger.winnings import complete_entry
from poker_tracker.state.chip_store import ChipStore, chip_store
from poker_tracker.state.entry_store import EntryStore, entry_store
from poker_tracker.state.player_store import PlayerStore, player_store
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class SessionLedger:
    """Creates and completes session entries and keeps player totals in step."""

    def __init__(
        self,
        database: Database = db,
        players: PlayerStore = player_store,
        entries: EntryStore = entry_store,
        chips: ChipStore = chip_store,
    ):
        self.db = database
        self.players = players
        self.entries = entries
        self.chips = chips

    async def _resolve_amount(
        self,
        amount: Optional[Decimal],
        breakdown: Optional[dict[str, int]],
        label: str,
        conn=None,
    ) -> Decimal:
        """Price a breakdown at current chip values, or fall back to an explicit amount."""
        if breakdown:
            values = await self.chips.get_values(conn)
            return chip_total(breakdown, values)
        if amount is None:
            raise ValidationError(f"Either {label}_chips or {label}_chip_breakdown is required")
        return to_money(amount)

    async def check_in(
        self,
        computing_id: str,
        session_date: date,
        start_chips: Optional[Decimal] = None,
        start_chip_breakdown: Optional[dict[str, int]] = None,
        start_photo_url: Optional[str] = None,
    ) -> SessionEntry:
        """Open a session for a player.

        Args:
            computing_id: Player checking in.
            session_date: Date of play.
            start_chips: Starting amount when no breakdown is given.
            start_chip_breakdown: Color -> count of the starting stack.
            start_photo_url: Photo of the starting stack.

        Returns:
            The new open entry.

        Raises:
            NotFoundError: If the player does not exist.
            ConflictError: If the player already has an open session.
            ValidationError: If no starting amount is given.
        """
        async with self.db.transaction() as conn:
            # The player row lock serialises concurrent check-ins
            player = await self.players.get_for_update(computing_id, conn)
            if not player:
                raise NotFoundError("Player profile not found")

            existing = await self.entries.get_open(computing_id, conn)
            if existing:
                raise ConflictError(
                    "You already have an incomplete session. Please check out first.",
                    details={"existing_session": existing.to_dict()},
                )

            amount = await self._resolve_amount(start_chips, start_chip_breakdown, "start", conn)
            entry = await self.entries.create(
                computing_id=computing_id,
                session_date=session_date,
                start_chips=amount,
                start_chip_breakdown=start_chip_breakdown or {},
                start_photo_url=start_photo_url,
                conn=conn,
            )

        logger.info(f"{computing_id} checked in with {entry.start_chips} (entry {entry.entry_id})")
        return entry

    async def check_out(
        self,
        entry_id: int,
        computing_id: str,
        end_chips: Optional[Decimal] = None,
        end_chip_breakdown: Optional[dict[str, int]] = None,
        end_photo_url: Optional[str] = None,
    ) -> SessionEntry:
        """Complete an open session and update the owner's total.

        Args:
            entry_id: Entry to complete.
            computing_id: Caller; must own the entry.
            end_chips: Final amount when no breakdown is given.
            end_chip_breakdown: Color -> count of the final stack.
            end_photo_url: Photo of the final stack.

        Returns:
            The completed entry.

        Raises:
            NotFoundError: If the entry does not exist.
            AuthorizationError: If the caller does not own the entry.
            ConflictError: If the entry is already completed.
        """
        async with self.db.transaction() as conn:
            entry = await self.entries.get_for_update(entry_id, conn)
            if not entry:
                raise NotFoundError("No session found with the specified ID")
            if entry.computing_id != computing_id:
                raise AuthorizationError("You can only check out your own sessions")
            if entry.is_completed:
                raise ConflictError(f"Session {entry_id} is already checked out")

            amount = await self._resolve_amount(end_chips, end_chip_breakdown, "end", conn)
            completed = complete_entry(entry, amount, end_chip_breakdown, end_photo_url)
            saved = await self.entries.save(completed, conn)

            total = to_money(await self.entries.completed_total(computing_id, conn))
            await self.players.set_total_winnings(computing_id, total, conn)

        logger.info(
            f"{computing_id} checked out entry {entry_id}: "
            f"{saved.start_chips} -> {saved.end_chips} (net {saved.net_winnings})"
        )
        return saved

    async def check_out_open(
        self,
        computing_id: str,
        end_chips: Optional[Decimal] = None,
        end_chip_breakdown: Optional[dict[str, int]] = None,
        end_photo_url: Optional[str] = None,
    ) -> SessionEntry:
        """Complete whichever session the player has open.

        Raises:
            NotFoundError: If the player has no open session.
        """
        entry = await self.entries.get_open(computing_id)
        if not entry:
            raise NotFoundError("No incomplete session found. Please check in first.")
        return await self.check_out(
            entry.entry_id, computing_id, end_chips, end_chip_breakdown, end_photo_url
        )

    async def get_open(self, computing_id: str) -> SessionEntry:
        """Get the player's open session.

        Raises:
            NotFoundError: If the player has no open session.
        """
        entry = await self.entries.get_open(computing_id)
        if not entry:
            raise NotFoundError("No incomplete session found")
        return entry

    async def get_entry(self, entry_id: int) -> SessionEntry:
        """Get a session entry.

        Raises:
            NotFoundError: If the entry does not exist.
        """
        entry = await self.entries.get(entry_id)
        if not entry:
            raise NotFoundError("No session found with the specified ID")
        return entry

    async def list_sessions(self, computing_id: str) -> dict:
        """A player's sessions with completion counts."""
        entries = await self.entries.list_for_player(computing_id)
        completed = sum(1 for e in entries if e.is_completed)
        return {
            "sessions": [e.to_dict() for e in entries],
            "total": len(entries),
            "completed": completed,
            "incomplete": len(entries) - completed,
        }

    async def attach_photo(self, entry_id: int, computing_id: str, kind: str, url: str) -> SessionEntry:
        """Record a start or end photo on the caller's entry.

        Raises:
            NotFoundError: If the entry does not exist.
            AuthorizationError: If the caller does not own the entry.
            ValidationError: If kind is not "start" or "end".
        """
        if kind not in ("start", "end"):
            raise ValidationError("Photo kind must be 'start' or 'end'")

        async with self.db.transaction() as conn:
            entry = await self.entries.get_for_update(entry_id, conn)
            if not entry:
                raise NotFoundError("No session found with the specified ID")
            if entry.computing_id != computing_id:
                raise AuthorizationError("You can only update your own sessions")

            field = "start_photo_url" if kind == "start" else "end_photo_url"
            saved = await self.entries.save(entry.with_changes(**{field: url}), conn)

        logger.info(f"Attached {kind} photo to entry {entry_id}")
        return saved


# Global instance
session_ledger = SessionLedger()
