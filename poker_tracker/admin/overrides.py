"""Manual correction of a session's net winnings."""
from decimal import Decimal
from typing import Optional

from poker_tracker.admin.audit import AuditAction, AuditLog, audit_log
from poker_tracker.db.connection import Database, db
from poker_tracker.errors import NotFoundError
from poker_tracker.ledger.chips import Number, to_money
from poker_tracker.ledger.winnings import ZERO
from poker_tracker.state.entry_store import EntryStore, entry_store
from poker_tracker.state.player_store import PlayerStore, player_store
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_REASON = "No reason provided"


class SessionOverrides:
    """Admin overrides of session results."""

    def __init__(
        self,
        database: Database = db,
        entries: EntryStore = entry_store,
        players: PlayerStore = player_store,
        audit: AuditLog = audit_log,
    ):
        self.db = database
        self.entries = entries
        self.players = players
        self.audit = audit

    async def override(
        self,
        actor: str,
        entry_id: int,
        net_winnings: Number,
        reason: Optional[str] = None,
    ) -> dict:
        """Set a session's net winnings by hand.
        
        The entry is marked completed and overridden, the owner's total moves
        by the same delta, and exactly one audit entry is appended.
        
        Args:
            actor: Computing ID of the admin.
            entry_id: Entry to correct.
            net_winnings: New net result.
            reason: Justification for the audit log.
            
        Returns:
            The updated session with old/new winnings and the difference.
            
        Raises:
            NotFoundError: If the entry does not exist.
        """
        new_net = to_money(net_winnings)
        reason = reason or DEFAULT_REASON

        async with self.db.transaction() as conn:
            entry = await self.entries.get_for_update(entry_id, conn)
            if not entry:
                raise NotFoundError("No session found with the specified ID")

            old_net = entry.net_winnings if entry.net_winnings is not None else ZERO
            delta: Decimal = new_net - old_net

            saved = await self.entries.save(
                entry.with_changes(net_winnings=new_net, admin_override=True, is_completed=True),
                conn,
            )
            await self.players.adjust_total_winnings(entry.computing_id, delta, conn)

            await self.audit.record(
                actor=actor,
                action=AuditAction.ADMIN_OVERRIDE_SESSION,
                target_table="session_entries",
                target_id=str(entry_id),
                old_values={
                    "net_winnings": float(old_net),
                    "is_completed": entry.is_completed,
                    "admin_override": entry.admin_override,
                },
                new_values={
                    "net_winnings": float(new_net),
                    "difference": float(delta),
                    "is_completed": True,
                    "admin_override": True,
                },
                reason=reason,
                conn=conn,
            )

        logger.info(f"{actor} overrode entry {entry_id}: {old_net} -> {new_net} ({reason})")
        return {
            "session": saved.to_dict(),
            "old_winnings": float(old_net),
            "new_winnings": float(new_net),
            "difference": float(delta),
            "reason": reason,
        }


# Global instance
session_overrides = SessionOverrides()
