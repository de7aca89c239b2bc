"""Chip value configuration and ledger-wide repricing."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Mapping

from poker_tracker.admin.audit import AuditAction, AuditLog, audit_log
from poker_tracker.db.connection import Database, db
from poker_tracker.ledger.chips import Number, to_money, validate_chip_values
from poker_tracker.ledger.winnings import reprice_entry
from poker_tracker.state.chip_store import ChipStore, chip_store
from poker_tracker.state.entry_store import EntryStore, entry_store
from poker_tracker.state.player_store import PlayerStore, player_store
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


def _as_floats(values: Mapping[str, Decimal]) -> dict[str, float]:
    return {color: float(value) for color, value in values.items()}


class ChipValueManager:
    """Reads and updates chip values for admins."""

    def __init__(
        self,
        database: Database = db,
        chips: ChipStore = chip_store,
        entries: EntryStore = entry_store,
        players: PlayerStore = player_store,
        audit: AuditLog = audit_log,
    ):
        self.db = database
        self.chips = chips
        self.entries = entries
        self.players = players
        self.audit = audit

    async def get_values(self) -> dict[str, float]:
        """Current color -> value mapping."""
        return _as_floats(await self.chips.get_values())

    async def update_values(self, actor: str, new_values: Mapping[str, Number]) -> dict:
        """Replace chip values and reprice every breakdown-counted session.
        
        Validation happens before anything is written, so a rejected
        mapping changes nothing. The upsert, the repricing, the total
        recomputation and the audit entry share one transaction.
        
        Args:
            actor: Computing ID of the admin.
            new_values: Color -> value for the colors to change.
            
        Returns:
            The resulting mapping and repricing counts.
            
        Raises:
            ValidationError: If a color is unknown or a value is out of range.
        """
        validated = validate_chip_values(new_values)

        async with self.db.transaction() as conn:
            old_values = await self.chips.get_values_for_update(conn)
            await self.chips.upsert_values(validated, conn)
            current = {**old_values, **validated}

            affected = set()
            repriced = 0
            for entry in await self.entries.list_priced_for_update(conn):
                updated = reprice_entry(entry, current)
                if updated is None:
                    continue
                await self.entries.save(updated, conn)
                affected.add(entry.computing_id)
                repriced += 1

            for computing_id in sorted(affected):
                total = to_money(await self.entries.completed_total(computing_id, conn))
                await self.players.set_total_winnings(computing_id, total, conn)

            total_players = len(await self.players.list_all(conn))

            await self.audit.record(
                actor=actor,
                action=AuditAction.UPDATE_CHIP_VALUES,
                target_table="chip_values",
                target_id="all",
                old_values=_as_floats(old_values),
                new_values=_as_floats(current),
                reason=f"Repriced {repriced} sessions for {len(affected)} players",
                conn=conn,
            )

        logger.info(
            f"{actor} updated chip values {_as_floats(validated)}; "
            f"repriced {repriced} sessions for {len(affected)} players"
        )
        return {
            "chip_values": _as_floats(current),
            "recalculated_players": len(affected),
            "recalculated_sessions": repriced,
            "total_players": total_players,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }


# Global instance
chip_value_manager = ChipValueManager()
