"""Player registry: profiles and their winnings totals."""

from poker_tracker.admin.audit import AuditAction, AuditLog, audit_log
from poker_tracker.auth.middleware import AuthenticatedUser
from poker_tracker.db.connection import Database, db
from poker_tracker.errors import AuthorizationError, NotFoundError
from poker_tracker.ledger.chips import to_money
from poker_tracker.ledger.models import Player
from poker_tracker.state.entry_store import EntryStore, entry_store
from poker_tracker.state.player_store import PlayerStore, player_store
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


def ensure_can_access(user: AuthenticatedUser, computing_id: str, what: str = "profile") -> None:
    """Players see their own records; admins see everyone's.

    Raises:
        AuthorizationError: If the caller is neither the owner nor an admin.
    """
    if user.computing_id != computing_id and not user.is_admin:
        raise AuthorizationError(f"You can only view your own {what}")


class PlayerRegistry:
    """Profile CRUD on top of the player store."""

    def __init__(
        self,
        database: Database = db,
        players: PlayerStore = player_store,
        entries: EntryStore = entry_store,
        audit: AuditLog = audit_log,
    ):
        self.db = database
        self.players = players
        self.entries = entries
        self.audit = audit

    async def create(self, player: Player) -> Player:
        """Register a new profile.

        Raises:
            ConflictError: If the computing ID is taken.
        """
        return await self.players.create(player)

    async def get(self, computing_id: str) -> Player:
        """Get a profile.

        Raises:
            NotFoundError: If no such player exists.
        """
        player = await self.players.get(computing_id)
        if not player:
            raise NotFoundError("No player found with the specified computing ID")
        return player

    async def exists(self, computing_id: str) -> bool:
        return await self.players.get(computing_id) is not None

    async def update(self, actor: AuthenticatedUser, computing_id: str, updates: dict) -> Player:
        """Edit a profile; admins editing someone else are audited.

        Raises:
            AuthorizationError: If the caller may not edit this profile.
            NotFoundError: If no such player exists.
            ValidationError: If no editable field is given.
        """
        if actor.computing_id != computing_id and not actor.is_admin:
            raise AuthorizationError("You can only update your own profile")

        async with self.db.transaction() as conn:
            existing = await self.players.get_for_update(computing_id, conn)
            if not existing:
                raise NotFoundError("No player found with the specified computing ID")

            updated = await self.players.update_profile(computing_id, updates, conn)

            if actor.is_admin and actor.computing_id != computing_id:
                changed = {k: v for k, v in updates.items() if getattr(existing, k, None) != v}
                await self.audit.record(
                    actor=actor.computing_id,
                    action=AuditAction.UPDATE_PLAYER_PROFILE,
                    target_table="players",
                    target_id=computing_id,
                    old_values={k: getattr(existing, k) for k in changed},
                    new_values=changed,
                    conn=conn,
                )

        logger.info(f"Profile {computing_id} updated by {actor.computing_id}")
        return updated

    async def list_with_counts(self) -> list[dict]:
        """Every player with session counts, for the admin view."""
        players = await self.players.list_all()
        entries = await self.entries.list_all()

        rows = []
        for player in players:
            own = [e for e in entries if e.computing_id == player.computing_id]
            completed = [e for e in own if e.is_completed]
            row = player.to_dict()
            row.update({
                "display_name": player.display_name,
                "total_sessions": len(own),
                "completed_sessions": len(completed),
                "incomplete_sessions": len(own) - len(completed),
                "overridden_sessions": sum(1 for e in own if e.admin_override),
            })
            rows.append(row)
        return rows

    async def entries_for(self, computing_id: str) -> tuple[Player, list]:
        """A player and all of their session entries.

        Raises:
            NotFoundError: If no such player exists.
        """
        player = await self.get(computing_id)
        return player, await self.entries.list_for_player(computing_id)

    async def recalculate(self, actor: str, computing_id: str) -> dict:
        """Recompute a player's total from their completed sessions.

        Returns:
            Old total, new total and the difference.

        Raises:
            NotFoundError: If no such player exists.
        """
        async with self.db.transaction() as conn:
            player = await self.players.get_for_update(computing_id, conn)
            if not player:
                raise NotFoundError("No player found with the specified computing ID")

            old_total = to_money(player.total_winnings)
            new_total = to_money(await self.entries.completed_total(computing_id, conn))
            await self.players.set_total_winnings(computing_id, new_total, conn)

            await self.audit.record(
                actor=actor,
                action=AuditAction.RECALCULATE_WINNINGS,
                target_table="players",
                target_id=computing_id,
                old_values={"total_winnings": float(old_total)},
                new_values={"total_winnings": float(new_total)},
                conn=conn,
            )

        logger.info(f"Recalculated {computing_id}: {old_total} -> {new_total}")
        return {
            "old_winnings": float(old_total),
            "new_winnings": float(new_total),
            "difference": float(new_total - old_total),
        }


# Global instance
player_registry = PlayerRegistry()
