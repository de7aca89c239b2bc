"""Leaderboard rankings and summary statistics."""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from poker_tracker.admin.audit import AuditLog, audit_log
from poker_tracker.errors import NotFoundError
from poker_tracker.ledger.chips import to_money
from poker_tracker.ledger.models import Player, SessionEntry
from poker_tracker.ledger.winnings import ZERO, PlayerStats, Timeframe, player_stats
from poker_tracker.state.chip_store import ChipStore, chip_store
from poker_tracker.state.entry_store import EntryStore, entry_store
from poker_tracker.state.player_store import PlayerStore, player_store
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class SortKey(str, Enum):
    """Leaderboard orderings."""
    WINNINGS = "winnings"
    SESSIONS = "sessions"
    RECENT = "recent"


@dataclass
class PlayerStanding:
    """A player's row on the leaderboard."""
    player: Player
    stats: PlayerStats
    timeframe: Timeframe
    rank: int = 0

    @property
    def computing_id(self) -> str:
        return self.player.computing_id

    @property
    def winnings(self) -> Decimal:
        """All-time total, or the period's winnings for a bounded timeframe."""
        if self.timeframe == Timeframe.ALL:
            return self.player.total_winnings
        return self.stats.period_winnings

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        row = {
            "rank": self.rank,
            "computing_id": self.player.computing_id,
            "first_name": self.player.first_name,
            "last_name": self.player.last_name,
            "display_name": self.player.display_name,
            "total_winnings": float(self.player.total_winnings),
        }
        row.update(self.stats.to_dict())
        return row


def _sort_value(standing: PlayerStanding, sort: SortKey):
    if sort == SortKey.SESSIONS:
        return standing.stats.total_sessions
    if sort == SortKey.RECENT:
        return standing.stats.last_session_date or date.min
    return standing.winnings


def rank_players(
    players: Iterable[Player],
    entries: Iterable[SessionEntry],
    sort: SortKey = SortKey.WINNINGS,
    timeframe: Timeframe = Timeframe.ALL,
    today: Optional[date] = None,
) -> list[PlayerStanding]:
    """Rank every player.

    Ordering is by the sort key descending; equal keys fall back to
    computing ID ascending so the order is deterministic.

    Args:
        players: All players.
        entries: All session entries.
        sort: Ordering to apply.
        timeframe: Window for per-player statistics.
        today: Reference date for the window.

    Returns:
        Standings with 1-based ranks.
    """
    today = today or date.today()
    by_player: dict[str, list[SessionEntry]] = {}
    for entry in entries:
        by_player.setdefault(entry.computing_id, []).append(entry)

    standings = [
        PlayerStanding(
            player=p,
            stats=player_stats(by_player.get(p.computing_id, []), timeframe, today),
            timeframe=timeframe,
        )
        for p in sorted(players, key=lambda p: p.computing_id)
    ]
    # Stable sort keeps the computing ID order among equal keys
    standings.sort(key=lambda s: _sort_value(s, sort), reverse=True)

    for index, standing in enumerate(standings):
        standing.rank = index + 1
    return standings


def percentile(rank: int, total: int) -> int:
    """Share of the field at or below a rank, as a whole percentage."""
    if total <= 0:
        return 0
    return round((1 - (rank - 1) / total) * 100)


def format_leaderboard_table(standings: list[PlayerStanding]) -> str:
    """Format standings as a text table.

    Args:
        standings: Ranked standings.

    Returns:
        Formatted table string.
    """
    if not standings:
        return "No players registered."

    lines = [
        "| Rank | Player               | Sessions | Winnings (+/-) |",
        "|------|----------------------|----------|----------------|",
    ]

    for s in standings:
        winnings = s.winnings
        winnings_str = f"+{winnings:.2f}" if winnings >= 0 else f"{winnings:.2f}"
        lines.append(
            f"| {s.rank:>4} | {s.player.display_name:<20} | {s.stats.total_sessions:>8} | {winnings_str:>14} |"
        )

    return "\n".join(lines)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Standings:
    """Leaderboard queries and summary statistics."""

    def __init__(
        self,
        players: PlayerStore = player_store,
        entries: EntryStore = entry_store,
        chips: ChipStore = chip_store,
        audit: AuditLog = audit_log,
    ):
        self.players = players
        self.entries = entries
        self.chips = chips
        self.audit = audit

    async def rank(
        self,
        sort: SortKey = SortKey.WINNINGS,
        timeframe: Timeframe = Timeframe.ALL,
        today: Optional[date] = None,
    ) -> list[PlayerStanding]:
        """Rank every player from current data."""
        return rank_players(
            await self.players.list_all(),
            await self.entries.list_all(),
            sort,
            timeframe,
            today,
        )

    async def leaderboard(
        self,
        limit: int = 50,
        offset: int = 0,
        timeframe: Timeframe = Timeframe.ALL,
        sort: SortKey = SortKey.WINNINGS,
        today: Optional[date] = None,
    ) -> dict:
        """One page of the leaderboard.

        Args:
            limit: Page size.
            offset: Rows to skip.
            timeframe: Window for per-player statistics.
            sort: Ordering to apply.
            today: Reference date for the window.

        Returns:
            Rows, pagination and metadata.
        """
        standings = await self.rank(sort, timeframe, today)
        page = standings[offset:offset + limit]
        total = len(standings)
        return {
            "leaderboard": [s.to_dict() for s in page],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
            "metadata": {
                "timeframe": timeframe.value,
                "sort": sort.value,
                "total_players": total,
                "generated_at": _now(),
            },
        }

    async def summary(self) -> dict:
        """Club-wide totals and the top player."""
        players = await self.players.list_all()
        entries = await self.entries.list_all()
        completed = [e for e in entries if e.is_completed]
        total_winnings = sum((p.total_winnings for p in players), ZERO)
        active = {e.computing_id for e in completed}

        top = None
        if players:
            leader = rank_players(players, entries)[0]
            top = {
                "computing_id": leader.computing_id,
                "name": leader.player.display_name,
                "winnings": float(leader.player.total_winnings),
            }

        return {
            "total_players": len(players),
            "active_players": len(active),
            "total_winnings": float(total_winnings),
            "total_sessions": len(completed),
            "avg_winnings_per_player": float(to_money(total_winnings / len(players))) if players else 0.0,
            "top_player": top,
            "last_updated": _now(),
        }

    async def player_position(self, computing_id: str, today: Optional[date] = None) -> dict:
        """A player's rank, multi-window statistics and percentile.

        Raises:
            NotFoundError: If the player is not on the leaderboard.
        """
        today = today or date.today()
        players = await self.players.list_all()
        entries = await self.entries.list_all()
        standings = rank_players(players, entries, today=today)

        standing = next((s for s in standings if s.computing_id == computing_id), None)
        if standing is None:
            raise NotFoundError("Player not found in leaderboard")

        own = [e for e in entries if e.computing_id == computing_id]
        return {
            "player": standing.to_dict(),
            "stats": {
                "all_time": player_stats(own, Timeframe.ALL, today).to_dict(),
                "this_month": player_stats(own, Timeframe.MONTH, today).to_dict(),
                "this_week": player_stats(own, Timeframe.WEEK, today).to_dict(),
            },
            "leaderboard_info": {
                "total_players": len(standings),
                "percentile": percentile(standing.rank, len(standings)),
            },
        }

    async def admin_stats(self) -> dict:
        """Player, session, winnings, chip and audit summary for admins."""
        players = await self.players.list_all()
        entries = await self.entries.list_all()
        chip_values = await self.chips.get_values()
        recent = await self.audit.list_recent(limit=50)

        completed = [e for e in entries if e.is_completed]
        overridden = sum(1 for e in entries if e.admin_override)
        total_winnings = sum((p.total_winnings for p in players), ZERO)
        active = {e.computing_id for e in entries}

        return {
            "players": {
                "total": len(players),
                "active": len(active),
                "admins": sum(1 for p in players if p.is_admin),
            },
            "sessions": {
                "total": len(entries),
                "completed": len(completed),
                "incomplete": len(entries) - len(completed),
                "overridden": overridden,
                "override_rate": round(overridden * 100 / len(entries), 1) if entries else 0.0,
            },
            "winnings": {
                "total": float(total_winnings),
                "average_per_player": float(to_money(total_winnings / len(players))) if players else 0.0,
                "average_per_session": float(to_money(total_winnings / len(completed))) if completed else 0.0,
            },
            "chip_values": {
                "total_colors": len(chip_values),
                "values": {color: float(v) for color, v in chip_values.items()},
            },
            "audit": {
                "recent_actions": len(recent),
                "last_action": recent[0].created_at.isoformat() if recent else None,
            },
            "generated_at": _now(),
        }


# Global instance
standings = Standings()
