"""Net winnings, repricing and per-player statistics."""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping, Optional

from poker_tracker.errors import ConflictError
from poker_tracker.ledger.chips import chip_total, to_money
from poker_tracker.ledger.models import SessionEntry

ZERO = Decimal("0.00")


class Timeframe(str, Enum):
    """Reporting windows for statistics."""
    ALL = "all"
    MONTH = "month"
    WEEK = "week"
    TODAY = "today"


def net_winnings(start_chips: Decimal, end_chips: Decimal) -> Decimal:
    """Net result of a session: end minus start, in cents."""
    return to_money(end_chips) - to_money(start_chips)


def complete_entry(
    entry: SessionEntry,
    end_chips: Decimal,
    end_chip_breakdown: Optional[dict[str, int]] = None,
    end_photo_url: Optional[str] = None,
) -> SessionEntry:
    """Apply a check-out to an open entry.

    Args:
        entry: The open session entry.
        end_chips: Final chip amount.
        end_chip_breakdown: Color breakdown the amount was priced from.
        end_photo_url: Photo of the final stack.

    Returns:
        The completed entry with net winnings set.

    Raises:
        ConflictError: If the entry is already completed.
    """
    if entry.is_completed:
        raise ConflictError(f"Session {entry.entry_id} is already checked out")

    end_chips = to_money(end_chips)
    return entry.with_changes(
        end_chips=end_chips,
        end_chip_breakdown=end_chip_breakdown or {},
        end_photo_url=end_photo_url or entry.end_photo_url,
        net_winnings=net_winnings(entry.start_chips, end_chips),
        is_completed=True,
    )


def reprice_entry(entry: SessionEntry, chip_values: Mapping[str, Decimal]) -> Optional[SessionEntry]:
    """Recompute an entry's amounts from its chip breakdowns.

    Entries entered as plain totals and entries under an admin override keep
    their amounts. A side without a breakdown keeps its stored amount.

    Args:
        entry: Entry to reprice.
        chip_values: New color -> value mapping.

    Returns:
        The repriced entry, or None if nothing changed.
    """
    if entry.admin_override or not entry.counted_by_breakdown:
        return None

    start_chips = entry.start_chips
    if entry.start_chip_breakdown:
        start_chips = chip_total(entry.start_chip_breakdown, chip_values)

    end_chips = entry.end_chips
    if entry.is_completed and entry.end_chip_breakdown:
        end_chips = chip_total(entry.end_chip_breakdown, chip_values)

    net = entry.net_winnings
    if entry.is_completed and end_chips is not None:
        net = net_winnings(start_chips, end_chips)

    if (start_chips, end_chips, net) == (entry.start_chips, entry.end_chips, entry.net_winnings):
        return None
    return entry.with_changes(start_chips=start_chips, end_chips=end_chips, net_winnings=net)


def total_winnings(entries: Iterable[SessionEntry]) -> Decimal:
    """Sum of net winnings over completed entries."""
    return sum(
        (e.net_winnings for e in entries if e.is_completed and e.net_winnings is not None),
        ZERO,
    )


def timeframe_start(timeframe: Timeframe, today: date) -> Optional[date]:
    """First session date included in a timeframe, or None for all time."""
    if timeframe == Timeframe.TODAY:
        return today
    if timeframe == Timeframe.WEEK:
        return today - timedelta(days=7)
    if timeframe == Timeframe.MONTH:
        return today.replace(day=1)
    return None


def filter_by_timeframe(entries: Iterable[SessionEntry], timeframe: Timeframe, today: date) -> list[SessionEntry]:
    """Keep entries whose session date falls within the timeframe."""
    start = timeframe_start(timeframe, today)
    if start is None:
        return list(entries)
    return [e for e in entries if e.session_date >= start]


@dataclass
class PlayerStats:
    """A player's results over a timeframe."""
    total_sessions: int = 0
    period_winnings: Decimal = ZERO
    winning_sessions: int = 0
    losing_sessions: int = 0
    win_rate: Decimal = ZERO
    avg_winnings: Decimal = ZERO
    biggest_win: Decimal = ZERO
    biggest_loss: Decimal = ZERO
    last_session_date: Optional[date] = None
    last_session_winnings: Decimal = ZERO

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_sessions": self.total_sessions,
            "period_winnings": float(self.period_winnings),
            "winning_sessions": self.winning_sessions,
            "losing_sessions": self.losing_sessions,
            "win_rate": float(self.win_rate),
            "avg_winnings": float(self.avg_winnings),
            "biggest_win": float(self.biggest_win),
            "biggest_loss": float(self.biggest_loss),
            "last_session_date": self.last_session_date.isoformat() if self.last_session_date else None,
            "last_session_winnings": float(self.last_session_winnings),
        }


def player_stats(entries: Iterable[SessionEntry], timeframe: Timeframe, today: date) -> PlayerStats:
    """Compute statistics over a player's completed entries.

    Args:
        entries: The player's entries (incomplete ones are ignored).
        timeframe: Reporting window.
        today: Reference date for the window.

    Returns:
        Statistics for the window.
    """
    completed = [
        e for e in filter_by_timeframe(entries, timeframe, today)
        if e.is_completed and e.net_winnings is not None
    ]
    if not completed:
        return PlayerStats()

    results = [e.net_winnings for e in completed]
    total = sum(results, ZERO)
    winning = sum(1 for r in results if r > 0)
    losing = sum(1 for r in results if r < 0)
    latest = max(completed, key=lambda e: (e.session_date, e.entry_id))

    return PlayerStats(
        total_sessions=len(completed),
        period_winnings=total,
        winning_sessions=winning,
        losing_sessions=losing,
        win_rate=to_money(Decimal(winning * 100) / len(completed)),
        avg_winnings=to_money(total / len(completed)),
        biggest_win=max(results),
        biggest_loss=min(results),
        last_session_date=latest.session_date,
        last_session_winnings=latest.net_winnings,
    )
