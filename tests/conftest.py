"""Shared fixtures: in-memory stand-ins for PostgreSQL and Redis."""
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from poker_tracker.admin.audit import AuditAction, AuditLogEntry
from poker_tracker.admin.chip_values import ChipValueManager
from poker_tracker.admin.overrides import SessionOverrides
from poker_tracker.admin.standings import Standings
from poker_tracker.auth.middleware import AuthMiddleware
from poker_tracker.errors import ConflictError, ValidationError
from poker_tracker.ledger.chips import DEFAULT_CHIP_VALUES, to_money
from poker_tracker.ledger.models import Player, SessionEntry
from poker_tracker.ledger.players import PlayerRegistry
from poker_tracker.ledger.sessions import SessionLedger
from poker_tracker.state.player_store import PROFILE_FIELDS
from poker_tracker.vision.analyzer import ChipAnalyzer


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeDatabase:
    """Transactions are no-ops; the fake stores ignore the connection."""

    def __init__(self):
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield None


class FakePlayerStore:
    def __init__(self):
        self.rows: dict[str, Player] = {}

    def add(self, player: Player) -> Player:
        self.rows[player.computing_id] = replace(player, created_at=player.created_at or _now())
        return self.rows[player.computing_id]

    async def get(self, computing_id, conn=None) -> Optional[Player]:
        row = self.rows.get(computing_id)
        return replace(row) if row else None

    async def get_for_update(self, computing_id, conn) -> Optional[Player]:
        return await self.get(computing_id)

    async def list_all(self, conn=None) -> list[Player]:
        return [replace(self.rows[k]) for k in sorted(self.rows)]

    async def create(self, player, conn=None) -> Player:
        if player.computing_id in self.rows:
            raise ConflictError("A player with this computing ID already exists")
        return replace(self.add(player))

    async def update_profile(self, computing_id, updates, conn=None) -> Optional[Player]:
        fields = {k: v for k, v in updates.items() if k in PROFILE_FIELDS}
        if not fields:
            raise ValidationError("No valid fields to update")
        if computing_id not in self.rows:
            return None
        self.rows[computing_id] = replace(self.rows[computing_id], updated_at=_now(), **fields)
        return replace(self.rows[computing_id])

    async def set_total_winnings(self, computing_id, total, conn=None) -> None:
        if computing_id in self.rows:
            self.rows[computing_id].total_winnings = to_money(total)

    async def adjust_total_winnings(self, computing_id, delta, conn=None) -> Decimal:
        row = self.rows[computing_id]
        row.total_winnings = to_money(row.total_winnings + delta)
        return row.total_winnings

    async def set_admin(self, computing_id, is_admin, conn=None) -> bool:
        if computing_id not in self.rows:
            return False
        self.rows[computing_id].is_admin = is_admin
        return True


class FakeEntryStore:
    def __init__(self):
        self.rows: dict[int, SessionEntry] = {}
        self.next_id = 1
        self.saves = 0

    def add(self, entry: SessionEntry) -> SessionEntry:
        self.rows[entry.entry_id] = entry
        self.next_id = max(self.next_id, entry.entry_id + 1)
        return entry

    async def get(self, entry_id, conn=None) -> Optional[SessionEntry]:
        row = self.rows.get(entry_id)
        return replace(row) if row else None

    async def get_for_update(self, entry_id, conn) -> Optional[SessionEntry]:
        return await self.get(entry_id)

    async def get_open(self, computing_id, conn=None) -> Optional[SessionEntry]:
        for row in self.rows.values():
            if row.computing_id == computing_id and not row.is_completed:
                return replace(row)
        return None

    async def create(
        self,
        computing_id,
        session_date,
        start_chips,
        start_chip_breakdown,
        start_photo_url=None,
        conn=None,
    ) -> SessionEntry:
        if await self.get_open(computing_id):
            raise ConflictError("You already have an incomplete session. Please check out first.")
        entry = SessionEntry(
            entry_id=self.next_id,
            computing_id=computing_id,
            session_date=session_date,
            start_chips=to_money(start_chips),
            start_chip_breakdown=dict(start_chip_breakdown),
            start_photo_url=start_photo_url,
            created_at=_now(),
        )
        return replace(self.add(entry))

    async def save(self, entry, conn=None) -> SessionEntry:
        self.saves += 1
        self.rows[entry.entry_id] = replace(entry, updated_at=_now())
        return replace(self.rows[entry.entry_id])

    async def list_for_player(self, computing_id, conn=None) -> list[SessionEntry]:
        own = [replace(e) for e in self.rows.values() if e.computing_id == computing_id]
        return sorted(own, key=lambda e: (e.session_date, e.entry_id), reverse=True)

    async def list_all(self, conn=None) -> list[SessionEntry]:
        return [replace(self.rows[k]) for k in sorted(self.rows)]

    async def list_priced_for_update(self, conn) -> list[SessionEntry]:
        return [
            replace(e) for e in await self.list_all()
            if not e.admin_override and (e.start_chip_breakdown or e.end_chip_breakdown)
        ]

    async def completed_total(self, computing_id, conn=None) -> Decimal:
        return sum(
            (e.net_winnings for e in self.rows.values()
             if e.computing_id == computing_id and e.is_completed and e.net_winnings is not None),
            Decimal("0"),
        )


class FakeChipStore:
    def __init__(self, values=None):
        self.values = dict(values or DEFAULT_CHIP_VALUES)

    async def get_values(self, conn=None) -> dict[str, Decimal]:
        return dict(self.values)

    async def get_values_for_update(self, conn) -> dict[str, Decimal]:
        return dict(self.values)

    async def upsert_values(self, values, conn=None) -> None:
        self.values.update(values)


class FakeAuditLog:
    def __init__(self):
        self.entries: list[AuditLogEntry] = []

    async def record(
        self,
        actor,
        action: AuditAction,
        target_table,
        target_id,
        old_values=None,
        new_values=None,
        reason=None,
        conn=None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=len(self.entries) + 1,
            action=action,
            actor=actor,
            target_table=target_table,
            target_id=target_id,
            old_values=old_values,
            new_values=new_values,
            reason=reason,
            created_at=_now(),
        )
        self.entries.append(entry)
        return entry

    async def list_recent(self, limit=100, offset=0, conn=None) -> list[AuditLogEntry]:
        newest_first = list(reversed(self.entries))
        return newest_first[offset:offset + limit]

    async def count(self, conn=None) -> int:
        return len(self.entries)


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, Optional[int]] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, key):
        self.data.pop(key, None)

    async def exists(self, key):
        return key in self.data


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def players():
    store = FakePlayerStore()
    store.add(Player("admin", "Admin", "User", 5, "Expert", "Computer Science", is_admin=True))
    store.add(Player("alice1", "Alice", "Archer", 2, "Beginner", "Physics"))
    store.add(Player("bob22", "Bob", "Baker", 4, "Advanced", "History"))
    return store


@pytest.fixture
def entries():
    return FakeEntryStore()


@pytest.fixture
def chips():
    return FakeChipStore()


@pytest.fixture
def audit():
    return FakeAuditLog()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def ledger(fake_db, players, entries, chips):
    return SessionLedger(fake_db, players, entries, chips)


@pytest.fixture
def registry(fake_db, players, entries, audit):
    return PlayerRegistry(fake_db, players, entries, audit)


@pytest.fixture
def chip_manager(fake_db, chips, entries, players, audit):
    return ChipValueManager(fake_db, chips, entries, players, audit)


@pytest.fixture
def overrides(fake_db, entries, players, audit):
    return SessionOverrides(fake_db, entries, players, audit)


@pytest.fixture
def board(players, entries, chips, audit):
    return Standings(players, entries, chips, audit)


@pytest.fixture
def analyzer(chips):
    return ChipAnalyzer(chips)


@pytest.fixture
def auth(players, fake_redis):
    return AuthMiddleware(players, fake_redis)


@pytest.fixture
def play_date():
    return date(2024, 3, 14)
