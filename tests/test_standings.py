"""Tests for leaderboard rankings and summaries."""
import pytest
from datetime import date
from decimal import Decimal

from poker_tracker.admin.standings import (
    SortKey,
    format_leaderboard_table,
    percentile,
    rank_players,
)
from poker_tracker.errors import NotFoundError
from poker_tracker.ledger.models import Player, SessionEntry
from poker_tracker.ledger.winnings import Timeframe

TODAY = date(2024, 3, 14)


def player(cid, winnings, first="P"):
    return Player(cid, first, cid.title(), total_winnings=Decimal(winnings))


def result(entry_id, cid, net, session_date=TODAY):
    return SessionEntry(
        entry_id, cid, session_date, Decimal("100"),
        end_chips=Decimal("100") + Decimal(net), net_winnings=Decimal(net), is_completed=True,
    )


class TestRankPlayers:
    """Test ordering and ranks."""
    
    def test_ties_broken_by_computing_id(self):
        """Test equal winnings rank in computing ID order regardless of input order."""
        players = [player("zed", "50"), player("amy", "50"), player("max", "80"), player("bea", "50")]
        
        standings = rank_players(players, [], today=TODAY)
        
        assert [s.computing_id for s in standings] == ["max", "amy", "bea", "zed"]
        assert [s.rank for s in standings] == [1, 2, 3, 4]
    
    def test_order_is_stable_across_calls(self):
        players = [player("c", "0"), player("a", "0"), player("b", "0")]
        
        first = [s.computing_id for s in rank_players(players, [], today=TODAY)]
        second = [s.computing_id for s in rank_players(list(reversed(players)), [], today=TODAY)]
        
        assert first == second == ["a", "b", "c"]
    
    def test_sort_by_sessions(self):
        players = [player("amy", "500"), player("bea", "10")]
        entries = [result(1, "bea", "5"), result(2, "bea", "5"), result(3, "amy", "500")]
        
        standings = rank_players(players, entries, SortKey.SESSIONS, today=TODAY)
        
        assert [s.computing_id for s in standings] == ["bea", "amy"]
    
    def test_sort_by_recent(self):
        players = [player("amy", "0"), player("bea", "0"), player("cat", "0")]
        entries = [result(1, "amy", "5", date(2024, 3, 1)), result(2, "cat", "5", date(2024, 3, 10))]
        
        standings = rank_players(players, entries, SortKey.RECENT, today=TODAY)
        
        assert [s.computing_id for s in standings] == ["cat", "amy", "bea"]
    
    def test_timeframe_uses_period_winnings(self):
        players = [player("amy", "900"), player("bea", "10")]
        entries = [result(1, "amy", "900", date(2023, 1, 1)), result(2, "bea", "10", TODAY)]
        
        standings = rank_players(players, entries, timeframe=Timeframe.MONTH, today=TODAY)
        
        assert standings[0].computing_id == "bea"
        assert standings[0].to_dict()["period_winnings"] == 10.0
        assert standings[1].to_dict()["total_winnings"] == 900.0
    
    def test_percentile(self):
        assert percentile(1, 4) == 100
        assert percentile(4, 4) == 25
        assert percentile(1, 0) == 0


class TestFormatTable:
    """Test CLI leaderboard output."""
    
    def test_empty(self):
        assert format_leaderboard_table([]) == "No players registered."
    
    def test_table(self):
        standings = rank_players([player("amy", "25.5", "Amy"), player("bob", "-30", "Bob")], [], today=TODAY)
        
        table = format_leaderboard_table(standings)
        
        assert "Amy Amy" in table
        assert "+25.50" in table
        assert "-30.00" in table


class TestStandingsService:
    """Test leaderboard queries over the stores."""
    
    @pytest.fixture
    def seeded(self, players, entries):
        players.rows["alice1"].total_winnings = Decimal("75.00")
        players.rows["bob22"].total_winnings = Decimal("-20.00")
        entries.add(result(1, "alice1", "75", date(2024, 3, 10)))
        entries.add(result(2, "bob22", "-20", date(2024, 3, 11)))
        entries.add(SessionEntry(3, "bob22", date(2024, 3, 12), Decimal("40")))
    
    @pytest.mark.asyncio
    async def test_leaderboard_page(self, board, seeded):
        data = await board.leaderboard(limit=2, offset=1, today=TODAY)
        
        assert [row["computing_id"] for row in data["leaderboard"]] == ["admin", "bob22"]
        assert [row["rank"] for row in data["leaderboard"]] == [2, 3]
        assert data["pagination"] == {"total": 3, "limit": 2, "offset": 1, "has_more": False}
        assert data["metadata"]["sort"] == "winnings"
    
    @pytest.mark.asyncio
    async def test_summary(self, board, seeded):
        summary = await board.summary()
        
        assert summary["total_players"] == 3
        assert summary["active_players"] == 2
        assert summary["total_sessions"] == 2
        assert summary["total_winnings"] == 55.0
        assert summary["top_player"]["computing_id"] == "alice1"
    
    @pytest.mark.asyncio
    async def test_player_position(self, board, seeded):
        data = await board.player_position("bob22", today=TODAY)
        
        assert data["player"]["rank"] == 3
        assert data["leaderboard_info"] == {"total_players": 3, "percentile": 33}
        assert data["stats"]["all_time"]["total_sessions"] == 1
        assert data["stats"]["this_week"]["period_winnings"] == -20.0
    
    @pytest.mark.asyncio
    async def test_player_position_unknown(self, board, seeded):
        with pytest.raises(NotFoundError):
            await board.player_position("ghost", today=TODAY)
    
    @pytest.mark.asyncio
    async def test_admin_stats(self, board, seeded, overrides):
        await overrides.override("admin", 3, 5)
        
        stats = await board.admin_stats()
        
        assert stats["players"] == {"total": 3, "active": 2, "admins": 1}
        assert stats["sessions"]["total"] == 3
        assert stats["sessions"]["completed"] == 3
        assert stats["sessions"]["overridden"] == 1
        assert stats["chip_values"]["total_colors"] == 5
        assert stats["audit"]["recent_actions"] == 1
