"""Tests for HTTP API endpoints."""
import os

import pytest
from httpx import AsyncClient, ASGITransport

from poker_tracker.auth.jwt_handler import create_access_token
from poker_tracker.auth.middleware import get_auth
from poker_tracker.auth.roles import Role
from poker_tracker.config import config
from poker_tracker.main import (
    app,
    get_audit_log,
    get_chip_analyzer,
    get_chip_value_manager,
    get_player_registry,
    get_session_ledger,
    get_session_overrides,
    get_standings,
)

IMAGE = b"\x89PNG\r\n\x1a\n" + bytes(range(200))


def bearer(computing_id, role=Role.PLAYER):
    return {"Authorization": f"Bearer {create_access_token(computing_id, role)}"}


ALICE = bearer("alice1")
BOB = bearer("bob22")
ADMIN = bearer("admin", Role.ADMIN)


@pytest.fixture
def api(ledger, registry, chip_manager, overrides, board, audit, analyzer, auth):
    """The app wired to in-memory services."""
    app.dependency_overrides.update({
        get_session_ledger: lambda: ledger,
        get_player_registry: lambda: registry,
        get_chip_value_manager: lambda: chip_manager,
        get_session_overrides: lambda: overrides,
        get_standings: lambda: board,
        get_audit_log: lambda: audit,
        get_chip_analyzer: lambda: analyzer,
        get_auth: lambda: auth,
    })
    yield app
    app.dependency_overrides.clear()


def client_for(api):
    return AsyncClient(transport=ASGITransport(app=api), base_url="http://test")


class TestAuthEndpoints:
    """Test login, logout and identity endpoints."""

    @pytest.mark.asyncio
    async def test_login(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/auth/login", json={"computing_id": "alice1"})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["computing_id"] == "alice1"
        assert data["user"]["is_admin"] is False
        assert data["token"]

    @pytest.mark.asyncio
    async def test_login_unknown_requires_profile(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/auth/login", json={"computing_id": "newbie"})

        assert response.status_code == 401
        assert response.json()["requires_profile"] is True

    @pytest.mark.asyncio
    async def test_login_validation(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/auth/login", json={"computing_id": "a!"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Validation failed"
        assert data["details"][0]["field"] == "computing_id"

    @pytest.mark.asyncio
    async def test_missing_token(self, api):
        async with client_for(api) as client:
            response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Access denied", "message": "No token provided"}

    @pytest.mark.asyncio
    async def test_me(self, api):
        async with client_for(api) as client:
            response = await client.get("/api/auth/me", headers=ALICE)

        assert response.status_code == 200
        assert response.json()["user"]["major"] == "Physics"

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, api):
        headers = bearer("bob22")
        async with client_for(api) as client:
            assert (await client.post("/api/auth/logout", headers=headers)).status_code == 200
            response = await client.get("/api/auth/status", headers=headers)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_leaves_other_sessions(self, api):
        alice = bearer("alice1")
        async with client_for(api) as client:
            assert (await client.get("/api/auth/me", headers=BOB)).status_code == 200
            await client.post("/api/auth/logout", headers=alice)
            bob = await client.get("/api/auth/me", headers=BOB)
            admin = await client.get("/api/auth/status", headers=ADMIN)

        assert bob.status_code == 200
        assert bob.json()["user"]["computing_id"] == "bob22"
        assert admin.status_code == 200

    @pytest.mark.asyncio
    async def test_verify(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/auth/verify", json={"computing_id": "nobody"})

        assert response.json() == {"exists": False, "computing_id": "nobody"}


class TestPlayerEndpoints:
    """Test profile endpoints."""

    @pytest.mark.asyncio
    async def test_create_player(self, api):
        body = {"computing_id": "carol3", "first_name": "  Carol ", "last_name": "Chen", "level": "Expert"}
        async with client_for(api) as client:
            response = await client.post("/api/players", json=body)
            duplicate = await client.post("/api/players", json=body)

        assert response.status_code == 201
        assert response.json()["player"]["first_name"] == "Carol"
        assert duplicate.status_code == 409

    @pytest.mark.asyncio
    async def test_create_player_invalid_level(self, api):
        body = {"computing_id": "carol3", "first_name": "Carol", "last_name": "Chen", "level": "Pro"}
        async with client_for(api) as client:
            response = await client.post("/api/players", json=body)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_profile_access(self, api):
        async with client_for(api) as client:
            own = await client.get("/api/players/alice1", headers=ALICE)
            other = await client.get("/api/players/alice1", headers=BOB)
            admin = await client.get("/api/players/alice1", headers=ADMIN)
            missing = await client.get("/api/players/ghost", headers=ADMIN)

        assert own.status_code == 200
        assert other.status_code == 403
        assert admin.status_code == 200
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_list_players_admin_only(self, api):
        async with client_for(api) as client:
            denied = await client.get("/api/players", headers=ALICE)
            allowed = await client.get("/api/admin/players", headers=ADMIN)

        assert denied.status_code == 403
        assert allowed.json()["total"] == 3
        assert allowed.json()["admin_players"] == 1

    @pytest.mark.asyncio
    async def test_update_requires_a_field(self, api):
        async with client_for(api) as client:
            response = await client.put("/api/players/alice1", json={}, headers=ALICE)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_player(self, api):
        async with client_for(api) as client:
            response = await client.put("/api/players/alice1", json={"years_of_experience": 3}, headers=ALICE)

        assert response.status_code == 200
        assert response.json()["player"]["years_of_experience"] == 3


class TestSessionEndpoints:
    """Test check-in and check-out over HTTP."""

    @pytest.mark.asyncio
    async def test_check_in_and_out(self, api):
        async with client_for(api) as client:
            check_in = await client.post(
                "/api/sessions",
                json={"session_date": "2024-03-14", "start_chips": 250.00},
                headers=ALICE,
            )
            again = await client.post(
                "/api/sessions",
                json={"session_date": "2024-03-14", "start_chips": 100},
                headers=ALICE,
            )
            check_out = await client.post(
                "/api/sessions",
                json={"session_date": "2024-03-14", "session_type": "check-out", "end_chips": 375.50},
                headers=ALICE,
            )
            player = await client.get("/api/players/alice1", headers=ALICE)

        assert check_in.status_code == 201
        assert again.status_code == 409
        assert again.json()["details"]["existing_session"]["entry_id"] == check_in.json()["session"]["entry_id"]
        assert check_out.status_code == 200
        assert check_out.json()["session"]["net_winnings"] == 125.5
        assert player.json()["player"]["total_winnings"] == 125.5

    @pytest.mark.asyncio
    async def test_future_date_rejected(self, api):
        async with client_for(api) as client:
            response = await client.post(
                "/api/sessions",
                json={"session_date": "2999-01-01", "start_chips": 10},
                headers=ALICE,
            )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "session_date"

    @pytest.mark.asyncio
    async def test_unknown_chip_color_rejected(self, api):
        async with client_for(api) as client:
            response = await client.post(
                "/api/sessions",
                json={"session_date": "2024-03-14", "start_chip_breakdown": {"gold": 3}},
                headers=ALICE,
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"start_chips": "99999999999999.99"},
        {"start_chips": 1e15},
        {"start_chip_breakdown": {"blue": 10001}},
    ])
    async def test_amount_out_of_range(self, api, entries, body):
        async with client_for(api) as client:
            response = await client.post(
                "/api/sessions",
                json={"session_date": "2024-03-14", **body},
                headers=ALICE,
            )

        assert response.status_code == 400
        assert entries.rows == {}

    @pytest.mark.asyncio
    async def test_checkout_amount_out_of_range(self, api, ledger, play_date):
        entry = await ledger.check_in("alice1", play_date, start_chips=100)

        async with client_for(api) as client:
            response = await client.post(
                f"/api/sessions/{entry.entry_id}/checkout",
                json={"end_chips": "123456789012.50"},
                headers=ALICE,
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_checkout_other_players_session(self, api, ledger, play_date):
        entry = await ledger.check_in("alice1", play_date, start_chips=100)

        async with client_for(api) as client:
            response = await client.post(f"/api/sessions/{entry.entry_id}/checkout", json={"end_chips": 5}, headers=BOB)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_active_session(self, api, ledger, play_date):
        async with client_for(api) as client:
            none = await client.get("/api/sessions/active/alice1", headers=ALICE)
            await ledger.check_in("alice1", play_date, start_chips=100)
            active = await client.get("/api/sessions/active/alice1", headers=ALICE)
            listing = await client.get("/api/sessions/alice1", headers=ALICE)

        assert none.status_code == 404
        assert active.json()["session"]["start_chips"] == 100.0
        assert listing.json()["incomplete"] == 1

    @pytest.mark.asyncio
    async def test_photo_upload(self, api, ledger, play_date, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "upload_dir", str(tmp_path))
        entry = await ledger.check_in("alice1", play_date, start_chips=100)

        async with client_for(api) as client:
            response = await client.post(
                f"/api/sessions/{entry.entry_id}/photo",
                data={"kind": "start"},
                files={"photo": ("stack.png", IMAGE, "image/png")},
                headers=ALICE,
            )

        assert response.status_code == 200
        url = response.json()["photo_url"]
        assert url.startswith("/uploads/alice1_") and url.endswith("_start.png")
        assert response.json()["session"]["start_photo_url"] == url
        assert os.path.exists(os.path.join(str(tmp_path), url.rsplit("/", 1)[1]))

    @pytest.mark.asyncio
    async def test_photo_must_be_image(self, api, ledger, play_date):
        entry = await ledger.check_in("alice1", play_date, start_chips=100)

        async with client_for(api) as client:
            response = await client.post(
                f"/api/sessions/{entry.entry_id}/photo",
                data={"kind": "end"},
                files={"photo": ("notes.txt", b"hello", "text/plain")},
                headers=ALICE,
            )

        assert response.status_code == 400


class TestAdminEndpoints:
    """Test admin-only endpoints."""

    @pytest.mark.asyncio
    async def test_chip_values_admin_only(self, api):
        async with client_for(api) as client:
            denied = await client.get("/api/admin/chip-values", headers=ALICE)
            allowed = await client.get("/api/admin/chip-values", headers=ADMIN)

        assert denied.status_code == 403
        assert allowed.json()["total_colors"] == 5

    @pytest.mark.asyncio
    async def test_update_chip_values(self, api, audit):
        async with client_for(api) as client:
            response = await client.put("/api/admin/chip-values", json={"red": 2.5}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["chip_values"]["red"] == 2.5
        assert len(audit.entries) == 1

    @pytest.mark.asyncio
    async def test_invalid_chip_values(self, api, audit):
        async with client_for(api) as client:
            response = await client.put("/api/admin/chip-values", json={"red": 0, "pink": 3}, headers=ADMIN)

        assert response.status_code == 400
        assert {d["field"] for d in response.json()["details"]} == {"red", "pink"}
        assert audit.entries == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["NaN", "Infinity", True])
    async def test_non_numeric_chip_value(self, api, chips, value):
        async with client_for(api) as client:
            response = await client.put("/api/admin/chip-values", json={"white": value}, headers=ADMIN)

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "white"
        assert chips.values["white"] == 1

    @pytest.mark.asyncio
    async def test_override_amount_too_large(self, api, ledger, play_date):
        entry = await ledger.check_in("bob22", play_date, start_chips=100)

        async with client_for(api) as client:
            response = await client.put(
                f"/api/admin/sessions/{entry.entry_id}/override",
                json={"net_winnings": "1e15"},
                headers=ADMIN,
            )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "net_winnings"

    @pytest.mark.asyncio
    async def test_override(self, api, ledger, play_date):
        entry = await ledger.check_in("bob22", play_date, start_chips=100)
        await ledger.check_out(entry.entry_id, "bob22", end_chips=60)

        async with client_for(api) as client:
            response = await client.put(
                f"/api/admin/sessions/{entry.entry_id}/override",
                json={"net_winnings": 10, "reason": "Recount"},
                headers=ADMIN,
            )
            player = await client.get("/api/players/bob22", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["difference"] == 50.0
        assert player.json()["player"]["total_winnings"] == 10.0

    @pytest.mark.asyncio
    async def test_override_unknown_session(self, api):
        async with client_for(api) as client:
            response = await client.put("/api/admin/sessions/999/override", json={"net_winnings": 1}, headers=ADMIN)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_audit_logs_limit(self, api):
        async with client_for(api) as client:
            too_many = await client.get("/api/admin/audit-logs?limit=501", headers=ADMIN)
            ok = await client.get("/api/admin/audit-logs?limit=10", headers=ADMIN)

        assert too_many.status_code == 400
        assert ok.json()["pagination"] == {"total": 0, "limit": 10, "offset": 0, "has_more": False}

    @pytest.mark.asyncio
    async def test_admin_stats(self, api):
        async with client_for(api) as client:
            response = await client.get("/api/admin/stats", headers=ADMIN)

        assert response.json()["stats"]["players"]["total"] == 3

    @pytest.mark.asyncio
    async def test_recalculate_winnings(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/players/alice1/recalculate-winnings", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["new_winnings"] == 0.0


class TestLeaderboardEndpoints:
    """Test leaderboard endpoints."""

    @pytest.mark.asyncio
    async def test_leaderboard(self, api):
        async with client_for(api) as client:
            response = await client.get("/api/leaderboard?limit=2&sort=sessions")

        data = response.json()
        assert response.status_code == 200
        assert len(data["leaderboard"]) == 2
        assert data["pagination"]["has_more"] is True
        assert data["metadata"]["sort"] == "sessions"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["limit=0", "limit=101", "offset=-1", "timeframe=year", "sort=name"])
    async def test_leaderboard_query_validation(self, api, query):
        async with client_for(api) as client:
            response = await client.get(f"/api/leaderboard?{query}")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_leaderboard_stats(self, api):
        async with client_for(api) as client:
            response = await client.get("/api/leaderboard/stats")

        assert response.json()["summary"]["total_players"] == 3

    @pytest.mark.asyncio
    async def test_player_position_access(self, api):
        async with client_for(api) as client:
            other = await client.get("/api/leaderboard/player/bob22", headers=ALICE)
            own = await client.get("/api/leaderboard/player/alice1", headers=ALICE)

        assert other.status_code == 403
        assert own.json()["leaderboard_info"]["total_players"] == 3


class TestVisionEndpoints:
    """Test chip image analysis endpoints."""

    @pytest.mark.asyncio
    async def test_analyze(self, api):
        async with client_for(api) as client:
            response = await client.post(
                "/api/vision/analyze",
                files={"image": ("chips.png", IMAGE, "image/png")},
                headers=ALICE,
            )

        data = response.json()
        assert response.status_code == 200
        assert 0 <= data["analysis"]["confidence"] <= 1
        assert data["suggestions"]["confidence_level"] in ("high", "medium", "low")

    @pytest.mark.asyncio
    async def test_analyze_without_image(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/vision/analyze", headers=ALICE)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_analyze_requires_login(self, api):
        async with client_for(api) as client:
            response = await client.post("/api/vision/analyze", files={"image": ("c.png", IMAGE, "image/png")})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_vision_chip_values(self, api):
        async with client_for(api) as client:
            response = await client.get("/api/vision/chip-values", headers=BOB)

        assert response.json()["colors"] == ["white", "red", "green", "black", "blue"]
