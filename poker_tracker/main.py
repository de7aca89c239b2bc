"""Main FastAPI server for the poker session tracker."""
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, File, Form, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from poker_tracker import __version__
from poker_tracker.admin.audit import AuditLog, audit_log
from poker_tracker.admin.chip_values import ChipValueManager, chip_value_manager
from poker_tracker.admin.overrides import SessionOverrides, session_overrides
from poker_tracker.admin.standings import SortKey, Standings, standings
from poker_tracker.auth.jwt_handler import TokenError, create_access_token
from poker_tracker.auth.middleware import (
    AuthenticatedUser,
    AuthMiddleware,
    get_admin_user,
    get_auth,
    get_current_user,
)
from poker_tracker.auth.roles import Role
from poker_tracker.config import config
from poker_tracker.db.connection import db
from poker_tracker.db.models import init_db
from poker_tracker.errors import AuthorizationError, NotFoundError, PokerTrackerError, ValidationError
from poker_tracker.ledger.models import Player
from poker_tracker.ledger.players import PlayerRegistry, ensure_can_access, player_registry
from poker_tracker.ledger.sessions import SessionLedger, session_ledger
from poker_tracker.ledger.winnings import Timeframe
from poker_tracker.schemas import (
    CheckOutRequest,
    CreatePlayerRequest,
    LoginRequest,
    OverrideRequest,
    SessionRequest,
    UpdatePlayerRequest,
)
from poker_tracker.state.redis_client import redis_client
from poker_tracker.utils.logger import configure_logging, get_logger
from poker_tracker.vision.analyzer import ChipAnalyzer, chip_analyzer, validate_image

logger = get_logger(__name__)

ERROR_TITLES = {
    400: "Bad request",
    401: "Access denied",
    403: "Access denied",
    404: "Not found",
    405: "Method not allowed",
    409: "Conflict",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# Service dependencies (overridden in tests)
def get_session_ledger() -> SessionLedger:
    return session_ledger


def get_player_registry() -> PlayerRegistry:
    return player_registry


def get_chip_value_manager() -> ChipValueManager:
    return chip_value_manager


def get_session_overrides() -> SessionOverrides:
    return session_overrides


def get_standings() -> Standings:
    return standings


def get_audit_log() -> AuditLog:
    return audit_log


def get_chip_analyzer() -> ChipAnalyzer:
    return chip_analyzer


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    await db.connect()
    await redis_client.connect()
    await init_db()
    os.makedirs(config.upload_dir, exist_ok=True)
    logger.info(f"Poker tracker {__version__} ready on {config.host}:{config.port}")
    yield
    await redis_client.disconnect()
    await db.disconnect()
    logger.info("Poker tracker shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Poker Tracker",
    description="Session ledger, leaderboard and admin API for live poker nights",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/uploads", StaticFiles(directory=config.upload_dir, check_dir=False), name="uploads")


# Error handlers
@app.exception_handler(PokerTrackerError)
async def handle_app_error(request: Request, exc: PokerTrackerError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(TokenError)
async def handle_token_error(request: Request, exc: TokenError):
    return JSONResponse(status_code=401, content={"error": "Access denied", "message": str(exc)})


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part not in ("body", "query", "path")),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "message": "Invalid request data", "details": details},
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": ERROR_TITLES.get(exc.status_code, "Error"), "message": str(exc.detail)},
    )


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred"},
    )


# Health check
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    database_ok = await db.health_check()
    redis_ok = await redis_client.ping()
    return {
        "status": "healthy" if database_ok and redis_ok else "degraded",
        "database": database_ok,
        "redis": redis_ok,
        "version": __version__,
        "timestamp": _now(),
    }


# Auth endpoints
@app.post("/api/auth/login")
async def login(request: LoginRequest, registry: PlayerRegistry = Depends(get_player_registry)):
    """Log in with a computing ID."""
    try:
        player = await registry.get(request.computing_id)
    except NotFoundError:
        return JSONResponse(
            status_code=401,
            content={
                "error": "Authentication failed",
                "message": "Computing ID not found. Please create a profile first.",
                "requires_profile": True,
            },
        )

    token = create_access_token(player.computing_id, Role.for_player(player.is_admin))
    logger.info(f"{player.computing_id} logged in")
    return {"message": "Login successful", "token": token, "user": player.to_summary()}


@app.post("/api/auth/logout")
async def logout(
    user: AuthenticatedUser = Depends(get_current_user),
    auth: AuthMiddleware = Depends(get_auth),
):
    """Revoke the caller's token."""
    await auth.revoke_token(user.token)
    return {"message": "Logout successful"}


@app.get("/api/auth/me")
async def me(
    user: AuthenticatedUser = Depends(get_current_user),
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """Full profile of the caller."""
    player = await registry.get(user.computing_id)
    return {"user": player.to_dict()}


@app.post("/api/auth/verify")
async def verify(request: LoginRequest, registry: PlayerRegistry = Depends(get_player_registry)):
    """Check whether a computing ID has a profile."""
    return {"exists": await registry.exists(request.computing_id), "computing_id": request.computing_id}


@app.get("/api/auth/status")
async def auth_status(user: AuthenticatedUser = Depends(get_current_user)):
    return {"authenticated": True, "user": user.to_dict()}


# Player endpoints
def _player_list_response(rows: list[dict]) -> dict:
    return {
        "players": rows,
        "total": len(rows),
        "active_players": sum(1 for r in rows if r["total_sessions"] > 0),
        "admin_players": sum(1 for r in rows if r["is_admin"]),
    }


@app.post("/api/players", status_code=201)
async def create_player(
    request: CreatePlayerRequest,
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """Create a player profile."""
    player = await registry.create(Player(**request.model_dump()))
    return {"message": "Player profile created successfully", "player": player.to_dict()}


@app.get("/api/players")
@app.get("/api/admin/players")
async def list_players(
    admin: AuthenticatedUser = Depends(get_admin_user),
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """All players with session counts (admin only)."""
    return _player_list_response(await registry.list_with_counts())


@app.get("/api/players/{computing_id}")
async def get_player(
    computing_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    registry: PlayerRegistry = Depends(get_player_registry),
):
    ensure_can_access(user, computing_id)
    player = await registry.get(computing_id)
    return {"player": player.to_dict()}


@app.put("/api/players/{computing_id}")
async def update_player(
    computing_id: str,
    request: UpdatePlayerRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """Edit profile fields (own profile, or any profile for admins)."""
    player = await registry.update(user, computing_id, request.model_dump(exclude_unset=True, exclude_none=True))
    return {"message": "Player profile updated successfully", "player": player.to_dict()}


@app.get("/api/players/{computing_id}/entries")
async def get_player_entries(
    computing_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    registry: PlayerRegistry = Depends(get_player_registry),
):
    ensure_can_access(user, computing_id, "entries")
    player, entries = await registry.entries_for(computing_id)
    return {
        "computing_id": computing_id,
        "entries": [e.to_dict() for e in entries],
        "total_entries": len(entries),
        "completed_entries": sum(1 for e in entries if e.is_completed),
        "total_winnings": float(player.total_winnings),
    }


@app.post("/api/players/{computing_id}/recalculate-winnings")
async def recalculate_player_winnings(
    computing_id: str,
    admin: AuthenticatedUser = Depends(get_admin_user),
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """Recompute a player's total from their completed sessions (admin only)."""
    result = await registry.recalculate(admin.computing_id, computing_id)
    return {"message": "Player winnings recalculated successfully", "computing_id": computing_id, **result}


# Session endpoints
@app.post("/api/sessions")
async def submit_session(
    request: SessionRequest,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: SessionLedger = Depends(get_session_ledger),
):
    """Check in, or check out of the caller's open session."""
    if request.session_type == "check-in":
        entry = await ledger.check_in(
            user.computing_id,
            request.session_date,
            start_chips=request.start_chips,
            start_chip_breakdown=request.start_chip_breakdown,
        )
        response.status_code = 201
        return {"message": "Session check-in successful", "session": entry.to_dict()}

    entry = await ledger.check_out_open(
        user.computing_id,
        end_chips=request.end_chips,
        end_chip_breakdown=request.end_chip_breakdown,
    )
    return {"message": "Session check-out successful", "session": entry.to_dict()}


@app.post("/api/sessions/{entry_id}/checkout")
async def checkout_session(
    entry_id: int,
    request: CheckOutRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: SessionLedger = Depends(get_session_ledger),
):
    entry = await ledger.check_out(
        entry_id,
        user.computing_id,
        end_chips=request.end_chips,
        end_chip_breakdown=request.end_chip_breakdown,
    )
    return {"message": "Session check-out successful", "session": entry.to_dict()}


@app.get("/api/sessions/active/{computing_id}")
async def get_active_session(
    computing_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: SessionLedger = Depends(get_session_ledger),
):
    ensure_can_access(user, computing_id, "sessions")
    entry = await ledger.get_open(computing_id)
    return {"session": entry.to_dict()}


@app.get("/api/sessions/{computing_id}")
async def list_sessions(
    computing_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: SessionLedger = Depends(get_session_ledger),
):
    ensure_can_access(user, computing_id, "sessions")
    return {"computing_id": computing_id, **(await ledger.list_sessions(computing_id))}


@app.post("/api/sessions/{entry_id}/photo")
async def upload_session_photo(
    entry_id: int,
    kind: str = Form(...),
    photo: UploadFile = File(...),
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: SessionLedger = Depends(get_session_ledger),
):
    """Store a start or end stack photo for one of the caller's sessions."""
    if kind not in ("start", "end"):
        raise ValidationError("Photo kind must be 'start' or 'end'")
    content = await photo.read()
    validate_image(content, photo.content_type)

    # Check ownership before touching the disk
    entry = await ledger.get_entry(entry_id)
    if entry.computing_id != user.computing_id:
        raise AuthorizationError("You can only update your own sessions")

    suffix = Path(photo.filename or "").suffix.lower() or ".jpg"
    filename = f"{user.computing_id}_{int(time.time() * 1000)}_{kind}{suffix}"
    os.makedirs(config.upload_dir, exist_ok=True)
    with open(os.path.join(config.upload_dir, filename), "wb") as f:
        f.write(content)

    url = f"/uploads/{filename}"
    entry = await ledger.attach_photo(entry_id, user.computing_id, kind, url)
    return {"message": "Photo uploaded successfully", "photo_url": url, "session": entry.to_dict()}


# Admin endpoints
@app.get("/api/admin/chip-values")
async def get_chip_values(
    admin: AuthenticatedUser = Depends(get_admin_user),
    manager: ChipValueManager = Depends(get_chip_value_manager),
):
    values = await manager.get_values()
    return {
        "chip_values": values,
        "colors": list(values),
        "total_colors": len(values),
        "last_updated": _now(),
    }


@app.put("/api/admin/chip-values")
async def update_chip_values(
    new_values: dict[str, Any] = Body(...),
    admin: AuthenticatedUser = Depends(get_admin_user),
    manager: ChipValueManager = Depends(get_chip_value_manager),
):
    """Replace chip values and reprice breakdown-counted sessions (admin only)."""
    result = await manager.update_values(admin.computing_id, new_values)
    return {"message": "Chip values updated successfully", **result}


@app.put("/api/admin/sessions/{entry_id}/override")
async def override_session(
    entry_id: int,
    request: OverrideRequest,
    admin: AuthenticatedUser = Depends(get_admin_user),
    overrides: SessionOverrides = Depends(get_session_overrides),
):
    """Set a session's net winnings by hand (admin only)."""
    result = await overrides.override(admin.computing_id, entry_id, request.net_winnings, request.reason)
    return {"message": "Session override applied successfully", **result}


@app.get("/api/admin/audit-logs")
async def get_audit_logs(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: AuthenticatedUser = Depends(get_admin_user),
    audit: AuditLog = Depends(get_audit_log),
):
    entries = await audit.list_recent(limit, offset)
    total = await audit.count()
    return {
        "audit_logs": [e.to_dict() for e in entries],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
        "generated_at": _now(),
    }


@app.get("/api/admin/stats")
async def get_admin_stats(
    admin: AuthenticatedUser = Depends(get_admin_user),
    board: Standings = Depends(get_standings),
):
    return {"stats": await board.admin_stats()}


# Leaderboard endpoints
@app.get("/api/leaderboard")
async def get_leaderboard(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    timeframe: Timeframe = Query(Timeframe.ALL),
    sort: SortKey = Query(SortKey.WINNINGS),
    board: Standings = Depends(get_standings),
):
    """Ranked, paginated leaderboard."""
    return await board.leaderboard(limit=limit, offset=offset, timeframe=timeframe, sort=sort)


@app.get("/api/leaderboard/stats")
async def get_leaderboard_stats(board: Standings = Depends(get_standings)):
    return {"summary": await board.summary(), "generated_at": _now()}


@app.get("/api/leaderboard/player/{computing_id}")
async def get_leaderboard_position(
    computing_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    board: Standings = Depends(get_standings),
):
    ensure_can_access(user, computing_id, "leaderboard position")
    return await board.player_position(computing_id)


# Vision endpoints
@app.post("/api/vision/analyze")
async def analyze_chip_image(
    image: Optional[UploadFile] = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    analyzer: ChipAnalyzer = Depends(get_chip_analyzer),
):
    """Detect a chip breakdown in an uploaded photo."""
    if image is None:
        raise ValidationError("Please upload an image file for analysis")
    analysis = await analyzer.analyze(await image.read(), image.content_type)
    return {
        "message": "Image analysis completed successfully",
        "analysis": analysis.to_dict(),
        "suggestions": analysis.suggestions(),
    }


@app.get("/api/vision/chip-values")
async def get_vision_chip_values(
    user: AuthenticatedUser = Depends(get_current_user),
    analyzer: ChipAnalyzer = Depends(get_chip_analyzer),
):
    return await analyzer.chip_values()


def run() -> None:
    """Run the server with uvicorn."""
    import uvicorn
    configure_logging()
    uvicorn.run(
        "poker_tracker.main:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


# Entry point
if __name__ == "__main__":
    run()
