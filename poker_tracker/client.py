"""Async client for the poker tracker REST API."""
import asyncio
from datetime import date
from typing import Any, Optional

import httpx

from poker_tracker.config import config
from poker_tracker.errors import ServerError, error_for_status
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 2


def _amount(value) -> Optional[float]:
    return float(value) if value is not None else None


def _compact(data: dict) -> dict:
    """Drop unset optional fields from a request body."""
    return {k: v for k, v in data.items() if v is not None}


class PokerTrackerClient:
    """HTTP client mirroring the frontend's request handling.

    Transport errors and 5xx responses are retried once after a fixed
    backoff; 4xx responses are never retried. A 401 drops the stored token.
    Failures surface as the shared error types from ``poker_tracker.errors``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_backoff: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.retry_backoff = config.client_retry_backoff_seconds if retry_backoff is None else retry_backoff
        self._client = httpx.AsyncClient(
            base_url=base_url or config.api_base_url,
            timeout=timeout or config.client_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "PokerTrackerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _headers(self) -> dict:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying once on transport errors and 5xx."""
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = await self._client.request(method, path, headers=self._headers(), **kwargs)
            except httpx.TransportError as e:
                if attempt == MAX_ATTEMPTS:
                    raise ServerError(f"Network error: unable to reach the server ({e})")
                logger.warning(f"{method} {path} failed ({e}); retrying in {self.retry_backoff}s")
                await asyncio.sleep(self.retry_backoff)
                continue

            if response.status_code >= 500 and attempt < MAX_ATTEMPTS:
                logger.warning(f"{method} {path} returned {response.status_code}; retrying in {self.retry_backoff}s")
                await asyncio.sleep(self.retry_backoff)
                continue
            return response

        raise ServerError("Request failed")

    async def request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Send a request and decode the JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the API base URL.
            **kwargs: Passed to ``httpx.AsyncClient.request``.

        Returns:
            The decoded response body.

        Raises:
            PokerTrackerError: The subclass matching the response status.
        """
        response = await self._send(method, path, **kwargs)

        if response.status_code == 401:
            self.token = None

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("message") or body.get("error") or response.reason_phrase
            raise error_for_status(response.status_code, message, body.get("details"))

        return response.json()

    # Auth
    async def login(self, computing_id: str) -> dict:
        """Log in and keep the returned token."""
        data = await self.request("POST", "/auth/login", json={"computing_id": computing_id})
        self.token = data["token"]
        return data["user"]

    async def logout(self) -> None:
        """Revoke the token server-side and forget it locally."""
        try:
            if self.token:
                await self.request("POST", "/auth/logout")
        finally:
            self.token = None

    async def me(self) -> dict:
        return (await self.request("GET", "/auth/me"))["user"]

    async def verify(self, computing_id: str) -> bool:
        data = await self.request("POST", "/auth/verify", json={"computing_id": computing_id})
        return data["exists"]

    # Players
    async def create_player(
        self,
        computing_id: str,
        first_name: str,
        last_name: str,
        years_of_experience: Optional[int] = None,
        level: Optional[str] = None,
        major: Optional[str] = None,
    ) -> dict:
        body = _compact({
            "computing_id": computing_id,
            "first_name": first_name,
            "last_name": last_name,
            "years_of_experience": years_of_experience,
            "level": level,
            "major": major,
        })
        return (await self.request("POST", "/players", json=body))["player"]

    async def get_player(self, computing_id: str) -> dict:
        return (await self.request("GET", f"/players/{computing_id}"))["player"]

    async def update_player(self, computing_id: str, **fields: Any) -> dict:
        return (await self.request("PUT", f"/players/{computing_id}", json=_compact(fields)))["player"]

    async def list_players(self) -> dict:
        return await self.request("GET", "/players")

    async def player_entries(self, computing_id: str) -> dict:
        return await self.request("GET", f"/players/{computing_id}/entries")

    async def recalculate_winnings(self, computing_id: str) -> dict:
        return await self.request("POST", f"/players/{computing_id}/recalculate-winnings")

    # Sessions
    async def check_in(
        self,
        session_date: date,
        start_chips=None,
        start_chip_breakdown: Optional[dict[str, int]] = None,
    ) -> dict:
        body = _compact({
            "session_type": "check-in",
            "session_date": session_date.isoformat(),
            "start_chips": _amount(start_chips),
            "start_chip_breakdown": start_chip_breakdown,
        })
        return (await self.request("POST", "/sessions", json=body))["session"]

    async def check_out(
        self,
        session_date: date,
        end_chips=None,
        end_chip_breakdown: Optional[dict[str, int]] = None,
    ) -> dict:
        """Check out of whichever session the caller has open."""
        body = _compact({
            "session_type": "check-out",
            "session_date": session_date.isoformat(),
            "end_chips": _amount(end_chips),
            "end_chip_breakdown": end_chip_breakdown,
        })
        return (await self.request("POST", "/sessions", json=body))["session"]

    async def checkout_entry(
        self,
        entry_id: int,
        end_chips=None,
        end_chip_breakdown: Optional[dict[str, int]] = None,
    ) -> dict:
        body = _compact({"end_chips": _amount(end_chips), "end_chip_breakdown": end_chip_breakdown})
        return (await self.request("POST", f"/sessions/{entry_id}/checkout", json=body))["session"]

    async def active_session(self, computing_id: str) -> dict:
        return (await self.request("GET", f"/sessions/active/{computing_id}"))["session"]

    async def sessions(self, computing_id: str) -> dict:
        return await self.request("GET", f"/sessions/{computing_id}")

    async def upload_photo(
        self,
        entry_id: int,
        kind: str,
        content: bytes,
        filename: str = "photo.jpg",
        content_type: str = "image/jpeg",
    ) -> dict:
        return await self.request(
            "POST",
            f"/sessions/{entry_id}/photo",
            data={"kind": kind},
            files={"photo": (filename, content, content_type)},
        )

    # Admin
    async def chip_values(self) -> dict[str, float]:
        return (await self.request("GET", "/admin/chip-values"))["chip_values"]

    async def update_chip_values(self, values: dict) -> dict:
        body = {color: float(value) for color, value in values.items()}
        return await self.request("PUT", "/admin/chip-values", json=body)

    async def override_session(self, entry_id: int, net_winnings, reason: Optional[str] = None) -> dict:
        body = _compact({"net_winnings": float(net_winnings), "reason": reason})
        return await self.request("PUT", f"/admin/sessions/{entry_id}/override", json=body)

    async def audit_logs(self, limit: int = 100, offset: int = 0) -> dict:
        return await self.request("GET", "/admin/audit-logs", params={"limit": limit, "offset": offset})

    async def admin_stats(self) -> dict:
        return (await self.request("GET", "/admin/stats"))["stats"]

    # Leaderboard
    async def leaderboard(
        self,
        limit: int = 50,
        offset: int = 0,
        timeframe: str = "all",
        sort: str = "winnings",
    ) -> dict:
        params = {"limit": limit, "offset": offset, "timeframe": timeframe, "sort": sort}
        return await self.request("GET", "/leaderboard", params=params)

    async def leaderboard_stats(self) -> dict:
        return (await self.request("GET", "/leaderboard/stats"))["summary"]

    async def leaderboard_position(self, computing_id: str) -> dict:
        return await self.request("GET", f"/leaderboard/player/{computing_id}")

    # Vision
    async def analyze_image(self, content: bytes, filename: str = "chips.jpg", content_type: str = "image/jpeg") -> dict:
        return await self.request(
            "POST",
            "/vision/analyze",
            files={"image": (filename, content, content_type)},
        )

    async def health(self) -> dict:
        return await self.request("GET", "/health")
