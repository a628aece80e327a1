"""
Async HTTP client for the participant and spectator endpoints.

Error responses are mapped back onto `typearena.errors`, so callers handle the
same exception classes the server raises. Transport failures surface as
`ServerError`.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from typearena.core.engine import ScoreSnapshot
from typearena.core.passage import Passage
from typearena.errors import ServerError, error_for_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0


class ArenaClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ArenaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def ws_url(self) -> str:
        """Leaderboard WebSocket URL derived from the HTTP base URL."""
        scheme, _, rest = self.base_url.partition("://")
        ws_scheme = "wss" if scheme == "https" else "ws"
        return f"{ws_scheme}://{rest}/api/ws/leaderboard"

    async def _request(self, method: str, path: str, *, token: Optional[str] = None, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ServerError("unreachable") from exc

        if response.is_error:
            detail = None
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                detail = body.get("detail")
            logger.info("%s %s -> %s %s", method, path, response.status_code, detail)
            raise error_for_response(response.status_code, detail)
        return response.json()

    async def redeem(self, code: str, name: Optional[str] = None, class_name: Optional[str] = None) -> Dict[str, Any]:
        """Exchange an invite code for `{token, name, class, eventId, eventName}`."""
        body: Dict[str, Any] = {"code": code}
        if name is not None:
            body["name"] = name
        if class_name is not None:
            body["class"] = class_name
        return await self._request("POST", "/api/student/login", json=body)

    async def fetch_passage(self, token: str, event_id: int) -> Passage:
        payload = await self._request("GET", f"/api/events/{event_id}/passage", token=token)
        return Passage.from_payload(payload)

    async def submit(self, token: str, snapshot: ScoreSnapshot) -> Dict[str, Any]:
        return await self._request("POST", "/api/results", token=token, json=snapshot.to_payload())

    async def fetch_leaderboard(self, event_id: int) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/api/events/{event_id}/results")


__all__ = ["ArenaClient"]
