"""Thin Spotify Web API client authenticated with the session's user token."""

from __future__ import annotations

import logging
from typing import Any, Dict, MutableMapping, Optional, TYPE_CHECKING

import httpx

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from musicpulse.services.spotify_session import SpotifySessionService

logger = logging.getLogger(__name__)


class SpotifyWebAPIClient:
    """Issue bearer-authenticated GET requests, refreshing once on 401."""

    BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self,
        session_service: "SpotifySessionService",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._sessions = session_service
        self._transport = transport

    async def _get(
        self, path: str, access_token: str, params: Optional[Dict[str, Any]]
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.BASE_URL, timeout=10.0, transport=self._transport
        ) as client:
            return await client.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )

    async def get(
        self,
        session: MutableMapping[str, Any],
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        from musicpulse.services.spotify_session import SpotifyTokenNotFoundError

        record = self._sessions.load(session)
        if record is None:
            raise SpotifyTokenNotFoundError("Not authenticated with Spotify")

        response = await self._get(path, record.access_token, params)
        if response.status_code == httpx.codes.UNAUTHORIZED and record.refresh_token:
            logger.info("Spotify access token rejected, attempting refresh")
            refreshed = await self._sessions.refresh(session)
            response = await self._get(path, refreshed.access_token, params)
        return response

    async def get_profile(self, session: MutableMapping[str, Any]) -> httpx.Response:
        return await self.get(session, "/me")

    async def get_playlists(
        self, session: MutableMapping[str, Any], *, limit: int = 20, offset: int = 0
    ) -> httpx.Response:
        return await self.get(
            session, "/me/playlists", params={"limit": limit, "offset": offset}
        )


__all__ = ["SpotifyWebAPIClient"]
