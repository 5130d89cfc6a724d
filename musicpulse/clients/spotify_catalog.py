"""
Spotify Web API calls made with the application's client-credentials token.

These back the trending-genres snapshot: the featured playlist (or a public
backup playlist), its tracks, their audio features, and artist genres.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from musicpulse.clients.spotify_auth import SpotifyOAuthClient
from musicpulse.core.config import SpotifySettings
from musicpulse.models import DEFAULT_GENRE

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50
TRACK_FIELDS = "items(track(id,name,artists(name),album(name,release_date)))"


class SpotifyAPIError(Exception):
    """Raised when a catalog request fails or returns an unusable body."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SpotifyCatalogClient:
    BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self,
        oauth_client: SpotifyOAuthClient,
        settings: SpotifySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._oauth = oauth_client
        self._settings = settings
        self._transport = transport

    async def _send(
        self, path: str, token: str, params: Optional[Dict[str, Any]]
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.BASE_URL, timeout=10.0, transport=self._transport
            ) as client:
                return await client.get(
                    path, params=params, headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.HTTPError as exc:
            raise SpotifyAPIError(f"Spotify request to {path} failed: {exc}") from exc

    async def get(
        self, path: str, *, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """GET ``path`` with the app token, renewing it once on 401."""
        token = await self._oauth.get_client_credentials_token()
        response = await self._send(path, token, params)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            logger.info("Spotify app token rejected, requesting a new one")
            self._oauth.invalidate_client_credentials()
            token = await self._oauth.get_client_credentials_token()
            response = await self._send(path, token, params)

        if not response.is_success:
            logger.error(
                "Spotify GET %s returned %s: %s", path, response.status_code, response.text
            )
            raise SpotifyAPIError(
                f"Spotify GET {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise SpotifyAPIError(f"Spotify GET {path} returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise SpotifyAPIError(f"Spotify GET {path} returned an unexpected payload")
        return body

    async def get_featured_playlist_id(self) -> str:
        backup = self._settings.backup_playlist_id
        try:
            body = await self.get(
                "/browse/featured-playlists",
                params={"country": self._settings.market, "limit": 1},
            )
        except SpotifyAPIError as exc:
            logger.warning("Featured playlists unavailable, using backup playlist: %s", exc)
            return backup

        items = (body.get("playlists") or {}).get("items") or []
        if items and items[0].get("id"):
            logger.info("Using featured playlist %s", items[0]["id"])
            return items[0]["id"]
        logger.info("No featured playlists found, using backup playlist")
        return backup

    async def get_playlist_tracks(self) -> list[Dict[str, Any]]:
        """Tracks of the featured playlist, or of the backup playlist if it is gone."""
        playlist_id = await self.get_featured_playlist_id()
        params = {
            "limit": MAX_BATCH_SIZE,
            "market": self._settings.market,
            "fields": TRACK_FIELDS,
        }
        try:
            body = await self.get(f"/playlists/{playlist_id}/tracks", params=params)
        except SpotifyAPIError as exc:
            backup = self._settings.backup_playlist_id
            if exc.status_code != httpx.codes.NOT_FOUND or playlist_id == backup:
                raise
            logger.info("Playlist %s not found, trying backup playlist", playlist_id)
            body = await self.get(f"/playlists/{backup}/tracks", params=params)

        return [
            item["track"]
            for item in body.get("items") or []
            if isinstance(item, dict) and item.get("track")
        ]

    async def get_audio_features(self, track_ids: list[str]) -> list[Dict[str, Any]]:
        if not track_ids:
            return []
        chunks = [
            track_ids[start : start + MAX_BATCH_SIZE]
            for start in range(0, len(track_ids), MAX_BATCH_SIZE)
        ]
        responses = await asyncio.gather(
            *(self.get("/audio-features", params={"ids": ",".join(chunk)}) for chunk in chunks)
        )
        return [
            feature
            for body in responses
            for feature in body.get("audio_features") or []
            if feature
        ]

    async def get_artist_genres(self, artist_name: str) -> list[str]:
        """Genres of the best search match; ``["Pop"]`` when unknown or on error."""
        try:
            body = await self.get(
                "/search", params={"q": artist_name.strip(), "type": "artist", "limit": 1}
            )
        except SpotifyAPIError as exc:
            logger.warning("Genre lookup for %r failed: %s", artist_name, exc)
            return [DEFAULT_GENRE]

        artists = (body.get("artists") or {}).get("items") or []
        genres = artists[0].get("genres") if artists else None
        if not genres:
            return [DEFAULT_GENRE]
        return list(genres)

    async def get_genres_for_artists(self, names: Iterable[str]) -> Dict[str, list[str]]:
        unique = list(dict.fromkeys(names))
        results = await asyncio.gather(*(self.get_artist_genres(name) for name in unique))
        return dict(zip(unique, results))


__all__ = ["MAX_BATCH_SIZE", "SpotifyAPIError", "SpotifyCatalogClient"]
