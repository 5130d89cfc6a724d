"""
Trending genres from Spotify: serve the cached snapshot when fresh, otherwise
sample the featured playlist, count artist genres and average the mood.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping, Protocol, Sequence

from musicpulse.clients.spotify_auth import SpotifyTokenExchangeError
from musicpulse.clients.spotify_catalog import SpotifyAPIError
from musicpulse.models import (
    DEFAULT_GENRE,
    TOP_GENRE_LIMIT,
    GenreShare,
    GenreTrends,
    MoodProfile,
    TrendsDocument,
)
from musicpulse.services.insights_cache import GenreTrendsCache
from musicpulse.utils.retry import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)


class TrackSource(Protocol):
    async def get_playlist_tracks(self) -> list[Dict[str, Any]]:
        ...

    async def get_audio_features(self, track_ids: list[str]) -> list[Dict[str, Any]]:
        ...

    async def get_genres_for_artists(self, names: Sequence[str]) -> Dict[str, list[str]]:
        ...


class NoTracksError(Exception):
    """Raised when the sampled playlist yields no tracks."""


class NoAudioFeaturesError(Exception):
    """Raised when none of the sampled tracks has audio features."""


@dataclass(slots=True)
class TrendsOutcome:
    body: Dict[str, Any]
    status_code: int = HTTPStatus.OK
    cached: bool = False
    errors: list[str] = field(default_factory=list)


def _iso(moment: datetime) -> str:
    return moment.isoformat()


def _artist_names(track: Mapping[str, Any]) -> list[str]:
    return [
        artist["name"]
        for artist in track.get("artists") or []
        if isinstance(artist, dict) and artist.get("name")
    ]


def analyze_trends(
    tracks: Sequence[Mapping[str, Any]],
    audio_features: Sequence[Mapping[str, Any]],
    artist_genres: Mapping[str, list[str]],
) -> GenreTrends:
    """Count genres per track artist and average the audio features.

    Each artist contributes all of its genres, so percentages are shares of
    genre mentions rather than of tracks. Unknown artists count as Pop.
    """
    counts: Counter[str] = Counter()
    for track in tracks:
        for name in _artist_names(track):
            counts.update(artist_genres.get(name) or [DEFAULT_GENRE])

    mentions = sum(counts.values()) or 1
    # most_common keeps first-seen order among equal counts
    top = [
        GenreShare(name=name, count=count, percentage=count / mentions * 100)
        for name, count in counts.most_common(TOP_GENRE_LIMIT)
    ]

    sample = len(audio_features) or 1
    mood = MoodProfile(
        danceability=sum(f.get("danceability") or 0 for f in audio_features) / sample,
        energy=sum(f.get("energy") or 0 for f in audio_features) / sample,
        valence=sum(f.get("valence") or 0 for f in audio_features) / sample,
    )
    return GenreTrends(top_genres=top, mood=mood)


class GenreTrendsService:
    def __init__(
        self,
        *,
        catalog: TrackSource,
        cache: GenreTrendsCache,
        retry_config: RetryConfig | None = None,
        expose_error_details: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._catalog = catalog
        self._cache = cache
        self._retry_config = retry_config or RetryConfig(
            retry_on=(SpotifyAPIError, SpotifyTokenExchangeError, NoTracksError)
        )
        self._expose_error_details = expose_error_details
        self._clock = clock

    def _failure(self, error: str, exc: Exception) -> TrendsOutcome:
        body: Dict[str, Any] = {"success": False, "error": error}
        if self._expose_error_details:
            body["details"] = str(exc)
        body["timestamp"] = _iso(self._clock())
        return TrendsOutcome(body=body, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)

    async def _fetch_tracks(self) -> list[Dict[str, Any]]:
        tracks = await self._catalog.get_playlist_tracks()
        if not tracks:
            raise NoTracksError("No tracks returned from Spotify")
        logger.info("Fetched %d tracks", len(tracks))
        return tracks

    async def _analyze(self, tracks: list[Dict[str, Any]]) -> GenreTrends:
        track_ids = [track["id"] for track in tracks if track.get("id")]
        features = await self._catalog.get_audio_features(track_ids)
        if not features:
            raise NoAudioFeaturesError("No audio features found")
        names = [name for track in tracks for name in _artist_names(track)]
        genres = await self._catalog.get_genres_for_artists(names)
        return analyze_trends(tracks, features, genres)

    async def handle(self) -> TrendsOutcome:
        cached = await self._cache.get_latest()
        if cached.value is not None:
            logger.info("Returning cached genre trends")
            document = cached.value
            return TrendsOutcome(
                body={
                    "success": True,
                    "data": document.data.model_dump(by_alias=True),
                    "cached": True,
                    "timestamp": _iso(self._cache.written_at(document)),
                },
                cached=True,
            )

        logger.info("Genre trends cache miss, sampling Spotify")
        try:
            tracks = await call_with_retry(self._fetch_tracks, retry_config=self._retry_config)
        except Exception as exc:
            logger.error("All attempts to fetch tracks failed: %s", exc)
            return self._failure("Failed to fetch tracks from Spotify", exc)

        try:
            trends = await self._analyze(tracks)
        except Exception as exc:
            logger.error("Genre trend analysis failed: %s", exc, exc_info=True)
            return self._failure("Failed to fetch trending genres", exc)

        now = self._clock()
        document = TrendsDocument(data=trends, timestamp=int(now.timestamp() * 1000))
        write = await self._cache.put(document)
        outcome = TrendsOutcome(
            body={
                "success": True,
                "data": trends.model_dump(by_alias=True),
                "cached": False,
                "timestamp": _iso(now),
            }
        )
        if write.error is not None:
            outcome.errors.append(write.error.message)
        return outcome


__all__ = [
    "GenreTrendsService",
    "NoAudioFeaturesError",
    "NoTracksError",
    "TrendsOutcome",
    "analyze_trends",
]
