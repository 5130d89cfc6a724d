"""
Trending-music insights: serve from cache, otherwise fetch, aggregate and
cache, falling back to the cache once more if anything upstream fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Dict, Protocol, Sequence

from musicpulse.models import (
    INSIGHTS_SOURCE,
    TOP_VIDEO_LIMIT,
    InsightsDocument,
    TrendSummary,
    VideoRecord,
)
from musicpulse.services.insights_cache import InsightsCache

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


class InsightsProvider(Protocol):
    @property
    def is_configured(self) -> bool:
        ...

    async def get_trending_music_videos(self) -> list[VideoRecord]:
        ...


class ProviderConfigurationError(Exception):
    """Raised when the video provider has no usable credentials."""


class ProviderDataError(Exception):
    """Raised when the provider returns an empty or malformed result."""


@dataclass(slots=True)
class InsightsOutcome:
    """HTTP-ready result of an insights request."""

    body: Dict[str, Any]
    status_code: int = HTTPStatus.OK
    cached: bool = False
    errors: list[str] = field(default_factory=list)


def _engagement(video: VideoRecord) -> float:
    metrics = video.metrics
    if metrics.view_count == 0:
        return 0.0
    return (metrics.like_count + metrics.comment_count) / metrics.view_count


def build_insights_document(
    videos: Sequence[VideoRecord], *, now: datetime
) -> InsightsDocument:
    """Aggregate the full result set; only the top videos are kept."""
    if not videos:
        raise ProviderDataError("Cannot build insights from an empty video list")

    total_views = sum(video.metrics.view_count for video in videos)
    avg_engagement = sum(_engagement(video) for video in videos) / len(videos)
    return InsightsDocument(
        trends=TrendSummary(
            videos=list(videos[:TOP_VIDEO_LIMIT]),
            total_views=total_views,
            avg_engagement=avg_engagement,
        ),
        last_updated=now.isoformat(),
        source=INSIGHTS_SOURCE,
    )


class YouTubeInsightsService:
    def __init__(
        self,
        *,
        provider: InsightsProvider,
        cache: InsightsCache,
        expose_error_details: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._expose_error_details = expose_error_details
        self._clock = clock

    @staticmethod
    def _respond(document: InsightsDocument, *, cached: bool) -> InsightsOutcome:
        body = document.to_document()
        body["cached"] = cached
        body["timestamp"] = document.last_updated
        return InsightsOutcome(body=body, cached=cached)

    async def _refresh(self) -> InsightsOutcome:
        if not self._provider.is_configured:
            raise ProviderConfigurationError("YouTube API key not configured")

        cached = await self._cache.get_latest_insights()
        if cached.value is not None:
            logger.info("Returning cached insights")
            return self._respond(cached.value, cached=True)

        logger.info("Fetching fresh insights")
        videos = await self._provider.get_trending_music_videos()
        if not isinstance(videos, list) or not videos:
            raise ProviderDataError("Invalid YouTube API response format")

        document = build_insights_document(videos, now=self._clock())

        # Best effort; the response never depends on the write.
        write = await self._cache.cache_insights(document)
        outcome = self._respond(document, cached=False)
        if write.error is not None:
            outcome.errors.append(write.error.message)
        return outcome

    async def handle(self) -> InsightsOutcome:
        try:
            return await self._refresh()
        except Exception as exc:
            logger.error("Insights refresh failed: %s", exc, exc_info=True)
            failure = exc

        fallback = await self._cache.get_latest_insights()
        if fallback.value is not None:
            logger.info("Falling back to cached insights")
            return self._respond(fallback.value, cached=True)

        body: Dict[str, Any] = {
            "error": "Failed to fetch YouTube insights",
            "retryAfter": RETRY_AFTER_SECONDS,
        }
        if self._expose_error_details:
            body["details"] = str(failure)
        return InsightsOutcome(body=body, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


__all__ = [
    "InsightsOutcome",
    "ProviderConfigurationError",
    "ProviderDataError",
    "RETRY_AFTER_SECONDS",
    "YouTubeInsightsService",
    "build_insights_document",
]
