"""YouTube Data API wrapper for trending music videos."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from musicpulse.core.config import YouTubeSettings
from musicpulse.models import VideoMetrics, VideoRecord
from musicpulse.utils.retry import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def parse_video_item(item: dict) -> VideoRecord:
    """Convert a ``videos.list`` item into a ``VideoRecord``."""
    snippet = item.get("snippet") or {}
    statistics = item.get("statistics") or {}
    return VideoRecord(
        id=item["id"],
        title=snippet.get("title", ""),
        description=snippet.get("description", ""),
        metrics=VideoMetrics(
            view_count=_as_int(statistics.get("viewCount")),
            like_count=_as_int(statistics.get("likeCount")),
            comment_count=_as_int(statistics.get("commentCount")),
        ),
        published_at=snippet.get("publishedAt"),
    )


class YouTubeClient:
    """Fetch the most popular videos in the music category."""

    def __init__(
        self,
        settings: YouTubeSettings,
        *,
        service_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self._settings = settings
        self._service_factory = service_factory or self._build_service

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.api_key)

    @staticmethod
    def _build_service(api_key: str) -> Any:
        return build("youtube", "v3", developerKey=api_key, cache_discovery=False)

    async def get_trending_music_videos(
        self, max_results: int | None = None
    ) -> list[VideoRecord]:
        """Return trending music videos, retrying transient API failures."""
        limit = max_results or self._settings.max_results
        retry_config = RetryConfig(
            attempts=self._settings.max_attempts,
            backoff_seconds=self._settings.retry_delay_seconds,
            retry_on=(HttpError, OSError),
        )
        return await call_with_retry(
            self._fetch_once, limit, retry_config=retry_config
        )

    async def _fetch_once(self, max_results: int) -> list[VideoRecord]:
        api_key = self._settings.api_key or ""

        def _execute_list() -> dict:
            service = self._service_factory(api_key)
            return (
                service.videos()
                .list(
                    part="snippet,statistics",
                    chart="mostPopular",
                    regionCode=self._settings.region_code,
                    videoCategoryId=self._settings.music_category_id,
                    maxResults=max_results,
                )
                .execute()
            )

        logger.info("Fetching trending music videos (region=%s)", self._settings.region_code)
        response = await asyncio.to_thread(_execute_list)
        items = response.get("items") or []
        if not items:
            logger.warning("No trending videos found")
            return []

        logger.info("Found %d trending videos", len(items))
        return [parse_video_item(item) for item in items]


__all__ = ["YouTubeClient", "parse_video_item"]
