"""
Domain models for cached YouTube insights.

Field aliases keep the camelCase wire format consumed by the front end while
the Python side works with snake_case attributes.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

INSIGHTS_SOURCE = "youtube"
TOP_VIDEO_LIMIT = 10


class VideoMetrics(BaseModel):
    """Engagement counters reported for a single video."""

    model_config = ConfigDict(populate_by_name=True)

    view_count: int = Field(0, alias="viewCount")
    like_count: int = Field(0, alias="likeCount")
    comment_count: int = Field(0, alias="commentCount")


class VideoRecord(BaseModel):
    """A trending video as returned by the YouTube provider."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    metrics: VideoMetrics = Field(default_factory=VideoMetrics)
    published_at: str | None = Field(None, alias="publishedAt")


class TrendSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    videos: list[VideoRecord] = Field(default_factory=list)
    total_views: int = Field(..., alias="totalViews")
    avg_engagement: float = Field(..., alias="avgEngagement")


class InsightsDocument(BaseModel):
    """Aggregated trending-music snapshot persisted in the document store."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    trends: TrendSummary
    last_updated: str = Field(..., alias="lastUpdated")
    source: Literal["youtube"] = INSIGHTS_SOURCE

    def to_document(self) -> dict:
        """Serialize using the persisted/wire field names."""
        return self.model_dump(by_alias=True)


__all__ = [
    "INSIGHTS_SOURCE",
    "InsightsDocument",
    "TOP_VIDEO_LIMIT",
    "TrendSummary",
    "VideoMetrics",
    "VideoRecord",
]
