try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from musicpulse.models import VideoMetrics, VideoRecord
from musicpulse.services.insights_cache import InsightsCache
from musicpulse.services.youtube_insights import (
    RETRY_AFTER_SECONDS,
    YouTubeInsightsService,
    build_insights_document,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _video(index: int, views: int, likes: int = 0, comments: int = 0) -> VideoRecord:
    return VideoRecord(
        id=f"video-{index}",
        title=f"Track {index}",
        metrics=VideoMetrics(view_count=views, like_count=likes, comment_count=comments),
    )


class InMemoryStore:
    def __init__(self) -> None:
        self.documents: list[dict] = []

    def add(self, collection: str, document: dict) -> str:
        self.documents.append(document)
        return str(len(self.documents))

    def query(self, collection, *, order_by, descending=True, limit=None):
        rows = sorted(self.documents, key=lambda d: d[order_by], reverse=descending)
        return rows[:limit] if limit is not None else rows


class WriteFailingStore(InMemoryStore):
    def add(self, collection: str, document: dict) -> str:
        raise TimeoutError("write timed out")


class StubProvider:
    def __init__(self, videos=None, *, error: Exception | None = None, configured: bool = True) -> None:
        self.videos = videos or []
        self.error = error
        self.configured = configured
        self.calls = 0

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def get_trending_music_videos(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.videos


def _service(provider, store, *, expose_error_details: bool = True) -> YouTubeInsightsService:
    cache = InsightsCache(store, clock=lambda: NOW)
    return YouTubeInsightsService(
        provider=provider,
        cache=cache,
        expose_error_details=expose_error_details,
        clock=lambda: NOW,
    )


def _seed(store: InMemoryStore, at: datetime) -> dict:
    document = build_insights_document([_video(0, 10, 1, 1)], now=at).to_document()
    store.add("youtube_trends", document)
    return document


@pytest.mark.asyncio
async def test_fresh_cache_skips_provider() -> None:
    store = InMemoryStore()
    seeded = _seed(store, NOW - timedelta(minutes=10))
    provider = StubProvider([_video(1, 100)])

    outcome = await _service(provider, store).handle()

    assert provider.calls == 0
    assert outcome.status_code == 200
    assert outcome.body["cached"] is True
    assert outcome.body["timestamp"] == seeded["lastUpdated"]
    assert outcome.body["trends"] == seeded["trends"]


@pytest.mark.asyncio
async def test_cache_miss_fetches_aggregates_and_caches() -> None:
    store = InMemoryStore()
    videos = [_video(i, 1000 + i) for i in range(15)]
    provider = StubProvider(videos)

    outcome = await _service(provider, store).handle()

    assert provider.calls == 1
    assert outcome.body["cached"] is False
    assert outcome.body["source"] == "youtube"
    assert outcome.body["lastUpdated"] == NOW.isoformat()
    assert outcome.body["timestamp"] == NOW.isoformat()
    assert len(outcome.body["trends"]["videos"]) == 10
    assert outcome.body["trends"]["totalViews"] == sum(1000 + i for i in range(15))
    assert len(store.documents) == 1
    assert "cached" not in store.documents[0]


@pytest.mark.asyncio
async def test_average_engagement_over_full_result() -> None:
    videos = [
        _video(1, 1000, 10, 5),
        _video(2, 2000, 20, 10),
        _video(3, 500, 5, 2),
    ]

    outcome = await _service(StubProvider(videos), InMemoryStore()).handle()

    assert outcome.body["trends"]["avgEngagement"] == pytest.approx(0.014667, abs=1e-6)
    assert outcome.body["trends"]["totalViews"] == 3500


@pytest.mark.asyncio
async def test_expired_cache_triggers_refresh() -> None:
    store = InMemoryStore()
    _seed(store, NOW - timedelta(hours=2))
    provider = StubProvider([_video(1, 50)])

    outcome = await _service(provider, store).handle()

    assert provider.calls == 1
    assert outcome.body["cached"] is False
    assert len(store.documents) == 2


@pytest.mark.asyncio
async def test_provider_failure_without_cache_returns_retry_hint() -> None:
    provider = StubProvider(error=RuntimeError("quota exceeded"))

    outcome = await _service(provider, InMemoryStore()).handle()

    assert outcome.status_code == 500
    assert outcome.body == {
        "error": "Failed to fetch YouTube insights",
        "details": "quota exceeded",
        "retryAfter": RETRY_AFTER_SECONDS,
    }


@pytest.mark.asyncio
async def test_error_details_hidden_when_not_exposed() -> None:
    provider = StubProvider(error=RuntimeError("quota exceeded"))

    outcome = await _service(provider, InMemoryStore(), expose_error_details=False).handle()

    assert outcome.status_code == 500
    assert "details" not in outcome.body
    assert outcome.body["retryAfter"] == 60


@pytest.mark.asyncio
async def test_empty_provider_result_is_a_failure() -> None:
    outcome = await _service(StubProvider([]), InMemoryStore()).handle()

    assert outcome.status_code == 500
    assert outcome.body["details"] == "Invalid YouTube API response format"


@pytest.mark.asyncio
async def test_missing_configuration_falls_back_to_cache() -> None:
    store = InMemoryStore()
    seeded = _seed(store, NOW - timedelta(minutes=1))
    provider = StubProvider([_video(1, 10)], configured=False)

    outcome = await _service(provider, store).handle()

    assert provider.calls == 0
    assert outcome.body["cached"] is True
    assert outcome.body["lastUpdated"] == seeded["lastUpdated"]


@pytest.mark.asyncio
async def test_provider_failure_uses_document_written_meanwhile() -> None:
    store = InMemoryStore()

    class RacingProvider(StubProvider):
        async def get_trending_music_videos(self):
            self.calls += 1
            _seed(store, NOW - timedelta(seconds=30))
            raise ConnectionError("upstream reset")

    outcome = await _service(RacingProvider(), store).handle()

    assert outcome.status_code == 200
    assert outcome.body["cached"] is True


@pytest.mark.asyncio
async def test_fallback_applies_ttl() -> None:
    store = InMemoryStore()
    _seed(store, NOW - timedelta(hours=3))

    outcome = await _service(StubProvider(error=RuntimeError("down")), store).handle()

    assert outcome.status_code == 500
    assert outcome.body["retryAfter"] == 60


@pytest.mark.asyncio
async def test_write_failure_does_not_affect_response() -> None:
    outcome = await _service(StubProvider([_video(1, 10, 1, 0)]), WriteFailingStore()).handle()

    assert outcome.status_code == 200
    assert outcome.body["cached"] is False
    assert outcome.errors == ["write timed out"]


def test_zero_view_videos_contribute_no_engagement() -> None:
    document = build_insights_document(
        [_video(1, 0, 3, 3), _video(2, 100, 10, 10)], now=NOW
    )

    assert document.trends.avg_engagement == pytest.approx(0.1)
    assert document.trends.total_views == 100
