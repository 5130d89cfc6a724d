try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from musicpulse.clients.document_store import SQLiteDocumentStore
from musicpulse.services.insights_cache import GenreTrendsCache, InsightsCache
from musicpulse.services.youtube_insights import build_insights_document
from musicpulse.models import (
    GenreTrends,
    MoodProfile,
    TrendsDocument,
    VideoMetrics,
    VideoRecord,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self) -> None:
        self.documents: list[dict] = []
        self.queries: list[dict] = []

    def add(self, collection: str, document: dict) -> str:
        self.documents.append(document)
        return str(len(self.documents))

    def query(self, collection, *, order_by, descending=True, limit=None):
        self.queries.append(
            {"collection": collection, "order_by": order_by, "limit": limit}
        )
        rows = sorted(self.documents, key=lambda d: d[order_by], reverse=descending)
        return rows[:limit] if limit is not None else rows


class BrokenStore:
    def add(self, collection, document):
        raise ConnectionError("store offline")

    def query(self, collection, **kwargs):
        raise ConnectionError("store offline")


def _document(at: datetime):
    video = VideoRecord(
        id="v1",
        title="Song",
        metrics=VideoMetrics(view_count=100, like_count=5, comment_count=1),
    )
    return build_insights_document([video], now=at)


def _cache(store, *, ttl_ms: int = 3_600_000) -> InsightsCache:
    return InsightsCache(store, ttl_ms=ttl_ms, clock=lambda: NOW)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("ttl_ms", "age_ms", "expect_hit"),
    [
        (3_600_000, 0, True),
        (3_600_000, 3_599_999, True),
        (3_600_000, 3_600_000, True),
        (3_600_000, 3_600_001, False),
        (1_000, 5_000, False),
        (10_000, 9_000, True),
    ],
)
async def test_reader_applies_ttl(ttl_ms: int, age_ms: int, expect_hit: bool) -> None:
    store = FakeStore()
    store.add("youtube_trends", _document(NOW - timedelta(milliseconds=age_ms)).to_document())

    result = await _cache(store, ttl_ms=ttl_ms).get_latest_insights()

    assert result.ok
    assert (result.value is not None) is expect_hit


@pytest.mark.asyncio
async def test_reader_queries_latest_single_document() -> None:
    store = FakeStore()
    store.add("youtube_trends", _document(NOW - timedelta(minutes=30)).to_document())
    store.add("youtube_trends", _document(NOW - timedelta(minutes=5)).to_document())

    result = await _cache(store).get_latest_insights()

    assert result.value is not None
    assert result.value.last_updated == (NOW - timedelta(minutes=5)).isoformat()
    assert store.queries == [
        {"collection": "youtube_trends", "order_by": "lastUpdated", "limit": 1}
    ]


@pytest.mark.asyncio
async def test_reader_returns_absent_for_empty_store() -> None:
    result = await _cache(FakeStore()).get_latest_insights()

    assert result.ok
    assert result.value is None


@pytest.mark.asyncio
async def test_reader_swallows_store_failures() -> None:
    result = await _cache(BrokenStore()).get_latest_insights()

    assert result.value is None
    assert result.error is not None
    assert result.error.operation == "read"
    assert "store offline" in result.error.message


@pytest.mark.asyncio
async def test_reader_treats_malformed_document_as_error() -> None:
    store = FakeStore()
    store.add("youtube_trends", {"lastUpdated": NOW.isoformat(), "source": "youtube"})

    result = await _cache(store).get_latest_insights()

    assert result.value is None
    assert result.error is not None


@pytest.mark.asyncio
async def test_reader_without_store_reports_unavailable() -> None:
    cache = InsightsCache(None, unavailable_reason="DYNAMODB_TABLE_NAME is not configured.")

    result = await cache.get_latest_insights()

    assert result.value is None
    assert result.error.message == "DYNAMODB_TABLE_NAME is not configured."


@pytest.mark.asyncio
async def test_reader_is_idempotent_without_writes() -> None:
    store = FakeStore()
    store.add("youtube_trends", _document(NOW - timedelta(minutes=1)).to_document())
    cache = _cache(store)

    first = await cache.get_latest_insights()
    second = await cache.get_latest_insights()

    assert first.value == second.value
    assert first.value.to_document() == second.value.to_document()


@pytest.mark.asyncio
async def test_writer_appends_without_replacing() -> None:
    store = FakeStore()
    cache = _cache(store)

    await cache.cache_insights(_document(NOW - timedelta(minutes=10)))
    result = await cache.cache_insights(_document(NOW))

    assert result.ok
    assert len(store.documents) == 2


@pytest.mark.asyncio
async def test_writer_swallows_failures() -> None:
    result = await _cache(BrokenStore()).cache_insights(_document(NOW))

    assert result.error is not None
    assert result.error.operation == "write"


@pytest.mark.asyncio
async def test_round_trip_through_sqlite_store(tmp_path) -> None:
    store = SQLiteDocumentStore(str(tmp_path / "cache.db"))
    cache = _cache(store)
    older = _document(NOW - timedelta(minutes=20))
    newer = _document(NOW - timedelta(minutes=2))

    await cache.cache_insights(newer)
    await cache.cache_insights(older)

    result = await cache.get_latest_insights()
    assert result.value == newer
    assert store.count("youtube_trends") == 2


def _trends_document(at: datetime) -> TrendsDocument:
    return TrendsDocument(
        data=GenreTrends(mood=MoodProfile(energy=0.7)),
        timestamp=int(at.timestamp() * 1000),
    )


@pytest.mark.asyncio
async def test_genre_trends_cache_orders_by_timestamp() -> None:
    store = FakeStore()
    cache = GenreTrendsCache(store, clock=lambda: NOW)
    await cache.put(_trends_document(NOW - timedelta(minutes=30)))
    await cache.put(_trends_document(NOW - timedelta(minutes=5)))

    result = await cache.get_latest()

    assert store.queries[-1] == {"collection": "trends", "order_by": "timestamp", "limit": 1}
    assert result.value is not None
    assert cache.written_at(result.value) == NOW - timedelta(minutes=5)


@pytest.mark.asyncio
async def test_genre_trends_cache_expires_after_ttl() -> None:
    store = FakeStore()
    cache = GenreTrendsCache(store, ttl_ms=60_000, clock=lambda: NOW)
    await cache.put(_trends_document(NOW - timedelta(minutes=2)))

    result = await cache.get_latest()

    assert result.ok
    assert result.value is None


@pytest.mark.asyncio
async def test_genre_trends_cache_reports_malformed_document() -> None:
    store = FakeStore()
    store.add("trends", {"timestamp": "yesterday", "data": {}})

    result = await GenreTrendsCache(store, clock=lambda: NOW).get_latest()

    assert result.value is None
    assert result.error is not None
    assert result.error.operation == "read"
