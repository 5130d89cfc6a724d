"""
Read-through caches over append-only document collections.

Every refresh adds a document and the newest one, by the collection's
timestamp field, is the only candidate for a hit. Cache I/O never raises;
failures come back inside a ``CacheResult`` so callers decide explicitly to
ignore them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, ClassVar, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from musicpulse.clients.document_store import DocumentStore
from musicpulse.models import InsightsDocument, TrendsDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")
D = TypeVar("D", bound=BaseModel)

DEFAULT_TTL_MS = 3_600_000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CacheError:
    """Describes a swallowed cache read or write failure."""

    operation: str
    message: str


@dataclass(frozen=True, slots=True)
class CacheResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[CacheError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DocumentCache(Generic[D]):
    """TTL-checked reader and best-effort writer over a document collection.

    Subclasses name the document model, the field the collection is ordered
    by, and how a document's write time is read back.
    """

    document_model: ClassVar[type[BaseModel]]
    order_field: ClassVar[str]
    label: ClassVar[str] = "documents"

    def __init__(
        self,
        store: Optional[DocumentStore],
        *,
        collection: str,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], datetime] = _utcnow,
        unavailable_reason: Optional[str] = None,
    ) -> None:
        self._store = store
        self._collection = collection
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._unavailable_reason = unavailable_reason or "Document store is not initialised."

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def written_at(self, document: D) -> datetime:
        raise NotImplementedError

    def is_fresh(self, document: D) -> bool:
        age = self._clock() - self.written_at(document)
        return age <= timedelta(milliseconds=self._ttl_ms)

    async def get_latest(self) -> CacheResult[D]:
        """Return the newest document if it is within the TTL."""
        if self._store is None:
            logger.warning("Cache read of %s skipped: %s", self.label, self._unavailable_reason)
            return CacheResult(error=CacheError("read", self._unavailable_reason))

        try:
            rows = await asyncio.to_thread(
                self._store.query,
                self._collection,
                order_by=self.order_field,
                descending=True,
                limit=1,
            )
            if not rows:
                logger.info("No cached %s found", self.label)
                return CacheResult()

            document = self.document_model.model_validate(rows[0])
            fresh = self.is_fresh(document)
        except (ValidationError, ValueError, TypeError, OverflowError) as exc:
            logger.error("Cached %s document is malformed: %s", self.label, exc)
            return CacheResult(error=CacheError("read", f"Malformed document: {exc}"))
        except Exception as exc:
            logger.error("Error reading %s cache: %s", self.label, exc, exc_info=True)
            return CacheResult(error=CacheError("read", str(exc)))

        stamped = self.written_at(document).isoformat()
        if not fresh:
            logger.info("Cached %s expired (written %s)", self.label, stamped)
            return CacheResult()

        logger.info("Using cached %s from %s", self.label, stamped)
        return CacheResult(value=document)

    async def put(self, document: D) -> CacheResult[None]:
        """Append ``document`` to the collection."""
        if self._store is None:
            logger.warning("Cache write of %s skipped: %s", self.label, self._unavailable_reason)
            return CacheResult(error=CacheError("write", self._unavailable_reason))

        try:
            await asyncio.to_thread(
                self._store.add, self._collection, document.to_document()
            )
        except Exception as exc:
            logger.error("Error updating %s cache: %s", self.label, exc, exc_info=True)
            return CacheResult(error=CacheError("write", str(exc)))

        logger.info("Cache of %s updated", self.label)
        return CacheResult()


class InsightsCache(DocumentCache[InsightsDocument]):
    """YouTube insights, ordered by their ISO ``lastUpdated`` stamp."""

    document_model = InsightsDocument
    order_field = "lastUpdated"
    label = "insights"

    def __init__(
        self, store: Optional[DocumentStore], *, collection: str = "youtube_trends", **kwargs
    ) -> None:
        super().__init__(store, collection=collection, **kwargs)

    def written_at(self, document: InsightsDocument) -> datetime:
        return _parse_timestamp(document.last_updated)

    async def get_latest_insights(self) -> CacheResult[InsightsDocument]:
        return await self.get_latest()

    async def cache_insights(self, document: InsightsDocument) -> CacheResult[None]:
        return await self.put(document)


class GenreTrendsCache(DocumentCache[TrendsDocument]):
    """Spotify genre trends, ordered by their epoch-millisecond ``timestamp``."""

    document_model = TrendsDocument
    order_field = "timestamp"
    label = "genre trends"

    def __init__(
        self, store: Optional[DocumentStore], *, collection: str = "trends", **kwargs
    ) -> None:
        super().__init__(store, collection=collection, **kwargs)

    def written_at(self, document: TrendsDocument) -> datetime:
        return datetime.fromtimestamp(document.timestamp / 1000, tz=timezone.utc)


__all__ = [
    "CacheError",
    "CacheResult",
    "DEFAULT_TTL_MS",
    "DocumentCache",
    "GenreTrendsCache",
    "InsightsCache",
]
