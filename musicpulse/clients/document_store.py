"""
Append-only document stores backing the insights cache.

Two interchangeable backends share the same small surface: ``add`` a document
to a named collection and ``query`` a collection ordered by one field. The
local backend keeps everything in SQLite; the hosted backend uses a DynamoDB
table keyed by ``(pk, sk)``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import closing, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Protocol

import boto3
from boto3.dynamodb.conditions import Key

from musicpulse.core.config import StoreSettings

logger = logging.getLogger(__name__)

DEFAULT_SORT_FIELDS = ("lastUpdated", "timestamp")


class DocumentStore(Protocol):
    def add(self, collection: str, document: Dict[str, Any]) -> str:
        ...

    def query(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[Dict[str, Any]]:
        ...


class DocumentStoreError(Exception):
    """Raised when a store backend cannot be constructed or used."""


class SQLiteDocumentStore:
    """Collections of JSON documents stored in a single SQLite table."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Commit on success and always close the handle."""
        with closing(self._connect()) as conn:
            with conn:
                yield conn

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
                """
            )

    def add(self, collection: str, document: Dict[str, Any]) -> str:
        document_id = uuid.uuid4().hex
        with self._session() as conn:
            conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, document_id, json.dumps(document)),
            )
        return document_id

    def query(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[Dict[str, Any]]:
        direction = "DESC" if descending else "ASC"
        sql = (
            "SELECT data FROM documents WHERE collection = ? "
            f"ORDER BY json_extract(data, ?) {direction}"
        )
        params: list[Any] = [collection, f"$.{order_by}"]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._session() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [json.loads(row["data"]) for row in rows]

    def count(self, collection: str) -> int:
        with self._session() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM documents WHERE collection = ?",
                (collection,),
            ).fetchone()
        return int(row["total"])


class DynamoDBDocumentStore:
    """Collections stored under ``collection#<name>`` partitions in DynamoDB.

    The sort key is ``<sort value>#<id>``, where the sort value is the first of
    ``sort_fields`` the document carries, so a reverse query on the partition
    returns the newest documents first.
    """

    def __init__(
        self,
        settings: StoreSettings,
        *,
        sort_fields: tuple[str, ...] = DEFAULT_SORT_FIELDS,
        table: Any = None,
    ) -> None:
        if table is None:
            if not settings.dynamodb_table_name:
                raise DocumentStoreError("DYNAMODB_TABLE_NAME is not configured.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table
        self._sort_fields = sort_fields

    @staticmethod
    def _partition(collection: str) -> str:
        return f"collection#{collection}"

    def add(self, collection: str, document: Dict[str, Any]) -> str:
        sort_value = next(
            (document[name] for name in self._sort_fields if document.get(name)), None
        )
        if sort_value is None:
            raise ValueError(
                "Document must include one of: " + ", ".join(self._sort_fields)
            )
        document_id = uuid.uuid4().hex
        # Floats are not accepted by the DynamoDB serializer.
        payload = json.dumps(document)
        self._table.put_item(
            Item={
                "pk": self._partition(collection),
                "sk": f"{sort_value}#{document_id}",
                "data": payload,
            }
        )
        return document_id

    def query(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[Dict[str, Any]]:
        if order_by not in self._sort_fields:
            raise ValueError(
                f"DynamoDB store cannot order by '{order_by}'; "
                f"sort fields are {', '.join(self._sort_fields)}"
            )
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": Key("pk").eq(self._partition(collection)),
            "ScanIndexForward": not descending,
        }
        if limit is not None:
            kwargs["Limit"] = limit
        response = self._table.query(**kwargs)
        return [json.loads(item["data"]) for item in response.get("Items", [])]


@dataclass(slots=True)
class StoreInitResult:
    """Outcome of constructing the configured store backend."""

    store: Optional[DocumentStore] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.store is not None


def initialize_document_store(settings: StoreSettings) -> StoreInitResult:
    """Build the configured backend, reporting failures instead of raising."""
    try:
        if settings.backend == "dynamodb":
            store: DocumentStore = DynamoDBDocumentStore(settings)
        else:
            store = SQLiteDocumentStore(settings.sqlite_path)
    except Exception as exc:
        logger.error("Document store initialisation failed (%s): %s", settings.backend, exc)
        return StoreInitResult(error=str(exc))
    logger.info("Document store initialised (%s)", settings.backend)
    return StoreInitResult(store=store)


__all__ = [
    "DocumentStore",
    "DocumentStoreError",
    "DynamoDBDocumentStore",
    "SQLiteDocumentStore",
    "StoreInitResult",
    "initialize_document_store",
]
