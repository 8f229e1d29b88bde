"""
Persistent cache of downloaded reference documents.

One record per entity id; put() is a full-overwrite upsert. There is no
expiry and no content hashing, so a changed source URL is not noticed once a
record exists. The store interface allows non-SQLite backends; the in-memory
one is used by tests and short-lived tools.
"""
from __future__ import annotations

import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .config import CACHE_DB_PATH
from .db_migrations import SqliteMigration, apply_sqlite_migrations
from .errors import StorageError
from .observability import get_logger

logger = get_logger(__name__)

_COMPONENT = "document_cache"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheRecord:
    id: str
    entity_name: str
    source_url: str
    payload: str
    last_updated: int


class CacheStore(Protocol):
    def get(self, entity_id: str) -> CacheRecord | None:
        ...

    def put(self, record: CacheRecord):
        ...

    def clear(self):
        ...

    def contains(self, entity_id: str) -> bool:
        ...

    def count(self) -> int:
        ...


class InMemoryCacheStore:
    def __init__(self):
        self._records: dict[str, CacheRecord] = {}
        self._lock = threading.Lock()

    def get(self, entity_id: str) -> CacheRecord | None:
        with self._lock:
            return self._records.get(str(entity_id))

    def put(self, record: CacheRecord):
        with self._lock:
            self._records[record.id] = record

    def clear(self):
        with self._lock:
            self._records.clear()

    def contains(self, entity_id: str) -> bool:
        return self.get(entity_id) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._records)


class SqliteCacheStore:
    """SQLite-backed document cache, safe to call from worker threads."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path else CACHE_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        try:
            self._conn = self._connect()
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error as exc:
            self.close()
            raise StorageError(f"cannot open document cache {self.db_path}: {exc}") from exc
        try:
            self._ensure_schema()
        except StorageError:
            self.close()
            raise

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self):
        with self._lock:
            if self._conn is None:
                raise StorageError("document cache connection is closed")
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StorageError(str(exc)) from exc
            except Exception:
                self._conn.rollback()
                raise

    def close(self):
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None

    def _ensure_schema(self):
        migrations = [
            SqliteMigration(
                version=1,
                name="create_cached_documents",
                statements=(
                    """
                    CREATE TABLE IF NOT EXISTS cached_documents (
                        id TEXT PRIMARY KEY,
                        entity_name TEXT NOT NULL,
                        source_url TEXT NOT NULL,
                        payload TEXT NOT NULL,
                        last_updated INTEGER NOT NULL
                    )
                    """,
                    "CREATE INDEX IF NOT EXISTS idx_cached_documents_name ON cached_documents(entity_name)",
                    "CREATE INDEX IF NOT EXISTS idx_cached_documents_url ON cached_documents(source_url)",
                    "CREATE INDEX IF NOT EXISTS idx_cached_documents_updated ON cached_documents(last_updated)",
                ),
            ),
        ]
        with self._connection() as conn:
            apply_sqlite_migrations(conn, component=_COMPONENT, migrations=migrations)

    def get(self, entity_id: str) -> CacheRecord | None:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT id, entity_name, source_url, payload, last_updated
                FROM cached_documents
                WHERE id = ?
                """,
                (str(entity_id),),
            ).fetchone()
        if row is None:
            return None
        return CacheRecord(
            id=row["id"],
            entity_name=row["entity_name"],
            source_url=row["source_url"],
            payload=row["payload"],
            last_updated=int(row["last_updated"]),
        )

    def put(self, record: CacheRecord):
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO cached_documents (id, entity_name, source_url, payload, last_updated)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    entity_name = excluded.entity_name,
                    source_url = excluded.source_url,
                    payload = excluded.payload,
                    last_updated = excluded.last_updated
                """,
                (record.id, record.entity_name, record.source_url, record.payload, int(record.last_updated)),
            )
        logger.info("document_cache_stored", entity_id=record.id, payload_chars=len(record.payload))

    def clear(self):
        with self._connection() as conn:
            removed = conn.execute("DELETE FROM cached_documents").rowcount
        logger.info("document_cache_cleared", removed=removed)

    def contains(self, entity_id: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM cached_documents WHERE id = ?",
                (str(entity_id),),
            ).fetchone()
        return row is not None

    def count(self) -> int:
        with self._connection() as conn:
            row = conn.execute("SELECT COUNT(*) FROM cached_documents").fetchone()
        return int(row[0]) if row else 0
