"""
DuckDB storage backend for embedding, analytics and option persistence.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import duckdb

from ..errors import StorageError
from .base import AnalyticsRecord

_REQUIRED_TABLES = ("embeddings", "search_analytics", "options")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DuckDBStorage:
    """DuckDB-backed persistence for embeddings, search analytics and options."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = (
            db_path if db_path == ":memory:" else str(Path(db_path).expanduser().resolve())
        )
        self.read_only = read_only
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise StorageError(f"Unable to open database {self.db_path}: {exc}") from exc
        # A single connection is shared, so statements and fetches are serialized.
        self._lock = threading.RLock()
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

    def execute(self, sql: str, params: list[Any] | None = None) -> None:
        with self._lock:
            try:
                self._conn.execute(sql, params or [])
            except duckdb.Error as exc:
                raise StorageError(f"Database statement failed: {exc}") from exc

    def fetchone(self, sql: str, params: list[Any] | None = None) -> tuple[Any, ...] | None:
        with self._lock:
            try:
                return self._conn.execute(sql, params or []).fetchone()
            except duckdb.Error as exc:
                raise StorageError(f"Database query failed: {exc}") from exc

    def fetchall(self, sql: str, params: list[Any] | None = None) -> list[tuple[Any, ...]]:
        with self._lock:
            try:
                return self._conn.execute(sql, params or []).fetchall()
            except duckdb.Error as exc:
                raise StorageError(f"Database query failed: {exc}") from exc

    def initialize(self) -> None:
        self.execute(
            """
            CREATE TABLE IF NOT EXISTS embeddings (
                document_id BIGINT PRIMARY KEY,
                vector_json VARCHAR NOT NULL,
                model_version VARCHAR NOT NULL DEFAULT 'text-embedding-3-small',
                content_fingerprint VARCHAR NOT NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            );
            """
        )
        self.execute("CREATE SEQUENCE IF NOT EXISTS search_analytics_id_seq START 1;")
        self.execute(
            """
            CREATE TABLE IF NOT EXISTS search_analytics (
                id BIGINT PRIMARY KEY DEFAULT nextval('search_analytics_id_seq'),
                query_text VARCHAR NOT NULL,
                query_fingerprint VARCHAR NOT NULL,
                result_count INTEGER NOT NULL DEFAULT 0,
                execution_time DOUBLE NOT NULL DEFAULT 0,
                fallback_used BOOLEAN NOT NULL DEFAULT FALSE,
                user_id BIGINT,
                created_at TIMESTAMP NOT NULL
            );
            """
        )
        self.execute(
            """
            CREATE TABLE IF NOT EXISTS options (
                name VARCHAR PRIMARY KEY,
                value_json VARCHAR NOT NULL
            );
            """
        )

    def is_initialized(self) -> bool:
        rows = self.fetchall(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'main'"
        )
        existing = {str(row[0]) for row in rows}
        return all(table in existing for table in _REQUIRED_TABLES)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def upsert_embedding(
        self,
        *,
        document_id: int,
        vector_json: str,
        content_fingerprint: str,
        model_version: str,
    ) -> None:
        now = utcnow()
        self.execute(
            """
            INSERT INTO embeddings (
                document_id, vector_json, model_version, content_fingerprint,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(document_id) DO UPDATE SET
                vector_json = excluded.vector_json,
                model_version = excluded.model_version,
                content_fingerprint = excluded.content_fingerprint,
                updated_at = excluded.updated_at
            """,
            [document_id, vector_json, model_version, content_fingerprint, now, now],
        )

    def get_embedding_row(self, *, document_id: int) -> dict[str, Any] | None:
        row = self.fetchone(
            """
            SELECT
                document_id, vector_json, model_version, content_fingerprint,
                created_at, updated_at
            FROM embeddings
            WHERE document_id = ?
            LIMIT 1
            """,
            [document_id],
        )
        if row is None:
            return None
        return {
            "document_id": int(row[0]),
            "vector_json": str(row[1]),
            "model_version": str(row[2]),
            "content_fingerprint": str(row[3]),
            "created_at": row[4],
            "updated_at": row[5],
        }

    def delete_embedding(self, *, document_id: int) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) FROM embeddings WHERE document_id = ?",
            [document_id],
        )
        self.execute("DELETE FROM embeddings WHERE document_id = ?", [document_id])
        return int(row[0]) if row else 0

    def iter_embedding_vectors(self) -> list[tuple[int, str]]:
        rows = self.fetchall(
            "SELECT document_id, vector_json FROM embeddings ORDER BY document_id ASC"
        )
        return [(int(row[0]), str(row[1])) for row in rows]

    def embedded_document_ids(self) -> set[int]:
        rows = self.fetchall("SELECT document_id FROM embeddings")
        return {int(row[0]) for row in rows}

    def count_embeddings(self) -> int:
        row = self.fetchone("SELECT COUNT(*) FROM embeddings")
        return int(row[0]) if row else 0

    def clear_embeddings(self) -> None:
        self.execute("DELETE FROM embeddings")

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def insert_analytics(self, record: AnalyticsRecord) -> None:
        self.execute(
            """
            INSERT INTO search_analytics (
                query_text, query_fingerprint, result_count, execution_time,
                fallback_used, user_id, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                record.query_text,
                record.query_fingerprint,
                record.result_count,
                record.execution_time,
                record.fallback_used,
                record.user_id,
                record.created_at or utcnow(),
            ],
        )

    def analytics_summary(self, *, since: datetime) -> dict[str, Any]:
        row = self.fetchone(
            """
            SELECT
                COUNT(*),
                AVG(execution_time),
                AVG(result_count),
                SUM(CASE WHEN fallback_used THEN 1 ELSE 0 END)
            FROM search_analytics
            WHERE created_at >= ?
            """,
            [since],
        )
        if row is None:
            return {
                "total_searches": 0,
                "avg_execution_time": 0.0,
                "avg_results": 0.0,
                "fallback_count": 0,
            }
        return {
            "total_searches": int(row[0] or 0),
            "avg_execution_time": float(row[1] or 0.0),
            "avg_results": float(row[2] or 0.0),
            "fallback_count": int(row[3] or 0),
        }

    def top_queries(self, *, since: datetime, limit: int = 10) -> list[dict[str, Any]]:
        rows = self.fetchall(
            """
            SELECT min(query_text) AS query_text, COUNT(*) AS hits
            FROM search_analytics
            WHERE created_at >= ?
            GROUP BY query_fingerprint
            ORDER BY hits DESC, query_text ASC
            LIMIT ?
            """,
            [since, limit],
        )
        return [{"query_text": str(row[0]), "count": int(row[1])} for row in rows]

    def daily_search_counts(self, *, since: datetime) -> list[dict[str, Any]]:
        rows = self.fetchall(
            """
            SELECT CAST(created_at AS DATE) AS day, COUNT(*) AS searches
            FROM search_analytics
            WHERE created_at >= ?
            GROUP BY day
            ORDER BY day ASC
            """,
            [since],
        )
        return [{"date": row[0].isoformat(), "searches": int(row[1])} for row in rows]

    def prune_analytics(self, *, before: datetime) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) FROM search_analytics WHERE created_at < ?",
            [before],
        )
        self.execute("DELETE FROM search_analytics WHERE created_at < ?", [before])
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def get_option(self, name: str, default: Any = None) -> Any:
        row = self.fetchone(
            "SELECT value_json FROM options WHERE name = ? LIMIT 1",
            [name],
        )
        if row is None:
            return default
        try:
            return json.loads(str(row[0]))
        except ValueError as exc:
            raise StorageError(f"Option {name!r} holds invalid JSON: {exc}") from exc

    def set_option(self, name: str, value: Any) -> None:
        self.execute(
            """
            INSERT INTO options (name, value_json)
            VALUES (?, ?)
            ON CONFLICT(name) DO UPDATE SET value_json = excluded.value_json
            """,
            [name, json.dumps(value, sort_keys=True)],
        )

    def delete_option(self, name: str) -> None:
        self.execute("DELETE FROM options WHERE name = ?", [name])
