"""
Storage interfaces and data models for embedding persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

DEFAULT_MODEL_VERSION = "text-embedding-3-small"


@dataclass(frozen=True)
class EmbeddingRecord:
    """A decoded embedding stored for one document."""

    document_id: int
    vector: list[float]
    content_fingerprint: str
    model_version: str = DEFAULT_MODEL_VERSION
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_cache_dict(self) -> dict[str, Any]:
        return {
            "document_id": self.document_id,
            "vector": self.vector,
            "content_fingerprint": self.content_fingerprint,
            "model_version": self.model_version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_cache_dict(cls, payload: dict[str, Any]) -> "EmbeddingRecord":
        created_at = payload.get("created_at")
        updated_at = payload.get("updated_at")
        return cls(
            document_id=int(payload["document_id"]),
            vector=[float(v) for v in payload["vector"]],
            content_fingerprint=str(payload["content_fingerprint"]),
            model_version=str(payload.get("model_version") or DEFAULT_MODEL_VERSION),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )


@dataclass(frozen=True)
class AnalyticsRecord:
    """One append-only search analytics entry."""

    query_text: str
    query_fingerprint: str
    result_count: int
    execution_time: float
    fallback_used: bool
    user_id: int | None = None
    created_at: datetime | None = None


class StorageBackend(Protocol):
    """Protocol for persistence operations used by the search core."""

    def initialize(self) -> None:
        """Initialize required tables/indexes."""

    def is_initialized(self) -> bool:
        """Return True when every required table exists."""

    def upsert_embedding(
        self,
        *,
        document_id: int,
        vector_json: str,
        content_fingerprint: str,
        model_version: str,
    ) -> None:
        """Insert or overwrite the embedding row for a document."""

    def get_embedding_row(self, *, document_id: int) -> dict[str, Any] | None:
        """Return the raw embedding row for a document, vector still encoded."""

    def delete_embedding(self, *, document_id: int) -> int:
        """Delete a document's embedding row. Return rows deleted."""

    def iter_embedding_vectors(self) -> list[tuple[int, str]]:
        """Return every (document_id, vector_json) pair, ordered by document id."""

    def embedded_document_ids(self) -> set[int]:
        """Return ids of all documents that have an embedding row."""

    def count_embeddings(self) -> int:
        """Count stored embedding rows."""

    def clear_embeddings(self) -> None:
        """Delete every embedding row."""

    def insert_analytics(self, record: AnalyticsRecord) -> None:
        """Append one analytics entry."""

    def analytics_summary(self, *, since: datetime) -> dict[str, Any]:
        """Aggregate analytics entries created at or after *since*."""

    def top_queries(self, *, since: datetime, limit: int = 10) -> list[dict[str, Any]]:
        """Most frequent queries grouped by fingerprint."""

    def daily_search_counts(self, *, since: datetime) -> list[dict[str, Any]]:
        """Per-day search counts in ascending date order."""

    def prune_analytics(self, *, before: datetime) -> int:
        """Delete analytics older than *before*. Return rows deleted."""

    def get_option(self, name: str, default: Any = None) -> Any:
        """Read a JSON-decoded option value."""

    def set_option(self, name: str, value: Any) -> None:
        """Write a JSON-encodable option value."""

    def delete_option(self, name: str) -> None:
        """Remove an option if present."""
