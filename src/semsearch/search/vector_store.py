"""
Vector store: per-document embedding persistence and brute-force similarity
search.

Every stored vector is scanned on each query; there is no ANN index.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from ..cache import Cache
from ..content import PUBLISHED, ContentStore
from ..errors import StorageError
from ..results import ErrorCode, Failure, Ok
from ..storage import EmbeddingRecord, StorageBackend
from ..storage.base import DEFAULT_MODEL_VERSION
from .similarity import cosine_similarity

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "semsearch_vectors"
RECORD_CACHE_TTL = 3600


@dataclass(frozen=True)
class SimilarityMatch:
    """A document whose embedding scored at or above the threshold."""

    document_id: int
    similarity: float


def _cache_key(document_id: int) -> str:
    return f"embedding_{document_id}"


def _decode_vector(vector_json: str) -> list[float] | None:
    try:
        decoded = json.loads(vector_json)
    except (TypeError, ValueError):
        return None
    if not isinstance(decoded, list):
        return None
    try:
        return [float(value) for value in decoded]
    except (TypeError, ValueError):
        return None


class VectorStore:
    """Owns embedding records; nothing else writes them."""

    def __init__(
        self,
        storage: StorageBackend,
        content_store: ContentStore,
        *,
        cache: Cache | None = None,
        dimensions: int | None = None,
        model_version: str = DEFAULT_MODEL_VERSION,
        cache_ttl: int = RECORD_CACHE_TTL,
    ) -> None:
        self.storage = storage
        self.content_store = content_store
        self.cache = cache
        self.dimensions = dimensions
        self.model_version = model_version
        self.cache_ttl = cache_ttl

    def store(
        self,
        document_id: int,
        vector: Sequence[float],
        content_fingerprint: str,
        *,
        model_version: str | None = None,
    ) -> Ok[None] | Failure:
        """Insert or overwrite the embedding for *document_id*."""
        if not vector:
            return Failure(ErrorCode.EMPTY_VECTOR, "Cannot store empty embedding.")
        if self.dimensions is not None and len(vector) != self.dimensions:
            return Failure(
                ErrorCode.DIMENSION_MISMATCH,
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}.",
            )

        try:
            self.storage.upsert_embedding(
                document_id=document_id,
                vector_json=json.dumps([float(value) for value in vector]),
                content_fingerprint=content_fingerprint,
                model_version=model_version or self.model_version,
            )
        except StorageError as exc:
            logger.warning("Failed to store embedding for %s: %s", document_id, exc)
            return Failure(
                ErrorCode.STORAGE_FAILURE,
                f"Failed to store embedding in database: {exc.message}",
            )
        finally:
            self._invalidate(document_id)
        return Ok(None)

    def get(self, document_id: int) -> Ok[EmbeddingRecord] | Failure:
        """Read a record, preferring the cache and repopulating it on a miss."""
        cached = self._cache_get(document_id)
        if cached is not None:
            return Ok(cached)

        try:
            row = self.storage.get_embedding_row(document_id=document_id)
        except StorageError as exc:
            return Failure(ErrorCode.STORAGE_FAILURE, exc.message)
        if row is None:
            return Failure(ErrorCode.NOT_FOUND, f"No embedding for document {document_id}.")

        vector = _decode_vector(row["vector_json"])
        if vector is None:
            logger.warning("Stored embedding for %s is undecodable", document_id)
            return Failure(
                ErrorCode.STORAGE_FAILURE,
                f"Stored embedding for document {document_id} is corrupt.",
            )

        record = EmbeddingRecord(
            document_id=row["document_id"],
            vector=vector,
            content_fingerprint=row["content_fingerprint"],
            model_version=row["model_version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
        if self.cache is not None:
            self.cache.set(
                _cache_key(document_id),
                json.dumps(record.to_cache_dict()),
                ttl=self.cache_ttl,
                namespace=CACHE_NAMESPACE,
            )
        return Ok(record)

    def delete(self, document_id: int) -> Ok[None] | Failure:
        """Remove a record. Deleting a missing record is not an error."""
        try:
            self.storage.delete_embedding(document_id=document_id)
        except StorageError as exc:
            return Failure(ErrorCode.STORAGE_FAILURE, exc.message)
        finally:
            self._invalidate(document_id)
        return Ok(None)

    def needs_reindex(self, document_id: int, current_fingerprint: str) -> bool:
        result = self.get(document_id)
        if isinstance(result, Ok):
            return result.value.content_fingerprint != current_fingerprint
        if result.code is ErrorCode.STORAGE_FAILURE:
            raise StorageError(result.message)
        return True

    def find_similar(
        self,
        query_vector: Sequence[float],
        limit: int = 10,
        threshold: float = 0.5,
        allowed_types: Sequence[str] = ("post", "page"),
    ) -> list[SimilarityMatch]:
        """
        Rank stored documents by cosine similarity to *query_vector*.

        Only published documents of an allowed type are returned, with
        similarity >= threshold, best first. Equal scores order by ascending
        document id.
        """
        if limit <= 0:
            return []

        allowed = set(allowed_types)
        matches: list[SimilarityMatch] = []
        for document_id, vector_json in self.storage.iter_embedding_vectors():
            vector = _decode_vector(vector_json)
            if vector is None:
                logger.debug("Skipping undecodable embedding for %s", document_id)
                continue

            similarity = cosine_similarity(query_vector, vector)
            if similarity < threshold:
                continue

            document = self.content_store.get_document(document_id)
            if document is None or not document.is_published or document.type not in allowed:
                continue
            matches.append(SimilarityMatch(document_id=document_id, similarity=similarity))

        matches.sort(key=lambda match: (-match.similarity, match.document_id))
        return matches[:limit]

    def count(self) -> int:
        return self.storage.count_embeddings()

    def posts_needing_index(
        self,
        allowed_types: Sequence[str] = ("post", "page"),
        limit: int = 100,
    ) -> list[int]:
        """Published documents of allowed types with no record, ascending id."""
        if limit <= 0:
            return []
        embedded = self.storage.embedded_document_ids()
        candidates = self.content_store.list_documents(list(allowed_types), PUBLISHED)
        missing = [document_id for document_id in candidates if document_id not in embedded]
        return missing[:limit]

    def clear_all(self) -> Ok[None] | Failure:
        try:
            self.storage.clear_embeddings()
        except StorageError as exc:
            return Failure(ErrorCode.STORAGE_FAILURE, exc.message)
        finally:
            if self.cache is not None:
                self.cache.flush_namespace(CACHE_NAMESPACE)
        return Ok(None)

    def _invalidate(self, document_id: int) -> None:
        if self.cache is not None:
            self.cache.delete(_cache_key(document_id), namespace=CACHE_NAMESPACE)

    def _cache_get(self, document_id: int) -> EmbeddingRecord | None:
        if self.cache is None:
            return None
        payload: Any = self.cache.get(_cache_key(document_id), namespace=CACHE_NAMESPACE)
        if payload is None:
            return None
        try:
            return EmbeddingRecord.from_cache_dict(json.loads(payload))
        except (TypeError, ValueError, KeyError):
            logger.debug("Discarding corrupt cache entry for %s", document_id)
            self._invalidate(document_id)
            return None
