"""
Indexing pipeline orchestration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from ..content import ContentStore, Document
from ..embeddings import EmbeddingProvider, content_fingerprint
from ..results import Failure
from ..search.vector_store import VectorStore
from ..usage import UsageTracker

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass
class IndexingResult:
    """Summary output for an indexing batch."""

    indexed: int = 0
    errors: list[tuple[int, str]] = field(default_factory=list)
    skipped: int = 0
    limit_reached: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "indexed": self.indexed,
            "errors": [
                {"document_id": document_id, "error": message}
                for document_id, message in self.errors
            ],
            "skipped": self.skipped,
            "limit_reached": self.limit_reached,
        }


class SyncOutcome(str, Enum):
    SKIPPED = "skipped"
    REMOVED = "removed"
    UNCHANGED = "unchanged"
    INDEXED = "indexed"
    FAILED = "failed"
    LIMIT_REACHED = "limit_reached"


class IndexingPipeline:
    """Embed missing or stale documents and hand the vectors to the store."""

    def __init__(
        self,
        *,
        vector_store: VectorStore,
        content_store: ContentStore,
        embedder: EmbeddingProvider,
        usage: UsageTracker,
        indexed_types: Sequence[str] = ("post", "page"),
    ) -> None:
        self.vector_store = vector_store
        self.content_store = content_store
        self.embedder = embedder
        self.usage = usage
        self.indexed_types = list(indexed_types)

    def index_limit_reached(self) -> bool:
        return self.usage.has_reached_index_limit(self.vector_store.count())

    def index_batch(
        self,
        document_ids: Sequence[int] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> IndexingResult:
        """
        Index the given documents, or the next *batch_size* unindexed ones.

        One document failing to embed or store never stops the batch; the
        failure is collected in ``errors``. The batch ends early once the
        index quota is used up.
        """
        if not document_ids:
            document_ids = self.vector_store.posts_needing_index(
                self.indexed_types, batch_size
            )

        result = IndexingResult()
        for document_id in document_ids:
            if self.index_limit_reached():
                result.limit_reached = True
                logger.info("Index limit reached; stopping batch early")
                break

            document = self.content_store.get_document(document_id)
            if document is None or not document.is_published:
                result.skipped += 1
                continue

            error = self._embed_and_store(document)
            if error is not None:
                result.errors.append((document_id, error))
                continue
            result.indexed += 1

        logger.info(
            "Indexed %d documents (%d errors, %d skipped)",
            result.indexed,
            len(result.errors),
            result.skipped,
        )
        return result

    def sync_document(self, document_id: int) -> tuple[SyncOutcome, str | None]:
        """Bring one document's embedding in line with its current content."""
        document = self.content_store.get_document(document_id)
        if document is None:
            self.remove_document(document_id)
            return SyncOutcome.REMOVED, None
        if document.type not in self.indexed_types:
            return SyncOutcome.SKIPPED, None
        if not document.is_published:
            self.remove_document(document_id)
            return SyncOutcome.REMOVED, None

        fingerprint = content_fingerprint(document)
        if not self.vector_store.needs_reindex(document_id, fingerprint):
            return SyncOutcome.UNCHANGED, None

        # Re-embedding an existing record does not grow the index.
        existing = self.vector_store.get(document_id)
        if isinstance(existing, Failure) and self.index_limit_reached():
            return SyncOutcome.LIMIT_REACHED, None

        error = self._embed_and_store(document, fingerprint=fingerprint)
        if error is not None:
            return SyncOutcome.FAILED, error
        return SyncOutcome.INDEXED, None

    def remove_document(self, document_id: int) -> None:
        removed = self.vector_store.delete(document_id)
        if isinstance(removed, Failure):
            logger.warning("Failed to remove embedding for %s: %s", document_id, removed)

    def _embed_and_store(
        self,
        document: Document,
        *,
        fingerprint: str | None = None,
    ) -> str | None:
        fingerprint = fingerprint or content_fingerprint(document)

        embedded = self.embedder.embed_document(document)
        if isinstance(embedded, Failure):
            logger.warning("Failed to embed document %s: %s", document.id, embedded)
            return embedded.message

        stored = self.vector_store.store(
            document.id,
            embedded.value,
            fingerprint,
            model_version=self.embedder.model_name(),
        )
        if isinstance(stored, Failure):
            logger.warning("Failed to store embedding for %s: %s", document.id, stored)
            return stored.message
        return None
