"""Tests for the indexing coordinator."""

from __future__ import annotations

from conftest import FakeContentStore, FakeEmbedder, make_document
from semsearch.embeddings import content_fingerprint
from semsearch.indexing import IndexingPipeline, SyncOutcome
from semsearch.results import ErrorCode, Failure, Ok
from semsearch.search import VectorStore
from semsearch.storage import DuckDBStorage
from semsearch.usage import UsageTracker


def _pipeline(
    storage: DuckDBStorage,
    content: FakeContentStore,
    embedder: FakeEmbedder,
    *,
    index_limit: int = 500,
) -> tuple[IndexingPipeline, VectorStore]:
    vector_store = VectorStore(storage, content, dimensions=3)
    pipeline = IndexingPipeline(
        vector_store=vector_store,
        content_store=content,
        embedder=embedder,
        usage=UsageTracker(storage, index_limit=index_limit),
    )
    return pipeline, vector_store


def test_index_batch_isolates_per_document_failures(storage, content, embedder) -> None:
    for document_id in (1, 2, 3):
        content.add(make_document(document_id))
    embedder.document_failures[2] = Failure(ErrorCode.RATE_LIMITED, "Rate limit exceeded.")
    pipeline, vector_store = _pipeline(storage, content, embedder)

    result = pipeline.index_batch([1, 2, 3])

    assert result.indexed == 2
    assert result.errors == [(2, "Rate limit exceeded.")]
    assert embedder.document_calls == [1, 2, 3]
    assert vector_store.count() == 2
    assert isinstance(vector_store.get(2), Failure)


def test_index_batch_stores_fingerprint_and_model(storage, content, embedder) -> None:
    document = content.add(make_document(1, body="Searchable body"))
    pipeline, vector_store = _pipeline(storage, content, embedder)

    pipeline.index_batch([1])

    record = vector_store.get(1)
    assert isinstance(record, Ok)
    assert record.value.content_fingerprint == content_fingerprint(document)
    assert record.value.model_version == "text-embedding-3-small"
    assert vector_store.needs_reindex(1, content_fingerprint(document)) is False


def test_index_batch_skips_missing_and_unpublished(storage, content, embedder) -> None:
    content.add(make_document(1))
    content.add(make_document(2, status="draft"))
    pipeline, _ = _pipeline(storage, content, embedder)

    result = pipeline.index_batch([1, 2, 99])

    assert result.indexed == 1
    assert result.skipped == 2
    assert result.errors == []
    assert embedder.document_calls == [1]


def test_index_batch_selects_unindexed_documents_when_ids_omitted(
    storage, content, embedder
) -> None:
    for document_id in range(1, 8):
        content.add(make_document(document_id))
    content.add(make_document(8, type="product"))
    pipeline, vector_store = _pipeline(storage, content, embedder)
    vector_store.store(2, [0.0, 1.0, 0.0], "fp")

    result = pipeline.index_batch(batch_size=3)

    assert embedder.document_calls == [1, 3, 4]
    assert result.indexed == 3
    assert vector_store.posts_needing_index(["post", "page"], 10) == [5, 6, 7]


def test_index_batch_stops_at_index_limit(storage, content, embedder) -> None:
    for document_id in range(1, 6):
        content.add(make_document(document_id))
    pipeline, vector_store = _pipeline(storage, content, embedder, index_limit=2)

    result = pipeline.index_batch([1, 2, 3, 4, 5])

    assert result.indexed == 2
    assert result.limit_reached is True
    assert result.errors == []
    assert vector_store.count() == 2


def test_index_batch_records_storage_rejections(storage, content) -> None:
    content.add(make_document(1))
    embedder = FakeEmbedder(document_vectors={1: [1.0, 0.0]})
    pipeline, _ = _pipeline(storage, content, embedder)

    result = pipeline.index_batch([1])

    assert result.indexed == 0
    assert len(result.errors) == 1
    assert result.errors[0][0] == 1
    assert "dimensions" in result.errors[0][1]


def test_result_to_dict(storage, content, embedder) -> None:
    content.add(make_document(1))
    embedder.document_failures[1] = Failure(ErrorCode.TRANSPORT_FAILURE, "timed out")
    pipeline, _ = _pipeline(storage, content, embedder)

    payload = pipeline.index_batch([1]).to_dict()

    assert payload == {
        "indexed": 0,
        "errors": [{"document_id": 1, "error": "timed out"}],
        "skipped": 0,
        "limit_reached": False,
    }


# ---------------------------------------------------------------------------
# Document lifecycle hooks
# ---------------------------------------------------------------------------


def test_sync_document_indexes_then_reports_unchanged(storage, content, embedder) -> None:
    content.add(make_document(1))
    pipeline, vector_store = _pipeline(storage, content, embedder)

    assert pipeline.sync_document(1) == (SyncOutcome.INDEXED, None)
    assert pipeline.sync_document(1) == (SyncOutcome.UNCHANGED, None)
    assert embedder.document_calls == [1]


def test_sync_document_reembeds_edited_content(storage, content, embedder) -> None:
    content.add(make_document(1, body="first draft"))
    pipeline, vector_store = _pipeline(storage, content, embedder)
    pipeline.sync_document(1)

    edited = content.add(make_document(1, body="second draft"))
    outcome = pipeline.sync_document(1)

    assert outcome == (SyncOutcome.INDEXED, None)
    record = vector_store.get(1)
    assert isinstance(record, Ok)
    assert record.value.content_fingerprint == content_fingerprint(edited)


def test_sync_document_removes_unpublished_and_deleted(storage, content, embedder) -> None:
    content.add(make_document(1))
    content.add(make_document(2))
    pipeline, vector_store = _pipeline(storage, content, embedder)
    pipeline.index_batch([1, 2])

    content.add(make_document(1, status="draft"))
    content.remove(2)

    assert pipeline.sync_document(1) == (SyncOutcome.REMOVED, None)
    assert pipeline.sync_document(2) == (SyncOutcome.REMOVED, None)
    assert vector_store.count() == 0


def test_sync_document_ignores_unindexed_types(storage, content, embedder) -> None:
    content.add(make_document(1, type="attachment"))
    pipeline, vector_store = _pipeline(storage, content, embedder)

    assert pipeline.sync_document(1) == (SyncOutcome.SKIPPED, None)
    assert embedder.document_calls == []


def test_sync_document_respects_index_limit_for_new_records(storage, content, embedder) -> None:
    content.add(make_document(1, body="one"))
    content.add(make_document(2))
    pipeline, _ = _pipeline(storage, content, embedder, index_limit=1)
    pipeline.sync_document(1)

    assert pipeline.sync_document(2) == (SyncOutcome.LIMIT_REACHED, None)
    content.add(make_document(1, body="one, edited"))
    assert pipeline.sync_document(1) == (SyncOutcome.INDEXED, None)


def test_sync_document_reports_embedding_failure(storage, content, embedder) -> None:
    content.add(make_document(1))
    embedder.document_failures[1] = Failure(ErrorCode.UNAUTHORIZED, "Invalid API key.")
    pipeline, _ = _pipeline(storage, content, embedder)

    assert pipeline.sync_document(1) == (SyncOutcome.FAILED, "Invalid API key.")


def test_remove_document_is_idempotent(storage, content, embedder) -> None:
    content.add(make_document(1))
    pipeline, vector_store = _pipeline(storage, content, embedder)
    pipeline.index_batch([1])

    pipeline.remove_document(1)
    pipeline.remove_document(1)

    assert vector_store.count() == 0
