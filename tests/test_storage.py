"""Tests for DuckDB persistence, the DuckDB content adapter and the cache."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from conftest import make_document
from semsearch.cache import InMemoryCache
from semsearch.content import DuckDBContentStore
from semsearch.errors import StorageError
from semsearch.storage import DuckDBStorage


def test_initialize_creates_tables(storage) -> None:
    assert storage.is_initialized() is True


def test_uninitialized_database_reports_missing_tables(tmp_path: Path) -> None:
    db = DuckDBStorage(str(tmp_path / "bare.duckdb"), initialize=False)
    try:
        assert db.is_initialized() is False
    finally:
        db.close()


def test_embedding_rows_persist_across_connections(tmp_path: Path) -> None:
    db_path = str(tmp_path / "index.duckdb")
    first = DuckDBStorage(db_path)
    first.upsert_embedding(
        document_id=2,
        vector_json="[0.5, 0.5]",
        content_fingerprint="abc",
        model_version="text-embedding-3-small",
    )
    first.close()

    second = DuckDBStorage(db_path)
    try:
        row = second.get_embedding_row(document_id=2)
        assert row is not None
        assert row["vector_json"] == "[0.5, 0.5]"
        assert row["content_fingerprint"] == "abc"
        assert isinstance(row["created_at"], datetime)
        assert second.embedded_document_ids() == {2}
    finally:
        second.close()


def test_delete_and_clear_embeddings(storage) -> None:
    for document_id in (3, 1, 2):
        storage.upsert_embedding(
            document_id=document_id,
            vector_json="[1.0]",
            content_fingerprint="fp",
            model_version="m",
        )

    assert [row[0] for row in storage.iter_embedding_vectors()] == [1, 2, 3]
    assert storage.delete_embedding(document_id=2) == 1
    assert storage.delete_embedding(document_id=2) == 0
    assert storage.count_embeddings() == 2

    storage.clear_embeddings()
    assert storage.count_embeddings() == 0


def test_options_round_trip_json_values(storage) -> None:
    storage.set_option("settings", {"per_page": 5, "indexed_types": ["post"]})
    storage.set_option("settings", {"per_page": 6})

    assert storage.get_option("settings") == {"per_page": 6}
    assert storage.get_option("missing", "fallback") == "fallback"
    storage.delete_option("settings")
    assert storage.get_option("settings") is None


def test_statement_errors_raise_storage_error(storage) -> None:
    with pytest.raises(StorageError):
        storage.fetchall("SELECT * FROM no_such_table")


def test_corrupt_option_value_raises_storage_error(storage) -> None:
    storage.execute(
        "INSERT INTO options (name, value_json) VALUES (?, ?)",
        ["monthly_searches", "{not json"],
    )

    with pytest.raises(StorageError):
        storage.get_option("monthly_searches", 0)


# ---------------------------------------------------------------------------
# DuckDBContentStore
# ---------------------------------------------------------------------------


def test_content_store_lists_published_documents_by_type(storage) -> None:
    store = DuckDBContentStore(storage)
    store.upsert_document(make_document(3))
    store.upsert_document(make_document(1, type="page"))
    store.upsert_document(make_document(2, status="draft"))
    store.upsert_document(make_document(4, type="product"))

    assert store.list_documents(["post", "page"]) == [1, 3]
    assert store.list_documents(["post", "page"], limit=1) == [1]
    assert store.list_documents(["post"], status="draft") == [2]
    assert store.list_documents([]) == []


def test_content_store_round_trips_document(storage) -> None:
    store = DuckDBContentStore(storage)
    original = make_document(5, excerpt="Intro", thumbnail_url="https://example.com/5.png")

    store.upsert_document(original)

    assert store.get_document(5) == original
    store.delete_document(5)
    assert store.get_document(5) is None


def test_keyword_search_ranks_by_term_matches_and_paginates(storage) -> None:
    store = DuckDBContentStore(storage)
    store.upsert_document(make_document(1, title="Shipping rates", body="International shipping"))
    store.upsert_document(make_document(2, title="Refund policy", body="Refunds for shipping damage"))
    store.upsert_document(make_document(3, title="About us", body="Company history"))
    store.upsert_document(make_document(4, title="Shipping refund", body="Draft", status="draft"))

    documents, total = store.keyword_search("shipping refund", ["post", "page"], 1, 10)

    assert total == 2
    assert [document.id for document in documents] == [2, 1]

    page_two, total = store.keyword_search("shipping refund", ["post"], 2, 1)
    assert total == 2
    assert [document.id for document in page_two] == [1]


def test_keyword_search_treats_like_wildcards_literally(storage) -> None:
    store = DuckDBContentStore(storage)
    store.upsert_document(make_document(1, title="foo_bar settings"))
    store.upsert_document(make_document(2, title="fooXbar settings"))
    store.upsert_document(make_document(3, title="Save 100% now"))
    store.upsert_document(make_document(4, title="Save 1000 now"))

    underscored, total = store.keyword_search("foo_bar", ["post"], 1, 10)
    assert total == 1
    assert [document.id for document in underscored] == [1]

    percent, total = store.keyword_search("%", ["post"], 1, 10)
    assert total == 1
    assert [document.id for document in percent] == [3]


def test_keyword_search_without_terms_returns_nothing(storage) -> None:
    store = DuckDBContentStore(storage)
    store.upsert_document(make_document(1))

    assert store.keyword_search("   ", ["post"], 1, 10) == ([], 0)


# ---------------------------------------------------------------------------
# InMemoryCache
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_cache_entries_expire_after_ttl() -> None:
    clock = _Clock()
    cache = InMemoryCache(clock=clock)
    cache.set("k", [1.0], ttl=10, namespace="ns")

    clock.now = 109.0
    assert cache.get("k", namespace="ns") == [1.0]
    clock.now = 110.0
    assert cache.get("k", namespace="ns") is None


def test_cache_zero_ttl_never_expires() -> None:
    clock = _Clock()
    cache = InMemoryCache(clock=clock)
    cache.set("k", "v", ttl=0)

    clock.now = 10_000_000.0
    assert cache.get("k") == "v"


def test_cache_namespaces_are_isolated_and_flushable() -> None:
    cache = InMemoryCache()
    cache.set("k", 1, namespace="a")
    cache.set("k", 2, namespace="b")

    cache.flush_namespace("a")

    assert cache.get("k", namespace="a") is None
    assert cache.get("k", namespace="b") == 2
    cache.delete("k", namespace="b")
    assert len(cache) == 0


def test_cache_write_sweeps_expired_entries() -> None:
    clock = _Clock()
    cache = InMemoryCache(clock=clock)
    for index in range(1000):
        cache.set(f"k{index}", index, ttl=10, namespace="ns")

    clock.now = 10_000.0
    cache.set("fresh", "v", ttl=10, namespace="ns")

    assert len(cache) == 1
    assert cache.get("fresh", namespace="ns") == "v"


def test_cache_evicts_oldest_entry_at_capacity() -> None:
    cache = InMemoryCache(max_entries=2)
    cache.set("a", 1, ttl=0)
    cache.set("b", 2, ttl=0)
    cache.set("a", 10, ttl=0)
    cache.set("c", 3, ttl=0)

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == 10
    assert cache.get("c") == 3
