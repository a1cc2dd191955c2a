"""Shared fakes for the semsearch test suite."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence

import pytest

from semsearch.cache import InMemoryCache
from semsearch.content import PUBLISHED, Document
from semsearch.embeddings import CredentialValidation, ValidationOutcome
from semsearch.results import Failure, Ok
from semsearch.storage import DuckDBStorage

TEST_SECRET = "test-secret"
TEST_SALT = "test-salt"
VALID_KEY = "sk-test" + "a" * 40


def make_document(
    document_id: int,
    *,
    type: str = "post",
    status: str = PUBLISHED,
    title: str | None = None,
    excerpt: str = "",
    body: str = "",
    author_id: int = 1,
    author_name: str = "Admin",
    thumbnail_url: str | None = None,
) -> Document:
    return Document(
        id=document_id,
        type=type,
        status=status,
        title=title if title is not None else f"Document {document_id}",
        excerpt=excerpt,
        body=body or f"Body text for document {document_id}.",
        author_id=author_id,
        author_name=author_name,
        publish_date=datetime(2024, 1, 1, 12, 0, 0),
        permalink=f"https://example.com/?p={document_id}",
        thumbnail_url=thumbnail_url,
    )


class FakeContentStore:
    """In-memory content platform playing both collaborator roles."""

    def __init__(self, documents: Sequence[Document] = ()) -> None:
        self.documents: dict[int, Document] = {}
        self.keyword_calls: list[dict[str, object]] = []
        for document in documents:
            self.add(document)

    def add(self, document: Document) -> Document:
        self.documents[document.id] = document
        return document

    def remove(self, document_id: int) -> None:
        self.documents.pop(document_id, None)

    def get_document(self, document_id: int) -> Document | None:
        return self.documents.get(document_id)

    def list_documents(
        self,
        types: Sequence[str],
        status: str = PUBLISHED,
        limit: int | None = None,
    ) -> list[int]:
        ids = sorted(
            document.id
            for document in self.documents.values()
            if document.status == status and document.type in types
        )
        return ids if limit is None else ids[:limit]

    def keyword_search(
        self,
        query: str,
        types: Sequence[str],
        page: int,
        per_page: int,
    ) -> tuple[list[Document], int]:
        self.keyword_calls.append(
            {"query": query, "types": list(types), "page": page, "per_page": per_page}
        )
        needle = query.lower()
        matches = [
            self.documents[document_id]
            for document_id in self.list_documents(types)
            if needle in (self.documents[document_id].title + " " + self.documents[document_id].body).lower()
        ]
        offset = (page - 1) * per_page
        return matches[offset : offset + per_page], len(matches)


class FakeEmbedder:
    """Returns fixed vectors; records every call."""

    def __init__(
        self,
        *,
        query_vector: list[float] | None = None,
        document_vectors: dict[int, list[float]] | None = None,
        dim: int = 3,
    ) -> None:
        self.query_vector = query_vector if query_vector is not None else [1.0, 0.0, 0.0]
        self.document_vectors = document_vectors or {}
        self.query_failure: Failure | None = None
        self.document_failures: dict[int, Failure] = {}
        self.validation = CredentialValidation(ValidationOutcome.VALID, "API key is valid.")
        self.dim = dim
        self.model = "text-embedding-3-small"
        self.cache_ttl = 3600
        self.calls: list[str] = []
        self.document_calls: list[int] = []
        self.validated: list[str] = []

    def embed(self, text: str, model: str | None = None) -> Ok[list[float]] | Failure:
        self.calls.append(text)
        if self.query_failure is not None:
            return self.query_failure
        return Ok(list(self.query_vector))

    def embed_document(self, document: Document) -> Ok[list[float]] | Failure:
        self.document_calls.append(document.id)
        if document.id in self.document_failures:
            return self.document_failures[document.id]
        vector = self.document_vectors.get(document.id, [0.0, 1.0, 0.0])
        return Ok(list(vector))

    def validate_credential(self, api_key: str) -> CredentialValidation:
        self.validated.append(api_key)
        return self.validation

    def use_model(self, model: str) -> None:
        self.model = model

    def model_name(self) -> str:
        return self.model

    def dimensions(self) -> int:
        return self.dim

    def close(self) -> None:
        return None


@pytest.fixture
def storage(tmp_path: Path) -> DuckDBStorage:
    db = DuckDBStorage(str(tmp_path / "index.duckdb"))
    yield db
    db.close()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def content() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()
