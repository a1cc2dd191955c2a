"""
Collaborator interfaces for the content platform, plus a DuckDB adapter.

The search core only reads documents. ``DuckDBContentStore`` is a small
reference implementation of both collaborator roles, usable when no
external platform is wired in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, Sequence

from .storage import DuckDBStorage

PUBLISHED = "published"


@dataclass(frozen=True)
class Document:
    """A document owned by the content platform."""

    id: int
    type: str
    status: str
    title: str
    excerpt: str = ""
    body: str = ""
    author_id: int = 0
    author_name: str = ""
    publish_date: datetime | None = None
    permalink: str = ""
    thumbnail_url: str | None = None

    @property
    def is_published(self) -> bool:
        return self.status == PUBLISHED


class ContentStore(Protocol):
    """Read access to platform documents."""

    def get_document(self, document_id: int) -> Document | None:
        """Return a document or None when it does not exist."""

    def list_documents(
        self,
        types: Sequence[str],
        status: str = PUBLISHED,
        limit: int | None = None,
    ) -> list[int]:
        """Return ids of matching documents in ascending id order."""


class KeywordSearch(Protocol):
    """The platform's native keyword search, used for fallback."""

    def keyword_search(
        self,
        query: str,
        types: Sequence[str],
        page: int,
        per_page: int,
    ) -> tuple[list[Document], int]:
        """Return one page of published matches and the total match count."""


KEYWORD_TERM_LIMIT = 8
_TERM_PATTERN = re.compile(r"\w{3,}")


def keyword_terms(query: str) -> list[str]:
    """Distinct lowercase words of three or more characters, in query order.

    A query with no such word is searched as one whole phrase.
    """
    normalized = query.strip().lower()
    distinct = list(dict.fromkeys(_TERM_PATTERN.findall(normalized)))
    if distinct:
        return distinct[:KEYWORD_TERM_LIMIT]
    return [normalized] if normalized else []


def like_pattern(term: str) -> str:
    """Substring pattern for ``LIKE ... ESCAPE '\\'`` matching ``term`` literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class DuckDBContentStore:
    """Documents table living next to the embeddings in one DuckDB file."""

    def __init__(self, storage: DuckDBStorage, *, initialize: bool = True) -> None:
        self.storage = storage
        if initialize and not storage.read_only:
            self.initialize()

    def initialize(self) -> None:
        self.storage.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                id BIGINT PRIMARY KEY,
                type VARCHAR NOT NULL,
                status VARCHAR NOT NULL,
                title VARCHAR NOT NULL DEFAULT '',
                excerpt VARCHAR NOT NULL DEFAULT '',
                body VARCHAR NOT NULL DEFAULT '',
                author_id BIGINT NOT NULL DEFAULT 0,
                author_name VARCHAR NOT NULL DEFAULT '',
                publish_date TIMESTAMP,
                permalink VARCHAR NOT NULL DEFAULT '',
                thumbnail_url VARCHAR
            );
            """
        )

    def upsert_document(self, document: Document) -> None:
        self.storage.execute(
            """
            INSERT INTO documents (
                id, type, status, title, excerpt, body, author_id, author_name,
                publish_date, permalink, thumbnail_url
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                type = excluded.type,
                status = excluded.status,
                title = excluded.title,
                excerpt = excluded.excerpt,
                body = excluded.body,
                author_id = excluded.author_id,
                author_name = excluded.author_name,
                publish_date = excluded.publish_date,
                permalink = excluded.permalink,
                thumbnail_url = excluded.thumbnail_url
            """,
            [
                document.id,
                document.type,
                document.status,
                document.title,
                document.excerpt,
                document.body,
                document.author_id,
                document.author_name,
                document.publish_date,
                document.permalink,
                document.thumbnail_url,
            ],
        )

    def delete_document(self, document_id: int) -> None:
        self.storage.execute("DELETE FROM documents WHERE id = ?", [document_id])

    def get_document(self, document_id: int) -> Document | None:
        row = self.storage.fetchone(
            """
            SELECT
                id, type, status, title, excerpt, body, author_id, author_name,
                publish_date, permalink, thumbnail_url
            FROM documents
            WHERE id = ?
            LIMIT 1
            """,
            [document_id],
        )
        if row is None:
            return None
        return self._row_to_document(row)

    def list_documents(
        self,
        types: Sequence[str],
        status: str = PUBLISHED,
        limit: int | None = None,
    ) -> list[int]:
        if not types:
            return []
        placeholders = ", ".join(["?"] * len(types))
        sql = f"""
            SELECT id FROM documents
            WHERE status = ? AND type IN ({placeholders})
            ORDER BY id ASC
        """
        params: list[Any] = [status, *types]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [int(row[0]) for row in self.storage.fetchall(sql, params)]

    def keyword_search(
        self,
        query: str,
        types: Sequence[str],
        page: int,
        per_page: int,
    ) -> tuple[list[Document], int]:
        terms = keyword_terms(query)
        if not terms or not types:
            return [], 0

        haystack = "lower(d.title || ' ' || d.excerpt || ' ' || d.body)"
        score_expr = " + ".join(
            [f"CASE WHEN {haystack} LIKE ? ESCAPE '\\' THEN 1 ELSE 0 END"] * len(terms)
        )
        placeholders = ", ".join(["?"] * len(types))
        ranked = f"""
            SELECT d.*, ({score_expr}) AS score
            FROM documents d
            WHERE d.status = ? AND d.type IN ({placeholders})
        """
        params: list[Any] = [*map(like_pattern, terms), PUBLISHED, *types]

        total_row = self.storage.fetchone(
            f"SELECT COUNT(*) FROM ({ranked}) ranked WHERE score > 0",
            params,
        )
        total = int(total_row[0]) if total_row else 0

        offset = max(page - 1, 0) * per_page
        rows = self.storage.fetchall(
            f"""
            SELECT
                id, type, status, title, excerpt, body, author_id, author_name,
                publish_date, permalink, thumbnail_url
            FROM ({ranked}) ranked
            WHERE score > 0
            ORDER BY score DESC, publish_date DESC NULLS LAST, id ASC
            LIMIT ? OFFSET ?
            """,
            [*params, per_page, offset],
        )
        return [self._row_to_document(row) for row in rows], total

    @staticmethod
    def _row_to_document(row: tuple[Any, ...]) -> Document:
        return Document(
            id=int(row[0]),
            type=str(row[1]),
            status=str(row[2]),
            title=str(row[3]),
            excerpt=str(row[4]),
            body=str(row[5]),
            author_id=int(row[6]),
            author_name=str(row[7]),
            publish_date=row[8],
            permalink=str(row[9]),
            thumbnail_url=str(row[10]) if row[10] is not None else None,
        )
