"""
Search orchestration: semantic retrieval with tiered keyword fallback.

Each call to ``SearchHandler.search`` makes exactly one pass:

1. quota check        -> fallback ``LimitReached``
2. embed the query    -> fallback ``EmbeddingError``
3. similarity search  -> fallback ``NoResults`` (or an empty semantic answer
   when fallback is disabled)
4. paginate, format, count the search and record analytics

Nothing here raises for a failed semantic attempt; the caller always gets a
``SearchResponse``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..analytics import SearchAnalytics
from ..config import SearchSettings
from ..content import ContentStore, Document, KeywordSearch
from ..embeddings import EmbeddingProvider, collapse_whitespace, strip_markup
from ..errors import StorageError
from ..results import Failure
from ..usage import UsageTracker
from .models import AuthorInfo, FallbackReason, SearchOptions, SearchResponse, SearchResultItem
from .vector_store import SimilarityMatch, VectorStore

logger = logging.getLogger(__name__)

EXCERPT_WORDS = 55


def excerpt_for(document: Document) -> str:
    """Use the stored excerpt, or the opening words of the body."""
    if document.excerpt.strip():
        return collapse_whitespace(document.excerpt)
    words = collapse_whitespace(strip_markup(document.body)).split(" ")
    if len(words) <= EXCERPT_WORDS:
        return " ".join(words).strip()
    return " ".join(words[:EXCERPT_WORDS]) + "..."


def format_result(document: Document, similarity: float | None = None) -> SearchResultItem:
    return SearchResultItem(
        id=document.id,
        title=document.title,
        excerpt=excerpt_for(document),
        url=document.permalink,
        type=document.type,
        date=document.publish_date.isoformat() if document.publish_date else None,
        author=AuthorInfo(id=document.author_id, name=document.author_name),
        similarity=round(similarity, 4) if similarity is not None else None,
        thumbnail=document.thumbnail_url or None,
    )


class SearchHandler:
    """Answers queries from the vector store, degrading to keyword search."""

    def __init__(
        self,
        *,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        content_store: ContentStore,
        keyword_search: KeywordSearch,
        usage: UsageTracker,
        analytics: SearchAnalytics,
        settings: SearchSettings,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.content_store = content_store
        self.keyword_search = keyword_search
        self.usage = usage
        self.analytics = analytics
        self.settings = settings
        self._timer = timer

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        started = self._timer()
        options = options or SearchOptions()
        per_page = options.per_page or self.settings.per_page
        threshold = (
            self.settings.similarity_threshold if options.threshold is None else options.threshold
        )
        types = options.types or list(self.settings.indexed_types)

        response = SearchResponse(
            page=options.page,
            per_page=per_page,
            query=query,
        )

        reason: FallbackReason | None = None
        similar: list[SimilarityMatch] = []
        try:
            if self.usage.has_reached_search_limit():
                reason = FallbackReason.LIMIT_REACHED
            else:
                embedded = self.embedder.embed(query)
                if isinstance(embedded, Failure):
                    logger.debug("Query embedding failed: %s", embedded)
                    reason = FallbackReason.EMBEDDING_ERROR
                else:
                    similar = self.vector_store.find_similar(
                        embedded.value,
                        limit=self.settings.max_results,
                        threshold=threshold,
                        allowed_types=types,
                    )
        except StorageError as exc:
            logger.warning("Semantic search unavailable: %s", exc.message)
            reason = FallbackReason.STORAGE_ERROR

        if reason is None and not similar and self.settings.fallback_enabled:
            reason = FallbackReason.NO_RESULTS
        if reason is not None:
            return self._fallback(response, types, options, started, reason)

        if not similar:
            response.execution_time = self._timer() - started
            self._record(query, 0, response.execution_time, False, options.user_id)
            return response

        offset = (options.page - 1) * per_page
        for match in similar[offset : offset + per_page]:
            document = self.content_store.get_document(match.document_id)
            if document is None:
                continue
            response.results.append(format_result(document, match.similarity))

        response.total = len(similar)
        response.execution_time = self._timer() - started

        try:
            self.usage.increment()
        except StorageError:
            logger.warning("Failed to increment monthly search counter", exc_info=True)
        self._record(query, response.total, response.execution_time, False, options.user_id)
        return response

    def _fallback(
        self,
        response: SearchResponse,
        types: list[str],
        options: SearchOptions,
        started: float,
        reason: FallbackReason,
    ) -> SearchResponse:
        logger.debug("Falling back to keyword search for %r: %s", response.query, reason.value)
        documents, total = self.keyword_search.keyword_search(
            response.query,
            types,
            response.page,
            response.per_page,
        )

        response.results = [format_result(document) for document in documents]
        response.total = total
        response.fallback_used = True
        response.fallback_reason = reason
        response.search_type = "keyword"
        response.execution_time = self._timer() - started

        self._record(response.query, total, response.execution_time, True, options.user_id)
        return response

    def _record(
        self,
        query: str,
        result_count: int,
        execution_time: float,
        fallback_used: bool,
        user_id: int | None,
    ) -> None:
        self.analytics.record(
            query,
            result_count=result_count,
            execution_time=execution_time,
            fallback_used=fallback_used,
            user_id=user_id,
        )
