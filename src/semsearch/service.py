"""
Service facade exposing search, indexing and admin operations.

This is the surface an HTTP or admin layer would call. It wires the core
components from one storage backend and keeps them in step with the stored
settings.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from .analytics import DEFAULT_PERIOD, DEFAULT_RETENTION_DAYS, SearchAnalytics
from .cache import Cache, InMemoryCache
from .config import SearchSettings, SettingsRepository, resolve_db_path
from .content import PUBLISHED, ContentStore, DuckDBContentStore, KeywordSearch
from .credentials import CredentialStore, mask_credential
from .embeddings import CredentialValidation, EmbeddingProvider, ValidationOutcome
from .errors import IndexLimitReachedError, SemsearchError, SettingsValidationError, StorageError
from .indexing import DEFAULT_BATCH_SIZE, IndexingPipeline, IndexingResult, SyncOutcome
from .results import Failure
from .search import SearchHandler, SearchOptions, SearchResponse, VectorStore
from .storage import DuckDBStorage, StorageBackend
from .usage import UsageTracker

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50
STATUS_SCAN_LIMIT = 1000

_STATUS_RANK = {"ok": 0, "warning": 1, "error": 2}


class SemanticSearchService:
    """Semantic search over a content store, with keyword fallback."""

    def __init__(
        self,
        *,
        storage: StorageBackend,
        content_store: ContentStore,
        keyword_search: KeywordSearch,
        credentials: CredentialStore,
        cache: Cache | None = None,
        embedder: EmbeddingProvider | None = None,
        settings_repository: SettingsRepository | None = None,
    ) -> None:
        self.storage = storage
        self.content_store = content_store
        self.credentials = credentials
        self.cache = cache if cache is not None else InMemoryCache()
        self.settings_repository = settings_repository or SettingsRepository(storage)
        self.settings = self.settings_repository.load()

        self.embedder = embedder or EmbeddingProvider(
            credentials=credentials,
            cache=self.cache,
            model=self.settings.embedding_model,
            cache_ttl=self.settings.cache_ttl,
        )
        self.vector_store = VectorStore(
            storage,
            content_store,
            cache=self.cache,
            dimensions=self.embedder.dimensions(),
            model_version=self.embedder.model_name(),
        )
        self.usage = UsageTracker(
            storage,
            monthly_search_limit=self.settings.monthly_search_limit,
            index_limit=self.settings.index_limit,
        )
        self.analytics = SearchAnalytics(storage)
        self.search_handler = SearchHandler(
            embedder=self.embedder,
            vector_store=self.vector_store,
            content_store=content_store,
            keyword_search=keyword_search,
            usage=self.usage,
            analytics=self.analytics,
            settings=self.settings,
        )
        self.indexing = IndexingPipeline(
            vector_store=self.vector_store,
            content_store=content_store,
            embedder=self.embedder,
            usage=self.usage,
            indexed_types=self.settings.indexed_types,
        )

    @classmethod
    def from_db_path(
        cls,
        db_path: str | None = None,
        *,
        secret: str | None = None,
        embedder: EmbeddingProvider | None = None,
    ) -> "SemanticSearchService":
        """Build a service backed entirely by one DuckDB file."""
        storage = DuckDBStorage(resolve_db_path(db_path))
        content_store = DuckDBContentStore(storage)
        return cls(
            storage=storage,
            content_store=content_store,
            keyword_search=content_store,
            credentials=CredentialStore(storage, secret=secret),
            embedder=embedder,
        )

    def close(self) -> None:
        self.embedder.close()
        close = getattr(self.storage, "close", None)
        if callable(close):
            close()

    # ------------------------------------------------------------------
    # Search and indexing
    # ------------------------------------------------------------------

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        return self.search_handler.search(query, options)

    def index_batch(
        self,
        document_ids: Sequence[int] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> IndexingResult:
        return self.indexing.index_batch(document_ids, batch_size)

    def trigger_indexing(
        self,
        document_ids: Sequence[int] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> IndexingResult:
        """Admin entry point: refuse outright when the index is already full."""
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise SemsearchError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}.",
                code="invalid_request",
            )
        if self.indexing.index_limit_reached():
            raise IndexLimitReachedError("Index limit reached. Upgrade to index more posts.")
        return self.indexing.index_batch(document_ids, batch_size)

    def sync_document(self, document_id: int) -> tuple[SyncOutcome, str | None]:
        return self.indexing.sync_document(document_id)

    def remove_document(self, document_id: int) -> None:
        self.indexing.remove_document(document_id)

    def get_index_status(self) -> dict[str, Any]:
        types = self.settings.indexed_types
        needs_indexing = self.vector_store.posts_needing_index(types, STATUS_SCAN_LIMIT)
        indexed = self.vector_store.count()
        total = len(self.content_store.list_documents(types, PUBLISHED))
        return {
            "indexed": indexed,
            "total": total,
            "needs_indexing": len(needs_indexing),
            "percentage": round(indexed / total * 100, 1) if total > 0 else 0,
            "limit": self.usage.index_limit,
            "limit_reached": self.usage.has_reached_index_limit(indexed),
        }

    def clear_index(self) -> None:
        cleared = self.vector_store.clear_all()
        if isinstance(cleared, Failure):
            raise StorageError(cleared.message)
        logger.info("Cleared semantic index")

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def get_usage_stats(self) -> dict[str, Any]:
        return self.usage.stats(self.vector_store.count())

    def reset_monthly_counter(self) -> None:
        self.usage.reset()

    # ------------------------------------------------------------------
    # Credentials and settings
    # ------------------------------------------------------------------

    def validate_credential(self, api_key: str) -> CredentialValidation:
        return self.embedder.validate_credential(api_key)

    def get_settings(self) -> dict[str, Any]:
        api_key = self.credentials.get()
        payload = self.settings.model_dump()
        payload["api_key_configured"] = bool(api_key)
        payload["api_key_masked"] = mask_credential(api_key) if api_key else ""
        return payload

    def update_settings(self, changes: dict[str, Any]) -> list[str]:
        """
        Apply a partial settings update and return the names of changed keys.

        A supplied ``api_key`` is validated against the provider before
        anything is saved; an empty one clears the stored key.
        """
        changes = dict(changes)
        updated: list[str] = []

        if "api_key" in changes:
            api_key = str(changes.pop("api_key") or "").strip()
            if api_key:
                validation = self.embedder.validate_credential(api_key)
                if validation.outcome is not ValidationOutcome.VALID:
                    raise SettingsValidationError(
                        validation.message,
                        code=validation.code,
                        fields=["api_key"],
                    )
            self.credentials.store(api_key)
            updated.append("api_key")

        if changes:
            settings, changed = self.settings_repository.update(changes)
            self._apply_settings(settings)
            updated.extend(changed)
        return updated

    def _apply_settings(self, settings: SearchSettings) -> None:
        self.settings = settings
        self.search_handler.settings = settings
        self.indexing.indexed_types = list(settings.indexed_types)
        self.embedder.cache_ttl = settings.cache_ttl
        if settings.embedding_model != self.embedder.model_name():
            self.embedder.use_model(settings.embedding_model)
            self.vector_store.dimensions = self.embedder.dimensions()
            self.vector_store.model_version = self.embedder.model_name()

    # ------------------------------------------------------------------
    # Health and analytics
    # ------------------------------------------------------------------

    def get_health_status(self) -> dict[str, Any]:
        checks: dict[str, dict[str, str]] = {}

        try:
            tables_exist = self.storage.is_initialized()
        except StorageError:
            logger.warning("Health check could not reach storage", exc_info=True)
            tables_exist = False

        configured = False
        if tables_exist:
            try:
                configured = self.credentials.is_configured()
            except StorageError:
                logger.warning("Health check could not read the API key", exc_info=True)
        checks["api_key"] = {
            "status": "ok" if configured else "error",
            "message": "API key configured" if configured else "API key not configured",
        }

        checks["database"] = {
            "status": "ok" if tables_exist else "error",
            "message": "Database tables exist" if tables_exist else "Database tables missing",
        }

        indexed = self.vector_store.count() if tables_exist else 0
        checks["index"] = {
            "status": "ok" if indexed > 0 else "warning",
            "message": f"{indexed} posts indexed" if indexed > 0 else "No posts indexed yet",
        }

        searches = self.usage.monthly_searches() if tables_exist else 0
        limit = self.usage.monthly_search_limit
        checks["search_limit"] = {
            "status": "ok" if searches < limit else "warning",
            "message": f"{searches} / {limit} searches used this month",
        }

        overall = max((check["status"] for check in checks.values()), key=_STATUS_RANK.__getitem__)
        return {"status": overall, "checks": checks}

    def get_analytics(self, period: str | None = DEFAULT_PERIOD) -> dict[str, Any]:
        return self.analytics.summary(period)

    def prune_analytics(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        return self.analytics.prune(retention_days)
