"""
semsearch - semantic search with keyword fallback for a content platform.

This package embeds documents through an external embedding API, stores
one vector per document, and ranks documents by cosine similarity at query
time. When semantic search is unavailable or finds nothing, it falls back
to the platform's keyword search.

Example usage:
    >>> from semsearch import SemanticSearchService
    >>> service = SemanticSearchService.from_db_path("index.duckdb", secret="...")
    >>> service.index_batch(batch_size=10)
    >>> response = service.search("how do I reset my password")
"""

from .service import SemanticSearchService
from .config import SearchSettings, SettingsRepository
from .content import ContentStore, Document, DuckDBContentStore, KeywordSearch
from .embeddings import CredentialValidation, EmbeddingProvider, ValidationOutcome
from .errors import (
    IndexLimitReachedError,
    SemsearchError,
    SettingsValidationError,
    StorageError,
)
from .indexing import IndexingPipeline, IndexingResult, SyncOutcome
from .results import ErrorCode, Failure, Ok
from .search import (
    FallbackReason,
    SearchHandler,
    SearchOptions,
    SearchResponse,
    VectorStore,
)

__all__ = [
    # Facade
    "SemanticSearchService",
    # Configuration
    "SearchSettings",
    "SettingsRepository",
    # Content collaborators
    "ContentStore",
    "Document",
    "DuckDBContentStore",
    "KeywordSearch",
    # Embeddings
    "CredentialValidation",
    "EmbeddingProvider",
    "ValidationOutcome",
    # Errors and results
    "ErrorCode",
    "Failure",
    "Ok",
    "IndexLimitReachedError",
    "SemsearchError",
    "SettingsValidationError",
    "StorageError",
    # Core components
    "FallbackReason",
    "IndexingPipeline",
    "IndexingResult",
    "SearchHandler",
    "SearchOptions",
    "SearchResponse",
    "SyncOutcome",
    "VectorStore",
]
