"""
Semantic search components.
"""

from .handler import SearchHandler, format_result
from .models import FallbackReason, SearchOptions, SearchResponse, SearchResultItem
from .similarity import cosine_similarity
from .vector_store import SimilarityMatch, VectorStore

__all__ = [
    "FallbackReason",
    "SearchHandler",
    "SearchOptions",
    "SearchResponse",
    "SearchResultItem",
    "SimilarityMatch",
    "VectorStore",
    "cosine_similarity",
    "format_result",
]
