"""Storage backends for semsearch persistence."""

from .base import AnalyticsRecord, EmbeddingRecord, StorageBackend
from .duckdb import DuckDBStorage

__all__ = [
    "AnalyticsRecord",
    "EmbeddingRecord",
    "StorageBackend",
    "DuckDBStorage",
]
