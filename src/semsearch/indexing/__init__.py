"""
Indexing coordinator.
"""

from .pipeline import DEFAULT_BATCH_SIZE, IndexingPipeline, IndexingResult, SyncOutcome

__all__ = ["DEFAULT_BATCH_SIZE", "IndexingPipeline", "IndexingResult", "SyncOutcome"]
