"""
Search analytics: append-only query log with period summaries.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from .errors import StorageError
from .storage import AnalyticsRecord, StorageBackend
from .storage.duckdb import utcnow

logger = logging.getLogger(__name__)

QUERY_TEXT_MAX_LENGTH = 500
DEFAULT_RETENTION_DAYS = 90
TOP_QUERY_LIMIT = 10

PERIOD_DAYS = {
    "24h": 1,
    "7d": 7,
    "30d": 30,
    "90d": 90,
}
DEFAULT_PERIOD = "7d"


def query_fingerprint(query: str) -> str:
    """Group key for identical queries, ignoring case and outer whitespace."""
    return hashlib.md5(query.strip().lower().encode("utf-8")).hexdigest()


def period_days(period: str | None) -> int:
    return PERIOD_DAYS.get(period or DEFAULT_PERIOD, PERIOD_DAYS[DEFAULT_PERIOD])


class SearchAnalytics:
    """Records one entry per search and aggregates them for reporting."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.storage = storage
        self._clock = clock

    def record(
        self,
        query: str,
        *,
        result_count: int,
        execution_time: float,
        fallback_used: bool,
        user_id: int | None = None,
    ) -> None:
        """Append an entry. A failed write is logged and never reaches the searcher."""
        record = AnalyticsRecord(
            query_text=query[:QUERY_TEXT_MAX_LENGTH],
            query_fingerprint=query_fingerprint(query),
            result_count=result_count,
            execution_time=execution_time,
            fallback_used=fallback_used,
            user_id=user_id or None,
            created_at=self._clock(),
        )
        try:
            self.storage.insert_analytics(record)
        except StorageError:
            logger.warning("Failed to record search analytics", exc_info=True)

    def summary(self, period: str | None = DEFAULT_PERIOD) -> dict[str, Any]:
        days = period_days(period)
        since = self._clock() - timedelta(days=days)

        stats = self.storage.analytics_summary(since=since)
        total = stats["total_searches"]
        fallback_rate = round(stats["fallback_count"] / total * 100, 1) if total > 0 else 0
        return {
            "period": period if period in PERIOD_DAYS else DEFAULT_PERIOD,
            "summary": {
                "total_searches": total,
                "avg_execution_time": round(stats["avg_execution_time"], 3),
                "avg_results": round(stats["avg_results"], 1),
                "fallback_rate": fallback_rate,
            },
            "top_queries": self.storage.top_queries(since=since, limit=TOP_QUERY_LIMIT),
            "daily": self.storage.daily_search_counts(since=since),
        }

    def prune(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        cutoff = self._clock() - timedelta(days=retention_days)
        deleted = self.storage.prune_analytics(before=cutoff)
        if deleted:
            logger.info("Pruned %d analytics entries older than %s", deleted, cutoff)
        return deleted
