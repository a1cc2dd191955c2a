"""
Usage quotas: the monthly semantic-search counter and the index-size cap.

Both checks are plain reads of persisted values. A search that checks the
limit and a concurrent search that increments it are not serialized, so the
effective limit can be overshot by a few searches under load.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from .config import INDEX_LIMIT, MONTHLY_SEARCH_LIMIT
from .storage import StorageBackend
from .storage.duckdb import utcnow

logger = logging.getLogger(__name__)

MONTHLY_SEARCHES_OPTION = "monthly_searches"
COUNTER_RESET_OPTION = "search_counter_reset"


class UsageTracker:
    """Persisted usage counters backed by the option table."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        monthly_search_limit: int = MONTHLY_SEARCH_LIMIT,
        index_limit: int = INDEX_LIMIT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.storage = storage
        self.monthly_search_limit = monthly_search_limit
        self.index_limit = index_limit
        self._clock = clock

    def monthly_searches(self) -> int:
        value = self.storage.get_option(MONTHLY_SEARCHES_OPTION, 0)
        try:
            return max(int(value), 0)
        except (TypeError, ValueError):
            return 0

    def has_reached_search_limit(self) -> bool:
        return self.monthly_searches() >= self.monthly_search_limit

    def has_reached_index_limit(self, indexed_count: int) -> bool:
        return indexed_count >= self.index_limit

    def increment(self) -> int:
        current = self.monthly_searches() + 1
        self.storage.set_option(MONTHLY_SEARCHES_OPTION, current)
        return current

    def reset(self) -> None:
        """Start a new billing period."""
        reset_at = self._clock().replace(microsecond=0).isoformat(sep=" ")
        self.storage.set_option(MONTHLY_SEARCHES_OPTION, 0)
        self.storage.set_option(COUNTER_RESET_OPTION, reset_at)
        logger.info("Monthly search counter reset at %s", reset_at)

    def last_reset(self) -> str:
        return str(self.storage.get_option(COUNTER_RESET_OPTION, "") or "")

    def stats(self, indexed_posts: int) -> dict[str, Any]:
        return {
            "monthly_searches": self.monthly_searches(),
            "monthly_search_limit": self.monthly_search_limit,
            "indexed_posts": indexed_posts,
            "index_limit": self.index_limit,
            "last_reset": self.last_reset(),
        }
