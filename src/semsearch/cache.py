"""
Injected cache capability used by the embedding client and vector store.

Entries live under a namespace so a whole group can be invalidated at once.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol

DEFAULT_NAMESPACE = "semsearch"
DEFAULT_MAX_ENTRIES = 10_000


class Cache(Protocol):
    """Key/value cache with per-entry TTL."""

    def get(self, key: str, *, namespace: str = DEFAULT_NAMESPACE) -> Any | None:
        """Return the cached value or None on a miss or expiry."""

    def set(
        self,
        key: str,
        value: Any,
        *,
        ttl: int | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        """Store a value. ``ttl`` of None or 0 means no expiry."""

    def delete(self, key: str, *, namespace: str = DEFAULT_NAMESPACE) -> None:
        """Remove a key if present."""

    def flush_namespace(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        """Remove every key in a namespace."""


class InMemoryCache:
    """Process-local cache backed by a dict, safe for concurrent callers.

    Expired entries in a namespace are swept on every write. Each namespace
    holds at most ``max_entries`` keys; the oldest write is evicted first.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._clock = clock
        self.max_entries = max_entries
        self._entries: dict[str, dict[str, tuple[Any, float | None]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, *, namespace: str = DEFAULT_NAMESPACE) -> Any | None:
        with self._lock:
            bucket = self._entries.get(namespace)
            if not bucket or key not in bucket:
                return None
            value, expires_at = bucket[key]
            if expires_at is not None and expires_at <= self._clock():
                del bucket[key]
                return None
            return value

    def set(
        self,
        key: str,
        value: Any,
        *,
        ttl: int | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        now = self._clock()
        expires_at = now + ttl if ttl else None
        with self._lock:
            bucket = self._entries.setdefault(namespace, {})
            expired = [
                name
                for name, (_, entry_expiry) in bucket.items()
                if entry_expiry is not None and entry_expiry <= now
            ]
            for name in expired:
                del bucket[name]
            # Re-inserting moves the key to the newest position.
            bucket.pop(key, None)
            while len(bucket) >= self.max_entries:
                del bucket[next(iter(bucket))]
            bucket[key] = (value, expires_at)

    def delete(self, key: str, *, namespace: str = DEFAULT_NAMESPACE) -> None:
        with self._lock:
            bucket = self._entries.get(namespace)
            if bucket is not None:
                bucket.pop(key, None)

    def flush_namespace(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        with self._lock:
            self._entries.pop(namespace, None)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._entries.values())
