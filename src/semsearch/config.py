"""
Configuration for the search core.

Process-level values (database path, secrets) come from the environment;
search settings are a validated pydantic model persisted through
:class:`SettingsRepository`.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import SettingsValidationError
from .storage import StorageBackend

DEFAULT_DB_PATH = "~/.semsearch/index.duckdb"
ENV_DB_PATH = "SEMSEARCH_DB_PATH"
ENV_SECRET_KEY = "SEMSEARCH_SECRET_KEY"
ENV_SECRET_SALT = "SEMSEARCH_SECRET_SALT"

SETTINGS_OPTION = "settings"

MONTHLY_SEARCH_LIMIT = 1000
INDEX_LIMIT = 500

_FIXED_SETTINGS = frozenset({"monthly_search_limit", "index_limit"})
_KEY_PATTERN = re.compile(r"[^a-z0-9_\-]")


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from an explicit override, env var, or default.

    Precedence:
    1) explicit override_path
    2) SEMSEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_secret(override: str | None = None) -> tuple[str, str]:
    """Return the (secret, salt) pair used to derive the credential key."""
    secret = override or os.getenv(ENV_SECRET_KEY)
    if not secret:
        raise ValueError(
            f"{ENV_SECRET_KEY} not found. "
            "Provide a secret or set the environment variable."
        )
    salt = os.getenv(ENV_SECRET_SALT) or "semsearch-credential-salt"
    return secret, salt


def sanitize_key(value: str) -> str:
    """Lowercase a type tag and drop anything but ``[a-z0-9_-]``."""
    return _KEY_PATTERN.sub("", str(value).lower())


class SearchSettings(BaseModel):
    """Persisted configuration consumed by every core component."""

    indexed_types: list[str] = Field(default_factory=lambda: ["post", "page"])
    per_page: int = Field(default=10, ge=1, le=100)
    similarity_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    fallback_enabled: bool = True
    cache_ttl: int = Field(default=3600, ge=0, le=86400)
    max_results: int = Field(default=100, ge=10, le=500)
    embedding_model: str = "text-embedding-3-small"
    monthly_search_limit: int = MONTHLY_SEARCH_LIMIT
    index_limit: int = INDEX_LIMIT

    @field_validator("indexed_types", mode="before")
    @classmethod
    def _sanitize_types(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple, set)):
            return []
        cleaned = [sanitize_key(item) for item in value]
        return [item for item in dict.fromkeys(cleaned) if item]


class SettingsRepository:
    """Load and save :class:`SearchSettings` through the option table."""

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    def load(self) -> SearchSettings:
        stored = self.storage.get_option(SETTINGS_OPTION, {}) or {}
        # Fixed limits always come from code, never from stored values.
        stored = {k: v for k, v in stored.items() if k not in _FIXED_SETTINGS}
        try:
            return SearchSettings.model_validate(stored)
        except ValidationError as exc:
            raise SettingsValidationError(
                f"Stored settings are invalid: {exc}",
                fields=_error_fields(exc),
            ) from exc

    def save(self, settings: SearchSettings) -> None:
        payload = settings.model_dump(exclude=set(_FIXED_SETTINGS))
        self.storage.set_option(SETTINGS_OPTION, payload)

    def update(self, changes: dict[str, Any]) -> tuple[SearchSettings, list[str]]:
        """Validate and persist a partial update. Return new settings and changed keys."""
        editable = set(SearchSettings.model_fields) - _FIXED_SETTINGS
        unknown = sorted(key for key in changes if key not in editable)
        if unknown:
            raise SettingsValidationError(
                f"Unknown or read-only settings: {', '.join(unknown)}",
                code="unknown_setting",
                fields=unknown,
            )

        current = self.load()
        merged = current.model_dump()
        merged.update(changes)
        try:
            updated = SearchSettings.model_validate(merged)
        except ValidationError as exc:
            fields = _error_fields(exc)
            raise SettingsValidationError(
                f"Invalid value for: {', '.join(fields)}",
                fields=fields,
            ) from exc

        self.save(updated)
        return updated, sorted(changes)


def _error_fields(exc: ValidationError) -> list[str]:
    fields: list[str] = []
    for error in exc.errors():
        location = error.get("loc") or ()
        if location:
            name = str(location[0])
            if name not in fields:
                fields.append(name)
    return fields
