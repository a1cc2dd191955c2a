"""
Exceptions for systemic and administrative failures.

Per-request failures (embedding, storage writes) travel as ``Failure``
values instead; see :mod:`semsearch.results`.
"""

from __future__ import annotations


class SemsearchError(Exception):
    """Base error carrying a machine-readable code and a readable message."""

    code = "semsearch_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class StorageError(SemsearchError):
    """The storage backend could not be reached or rejected a statement."""

    code = "storage_failure"


class SettingsValidationError(SemsearchError):
    """A settings update or credential was rejected."""

    code = "invalid_settings"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        fields: list[str] | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.fields = fields or []


class IndexLimitReachedError(SemsearchError):
    """Raised when an indexing run is requested with the quota already used."""

    code = "index_limit_reached"
