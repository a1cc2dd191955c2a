"""
Tagged result values returned by the embedding client and vector store.

Failures are data, not exceptions; callers branch on ``isinstance``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Failure taxonomy shared by all core components."""

    NOT_CONFIGURED = "not_configured"
    EMPTY_INPUT = "empty_input"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    UNKNOWN_PROVIDER_ERROR = "unknown_provider_error"
    TRANSPORT_FAILURE = "transport_failure"
    INVALID_RESPONSE = "invalid_response"
    DIMENSION_MISMATCH = "dimension_mismatch"
    EMPTY_VECTOR = "empty_vector"
    STORAGE_FAILURE = "storage_failure"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a payload."""

    value: T


@dataclass(frozen=True)
class Failure:
    """Failed outcome carrying a taxonomy tag and a human-readable message."""

    code: ErrorCode
    message: str
    status: int | None = None

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


Result = Union[Ok[T], Failure]


def is_ok(result: "Ok[T] | Failure") -> bool:
    return isinstance(result, Ok)
