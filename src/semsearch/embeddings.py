"""
Embedding client for vector-based semantic search.

Calls an OpenAI-compatible ``/v1/embeddings`` endpoint over httpx, caches
identical requests, and reports every failure as a tagged ``Failure`` so
callers can fall back without catching anything.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from bs4 import BeautifulSoup

from .cache import Cache
from .content import Document
from .credentials import CredentialStore, is_valid_credential_format
from .results import ErrorCode, Failure, Ok

logger = logging.getLogger(__name__)

_DEFAULT_ENDPOINT = "https://api.openai.com/v1/embeddings"
_DEFAULT_MODEL = "text-embedding-3-small"
_MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}
_DEFAULT_DIM = 1536

MAX_TEXT_LENGTH = 8000
REQUEST_TIMEOUT = 30.0
VALIDATION_TIMEOUT = 10.0
DEFAULT_CACHE_TTL = 3600
CACHE_NAMESPACE = "semsearch_embeddings"

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PARTIAL_WORD = re.compile(r"\s+\S*$")


def strip_markup(text: str) -> str:
    """Drop tags, scripts and styles, keeping visible text."""
    if "<" not in text:
        return text
    soup = BeautifulSoup(text, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    return soup.get_text(" ")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def prepare_text(text: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Normalize text for embedding and truncate it at a word boundary."""
    text = collapse_whitespace(strip_markup(text))
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    if not text[max_length].isspace():
        # Cut landed inside a word; back up to the previous boundary if any.
        truncated = _TRAILING_PARTIAL_WORD.sub("", truncated)
    return truncated.rstrip()


def build_document_text(document: Document) -> str:
    """Title first, then excerpt, then the stripped body."""
    parts = [
        document.title,
        document.excerpt,
        collapse_whitespace(strip_markup(document.body)),
    ]
    return " ".join(part for part in parts if part)


def content_fingerprint(document: Document) -> str:
    """MD5 of the text an index run would embed for *document*."""
    return hashlib.md5(build_document_text(document).encode("utf-8")).hexdigest()


class ValidationOutcome(str, Enum):
    VALID = "valid"
    INVALID_FORMAT = "invalid_format"
    INVALID_CREDENTIAL = "invalid_credential"
    CONNECTION_ERROR = "connection_error"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class CredentialValidation:
    """Outcome of a live credential check."""

    outcome: ValidationOutcome
    message: str

    @property
    def valid(self) -> bool:
        return self.outcome is ValidationOutcome.VALID

    @property
    def code(self) -> str:
        return self.outcome.value


class EmbeddingProvider:
    """Generate text embeddings via an OpenAI-compatible HTTP API."""

    def __init__(
        self,
        *,
        credentials: CredentialStore | None = None,
        api_key: str | None = None,
        cache: Cache | None = None,
        model: str | None = None,
        dim: int | None = None,
        endpoint: str | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL,
        timeout: float = REQUEST_TIMEOUT,
        validation_timeout: float = VALIDATION_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.model = model or os.getenv("SEMSEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        env_dim = os.getenv("SEMSEARCH_EMBEDDING_DIM")
        self.dim = dim or (
            int(env_dim) if env_dim else _MODEL_DIMENSIONS.get(self.model, _DEFAULT_DIM)
        )
        self.endpoint = endpoint or os.getenv(
            "SEMSEARCH_EMBEDDING_ENDPOINT", _DEFAULT_ENDPOINT
        )
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self.validation_timeout = validation_timeout
        self._credentials = credentials
        self._api_key = api_key
        self._cache = cache
        self._client = client if client is not None else httpx.Client()

    def close(self) -> None:
        self._client.close()

    def use_model(self, model: str) -> None:
        """Switch models; known models also switch the declared dimensions."""
        self.model = model
        self.dim = _MODEL_DIMENSIONS.get(model, self.dim)

    def model_name(self) -> str:
        return self.model

    def dimensions(self) -> int:
        return self.dim

    def get_api_key(self) -> str:
        if self._credentials is not None:
            return self._credentials.get()
        return self._api_key or ""

    def is_configured(self) -> bool:
        return bool(self.get_api_key())

    def embed(self, text: str, model: str | None = None) -> Ok[list[float]] | Failure:
        """Embed *text*, returning the vector or a tagged failure."""
        model = model or self.model
        api_key = self.get_api_key()
        if not api_key:
            return Failure(ErrorCode.NOT_CONFIGURED, "Embedding API key not configured.")

        prepared = prepare_text(text)
        if not prepared:
            return Failure(ErrorCode.EMPTY_INPUT, "Cannot generate embedding for empty text.")

        cache_key = "embed_" + hashlib.md5((prepared + model).encode("utf-8")).hexdigest()
        cached = self._cache_get(cache_key)
        if cached is not None:
            return Ok(list(cached))

        try:
            response = self._post(api_key, prepared, model, timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.warning("Embedding request failed: %s", exc)
            return Failure(ErrorCode.TRANSPORT_FAILURE, f"Embedding request failed: {exc}")

        if response.status_code != 200:
            failure = _failure_from_response(response)
            logger.warning(
                "Embedding API error (%s): %s", response.status_code, failure.message
            )
            return failure

        vector = _extract_vector(response)
        if vector is None:
            return Failure(
                ErrorCode.INVALID_RESPONSE,
                "Invalid response structure from embedding API.",
                status=response.status_code,
            )

        if self._cache is not None:
            self._cache.set(cache_key, list(vector), ttl=self.cache_ttl, namespace=CACHE_NAMESPACE)
        return Ok(vector)

    def embed_document(self, document: Document) -> Ok[list[float]] | Failure:
        return self.embed(build_document_text(document))

    def validate_credential(self, api_key: str) -> CredentialValidation:
        """Check key format, then confirm it with a minimal live request."""
        if not is_valid_credential_format(api_key):
            return CredentialValidation(
                ValidationOutcome.INVALID_FORMAT,
                'Invalid API key format. Keys should start with "sk-".',
            )

        try:
            response = self._post(
                api_key, "test", _DEFAULT_MODEL, timeout=self.validation_timeout
            )
        except httpx.HTTPError as exc:
            logger.warning("Credential validation could not reach provider: %s", exc)
            return CredentialValidation(
                ValidationOutcome.CONNECTION_ERROR,
                "Unable to connect to the embedding API.",
            )

        if response.status_code == 401:
            return CredentialValidation(
                ValidationOutcome.INVALID_CREDENTIAL,
                "Invalid API key. Please check your API key.",
            )
        if response.status_code != 200:
            failure = _failure_from_response(response)
            return CredentialValidation(ValidationOutcome.PROVIDER_ERROR, failure.message)
        return CredentialValidation(ValidationOutcome.VALID, "API key is valid.")

    def _post(self, api_key: str, text: str, model: str, *, timeout: float) -> httpx.Response:
        return self._client.post(
            self.endpoint,
            json={"input": text, "model": model},
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    def _cache_get(self, key: str) -> list[float] | None:
        if self._cache is None:
            return None
        cached = self._cache.get(key, namespace=CACHE_NAMESPACE)
        if isinstance(cached, list) and cached:
            return cached
        return None


def _provider_message(response: httpx.Response) -> str | None:
    try:
        data: Any = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return None


def _failure_from_response(response: httpx.Response) -> Failure:
    status = response.status_code
    message = _provider_message(response)
    if status == 401:
        return Failure(ErrorCode.UNAUTHORIZED, message or "Invalid API key.", status)
    if status == 429:
        return Failure(
            ErrorCode.RATE_LIMITED,
            message or "Rate limit exceeded. Please try again later.",
            status,
        )
    if status >= 500:
        return Failure(
            ErrorCode.PROVIDER_ERROR,
            message or "Embedding service error. Please try again later.",
            status,
        )
    return Failure(ErrorCode.UNKNOWN_PROVIDER_ERROR, message or "Unknown API error.", status)


def _extract_vector(response: httpx.Response) -> list[float] | None:
    try:
        data = response.json()
        embedding = data["data"][0]["embedding"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None
    if not isinstance(embedding, list) or not embedding:
        return None
    try:
        return [float(value) for value in embedding]
    except (TypeError, ValueError):
        return None
