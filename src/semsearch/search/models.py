from pydantic import BaseModel, Field
from enum import Enum
from typing import Any, Literal, TypeAlias

SearchType: TypeAlias = Literal["semantic", "keyword"]


class FallbackReason(str, Enum):
    """Why a search was answered by keyword search instead of embeddings"""

    LIMIT_REACHED = "LimitReached"
    EMBEDDING_ERROR = "EmbeddingError"
    NO_RESULTS = "NoResults"
    STORAGE_ERROR = "StorageError"


class SearchOptions(BaseModel):
    """Per-request overrides; unset fields use the stored settings"""

    page: int = Field(default=1, ge=1, description="1-based page number")
    per_page: int | None = Field(default=None, ge=1, le=100, description="Results per page")
    threshold: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Minimum similarity score"
    )
    types: list[str] | None = Field(default=None, description="Document types to search")
    user_id: int | None = Field(default=None, description="Searching user, for analytics")


class AuthorInfo(BaseModel):
    id: int = Field(description="Author id")
    name: str = Field(description="Author display name")


class SearchResultItem(BaseModel):
    """A single formatted search hit"""

    id: int
    title: str
    excerpt: str
    url: str
    type: str
    date: str | None = Field(default=None, description="Publish date, ISO 8601")
    author: AuthorInfo
    similarity: float | None = Field(
        default=None, description="Cosine similarity, absent for keyword results"
    )
    thumbnail: str | None = None


class SearchResponse(BaseModel):
    """Result envelope shared by the semantic and keyword paths"""

    results: list[SearchResultItem] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 10
    query: str = ""
    fallback_used: bool = False
    fallback_reason: FallbackReason | None = None
    execution_time: float = 0.0
    search_type: SearchType = "semantic"

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
