"""Semantic search request and result models."""

from typing import Literal

from pydantic import BaseModel, Field

from tutor_ai.vectorstore.models import ContentType, QualityLevel, VectorMetadata


class IndexContentRequest(BaseModel):
    """Content to index.

    Quality is assessed from length and tags are extracted from the text
    when they are not supplied.
    """

    content: str = Field(min_length=1, description="Text to index")
    title: str | None = Field(default=None, description="Display title")
    url: str | None = Field(default=None, description="Source URL")
    domain: str | None = Field(default=None, description="Source domain")
    content_type: ContentType = Field(default=ContentType.DOCUMENT, description="Content type")
    quality: QualityLevel | None = Field(default=None, description="Quality level")
    tags: list[str] | None = Field(default=None, description="Tags")


class WebResult(BaseModel):
    """A web search hit to index."""

    title: str
    content: str
    url: str
    domain: str
    quality: QualityLevel | None = None


class BatchIndexResult(BaseModel):
    """Outcome of a batch indexing run.

    Attributes:
        indexed: Items stored.
        failed: Items that raised.
        total_time_ms: Wall time of the run.
        errors: One message per failed item.
        ids: Ids of stored items, in input order.
    """

    indexed: int = 0
    failed: int = 0
    total_time_ms: float = 0.0
    errors: list[str] = Field(default_factory=list)
    ids: list[str] = Field(default_factory=list)


class HybridSearchHit(BaseModel):
    """A merged hybrid search result."""

    id: str
    content: str
    score: float
    source: Literal["semantic", "keyword", "both"]
    metadata: VectorMetadata


class HybridSearchResult(BaseModel):
    """Hybrid search hits with timing."""

    results: list[HybridSearchHit] = Field(default_factory=list)
    search_time_ms: float = 0.0
