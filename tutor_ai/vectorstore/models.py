"""Vector store data models."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """Kind of indexed content."""

    WEB = "web"
    LESSON = "lesson"
    EXERCISE = "exercise"
    DOCUMENT = "document"


class QualityLevel(str, Enum):
    """Assessed content quality."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EmbeddingSource(str, Enum):
    """Where a stored embedding came from."""

    PROVIDER = "provider"
    HASHING = "hashing"


def utc_now() -> datetime:
    return datetime.now(UTC)


class VectorMetadata(BaseModel):
    """Metadata stored alongside a vector.

    Attributes:
        title: Display title.
        url: Source URL, used as the de-duplication key in hybrid search.
        domain: Source domain.
        created_at: Creation time; drives recency scoring and eviction.
        content_type: Kind of content.
        quality: Assessed quality level.
        tags: Free-form tags.
    """

    title: str | None = Field(default=None, description="Display title")
    url: str | None = Field(default=None, description="Source URL")
    domain: str | None = Field(default=None, description="Source domain")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    content_type: ContentType = Field(default=ContentType.DOCUMENT, description="Content type")
    quality: QualityLevel = Field(default=QualityLevel.MEDIUM, description="Quality level")
    tags: list[str] = Field(default_factory=list, description="Tags")


class EmbeddingVector(BaseModel):
    """A stored piece of content with its embedding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique vector identifier")
    content: str = Field(description="Stored (truncated) content")
    embedding: list[float] = Field(description="Embedding vector")
    metadata: VectorMetadata = Field(description="Vector metadata")
    source: EmbeddingSource = Field(
        default=EmbeddingSource.PROVIDER,
        description="Whether the embedding came from a provider or the hashing fallback",
    )


class SearchOptions(BaseModel):
    """Options for ranked search.

    Empty filter lists mean "no restriction".
    """

    limit: int = Field(default=5, ge=1, description="Maximum results")
    min_similarity: float = Field(default=0.3, description="Minimum cosine similarity")
    content_types: list[ContentType] = Field(
        default_factory=list, description="Allowed content types"
    )
    quality_filter: list[QualityLevel] = Field(
        default_factory=list, description="Allowed quality levels"
    )
    tags: list[str] = Field(default_factory=list, description="Required tag substrings (any)")


class SimilarOptions(BaseModel):
    """Options for raw-similarity lookup."""

    limit: int = Field(default=3, ge=1, description="Maximum results")
    min_similarity: float = Field(default=0.4, description="Minimum cosine similarity")
    content_types: list[ContentType] = Field(
        default_factory=list, description="Allowed content types"
    )
    exclude_id: str | None = Field(default=None, description="Vector id to leave out")


class SearchResult(BaseModel):
    """A search hit.

    Attributes:
        vector: The matched vector.
        similarity: Cosine similarity to the query.
        relevance_score: Composite ranking score. Equal to ``similarity``
            for similarity lookups.
    """

    vector: EmbeddingVector
    similarity: float
    relevance_score: float


def _zero_counts(enum_cls: type[Enum]) -> dict[str, int]:
    return {member.value: 0 for member in enum_cls}


class VectorStoreStats(BaseModel):
    """Read-only aggregate view of a store."""

    total_vectors: int = 0
    content_types: dict[str, int] = Field(default_factory=lambda: _zero_counts(ContentType))
    quality_distribution: dict[str, int] = Field(
        default_factory=lambda: _zero_counts(QualityLevel)
    )
    last_updated: datetime = Field(default_factory=utc_now)
    average_content_length: int = 0
    dimensions: int | None = None
    fallback_embeddings: int = 0
