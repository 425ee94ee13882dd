"""Embedding data models."""

from enum import Enum

from pydantic import BaseModel, Field


class EmbeddingResult(BaseModel):
    """Result of an embedding operation.

    Attributes:
        text: The original text that was embedded.
        embedding: The embedding vector.
        model: The model used to generate the embedding.
        dimensions: Number of dimensions in the embedding.
    """

    text: str = Field(description="Original text")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")
    dimensions: int = Field(description="Vector dimensions")

    def model_post_init(self, __context: object) -> None:
        """Validate dimensions match embedding length."""
        if self.dimensions != len(self.embedding):
            raise ValueError(
                f"dimensions ({self.dimensions}) does not match "
                f"embedding length ({len(self.embedding)})"
            )


class EmbeddingPayloadKind(str, Enum):
    """Recognised shapes of an embedding API response."""

    VECTOR = "vector"  # [0.1, 0.2, ...]
    OBJECT_LIST = "object_list"  # [{"embedding": [...]}, ...]
    OBJECT = "object"  # {"embedding": [...]}


class EmbeddingPayload(BaseModel):
    """Embedding response normalised to a single vector."""

    kind: EmbeddingPayloadKind = Field(description="Shape the vector was read from")
    vector: list[float] = Field(description="Embedding vector")
