"""Vector store module."""

from tutor_ai.vectorstore.embedder import StoreEmbedder
from tutor_ai.vectorstore.models import (
    ContentType,
    EmbeddingSource,
    EmbeddingVector,
    QualityLevel,
    SearchOptions,
    SearchResult,
    SimilarOptions,
    VectorMetadata,
    VectorStoreStats,
)
from tutor_ai.vectorstore.service import (
    InMemoryVectorStore,
    QdrantVectorStore,
    VectorStore,
    build_vector_store,
)

__all__ = [
    "ContentType",
    "EmbeddingSource",
    "EmbeddingVector",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "QualityLevel",
    "SearchOptions",
    "SearchResult",
    "SimilarOptions",
    "StoreEmbedder",
    "VectorMetadata",
    "VectorStore",
    "VectorStoreStats",
    "build_vector_store",
]
