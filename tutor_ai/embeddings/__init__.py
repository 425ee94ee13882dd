"""Embedding service module."""

from tutor_ai.embeddings.models import EmbeddingPayload, EmbeddingPayloadKind, EmbeddingResult
from tutor_ai.embeddings.payload import clean_text, parse_embedding_payload
from tutor_ai.embeddings.service import (
    EmbeddingService,
    GeminiEmbeddingService,
    HTTPEmbeddingService,
    build_embedding_service,
)

__all__ = [
    "EmbeddingPayload",
    "EmbeddingPayloadKind",
    "EmbeddingResult",
    "EmbeddingService",
    "GeminiEmbeddingService",
    "HTTPEmbeddingService",
    "build_embedding_service",
    "clean_text",
    "parse_embedding_payload",
]
