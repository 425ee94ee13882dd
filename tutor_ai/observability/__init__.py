"""Observability module for metrics and monitoring."""

from tutor_ai.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_batch_index,
    track_embedding_fallback,
    track_embedding_request,
    track_eviction,
    track_fallback,
    track_provider_request,
    track_search,
    track_vector_store_size,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_batch_index",
    "track_embedding_fallback",
    "track_embedding_request",
    "track_eviction",
    "track_fallback",
    "track_provider_request",
    "track_search",
    "track_vector_store_size",
]
