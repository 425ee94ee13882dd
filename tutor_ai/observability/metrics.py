"""Prometheus metrics for the tutor AI services.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Provider latency, token usage and fallbacks
- Embedding requests and hashing fallbacks
- Vector store size and evictions
- Search latency and batch indexing outcomes
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tutor_ai.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Provider Metrics
PROVIDER_REQUEST_DURATION = Histogram(
    "provider_request_duration_seconds",
    "Provider generation request duration in seconds",
    ["provider", "status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

PROVIDER_REQUEST_TOTAL = Counter(
    "provider_requests_total",
    "Total provider generation requests",
    ["provider", "status"],
)

PROVIDER_TOKENS_TOTAL = Counter(
    "provider_tokens_total",
    "Total tokens reported by providers",
    ["provider", "type"],  # "type" label values: input, output
)

PROVIDER_FALLBACK_TOTAL = Counter(
    "provider_fallbacks_total",
    "Generation requests served by a fallback provider",
    ["from_provider", "to_provider"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_FALLBACK_TOTAL = Counter(
    "embedding_fallbacks_total",
    "Embeddings computed with the hashing fallback",
    ["reason"],
)

# Vector Store Metrics
VECTORSTORE_SIZE = Gauge(
    "vectorstore_vectors",
    "Vectors currently held by the store",
    ["backend"],
)

VECTORSTORE_EVICTIONS_TOTAL = Counter(
    "vectorstore_evictions_total",
    "Vectors discarded by capacity cleanup",
    ["backend"],
)

# Search Metrics
SEARCH_DURATION = Histogram(
    "search_duration_seconds",
    "Semantic search operation duration",
    ["operation"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

SEARCH_RESULTS_RETURNED = Histogram(
    "search_results_returned",
    "Number of results returned per search",
    ["operation"],
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)

BATCH_INDEX_ITEMS_TOTAL = Counter(
    "batch_index_items_total",
    "Items processed by batch indexing",
    ["status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        # /api/v1/vectors/<id> collapses to /api/v1/vectors
        if path.startswith("/api/v1/"):
            parts = path.split("/")
            if len(parts) >= 4:
                return f"/api/v1/{parts[3]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_provider_request(
    provider: str,
    duration: float,
    input_tokens: int = 0,
    output_tokens: int = 0,
    success: bool = True,
) -> None:
    """Track a provider generation request.

    Args:
        provider: Provider name.
        duration: Request duration in seconds.
        input_tokens: Prompt tokens reported by the provider.
        output_tokens: Completion tokens reported by the provider.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    PROVIDER_REQUEST_DURATION.labels(provider=provider, status=status).observe(duration)
    PROVIDER_REQUEST_TOTAL.labels(provider=provider, status=status).inc()

    if success:
        PROVIDER_TOKENS_TOTAL.labels(provider=provider, type="input").inc(input_tokens)
        PROVIDER_TOKENS_TOTAL.labels(provider=provider, type="output").inc(output_tokens)


def track_fallback(from_provider: str, to_provider: str) -> None:
    """Record a request served by a fallback provider."""
    PROVIDER_FALLBACK_TOTAL.labels(
        from_provider=from_provider,
        to_provider=to_provider,
    ).inc()


def track_embedding_request(
    model: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()


def track_embedding_fallback(reason: str) -> None:
    """Record an embedding computed by the hashing fallback."""
    EMBEDDING_FALLBACK_TOTAL.labels(reason=reason).inc()


def track_vector_store_size(backend: str, size: int) -> None:
    """Publish the current store size."""
    VECTORSTORE_SIZE.labels(backend=backend).set(size)


def track_eviction(backend: str, evicted: int) -> None:
    """Record vectors discarded by cleanup."""
    if evicted > 0:
        VECTORSTORE_EVICTIONS_TOTAL.labels(backend=backend).inc(evicted)


def track_search(operation: str, duration: float, results: int) -> None:
    """Track a search operation.

    Args:
        operation: Operation name (search, find_similar, hybrid, ...).
        duration: Duration in seconds.
        results: Number of results returned.
    """
    SEARCH_DURATION.labels(operation=operation).observe(duration)
    SEARCH_RESULTS_RETURNED.labels(operation=operation).observe(results)


def track_batch_index(indexed: int, failed: int) -> None:
    """Record batch indexing outcomes."""
    if indexed:
        BATCH_INDEX_ITEMS_TOTAL.labels(status="indexed").inc(indexed)
    if failed:
        BATCH_INDEX_ITEMS_TOTAL.labels(status="failed").inc(failed)
