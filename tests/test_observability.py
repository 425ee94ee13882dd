"""Tests for observability module."""

from httpx import AsyncClient

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


class TestMetricsEndpoint:
    """Tests for /metrics endpoint."""

    async def test_metrics_endpoint_returns_prometheus_format(self, client: AsyncClient) -> None:
        """Metrics endpoint returns Prometheus format."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert b"# HELP" in response.content


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        """get_metrics returns bytes."""
        assert isinstance(get_metrics(), bytes)

    def test_track_provider_request(self) -> None:
        """Provider latency, count and tokens are recorded."""
        track_provider_request("gemini", 1.2, input_tokens=10, output_tokens=20)
        track_provider_request("mercury", 0.3, success=False)

        metrics = get_metrics().decode()
        assert "provider_request_duration_seconds" in metrics
        assert 'provider_requests_total{provider="mercury",status="error"}' in metrics
        assert 'provider_tokens_total{provider="gemini",type="output"}' in metrics

    def test_track_fallback(self) -> None:
        """Fallback transitions are labelled by both providers."""
        track_fallback("gemini", "openai")

        metrics = get_metrics().decode()
        assert 'provider_fallbacks_total{from_provider="gemini",to_provider="openai"}' in metrics

    def test_track_embedding_metrics(self) -> None:
        """Embedding requests and hashing fallbacks are recorded."""
        track_embedding_request("text-embedding-004", 0.1)
        track_embedding_fallback("TAI-3000")

        metrics = get_metrics().decode()
        assert "embedding_request_duration_seconds" in metrics
        assert 'embedding_fallbacks_total{reason="TAI-3000"}' in metrics

    def test_track_vector_store(self) -> None:
        """Store size gauge and evictions are recorded."""
        track_vector_store_size("memory", 7)
        track_eviction("memory", 3)

        metrics = get_metrics().decode()
        assert 'vectorstore_vectors{backend="memory"} 7.0' in metrics
        assert "vectorstore_evictions_total" in metrics

    def test_track_search(self) -> None:
        """Search duration and result counts are recorded."""
        track_search("hybrid", 0.02, 4)
        track_batch_index(indexed=2, failed=1)

        metrics = get_metrics().decode()
        assert 'search_duration_seconds_count{operation="hybrid"}' in metrics
        assert 'batch_index_items_total{status="failed"}' in metrics


class TestMetricsMiddleware:
    """Tests for MetricsMiddleware."""

    async def test_middleware_records_request_metrics(self, client: AsyncClient) -> None:
        """Middleware records HTTP request metrics."""
        await client.get("/health")

        metrics = get_metrics().decode()
        assert "http_request_duration_seconds" in metrics
        assert "http_requests_total" in metrics

    def test_normalizes_health_paths(self) -> None:
        """All health probes share one label."""
        middleware = MetricsMiddleware(app=lambda scope, receive, send: None)
        assert middleware._normalize_endpoint("/health/ready") == "/health"
        assert middleware._normalize_endpoint("/health/live") == "/health"

    def test_normalizes_vector_ids(self) -> None:
        """Path parameters are dropped from API endpoints."""
        middleware = MetricsMiddleware(app=lambda scope, receive, send: None)
        assert middleware._normalize_endpoint("/api/v1/vectors/vec_123_abc") == "/api/v1/vectors"
        assert middleware._normalize_endpoint("/api/v1/search") == "/api/v1/search"
