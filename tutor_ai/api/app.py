"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics,
health checks and the generation/search services.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from tutor_ai import __version__
from tutor_ai.api.routes import router
from tutor_ai.config import Environment, get_settings
from tutor_ai.embeddings.service import build_embedding_service
from tutor_ai.exceptions import ErrorCode, TutorAIError
from tutor_ai.llm.service import AIService
from tutor_ai.logging_config import get_logger, setup_logging
from tutor_ai.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from tutor_ai.search.service import SemanticSearchService
from tutor_ai.vectorstore.service import build_vector_store

logger = get_logger(__name__)

# Error codes not listed map to 500
STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INDEXING_ERROR: 400,
    ErrorCode.UNKNOWN_PROVIDER: 400,
    ErrorCode.VECTOR_NOT_FOUND: 404,
    ErrorCode.EMBEDDING_DIMENSION_MISMATCH: 409,
    ErrorCode.PROVIDER_RATE_LIMIT: 429,
    ErrorCode.UPSTREAM_HTTP_ERROR: 502,
    ErrorCode.RESPONSE_SHAPE_ERROR: 502,
    ErrorCode.ALL_PROVIDERS_FAILED: 502,
    ErrorCode.STRUCTURED_OUTPUT_ERROR: 502,
    ErrorCode.CREDENTIAL_MISSING: 503,
    ErrorCode.CONFIGURATION_ERROR: 503,
    ErrorCode.PROVIDER_TIMEOUT: 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds any service not injected into ``create_app`` and closes the
    ones it built on shutdown.
    """
    # Startup
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        json_output=settings.environment != Environment.DEVELOPMENT,
    )

    owned: list[Any] = []
    if getattr(app.state, "ai_service", None) is None:
        app.state.ai_service = AIService(settings.ai)
        owned.append(app.state.ai_service)
    if getattr(app.state, "search_service", None) is None:
        store = build_vector_store(settings, build_embedding_service(settings))
        app.state.search_service = SemanticSearchService(store, settings.search)
        owned.append(app.state.search_service)

    logger.info(
        "Starting Tutor AI",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
            "providers": [p.value for p in app.state.ai_service.available_providers()],
            "vector_store": app.state.search_service.store.backend,
        },
    )

    yield

    # Shutdown
    for service in owned:
        await service.close()
    logger.info("Shutting down Tutor AI")


def create_app(
    ai_service: AIService | None = None,
    search_service: SemanticSearchService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        ai_service: Generation service. Built at startup if omitted.
        search_service: Search service. Built at startup if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Tutor AI",
        description="Multi-provider generation with fallback and semantic search",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.ai_service = ai_service
    app.state.search_service = search_service

    app.add_middleware(MetricsMiddleware)

    # Register exception handlers
    app.add_exception_handler(TutorAIError, tutor_ai_exception_handler)

    # Register routes
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def tutor_ai_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle TutorAIError exceptions.

    Converts exceptions to structured JSON responses.
    """
    if not isinstance(exc, TutorAIError):
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": str(exc),
                    "details": {},
                }
            },
        )

    status_code = get_status_code(exc.code)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=exc.to_dict(),
    )


def get_status_code(code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    return STATUS_CODES.get(code, 500)


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> dict[str, Any]:
    """Readiness probe.

    Reports whether both services are set up, which providers have
    credentials and which vector store backend is in use.
    """
    ai_service: AIService | None = getattr(request.app.state, "ai_service", None)
    search_service: SemanticSearchService | None = getattr(
        request.app.state, "search_service", None
    )

    checks: dict[str, str] = {
        "config": "ok",
        "ai_service": "ok" if ai_service is not None else "missing",
        "search_service": "ok" if search_service is not None else "missing",
    }
    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "providers": (
            [p.value for p in ai_service.available_providers()] if ai_service else []
        ),
        "vector_store": search_service.store.backend if search_service else None,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
