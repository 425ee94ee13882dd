"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
from fakes import FakeProvider
from httpx import ASGITransport, AsyncClient

from tutor_ai.api.app import create_app
from tutor_ai.config import AISettings, SearchSettings, VectorStoreSettings
from tutor_ai.llm.models import Provider
from tutor_ai.llm.service import AIService
from tutor_ai.search.service import SemanticSearchService
from tutor_ai.vectorstore.service import InMemoryVectorStore


@pytest.fixture
def ai_settings() -> AISettings:
    """Orchestrator settings with the standard fallback order."""
    return AISettings(
        default_provider="gemini",
        fallback_enabled=True,
        fallback_order=["gemini", "mercury", "openai"],
    )


@pytest.fixture
def providers() -> dict[Provider, FakeProvider]:
    """One working fake adapter per provider."""
    return {
        Provider.GEMINI: FakeProvider(Provider.GEMINI, text="from gemini"),
        Provider.MERCURY: FakeProvider(Provider.MERCURY, text="from mercury"),
        Provider.OPENAI: FakeProvider(Provider.OPENAI, text="from openai"),
    }


@pytest.fixture
def ai_service(ai_settings: AISettings, providers: dict[Provider, FakeProvider]) -> AIService:
    """AIService wired to fake adapters."""
    return AIService(settings=ai_settings, providers=dict(providers))


@pytest.fixture
def store_settings() -> VectorStoreSettings:
    """Vector store settings with the standard capacity."""
    return VectorStoreSettings(
        max_vectors=1000,
        cleanup_threshold=1100,
        content_max_length=2000,
        embedding_dimensions=384,
        recency_decay_days=30.0,
    )


@pytest.fixture
def store(store_settings: VectorStoreSettings) -> InMemoryVectorStore:
    """Fresh hashing-only in-memory store."""
    return InMemoryVectorStore(store_settings)


@pytest.fixture
def search_service(store: InMemoryVectorStore) -> SemanticSearchService:
    """Search service over the in-memory store, without batch delays."""
    return SemanticSearchService(store, SearchSettings(batch_size=10, batch_delay=0.0))


@pytest.fixture
async def client(
    ai_service: AIService,
    search_service: SemanticSearchService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    app = create_app(ai_service=ai_service, search_service=search_service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
