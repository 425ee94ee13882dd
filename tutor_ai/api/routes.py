"""API routes for generation and semantic search."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from tutor_ai.exceptions import ConfigurationError, ErrorCode, VectorStoreError
from tutor_ai.llm.models import GenerationRequest, GenerationResult
from tutor_ai.llm.service import AIService
from tutor_ai.logging_config import get_logger
from tutor_ai.search.models import (
    BatchIndexResult,
    HybridSearchResult,
    IndexContentRequest,
)
from tutor_ai.search.service import DEFAULT_RECOMMENDATION_TYPES, SemanticSearchService
from tutor_ai.vectorstore.models import (
    ContentType,
    SearchOptions,
    SearchResult,
    VectorStoreStats,
)

logger = get_logger(__name__)


# Create router
router = APIRouter(prefix="/api/v1", tags=["Tutor AI"])


def get_ai_service(request: Request) -> AIService:
    """Generation service from application state."""
    service = getattr(request.app.state, "ai_service", None)
    if service is None:
        raise ConfigurationError("Generation service is not configured")
    return service


def get_search_service(request: Request) -> SemanticSearchService:
    """Search service from application state."""
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        raise ConfigurationError("Search service is not configured")
    return service


AIServiceDep = Annotated[AIService, Depends(get_ai_service)]
SearchServiceDep = Annotated[SemanticSearchService, Depends(get_search_service)]


class StructuredResponse(BaseModel):
    """Decoded structured output."""

    data: Any = Field(description="Decoded JSON value")


class SearchRequest(BaseModel):
    """Request body for semantic search."""

    query: str = Field(min_length=1, description="Search query")
    options: SearchOptions = Field(default_factory=SearchOptions)


class SimilarRequest(BaseModel):
    """Request body for similar-content lookup."""

    content: str = Field(min_length=1, description="Reference content")
    exclude_url: str | None = Field(default=None, description="URL of an item to leave out")
    limit: int = Field(default=3, ge=1, le=50)
    min_similarity: float = Field(default=0.4, ge=-1.0, le=1.0)
    content_types: list[ContentType] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Ranked search results."""

    results: list[SearchResult]


class IndexResponse(BaseModel):
    """Id of newly indexed content."""

    id: str


class BatchIndexRequest(BaseModel):
    """Request body for batch indexing."""

    items: list[IndexContentRequest] = Field(min_length=1)
    batch_size: int | None = Field(default=None, ge=1, le=100)


class HybridSearchRequest(BaseModel):
    """Request body for hybrid search."""

    query: str = Field(min_length=1)
    semantic_weight: float = Field(default=0.7, ge=0.0)
    keyword_weight: float = Field(default=0.3, ge=0.0)
    max_results: int = Field(default=10, ge=1, le=100)


class RecommendationRequest(BaseModel):
    """Request body for recommendations."""

    content: str = Field(min_length=1, description="What the user is working on")
    content_types: list[ContentType] = Field(
        default_factory=lambda: list(DEFAULT_RECOMMENDATION_TYPES)
    )
    limit: int = Field(default=5, ge=1, le=50)
    diversity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)


@router.post("/generate", response_model=GenerationResult)
async def generate_endpoint(request: GenerationRequest, ai: AIServiceDep) -> GenerationResult:
    """Generate text with provider fallback."""
    return await ai.generate(request)


@router.post("/generate/structured", response_model=StructuredResponse)
async def generate_structured_endpoint(
    request: GenerationRequest, ai: AIServiceDep
) -> StructuredResponse:
    """Generate and decode a JSON response."""
    return StructuredResponse(data=await ai.generate_structured(request))


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(request: SearchRequest, search: SearchServiceDep) -> SearchResponse:
    """Rank indexed content by relevance."""
    return SearchResponse(results=await search.search(request.query, request.options))


@router.post("/similar", response_model=SearchResponse)
async def similar_endpoint(request: SimilarRequest, search: SearchServiceDep) -> SearchResponse:
    """Find content similar to the given text."""
    results = await search.find_similar(
        request.content,
        exclude_url=request.exclude_url,
        limit=request.limit,
        min_similarity=request.min_similarity,
        content_types=request.content_types,
    )
    return SearchResponse(results=results)


@router.post("/index", response_model=IndexResponse, status_code=status.HTTP_201_CREATED)
async def index_endpoint(request: IndexContentRequest, search: SearchServiceDep) -> IndexResponse:
    """Index one piece of content."""
    return IndexResponse(id=await search.index_content(request))


@router.post("/index/batch", response_model=BatchIndexResult)
async def batch_index_endpoint(
    request: BatchIndexRequest, search: SearchServiceDep
) -> BatchIndexResult:
    """Index several items; per-item failures are reported, not raised."""
    return await search.batch_index(request.items, request.batch_size)


@router.post("/hybrid-search", response_model=HybridSearchResult)
async def hybrid_search_endpoint(
    request: HybridSearchRequest, search: SearchServiceDep
) -> HybridSearchResult:
    """Blend strict and loose search passes."""
    return await search.hybrid_search(
        request.query,
        semantic_weight=request.semantic_weight,
        keyword_weight=request.keyword_weight,
        max_results=request.max_results,
    )


@router.post("/recommendations", response_model=SearchResponse)
async def recommendations_endpoint(
    request: RecommendationRequest, search: SearchServiceDep
) -> SearchResponse:
    """Diverse content related to what the user is working on."""
    results = await search.get_recommendations(
        request.content,
        content_types=request.content_types,
        limit=request.limit,
        diversity_threshold=request.diversity_threshold,
    )
    return SearchResponse(results=results)


@router.get("/stats", response_model=VectorStoreStats)
async def stats_endpoint(search: SearchServiceDep) -> VectorStoreStats:
    """Vector store statistics."""
    return await search.get_stats()


@router.delete("/vectors/{vector_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vector_endpoint(vector_id: str, search: SearchServiceDep) -> None:
    """Remove an indexed vector."""
    if not await search.remove_vector(vector_id):
        raise VectorStoreError(
            f"Vector not found: {vector_id}",
            code=ErrorCode.VECTOR_NOT_FOUND,
            details={"vector_id": vector_id},
        )
    logger.info(f"Removed vector {vector_id}")
