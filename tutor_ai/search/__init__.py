"""Semantic search module."""

from tutor_ai.search.models import (
    BatchIndexResult,
    HybridSearchHit,
    HybridSearchResult,
    IndexContentRequest,
    WebResult,
)
from tutor_ai.search.service import (
    SemanticSearchService,
    assess_content_quality,
    extract_tags,
    format_search_results,
)

__all__ = [
    "BatchIndexResult",
    "HybridSearchHit",
    "HybridSearchResult",
    "IndexContentRequest",
    "SemanticSearchService",
    "WebResult",
    "assess_content_quality",
    "extract_tags",
    "format_search_results",
]
