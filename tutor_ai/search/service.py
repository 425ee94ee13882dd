"""Semantic search facade over a vector store.

Adds quality assessment, tag extraction, batch indexing, hybrid search
and diversity-filtered recommendations on top of the raw store.
"""

import asyncio
import math
import time
from collections.abc import Sequence

from tutor_ai.config import SearchSettings, get_settings
from tutor_ai.exceptions import ErrorCode, SearchError
from tutor_ai.logging_config import get_logger
from tutor_ai.observability.metrics import track_batch_index, track_search
from tutor_ai.search.models import (
    BatchIndexResult,
    HybridSearchHit,
    HybridSearchResult,
    IndexContentRequest,
    WebResult,
)
from tutor_ai.vectorstore.models import (
    ContentType,
    QualityLevel,
    SearchOptions,
    SearchResult,
    SimilarOptions,
    VectorMetadata,
    VectorStoreStats,
)
from tutor_ai.vectorstore.scoring import jaccard_similarity
from tutor_ai.vectorstore.service import VectorStore

logger = get_logger(__name__)

HIGH_QUALITY_MIN_LENGTH = 500
MEDIUM_QUALITY_MIN_LENGTH = 200

LANGUAGE_TAGS = ("javascript", "python", "java", "typescript", "react", "node", "css", "html")
TOPIC_TAGS = ("tutorial", "guide", "documentation", "api", "framework", "library")

DEFAULT_RECOMMENDATION_TYPES = (ContentType.LESSON, ContentType.EXERCISE, ContentType.DOCUMENT)

_QUALITY_ICONS = {
    QualityLevel.HIGH: "🟢",
    QualityLevel.MEDIUM: "🟡",
    QualityLevel.LOW: "🟠",
}
_TYPE_ICONS = {
    ContentType.WEB: "🌐",
    ContentType.LESSON: "📚",
    ContentType.EXERCISE: "💪",
    ContentType.DOCUMENT: "📄",
}
PREVIEW_LENGTH = 150


def assess_content_quality(content: str) -> QualityLevel:
    """Quality from length: over 500 chars is high, over 200 medium."""
    if len(content) > HIGH_QUALITY_MIN_LENGTH:
        return QualityLevel.HIGH
    if len(content) > MEDIUM_QUALITY_MIN_LENGTH:
        return QualityLevel.MEDIUM
    return QualityLevel.LOW


def extract_tags(content: str, title: str | None = None) -> list[str]:
    """Keywords from the fixed vocabularies found in the title or content.

    Matching is by substring, so "javascript" also yields "java".
    """
    text = f"{title or ''} {content}".lower()
    tags = [tag for tag in (*LANGUAGE_TAGS, *TOPIC_TAGS) if tag in text]
    return list(dict.fromkeys(tags))


def format_search_results(results: Sequence[SearchResult]) -> str:
    """Render results as a markdown summary."""
    if not results:
        return "No results found."

    lines = [f"Found {len(results)} relevant results:", ""]
    for index, result in enumerate(results, start=1):
        vector = result.vector
        meta = vector.metadata
        preview = vector.content[:PREVIEW_LENGTH]
        if len(vector.content) > PREVIEW_LENGTH:
            preview += "..."

        lines.append(f"**{index}. {meta.title or 'Untitled'}**")
        lines.append(
            f"{_QUALITY_ICONS[meta.quality]} {_TYPE_ICONS[meta.content_type]} "
            f"Similarity: {round(result.similarity * 100)}%"
        )
        if meta.url:
            lines.append(f"🔗 {meta.url}")
        lines.append(f"📝 {preview}")
        lines.append("")

    return "\n".join(lines) + "\n"


class SemanticSearchService:
    """High-level search operations over one vector store."""

    def __init__(
        self,
        store: VectorStore,
        settings: SearchSettings | None = None,
    ) -> None:
        """Initialize the search service.

        Args:
            store: Backing vector store.
            settings: Batch indexing configuration.
        """
        self._store = store
        self._settings = settings or get_settings().search

    @property
    def store(self) -> VectorStore:
        return self._store

    # Kept on the service so callers need only one object.
    assess_content_quality = staticmethod(assess_content_quality)
    extract_tags = staticmethod(extract_tags)
    format_search_results = staticmethod(format_search_results)

    async def index_content(self, request: IndexContentRequest) -> str:
        """Index one piece of content.

        Returns:
            The new vector id.

        Raises:
            SearchError: If the content is blank.
        """
        if not request.content.strip():
            raise SearchError(
                "Cannot index empty content",
                code=ErrorCode.INDEXING_ERROR,
                details={"title": request.title},
            )

        quality = request.quality or assess_content_quality(request.content)
        tags = request.tags if request.tags is not None else extract_tags(
            request.content, request.title
        )

        return await self._store.add_vector(
            request.content,
            VectorMetadata(
                title=request.title,
                url=request.url,
                domain=request.domain,
                content_type=request.content_type,
                quality=quality,
                tags=tags,
            ),
        )

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        start = time.perf_counter()
        results = await self._store.search(query, options)
        track_search("search", time.perf_counter() - start, len(results))
        return results

    async def find_similar(
        self,
        content: str,
        exclude_url: str | None = None,
        limit: int = 3,
        min_similarity: float = 0.4,
        content_types: Sequence[ContentType] = (),
    ) -> list[SearchResult]:
        """Find stored content similar to ``content``.

        Args:
            content: Reference text.
            exclude_url: URL of a stored item to leave out, typically the
                item ``content`` came from.
            limit: Maximum results.
            min_similarity: Minimum cosine similarity.
            content_types: Allowed content types, all when empty.
        """
        start = time.perf_counter()

        exclude_id = None
        if exclude_url:
            excluded = await self._store.find_by_url(exclude_url)
            exclude_id = excluded.id if excluded else None

        results = await self._store.find_similar(
            content,
            SimilarOptions(
                limit=limit,
                min_similarity=min_similarity,
                content_types=list(content_types),
                exclude_id=exclude_id,
            ),
        )
        track_search("find_similar", time.perf_counter() - start, len(results))
        return results

    async def batch_index(
        self,
        items: Sequence[IndexContentRequest],
        batch_size: int | None = None,
    ) -> BatchIndexResult:
        """Index items in concurrent batches.

        A failing item is recorded in the result and does not stop the
        batch. Batches are separated by ``batch_delay`` seconds.
        """
        batch_size = batch_size or self._settings.batch_size
        start = time.perf_counter()
        result = BatchIndexResult()

        for offset in range(0, len(items), batch_size):
            batch = items[offset : offset + batch_size]
            outcomes = await asyncio.gather(
                *(self.index_content(item) for item in batch),
                return_exceptions=True,
            )

            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, str):
                    result.indexed += 1
                    result.ids.append(outcome)
                elif isinstance(outcome, Exception):
                    result.failed += 1
                    result.errors.append(f'Failed to index "{item.title or "Untitled"}": {outcome}')
                    logger.warning(
                        f"Failed to index item: {outcome}",
                        extra={"title": item.title, "url": item.url},
                    )
                else:
                    raise outcome

            if offset + batch_size < len(items):
                await asyncio.sleep(self._settings.batch_delay)

        result.total_time_ms = (time.perf_counter() - start) * 1000
        track_batch_index(result.indexed, result.failed)
        logger.info(
            f"Batch indexed {result.indexed}/{len(items)} items",
            extra={"failed": result.failed, "total_time_ms": round(result.total_time_ms, 1)},
        )
        return result

    async def index_web_results(self, results: Sequence[WebResult]) -> BatchIndexResult:
        """Index web search hits with derived quality and tags."""
        items = [
            IndexContentRequest(
                content=r.content,
                title=r.title,
                url=r.url,
                domain=r.domain,
                content_type=ContentType.WEB,
                quality=r.quality or assess_content_quality(r.content),
                tags=extract_tags(r.content, r.title),
            )
            for r in results
        ]
        return await self.batch_index(items)

    async def hybrid_search(
        self,
        query: str,
        semantic_weight: float = 0.7,
        keyword_weight: float = 0.3,
        max_results: int = 10,
    ) -> HybridSearchResult:
        """Blend a strict and a loose search pass.

        Hits are keyed by URL, or by id when there is no URL, and each pass
        contributes at most once per key. A hit found by both passes gets
        the sum of its weighted similarities.
        """
        start = time.perf_counter()

        semantic = await self._store.search(
            query, SearchOptions(limit=math.ceil(max_results * 0.7), min_similarity=0.2)
        )
        keyword = await self._store.search(
            query, SearchOptions(limit=math.ceil(max_results * 0.3), min_similarity=0.1)
        )

        merged: dict[str, HybridSearchHit] = {}
        for result in semantic:
            key = result.vector.metadata.url or result.vector.id
            if key not in merged:
                merged[key] = self._hit(result, result.similarity * semantic_weight, "semantic")

        keyword_keys: set[str] = set()
        for result in keyword:
            key = result.vector.metadata.url or result.vector.id
            if key in keyword_keys:
                continue
            keyword_keys.add(key)
            if key not in merged:
                merged[key] = self._hit(result, result.similarity * keyword_weight, "keyword")
            else:
                existing = merged[key]
                existing.score += result.similarity * keyword_weight
                existing.source = "both"

        hits = sorted(merged.values(), key=lambda h: h.score, reverse=True)[:max_results]
        elapsed = time.perf_counter() - start
        track_search("hybrid", elapsed, len(hits))
        return HybridSearchResult(results=hits, search_time_ms=elapsed * 1000)

    @staticmethod
    def _hit(result: SearchResult, score: float, source: str) -> HybridSearchHit:
        return HybridSearchHit(
            id=result.vector.id,
            content=result.vector.content,
            score=score,
            source=source,
            metadata=result.vector.metadata,
        )

    async def get_recommendations(
        self,
        user_content: str,
        content_types: Sequence[ContentType] = DEFAULT_RECOMMENDATION_TYPES,
        limit: int = 5,
        diversity_threshold: float = 0.8,
    ) -> list[SearchResult]:
        """Similar content with near-duplicates removed.

        A candidate is dropped when its word overlap with an already chosen
        recommendation exceeds ``diversity_threshold``.
        """
        start = time.perf_counter()
        candidates = await self._store.find_similar(
            user_content,
            SimilarOptions(limit=limit * 2, min_similarity=0.3),
        )

        diverse: list[SearchResult] = []
        for candidate in candidates:
            if candidate.vector.metadata.content_type not in content_types:
                continue
            too_similar = any(
                jaccard_similarity(candidate.vector.content, chosen.vector.content)
                > diversity_threshold
                for chosen in diverse
            )
            if not too_similar:
                diverse.append(candidate)
            if len(diverse) >= limit:
                break

        track_search("recommendations", time.perf_counter() - start, len(diverse))
        return diverse

    async def get_stats(self) -> VectorStoreStats:
        return await self._store.get_stats()

    async def clear(self) -> None:
        await self._store.clear()

    async def remove_vector(self, vector_id: str) -> bool:
        return await self._store.remove_vector(vector_id)

    async def close(self) -> None:
        await self._store.close()
