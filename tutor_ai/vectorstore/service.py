"""Vector store interface with in-memory and Qdrant implementations."""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    HasIdCondition,
    MatchAny,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from tutor_ai.config import (
    QdrantSettings,
    Settings,
    StoreBackend,
    VectorStoreSettings,
    get_settings,
)
from tutor_ai.embeddings.service import EmbeddingService
from tutor_ai.exceptions import ErrorCode, VectorStoreError
from tutor_ai.logging_config import get_logger
from tutor_ai.observability.metrics import track_eviction, track_vector_store_size
from tutor_ai.vectorstore.embedder import StoreEmbedder
from tutor_ai.vectorstore.models import (
    EmbeddingSource,
    EmbeddingVector,
    SearchOptions,
    SearchResult,
    SimilarOptions,
    VectorMetadata,
    VectorStoreStats,
    utc_now,
)
from tutor_ai.vectorstore.scoring import cosine_similarity, matches_tags, relevance_score

logger = get_logger(__name__)


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Every backend implements the full interface, so callers never probe for
    optional capabilities. A store holds vectors of a single dimensionality.
    Provider and hashing vectors are never compared with each other: queries
    are embedded once per source and scored against vectors of that source.
    """

    backend: str = "abstract"

    def __init__(
        self,
        settings: VectorStoreSettings | None = None,
        embedder: StoreEmbedder | None = None,
    ) -> None:
        """Initialize shared store state.

        Args:
            settings: Capacity and scoring configuration.
            embedder: Text-to-vector conversion. Hashing-only if omitted.
        """
        self._settings = settings or get_settings().vector_store
        self._embedder = embedder or StoreEmbedder(
            dimensions=self._settings.embedding_dimensions
        )

    @property
    def settings(self) -> VectorStoreSettings:
        return self._settings

    @property
    def embedder(self) -> StoreEmbedder:
        return self._embedder

    @abstractmethod
    async def add_vector(self, content: str, metadata: VectorMetadata | None = None) -> str:
        """Embed and store content.

        Content is truncated to ``content_max_length``. Storing past the
        cleanup threshold evicts all but the newest ``max_vectors``.

        Args:
            content: Text to store.
            metadata: Metadata; defaults apply for missing fields.

        Returns:
            The new vector id.

        Raises:
            VectorStoreError: If the vector does not match the store's
                dimensionality or the backend fails.
        """
        ...

    async def batch_add(
        self, items: Sequence[tuple[str, VectorMetadata | None]]
    ) -> list[str]:
        """Store several pieces of content, in order.

        Returns:
            Ids in input order.
        """
        return [await self.add_vector(content, metadata) for content, metadata in items]

    @abstractmethod
    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        """Rank stored vectors by relevance to ``query``.

        Filters by content type, quality and tags, drops hits below
        ``min_similarity`` and orders by composite relevance score.
        """
        ...

    @abstractmethod
    async def find_similar(
        self, content: str, options: SimilarOptions | None = None
    ) -> list[SearchResult]:
        """Rank stored vectors by raw cosine similarity to ``content``."""
        ...

    @abstractmethod
    async def get(self, vector_id: str) -> EmbeddingVector | None:
        """Get a vector by id."""
        ...

    @abstractmethod
    async def find_by_url(self, url: str) -> EmbeddingVector | None:
        """Get the first vector whose metadata URL equals ``url``."""
        ...

    @abstractmethod
    async def remove_vector(self, vector_id: str) -> bool:
        """Remove a vector.

        Returns:
            True if the vector existed.
        """
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every vector and release the pinned dimensionality."""
        ...

    @abstractmethod
    async def get_stats(self) -> VectorStoreStats:
        """Aggregate counts without modifying the store."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of stored vectors."""
        ...

    async def close(self) -> None:
        await self._embedder.close()

    def _new_id(self) -> str:
        return f"vec_{int(time.time() * 1000)}_{uuid4().hex[:9]}"

    async def _build_vector(
        self, content: str, metadata: VectorMetadata | None
    ) -> EmbeddingVector:
        embedding, source = await self._embedder.embed(content)
        return EmbeddingVector(
            id=self._new_id(),
            content=content[: self._settings.content_max_length],
            embedding=embedding,
            metadata=metadata or VectorMetadata(),
            source=source,
        )

    def _check_dimensions(self, expected: int | None, vector: EmbeddingVector) -> None:
        if expected is not None and len(vector.embedding) != expected:
            raise VectorStoreError(
                f"Embedding has {len(vector.embedding)} dimensions, store holds {expected}",
                code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
                details={"expected": expected, "actual": len(vector.embedding)},
            )

    def _rank(
        self,
        query_embeddings: Mapping[EmbeddingSource, list[float]],
        candidates: Iterable[EmbeddingVector],
        options: SearchOptions,
    ) -> list[SearchResult]:
        now = utc_now()
        results = []
        for vector in candidates:
            meta = vector.metadata
            if options.content_types and meta.content_type not in options.content_types:
                continue
            if options.quality_filter and meta.quality not in options.quality_filter:
                continue
            if options.tags and not matches_tags(meta.tags, options.tags):
                continue

            query_embedding = query_embeddings.get(vector.source)
            if query_embedding is None:
                continue
            similarity = cosine_similarity(query_embedding, vector.embedding)
            if similarity < options.min_similarity:
                continue

            score = relevance_score(
                similarity,
                meta.created_at,
                meta.quality,
                self._settings.recency_decay_days,
                now,
            )
            results.append(
                SearchResult(vector=vector, similarity=similarity, relevance_score=score)
            )

        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results[: options.limit]

    def _rank_similar(
        self,
        content_embeddings: Mapping[EmbeddingSource, list[float]],
        candidates: Iterable[EmbeddingVector],
        options: SimilarOptions,
    ) -> list[SearchResult]:
        results = []
        for vector in candidates:
            if options.exclude_id and vector.id == options.exclude_id:
                continue
            if options.content_types and vector.metadata.content_type not in options.content_types:
                continue

            content_embedding = content_embeddings.get(vector.source)
            if content_embedding is None:
                continue
            similarity = cosine_similarity(content_embedding, vector.embedding)
            if similarity >= options.min_similarity:
                results.append(
                    SearchResult(vector=vector, similarity=similarity, relevance_score=similarity)
                )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[: options.limit]


def build_stats(
    vectors: Iterable[EmbeddingVector],
    dimensions: int | None,
    last_updated: Any = None,
) -> VectorStoreStats:
    """Aggregate a store snapshot into stats."""
    stats = VectorStoreStats(dimensions=dimensions)
    if last_updated is not None:
        stats.last_updated = last_updated

    total_length = 0
    for vector in vectors:
        stats.total_vectors += 1
        stats.content_types[vector.metadata.content_type.value] += 1
        stats.quality_distribution[vector.metadata.quality.value] += 1
        total_length += len(vector.content)
        if vector.source == EmbeddingSource.HASHING:
            stats.fallback_embeddings += 1

    if stats.total_vectors:
        stats.average_content_length = round(total_length / stats.total_vectors)
    return stats


class InMemoryVectorStore(VectorStore):
    """Process-local vector store.

    Vectors live in an insertion-ordered dict. Not safe for use from more
    than one process.
    """

    backend = "memory"

    def __init__(
        self,
        settings: VectorStoreSettings | None = None,
        embedder: StoreEmbedder | None = None,
    ) -> None:
        super().__init__(settings, embedder)
        self._vectors: dict[str, EmbeddingVector] = {}
        self._sequence: dict[str, int] = {}
        self._next_sequence = 0
        self._dimensions: int | None = None
        self._last_updated = utc_now()

    @property
    def dimensions(self) -> int | None:
        """Dimensionality pinned by the first stored vector."""
        return self._dimensions

    def _store(self, vector: EmbeddingVector) -> None:
        self._check_dimensions(self._dimensions, vector)
        if self._dimensions is None:
            self._dimensions = len(vector.embedding)

        self._vectors[vector.id] = vector
        self._sequence[vector.id] = self._next_sequence
        self._next_sequence += 1
        self._last_updated = utc_now()

    async def add_vector(self, content: str, metadata: VectorMetadata | None = None) -> str:
        vector = await self._build_vector(content, metadata)
        self._store(vector)

        if len(self._vectors) > self._settings.cleanup_threshold:
            self._cleanup()

        track_vector_store_size(self.backend, len(self._vectors))
        logger.debug(
            f"Stored vector {vector.id}",
            extra={"source": vector.source.value, "size": len(self._vectors)},
        )
        return vector.id

    def _cleanup(self) -> None:
        """Keep the newest ``max_vectors`` by creation time."""
        newest = sorted(
            self._vectors.values(),
            key=lambda v: (v.metadata.created_at, self._sequence[v.id]),
            reverse=True,
        )[: self._settings.max_vectors]
        keep = {v.id for v in newest}

        evicted = len(self._vectors) - len(keep)
        self._vectors = {vid: v for vid, v in self._vectors.items() if vid in keep}
        self._sequence = {vid: seq for vid, seq in self._sequence.items() if vid in keep}
        self._last_updated = utc_now()

        track_eviction(self.backend, evicted)
        logger.info(
            f"Evicted {evicted} vectors",
            extra={"retained": len(self._vectors), "max_vectors": self._settings.max_vectors},
        )

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        query_embeddings = await self._embedder.embed_query(query, self._sources())
        return self._rank(query_embeddings, self._vectors.values(), options)

    async def find_similar(
        self, content: str, options: SimilarOptions | None = None
    ) -> list[SearchResult]:
        options = options or SimilarOptions()
        content_embeddings = await self._embedder.embed_query(content, self._sources())
        return self._rank_similar(content_embeddings, self._vectors.values(), options)

    def _sources(self) -> set[EmbeddingSource]:
        return {vector.source for vector in self._vectors.values()}

    async def get(self, vector_id: str) -> EmbeddingVector | None:
        return self._vectors.get(vector_id)

    async def find_by_url(self, url: str) -> EmbeddingVector | None:
        for vector in self._vectors.values():
            if vector.metadata.url == url:
                return vector
        return None

    async def remove_vector(self, vector_id: str) -> bool:
        if self._vectors.pop(vector_id, None) is None:
            return False
        self._sequence.pop(vector_id, None)
        self._last_updated = utc_now()
        track_vector_store_size(self.backend, len(self._vectors))
        return True

    async def clear(self) -> None:
        self._vectors.clear()
        self._sequence.clear()
        self._dimensions = None
        self._last_updated = utc_now()
        track_vector_store_size(self.backend, 0)

    async def get_stats(self) -> VectorStoreStats:
        return build_stats(self._vectors.values(), self._dimensions, self._last_updated)

    async def count(self) -> int:
        return len(self._vectors)

    def export_records(self) -> list[dict[str, Any]]:
        """Dump stored vectors as JSON-compatible dicts, oldest first."""
        return [vector.model_dump(mode="json") for vector in self._vectors.values()]

    def import_records(self, records: Iterable[dict[str, Any]]) -> int:
        """Load vectors produced by ``export_records``.

        Existing ids are replaced. Records must match the store's
        dimensionality.

        Returns:
            Number of records loaded.

        Raises:
            VectorStoreError: On malformed records or a dimension mismatch.
        """
        loaded = 0
        for record in records:
            try:
                vector = EmbeddingVector.model_validate(record)
            except PydanticValidationError as e:
                raise VectorStoreError(
                    f"Invalid vector record: {e.error_count()} validation errors",
                    details={"record_id": record.get("id") if isinstance(record, dict) else None},
                ) from e
            self._vectors.pop(vector.id, None)
            self._store(vector)
            loaded += 1

        if len(self._vectors) > self._settings.cleanup_threshold:
            self._cleanup()

        track_vector_store_size(self.backend, len(self._vectors))
        logger.info(f"Imported {loaded} vectors", extra={"size": len(self._vectors)})
        return loaded


class QdrantVectorStore(VectorStore):
    """Vector store persisted in a Qdrant collection.

    The collection is created on first insert, sized to the first vector.
    Content-type, quality and exclusion filters run in Qdrant; tag
    matching and relevance ranking run over an oversampled candidate set.
    Each embedding source is queried separately with its own query vector.
    """

    backend = "qdrant"

    # Candidates fetched per requested result before client-side ranking.
    CANDIDATE_MULTIPLIER = 4
    SCROLL_PAGE_SIZE = 256

    def __init__(
        self,
        settings: VectorStoreSettings | None = None,
        embedder: StoreEmbedder | None = None,
        qdrant_settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Capacity and scoring configuration.
            embedder: Text-to-vector conversion.
            qdrant_settings: Qdrant connection configuration.
            client: Existing client (for testing).
        """
        super().__init__(settings, embedder)
        self._qdrant = qdrant_settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._dimensions: int | None = None

    @property
    def collection(self) -> str:
        return self._qdrant.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._qdrant.api_key:
                api_key = self._qdrant.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._qdrant.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client and the embedder."""
        await super().close()
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def _new_id(self) -> str:
        # Qdrant point ids must be UUIDs or unsigned integers
        return str(uuid4())

    def _error(self, action: str, e: Exception) -> VectorStoreError:
        return VectorStoreError(
            f"Failed to {action}: {e}",
            code=ErrorCode.VECTOR_STORE_ERROR,
            details={"collection": self.collection, "error": str(e)},
        )

    async def _collection_dimensions(self) -> int | None:
        """Vector size of the existing collection, or None if absent."""
        if self._dimensions is not None:
            return self._dimensions

        client = await self._get_client()
        if not await client.collection_exists(self.collection):
            return None

        info = await client.get_collection(self.collection)
        self._dimensions = getattr(info.config.params.vectors, "size", None)
        return self._dimensions

    async def _ensure_collection(self, dimensions: int) -> None:
        if await self._collection_dimensions() is not None:
            return

        client = await self._get_client()
        await client.create_collection(
            collection_name=self.collection,
            vectors_config=VectorParams(size=dimensions, distance=Distance.COSINE),
        )
        self._dimensions = dimensions
        logger.info(f"Created collection: {self.collection}", extra={"dimensions": dimensions})

    @staticmethod
    def _payload(vector: EmbeddingVector) -> dict[str, Any]:
        meta = vector.metadata
        return {
            "content": vector.content,
            "source": vector.source.value,
            "title": meta.title,
            "url": meta.url,
            "domain": meta.domain,
            "created_at": meta.created_at.isoformat(),
            "created_ts": meta.created_at.timestamp(),
            "content_type": meta.content_type.value,
            "quality": meta.quality.value,
            "tags": meta.tags,
        }

    @staticmethod
    def _to_vector(point: Any) -> EmbeddingVector:
        payload = dict(point.payload or {})
        return EmbeddingVector(
            id=str(point.id),
            content=payload.get("content", ""),
            embedding=list(point.vector or []),
            source=payload.get("source", EmbeddingSource.PROVIDER),
            metadata=VectorMetadata(
                title=payload.get("title"),
                url=payload.get("url"),
                domain=payload.get("domain"),
                created_at=payload["created_at"],
                content_type=payload["content_type"],
                quality=payload["quality"],
                tags=payload.get("tags") or [],
            ),
        )

    async def add_vector(self, content: str, metadata: VectorMetadata | None = None) -> str:
        ids = await self.batch_add([(content, metadata)])
        return ids[0]

    async def batch_add(
        self, items: Sequence[tuple[str, VectorMetadata | None]]
    ) -> list[str]:
        """Embed all items and write them in one upsert."""
        if not items:
            return []

        vectors = [await self._build_vector(content, metadata) for content, metadata in items]
        client = await self._get_client()

        try:
            await self._ensure_collection(len(vectors[0].embedding))
            for vector in vectors:
                self._check_dimensions(self._dimensions, vector)

            await client.upsert(
                collection_name=self.collection,
                points=[
                    PointStruct(id=v.id, vector=v.embedding, payload=self._payload(v))
                    for v in vectors
                ],
            )
            size = await self.count()
        except VectorStoreError:
            raise
        except Exception as e:
            raise self._error("upsert vectors", e) from e

        logger.debug(f"Upserted {len(vectors)} vectors", extra={"collection": self.collection})

        if size > self._settings.cleanup_threshold:
            size = await self._cleanup()
        track_vector_store_size(self.backend, size)
        return [v.id for v in vectors]

    async def _scroll_all(self, with_vectors: bool = False) -> list[Any]:
        client = await self._get_client()
        points: list[Any] = []
        offset = None
        while True:
            page, offset = await client.scroll(
                collection_name=self.collection,
                limit=self.SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )
            points.extend(page)
            if offset is None:
                return points

    async def _cleanup(self) -> int:
        """Delete everything but the newest ``max_vectors`` points."""
        client = await self._get_client()
        try:
            points = await self._scroll_all()
            points.sort(key=lambda p: (p.payload or {}).get("created_ts", 0.0), reverse=True)
            stale = [p.id for p in points[self._settings.max_vectors :]]
            if stale:
                await client.delete(
                    collection_name=self.collection,
                    points_selector=PointIdsList(points=stale),
                )
        except Exception as e:
            raise self._error("evict vectors", e) from e

        track_eviction(self.backend, len(stale))
        logger.info(f"Evicted {len(stale)} vectors", extra={"collection": self.collection})
        return len(points) - len(stale)

    async def _query(
        self,
        embeddings: Mapping[EmbeddingSource, list[float]],
        limit: int,
        min_similarity: float,
        must: list[Any],
        must_not: list[Any] | None = None,
    ) -> list[EmbeddingVector]:
        """Nearest points for each query vector, restricted to its source."""
        if not embeddings or await self._collection_dimensions() is None:
            return []

        client = await self._get_client()
        hits: dict[str, EmbeddingVector] = {}
        for source, embedding in embeddings.items():
            source_filter = Filter(
                must=[*must, FieldCondition(key="source", match=MatchValue(value=source.value))],
                must_not=must_not or None,
            )
            try:
                response = await client.query_points(
                    collection_name=self.collection,
                    query=embedding,
                    limit=limit,
                    query_filter=source_filter,
                    score_threshold=min_similarity,
                    with_payload=True,
                    with_vectors=True,
                )
            except Exception as e:
                raise self._error("search", e) from e

            for point in response.points:
                vector = self._to_vector(point)
                hits.setdefault(vector.id, vector)
        return list(hits.values())

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        query_embeddings = await self._embedder.embed_query(query, tuple(EmbeddingSource))

        must = []
        if options.content_types:
            must.append(
                FieldCondition(
                    key="content_type",
                    match=MatchAny(any=[c.value for c in options.content_types]),
                )
            )
        if options.quality_filter:
            must.append(
                FieldCondition(
                    key="quality",
                    match=MatchAny(any=[q.value for q in options.quality_filter]),
                )
            )

        hits = await self._query(
            query_embeddings,
            options.limit * self.CANDIDATE_MULTIPLIER,
            options.min_similarity,
            must,
        )
        return self._rank(query_embeddings, hits, options)

    async def find_similar(
        self, content: str, options: SimilarOptions | None = None
    ) -> list[SearchResult]:
        options = options or SimilarOptions()
        content_embeddings = await self._embedder.embed_query(content, tuple(EmbeddingSource))

        must = []
        if options.content_types:
            must.append(
                FieldCondition(
                    key="content_type",
                    match=MatchAny(any=[c.value for c in options.content_types]),
                )
            )
        must_not = [HasIdCondition(has_id=[options.exclude_id])] if options.exclude_id else []

        hits = await self._query(
            content_embeddings, options.limit, options.min_similarity, must, must_not
        )
        return self._rank_similar(content_embeddings, hits, options)

    async def get(self, vector_id: str) -> EmbeddingVector | None:
        if await self._collection_dimensions() is None:
            return None

        client = await self._get_client()
        try:
            points = await client.retrieve(
                collection_name=self.collection,
                ids=[vector_id],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise self._error("retrieve vector", e) from e
        return self._to_vector(points[0]) if points else None

    async def find_by_url(self, url: str) -> EmbeddingVector | None:
        if await self._collection_dimensions() is None:
            return None

        client = await self._get_client()
        try:
            points, _ = await client.scroll(
                collection_name=self.collection,
                scroll_filter=Filter(
                    must=[  # type: ignore[list-item]
                        FieldCondition(key="url", match=MatchValue(value=url))
                    ]
                ),
                limit=1,
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise self._error("look up url", e) from e
        return self._to_vector(points[0]) if points else None

    async def remove_vector(self, vector_id: str) -> bool:
        if await self.get(vector_id) is None:
            return False

        client = await self._get_client()
        try:
            await client.delete(
                collection_name=self.collection,
                points_selector=PointIdsList(points=[vector_id]),  # type: ignore[list-item]
            )
        except Exception as e:
            raise self._error("delete vector", e) from e
        return True

    async def clear(self) -> None:
        client = await self._get_client()
        try:
            if await client.collection_exists(self.collection):
                await client.delete_collection(self.collection)
        except Exception as e:
            raise self._error("clear collection", e) from e

        self._dimensions = None
        track_vector_store_size(self.backend, 0)
        logger.info(f"Deleted collection: {self.collection}")

    async def get_stats(self) -> VectorStoreStats:
        if await self._collection_dimensions() is None:
            return build_stats([], None)

        try:
            points = await self._scroll_all()
        except Exception as e:
            raise self._error("read stats", e) from e

        vectors = []
        latest = None
        for point in points:
            payload = dict(point.payload or {})
            vectors.append(
                EmbeddingVector(
                    id=str(point.id),
                    content=payload.get("content", ""),
                    embedding=[],
                    source=payload.get("source", EmbeddingSource.PROVIDER),
                    metadata=VectorMetadata(
                        created_at=payload["created_at"],
                        content_type=payload["content_type"],
                        quality=payload["quality"],
                    ),
                )
            )
            created = vectors[-1].metadata.created_at
            latest = created if latest is None or created > latest else latest

        return build_stats(vectors, self._dimensions, latest)

    async def count(self) -> int:
        if await self._collection_dimensions() is None:
            return 0

        client = await self._get_client()
        try:
            result = await client.count(collection_name=self.collection, exact=True)
        except Exception as e:
            raise self._error("count vectors", e) from e
        return result.count


def build_vector_store(
    settings: Settings | None = None,
    embedding_service: EmbeddingService | None = None,
) -> VectorStore:
    """Create the configured vector store.

    Args:
        settings: Application settings.
        embedding_service: Real embedding backend, hashing-only if None.
    """
    settings = settings or get_settings()
    embedder = StoreEmbedder(
        embedding_service,
        dimensions=settings.vector_store.embedding_dimensions,
        max_input_length=settings.embedding.max_input_length,
    )

    if settings.vector_store.backend == StoreBackend.QDRANT:
        return QdrantVectorStore(settings.vector_store, embedder, settings.qdrant)
    return InMemoryVectorStore(settings.vector_store, embedder)
