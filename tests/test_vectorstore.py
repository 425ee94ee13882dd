"""Tests for vector store module."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import FakeEmbeddingService
from qdrant_client.models import Filter, Record, ScoredPoint

from tutor_ai.config import QdrantSettings, Settings, StoreBackend, VectorStoreSettings
from tutor_ai.exceptions import EmbeddingError, ErrorCode, VectorStoreError
from tutor_ai.vectorstore import (
    ContentType,
    EmbeddingSource,
    InMemoryVectorStore,
    QdrantVectorStore,
    QualityLevel,
    SearchOptions,
    SimilarOptions,
    StoreEmbedder,
    VectorMetadata,
    build_vector_store,
)
from tutor_ai.vectorstore.models import utc_now
from tutor_ai.vectorstore.scoring import hashing_embedding

DECORATORS = "python decorators explained"
PHOTOSYNTHESIS = "photosynthesis plants light energy"
PHYSICS = "quantum physics"


def small_settings(max_vectors: int = 3, cleanup_threshold: int = 4) -> VectorStoreSettings:
    return VectorStoreSettings(
        max_vectors=max_vectors,
        cleanup_threshold=cleanup_threshold,
        content_max_length=2000,
        embedding_dimensions=384,
        recency_decay_days=30.0,
    )


class TestStoreEmbedder:
    """Tests for StoreEmbedder."""

    async def test_hashing_only(self) -> None:
        """Without a service, hashing embeddings are used."""
        embedder = StoreEmbedder(dimensions=32)

        vector, source = await embedder.embed("python decorators")

        assert source == EmbeddingSource.HASHING
        assert vector == hashing_embedding("python decorators", 32)

    async def test_provider_embedding(self) -> None:
        """Service vectors are used and the input is cleaned."""
        service = FakeEmbeddingService(dimensions=4, vector=[0.1, 0.2, 0.3, 0.4])
        embedder = StoreEmbedder(service, dimensions=384)

        vector, source = await embedder.embed("what's   <new>?")

        assert embedder.dimensions == 4
        assert source == EmbeddingSource.PROVIDER
        assert vector == [0.1, 0.2, 0.3, 0.4]
        assert service.texts == ["whats new?"]

    async def test_service_error_falls_back(self) -> None:
        """Service failures degrade to hashing at the service's size."""
        service = FakeEmbeddingService(dimensions=8, error=EmbeddingError("quota"))
        embedder = StoreEmbedder(service)

        vector, source = await embedder.embed("python decorators")

        assert source == EmbeddingSource.HASHING
        assert vector == hashing_embedding("python decorators", 8)

    async def test_unexpected_error_falls_back(self) -> None:
        """Any exception from the service degrades to hashing."""
        embedder = StoreEmbedder(FakeEmbeddingService(error=RuntimeError("socket")))

        _, source = await embedder.embed("text")

        assert source == EmbeddingSource.HASHING

    async def test_wrong_dimensions_fall_back(self) -> None:
        """A vector of the wrong size is replaced by a hashing vector."""
        service = FakeEmbeddingService(dimensions=8, vector=[1.0, 0.0])
        embedder = StoreEmbedder(service)

        vector, source = await embedder.embed("text")

        assert source == EmbeddingSource.HASHING
        assert len(vector) == 8

    async def test_close_closes_service(self) -> None:
        """close() reaches the embedding service."""
        service = FakeEmbeddingService()
        await StoreEmbedder(service).close()
        assert service.closed

    async def test_embed_query_per_source(self) -> None:
        """Queries are embedded once for each requested source."""
        service = FakeEmbeddingService(dimensions=8)
        embedder = StoreEmbedder(service)

        embeddings = await embedder.embed_query(
            "python decorators", [EmbeddingSource.PROVIDER, EmbeddingSource.HASHING]
        )

        assert embeddings == {
            EmbeddingSource.PROVIDER: service.vector,
            EmbeddingSource.HASHING: hashing_embedding("python decorators", 8),
        }

    async def test_embed_query_skips_unrequested_sources(self) -> None:
        """The service is not called when no provider vectors are stored."""
        service = FakeEmbeddingService(dimensions=8)

        embeddings = await StoreEmbedder(service).embed_query(
            "text", {EmbeddingSource.HASHING}
        )

        assert list(embeddings) == [EmbeddingSource.HASHING]
        assert service.texts == []

    async def test_embed_query_without_provider(self) -> None:
        """A failing service leaves only the hashing query vector."""
        service = FakeEmbeddingService(dimensions=8, error=EmbeddingError("quota"))

        embeddings = await StoreEmbedder(service).embed_query("text", tuple(EmbeddingSource))

        assert list(embeddings) == [EmbeddingSource.HASHING]


class TestInMemoryVectorStore:
    """Tests for InMemoryVectorStore."""

    async def test_add_and_get(self, store: InMemoryVectorStore) -> None:
        """Stored vectors can be read back."""
        vector_id = await store.add_vector(DECORATORS, VectorMetadata(title="Decorators"))

        vector = await store.get(vector_id)

        assert vector is not None
        assert vector_id.startswith("vec_")
        assert vector.content == DECORATORS
        assert vector.metadata.title == "Decorators"
        assert vector.source == EmbeddingSource.HASHING
        assert len(vector.embedding) == 384
        assert store.dimensions == 384

    async def test_default_metadata(self, store: InMemoryVectorStore) -> None:
        """Missing metadata gets defaults."""
        vector = await store.get(await store.add_vector(DECORATORS))

        assert vector is not None
        assert vector.metadata.content_type == ContentType.DOCUMENT
        assert vector.metadata.quality == QualityLevel.MEDIUM
        assert vector.metadata.tags == []

    async def test_content_truncated(self, store: InMemoryVectorStore) -> None:
        """Content is cut to content_max_length."""
        vector = await store.get(await store.add_vector("word " * 1000))

        assert vector is not None
        assert len(vector.content) == 2000

    async def test_ids_are_unique(self, store: InMemoryVectorStore) -> None:
        """Repeated content gets distinct ids."""
        ids = {await store.add_vector(DECORATORS) for _ in range(20)}
        assert len(ids) == 20

    async def test_search_finds_best_match(self, store: InMemoryVectorStore) -> None:
        """The closest content ranks first and unrelated content is dropped."""
        decorators_id = await store.add_vector(DECORATORS)
        await store.add_vector(PHOTOSYNTHESIS)
        await store.add_vector(PHYSICS)

        results = await store.search("python decorators")

        assert [r.vector.id for r in results] == [decorators_id]
        assert results[0].similarity > 0.9
        assert results[0].relevance_score > results[0].similarity

    async def test_search_same_content_at_full_threshold(
        self, store: InMemoryVectorStore
    ) -> None:
        """Searching for stored content finds it even at min_similarity 1.0."""
        vector_id = await store.add_vector(PHOTOSYNTHESIS)
        await store.add_vector(DECORATORS)

        results = await store.search(PHOTOSYNTHESIS, SearchOptions(min_similarity=1.0))

        assert [r.vector.id for r in results] == [vector_id]

    async def test_search_blank_query(self, store: InMemoryVectorStore) -> None:
        """A query without tokens matches nothing."""
        await store.add_vector(DECORATORS)
        assert await store.search("   ") == []

    async def test_search_empty_store(self, store: InMemoryVectorStore) -> None:
        """Searching an empty store returns nothing."""
        assert await store.search("python") == []

    async def test_quality_breaks_ties(self, store: InMemoryVectorStore) -> None:
        """At equal similarity, higher quality ranks first."""
        low = await store.add_vector(DECORATORS, VectorMetadata(quality=QualityLevel.LOW))
        high = await store.add_vector(DECORATORS, VectorMetadata(quality=QualityLevel.HIGH))
        medium = await store.add_vector(DECORATORS, VectorMetadata(quality=QualityLevel.MEDIUM))

        results = await store.search(DECORATORS)

        assert [r.vector.id for r in results] == [high, medium, low]

    async def test_recency_breaks_ties(self, store: InMemoryVectorStore) -> None:
        """At equal similarity and quality, newer content ranks first."""
        old = await store.add_vector(
            DECORATORS, VectorMetadata(created_at=utc_now() - timedelta(days=60))
        )
        new = await store.add_vector(DECORATORS)

        results = await store.search(DECORATORS)

        assert [r.vector.id for r in results] == [new, old]
        assert results[1].relevance_score == pytest.approx(results[1].similarity + 0.1)

    async def test_search_limit(self, store: InMemoryVectorStore) -> None:
        """At most ``limit`` results are returned."""
        for _ in range(8):
            await store.add_vector(DECORATORS)

        assert len(await store.search(DECORATORS)) == 5
        assert len(await store.search(DECORATORS, SearchOptions(limit=2))) == 2

    async def test_search_filters(self, store: InMemoryVectorStore) -> None:
        """Content type, quality and tag filters restrict results."""
        lesson = await store.add_vector(
            DECORATORS,
            VectorMetadata(
                content_type=ContentType.LESSON,
                quality=QualityLevel.HIGH,
                tags=["python", "tutorial"],
            ),
        )
        exercise = await store.add_vector(
            DECORATORS,
            VectorMetadata(content_type=ContentType.EXERCISE, quality=QualityLevel.LOW),
        )

        by_type = await store.search(
            DECORATORS, SearchOptions(content_types=[ContentType.EXERCISE])
        )
        by_quality = await store.search(
            DECORATORS, SearchOptions(quality_filter=[QualityLevel.HIGH])
        )
        by_tag = await store.search(DECORATORS, SearchOptions(tags=["TUTOR"]))

        assert [r.vector.id for r in by_type] == [exercise]
        assert [r.vector.id for r in by_quality] == [lesson]
        assert [r.vector.id for r in by_tag] == [lesson]

    async def test_find_similar(self, store: InMemoryVectorStore) -> None:
        """Similarity lookup ranks by raw similarity and honours exclusion."""
        first = await store.add_vector(DECORATORS)
        second = await store.add_vector(DECORATORS)
        await store.add_vector(PHYSICS)

        results = await store.find_similar(DECORATORS)
        excluded = await store.find_similar(DECORATORS, SimilarOptions(exclude_id=first))

        assert {r.vector.id for r in results} == {first, second}
        assert all(r.relevance_score == r.similarity for r in results)
        assert [r.vector.id for r in excluded] == [second]

    async def test_find_similar_content_types(self, store: InMemoryVectorStore) -> None:
        """Similarity lookup can be restricted by content type."""
        await store.add_vector(DECORATORS, VectorMetadata(content_type=ContentType.WEB))
        lesson = await store.add_vector(DECORATORS, VectorMetadata(content_type=ContentType.LESSON))

        results = await store.find_similar(
            DECORATORS, SimilarOptions(content_types=[ContentType.LESSON])
        )

        assert [r.vector.id for r in results] == [lesson]

    async def test_find_by_url(self, store: InMemoryVectorStore) -> None:
        """URL lookup returns the first match."""
        vector_id = await store.add_vector(DECORATORS, VectorMetadata(url="https://a.test"))

        found = await store.find_by_url("https://a.test")

        assert found is not None and found.id == vector_id
        assert await store.find_by_url("https://b.test") is None

    async def test_remove_vector(self, store: InMemoryVectorStore) -> None:
        """Removal reports whether the vector existed."""
        vector_id = await store.add_vector(DECORATORS)

        assert await store.remove_vector(vector_id) is True
        assert await store.remove_vector(vector_id) is False
        assert await store.get(vector_id) is None
        assert await store.count() == 0

    async def test_clear(self, store: InMemoryVectorStore) -> None:
        """clear() empties the store and unpins the dimensionality."""
        await store.add_vector(DECORATORS)

        await store.clear()

        assert await store.count() == 0
        assert store.dimensions is None

    async def test_stats(self, store: InMemoryVectorStore) -> None:
        """Stats aggregate types, quality and content length."""
        await store.add_vector("a" * 10, VectorMetadata(content_type=ContentType.LESSON))
        await store.add_vector(
            "b" * 20,
            VectorMetadata(content_type=ContentType.LESSON, quality=QualityLevel.HIGH),
        )
        await store.add_vector("c" * 30, VectorMetadata(content_type=ContentType.WEB))

        stats = await store.get_stats()

        assert stats.total_vectors == 3
        assert stats.content_types == {"web": 1, "lesson": 2, "exercise": 0, "document": 0}
        assert stats.quality_distribution == {"high": 1, "medium": 2, "low": 0}
        assert stats.average_content_length == 20
        assert stats.dimensions == 384
        assert stats.fallback_embeddings == 3

    async def test_empty_stats(self, store: InMemoryVectorStore) -> None:
        """An empty store reports zero counts."""
        stats = await store.get_stats()

        assert stats.total_vectors == 0
        assert stats.average_content_length == 0
        assert stats.dimensions is None
        assert set(stats.content_types) == {"web", "lesson", "exercise", "document"}

    async def test_cleanup_keeps_newest(self) -> None:
        """Passing the threshold keeps the newest max_vectors."""
        store = InMemoryVectorStore(small_settings(max_vectors=3, cleanup_threshold=4))

        ids = [await store.add_vector(f"{PHYSICS} {i}") for i in range(4)]
        assert await store.count() == 4

        ids.append(await store.add_vector(f"{PHYSICS} 4"))

        assert await store.count() == 3
        assert [await store.get(i) is not None for i in ids] == [False, False, True, True, True]

    async def test_cleanup_uses_creation_time(self) -> None:
        """Eviction follows created_at, not insertion order."""
        store = InMemoryVectorStore(small_settings(max_vectors=2, cleanup_threshold=3))

        first = await store.add_vector("first")
        second = await store.add_vector("second")
        backdated = await store.add_vector(
            "backdated", VectorMetadata(created_at=utc_now() - timedelta(days=10))
        )
        last = await store.add_vector("last")

        assert await store.count() == 2
        assert await store.get(first) is None
        assert await store.get(backdated) is None
        assert await store.get(second) is not None
        assert await store.get(last) is not None

    async def test_size_never_exceeds_threshold(self) -> None:
        """The store never holds more than cleanup_threshold vectors."""
        settings = small_settings(max_vectors=5, cleanup_threshold=7)
        store = InMemoryVectorStore(settings)

        for i in range(30):
            await store.add_vector(f"item {i}")
            assert await store.count() <= settings.cleanup_threshold

    async def test_dimension_mismatch(self, store: InMemoryVectorStore) -> None:
        """Vectors of another size are rejected once the store is pinned."""
        await store.add_vector(DECORATORS)
        record = {
            "id": "vec_other",
            "content": "short",
            "embedding": [0.1, 0.2],
            "metadata": {},
        }

        with pytest.raises(VectorStoreError) as exc_info:
            store.import_records([record])

        assert exc_info.value.code == ErrorCode.EMBEDDING_DIMENSION_MISMATCH
        assert exc_info.value.details == {"expected": 384, "actual": 2}

    async def test_export_import(self, store: InMemoryVectorStore) -> None:
        """Exported records load into another store unchanged."""
        vector_id = await store.add_vector(
            DECORATORS, VectorMetadata(title="Decorators", tags=["python"])
        )
        records = store.export_records()

        restored = InMemoryVectorStore(store.settings)
        loaded = restored.import_records(records)
        vector = await restored.get(vector_id)

        assert loaded == 1
        assert vector == await store.get(vector_id)
        assert restored.dimensions == 384

    def test_import_malformed(self, store: InMemoryVectorStore) -> None:
        """Malformed records raise VectorStoreError."""
        with pytest.raises(VectorStoreError) as exc_info:
            store.import_records([{"id": "x"}])

        assert exc_info.value.code == ErrorCode.VECTOR_STORE_ERROR

    async def test_batch_add(self, store: InMemoryVectorStore) -> None:
        """batch_add returns ids in input order."""
        ids = await store.batch_add(
            [(DECORATORS, None), (PHYSICS, VectorMetadata(title="Physics"))]
        )

        assert len(ids) == 2
        second = await store.get(ids[1])
        assert second is not None and second.metadata.title == "Physics"

    async def test_fallback_embeddings_counted(self) -> None:
        """Stats count vectors stored with the hashing fallback."""
        service = FakeEmbeddingService(dimensions=384)
        store = InMemoryVectorStore(small_settings(), StoreEmbedder(service))

        await store.add_vector(DECORATORS)
        service.error = EmbeddingError("quota")
        await store.add_vector(PHYSICS)

        stats = await store.get_stats()
        assert stats.total_vectors == 2
        assert stats.fallback_embeddings == 1

    async def test_fallback_vector_found_after_service_recovers(self) -> None:
        """A vector stored with the fallback is found by its own content."""
        service = FakeEmbeddingService(dimensions=8, error=EmbeddingError("quota"))
        store = InMemoryVectorStore(small_settings(), StoreEmbedder(service))

        vector_id = await store.add_vector(DECORATORS)
        service.error = None
        results = await store.search(DECORATORS)

        assert [r.vector.id for r in results] == [vector_id]
        assert results[0].vector.source == EmbeddingSource.HASHING
        assert results[0].similarity == pytest.approx(1.0)
        assert service.texts == [DECORATORS]

    async def test_sources_compared_separately(self) -> None:
        """Each stored vector is scored against the query from its own source."""
        service = FakeEmbeddingService(dimensions=8)
        store = InMemoryVectorStore(small_settings(), StoreEmbedder(service))

        provider_id = await store.add_vector(PHYSICS)
        service.error = EmbeddingError("quota")
        hashing_id = await store.add_vector(DECORATORS)
        service.error = None

        results = await store.find_similar(DECORATORS, SimilarOptions(min_similarity=0.0))
        similarity = {r.vector.id: r.similarity for r in results}

        assert similarity[hashing_id] == pytest.approx(1.0)
        assert similarity[provider_id] == pytest.approx(1.0)


class TestQdrantVectorStore:
    """Tests for QdrantVectorStore."""

    def _create_mock_client(self, exists: bool = False) -> AsyncMock:
        """Create a mock Qdrant client."""
        client = AsyncMock()
        client.collection_exists = AsyncMock(return_value=exists)
        client.create_collection = AsyncMock()
        client.delete_collection = AsyncMock()
        client.upsert = AsyncMock()
        client.delete = AsyncMock()
        client.count = AsyncMock(return_value=MagicMock(count=1))
        client.get_collection = AsyncMock(
            return_value=MagicMock(config=MagicMock(params=MagicMock(vectors=MagicMock(size=384))))
        )
        client.scroll = AsyncMock(return_value=([], None))
        client.retrieve = AsyncMock(return_value=[])
        client.query_points = AsyncMock(return_value=MagicMock(points=[]))
        return client

    def _store(self, client: AsyncMock) -> QdrantVectorStore:
        return QdrantVectorStore(
            small_settings(),
            qdrant_settings=QdrantSettings(collection_name="test_vectors"),
            client=client,
        )

    @staticmethod
    def _payload(content: str, content_type: str = "lesson") -> dict:
        now = utc_now()
        return {
            "content": content,
            "source": "hashing",
            "title": "Stored",
            "url": "https://stored.test",
            "domain": "stored.test",
            "created_at": now.isoformat(),
            "created_ts": now.timestamp(),
            "content_type": content_type,
            "quality": "high",
            "tags": ["python"],
        }

    async def test_add_creates_collection(self) -> None:
        """The first insert creates a cosine collection sized to the vector."""
        client = self._create_mock_client(exists=False)
        store = self._store(client)

        vector_id = await store.add_vector(DECORATORS, VectorMetadata(title="Decorators"))

        client.create_collection.assert_awaited_once()
        params = client.create_collection.call_args.kwargs["vectors_config"]
        assert params.size == 384

        points = client.upsert.call_args.kwargs["points"]
        assert points[0].id == vector_id
        assert points[0].payload["title"] == "Decorators"
        assert points[0].payload["content_type"] == "document"
        assert points[0].payload["source"] == "hashing"

    async def test_existing_collection_reused(self) -> None:
        """An existing collection is not recreated."""
        client = self._create_mock_client(exists=True)

        await self._store(client).add_vector(DECORATORS)

        client.create_collection.assert_not_called()
        client.upsert.assert_awaited_once()

    async def test_dimension_mismatch(self) -> None:
        """Vectors that do not fit the collection are rejected."""
        client = self._create_mock_client(exists=True)
        store = QdrantVectorStore(
            small_settings(),
            StoreEmbedder(dimensions=16),
            QdrantSettings(collection_name="test_vectors"),
            client=client,
        )

        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_vector(DECORATORS)

        assert exc_info.value.code == ErrorCode.EMBEDDING_DIMENSION_MISMATCH
        client.upsert.assert_not_called()

    async def test_search(self) -> None:
        """Search filters in Qdrant and ranks the returned points."""
        client = self._create_mock_client(exists=True)
        point = ScoredPoint(
            id="6f1c1a8e-4c39-4d8e-9d0b-2f1b7f7d3c11",
            version=1,
            score=0.95,
            payload=self._payload(DECORATORS),
            vector=hashing_embedding(DECORATORS),
        )
        client.query_points.return_value = MagicMock(points=[point])

        results = await self._store(client).search(
            "python decorators",
            SearchOptions(limit=2, content_types=[ContentType.LESSON]),
        )

        assert len(results) == 1
        assert results[0].vector.id == point.id
        assert results[0].vector.metadata.quality == QualityLevel.HIGH
        assert results[0].similarity > 0.9

        kwargs = client.query_points.call_args.kwargs
        assert kwargs["limit"] == 2 * QdrantVectorStore.CANDIDATE_MULTIPLIER
        assert kwargs["score_threshold"] == 0.3
        assert isinstance(kwargs["query_filter"], Filter)
        assert kwargs["query_filter"].must[0].key == "content_type"
        assert kwargs["query_filter"].must[-1].key == "source"
        assert kwargs["query_filter"].must[-1].match.value == "hashing"

    async def test_search_without_collection(self) -> None:
        """Searching before any insert returns nothing."""
        client = self._create_mock_client(exists=False)

        assert await self._store(client).search("python") == []
        client.query_points.assert_not_called()

    async def test_search_queries_each_source(self) -> None:
        """With a provider, each source is queried with its own vector and filter."""
        client = self._create_mock_client(exists=True)
        point = ScoredPoint(
            id="6f1c1a8e-4c39-4d8e-9d0b-2f1b7f7d3c11",
            version=1,
            score=1.0,
            payload=self._payload(DECORATORS),
            vector=hashing_embedding(DECORATORS),
        )
        client.query_points.return_value = MagicMock(points=[point])
        service = FakeEmbeddingService(dimensions=384)
        store = QdrantVectorStore(
            small_settings(),
            StoreEmbedder(service),
            QdrantSettings(collection_name="test_vectors"),
            client=client,
        )

        results = await store.search(DECORATORS)

        calls = client.query_points.call_args_list
        assert [c.kwargs["query_filter"].must[-1].match.value for c in calls] == [
            "provider",
            "hashing",
        ]
        assert calls[0].kwargs["query"] == service.vector
        assert calls[1].kwargs["query"] == hashing_embedding(DECORATORS)
        assert len(results) == 1
        assert results[0].similarity == pytest.approx(1.0)

    async def test_find_similar_excludes_id(self) -> None:
        """Exclusion is pushed into the Qdrant filter."""
        client = self._create_mock_client(exists=True)

        await self._store(client).find_similar(
            DECORATORS, SimilarOptions(exclude_id="6f1c1a8e-4c39-4d8e-9d0b-2f1b7f7d3c11")
        )

        query_filter = client.query_points.call_args.kwargs["query_filter"]
        assert query_filter.must_not[0].has_id == ["6f1c1a8e-4c39-4d8e-9d0b-2f1b7f7d3c11"]

    async def test_get_and_remove(self) -> None:
        """Removal checks existence before deleting."""
        client = self._create_mock_client(exists=True)
        vector_id = "6f1c1a8e-4c39-4d8e-9d0b-2f1b7f7d3c11"
        client.retrieve.return_value = [
            Record(id=vector_id, payload=self._payload(DECORATORS), vector=[0.1] * 384)
        ]
        store = self._store(client)

        vector = await store.get(vector_id)
        removed = await store.remove_vector(vector_id)

        assert vector is not None and vector.content == DECORATORS
        assert removed is True
        client.delete.assert_awaited_once()

    async def test_remove_missing(self) -> None:
        """Removing an unknown id returns False without deleting."""
        client = self._create_mock_client(exists=True)

        assert await self._store(client).remove_vector("missing") is False
        client.delete.assert_not_called()

    async def test_stats(self) -> None:
        """Stats are aggregated from scrolled payloads."""
        client = self._create_mock_client(exists=True)
        client.scroll.return_value = (
            [
                Record(id="a", payload=self._payload("x" * 10, "lesson")),
                Record(id="b", payload=self._payload("y" * 30, "web")),
            ],
            None,
        )

        stats = await self._store(client).get_stats()

        assert stats.total_vectors == 2
        assert stats.content_types["lesson"] == 1
        assert stats.content_types["web"] == 1
        assert stats.average_content_length == 20
        assert stats.fallback_embeddings == 2
        assert stats.dimensions == 384

    async def test_cleanup_deletes_oldest(self) -> None:
        """Passing the threshold deletes all but the newest points."""
        client = self._create_mock_client(exists=True)
        client.count.return_value = MagicMock(count=5)
        now = utc_now()
        points = []
        for i in range(5):
            payload = self._payload(f"item {i}")
            payload["created_ts"] = (now - timedelta(days=i)).timestamp()
            points.append(Record(id=f"p{i}", payload=payload))
        client.scroll.return_value = (points, None)

        await self._store(client).add_vector(DECORATORS)

        selector = client.delete.call_args.kwargs["points_selector"]
        assert selector.points == ["p3", "p4"]

    async def test_backend_error_wrapped(self) -> None:
        """Client failures become VectorStoreError."""
        client = self._create_mock_client(exists=True)
        client.upsert.side_effect = RuntimeError("connection reset")

        with pytest.raises(VectorStoreError) as exc_info:
            await self._store(client).add_vector(DECORATORS)

        assert exc_info.value.code == ErrorCode.VECTOR_STORE_ERROR
        assert "connection reset" in exc_info.value.message

    async def test_clear(self) -> None:
        """clear() drops the collection."""
        client = self._create_mock_client(exists=True)

        await self._store(client).clear()

        client.delete_collection.assert_awaited_once_with("test_vectors")


class TestBuildVectorStore:
    """Tests for the vector store factory."""

    def test_memory_backend(self) -> None:
        """The default backend is in-memory."""
        store = build_vector_store(Settings(vector_store=small_settings()))
        assert isinstance(store, InMemoryVectorStore)
        assert store.embedder.dimensions == 384

    def test_qdrant_backend(self) -> None:
        """The qdrant backend builds a QdrantVectorStore."""
        settings = Settings(
            vector_store=small_settings().model_copy(update={"backend": StoreBackend.QDRANT})
        )
        assert isinstance(build_vector_store(settings), QdrantVectorStore)

    def test_embedding_service_sets_dimensions(self) -> None:
        """With a service, the embedder takes the service's size."""
        store = build_vector_store(
            Settings(vector_store=small_settings()), FakeEmbeddingService(dimensions=768)
        )
        assert store.embedder.dimensions == 768
