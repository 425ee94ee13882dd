"""Embedding computation for vector stores with hashing fallback."""

from collections.abc import Collection

from tutor_ai.embeddings.payload import clean_text
from tutor_ai.embeddings.service import EmbeddingService
from tutor_ai.exceptions import TutorAIError
from tutor_ai.logging_config import get_logger
from tutor_ai.observability.metrics import track_embedding_fallback
from tutor_ai.vectorstore.models import EmbeddingSource
from tutor_ai.vectorstore.scoring import hashing_embedding

logger = get_logger(__name__)


class StoreEmbedder:
    """Turns text into vectors for a single store.

    Calls the configured embedding service and degrades to the hashing
    embedding on any failure, so indexing never fails because of the
    embedding backend. The hashing embedding is sized to the service's
    dimensionality, but the two sources are separate spaces: stored vectors
    are only ever compared with a query embedded by the same source.
    """

    def __init__(
        self,
        service: EmbeddingService | None = None,
        dimensions: int = 384,
        max_input_length: int = 8000,
    ) -> None:
        """Initialize the embedder.

        Args:
            service: Real embedding backend. Hashing only when None.
            dimensions: Hashing dimensionality when no service is set.
            max_input_length: Characters sent to the service.
        """
        self._service = service
        self._max_input_length = max_input_length
        self._dimensions = service.dimensions if service is not None else dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def service(self) -> EmbeddingService | None:
        return self._service

    async def embed(self, text: str) -> tuple[list[float], EmbeddingSource]:
        """Embed ``text`` for storage.

        Returns:
            The vector and where it came from.
        """
        if self._service is None:
            return self._hashing(text), EmbeddingSource.HASHING

        try:
            vector = await self._provider_embedding(self._service, text)
            return vector, EmbeddingSource.PROVIDER
        except _FallbackError as e:
            self._log_fallback(e.reason, e.message)
            return self._hashing(text), EmbeddingSource.HASHING

    async def embed_query(
        self, text: str, sources: Collection[EmbeddingSource]
    ) -> dict[EmbeddingSource, list[float]]:
        """Embed ``text`` once per requested source.

        The provider embedding is left out when there is no service or the
        service fails; the hashing embedding is always available.

        Args:
            text: Query text.
            sources: Sources of the stored vectors the query is compared to.

        Returns:
            Query vectors keyed by source.
        """
        embeddings: dict[EmbeddingSource, list[float]] = {}
        if EmbeddingSource.PROVIDER in sources and self._service is not None:
            try:
                embeddings[EmbeddingSource.PROVIDER] = await self._provider_embedding(
                    self._service, text
                )
            except _FallbackError as e:
                self._log_fallback(e.reason, e.message)
        if EmbeddingSource.HASHING in sources:
            embeddings[EmbeddingSource.HASHING] = self._hashing(text)
        return embeddings

    async def _provider_embedding(self, service: EmbeddingService, text: str) -> list[float]:
        try:
            result = await service.embed(clean_text(text, self._max_input_length))
        except TutorAIError as e:
            raise _FallbackError(e.code.value, str(e)) from e
        except Exception as e:
            raise _FallbackError(type(e).__name__, str(e)) from e

        if result.dimensions != self._dimensions:
            raise _FallbackError(
                "dimension_mismatch",
                f"expected {self._dimensions} dimensions, got {result.dimensions}",
            )
        return result.embedding

    def _hashing(self, text: str) -> list[float]:
        return hashing_embedding(text, self._dimensions)

    def _log_fallback(self, reason: str, message: str) -> None:
        logger.warning(
            f"Embedding generation failed, using hashing fallback: {message}",
            extra={"reason": reason, "model": self._service.model_name if self._service else None},
        )
        track_embedding_fallback(reason)

    async def close(self) -> None:
        if self._service is not None:
            await self._service.close()


class _FallbackError(Exception):
    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
