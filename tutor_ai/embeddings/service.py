"""Embedding service interface and implementations."""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from google import genai

from tutor_ai.config import (
    EmbeddingBackend,
    EmbeddingSettings,
    Settings,
    get_settings,
    has_credential,
)
from tutor_ai.embeddings.models import EmbeddingResult
from tutor_ai.embeddings.payload import parse_embedding_payload
from tutor_ai.exceptions import EmbeddingError, ErrorCode
from tutor_ai.logging_config import get_logger
from tutor_ai.observability.metrics import track_embedding_request

logger = get_logger(__name__)

# Known model dimensions
MODEL_DIMENSIONS = {
    "text-embedding-004": 768,
    "gemini-embedding-001": 3072,
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}

DEFAULT_DIMENSIONS = 768


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Defines the interface for generating text embeddings.
    """

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.

        Returns:
            EmbeddingResult with vector.

        Raises:
            EmbeddingError: If the request fails.
            ResponseShapeError: If the response shape is not recognised.
        """
        ...

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts, one request each."""
        return [await self.embed(text) for text in texts]

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        return MODEL_DIMENSIONS.get(self.model_name, DEFAULT_DIMENSIONS)

    async def close(self) -> None:
        """Release network resources."""
        return None

    def _result(self, text: str, payload: Any) -> EmbeddingResult:
        vector = parse_embedding_payload(payload, source=self.model_name).vector
        return EmbeddingResult(
            text=text,
            embedding=vector,
            model=self.model_name,
            dimensions=len(vector),
        )


class GeminiEmbeddingService(EmbeddingService):
    """Embeddings from the Gemini API via google-genai."""

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        api_key: str | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """Initialize the Gemini embedding service.

        Args:
            settings: Embedding configuration.
            api_key: Google API key. Read from Gemini settings if omitted.
            client: SDK client (for testing).
        """
        self._settings = settings or get_settings().embedding
        self._api_key = api_key
        self._client = client

    @property
    def model_name(self) -> str:
        return self._settings.model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            api_key = self._api_key
            if api_key is None:
                secret = get_settings().gemini.api_key
                api_key = secret.get_secret_value() if secret else None
            if not api_key:
                raise EmbeddingError(
                    "Gemini embeddings need GOOGLE_API_KEY or GEMINI_API_KEY",
                    code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                )
            self._client = genai.Client(api_key=api_key)
        return self._client

    async def close(self) -> None:
        self._client = None

    async def embed(self, text: str) -> EmbeddingResult:
        client = self._get_client()
        start = time.perf_counter()

        try:
            response = await asyncio.wait_for(
                client.aio.models.embed_content(model=self.model_name, contents=text),
                timeout=self._settings.timeout,
            )
        except Exception as e:
            track_embedding_request(self.model_name, time.perf_counter() - start, success=False)
            raise EmbeddingError(
                f"Gemini embedding request failed: {e}",
                details={"model": self.model_name},
            ) from e

        track_embedding_request(self.model_name, time.perf_counter() - start)
        payload = [{"embedding": list(item.values or [])} for item in response.embeddings or []]
        return self._result(text, payload)


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using an OpenAI-style HTTP API.

    The ``data`` array of the response is unwrapped when present; other
    bodies are handed to the payload parser as-is.
    """

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        return self._settings.model

    async def embed(self, text: str) -> EmbeddingResult:
        client = await self._get_client()
        url = f"{self._settings.base_url}/embeddings"
        headers = {}
        if self._settings.api_key is not None:
            headers["Authorization"] = f"Bearer {self._settings.api_key.get_secret_value()}"

        start = time.perf_counter()
        try:
            response = await client.post(
                url,
                json={"input": text, "model": self.model_name},
                headers=headers,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            track_embedding_request(self.model_name, time.perf_counter() - start, success=False)
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"Embedding service returned {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            track_embedding_request(self.model_name, time.perf_counter() - start, success=False)
            logger.error(f"Embedding request error: {e}", extra={"url": url})
            raise EmbeddingError(
                f"Failed to connect to embedding service: {e}",
                details={"url": url},
            ) from e
        except ValueError as e:
            track_embedding_request(self.model_name, time.perf_counter() - start, success=False)
            raise EmbeddingError(
                "Embedding service returned a non-JSON body",
                details={"url": url},
            ) from e

        track_embedding_request(self.model_name, time.perf_counter() - start)
        payload = data["data"] if isinstance(data, dict) and "data" in data else data
        return self._result(text, payload)


def build_embedding_service(settings: Settings | None = None) -> EmbeddingService | None:
    """Create the configured embedding service.

    Returns None when embeddings are disabled or the Gemini backend has no
    credential, in which case stores use hashing embeddings only.
    """
    settings = settings or get_settings()
    backend = settings.embedding.provider

    if backend == EmbeddingBackend.NONE:
        return None

    if backend == EmbeddingBackend.GEMINI:
        secret = settings.gemini.api_key
        if secret is None or not has_credential(secret):
            logger.info("No Gemini credential, using hashing embeddings only")
            return None
        return GeminiEmbeddingService(settings.embedding, api_key=secret.get_secret_value())

    return HTTPEmbeddingService(settings.embedding)
