"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache
from typing import Self

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values that ship in sample .env files and must not count as credentials.
PLACEHOLDER_VALUES = frozenset(
    {
        "",
        "not-required",
        "changeme",
        "change-me",
        "your-api-key",
        "your_api_key",
        "placeholder",
        "xxx",
    }
)


def has_credential(secret: SecretStr | None) -> bool:
    """Check that a credential is present and is not a placeholder.

    Args:
        secret: Secret value from settings.

    Returns:
        True if the secret looks like a real credential.
    """
    if secret is None:
        return False

    value = secret.get_secret_value().strip()
    if value.lower() in PLACEHOLDER_VALUES:
        return False
    if value.lower().startswith(("your-", "your_")):
        return False
    if value.startswith("<") and value.endswith(">"):
        return False
    return True


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class GeminiSettings(BaseSettings):
    """Google Gemini configuration.

    The API key is read from GOOGLE_API_KEY, falling back to GEMINI_API_KEY.
    """

    model_config = SettingsConfigDict(env_prefix="GEMINI_", populate_by_name=True)

    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
        description="Google AI API key",
    )
    model: str = Field(
        default="gemini-2.0-flash",
        description="Default Gemini model",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )


class MercurySettings(BaseSettings):
    """Inception Labs Mercury configuration."""

    model_config = SettingsConfigDict(env_prefix="MERCURY_", populate_by_name=True)

    api_key: SecretStr | None = Field(
        default=None,
        validation_alias="INCEPTION_API_KEY",
        description="Inception Labs API key",
    )
    base_url: str = Field(
        default="https://api.inceptionlabs.ai/v1",
        description="Mercury API base URL",
    )
    model: str = Field(
        default="mercury-coder-small",
        description="Default Mercury model",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    temperature: float = Field(
        default=0.7,
        description="Default sampling temperature",
    )
    max_tokens: int = Field(
        default=4096,
        description="Default maximum tokens in response",
    )


class OpenAISettings(BaseSettings):
    """OpenAI configuration."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API base URL",
    )
    model: str = Field(
        default="gpt-4o-mini",
        description="Default chat model",
    )
    image_model: str = Field(
        default="dall-e-3",
        description="Default image generation model",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    temperature: float = Field(
        default=0.7,
        description="Default sampling temperature",
    )
    max_tokens: int = Field(
        default=4096,
        description="Default maximum tokens in response",
    )


class AISettings(BaseSettings):
    """Generation orchestrator configuration."""

    model_config = SettingsConfigDict(env_prefix="AI_")

    default_provider: str = Field(
        default="gemini",
        description="Provider used when a request does not name one",
    )
    fallback_enabled: bool = Field(
        default=True,
        description="Try other configured providers when one fails",
    )
    fallback_order: list[str] = Field(
        default_factory=lambda: ["gemini", "mercury", "openai"],
        description="Fixed provider priority for fallback",
    )


class EmbeddingBackend(str, Enum):
    """Where real embeddings come from."""

    GEMINI = "gemini"
    HTTP = "http"
    NONE = "none"


class EmbeddingSettings(BaseSettings):
    """Embedding service configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    provider: EmbeddingBackend = Field(
        default=EmbeddingBackend.GEMINI,
        description="Embedding backend (gemini, http, none)",
    )
    model: str = Field(
        default="text-embedding-004",
        description="Embedding model name",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the HTTP embedding backend",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key for the HTTP embedding backend",
    )
    timeout: float = Field(
        default=30.0,
        description="Embedding request timeout in seconds",
    )
    max_input_length: int = Field(
        default=8000,
        description="Maximum characters sent to the embedding model",
    )


class StoreBackend(str, Enum):
    """Vector store backend."""

    MEMORY = "memory"
    QDRANT = "qdrant"


class VectorStoreSettings(BaseSettings):
    """Vector store configuration."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_STORE_")

    backend: StoreBackend = Field(
        default=StoreBackend.MEMORY,
        description="Vector store backend",
    )
    max_vectors: int = Field(
        default=1000,
        description="Vectors kept after a cleanup",
    )
    cleanup_threshold: int = Field(
        default=1100,
        description="Store size that triggers a cleanup",
    )
    content_max_length: int = Field(
        default=2000,
        description="Maximum stored content length",
    )
    embedding_dimensions: int = Field(
        default=384,
        description="Dimensions of the hashing fallback embedding",
    )
    recency_decay_days: float = Field(
        default=30.0,
        description="Days until the recency bonus reaches zero",
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> Self:
        if self.cleanup_threshold <= self.max_vectors:
            raise ValueError(
                f"cleanup_threshold ({self.cleanup_threshold}) must be greater "
                f"than max_vectors ({self.max_vectors})"
            )
        return self


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="tutor_vectors",
        description="Collection holding indexed content",
    )


class SearchSettings(BaseSettings):
    """Semantic search service configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    batch_size: int = Field(
        default=10,
        description="Items indexed concurrently per batch",
    )
    batch_delay: float = Field(
        default=0.1,
        description="Pause between batches in seconds",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    ai: AISettings = Field(default_factory=AISettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    mercury: MercurySettings = Field(default_factory=MercurySettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
