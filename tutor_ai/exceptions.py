"""Application exception hierarchy.

All custom exceptions inherit from TutorAIError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "TAI-1000"
    CONFIGURATION_ERROR = "TAI-1001"
    VALIDATION_ERROR = "TAI-1002"

    # Provider errors (2xxx)
    PROVIDER_ERROR = "TAI-2000"
    CREDENTIAL_MISSING = "TAI-2001"
    UPSTREAM_HTTP_ERROR = "TAI-2002"
    PROVIDER_RATE_LIMIT = "TAI-2003"
    PROVIDER_TIMEOUT = "TAI-2004"
    RESPONSE_SHAPE_ERROR = "TAI-2005"
    ALL_PROVIDERS_FAILED = "TAI-2006"
    STRUCTURED_OUTPUT_ERROR = "TAI-2007"
    UNKNOWN_PROVIDER = "TAI-2008"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "TAI-3000"

    # Vector store errors (4xxx)
    VECTOR_STORE_ERROR = "TAI-4000"
    VECTOR_NOT_FOUND = "TAI-4001"
    EMBEDDING_DIMENSION_MISMATCH = "TAI-4002"

    # Search errors (5xxx)
    SEARCH_ERROR = "TAI-5000"
    INDEXING_ERROR = "TAI-5001"


class TutorAIError(Exception):
    """Base exception for all Tutor AI errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(TutorAIError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(TutorAIError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class ProviderError(TutorAIError):
    """Failure inside a single provider adapter.

    Attributes:
        provider: Name of the provider that failed.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.provider = provider
        super().__init__(message, code, {"provider": provider, **(details or {})})


class CredentialMissingError(ProviderError):
    """Provider credential is absent or a placeholder."""

    def __init__(self, provider: str, env_vars: list[str]) -> None:
        super().__init__(
            f"{provider} API key not set. Set {' or '.join(env_vars)}.",
            provider=provider,
            code=ErrorCode.CREDENTIAL_MISSING,
            details={"env_vars": env_vars},
        )


class UpstreamHTTPError(ProviderError):
    """Provider answered with a non-2xx status."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.body = body
        code = (
            ErrorCode.PROVIDER_RATE_LIMIT
            if status_code == 429
            else ErrorCode.UPSTREAM_HTTP_ERROR
        )
        super().__init__(
            f"{provider} API error: {status_code} {body}".rstrip(),
            provider=provider,
            code=code,
            details={"status_code": status_code, "body": body},
        )


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its timeout."""

    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(
            f"{provider} request timed out after {timeout}s",
            provider=provider,
            code=ErrorCode.PROVIDER_TIMEOUT,
            details={"timeout": timeout},
        )


class ResponseShapeError(ProviderError):
    """Provider response did not have the expected structure."""

    def __init__(
        self,
        message: str,
        provider: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            provider=provider,
            code=ErrorCode.RESPONSE_SHAPE_ERROR,
            details=details,
        )


class AllProvidersFailedError(TutorAIError):
    """Primary provider and every fallback candidate failed."""

    def __init__(
        self,
        original: TutorAIError,
        attempted: list[str],
        errors: dict[str, str] | None = None,
    ) -> None:
        self.original = original
        self.attempted = attempted
        super().__init__(
            f"All AI providers failed. Original error: {original.message}",
            ErrorCode.ALL_PROVIDERS_FAILED,
            {"attempted": attempted, "errors": errors or {}},
        )


class StructuredOutputError(TutorAIError):
    """Model output could not be decoded as JSON."""

    def __init__(
        self,
        excerpt: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.excerpt = excerpt
        super().__init__(
            f"Could not parse structured output: {excerpt}",
            ErrorCode.STRUCTURED_OUTPUT_ERROR,
            {"excerpt": excerpt, **(details or {})},
        )


class EmbeddingError(TutorAIError):
    """Embedding service error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreError(TutorAIError):
    """Vector store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class SearchError(TutorAIError):
    """Semantic search operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SEARCH_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
