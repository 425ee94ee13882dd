"""Generation orchestrator with ordered provider fallback."""

import time
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from tutor_ai.config import AISettings, Settings, get_settings
from tutor_ai.exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    ErrorCode,
    ProviderError,
    StructuredOutputError,
)
from tutor_ai.llm.models import (
    GenerationRequest,
    GenerationResult,
    ImageGenerationRequest,
    ImageGenerationResult,
    Provider,
    ResponseFormat,
)
from tutor_ai.llm.providers import (
    GeminiProvider,
    MercuryProvider,
    OpenAIProvider,
    ProviderAdapter,
)
from tutor_ai.llm.structured import JSON_ONLY_INSTRUCTION, parse_structured_output
from tutor_ai.logging_config import get_logger
from tutor_ai.observability.metrics import track_fallback, track_provider_request

logger = get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _parse_provider(value: str | Provider) -> Provider:
    try:
        return Provider(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown provider: {value}",
            details={"provider": str(value), "known": [p.value for p in Provider]},
        ) from e


def build_default_providers(settings: Settings | None = None) -> dict[Provider, ProviderAdapter]:
    """Construct one adapter per provider from settings."""
    settings = settings or get_settings()
    return {
        Provider.GEMINI: GeminiProvider(settings.gemini),
        Provider.MERCURY: MercuryProvider(settings.mercury),
        Provider.OPENAI: OpenAIProvider(settings.openai),
    }


class AIService:
    """Unified generation entry point over Gemini, Mercury and OpenAI.

    Resolves the target provider, invokes its adapter and, when the adapter
    fails, walks the fixed fallback order over the remaining configured
    providers. Instances are constructed by the hosting application; there
    is no module-level instance.
    """

    def __init__(
        self,
        settings: AISettings | None = None,
        providers: dict[Provider, ProviderAdapter] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Orchestrator configuration.
            providers: Adapters by provider. Built from settings if omitted.
        """
        self._settings = settings or get_settings().ai
        self._providers = providers if providers is not None else build_default_providers()
        self._default_provider = _parse_provider(self._settings.default_provider)
        self._fallback_order = [_parse_provider(p) for p in self._settings.fallback_order]

    @property
    def default_provider(self) -> Provider:
        return self._default_provider

    @default_provider.setter
    def default_provider(self, provider: Provider | str) -> None:
        self._default_provider = _parse_provider(provider)

    def set_default_provider(self, provider: Provider | str) -> None:
        """Change the provider used when a request does not name one."""
        self.default_provider = provider

    @property
    def fallback_order(self) -> list[Provider]:
        return list(self._fallback_order)

    def is_available(self, provider: Provider) -> bool:
        """Whether the provider has an adapter with a usable credential."""
        adapter = self._providers.get(provider)
        return adapter is not None and adapter.is_available

    def available_providers(self) -> list[Provider]:
        """Configured providers in fallback order."""
        return [p for p in self._fallback_order if self.is_available(p)]

    def fallback_candidates(self, failed: Provider) -> list[Provider]:
        """Providers to try after ``failed``, in priority order."""
        return [p for p in self._fallback_order if p != failed and self.is_available(p)]

    def _adapter(self, provider: Provider) -> ProviderAdapter:
        adapter = self._providers.get(provider)
        if adapter is None:
            raise ProviderError(
                f"Unknown provider: {provider.value}",
                provider=provider.value,
                code=ErrorCode.UNKNOWN_PROVIDER,
            )
        return adapter

    async def _invoke(self, provider: Provider, request: GenerationRequest) -> GenerationResult:
        """Call one adapter and record metrics."""
        adapter = self._adapter(provider)
        start = time.perf_counter()
        try:
            result = await adapter.generate(request)
        except ProviderError:
            track_provider_request(provider.value, time.perf_counter() - start, success=False)
            raise
        except Exception as e:
            track_provider_request(provider.value, time.perf_counter() - start, success=False)
            raise ProviderError(
                f"{provider.value} request failed: {e}",
                provider=provider.value,
                details={"error_type": type(e).__name__},
            ) from e

        track_provider_request(
            provider.value,
            time.perf_counter() - start,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
        )
        return result

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate text, falling back to other providers on failure.

        Args:
            request: Generation request.

        Returns:
            Result from the requested provider or the first fallback that
            succeeded; ``result.provider`` names the one that served it.

        Raises:
            ProviderError: If the provider fails and fallback is disabled or
                no other provider is configured.
            AllProvidersFailedError: If every fallback candidate failed too.
        """
        provider = request.provider or self._default_provider

        logger.info(
            f"Generating with {provider.value}",
            extra={"provider": provider.value, "model": request.model},
        )

        try:
            result = await self._invoke(provider, request)
        except ProviderError as error:
            logger.warning(
                f"Provider {provider.value} failed: {error.message}",
                extra={"provider": provider.value, "error_code": error.code.value},
            )

            if request.disable_fallback or not self._settings.fallback_enabled:
                logger.info("Fallback disabled, propagating error")
                raise

            candidates = self.fallback_candidates(provider)
            if not candidates:
                logger.info("No fallback providers configured, propagating error")
                raise

            return await self._generate_with_fallback(provider, request, error, candidates)

        logger.info(
            f"Generation succeeded with {provider.value}",
            extra={"provider": provider.value, "tokens": result.usage.total_tokens},
        )
        return result

    async def _generate_with_fallback(
        self,
        failed: Provider,
        request: GenerationRequest,
        original: ProviderError,
        candidates: list[Provider],
    ) -> GenerationResult:
        """Try each candidate once, without the original model override."""
        errors: dict[str, str] = {failed.value: original.message}

        for candidate in candidates:
            logger.info(
                f"Falling back from {failed.value} to {candidate.value}",
                extra={"from_provider": failed.value, "to_provider": candidate.value},
            )
            fallback_request = request.model_copy(update={"provider": candidate, "model": None})

            try:
                result = await self._invoke(candidate, fallback_request)
            except ProviderError as error:
                logger.warning(
                    f"Fallback provider {candidate.value} failed: {error.message}",
                    extra={"provider": candidate.value, "error_code": error.code.value},
                )
                errors[candidate.value] = error.message
                continue

            track_fallback(failed.value, candidate.value)
            logger.info(
                f"Fallback to {candidate.value} succeeded",
                extra={"provider": candidate.value, "tokens": result.usage.total_tokens},
            )
            return result

        logger.error(
            "All providers failed",
            extra={"attempted": [failed.value, *(c.value for c in candidates)]},
        )
        raise AllProvidersFailedError(
            original,
            attempted=[failed.value, *(c.value for c in candidates)],
            errors=errors,
        ) from original

    async def generate_with(
        self,
        provider: Provider | str,
        request: GenerationRequest,
    ) -> GenerationResult:
        """Generate with an explicit provider."""
        return await self.generate(
            request.model_copy(update={"provider": _parse_provider(provider)})
        )

    async def generate_structured(self, request: GenerationRequest) -> Any:
        """Generate and decode a JSON response.

        The response format is forced to JSON and an instruction asking for
        JSON only is appended to the prompt.

        Raises:
            StructuredOutputError: If the output cannot be decoded.
        """
        structured_request = request.with_appended_text(JSON_ONLY_INSTRUCTION).model_copy(
            update={"response_format": ResponseFormat.JSON}
        )
        result = await self.generate(structured_request)
        return parse_structured_output(result.text)

    async def generate_with_schema(
        self,
        request: GenerationRequest,
        schema: type[SchemaT],
    ) -> SchemaT:
        """Generate structured output validated against a pydantic model.

        Raises:
            StructuredOutputError: If decoding or validation fails.
        """
        data = await self.generate_structured(request)
        try:
            return schema.model_validate(data)
        except pydantic.ValidationError as e:
            raise StructuredOutputError(
                str(data)[:200],
                details={"schema": schema.__name__, "errors": e.errors(include_url=False)},
            ) from e

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        """Generate an image with the OpenAI adapter."""
        adapter = self._adapter(Provider.OPENAI)
        if not isinstance(adapter, OpenAIProvider):
            raise ConfigurationError("Image generation requires the OpenAI adapter")
        return await adapter.generate_image(request)

    async def close(self) -> None:
        """Close every adapter."""
        for adapter in self._providers.values():
            await adapter.close()
