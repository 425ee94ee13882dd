"""Provider adapters translating unified requests to each backend."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from pydantic import ValidationError as PydanticValidationError

from tutor_ai.config import (
    GeminiSettings,
    MercurySettings,
    OpenAISettings,
    get_settings,
    has_credential,
)
from tutor_ai.exceptions import (
    CredentialMissingError,
    ProviderError,
    ProviderTimeoutError,
    ResponseShapeError,
    UpstreamHTTPError,
)
from tutor_ai.llm.models import (
    GenerationRequest,
    GenerationResult,
    ImageGenerationRequest,
    ImageGenerationResult,
    Message,
    Provider,
    ResponseFormat,
    Role,
    TokenUsage,
)
from tutor_ai.logging_config import get_logger

logger = get_logger(__name__)

# Upstream error bodies are kept in error details; cap their size.
_MAX_ERROR_BODY = 500


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Every adapter accepts a GenerationRequest and returns a GenerationResult
    tagged with its own provider, or raises a ProviderError subclass.
    """

    provider: Provider
    credential_env_vars: tuple[str, ...] = ()

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when the request does not name one."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether the adapter has a usable credential."""
        ...

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate a completion.

        Args:
            request: Provider-independent request.

        Returns:
            GenerationResult tagged with this provider.

        Raises:
            CredentialMissingError: If the credential is not configured.
            ProviderError: If the backend call fails.
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None

    def resolve_model(self, request: GenerationRequest) -> str:
        return request.model or self.default_model

    def _require_credential(self) -> None:
        if not self.is_available:
            raise CredentialMissingError(
                self.provider.value,
                list(self.credential_env_vars),
            )


class GeminiProvider(ProviderAdapter):
    """Google Gemini adapter built on the google-genai SDK."""

    provider = Provider.GEMINI
    credential_env_vars = ("GOOGLE_API_KEY", "GEMINI_API_KEY")

    def __init__(
        self,
        settings: GeminiSettings | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """Initialize the Gemini adapter.

        Args:
            settings: Gemini configuration.
            client: SDK client (for testing).
        """
        self._settings = settings or get_settings().gemini
        self._client = client

    @property
    def default_model(self) -> str:
        return self._settings.model

    @property
    def is_available(self) -> bool:
        return has_credential(self._settings.api_key)

    def _get_client(self) -> genai.Client:
        """Get or create the SDK client."""
        if self._client is None:
            api_key = self._settings.api_key
            if api_key is None:
                raise CredentialMissingError(self.provider.value, list(self.credential_env_vars))
            self._client = genai.Client(api_key=api_key.get_secret_value())
        return self._client

    async def close(self) -> None:
        self._client = None

    def build_parts(self, request: GenerationRequest) -> list[dict[str, Any]]:
        """Translate the prompt into Gemini content parts.

        Data URIs become inline bytes. Remote URLs are not fetched and are
        referenced in a text part instead.
        """
        parts: list[dict[str, Any]] = []
        for part in request.prompt_parts():
            if part.text:
                parts.append({"text": part.text})
            if part.media is None:
                continue
            if part.media.is_data_uri:
                parts.append(
                    {
                        "inline_data": {
                            "mime_type": part.media.mime_type or "application/octet-stream",
                            "data": part.media.data,
                        }
                    }
                )
            else:
                parts.append({"text": f"[Image: {part.media.url}]"})
        return parts

    def build_history(self, history: list[Message]) -> list[dict[str, Any]]:
        """Map conversation turns to Gemini's user/model vocabulary."""
        contents: list[dict[str, Any]] = []
        for message in history:
            if message.role == Role.SYSTEM:
                continue
            role = "model" if message.role in (Role.ASSISTANT, Role.MODEL) else "user"
            contents.append({"role": role, "parts": [{"text": message.content}]})
        return contents

    def build_config(self, request: GenerationRequest) -> dict[str, Any]:
        """Build the generation config dictionary."""
        config: dict[str, Any] = {}
        if request.temperature is not None:
            config["temperature"] = request.temperature
        if request.max_tokens is not None:
            config["max_output_tokens"] = request.max_tokens
        if request.top_p is not None:
            config["top_p"] = request.top_p
        if request.top_k is not None:
            config["top_k"] = request.top_k
        if request.response_format == ResponseFormat.JSON:
            config["response_mime_type"] = "application/json"

        # Gemini history has no system role; fold those turns into the instruction.
        instructions = [request.system_prompt] if request.system_prompt else []
        instructions.extend(m.content for m in request.history if m.role == Role.SYSTEM)
        if instructions:
            config["system_instruction"] = "\n\n".join(instructions)

        if request.tools:
            config["tools"] = [
                {
                    "function_declarations": [
                        {
                            "name": tool.name,
                            "description": tool.description,
                            "parameters_json_schema": tool.parameters,
                        }
                        for tool in request.tools
                    ]
                }
            ]
        return config

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate with Gemini, as a chat turn when history is present."""
        self._require_credential()
        client = self._get_client()
        model = self.resolve_model(request)

        try:
            parts = self.build_parts(request)
            config = self.build_config(request) or None
            history = self.build_history(request.history)

            if history:
                chat = client.aio.chats.create(model=model, config=config, history=history)
                call = chat.send_message(parts)
            else:
                call = client.aio.models.generate_content(
                    model=model,
                    contents=[{"role": "user", "parts": parts}],
                    config=config,
                )
            response = await asyncio.wait_for(call, timeout=self._settings.timeout)

        except TimeoutError as e:
            logger.error("Gemini request timed out", extra={"model": model})
            raise ProviderTimeoutError(self.provider.value, self._settings.timeout) from e

        except genai_errors.APIError as e:
            logger.error(f"Gemini request failed: {e.code}", extra={"model": model})
            raise UpstreamHTTPError(
                self.provider.value,
                status_code=e.code,
                body=(e.message or str(e))[:_MAX_ERROR_BODY],
            ) from e

        except Exception as e:
            logger.error(f"Gemini call error: {e}", extra={"model": model})
            raise ProviderError(
                f"gemini request failed: {e}",
                provider=self.provider.value,
                details={"model": model},
            ) from e

        try:
            usage = response.usage_metadata
            candidates = response.candidates or []
            reason = candidates[0].finish_reason if candidates else None

            return GenerationResult(
                text=response.text or "",
                provider=self.provider,
                model=model,
                usage=TokenUsage(
                    input_tokens=(usage.prompt_token_count or 0) if usage else 0,
                    output_tokens=(usage.candidates_token_count or 0) if usage else 0,
                ),
                finish_reason=str(reason.value) if reason is not None else None,
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ResponseShapeError(
                f"Invalid response from gemini: {e}",
                provider=self.provider.value,
                details={"model": model},
            ) from e


class OpenAICompatibleProvider(ProviderAdapter):
    """Adapter for OpenAI-style chat completion APIs.

    Subclasses decide how the current user turn is encoded.
    """

    def __init__(
        self,
        settings: MercurySettings | OpenAISettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            settings: Provider configuration.
            client: HTTP client (for testing).
        """
        self._settings = settings
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def default_model(self) -> str:
        return self._settings.model

    @property
    def is_available(self) -> bool:
        return has_credential(self._settings.api_key)

    @abstractmethod
    def build_user_content(self, request: GenerationRequest) -> str | list[dict[str, Any]]:
        """Encode the current prompt as message content."""
        ...

    def build_messages(self, request: GenerationRequest) -> list[dict[str, Any]]:
        """Flatten system prompt, history and current turn into messages."""
        messages: list[dict[str, Any]] = []

        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})

        for message in request.history:
            role = Role.ASSISTANT if message.role == Role.MODEL else message.role
            messages.append({"role": role.value, "content": message.content})

        messages.append({"role": "user", "content": self.build_user_content(request)})
        return messages

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        """Build the chat completions request body."""
        payload: dict[str, Any] = {
            "model": self.resolve_model(request),
            "messages": self.build_messages(request),
            "temperature": (
                request.temperature
                if request.temperature is not None
                else self._settings.temperature
            ),
            "max_tokens": request.max_tokens or self._settings.max_tokens,
        }
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in request.tools
            ]
        return payload

    async def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body and return the decoded response.

        Raises:
            UpstreamHTTPError: On a non-2xx status.
            ProviderTimeoutError: On timeout.
            ProviderError: On connection failure.
            ResponseShapeError: If the body is not a JSON object.
        """
        api_key = self._settings.api_key
        if api_key is None:
            raise CredentialMissingError(self.provider.value, list(self.credential_env_vars))
        client = await self._get_client()
        url = f"{self._settings.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key.get_secret_value()}",
        }

        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.error(f"{self.provider.value} request timed out: {e}")
            raise ProviderTimeoutError(self.provider.value, self._settings.timeout) from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text or e.response.reason_phrase
            logger.error(f"{self.provider.value} request failed: {status}")
            raise UpstreamHTTPError(
                self.provider.value,
                status_code=status,
                body=body[:_MAX_ERROR_BODY],
            ) from e

        except httpx.RequestError as e:
            logger.error(f"{self.provider.value} connection error: {e}")
            raise ProviderError(
                f"Failed to connect to {self.provider.value}: {e}",
                provider=self.provider.value,
                details={"url": url},
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseShapeError(
                f"{self.provider.value} returned a non-JSON body",
                provider=self.provider.value,
            ) from e

        if not isinstance(data, dict):
            raise ResponseShapeError(
                f"{self.provider.value} returned {type(data).__name__}, expected object",
                provider=self.provider.value,
            )
        return data

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate text using the chat completions API."""
        self._require_credential()
        payload = self.build_payload(request)
        data = await self.post_json("/chat/completions", payload)

        try:
            choice = data["choices"][0]
            message = choice["message"]
            usage = data.get("usage") or {}

            return GenerationResult(
                text=message.get("content") or "",
                provider=self.provider,
                model=data.get("model") or payload["model"],
                usage=TokenUsage(
                    input_tokens=usage.get("prompt_tokens") or 0,
                    output_tokens=usage.get("completion_tokens") or 0,
                ),
                finish_reason=choice.get("finish_reason"),
            )

        except (KeyError, IndexError, TypeError, AttributeError, PydanticValidationError) as e:
            raise ResponseShapeError(
                f"Invalid response from {self.provider.value}: {e}",
                provider=self.provider.value,
                details={"error": str(e)},
            ) from e


class MercuryProvider(OpenAICompatibleProvider):
    """Inception Labs Mercury adapter.

    Mercury is text-only: multi-part prompts are flattened to their text.
    """

    provider = Provider.MERCURY
    credential_env_vars = ("INCEPTION_API_KEY",)

    def __init__(
        self,
        settings: MercurySettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(settings or get_settings().mercury, client)

    def build_user_content(self, request: GenerationRequest) -> str:
        return request.prompt_text()


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI adapter with multimodal prompts and image generation."""

    provider = Provider.OPENAI
    credential_env_vars = ("OPENAI_API_KEY",)

    def __init__(
        self,
        settings: OpenAISettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._openai_settings = settings or get_settings().openai
        super().__init__(self._openai_settings, client)

    def build_user_content(self, request: GenerationRequest) -> str | list[dict[str, Any]]:
        if isinstance(request.prompt, str):
            return request.prompt

        content: list[dict[str, Any]] = []
        for part in request.prompt:
            if part.text:
                content.append({"type": "text", "text": part.text})
            if part.media is not None:
                content.append({"type": "image_url", "image_url": {"url": part.media.url}})
        return content

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        payload = super().build_payload(request)
        if request.response_format == ResponseFormat.JSON:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        """Generate an image with the images API.

        Raises:
            CredentialMissingError: If OPENAI_API_KEY is not configured.
            ProviderError: If the call fails.
        """
        self._require_credential()
        model = request.model or self._openai_settings.image_model
        data = await self.post_json(
            "/images/generations",
            {
                "model": model,
                "prompt": request.prompt,
                "n": 1,
                "size": request.size,
                "quality": request.quality,
                "response_format": request.response_format,
            },
        )

        try:
            item = data["data"][0]
            return ImageGenerationResult(
                url=item.get("url"),
                b64_json=item.get("b64_json"),
                revised_prompt=item.get("revised_prompt"),
                model=model,
            )
        except (KeyError, IndexError, TypeError, AttributeError, PydanticValidationError) as e:
            raise ResponseShapeError(
                f"Invalid image response from openai: {e}",
                provider=self.provider.value,
            ) from e
