"""LLM data models."""

import base64
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """Supported generation backends."""

    GEMINI = "gemini"
    MERCURY = "mercury"
    OPENAI = "openai"


DEFAULT_FALLBACK_ORDER: tuple[Provider, ...] = (
    Provider.GEMINI,
    Provider.MERCURY,
    Provider.OPENAI,
)


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    MODEL = "model"


class Message(BaseModel):
    """A message in a conversation.

    Attributes:
        role: The role of the message sender.
        content: The message content.
    """

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Message role")
    content: str = Field(description="Message content")


class MediaReference(BaseModel):
    """Reference to an image attached to a prompt.

    Either a ``data:`` URI with base64 payload or a plain URL.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Data URI or remote URL")

    @property
    def is_data_uri(self) -> bool:
        return self.url.startswith("data:")

    @property
    def mime_type(self) -> str | None:
        """MIME type declared by a data URI."""
        if not self.is_data_uri:
            return None
        header = self.url.split(",", 1)[0]
        return header[len("data:") :].split(";", 1)[0] or None

    @property
    def data(self) -> bytes | None:
        """Decoded payload of a base64 data URI."""
        if not self.is_data_uri or "," not in self.url:
            return None
        return base64.b64decode(self.url.split(",", 1)[1])


class PromptPart(BaseModel):
    """One element of a multi-part prompt."""

    model_config = ConfigDict(frozen=True)

    text: str | None = Field(default=None, description="Text content")
    media: MediaReference | None = Field(default=None, description="Attached media")


class ToolDefinition(BaseModel):
    """Function the model may call."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Function name")
    description: str = Field(default="", description="What the function does")
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the arguments",
    )


class ResponseFormat(str, Enum):
    """Requested response format."""

    TEXT = "text"
    JSON = "json"


class GenerationRequest(BaseModel):
    """Provider-independent generation request.

    Immutable; fallback attempts derive new requests with ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str | list[PromptPart] = Field(description="Text or multi-part prompt")
    provider: Provider | None = Field(default=None, description="Provider override")
    model: str | None = Field(default=None, description="Model override")
    system_prompt: str | None = Field(default=None, description="System instruction")
    history: list[Message] = Field(
        default_factory=list,
        description="Earlier conversation turns, oldest first",
    )
    tools: list[ToolDefinition] = Field(default_factory=list, description="Callable tools")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    top_k: int | None = Field(default=None, gt=0)
    response_format: ResponseFormat = Field(default=ResponseFormat.TEXT)
    disable_fallback: bool = Field(
        default=False,
        description="Propagate the first failure instead of trying other providers",
    )

    def prompt_parts(self) -> list[PromptPart]:
        """Prompt as a list of parts."""
        if isinstance(self.prompt, str):
            return [PromptPart(text=self.prompt)]
        return list(self.prompt)

    def prompt_text(self, separator: str = "\n") -> str:
        """Text content of the prompt, media dropped."""
        if isinstance(self.prompt, str):
            return self.prompt
        return separator.join(part.text for part in self.prompt if part.text)

    def with_appended_text(self, text: str) -> "GenerationRequest":
        """Copy of the request with ``text`` added to the end of the prompt."""
        if isinstance(self.prompt, str):
            prompt: str | list[PromptPart] = f"{self.prompt}\n\n{text}"
        else:
            prompt = [*self.prompt, PromptPart(text=text)]
        return self.model_copy(update={"prompt": prompt})


class TokenUsage(BaseModel):
    """Token counts reported by a provider."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, description="Prompt token count")
    output_tokens: int = Field(default=0, description="Completion token count")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerationResult(BaseModel):
    """Result from a generation call.

    Attributes:
        text: The generated text.
        provider: Provider that actually served the request.
        model: Model used for generation.
        usage: Token usage.
        finish_reason: Provider finish reason, when reported.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Generated text")
    provider: Provider = Field(description="Provider that served the request")
    model: str = Field(description="Model used")
    usage: TokenUsage = Field(default_factory=TokenUsage)
    finish_reason: str | None = Field(default=None, description="Finish reason")


class ImageGenerationRequest(BaseModel):
    """Request for an image from the OpenAI images endpoint."""

    model_config = ConfigDict(frozen=True)

    prompt: str = Field(description="Image description")
    model: str | None = Field(default=None, description="Model override")
    size: str = Field(default="1024x1024", description="Image size")
    quality: str = Field(default="standard", description="Image quality")
    response_format: str = Field(default="url", description="url or b64_json")


class ImageGenerationResult(BaseModel):
    """Generated image."""

    url: str | None = Field(default=None, description="Hosted image URL")
    b64_json: str | None = Field(default=None, description="Base64 image payload")
    revised_prompt: str | None = Field(default=None, description="Prompt used by the model")
    model: str = Field(description="Model used")
