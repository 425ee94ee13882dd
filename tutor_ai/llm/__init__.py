"""Multi-provider generation module."""

from tutor_ai.llm.models import (
    GenerationRequest,
    GenerationResult,
    Message,
    PromptPart,
    Provider,
    ResponseFormat,
    Role,
)
from tutor_ai.llm.prompts import PromptTemplate, render_template
from tutor_ai.llm.providers import (
    GeminiProvider,
    MercuryProvider,
    OpenAIProvider,
    ProviderAdapter,
)
from tutor_ai.llm.service import AIService
from tutor_ai.llm.structured import parse_structured_output

__all__ = [
    "AIService",
    "GeminiProvider",
    "GenerationRequest",
    "GenerationResult",
    "MercuryProvider",
    "Message",
    "OpenAIProvider",
    "PromptPart",
    "PromptTemplate",
    "Provider",
    "ProviderAdapter",
    "ResponseFormat",
    "Role",
    "parse_structured_output",
    "render_template",
]
