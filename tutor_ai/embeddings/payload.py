"""Normalisation of embedding responses and input text."""

import re
from typing import Any

from tutor_ai.embeddings.models import EmbeddingPayload, EmbeddingPayloadKind
from tutor_ai.exceptions import ResponseShapeError

_DISALLOWED_CHARS = re.compile(r"[^\w\s.,!?-]")
_WHITESPACE = re.compile(r"\s+")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_vector(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0 and all(_is_number(v) for v in value)


def classify_embedding_payload(payload: Any, source: str = "embedding") -> EmbeddingPayloadKind:
    """Identify which response shape ``payload`` has.

    Raises:
        ResponseShapeError: If the shape is not one of the known kinds.
    """
    if isinstance(payload, list) and payload:
        if all(_is_number(v) for v in payload):
            return EmbeddingPayloadKind.VECTOR
        if isinstance(payload[0], dict) and "embedding" in payload[0]:
            return EmbeddingPayloadKind.OBJECT_LIST
    elif isinstance(payload, dict) and "embedding" in payload:
        return EmbeddingPayloadKind.OBJECT

    raise ResponseShapeError(
        f"Unrecognized embedding response shape: {type(payload).__name__}",
        provider=source,
        details={"payload_type": type(payload).__name__},
    )


def parse_embedding_payload(payload: Any, source: str = "embedding") -> EmbeddingPayload:
    """Normalise an embedding response to one vector.

    Accepts a bare number list, a list of ``{"embedding": [...]}`` objects
    (the first is used) or a single ``{"embedding": [...]}`` object.

    Args:
        payload: Decoded response.
        source: Backend name used in error messages.

    Returns:
        EmbeddingPayload with the detected kind and vector.

    Raises:
        ResponseShapeError: If the shape is unknown or the vector is empty
            or not numeric.
    """
    kind = classify_embedding_payload(payload, source)

    if kind == EmbeddingPayloadKind.VECTOR:
        vector = payload
    elif kind == EmbeddingPayloadKind.OBJECT_LIST:
        vector = payload[0]["embedding"]
    else:
        vector = payload["embedding"]

    if not _is_vector(vector):
        raise ResponseShapeError(
            f"Embedding in {kind.value} response is not a non-empty number list",
            provider=source,
            details={"kind": kind.value},
        )

    return EmbeddingPayload(kind=kind, vector=[float(v) for v in vector])


def clean_text(text: str, max_length: int = 8000) -> str:
    """Prepare text for an embedding request.

    Drops characters outside word characters, whitespace and basic
    punctuation, collapses whitespace and truncates.
    """
    collapsed = _WHITESPACE.sub(" ", text)
    stripped = _DISALLOWED_CHARS.sub("", collapsed)
    return stripped.strip()[:max_length]
