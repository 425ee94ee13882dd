"""Decoding of JSON emitted by language models."""

import json
import re
from typing import Any

from tutor_ai.exceptions import StructuredOutputError

JSON_ONLY_INSTRUCTION = "Respond with valid JSON only."

EXCERPT_LENGTH = 200

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCED_ANY = re.compile(r"```\s*([\s\S]*?)\s*```")


def extract_fenced_json(text: str) -> str | None:
    """Return the body of the first ```json fence, or of a bare fence."""
    match = _FENCED_JSON.search(text) or _FENCED_ANY.search(text)
    return match.group(1) if match else None


def parse_structured_output(text: str) -> Any:
    """Parse model output as JSON.

    Tries the raw text first, then the first fenced code block.

    Args:
        text: Raw model output.

    Returns:
        Decoded JSON value.

    Raises:
        StructuredOutputError: If neither attempt yields valid JSON.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fenced = extract_fenced_json(text)
    if fenced is not None:
        try:
            return json.loads(fenced)
        except json.JSONDecodeError as e:
            raise StructuredOutputError(
                text[:EXCERPT_LENGTH],
                details={"reason": f"fenced block is not valid JSON: {e.msg}"},
            ) from e

    raise StructuredOutputError(text[:EXCERPT_LENGTH])
