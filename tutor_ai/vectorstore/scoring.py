"""Similarity and ranking functions shared by the vector stores."""

import math
from collections.abc import Sequence
from datetime import datetime

from tutor_ai.vectorstore.models import QualityLevel, utc_now

QUALITY_BONUS = {
    QualityLevel.HIGH: 0.2,
    QualityLevel.MEDIUM: 0.1,
    QualityLevel.LOW: 0.0,
}

RECENCY_WEIGHT = 0.1

_SECONDS_PER_DAY = 24 * 60 * 60


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when the lengths differ or either vector has zero magnitude.
    """
    if len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    # sqrt of the product keeps cosine(v, v) at exactly 1.0
    magnitude = math.sqrt(norm_a * norm_b)
    if magnitude == 0:
        return 0.0
    return max(-1.0, min(1.0, dot / magnitude))


def string_hash(value: str) -> int:
    """32-bit rolling string hash (``h * 31 + code``), signed.

    Stable across processes, unlike the built-in ``hash``.
    """
    h = 0
    for char in value:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def hashing_embedding(text: str, dimensions: int = 384) -> list[float]:
    """Deterministic bag-of-words embedding.

    Each lower-cased whitespace token adds ``1 / (position + 1)`` to the
    bucket its hash selects. The result is L2-normalised, or left as the
    zero vector when there are no tokens.
    """
    vector = [0.0] * dimensions
    for index, token in enumerate(text.lower().split()):
        vector[abs(string_hash(token)) % dimensions] += 1 / (index + 1)

    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


def recency_bonus(
    created_at: datetime,
    decay_days: float = 30.0,
    now: datetime | None = None,
) -> float:
    """Linear decay from 1.0 at creation to 0.0 after ``decay_days``."""
    now = now or utc_now()
    age_days = (now - created_at).total_seconds() / _SECONDS_PER_DAY
    return max(0.0, 1.0 - age_days / decay_days)


def quality_bonus(quality: QualityLevel) -> float:
    return QUALITY_BONUS[quality]


def relevance_score(
    similarity: float,
    created_at: datetime,
    quality: QualityLevel,
    decay_days: float = 30.0,
    now: datetime | None = None,
) -> float:
    """Composite ranking: similarity + weighted recency + quality bonus."""
    return (
        similarity
        + recency_bonus(created_at, decay_days, now) * RECENCY_WEIGHT
        + quality_bonus(quality)
    )


def matches_tags(vector_tags: Sequence[str], search_tags: Sequence[str]) -> bool:
    """True if any search tag is a case-insensitive substring of a vector tag."""
    return any(
        tag.lower() in vector_tag.lower() for tag in search_tags for vector_tag in vector_tags
    )


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set overlap of two texts, in [0, 1]."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)
