# src/meal_image_mapper/matching/similarity.py
from __future__ import annotations

"""
similarity.py

Purpose:
    The two scorers used by the match selector:
      - cosine_similarity: embedding vs embedding, range [-1, 1]
      - text_similarity: Jaccard index over normalized word sets, range [0, 1]

Both are pure functions; no logging on the hot path.
"""

import math
import re
from typing import FrozenSet, Sequence

_NON_WORD = re.compile(r"[^a-z0-9\s]")


class VectorLengthMismatchError(ValueError):
    """Embedding vectors of different lengths were compared."""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    dot(a, b) / (|a| * |b|).

    Raises:
        VectorLengthMismatchError: when len(a) != len(b).

    Returns 0.0 (never NaN) when either vector has zero norm.
    """
    if len(a) != len(b):
        raise VectorLengthMismatchError(f"Vector length mismatch: {len(a)} vs {len(b)}")

    dot = 0.0
    na = 0.0
    nb = 0.0
    for x, y in zip(a, b):
        dot += float(x) * float(y)
        na += float(x) * float(x)
        nb += float(y) * float(y)

    magnitude = math.sqrt(na) * math.sqrt(nb)
    if magnitude == 0:
        return 0.0
    return dot / magnitude


def normalize_words(text: str) -> FrozenSet[str]:
    """Lower-case, drop everything but [a-z0-9] and whitespace, split into a word set."""
    cleaned = _NON_WORD.sub("", (text or "").lower())
    return frozenset(cleaned.split())


def text_similarity(text1: str, text2: str) -> float:
    """
    Jaccard similarity of the two normalized word sets.

    1.0 when both sets are empty, 0.0 when exactly one is.
    """
    words1 = normalize_words(text1)
    words2 = normalize_words(text2)

    if not words1 and not words2:
        return 1.0
    if not words1 or not words2:
        return 0.0

    return len(words1 & words2) / len(words1 | words2)
