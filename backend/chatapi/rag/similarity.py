from __future__ import annotations

import math
from typing import Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two equal-length vectors.

    Identical vectors and positively scaled copies score 1.0. Vectors of
    different length are rejected instead of silently truncated. A zero vector
    has no direction, so it scores 0.0 against anything.
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length (got {len(a)} and {len(b)})")
    if len(a) == 0:
        raise ValueError("Vectors must not be empty")

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        x = float(x)
        y = float(y)
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    # Clamp float noise into the valid cosine range.
    return max(-1.0, min(1.0, dot / math.sqrt(norm_a * norm_b)))


def score_from_cosine_distance(distance: float | None) -> float:
    """
    pgvector `<=>` distance -> cosine similarity.

    pgvector returns NaN when either side is a zero vector; that scores 0.0,
    matching `cosine_similarity`.
    """
    if distance is None:
        return 0.0
    d = float(distance)
    if not math.isfinite(d):
        return 0.0
    return max(-1.0, min(1.0, 1.0 - d))
