"""Cosine distance between embedding vectors."""

import math


def cosine_distance(a: list[float], b: list[float]) -> float:
    """Return ``1 - cosine_similarity(a, b)``. Zero vectors are maximally unrelated."""
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")
    dot = math.fsum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 1.0
    return 1.0 - dot / (norm_a * norm_b)
