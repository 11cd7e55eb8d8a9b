"""Cosine similarity and embedding vector helpers."""
import math
from numbers import Real
from typing import Optional, Sequence, Tuple

import numpy as np

from docqa.errors import DimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    A zero-magnitude vector has no direction, so any comparison involving one
    scores 0.0 instead of NaN.

    Args:
        a: First vector
        b: Second vector, same length as ``a``

    Returns:
        Similarity in [-1, 1]

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    # Parallel vectors of different magnitude must tie; round-off can also
    # leave |score| a hair above 1
    score = round(float(np.dot(va / norm_a, vb / norm_b)), 12)
    return max(-1.0, min(1.0, score))


def validate_embedding(
    embedding, expected_dimension: Optional[int] = None
) -> Tuple[bool, Optional[str]]:
    """Check that a provider response looks like a usable embedding.

    Args:
        embedding: Candidate vector
        expected_dimension: Required length, if known

    Returns:
        Tuple of (valid, error message or None)
    """
    if not isinstance(embedding, (list, tuple)):
        return False, "Embedding must be a list of numbers"

    if len(embedding) == 0:
        return False, "Embedding cannot be empty"

    if expected_dimension and len(embedding) != expected_dimension:
        return (
            False,
            f"Expected {expected_dimension} dimensions, got {len(embedding)}",
        )

    for value in embedding:
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            return False, "Embedding contains invalid numeric values"

    return True, None
