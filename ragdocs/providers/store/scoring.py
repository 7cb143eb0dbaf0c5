"""Vector and keyword scoring shared by the document stores.

Both stores score in Python with the same functions so that swapping the
SQLite store for the in-memory one never changes a ranking.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

import numpy as np

from ragdocs.utils.errors import DataIntegrityError

_WORD = re.compile(r"\w+")


def cosine_similarities(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> list[float]:
    """Return ``1 - cosine_distance`` between *query* and each of *vectors*.

    Zero-length vectors score 0.

    Raises
    ------
    DataIntegrityError
        If any vector's dimension differs from the query's.
    """
    if not vectors:
        return []
    dimension = len(query)
    for vector in vectors:
        if len(vector) != dimension:
            raise DataIntegrityError(
                f"Stored embedding has dimension {len(vector)}, expected {dimension}"
            )

    matrix = np.asarray(vectors, dtype=np.float64)
    q = np.asarray(query, dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return [float(s) for s in sims]


def keyword_score(content: str, terms: Sequence[str]) -> float:
    """Score *content* against lower-cased query *terms*.

    Each term matches words that start with it (``"embed"`` matches
    "embedding").  A matched term contributes ``1 + ln(frequency)``, so
    repeated terms count with diminishing weight; the sum is unbounded.
    """
    if not terms:
        return 0.0
    words = _WORD.findall(content.lower())
    if not words:
        return 0.0

    score = 0.0
    for term in terms:
        frequency = sum(1 for word in words if word.startswith(term))
        if frequency:
            score += 1.0 + math.log(frequency)
    return score


def check_dimension(vectors: Sequence[Sequence[float]], expected: int | None) -> int | None:
    """Verify all *vectors* share one dimension (and match *expected* when set).

    Returns the dimension found, or *expected* when there are no vectors.
    """
    dimension = expected
    for vector in vectors:
        if dimension is None:
            dimension = len(vector)
        elif len(vector) != dimension:
            raise DataIntegrityError(
                f"Embedding has dimension {len(vector)}, expected {dimension}"
            )
    return dimension
