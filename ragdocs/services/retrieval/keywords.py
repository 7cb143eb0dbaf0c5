"""Query keyword extraction for hybrid search."""

from __future__ import annotations

import re

_STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
        "do", "does", "did", "will", "would", "could", "should",
    }
)

_NON_WORD = re.compile(r"[^\w\s]")


def extract_keywords(query: str) -> list[str]:
    """Return the distinct searchable terms of *query*, in order of appearance.

    Lower-cases, replaces punctuation with spaces, and keeps words longer
    than two characters that are not stopwords.

    >>> extract_keywords("What is the embedding model's cost?")
    ['what', 'embedding', 'model', 'cost']
    """
    words = _NON_WORD.sub(" ", query.lower()).split()
    seen: dict[str, None] = {}
    for word in words:
        if len(word) > 2 and word not in _STOPWORDS:
            seen.setdefault(word, None)
    return list(seen)
