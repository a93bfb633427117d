"""Name normalization, string similarity and embedding similarity."""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
# Repeated so that "the a thing" normalizes in one pass
_LEADING_ARTICLES = re.compile(r"^(?:(?:the|a|an)\s+)+")


def normalize_name(name: Optional[str]) -> str:
    """
    Canonicalize an entity or claim name for comparison.

    Lower-cases, removes punctuation (a hyphen disappears and the
    neighbouring tokens merge), collapses whitespace and strips a
    leading English article.

    Args:
        name: Raw name, may be None

    Returns:
        Normalized name, empty string for missing input
    """
    if not name or not isinstance(name, str):
        return ""

    text = _PUNCTUATION.sub("", name.lower())
    text = _WHITESPACE.sub(" ", text).strip()
    return _LEADING_ARTICLES.sub("", text)


def calculate_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity between two names in [0, 1].

    1.0 when both names normalize to the same value, otherwise the
    normalized Levenshtein ratio (1 - distance / max_length) over the
    normalized strings.

    Args:
        a: First name
        b: Second name

    Returns:
        Similarity score, 0.0 if either input is empty
    """
    if not a or not b or not isinstance(a, str) or not isinstance(b, str):
        return 0.0

    norm_a = normalize_name(a)
    norm_b = normalize_name(b)

    if norm_a == norm_b:
        return 1.0

    return float(Levenshtein.normalized_similarity(norm_a, norm_b))


def cosine_similarity(
    vec_a: Optional[Sequence[float]],
    vec_b: Optional[Sequence[float]],
) -> float:
    """
    Cosine similarity between two embedding vectors.

    Returns 0.0 for missing vectors, vectors of different length
    and zero-magnitude vectors.
    """
    if vec_a is None or vec_b is None or len(vec_a) != len(vec_b):
        return 0.0

    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)

    magnitude = np.linalg.norm(a) * np.linalg.norm(b)
    if magnitude == 0:
        return 0.0

    return float(np.dot(a, b) / magnitude)


def retrieve_top_k(
    query_embedding: Sequence[float],
    items: List[Mapping[str, Any]],
    k: int = 10,
) -> List[Dict[str, Any]]:
    """
    Rank items by cosine similarity to a query embedding.

    Args:
        query_embedding: Query vector
        items: Items carrying an "embedding" key
        k: Number of results to keep

    Returns:
        Copies of the top K items with an added "similarity" key,
        best first (ties keep input order)
    """
    if not items or k <= 0:
        return []

    scored = [
        {**item, "similarity": cosine_similarity(query_embedding, item.get("embedding"))}
        for item in items
    ]
    scored.sort(key=lambda item: item["similarity"], reverse=True)

    logger.debug(f"Ranked {len(scored)} items, keeping top {k}")
    return scored[:k]
