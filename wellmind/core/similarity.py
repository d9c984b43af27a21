"""
Similarity engine - pure duplicate signals between two memory entries.

Three signals, checked in this priority order by consolidation and by the
relationship engine:
1. Exact match: equal content after case/whitespace normalization
2. Semantic hash: equal non-null precomputed fingerprints
3. Fuzzy similarity: Jaccard over word sets

No I/O and no state: every function is deterministic.
"""

from typing import Protocol

from wellmind.models.consolidation import DuplicateReason
from wellmind.utils.text import normalize_whitespace, tokenize


class HasContent(Protocol):
    content: str
    semantic_hash: str | None


def is_exact_match(a: HasContent, b: HasContent) -> bool:
    """True when both contents are equal ignoring case and whitespace runs."""
    return normalize_whitespace(a.content) == normalize_whitespace(b.content)


def fuzzy_similarity(a: HasContent | str, b: HasContent | str, min_token_length: int = 3) -> float:
    """
    Jaccard similarity of the two contents' word sets.

    Words are lowercase alphanumeric runs of at least ``min_token_length``
    characters. Returns 0.0 when either side has no such words.

    Args:
        a: Memory (or raw text)
        b: Memory (or raw text)
        min_token_length: Minimum word length counted

    Returns:
        |intersection| / |union| in [0, 1]
    """
    text_a = a if isinstance(a, str) else a.content
    text_b = b if isinstance(b, str) else b.content

    words_a = set(tokenize(text_a, min_token_length))
    words_b = set(tokenize(text_b, min_token_length))
    if not words_a or not words_b:
        return 0.0

    return len(words_a & words_b) / len(words_a | words_b)


def same_semantic_hash(a: HasContent, b: HasContent) -> bool:
    """True iff both have a non-null semantic hash and they are equal."""
    return a.semantic_hash is not None and b.semantic_hash is not None and (
        a.semantic_hash == b.semantic_hash
    )


def classify_duplicate(
    a: HasContent,
    b: HasContent,
    threshold: float = 0.85,
    min_token_length: int = 3,
) -> tuple[DuplicateReason, float] | None:
    """
    Classify a pair as duplicates using the first signal that fires.

    Exact content always wins over an equal semantic hash, which wins over a
    high fuzzy score.

    Args:
        a: First memory
        b: Second memory
        threshold: Fuzzy similarity must be strictly greater than this
        min_token_length: Minimum word length for fuzzy scoring

    Returns:
        (reason, similarity) or None when the pair is not a duplicate
    """
    if is_exact_match(a, b):
        return DuplicateReason.EXACT_CONTENT, 1.0

    if same_semantic_hash(a, b):
        return DuplicateReason.SEMANTIC_HASH, fuzzy_similarity(a, b, min_token_length)

    similarity = fuzzy_similarity(a, b, min_token_length)
    if similarity > threshold:
        return DuplicateReason.HIGH_SIMILARITY, similarity

    return None
