"""Text normalization helpers shared by the similarity, fact and relationship code."""

import re

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

STOPWORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can", "had",
        "her", "was", "one", "our", "out", "has", "have", "him", "his", "how", "its",
        "may", "who", "did", "get", "got", "she", "too", "use", "that", "this", "with",
        "from", "they", "them", "then", "than", "there", "their", "what", "when",
        "which", "will", "would", "been", "were", "into", "just", "also", "very",
        "some", "about", "really", "today", "feel", "felt",
    }
)


def normalize_whitespace(text: str) -> str:
    """Lowercase, collapse runs of whitespace and trim."""
    return _WHITESPACE.sub(" ", (text or "").lower()).strip()


def tokenize(text: str, min_length: int = 3) -> list[str]:
    """
    Split text into lowercase alphanumeric words.

    Punctuation is removed rather than treated as a separator, so "don't"
    becomes "dont".

    Args:
        text: Raw text
        min_length: Minimum token length to keep

    Returns:
        Tokens in their original order (duplicates preserved)
    """
    cleaned = _NON_ALNUM.sub("", (text or "").lower())
    return [word for word in cleaned.split() if len(word) >= min_length]


def stem(word: str) -> str:
    """Very light plural stripping: peanuts -> peanut, allergies -> allergy."""
    if len(word) > 4 and word.endswith("ies"):
        return word[:-3] + "y"
    if len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def content_stems(text: str, min_length: int = 3) -> set[str]:
    """Stemmed, stopword-free token set used for topical overlap."""
    return {stem(word) for word in tokenize(text, min_length) if word not in STOPWORDS}


def strip_punctuation(text: str) -> str:
    """Lowercase and drop every character that is not alphanumeric or whitespace."""
    return _NON_ALNUM.sub("", (text or "").lower())
