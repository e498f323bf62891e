# src/spam_blocker/utils/text.py
"""Text normalisation and word-overlap similarity helpers."""

from __future__ import annotations

import re

_NON_WORD = re.compile(r"[^\w\s]")

EXACT_MATCH_THRESHOLD = 0.95
SIMILAR_MATCH_THRESHOLD = 0.6

# Minimum trimmed lengths before content/title are worth comparing.
MIN_CONTENT_LENGTH = 10
MIN_TITLE_LENGTH = 5


def tokenize(text: str) -> set[str]:
    """Return the set of lowercase words longer than two characters."""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return {word for word in cleaned.split() if len(word) > 2}


def jaccard_similarity(left: str | None, right: str | None) -> float:
    """Return |A ∩ B| / |A ∪ B| over the word sets of two strings.

    Two empty inputs are not considered similar and return 0.0.
    """
    if not left or not right:
        return 0.0
    words_left = tokenize(left)
    words_right = tokenize(right)
    if not words_left and not words_right:
        return 0.0
    union = words_left | words_right
    return len(words_left & words_right) / len(union)


def normalize_for_match(text: str | None) -> str:
    """Lowercase and trim text for exact comparisons."""
    return (text or "").strip().lower()


def is_comparable_content(content: str | None) -> bool:
    return len((content or "").strip()) > MIN_CONTENT_LENGTH


def is_comparable_title(title: str | None) -> bool:
    return len((title or "").strip()) > MIN_TITLE_LENGTH
