"""Comment content and title risk factor.

Starts from a low baseline for comments and adds risk for recent duplicates
(from the same author and, weighted more heavily, from other authors) and for
static spam markers in the body text.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence

from spam_blocker.repositories.records import ContentMatch, TextField
from spam_blocker.risk_score.types import (
    FACTOR_COMMENT_CONTENT_TITLE_RISK,
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
)
from spam_blocker.risk_score.utils import SECONDS_PER_DAY, clamp
from spam_blocker.schemas.publication import CommentPublication
from spam_blocker.utils.text import (
    EXACT_MATCH_THRESHOLD,
    is_comparable_content,
    is_comparable_title,
)
from spam_blocker.utils.urls import extract_urls_from_text

BASELINE_SCORE = 0.2
SIMILARITY_WINDOW_SECONDS = SECONDS_PER_DAY

_REPEATED_CHARACTER = re.compile(r"(.)\1{4,}", re.IGNORECASE | re.DOTALL)


def _count_matches(matches: Sequence[ContentMatch]) -> tuple[int, int, set[str]]:
    """Split matches into (exact, similar) counts and the authors involved."""
    exact = 0
    similar = 0
    authors: set[str] = set()
    for match in matches:
        if match.similarity >= EXACT_MATCH_THRESHOLD:
            exact += 1
        else:
            similar += 1
        authors.add(match.author_public_key)
    return exact, similar, authors


def has_excessive_caps(text: str) -> bool:
    """More than half of the letters are uppercase (on reasonably long text)."""
    if len(text) < 20:
        return False
    letters = [char for char in text if char.isascii() and char.isalpha()]
    if len(letters) < 10:
        return False
    upper = sum(1 for char in letters if char.isupper())
    return upper / len(letters) > 0.5


def has_repetitive_patterns(text: str) -> bool:
    """A character repeated 5+ times in a row, or a 3+ letter word used 5+ times."""
    if _REPEATED_CHARACTER.search(text):
        return True
    words = text.lower().split()
    if len(words) < 5:
        return False
    counts = Counter(word for word in words if len(word) >= 3)
    return any(count >= 5 for count in counts.values())


class _Analysis:
    """Accumulates score increments and their descriptions."""

    def __init__(self) -> None:
        self.score = BASELINE_SCORE
        self.issues: list[str] = []

    def add(self, amount: float, issue: str) -> None:
        self.score += amount
        self.issues.append(issue)


def _check_content(ctx: RiskContext, content: str, since: int, analysis: _Analysis) -> None:
    author = ctx.author_public_key
    field: TextField = "content"

    own = ctx.data.find_similar_content_by_author(field, content, author, since)
    exact, similar, _ = _count_matches(own)
    if exact >= 5:
        analysis.add(0.35, f"{exact} duplicate comments from same author in 24h")
    elif exact >= 3:
        analysis.add(0.25, f"{exact} duplicate comments from same author in 24h")
    elif exact >= 1:
        analysis.add(0.15, f"{exact} duplicate comment(s) from same author in 24h")

    if similar >= 3:
        analysis.add(0.2, f"{similar} similar comments from same author in 24h")
    elif similar >= 1:
        analysis.add(0.1, f"{similar} similar comment(s) from same author in 24h")

    others = ctx.data.find_similar_content_by_others(field, content, author, since)
    exact, similar, other_authors = _count_matches(others)
    if exact >= 5:
        analysis.add(
            0.4,
            f"{exact} identical comments from {len(other_authors)} other author(s) "
            "(possible coordinated spam)",
        )
    elif exact >= 2:
        analysis.add(0.25, f"{exact} identical comments from other authors")
    elif exact >= 1:
        analysis.add(0.1, "content seen from another author")

    if similar >= 3:
        analysis.add(0.2, f"{similar} similar comments from other authors")
    elif similar >= 1:
        analysis.add(0.08, "similar content seen from another author")


def _check_title(ctx: RiskContext, title: str, since: int, analysis: _Analysis) -> None:
    author = ctx.author_public_key
    field: TextField = "title"

    own = ctx.data.find_similar_content_by_author(field, title, author, since)
    exact, similar, _ = _count_matches(own)
    if exact >= 3:
        analysis.add(0.3, f"{exact} posts with same title from author in 24h")
    elif exact >= 1:
        analysis.add(0.15, f"{exact} post(s) with same title from author in 24h")
    if similar >= 2:
        analysis.add(0.15, f"{similar} posts with similar title from author in 24h")

    others = ctx.data.find_similar_content_by_others(field, title, author, since)
    exact, similar, _ = _count_matches(others)
    if exact >= 3:
        analysis.add(0.25, f"{exact} posts with same title from other authors")
    elif exact >= 1:
        analysis.add(0.1, "title seen from another author")
    if similar >= 2:
        analysis.add(0.1, "similar titles from other authors")


def _check_static(content: str, analysis: _Analysis) -> None:
    url_count = len(extract_urls_from_text(content))
    if url_count >= 5:
        analysis.add(0.15, f"contains {url_count} URLs")
    elif url_count >= 3:
        analysis.add(0.08, f"contains {url_count} URLs")

    if has_excessive_caps(content):
        analysis.add(0.08, "excessive capitalization")
    if has_repetitive_patterns(content):
        analysis.add(0.1, "repetitive patterns detected")


def calculate_comment_content_title_risk(ctx: RiskContext, weight: float) -> RiskFactor:
    comment = ctx.request.comment
    if not isinstance(comment, CommentPublication):
        return RiskFactor(
            name=FACTOR_COMMENT_CONTENT_TITLE_RISK,
            score=NEUTRAL_SCORE,
            weight=0.0,
            explanation="Content/title analysis: not applicable (non-comment publication)",
        )

    since = ctx.now - SIMILARITY_WINDOW_SECONDS
    analysis = _Analysis()

    if comment.content and is_comparable_content(comment.content):
        _check_content(ctx, comment.content, since, analysis)
    if comment.title and is_comparable_title(comment.title):
        _check_title(ctx, comment.title, since, analysis)
    if comment.content:
        _check_static(comment.content, analysis)

    if analysis.issues:
        explanation = f"Content/title analysis: {', '.join(analysis.issues)}"
    else:
        explanation = "Content/title analysis: no suspicious patterns detected"

    return RiskFactor(
        name=FACTOR_COMMENT_CONTENT_TITLE_RISK,
        score=clamp(analysis.score),
        weight=weight,
        explanation=explanation,
    )
