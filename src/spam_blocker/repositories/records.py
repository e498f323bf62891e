# src/spam_blocker/repositories/records.py
"""Value objects returned by the evidence and indexer stores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from spam_blocker.utils.text import jaccard_similarity, normalize_for_match
from spam_blocker.utils.urls import collect_all_urls, extract_domain, extract_url_prefix

EvidenceSource = Literal["engine", "indexer"]
TextField = Literal["content", "title"]

SOURCE_ENGINE: EvidenceSource = "engine"
SOURCE_INDEXER: EvidenceSource = "indexer"


@dataclass(frozen=True)
class VelocityStats:
    last_hour: int = 0
    last_24_hours: int = 0

    def __add__(self, other: VelocityStats) -> VelocityStats:
        return VelocityStats(
            last_hour=self.last_hour + other.last_hour,
            last_24_hours=self.last_24_hours + other.last_24_hours,
        )


@dataclass(frozen=True)
class KarmaRecord:
    """Latest karma snapshot an author had in one forum, and when it was observed."""

    post_score: int
    reply_score: int
    observed_at: int
    source: EvidenceSource = SOURCE_ENGINE

    @property
    def total(self) -> int:
        return self.post_score + self.reply_score


@dataclass(frozen=True)
class ContentMatch:
    """A stored comment whose content or title matched the text being evaluated."""

    id: str
    source: EvidenceSource
    author_public_key: str
    subplebbit_address: str
    field: TextField
    text: str | None
    timestamp: int
    similarity: float


@dataclass(frozen=True)
class LinkStats:
    count: int = 0
    authors: frozenset[str] = frozenset()

    @property
    def unique_authors(self) -> int:
        return len(self.authors)


@dataclass(frozen=True)
class LinkMatch:
    """A stored comment containing a URL that shares a prefix with an evaluated URL."""

    id: str
    source: EvidenceSource
    author_public_key: str
    url: str
    timestamp: int


@dataclass(frozen=True)
class AuthorNetworkStats:
    """Moderation outcomes for an author across all crawled forums."""

    ban_count: int = 0
    removal_count: int = 0
    disapproval_count: int = 0
    unfetchable_count: int = 0
    modqueue_rejected: int = 0
    modqueue_accepted: int = 0
    total_indexed_comments: int = 0
    distinct_subplebbits: int = 0


@dataclass(frozen=True)
class CommentEvidence:
    """Flattened comment row used by the in-Python matching helpers below."""

    id: str
    source: EvidenceSource
    author_public_key: str
    subplebbit_address: str
    content: str | None
    title: str | None
    link: str | None
    timestamp: int

    def text(self, field: TextField) -> str | None:
        return self.content if field == "content" else self.title

    def urls(self) -> list[str]:
        return collect_all_urls(link=self.link, content=self.content, title=self.title)


def match_exact(
    candidates: list[CommentEvidence], field: TextField, text: str
) -> list[ContentMatch]:
    """Return candidates whose trimmed, lowercased field equals ``text``."""
    needle = normalize_for_match(text)
    if not needle:
        return []
    return [
        _to_match(candidate, field, 1.0)
        for candidate in candidates
        if normalize_for_match(candidate.text(field)) == needle
    ]


def match_similar(
    candidates: list[CommentEvidence], field: TextField, text: str, threshold: float
) -> list[ContentMatch]:
    """Return candidates whose field has Jaccard similarity >= ``threshold`` to ``text``."""
    matches = []
    for candidate in candidates:
        similarity = jaccard_similarity(text, candidate.text(field))
        if similarity >= threshold:
            matches.append(_to_match(candidate, field, similarity))
    return matches


def count_link(candidates: list[CommentEvidence], link: str) -> int:
    """Count candidates containing the normalized URL ``link``."""
    return sum(1 for candidate in candidates if link in candidate.urls())


def link_stats(candidates: list[CommentEvidence], link: str) -> LinkStats:
    authors = [candidate.author_public_key for candidate in candidates if link in candidate.urls()]
    return LinkStats(count=len(authors), authors=frozenset(authors))


def count_domain(candidates: list[CommentEvidence], domain: str) -> int:
    """Count candidates linking at least once to ``domain``."""
    return sum(
        1
        for candidate in candidates
        if any(extract_domain(url) == domain for url in candidate.urls())
    )


def prefix_matches(candidates: list[CommentEvidence], prefix: str) -> list[LinkMatch]:
    matches = []
    for candidate in candidates:
        for url in candidate.urls():
            if extract_url_prefix(url) == prefix:
                matches.append(
                    LinkMatch(
                        id=candidate.id,
                        source=candidate.source,
                        author_public_key=candidate.author_public_key,
                        url=url,
                        timestamp=candidate.timestamp,
                    )
                )
                break
    return matches


def _to_match(candidate: CommentEvidence, field: TextField, similarity: float) -> ContentMatch:
    return ContentMatch(
        id=candidate.id,
        source=candidate.source,
        author_public_key=candidate.author_public_key,
        subplebbit_address=candidate.subplebbit_address,
        field=field,
        text=candidate.text(field),
        timestamp=candidate.timestamp,
        similarity=similarity,
    )
