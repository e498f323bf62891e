# src/spam_blocker/repositories/matching.py
"""Content and link lookups shared by the evidence and indexer stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from spam_blocker.repositories.records import (
    CommentEvidence,
    ContentMatch,
    LinkMatch,
    LinkStats,
    TextField,
    count_domain,
    count_link,
    link_stats,
    match_exact,
    match_similar,
    prefix_matches,
)
from spam_blocker.utils.text import SIMILAR_MATCH_THRESHOLD
from spam_blocker.utils.urls import extract_domain


class CommentMatchingMixin(ABC):
    """Similarity and link queries over the comments returned by ``_comment_candidates``.

    Subclasses narrow candidates in SQL (time window, author, domain substring);
    the exact comparison happens here so both stores agree on what a match is.
    """

    @abstractmethod
    def _comment_candidates(
        self,
        since: int,
        *,
        author_public_key: str | None = None,
        exclude_author_public_key: str | None = None,
        domain: str | None = None,
    ) -> list[CommentEvidence]:
        """Comments posted since ``since``, narrowed by the optional filters."""

    def find_exact_content(
        self,
        field: TextField,
        text: str,
        since: int,
        *,
        author_public_key: str | None = None,
        exclude_author_public_key: str | None = None,
        limit: int = 50,
    ) -> list[ContentMatch]:
        """Find comments whose content (or title) equals ``text`` ignoring case and padding."""
        candidates = self._comment_candidates(
            since,
            author_public_key=author_public_key,
            exclude_author_public_key=exclude_author_public_key,
        )
        return match_exact(candidates, field, text)[:limit]

    def find_similar_content(
        self,
        field: TextField,
        text: str,
        since: int,
        *,
        author_public_key: str | None = None,
        exclude_author_public_key: str | None = None,
        threshold: float = SIMILAR_MATCH_THRESHOLD,
        limit: int = 100,
    ) -> list[ContentMatch]:
        """Find comments whose content (or title) overlaps ``text`` by Jaccard similarity."""
        candidates = self._comment_candidates(
            since,
            author_public_key=author_public_key,
            exclude_author_public_key=exclude_author_public_key,
        )
        return match_similar(candidates, field, text, threshold)[:limit]

    def find_similar_content_by_author(
        self, field: TextField, text: str, author_public_key: str, since: int, limit: int = 100
    ) -> list[ContentMatch]:
        return self.find_similar_content(
            field, text, since, author_public_key=author_public_key, limit=limit
        )

    def find_similar_content_by_others(
        self, field: TextField, text: str, author_public_key: str, since: int, limit: int = 100
    ) -> list[ContentMatch]:
        return self.find_similar_content(
            field, text, since, exclude_author_public_key=author_public_key, limit=limit
        )

    def find_links_by_author(self, author_public_key: str, link: str, since: int) -> int:
        """Count the author's comments containing the normalized URL ``link``."""
        candidates = self._comment_candidates(
            since, author_public_key=author_public_key, domain=extract_domain(link)
        )
        return count_link(candidates, link)

    def find_links_by_others(self, author_public_key: str, link: str, since: int) -> LinkStats:
        candidates = self._comment_candidates(
            since, exclude_author_public_key=author_public_key, domain=extract_domain(link)
        )
        return link_stats(candidates, link)

    def count_link_domain_by_author(self, author_public_key: str, domain: str, since: int) -> int:
        candidates = self._comment_candidates(
            since, author_public_key=author_public_key, domain=domain
        )
        return count_domain(candidates, domain)

    def find_url_prefix_matches(
        self, prefix: str, since: int, *, exclude_author_public_key: str | None = None
    ) -> list[LinkMatch]:
        """Find comments linking to any URL sharing ``prefix`` (host plus two path segments)."""
        host = prefix.split("/", 1)[0].split(":", 1)[0]
        candidates = self._comment_candidates(
            since, exclude_author_public_key=exclude_author_public_key, domain=host
        )
        return prefix_matches(candidates, prefix)
