"""Merge locally received evidence with the crawled network mirror.

Each concern uses its own combination rule:

- account age: the oldest first-seen timestamp wins (MIN)
- karma per forum: the most recently observed snapshot wins
- velocity and link counts: counts from both sources are summed
- content, link and prefix matches: union of both sources, newest first, capped

The merge helpers are pure functions and accept empty inputs from either side.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TypeVar

from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.repositories.records import (
    AuthorNetworkStats,
    ContentMatch,
    KarmaRecord,
    LinkMatch,
    LinkStats,
    TextField,
    VelocityStats,
)
from spam_blocker.schemas.publication import PUBLICATION_POST, PUBLICATION_REPLY, PublicationType

MatchT = TypeVar("MatchT", ContentMatch, LinkMatch)

DEFAULT_MATCH_LIMIT = 100


def merge_first_seen(local: int | None, indexed: int | None) -> int | None:
    """Return the earliest of two optional timestamps."""
    candidates = [value for value in (local, indexed) if value is not None]
    return min(candidates) if candidates else None


def merge_karma(
    local: Mapping[str, KarmaRecord], indexed: Mapping[str, KarmaRecord]
) -> dict[str, KarmaRecord]:
    """Combine per-forum karma, keeping whichever source observed it last.

    Ties keep the locally received snapshot.
    """
    merged = dict(local)
    for address, record in indexed.items():
        existing = merged.get(address)
        if existing is None or record.observed_at > existing.observed_at:
            merged[address] = record
    return merged


def merge_velocity(local: VelocityStats, indexed: VelocityStats) -> VelocityStats:
    return local + indexed


def merge_link_stats(local: LinkStats, indexed: LinkStats) -> LinkStats:
    return LinkStats(count=local.count + indexed.count, authors=local.authors | indexed.authors)


def merge_matches(
    local: Sequence[MatchT], indexed: Sequence[MatchT], limit: int = DEFAULT_MATCH_LIMIT
) -> list[MatchT]:
    """Union two match lists, newest first, truncated to ``limit``.

    Matches are not deduplicated across sources: the same comment received
    locally and later crawled is a different row in each store.
    """
    combined = sorted([*local, *indexed], key=lambda match: match.timestamp, reverse=True)
    return combined[:limit]


class CombinedDataService:
    """Read-only view over both stores used by the risk factors.

    ``indexer`` may be omitted when the network indexer is disabled; every
    query then reflects local evidence only.
    """

    def __init__(self, evidence: EvidenceStore, indexer: IndexerQueries | None = None) -> None:
        self.evidence = evidence
        self.indexer = indexer

    def get_author_first_seen_timestamp(self, author_public_key: str) -> int | None:
        local = self.evidence.get_author_first_seen_timestamp(author_public_key)
        if self.indexer is None:
            return local
        indexed = self.indexer.get_author_first_seen_timestamp(author_public_key)
        return merge_first_seen(local, indexed)

    def get_author_karma_by_subplebbit(self, author_public_key: str) -> dict[str, KarmaRecord]:
        local = self.evidence.get_author_karma_by_subplebbit(author_public_key)
        if self.indexer is None:
            return local
        return merge_karma(local, self.indexer.get_author_karma_by_subplebbit(author_public_key))

    def get_author_velocity_stats(
        self, author_public_key: str, publication_type: PublicationType, now: int
    ) -> VelocityStats:
        local = self.evidence.get_author_velocity_stats(author_public_key, publication_type, now)
        if self.indexer is None:
            return local
        return merge_velocity(
            local, self.indexer.get_author_velocity_stats(author_public_key, publication_type, now)
        )

    def get_author_aggregate_velocity_stats(
        self, author_public_key: str, now: int
    ) -> VelocityStats:
        local = self.evidence.get_author_aggregate_velocity_stats(author_public_key, now)
        if self.indexer is None:
            return local
        indexed = VelocityStats()
        for publication_type in (PUBLICATION_POST, PUBLICATION_REPLY):
            indexed += self.indexer.get_author_velocity_stats(
                author_public_key, publication_type, now
            )
        return merge_velocity(local, indexed)

    def find_exact_content(
        self,
        field: TextField,
        text: str,
        since: int,
        *,
        author_public_key: str | None = None,
        exclude_author_public_key: str | None = None,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[ContentMatch]:
        kwargs = {
            "author_public_key": author_public_key,
            "exclude_author_public_key": exclude_author_public_key,
            "limit": limit,
        }
        local = self.evidence.find_exact_content(field, text, since, **kwargs)
        indexed = (
            self.indexer.find_exact_content(field, text, since, **kwargs) if self.indexer else []
        )
        return merge_matches(local, indexed, limit)

    def find_similar_content_by_author(
        self,
        field: TextField,
        text: str,
        author_public_key: str,
        since: int,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[ContentMatch]:
        local = self.evidence.find_similar_content_by_author(
            field, text, author_public_key, since, limit
        )
        indexed = (
            self.indexer.find_similar_content_by_author(
                field, text, author_public_key, since, limit
            )
            if self.indexer
            else []
        )
        return merge_matches(local, indexed, limit)

    def find_similar_content_by_others(
        self,
        field: TextField,
        text: str,
        author_public_key: str,
        since: int,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[ContentMatch]:
        local = self.evidence.find_similar_content_by_others(
            field, text, author_public_key, since, limit
        )
        indexed = (
            self.indexer.find_similar_content_by_others(
                field, text, author_public_key, since, limit
            )
            if self.indexer
            else []
        )
        return merge_matches(local, indexed, limit)

    def find_links_by_author(self, author_public_key: str, link: str, since: int) -> int:
        local = self.evidence.find_links_by_author(author_public_key, link, since)
        if self.indexer is None:
            return local
        return local + self.indexer.find_links_by_author(author_public_key, link, since)

    def find_links_by_others(self, author_public_key: str, link: str, since: int) -> LinkStats:
        local = self.evidence.find_links_by_others(author_public_key, link, since)
        if self.indexer is None:
            return local
        return merge_link_stats(
            local, self.indexer.find_links_by_others(author_public_key, link, since)
        )

    def count_link_domain_by_author(self, author_public_key: str, domain: str, since: int) -> int:
        local = self.evidence.count_link_domain_by_author(author_public_key, domain, since)
        if self.indexer is None:
            return local
        return local + self.indexer.count_link_domain_by_author(author_public_key, domain, since)

    def find_url_prefix_matches(
        self,
        prefix: str,
        since: int,
        *,
        exclude_author_public_key: str | None = None,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[LinkMatch]:
        local = self.evidence.find_url_prefix_matches(
            prefix, since, exclude_author_public_key=exclude_author_public_key
        )
        indexed = (
            self.indexer.find_url_prefix_matches(
                prefix, since, exclude_author_public_key=exclude_author_public_key
            )
            if self.indexer
            else []
        )
        return merge_matches(local, indexed, limit)

    def get_author_network_stats(self, author_public_key: str, now: int) -> AuthorNetworkStats:
        """Moderation outcomes only exist in the crawled mirror."""
        if self.indexer is None:
            return AuthorNetworkStats()
        return self.indexer.get_author_network_stats(author_public_key, now)
