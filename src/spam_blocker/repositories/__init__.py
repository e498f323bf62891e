"""Typed query objects over the evidence and indexer stores."""

from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.repositories.records import (
    AuthorNetworkStats,
    ContentMatch,
    KarmaRecord,
    LinkMatch,
    LinkStats,
    VelocityStats,
)

__all__ = [
    "AuthorNetworkStats",
    "ContentMatch",
    "EvidenceStore",
    "IndexerQueries",
    "KarmaRecord",
    "LinkMatch",
    "LinkStats",
    "VelocityStats",
]
