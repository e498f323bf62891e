"""Configuration, state and store access shared by the indexer workers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.orm import Session

from spam_blocker.core.settings import settings
from spam_blocker.repositories.indexer_queries import IndexerQueries

T = TypeVar("T")

SessionFactory = Callable[[], Session]

# Failures a remote node or a malformed payload can raise while crawling.
REMOTE_ERRORS: tuple[type[BaseException], ...] = (
    RuntimeError,
    OSError,
    ValueError,
    KeyError,
    TypeError,
    AttributeError,
)


@dataclass(frozen=True)
class IndexerConfig:
    """Tunables for the crawler.

    Attributes:
        max_concurrent_page_fetches: Shared cap on simultaneous page fetches.
        previous_cid_crawl_timeout_seconds: How long to wait for a crawled
            comment's CommentUpdate.
        max_previous_cid_depth: Hops followed along a previousCommentCid chain.
        max_consecutive_errors: Failed update cycles before a forum is disabled.
        modqueue_resolve_timeout_seconds: How long to wait for a CommentUpdate
            when deciding whether a modqueue item was accepted.
        crawl_idle_interval_seconds: Poll interval of the idle crawler loop.
        max_reply_depth: Reply depth past which replies are not fetched.
    """

    max_concurrent_page_fetches: int = 10
    previous_cid_crawl_timeout_seconds: float = 60.0
    max_previous_cid_depth: int = 10
    max_consecutive_errors: int = 5
    modqueue_resolve_timeout_seconds: float = 10.0
    crawl_idle_interval_seconds: float = 1.0
    max_reply_depth: int | None = None

    @classmethod
    def from_settings(cls) -> IndexerConfig:
        return cls(
            max_concurrent_page_fetches=settings.indexer_max_concurrent_page_fetches,
            previous_cid_crawl_timeout_seconds=settings.indexer_previous_cid_crawl_timeout_seconds,
            max_previous_cid_depth=settings.indexer_max_previous_cid_depth,
            max_consecutive_errors=settings.indexer_max_consecutive_errors,
            modqueue_resolve_timeout_seconds=settings.indexer_modqueue_resolve_timeout_seconds,
            crawl_idle_interval_seconds=settings.indexer_crawl_idle_interval_seconds,
        )


@dataclass(frozen=True)
class IndexerState:
    running: bool
    subscribed_subplebbits: int
    pending_crawls: int
    active_crawls: int


class QueryRunner:
    """Runs indexer queries on a short-lived session in a worker thread."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    def run_sync(self, fn: Callable[[IndexerQueries], T]) -> T:
        with self.session_factory() as db:
            return fn(IndexerQueries(db))

    async def run(self, fn: Callable[[IndexerQueries], T]) -> T:
        return await asyncio.to_thread(self.run_sync, fn)
