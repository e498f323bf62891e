"""Lifecycle of the network indexer and its workers."""

from __future__ import annotations

import logging

from spam_blocker.db.session import SessionLocal
from spam_blocker.indexer.client import RemoteClient
from spam_blocker.indexer.comment_fetcher import CommentFetcher
from spam_blocker.indexer.modqueue_tracker import ModQueueTracker
from spam_blocker.indexer.page_queue import PageQueue
from spam_blocker.indexer.previous_cid_crawler import PreviousCidCrawler
from spam_blocker.indexer.subplebbit_indexer import SubplebbitIndexer
from spam_blocker.indexer.types import IndexerConfig, IndexerState, QueryRunner, SessionFactory
from spam_blocker.models.indexer import DISCOVERED_VIA_PREVIOUS_COMMENT_CID, DISCOVERY_SOURCES

logger = logging.getLogger(__name__)


class Indexer:
    """Coordinates forum subscriptions, the previous-cid crawler and modqueue tracking.

    The remote client is owned by the indexer once started: :meth:`stop`
    destroys it.

    Args:
        client: Remote forum client.
        session_factory: Factory for short-lived database sessions.
        config: Crawler tunables; defaults to the configured settings.
    """

    def __init__(
        self,
        client: RemoteClient,
        session_factory: SessionFactory = SessionLocal,
        config: IndexerConfig | None = None,
    ) -> None:
        self.client = client
        self.config = config or IndexerConfig.from_settings()
        self.queries = QueryRunner(session_factory)
        self.page_queue: PageQueue | None = None
        self.subplebbit_indexer: SubplebbitIndexer | None = None
        self.previous_cid_crawler: PreviousCidCrawler | None = None
        self.modqueue_tracker: ModQueueTracker | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> IndexerState:
        return IndexerState(
            running=self._running,
            subscribed_subplebbits=(
                self.subplebbit_indexer.subscription_count if self.subplebbit_indexer else 0
            ),
            pending_crawls=(
                self.previous_cid_crawler.queue_size if self.previous_cid_crawler else 0
            ),
            active_crawls=(
                self.previous_cid_crawler.active_crawls if self.previous_cid_crawler else 0
            ),
        )

    async def start(self) -> None:
        """Start every worker and subscribe to the enabled forums."""
        if self._running:
            logger.info("Indexer already running")
            return

        logger.info("Starting indexer")
        config = self.config
        self.page_queue = PageQueue(config.max_concurrent_page_fetches)
        self.previous_cid_crawler = PreviousCidCrawler(
            self.client,
            self.queries,
            crawl_timeout=config.previous_cid_crawl_timeout_seconds,
            max_depth=config.max_previous_cid_depth,
            idle_interval=config.crawl_idle_interval_seconds,
            on_new_subplebbit=self._subscribe_discovered,
        )
        self.modqueue_tracker = ModQueueTracker(
            self.client,
            self.queries,
            self.page_queue,
            resolve_timeout=config.modqueue_resolve_timeout_seconds,
        )
        fetcher = CommentFetcher(
            self.client, self.queries, self.page_queue, max_reply_depth=config.max_reply_depth
        )
        self.subplebbit_indexer = SubplebbitIndexer(
            self.client,
            self.queries,
            fetcher,
            max_consecutive_errors=config.max_consecutive_errors,
            modqueue_tracker=self.modqueue_tracker,
            on_previous_cid=self.previous_cid_crawler.queue_crawl,
        )

        try:
            self.previous_cid_crawler.start()
            await self.subplebbit_indexer.start()
        except Exception:
            logger.exception("Indexer failed to start")
            await self._shutdown()
            raise

        self._running = True
        logger.info("Indexer started")

    async def stop(self) -> None:
        """Stop every subscription, then destroy the remote client."""
        if not self._running:
            return
        logger.info("Stopping indexer")
        await self._shutdown()
        logger.info("Indexer stopped")

    async def add_subplebbit(self, address: str, discovered_via: str) -> None:
        """Record a forum for indexing and subscribe to it if the indexer is running.

        Raises:
            ValueError: If ``discovered_via`` is not a known discovery source.
        """
        if discovered_via not in DISCOVERY_SOURCES:
            raise ValueError(f"Invalid discovery source: {discovered_via}")

        await self.queries.run(lambda q: q.upsert_indexed_subplebbit(address, discovered_via))
        if self._running and self.subplebbit_indexer is not None:
            await self.subplebbit_indexer.subscribe(address)

    async def _subscribe_discovered(self, address: str) -> None:
        if self.subplebbit_indexer is not None:
            await self.subplebbit_indexer.add_subplebbit(
                address, DISCOVERED_VIA_PREVIOUS_COMMENT_CID
            )

    async def _shutdown(self) -> None:
        try:
            if self.previous_cid_crawler is not None:
                await self.previous_cid_crawler.stop()
            if self.subplebbit_indexer is not None:
                await self.subplebbit_indexer.stop()
        finally:
            if self.page_queue is not None:
                self.page_queue.clear()

            self.previous_cid_crawler = None
            self.subplebbit_indexer = None
            self.modqueue_tracker = None
            self.page_queue = None
            self._running = False

            await self.client.destroy()
