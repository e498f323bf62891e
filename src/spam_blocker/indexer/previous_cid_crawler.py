"""Follows ``author.previousCommentCid`` chains to find forums and author history."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from spam_blocker.indexer.client import RemoteClient, watch_comment
from spam_blocker.indexer.comment_fetcher import store_raw_comment
from spam_blocker.indexer.types import REMOTE_ERRORS, QueryRunner
from spam_blocker.models.indexer import DISCOVERED_VIA_PREVIOUS_COMMENT_CID
from spam_blocker.repositories.indexer_queries import IndexerQueries

logger = logging.getLogger(__name__)

NewSubplebbitCallback = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class CrawlResult:
    cid: str
    subplebbit_address: str
    next_previous_cid: str | None
    has_comment_update: bool


class PreviousCidCrawler:
    """Background task crawling queued cids one hop at a time.

    A chain is followed only while each hop yields a CommentUpdate, and never
    past ``max_depth`` hops.
    """

    def __init__(
        self,
        client: RemoteClient,
        queries: QueryRunner,
        *,
        crawl_timeout: float = 60.0,
        max_depth: int = 10,
        idle_interval: float = 1.0,
        on_new_subplebbit: NewSubplebbitCallback | None = None,
    ) -> None:
        self.client = client
        self.queries = queries
        self.crawl_timeout = crawl_timeout
        self.max_depth = max_depth
        self.idle_interval = idle_interval
        self.on_new_subplebbit = on_new_subplebbit
        self._queue: asyncio.Queue[tuple[str, int]] = asyncio.Queue()
        self._queued: set[str] = set()
        self._crawling: set[str] = set()
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def active_crawls(self) -> int:
        return len(self._crawling)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("PreviousCidCrawler started")

    async def stop(self) -> None:
        """Stop crawling and drop everything still queued."""
        self._stopping.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        while not self._queue.empty():
            self._queue.get_nowait()
        self._queued.clear()
        self._crawling.clear()
        logger.info("PreviousCidCrawler stopped")

    def queue_crawl(self, cid: str, previous_cid: str) -> bool:
        """Queue ``previous_cid`` (linked from ``cid``) at the start of a chain.

        Returns:
            False if the cid is already queued or being crawled.
        """
        if previous_cid in self._crawling or previous_cid in self._queued:
            return False
        self._queued.add(previous_cid)
        self._queue.put_nowait((previous_cid, 0))
        logger.debug("Queued %s (linked from %s) for crawling", previous_cid, cid)
        return True

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                cid, depth = await asyncio.wait_for(self._queue.get(), timeout=self.idle_interval)
            except asyncio.TimeoutError:
                continue
            self._queued.discard(cid)
            await self.process(cid, depth)

    async def process(self, cid: str, depth: int) -> CrawlResult | None:
        """Crawl one hop and queue the next one."""
        if cid in self._crawling:
            return None
        if await self.queries.run(lambda q: q.is_comment_indexed(cid)):
            return None
        if depth >= self.max_depth:
            logger.info("Max depth reached for chain at %s", cid)
            return None

        self._crawling.add(cid)
        try:
            result = await self.crawl_cid(cid)
            if result is None:
                return None

            await self._discover(result.subplebbit_address)
            if result.next_previous_cid and result.has_comment_update:
                self._queue.put_nowait((result.next_previous_cid, depth + 1))
            return result
        except REMOTE_ERRORS as e:
            logger.error("Error crawling %s: %s", cid, e)
            return None
        finally:
            self._crawling.discard(cid)

    async def crawl_cid(self, cid: str) -> CrawlResult | None:
        """Load and store ``cid``; None when the node returned no comment data."""
        async with watch_comment(self.client, cid, self.crawl_timeout) as (comment, _):
            stored = await self.queries.run(lambda q: store_raw_comment(q, comment))

        if stored.comment is None:
            return None
        return CrawlResult(
            cid=cid,
            subplebbit_address=stored.comment.subplebbit_address,
            next_previous_cid=stored.comment.author.previous_comment_cid,
            has_comment_update=stored.has_update,
        )

    async def _discover(self, address: str) -> None:
        def register(q: IndexerQueries) -> bool:
            if q.get_indexed_subplebbit(address) is not None:
                return False
            q.upsert_indexed_subplebbit(address, DISCOVERED_VIA_PREVIOUS_COMMENT_CID)
            return True

        if await self.queries.run(register) and self.on_new_subplebbit is not None:
            await self.on_new_subplebbit(address)
