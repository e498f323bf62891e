"""One live subscription per indexed forum, re-crawled when its posts change.

Every subscription owns a task reading update notifications from its own
queue. A notification that arrives while the forum is being crawled is
dropped, so a forum never has two crawls in flight; different forums crawl
in parallel.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError

from spam_blocker.indexer.client import UPDATE_EVENT, RemoteClient, RemoteSubplebbit
from spam_blocker.indexer.comment_fetcher import CommentFetcher, PreviousCidCallback
from spam_blocker.indexer.modqueue_tracker import ModQueueTracker
from spam_blocker.indexer.types import REMOTE_ERRORS, QueryRunner
from spam_blocker.models.indexer import DISCOVERED_VIA_EVALUATE_API
from spam_blocker.repositories.indexer_queries import IndexerQueries

logger = logging.getLogger(__name__)

UpdateOutcome = Literal["unchanged", "metadata", "indexed", "failed", "disabled"]


@dataclass
class SubplebbitSubscription:
    """Live subscription state for one forum."""

    address: str
    subplebbit: RemoteSubplebbit
    last_posts_page_cid_new: str | None = None
    last_subplebbit_updated_at: int | None = None
    notifications: asyncio.Queue[None] = field(default_factory=lambda: asyncio.Queue(maxsize=1))
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    task: asyncio.Task[None] | None = None
    closed: bool = False

    @property
    def is_updating(self) -> bool:
        return self.lock.locked()

    def notify(self) -> bool:
        """Queue an update notification unless one is pending or a crawl is running."""
        if self.closed or self.lock.locked():
            return False
        try:
            self.notifications.put_nowait(None)
        except asyncio.QueueFull:
            return False
        return True


class SubplebbitIndexer:
    """Subscribes to every enabled forum and reacts to its updates.

    Args:
        client: Remote client providing live forum handles.
        queries: Store access for the indexer tables.
        fetcher: Crawls a forum's posts and replies.
        max_consecutive_errors: Failed crawls after which a forum is disabled.
        modqueue_tracker: Run for a forum after each successful crawl.
        on_previous_cid: Receives ``(cid, previous_comment_cid)`` links found while crawling.
    """

    def __init__(
        self,
        client: RemoteClient,
        queries: QueryRunner,
        fetcher: CommentFetcher,
        *,
        max_consecutive_errors: int = 5,
        modqueue_tracker: ModQueueTracker | None = None,
        on_previous_cid: PreviousCidCallback | None = None,
    ) -> None:
        self.client = client
        self.queries = queries
        self.fetcher = fetcher
        self.max_consecutive_errors = max_consecutive_errors
        self.modqueue_tracker = modqueue_tracker
        self.on_previous_cid = on_previous_cid
        self.subscriptions: dict[str, SubplebbitSubscription] = {}
        self.running = False

    @property
    def subscription_count(self) -> int:
        return len(self.subscriptions)

    def is_subscribed(self, address: str) -> bool:
        return address in self.subscriptions

    async def start(self) -> None:
        """Subscribe to every forum with indexing enabled."""
        if self.running:
            logger.info("SubplebbitIndexer already running")
            return

        self.running = True
        enabled = await self.queries.run(
            lambda q: [
                (sub.address, sub.last_posts_page_cid_new, sub.last_subplebbit_updated_at)
                for sub in q.get_enabled_subplebbits()
            ]
        )
        logger.info("SubplebbitIndexer starting with %d enabled subplebbits", len(enabled))

        for address, last_page_cid, last_updated_at in enabled:
            try:
                await self.subscribe(address, last_page_cid, last_updated_at)
            except REMOTE_ERRORS as e:
                logger.error("Failed to subscribe to %s: %s", address, e)
                await self.queries.run(
                    lambda q, address=address, e=e: q.record_subplebbit_error(address, str(e))
                )

    async def stop(self) -> None:
        """Stop every subscription, logging failures individually."""
        if not self.running:
            return

        self.running = False
        for address in list(self.subscriptions):
            await self.unsubscribe(address)
        logger.info("SubplebbitIndexer stopped")

    async def subscribe(
        self,
        address: str,
        last_posts_page_cid_new: str | None = None,
        last_subplebbit_updated_at: int | None = None,
    ) -> SubplebbitSubscription:
        """Open a live subscription to ``address`` and start its update task."""
        existing = self.subscriptions.get(address)
        if existing is not None:
            logger.debug("Already subscribed to %s", address)
            return existing

        subplebbit = await self.client.get_subplebbit(address)
        subscription = SubplebbitSubscription(
            address=address,
            subplebbit=subplebbit,
            last_posts_page_cid_new=last_posts_page_cid_new,
            last_subplebbit_updated_at=last_subplebbit_updated_at,
        )
        self.subscriptions[address] = subscription
        subplebbit.on(UPDATE_EVENT, subscription.notify)
        subscription.task = asyncio.create_task(self._consume(subscription))

        try:
            await subplebbit.update()
        except REMOTE_ERRORS:
            await self.unsubscribe(address)
            raise

        logger.info("Subscribed to %s", address)
        return subscription

    async def unsubscribe(self, address: str) -> None:
        subscription = self.subscriptions.pop(address, None)
        if subscription is None:
            return

        subscription.closed = True
        task = subscription.task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Update task for %s had failed", address)

        try:
            await subscription.subplebbit.stop()
        except REMOTE_ERRORS as e:
            logger.error("Error stopping %s: %s", address, e)
        logger.info("Unsubscribed from %s", address)

    async def add_subplebbit(self, address: str, discovered_via: str) -> None:
        """Record a newly discovered forum and subscribe to it if running."""
        await self.queries.run(lambda q: q.upsert_indexed_subplebbit(address, discovered_via))
        if self.running:
            await self.subscribe(address)

    async def _consume(self, subscription: SubplebbitSubscription) -> None:
        while not subscription.closed:
            await subscription.notifications.get()
            async with subscription.lock:
                try:
                    await self.handle_update(subscription)
                except SQLAlchemyError as e:
                    logger.error("Database error while indexing %s: %s", subscription.address, e)
                    await self._record_database_failure(subscription, e)

    async def _record_database_failure(
        self, subscription: SubplebbitSubscription, error: SQLAlchemyError
    ) -> None:
        try:
            await self._record_failure(subscription, str(error))
        except SQLAlchemyError:
            logger.exception("Could not record failure for %s", subscription.address)

    async def handle_update(self, subscription: SubplebbitSubscription) -> UpdateOutcome:
        """Decide whether the forum changed and crawl it if its posts did."""
        address = subscription.address
        subplebbit = subscription.subplebbit

        updated_at = subplebbit.updated_at
        if (
            subscription.last_subplebbit_updated_at is not None
            and updated_at == subscription.last_subplebbit_updated_at
        ):
            return "unchanged"

        posts = subplebbit.posts
        page_cid_new = posts.page_cids.get("new") if posts is not None and posts.page_cids else None
        if (
            subscription.last_posts_page_cid_new is not None
            and page_cid_new == subscription.last_posts_page_cid_new
        ):
            # Only forum metadata changed.
            await self.queries.run(
                lambda q: q.update_subplebbit_cache_markers(address, page_cid_new, updated_at)
            )
            subscription.last_subplebbit_updated_at = updated_at
            return "metadata"

        logger.info("Update detected for %s, fetching comments", address)
        try:
            await self.queries.run(
                lambda q: q.upsert_indexed_subplebbit(
                    address, DISCOVERED_VIA_EVALUATE_API, subplebbit.public_key
                )
            )
            result = await self.fetcher.fetch_subplebbit_comments(
                subplebbit, on_previous_cid=self.on_previous_cid
            )
            await self.queries.run(
                lambda q: q.update_subplebbit_cache_markers(address, page_cid_new, updated_at)
            )
        except REMOTE_ERRORS as e:
            logger.error("Error fetching comments from %s: %s", address, e)
            return await self._record_failure(subscription, str(e))

        subscription.last_posts_page_cid_new = page_cid_new
        subscription.last_subplebbit_updated_at = updated_at
        logger.info("Indexed %d posts from %s", result.posts_count, address)

        if self.modqueue_tracker is not None:
            try:
                await self.modqueue_tracker.process_modqueue(subplebbit)
            except REMOTE_ERRORS as e:
                logger.warning("Error processing modqueue of %s: %s", address, e)
        return "indexed"

    async def _record_failure(
        self, subscription: SubplebbitSubscription, error: str
    ) -> UpdateOutcome:
        address = subscription.address

        def record(q: IndexerQueries) -> bool:
            errors = q.record_subplebbit_error(address, error)
            if errors < self.max_consecutive_errors:
                return False
            q.set_subplebbit_indexing_enabled(address, False)
            return True

        if not await self.queries.run(record):
            return "failed"

        logger.warning(
            "Disabling indexing for %s after %d consecutive errors",
            address,
            self.max_consecutive_errors,
        )
        await self.unsubscribe(address)
        return "disabled"
