"""Tracks forum modqueues to learn which submissions were accepted or rejected."""

from __future__ import annotations

import logging

from spam_blocker.indexer.client import RemoteClient, RemoteSubplebbit, watch_comment
from spam_blocker.indexer.comment_fetcher import load_all_pages
from spam_blocker.indexer.page_queue import PageQueue
from spam_blocker.indexer.types import REMOTE_ERRORS, QueryRunner
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.schemas.pages import PageComment

logger = logging.getLogger(__name__)


class ModQueueTracker:
    """Diffs a forum's modqueue against the unresolved items already stored.

    An item that left the queue was accepted if its CommentUpdate can be
    loaded within ``resolve_timeout`` seconds, and rejected otherwise.
    """

    def __init__(
        self,
        client: RemoteClient,
        queries: QueryRunner,
        page_queue: PageQueue,
        resolve_timeout: float = 10.0,
    ) -> None:
        self.client = client
        self.queries = queries
        self.page_queue = page_queue
        self.resolve_timeout = resolve_timeout

    async def process_modqueue(self, subplebbit: RemoteSubplebbit) -> int:
        """Resolve items that left the queue and store the current ones.

        Returns:
            Number of items currently in the queue.
        """
        address = subplebbit.address
        items = await self.fetch_all_items(subplebbit)
        current_cids = {item.cid for item in items}

        unresolved = await self.queries.run(lambda q: q.get_unresolved_modqueue_cids(address))
        for cid in unresolved:
            if cid not in current_cids:
                await self.resolve_item(cid)

        def store(q: IndexerQueries) -> None:
            for item in items:
                q.upsert_modqueue_comment(item.cid, item, address)

        await self.queries.run(store)
        logger.info("Processed %d modqueue items for %s", len(items), address)
        return len(items)

    async def fetch_all_items(self, subplebbit: RemoteSubplebbit) -> list[PageComment]:
        """Fetch every modqueue page of every sort, deduplicated by cid."""
        listing = subplebbit.mod_queue
        # Only moderators can read a forum's modqueue.
        if listing is None or not listing.page_cids:
            return []

        unique: dict[str, PageComment] = {}
        for sort, page_cid in listing.page_cids.items():
            if not page_cid:
                continue
            try:
                comments = await load_all_pages(page_cid, listing, self.page_queue)
            except REMOTE_ERRORS as e:
                logger.error(
                    "Error fetching modqueue page %s (%s) of %s: %s",
                    page_cid,
                    sort,
                    subplebbit.address,
                    e,
                )
                continue
            for comment in comments:
                if comment.cid:
                    unique[comment.cid] = comment
        return list(unique.values())

    async def resolve_item(self, cid: str) -> bool:
        """Mark a vanished modqueue item accepted or rejected and return which."""
        try:
            async with watch_comment(self.client, cid, self.resolve_timeout) as (_, accepted):
                pass
        except REMOTE_ERRORS as e:
            logger.error("Error resolving modqueue item %s: %s", cid, e)
            accepted = False

        await self.queries.run(lambda q: q.resolve_modqueue_comment(cid, accepted))
        logger.info("Resolved modqueue item %s: %s", cid, "accepted" if accepted else "rejected")
        return accepted
