"""Paginated traversal of a forum's posts and reply trees.

Replies are walked with an explicit worklist. A comment whose stored
``last_replies_page_cid`` equals the one it currently advertises is not
re-fetched: its reply tree has not changed since it was last stored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from spam_blocker.indexer.client import RemoteClient, RemoteComment, RemotePages, RemoteSubplebbit
from spam_blocker.indexer.page_queue import PageQueue
from spam_blocker.indexer.types import QueryRunner
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.schemas.pages import CommentIpfs, CommentUpdate, Page, PageComment, parse_remote

logger = logging.getLogger(__name__)

# Inlined page to use when a listing has no page cids, in order of preference.
POSTS_INLINE_SORTS = ("hot", "new")
REPLIES_INLINE_SORTS = ("best", "new")

PreviousCidCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class FetchResult:
    posts_count: int = 0
    replies_count: int = 0


@dataclass(frozen=True)
class RawCommentResult:
    comment: CommentIpfs | None
    has_update: bool = False


@dataclass(frozen=True)
class _Visit:
    comment: PageComment
    depth: int


@dataclass(frozen=True)
class _MarkReplies:
    """Record a replies page cid once every reply under it has been stored."""

    cid: str
    page_cid: str


async def load_all_pages(
    first_page_cid: str, listing: RemotePages, page_queue: PageQueue
) -> list[PageComment]:
    """Fetch ``first_page_cid`` and every page reachable through ``nextCid``."""
    if not first_page_cid:
        raise ValueError("Can't load all pages without a page cid")

    comments: list[PageComment] = []
    next_cid: str | None = first_page_cid
    while next_cid:
        cid = next_cid
        raw = await page_queue.add(lambda: listing.get_page(cid))
        page = parse_remote(Page, raw, f"page {cid}")
        comments.extend(page.comments)
        next_cid = page.next_cid
    return comments


async def load_listing(
    listing: RemotePages, page_queue: PageQueue, inline_sorts: Sequence[str]
) -> list[PageComment]:
    """Load every comment of a listing.

    Small listings are fully inlined with no page cids; the preferred inlined
    sort is used then. Otherwise pages are followed from the "new" sort, or
    from any sort if "new" is absent.
    """
    page_cids = listing.page_cids or {}
    pages = listing.pages or {}
    if not page_cids:
        if not pages:
            return []
        inline = _pick_inline_page(pages, inline_sorts)
        return parse_remote(Page, inline, "inlined page").comments if inline else []

    first_page_cid = page_cids.get("new") or next(iter(page_cids.values()), None)
    if not first_page_cid:
        return []
    return await load_all_pages(first_page_cid, listing, page_queue)


def _pick_inline_page(pages: Mapping[str, Any], sorts: Sequence[str]) -> Any:
    for sort in sorts:
        if pages.get(sort) is not None:
            return pages[sort]
    return next(iter(pages.values()), None)


def store_comment_from_page(
    queries: IndexerQueries, comment: PageComment, subplebbit_address: str
) -> bool:
    """Store a page comment's immutable fields and, if present, its update fields.

    Returns:
        False if the comment has no cid and was skipped.
    """
    if not comment.cid:
        logger.warning("Skipping page comment without cid in %s", subplebbit_address)
        return False

    ipfs = comment if comment.depth is not None else comment.model_copy(update={"depth": 0})
    queries.insert_comment_ipfs(comment.cid, ipfs, subplebbit_address)
    if comment.updated_at is not None:
        queries.upsert_comment_update(comment.cid, comment)
    return True


def store_raw_comment(queries: IndexerQueries, comment: RemoteComment) -> RawCommentResult:
    """Store a comment loaded on its own (outside of any page).

    Raises:
        InvalidRemoteDataError: If the raw payloads are malformed.
    """
    if comment.raw_comment is None:
        logger.warning("Comment %s has no raw comment data", comment.cid)
        return RawCommentResult(comment=None)
    if not comment.cid:
        logger.warning("Raw comment has no cid")
        return RawCommentResult(comment=None)

    ipfs = parse_remote(CommentIpfs, comment.raw_comment, f"comment {comment.cid}")
    queries.insert_comment_ipfs(comment.cid, ipfs, ipfs.subplebbit_address)

    if comment.raw_comment_update is None:
        return RawCommentResult(comment=ipfs)

    update = parse_remote(
        CommentUpdate, comment.raw_comment_update, f"comment update {comment.cid}"
    )
    queries.upsert_comment_update(comment.cid, update)
    return RawCommentResult(comment=ipfs, has_update=True)


class CommentFetcher:
    """Walks a forum's posts and replies and writes them to the indexer store.

    Args:
        client: Remote client used to open reply listings.
        queries: Store access for the indexer tables.
        page_queue: Shared page fetch limiter.
        max_reply_depth: Depth at which reply traversal stops (None: unlimited).
    """

    def __init__(
        self,
        client: RemoteClient,
        queries: QueryRunner,
        page_queue: PageQueue,
        max_reply_depth: int | None = None,
    ) -> None:
        self.client = client
        self.queries = queries
        self.page_queue = page_queue
        self.max_reply_depth = max_reply_depth

    async def load_all_posts(self, subplebbit: RemoteSubplebbit) -> list[PageComment]:
        return await load_listing(subplebbit.posts, self.page_queue, POSTS_INLINE_SORTS)

    async def load_all_replies(self, comment: RemoteComment) -> list[PageComment]:
        return await load_listing(comment.replies, self.page_queue, REPLIES_INLINE_SORTS)

    async def fetch_subplebbit_comments(
        self,
        subplebbit: RemoteSubplebbit,
        on_previous_cid: PreviousCidCallback | None = None,
    ) -> FetchResult:
        """Store every post of ``subplebbit`` and the reply trees that changed.

        Args:
            subplebbit: Live forum handle.
            on_previous_cid: Called with ``(cid, previous_comment_cid)`` for each
                stored comment whose author links an earlier comment.
        """
        address = subplebbit.address
        posts = await self.load_all_posts(subplebbit)

        posts_count = 0
        replies_count = 0
        worklist: list[_Visit | _MarkReplies] = [_Visit(post, 0) for post in reversed(posts)]

        while worklist:
            item = worklist.pop()
            if isinstance(item, _MarkReplies):
                await self.queries.run(
                    lambda q, item=item: q.set_last_replies_page_cid(item.cid, item.page_cid)
                )
                continue

            comment, depth = item.comment, item.depth
            stored = await self.queries.run(
                lambda q, comment=comment: store_comment_from_page(q, comment, address)
            )
            if not stored:
                continue
            if depth == 0:
                posts_count += 1
            else:
                replies_count += 1

            previous_cid = comment.author.previous_comment_cid
            if on_previous_cid is not None and previous_cid:
                on_previous_cid(comment.cid, previous_cid)

            if self.max_reply_depth is not None and depth >= self.max_reply_depth:
                continue
            worklist.extend(await self._reply_work(comment, depth))

        logger.info(
            "Indexed %d posts and %d replies from %s", posts_count, replies_count, address
        )
        return FetchResult(posts_count=posts_count, replies_count=replies_count)

    async def _reply_work(self, comment: PageComment, depth: int) -> list[_Visit | _MarkReplies]:
        """Return the work items for ``comment``'s replies, last to be processed first."""
        if comment.replies is None:
            return []

        replies_page_cid = comment.first_replies_page_cid()
        if replies_page_cid is None:
            # Small reply trees are fully inlined in the parent's page.
            inline = _pick_inline_page(comment.replies.pages, REPLIES_INLINE_SORTS)
            replies = inline.comments if inline is not None else []
            return [_Visit(reply, depth + 1) for reply in reversed(replies)]

        cid = comment.cid
        last_page_cid = await self.queries.run(lambda q: q.get_last_replies_page_cid(cid))
        if last_page_cid == replies_page_cid:
            logger.debug("Replies of %s unchanged, skipping", cid)
            return []

        remote = await self.client.create_comment(comment.to_wire())
        replies = await self.load_all_replies(remote)
        work: list[_Visit | _MarkReplies] = [_MarkReplies(cid, replies_page_cid)]
        work.extend(_Visit(reply, depth + 1) for reply in reversed(replies))
        return work
