"""Interfaces of the remote forum client the indexer crawls through.

The client is constructed by the caller and passed in explicitly; the
indexer owns its lifecycle from ``start()`` until ``destroy()`` on stop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any, Protocol

from spam_blocker.indexer.types import REMOTE_ERRORS

logger = logging.getLogger(__name__)

UPDATE_EVENT = "update"


class RemotePages(Protocol):
    """A paginated listing (posts, replies or modqueue) of a remote node.

    ``page_cids`` maps sort name to the cid of the first page; ``pages`` holds
    pages inlined into the parent object, keyed by sort name.
    """

    page_cids: Mapping[str, str]
    pages: Mapping[str, Any]

    async def get_page(self, cid: str) -> Any: ...


class RemoteSubplebbit(Protocol):
    address: str
    public_key: str | None
    updated_at: int | None
    posts: RemotePages
    mod_queue: RemotePages | None

    def on(self, event: str, callback: Callable[[], None]) -> None: ...

    async def update(self) -> None: ...

    async def stop(self) -> None: ...


class RemoteComment(Protocol):
    """A live comment handle; ``raw_*`` hold the payloads received so far."""

    cid: str | None
    raw_comment: Mapping[str, Any] | None
    raw_comment_update: Mapping[str, Any] | None
    replies: RemotePages

    def on(self, event: str, callback: Callable[[], None]) -> None: ...

    async def update(self) -> None: ...

    async def stop(self) -> None: ...


class RemoteClient(Protocol):
    async def get_subplebbit(self, address: str) -> RemoteSubplebbit: ...

    async def create_comment(self, data: Mapping[str, Any]) -> RemoteComment: ...

    async def destroy(self) -> None: ...


def has_full_update(comment: RemoteComment) -> bool:
    """True once a CommentUpdate (not just a challenge verification) has arrived."""
    update = comment.raw_comment_update
    return update is not None and update.get("updatedAt") is not None


@asynccontextmanager
async def watch_comment(
    client: RemoteClient, cid: str, timeout: float
) -> AsyncIterator[tuple[RemoteComment, bool]]:
    """Load ``cid`` and wait up to ``timeout`` seconds for its CommentUpdate.

    Yields the comment handle and whether a full CommentUpdate arrived. The
    handle is stopped on exit.
    """
    comment = await client.create_comment({"cid": cid})
    received = asyncio.Event()

    def on_update() -> None:
        if has_full_update(comment):
            received.set()

    comment.on(UPDATE_EVENT, on_update)
    try:
        await comment.update()
        if has_full_update(comment):
            received.set()
        try:
            await asyncio.wait_for(received.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("No CommentUpdate for %s within %.1fs", cid, timeout)
        yield comment, received.is_set()
    finally:
        try:
            await comment.stop()
        except REMOTE_ERRORS as e:
            logger.warning("Failed to stop comment %s: %s", cid, e)
