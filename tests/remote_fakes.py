"""In-memory stand-ins for the remote forum client used by the indexer tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable
from typing import Any


class FakePages:
    """A listing whose pages are served from a dict keyed by page cid."""

    def __init__(
        self,
        remote_pages: dict[str, dict[str, Any]] | None = None,
        page_cids: dict[str, str] | None = None,
        inline: dict[str, Any] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.page_cids = page_cids or {}
        self.pages = inline or {}
        self.remote_pages = remote_pages or {}
        self.failing = failing or set()
        self.requested: list[str] = []

    async def get_page(self, cid: str) -> dict[str, Any]:
        self.requested.append(cid)
        if cid in self.failing:
            raise OSError(f"page {cid} unavailable")
        return self.remote_pages[cid]


class _Emitter:
    def __init__(self) -> None:
        self.listeners: dict[str, list[Callable[[], None]]] = defaultdict(list)
        self.update_calls = 0
        self.stopped = False

    def on(self, event: str, callback: Callable[[], None]) -> None:
        self.listeners[event].append(callback)

    def emit(self, event: str = "update") -> None:
        for callback in self.listeners[event]:
            callback()

    async def stop(self) -> None:
        self.stopped = True


class FakeSubplebbit(_Emitter):
    def __init__(
        self,
        address: str,
        *,
        posts: FakePages | None = None,
        mod_queue: FakePages | None = None,
        updated_at: int | None = None,
        public_key: str | None = None,
        update_error: Exception | None = None,
    ) -> None:
        super().__init__()
        self.address = address
        self.posts = posts or FakePages()
        self.mod_queue = mod_queue
        self.updated_at = updated_at
        self.public_key = public_key
        self.update_error = update_error

    async def update(self) -> None:
        self.update_calls += 1
        if self.update_error is not None:
            raise self.update_error


class FakeComment(_Emitter):
    """Comment handle; ``pending_update`` is delivered when ``update()`` is called."""

    def __init__(
        self,
        cid: str | None,
        *,
        raw_comment: dict[str, Any] | None = None,
        raw_comment_update: dict[str, Any] | None = None,
        pending_update: dict[str, Any] | None = None,
        replies: FakePages | None = None,
    ) -> None:
        super().__init__()
        self.cid = cid
        self.raw_comment = raw_comment
        self.raw_comment_update = raw_comment_update
        self.pending_update = pending_update
        self.replies = replies or FakePages()

    async def update(self) -> None:
        self.update_calls += 1
        if self.pending_update is not None:
            self.raw_comment_update = self.pending_update
            self.pending_update = None
            self.emit()


class FakeClient:
    def __init__(self) -> None:
        self.subplebbits: dict[str, FakeSubplebbit] = {}
        self.comments: dict[str, FakeComment] = {}
        self.failing_addresses: set[str] = set()
        self.failing_cids: set[str] = set()
        self.created: list[dict[str, Any]] = []
        self.destroyed = False

    async def get_subplebbit(self, address: str) -> FakeSubplebbit:
        if address in self.failing_addresses:
            raise OSError(f"cannot resolve {address}")
        if address not in self.subplebbits:
            self.subplebbits[address] = FakeSubplebbit(address)
        return self.subplebbits[address]

    async def create_comment(self, data: dict[str, Any]) -> FakeComment:
        self.created.append(dict(data))
        cid = data.get("cid")
        if cid in self.failing_cids:
            raise OSError(f"cannot load {cid}")
        return self.comments.get(cid) or FakeComment(cid)

    async def destroy(self) -> None:
        self.destroyed = True


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``condition`` until it holds, failing the test after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
