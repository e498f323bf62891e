"""Shared limit on concurrent page fetches across every crawled forum."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from spam_blocker.core.errors import PageQueueClearedError

T = TypeVar("T")


class PageQueue:
    """Runs page fetches with at most ``max_concurrent`` in flight.

    Fetches beyond the limit wait their turn. :meth:`clear` rejects waiting
    fetches with :class:`PageQueueClearedError`; running ones are not
    cancelled.
    """

    def __init__(self, max_concurrent: int = 10) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._running = 0
        self._pending = 0
        self._generation = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def running(self) -> int:
        return self._running

    @property
    def pending(self) -> int:
        return self._pending

    async def add(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` once a slot is free and return its result."""
        generation = self._generation
        self._pending += 1
        self._idle.clear()
        try:
            await self._semaphore.acquire()
        except asyncio.CancelledError:
            self._pending -= 1
            self._mark_idle()
            raise
        self._pending -= 1

        if generation != self._generation:
            self._semaphore.release()
            self._mark_idle()
            raise PageQueueClearedError("Queue cleared")

        self._running += 1
        try:
            return await task()
        finally:
            self._running -= 1
            self._semaphore.release()
            self._mark_idle()

    async def drain(self) -> None:
        """Wait until nothing is running or waiting."""
        await self._idle.wait()

    def clear(self) -> None:
        """Reject every fetch that has not started yet."""
        self._generation += 1

    def _mark_idle(self) -> None:
        if self._running == 0 and self._pending == 0:
            self._idle.set()
