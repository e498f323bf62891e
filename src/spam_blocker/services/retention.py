"""Periodic purge of abandoned challenge sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spam_blocker.core.settings import settings
from spam_blocker.db.session import SessionLocal
from spam_blocker.db.time import now_seconds
from spam_blocker.repositories.evidence_store import EvidenceStore

logger = logging.getLogger(__name__)


class SessionRetentionWorker:
    """Sweeps expired, never-completed sessions on a fixed interval.

    Each sweep opens a short-lived session and runs the purge in a worker
    thread so the event loop is never blocked on the database.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.retention_sweep_interval_seconds
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to finish."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def sweep_once(self) -> int:
        return await asyncio.to_thread(self._purge)

    def _purge(self) -> int:
        with self.session_factory() as db:
            return EvidenceStore(db).purge_expired_sessions(now_seconds())

    async def _run(self) -> None:
        interval = max(0.1, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await self.sweep_once()
            except SQLAlchemyError as e:
                logger.warning("SessionRetentionWorker encountered database error: %s", e)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
