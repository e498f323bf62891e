import pytest
from sqlalchemy.exc import OperationalError

from spam_blocker.db.time import now_seconds
from spam_blocker.models.challenge import SESSION_STATUS_COMPLETED
from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.services.retention import SessionRetentionWorker
from tests.remote_fakes import wait_until

DAY = 86_400


def _seed(session_factory):
    now = now_seconds()
    with session_factory() as db:
        store = EvidenceStore(db)
        store.insert_challenge_session(session_id="abandoned", expires_at=now - 2 * DAY)
        store.insert_challenge_session(session_id="verified", expires_at=now - 2 * DAY)
        store.update_challenge_session_status(
            "verified", SESSION_STATUS_COMPLETED, completed_at=now - 2 * DAY
        )
        store.insert_challenge_session(session_id="active", expires_at=now + 600)


def _remaining(session_factory):
    with session_factory() as db:
        store = EvidenceStore(db)
        return {
            session_id
            for session_id in ("abandoned", "verified", "active")
            if store.get_challenge_session(session_id) is not None
        }


@pytest.mark.asyncio
async def test_sweep_once_purges_abandoned_sessions(session_factory):
    _seed(session_factory)
    worker = SessionRetentionWorker(session_factory, interval_seconds=60)

    assert await worker.sweep_once() == 1
    assert _remaining(session_factory) == {"verified", "active"}


@pytest.mark.asyncio
async def test_worker_loop_survives_database_errors(session_factory, mocker):
    worker = SessionRetentionWorker(session_factory, interval_seconds=0.1)
    sweep = mocker.patch.object(
        worker,
        "sweep_once",
        side_effect=[OperationalError("DELETE", {}, Exception("locked")), 0, 0, 0],
    )

    await worker.start()
    assert worker.running
    try:
        await wait_until(lambda: sweep.await_count >= 2)
    finally:
        await worker.stop()

    assert not worker.running


@pytest.mark.asyncio
async def test_stop_before_start_is_a_no_op(session_factory):
    worker = SessionRetentionWorker(session_factory, interval_seconds=1)

    await worker.stop()

    assert not worker.running
