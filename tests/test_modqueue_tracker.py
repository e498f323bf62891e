import pytest

from spam_blocker.indexer.modqueue_tracker import ModQueueTracker
from spam_blocker.indexer.page_queue import PageQueue
from spam_blocker.indexer.types import QueryRunner
from tests.conftest import NOW, build_page_comment
from tests.remote_fakes import FakeClient, FakeComment, FakePages, FakeSubplebbit


def _queue_pages(*cids):
    return {"QmQueuePage": {"comments": [build_page_comment(cid) for cid in cids]}}


@pytest.fixture()
def queries(session_factory):
    return QueryRunner(session_factory)


@pytest.fixture()
def client():
    return FakeClient()


@pytest.fixture()
def tracker(client, queries):
    return ModQueueTracker(client, queries, PageQueue(2), resolve_timeout=0.05)


def _forum(*cids):
    mod_queue = FakePages(page_cids={"new": "QmQueuePage"}, remote_pages=_queue_pages(*cids))
    return FakeSubplebbit("news.eth", mod_queue=mod_queue)


@pytest.mark.asyncio
async def test_current_items_are_stored(tracker, queries):
    assert await tracker.process_modqueue(_forum("QmA", "QmB")) == 2

    unresolved = queries.run_sync(lambda q: q.get_unresolved_modqueue_cids("news.eth"))
    assert sorted(unresolved) == ["QmA", "QmB"]


@pytest.mark.asyncio
async def test_vanished_items_are_resolved(tracker, queries, client):
    await tracker.process_modqueue(_forum("QmAccepted", "QmRejected", "QmBroken", "QmStill"))
    client.comments["QmAccepted"] = FakeComment(
        "QmAccepted", pending_update={"cid": "QmAccepted", "updatedAt": NOW}
    )
    # A challenge verification without a CommentUpdate does not count as accepted.
    client.comments["QmRejected"] = FakeComment(
        "QmRejected", raw_comment_update={"cid": "QmRejected"}
    )
    client.failing_cids.add("QmBroken")

    assert await tracker.process_modqueue(_forum("QmStill")) == 1

    def outcome(cid):
        return queries.run_sync(lambda q: q.get_modqueue_comment(cid).accepted)

    assert outcome("QmAccepted") is True
    assert outcome("QmRejected") is False
    assert outcome("QmBroken") is False
    assert outcome("QmStill") is None
    assert client.comments["QmAccepted"].stopped
    assert queries.run_sync(lambda q: q.get_unresolved_modqueue_cids("news.eth")) == ["QmStill"]


@pytest.mark.asyncio
async def test_resolve_item_reports_outcome(tracker, client):
    client.comments["QmX"] = FakeComment("QmX", pending_update={"updatedAt": NOW})

    assert await tracker.resolve_item("QmX")


@pytest.mark.asyncio
async def test_items_are_deduplicated_across_sorts(tracker):
    mod_queue = FakePages(
        page_cids={"new": "QmNewPage", "old": "QmOldPage", "top": "QmMissing"},
        remote_pages={
            "QmNewPage": {"comments": [build_page_comment("QmA"), build_page_comment("QmB")]},
            "QmOldPage": {"comments": [build_page_comment("QmB")]},
        },
        failing={"QmMissing"},
    )

    items = await tracker.fetch_all_items(FakeSubplebbit("news.eth", mod_queue=mod_queue))

    assert sorted(item.cid for item in items) == ["QmA", "QmB"]


@pytest.mark.asyncio
async def test_forum_without_readable_modqueue(tracker):
    assert await tracker.fetch_all_items(FakeSubplebbit("news.eth")) == []
    assert await tracker.process_modqueue(FakeSubplebbit("news.eth")) == 0
