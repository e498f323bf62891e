import pytest

from spam_blocker.indexer.previous_cid_crawler import PreviousCidCrawler
from spam_blocker.indexer.types import QueryRunner
from spam_blocker.models.indexer import DISCOVERED_VIA_MANUAL, DISCOVERED_VIA_PREVIOUS_COMMENT_CID
from tests.conftest import NOW, build_author, build_page_comment
from tests.remote_fakes import FakeClient, FakeComment, wait_until


@pytest.fixture()
def queries(session_factory):
    return QueryRunner(session_factory)


@pytest.fixture()
def client():
    return FakeClient()


@pytest.fixture()
def on_new_subplebbit(mocker):
    return mocker.AsyncMock()


@pytest.fixture()
def crawler(client, queries, on_new_subplebbit):
    return PreviousCidCrawler(
        client,
        queries,
        crawl_timeout=0.05,
        max_depth=3,
        idle_interval=0.01,
        on_new_subplebbit=on_new_subplebbit,
    )


def _remote_comment(cid, subplebbit="found.eth", previous=None, with_update=True):
    raw = build_page_comment(
        subplebbit=subplebbit, author=build_author(previous_comment_cid=previous)
    )
    raw.pop("cid")
    return FakeComment(
        cid,
        raw_comment=raw,
        pending_update={"cid": cid, "updatedAt": NOW} if with_update else None,
    )


def test_queue_crawl_deduplicates(crawler):
    assert crawler.queue_crawl("QmNew", "QmPrev")
    assert not crawler.queue_crawl("QmOther", "QmPrev")
    assert crawler.queue_size == 1


@pytest.mark.asyncio
async def test_process_discovers_forum_and_queues_next_hop(
    crawler, client, queries, on_new_subplebbit
):
    client.comments["QmPrev"] = _remote_comment("QmPrev", previous="QmOlder")

    result = await crawler.process("QmPrev", 0)

    assert result.subplebbit_address == "found.eth"
    assert result.next_previous_cid == "QmOlder"
    assert result.has_comment_update
    assert crawler.queue_size == 1
    assert crawler.active_crawls == 0
    on_new_subplebbit.assert_awaited_once_with("found.eth")
    forum = queries.run_sync(lambda q: q.get_indexed_subplebbit("found.eth"))
    assert forum.discovered_via == DISCOVERED_VIA_PREVIOUS_COMMENT_CID
    assert queries.run_sync(lambda q: q.get_comment_update("QmPrev").updated_at) == NOW
    assert client.comments["QmPrev"].stopped


@pytest.mark.asyncio
async def test_chain_stops_without_comment_update(crawler, client):
    client.comments["QmPrev"] = _remote_comment("QmPrev", previous="QmOlder", with_update=False)

    result = await crawler.process("QmPrev", 0)

    assert not result.has_comment_update
    assert crawler.queue_size == 0


@pytest.mark.asyncio
async def test_known_forum_is_not_announced(crawler, client, queries, on_new_subplebbit):
    queries.run_sync(lambda q: q.upsert_indexed_subplebbit("found.eth", DISCOVERED_VIA_MANUAL))
    client.comments["QmPrev"] = _remote_comment("QmPrev")

    await crawler.process("QmPrev", 0)

    on_new_subplebbit.assert_not_awaited()


@pytest.mark.asyncio
async def test_skips_indexed_cids_and_depth_limit(crawler, client):
    client.comments["QmPrev"] = _remote_comment("QmPrev")
    await crawler.process("QmPrev", 0)
    created = len(client.created)

    assert await crawler.process("QmPrev", 0) is None
    assert await crawler.process("QmDeep", 3) is None
    assert len(client.created) == created


@pytest.mark.asyncio
async def test_missing_or_failing_comments(crawler, client):
    client.failing_cids.add("QmBroken")

    assert await crawler.process("QmEmpty", 0) is None
    assert await crawler.process("QmBroken", 0) is None
    assert crawler.active_crawls == 0


@pytest.mark.asyncio
async def test_background_loop_follows_chain(crawler, client, queries, on_new_subplebbit):
    client.comments["QmFirst"] = _remote_comment("QmFirst", previous="QmSecond")
    client.comments["QmSecond"] = _remote_comment("QmSecond", subplebbit="older.eth")

    crawler.start()
    try:
        assert crawler.running
        crawler.queue_crawl("QmNew", "QmFirst")
        await wait_until(lambda: on_new_subplebbit.await_count == 2)
    finally:
        await crawler.stop()

    assert not crawler.running
    assert crawler.queue_size == 0
    assert queries.run_sync(lambda q: q.is_comment_indexed("QmSecond"))
    on_new_subplebbit.assert_awaited_with("older.eth")
