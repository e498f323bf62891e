import pytest

from spam_blocker.indexer.comment_fetcher import CommentFetcher, load_all_pages, load_listing
from spam_blocker.indexer.page_queue import PageQueue
from spam_blocker.indexer.types import QueryRunner
from tests.conftest import NOW, build_author, build_page_comment
from tests.remote_fakes import FakeClient, FakeComment, FakePages, FakeSubplebbit


def _reply(cid, parent, **fields):
    return build_page_comment(
        cid, parentCid=parent, postCid=parent, depth=1, updatedAt=NOW - 30, **fields
    )


@pytest.fixture()
def queries(session_factory):
    return QueryRunner(session_factory)


@pytest.fixture()
def forum():
    paged_post = build_page_comment(
        "QmPost1", updatedAt=NOW - 10, replies={"pageCids": {"new": "QmRepliesPage"}}
    )
    inline_post = build_page_comment(
        "QmPost2",
        author=build_author(previous_comment_cid="QmEarlier"),
        updatedAt=NOW - 10,
        replies={"pages": {"best": {"comments": [_reply("QmReply2", "QmPost2")]}}},
    )
    posts = FakePages(
        page_cids={"new": "QmPage1", "hot": "QmHot"},
        remote_pages={
            "QmPage1": {"comments": [paged_post], "nextCid": "QmPage2"},
            "QmPage2": {"comments": [inline_post]},
        },
    )
    return FakeSubplebbit("news.eth", posts=posts)


@pytest.fixture()
def client():
    client = FakeClient()
    client.comments["QmPost1"] = FakeComment(
        "QmPost1",
        replies=FakePages(
            page_cids={"new": "QmRepliesPage"},
            remote_pages={"QmRepliesPage": {"comments": [_reply("QmReply1", "QmPost1")]}},
        ),
    )
    return client


@pytest.mark.asyncio
async def test_fetches_posts_and_reply_trees(client, forum, queries):
    previous = []
    fetcher = CommentFetcher(client, queries, PageQueue(2))

    result = await fetcher.fetch_subplebbit_comments(
        forum, on_previous_cid=lambda cid, prev: previous.append((cid, prev))
    )

    assert (result.posts_count, result.replies_count) == (2, 2)
    assert forum.posts.requested == ["QmPage1", "QmPage2"]
    assert [data["cid"] for data in client.created] == ["QmPost1"]
    assert previous == [("QmPost2", "QmEarlier")]
    assert queries.run_sync(lambda q: q.count_indexed_comments("news.eth")) == 4
    assert queries.run_sync(lambda q: q.get_comment_ipfs("QmPost1").depth) == 0
    assert queries.run_sync(lambda q: q.get_comment_ipfs("QmReply2").parent_cid) == "QmPost2"
    assert (
        queries.run_sync(lambda q: q.get_last_replies_page_cid("QmPost1")) == "QmRepliesPage"
    )


@pytest.mark.asyncio
async def test_unchanged_reply_pages_are_skipped(client, forum, queries):
    fetcher = CommentFetcher(client, queries, PageQueue(2))
    await fetcher.fetch_subplebbit_comments(forum)

    result = await fetcher.fetch_subplebbit_comments(forum)

    assert len(client.created) == 1
    # Inline replies are always present in the page and stored again as no-ops.
    assert (result.posts_count, result.replies_count) == (2, 1)


@pytest.mark.asyncio
async def test_reply_depth_limit(client, forum, queries):
    fetcher = CommentFetcher(client, queries, PageQueue(2), max_reply_depth=0)

    result = await fetcher.fetch_subplebbit_comments(forum)

    assert (result.posts_count, result.replies_count) == (2, 0)
    assert client.created == []


@pytest.mark.asyncio
async def test_page_errors_propagate(client, queries):
    posts = FakePages(page_cids={"new": "QmBroken"}, failing={"QmBroken"})
    fetcher = CommentFetcher(client, queries, PageQueue(2))

    with pytest.raises(OSError):
        await fetcher.fetch_subplebbit_comments(FakeSubplebbit("news.eth", posts=posts))


@pytest.mark.asyncio
async def test_inline_listing_prefers_hot():
    listing = FakePages(
        inline={
            "new": {"comments": [build_page_comment("QmNew")]},
            "hot": {"comments": [build_page_comment("QmHot")]},
        }
    )

    comments = await load_listing(listing, PageQueue(1), ("hot", "new"))

    assert [comment.cid for comment in comments] == ["QmHot"]


@pytest.mark.asyncio
async def test_empty_listing():
    assert await load_listing(FakePages(), PageQueue(1), ("hot", "new")) == []


@pytest.mark.asyncio
async def test_load_all_pages_requires_a_cid():
    with pytest.raises(ValueError):
        await load_all_pages("", FakePages(), PageQueue(1))


@pytest.mark.asyncio
async def test_comments_without_cid_are_skipped(client, queries):
    posts = FakePages(inline={"hot": {"comments": [build_page_comment(cid=None) | {"cid": None}]}})
    fetcher = CommentFetcher(client, queries, PageQueue(1))

    result = await fetcher.fetch_subplebbit_comments(FakeSubplebbit("news.eth", posts=posts))

    assert result.posts_count == 0
