"""Factors computed from the crawled network mirror."""

import pytest

from spam_blocker.risk_score.factors.network_risk import (
    ban_history_score,
    calculate_modqueue_rejection_rate,
    calculate_network_ban_history,
    calculate_network_removal_rate,
)
from spam_blocker.schemas.pages import PageComment
from tests.conftest import NOW, build_page_comment, build_request

BANNED_AUTHOR = {"address": "author.eth", "subplebbit": {"banExpiresAt": NOW + 86_400}}
EXPIRED_BAN_AUTHOR = {"address": "author.eth", "subplebbit": {"banExpiresAt": NOW - 10}}


@pytest.mark.parametrize(
    ("banned", "distinct", "expected"),
    [
        (0, 1, 0.3),
        (0, 3, 0.2),
        (0, 7, 0.1),
        (0, 15, 0.0),
        (1, 10, 0.38),
        (3, 3, 1.0),
    ],
)
def test_ban_history_score(banned, distinct, expected):
    score, _, _ = ban_history_score(banned, distinct)
    assert score == pytest.approx(expected)


def test_ban_history_skipped_without_crawled_comments(make_context):
    factor = calculate_network_ban_history(make_context(build_request()), 0.08)

    assert factor.weight == 0
    assert factor.score == 0


def test_ban_history_from_indexed_forums(make_context, index_comment):
    index_comment(subplebbit="banned.eth", author=BANNED_AUTHOR, updatedAt=NOW - 60)
    for index in range(9):
        index_comment(subplebbit=f"clean{index}.eth", updatedAt=NOW - 60)

    factor = calculate_network_ban_history(make_context(build_request()), 0.08)

    assert factor.score == pytest.approx(0.38)
    assert factor.weight == 0.08
    assert "Banned in 1/10" in factor.explanation


def test_expired_bans_do_not_count(make_context, index_comment):
    index_comment(subplebbit="a.eth", author=EXPIRED_BAN_AUTHOR, updatedAt=NOW - 60)

    factor = calculate_network_ban_history(make_context(build_request()), 0.08)

    assert factor.score == pytest.approx(0.3)
    assert factor.explanation == "No active bans across 1 indexed subplebbit"


def test_ban_history_for_fully_banned_author(make_context, index_comment):
    for index in range(3):
        index_comment(subplebbit=f"s{index}.eth", author=BANNED_AUTHOR, updatedAt=NOW - 60)

    factor = calculate_network_ban_history(make_context(build_request()), 0.08)

    assert factor.score == 1.0


def _modqueue_item(indexer_queries, cid, accepted=None):
    comment = PageComment.model_validate(build_page_comment(cid))
    indexer_queries.upsert_modqueue_comment(cid, comment, "news.eth", seen_at=NOW - 600)
    if accepted is not None:
        indexer_queries.resolve_modqueue_comment(cid, accepted, resolved_at=NOW - 60)


def test_modqueue_rejection_rate(make_context, indexer_queries):
    _modqueue_item(indexer_queries, "QmA", accepted=False)
    _modqueue_item(indexer_queries, "QmB", accepted=False)
    _modqueue_item(indexer_queries, "QmC", accepted=False)
    _modqueue_item(indexer_queries, "QmD", accepted=True)
    _modqueue_item(indexer_queries, "QmPending")

    factor = calculate_modqueue_rejection_rate(make_context(build_request()), 0.05)

    assert factor.score == 0.9
    assert factor.explanation == "ModQueue: 75% rejection rate - high risk (3/4)"


def test_modqueue_low_rejection_rate(make_context, indexer_queries):
    _modqueue_item(indexer_queries, "QmA", accepted=False)
    for cid in ("QmB", "QmC", "QmD"):
        _modqueue_item(indexer_queries, cid, accepted=True)

    factor = calculate_modqueue_rejection_rate(make_context(build_request()), 0.05)

    assert factor.score == 0.3


def test_modqueue_skipped_without_resolved_items(make_context, indexer_queries):
    _modqueue_item(indexer_queries, "QmPending")

    factor = calculate_modqueue_rejection_rate(make_context(build_request()), 0.05)

    assert factor.weight == 0


def test_removal_rate(make_context, index_comment):
    index_comment(removed=True, updatedAt=NOW - 60)
    for _ in range(9):
        index_comment(updatedAt=NOW - 60)

    factor = calculate_network_removal_rate(make_context(build_request()), 0.05)

    assert factor.score == 0.3
    assert "(1/10 comments)" in factor.explanation


def test_disapproved_and_unfetchable_count_as_removed(
    make_context, index_comment, indexer_queries
):
    index_comment(approved=False, updatedAt=NOW - 60)
    unfetchable = index_comment()
    indexer_queries.record_comment_fetch_failure(unfetchable, failed_at=NOW - 30)
    index_comment(updatedAt=NOW - 60)
    index_comment(updatedAt=NOW - 60)

    factor = calculate_network_removal_rate(make_context(build_request()), 0.05)

    # 2 of 4 removed
    assert factor.score == 0.7
    assert "50%" in factor.explanation


def test_removal_rate_skipped_without_history(make_context):
    factor = calculate_network_removal_rate(make_context(build_request()), 0.05)

    assert factor.weight == 0
