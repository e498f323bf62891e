import pytest

from spam_blocker.repositories.records import VelocityStats
from spam_blocker.risk_score.factors.velocity import (
    AGGREGATE_THRESHOLDS,
    VELOCITY_THRESHOLDS,
    calculate_velocity,
    classify_rate,
    effective_rate,
)
from tests.conftest import NOW, build_request

WEIGHT = 0.1


def record_many(record_publication, kind, count, received_at=NOW - 60, **fields):
    for _ in range(count):
        record_publication(build_request(kind, **fields), received_at=received_at)


def test_effective_rate_uses_daily_average_when_higher():
    assert effective_rate(VelocityStats(last_hour=1, last_24_hours=48)) == 2
    assert effective_rate(VelocityStats(last_hour=5, last_24_hours=24)) == 5


@pytest.mark.parametrize(
    ("rate", "expected"),
    [(25, 0.1), (26, 0.4), (50, 0.4), (80, 0.7), (81, 0.95)],
)
def test_aggregate_ladder(rate, expected):
    score, _ = classify_rate(rate, AGGREGATE_THRESHOLDS)
    assert score == expected


@pytest.mark.parametrize(
    ("publication_type", "rate", "expected"),
    [
        ("post", 2, 0.1),
        ("post", 5, 0.4),
        ("post", 8, 0.7),
        ("post", 9, 0.95),
        ("reply", 10, 0.4),
        ("reply", 15, 0.7),
        ("reply", 16, 0.95),
        ("vote", 40, 0.4),
        ("vote", 60, 0.7),
        ("vote", 61, 0.95),
        ("commentEdit", 3, 0.1),
        ("commentEdit", 10, 0.7),
        ("commentEdit", 11, 0.95),
        ("commentModeration", 5, 0.1),
        ("commentModeration", 15, 0.7),
        ("commentModeration", 16, 0.95),
    ],
)
def test_per_type_ladders(publication_type, rate, expected):
    score, _ = classify_rate(rate, VELOCITY_THRESHOLDS[publication_type])
    assert score == expected


def test_no_history_is_normal(make_context):
    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.1)
    assert factor.weight == WEIGHT
    assert "post" in factor.explanation
    assert "0/hr" in factor.explanation


def test_posting_burst_is_bot_like(make_context, record_publication):
    record_many(record_publication, "post", 15)

    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.95)
    assert "15/hr" in factor.explanation
    assert "likely automated" in factor.explanation
    assert "cross-type penalty" not in factor.explanation


def test_ten_posts_an_hour_is_bot_like(make_context, record_publication):
    record_many(record_publication, "post", 10)

    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.95)
    assert "10/hr" in factor.explanation


def test_elevated_votes(make_context, record_publication):
    record_many(record_publication, "vote", 25)

    factor = calculate_velocity(make_context(build_request("vote")), WEIGHT)

    assert factor.score == pytest.approx(0.4)


def test_aggregate_rate_catches_spread_out_bot(make_context, record_publication):
    record_many(record_publication, "vote", 150)
    record_many(record_publication, "post", 1)

    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.95)
    assert "aggregate" in factor.explanation
    assert "cross-type penalty" in factor.explanation
    assert "vote" in factor.explanation


def test_cross_type_penalty_blends_half_the_gap(make_context, record_publication):
    record_many(record_publication, "reply", 30)

    factor = calculate_velocity(make_context(build_request("vote")), WEIGHT)

    # own vote score 0.1, replies bot-like 0.95: 0.1 + 0.85 * 0.5
    assert factor.score == pytest.approx(0.525)
    assert "cross-type penalty" in factor.explanation
    assert "reply" in factor.explanation


def test_mixed_activity_uses_aggregate(make_context, record_publication):
    record_many(record_publication, "vote", 40)
    record_many(record_publication, "reply", 10)
    record_many(record_publication, "post", 5)
    record_many(record_publication, "commentEdit", 10)

    factor = calculate_velocity(make_context(build_request("vote")), WEIGHT)

    assert factor.score == pytest.approx(0.7)
    assert "aggregate" in factor.explanation
    assert "65/hr" in factor.explanation


def test_old_activity_only_counts_in_daily_average(make_context, record_publication):
    record_many(record_publication, "post", 3, received_at=NOW - 5 * 3600)

    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.1)
    assert "0/hr, 3/24h" in factor.explanation


def test_crawled_posts_count_towards_velocity(make_context, index_comment):
    for _ in range(6):
        index_comment(timestamp=NOW - 120)

    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.7)


def test_other_authors_do_not_count(make_context, record_publication):
    for _ in range(20):
        record_publication(build_request("post", author_key="someone-else"))

    factor = calculate_velocity(make_context(build_request("post")), WEIGHT)

    assert factor.score == pytest.approx(0.1)


def test_forum_settings_edits_are_not_tracked(make_context):
    factor = calculate_velocity(make_context(build_request("subplebbitEdit")), WEIGHT)

    assert factor.weight == 0
    assert factor.score == 0.5
