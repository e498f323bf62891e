"""Count-based karma factor.

Each forum counts as at most one vote: an author is "positive" in a forum
with net positive karma there and "negative" with net negative karma. The
score comes from how many forums fall on each side, so one forum reporting an
extreme karma value cannot swing the result on its own.
"""

from __future__ import annotations

from spam_blocker.risk_score.types import (
    FACTOR_KARMA_SCORE,
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
)

# (minimum |net|, score when net positive, score when net negative)
NET_BUCKETS: tuple[tuple[int, float, float], ...] = (
    (5, 0.1, 0.9),
    (3, 0.2, 0.8),
    (1, 0.35, 0.65),
)


def _classify(post_score: int | None, reply_score: int | None) -> int:
    total = (post_score or 0) + (reply_score or 0)
    return (total > 0) - (total < 0)


def calculate_karma(ctx: RiskContext, weight: float) -> RiskFactor:
    publication = ctx.publication
    current_address = publication.subplebbit_address

    positive = 0
    negative = 0

    current = publication.author.subplebbit
    if current is not None:
        sign = _classify(current.post_score, current.reply_score)
        positive += sign > 0
        negative += sign < 0

    karma = ctx.data.get_author_karma_by_subplebbit(ctx.author_public_key)
    for address, record in karma.items():
        # The request's own karma is authoritative for the current forum.
        if address == current_address:
            continue
        sign = _classify(record.post_score, record.reply_score)
        positive += sign > 0
        negative += sign < 0

    summary = f"{positive} positive, {negative} negative subplebbits"
    if positive == 0 and negative == 0:
        return RiskFactor(
            name=FACTOR_KARMA_SCORE,
            score=NEUTRAL_SCORE,
            weight=weight,
            explanation="Karma: no karma signal in any subplebbit (neutral)",
        )

    net = positive - negative
    if net == 0:
        return RiskFactor(
            name=FACTOR_KARMA_SCORE,
            score=NEUTRAL_SCORE,
            weight=weight,
            explanation=f"Karma: {summary} (mixed)",
        )

    score = NEUTRAL_SCORE
    for min_net, positive_score, negative_score in NET_BUCKETS:
        if abs(net) >= min_net:
            score = positive_score if net > 0 else negative_score
            break

    standing = "positive" if net > 0 else "negative"
    return RiskFactor(
        name=FACTOR_KARMA_SCORE,
        score=score,
        weight=weight,
        explanation=f"Karma: {summary} (net {net:+d}, {standing})",
    )
