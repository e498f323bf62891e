"""Publication velocity factor.

Three signals are combined and the highest wins:

* per-type rate of the publication being evaluated
* aggregate rate across every tracked publication type
* cross-type penalty: when another type scores higher than the current one,
  half of the gap is blended into the current score
"""

from __future__ import annotations

from spam_blocker.repositories.records import VelocityStats
from spam_blocker.risk_score.types import (
    FACTOR_VELOCITY_RISK,
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
)
from spam_blocker.risk_score.utils import HOURS_PER_DAY, pick_bucket
from spam_blocker.schemas.publication import VELOCITY_TRACKED_TYPES

# Hourly (normal, elevated, suspicious) upper bounds per publication type.
VELOCITY_THRESHOLDS: dict[str, tuple[int, int, int]] = {
    "post": (2, 5, 8),
    "reply": (5, 10, 15),
    "vote": (20, 40, 60),
    "commentEdit": (3, 5, 10),
    "commentModeration": (5, 10, 15),
}
AGGREGATE_THRESHOLDS: tuple[int, int, int] = (25, 50, 80)

SCORE_NORMAL = 0.1
SCORE_ELEVATED = 0.4
SCORE_SUSPICIOUS = 0.7
SCORE_BOT_LIKE = 0.95

CROSS_TYPE_PENALTY_RATIO = 0.5


def effective_rate(stats: VelocityStats) -> float:
    """Hourly rate used for scoring: the last hour, or the 24h average if higher."""
    return max(stats.last_hour, stats.last_24_hours / HOURS_PER_DAY)


def classify_rate(rate: float, thresholds: tuple[int, int, int]) -> tuple[float, str]:
    normal, elevated, suspicious = thresholds
    return pick_bucket(
        rate,
        (
            (normal, SCORE_NORMAL, "normal"),
            (elevated, SCORE_ELEVATED, "elevated"),
            (suspicious, SCORE_SUSPICIOUS, "suspicious"),
        ),
        (SCORE_BOT_LIKE, "bot-like, likely automated"),
    )


def describe(stats: VelocityStats) -> str:
    return f"{stats.last_hour}/hr, {stats.last_24_hours}/24h"


def calculate_velocity(ctx: RiskContext, weight: float) -> RiskFactor:
    publication_type = ctx.publication_type
    if publication_type not in VELOCITY_THRESHOLDS:
        return RiskFactor(
            name=FACTOR_VELOCITY_RISK,
            score=NEUTRAL_SCORE,
            weight=0.0,
            explanation=f"Velocity not tracked for {publication_type}",
        )

    author = ctx.author_public_key
    own_stats = ctx.data.get_author_velocity_stats(author, publication_type, ctx.now)
    own_score, own_label = classify_rate(
        effective_rate(own_stats), VELOCITY_THRESHOLDS[publication_type]
    )

    aggregate_stats = ctx.data.get_author_aggregate_velocity_stats(author, ctx.now)
    aggregate_score, aggregate_label = classify_rate(
        effective_rate(aggregate_stats), AGGREGATE_THRESHOLDS
    )

    cross: tuple[float, str, VelocityStats, str] | None = None
    for other_type in VELOCITY_TRACKED_TYPES:
        if other_type == publication_type:
            continue
        other_stats = ctx.data.get_author_velocity_stats(author, other_type, ctx.now)
        other_score, other_label = classify_rate(
            effective_rate(other_stats), VELOCITY_THRESHOLDS[other_type]
        )
        if other_score <= own_score:
            continue
        penalized = own_score + (other_score - own_score) * CROSS_TYPE_PENALTY_RATIO
        if cross is None or penalized > cross[0]:
            cross = (penalized, other_type, other_stats, other_label)

    score = max(own_score, aggregate_score, cross[0] if cross else 0.0)

    parts = [f"Velocity ({publication_type}): {describe(own_stats)} ({own_label})"]
    if aggregate_score > own_score:
        parts.append(f"aggregate: {describe(aggregate_stats)} across all types ({aggregate_label})")
    if cross is not None:
        _, other_type, other_stats, other_label = cross
        parts.append(
            f"cross-type penalty from {other_type}: {describe(other_stats)} ({other_label})"
        )

    return RiskFactor(
        name=FACTOR_VELOCITY_RISK,
        score=score,
        weight=weight,
        explanation="; ".join(parts),
    )
