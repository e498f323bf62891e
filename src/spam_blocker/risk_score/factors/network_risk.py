"""Network-wide factors computed from the crawled mirror.

All three factors describe how forums across the network have treated the
author: active bans, modqueue outcomes and removals. Each is skipped when the
indexer has nothing on the author.
"""

from __future__ import annotations

import math

from spam_blocker.risk_score.types import (
    FACTOR_MODQUEUE_REJECTION_RATE,
    FACTOR_NETWORK_BAN_HISTORY,
    FACTOR_NETWORK_REMOVAL_RATE,
    RiskContext,
    RiskFactor,
)
from spam_blocker.risk_score.utils import percent, pick_bucket

TRUST_PENALTY_BASE = 0.4
TRUST_PENALTY_STEP = 0.1

REJECTION_RATE_LADDER = (
    (0.1, 0.1, "very low"),
    (0.3, 0.3, "low"),
    (0.5, 0.5, "moderate"),
    (0.7, 0.7, "elevated risk"),
)
REMOVAL_RATE_LADDER = (
    (0.05, 0.1, "very low"),
    (0.15, 0.3, "low"),
    (0.3, 0.5, "moderate"),
    (0.5, 0.7, "elevated risk"),
)
HIGH_RATE = (0.9, "high risk")


def ban_history_score(banned: int, distinct: int) -> tuple[float, float, float]:
    """Return ``(score, severity, trust_penalty)`` for ``banned`` of ``distinct`` forums.

    Severity is ``sqrt(banned / distinct)`` (1.0 when every forum banned the
    author). The trust penalty ``max(0, 0.4 - 0.1 * log2(1 + clean))`` shrinks as
    clean forums accumulate and reaches zero at 15.
    """
    clean = max(0, distinct - banned)
    if banned == 0:
        severity = 0.0
    elif banned >= distinct:
        severity = 1.0
    else:
        severity = math.sqrt(banned / distinct)
    trust_penalty = max(0.0, TRUST_PENALTY_BASE - TRUST_PENALTY_STEP * math.log2(1 + clean))
    return round(min(1.0, severity + trust_penalty), 2), severity, trust_penalty


def calculate_network_ban_history(ctx: RiskContext, weight: float) -> RiskFactor:
    stats = ctx.data.get_author_network_stats(ctx.author_public_key, ctx.now)
    if stats.total_indexed_comments == 0:
        return RiskFactor(
            name=FACTOR_NETWORK_BAN_HISTORY,
            score=0.0,
            weight=0.0,
            explanation="No posting history to evaluate bans",
        )

    banned = stats.ban_count
    distinct = stats.distinct_subplebbits
    score, severity, trust_penalty = ban_history_score(banned, distinct)
    plural = "s" if distinct != 1 else ""
    if banned == 0:
        explanation = f"No active bans across {distinct} indexed subplebbit{plural}"
    else:
        explanation = (
            f"Banned in {banned}/{distinct} indexed subplebbit{plural} "
            f"(severity={severity:.2f}, trustPenalty={trust_penalty:.2f})"
        )
    return RiskFactor(
        name=FACTOR_NETWORK_BAN_HISTORY, score=score, weight=weight, explanation=explanation
    )


def calculate_modqueue_rejection_rate(ctx: RiskContext, weight: float) -> RiskFactor:
    stats = ctx.data.get_author_network_stats(ctx.author_public_key, ctx.now)
    resolved = stats.modqueue_accepted + stats.modqueue_rejected
    if resolved == 0:
        return RiskFactor(
            name=FACTOR_MODQUEUE_REJECTION_RATE,
            score=0.0,
            weight=0.0,
            explanation="No modqueue data available",
        )

    rate = stats.modqueue_rejected / resolved
    score, label = pick_bucket(rate, REJECTION_RATE_LADDER, HIGH_RATE)
    return RiskFactor(
        name=FACTOR_MODQUEUE_REJECTION_RATE,
        score=score,
        weight=weight,
        explanation=(
            f"ModQueue: {percent(rate)} rejection rate - {label} "
            f"({stats.modqueue_rejected}/{resolved})"
        ),
    )


def calculate_network_removal_rate(ctx: RiskContext, weight: float) -> RiskFactor:
    stats = ctx.data.get_author_network_stats(ctx.author_public_key, ctx.now)
    total = stats.total_indexed_comments
    if total == 0:
        return RiskFactor(
            name=FACTOR_NETWORK_REMOVAL_RATE,
            score=0.0,
            weight=0.0,
            explanation="No indexed comments for this author",
        )

    removed = stats.removal_count + stats.disapproval_count + stats.unfetchable_count
    rate = removed / total
    score, label = pick_bucket(rate, REMOVAL_RATE_LADDER, HIGH_RATE)
    return RiskFactor(
        name=FACTOR_NETWORK_REMOVAL_RATE,
        score=score,
        weight=weight,
        explanation=(
            f"Network removal rate: {percent(rate)} - {label} ({removed}/{total} comments)"
        ),
    )
