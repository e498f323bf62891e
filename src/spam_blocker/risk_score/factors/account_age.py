"""Account age factor.

Age is measured only from this service's own observations (first local
publication, first crawled comment). Age claims inside the request are
ignored because the forum that attached them could have fabricated them.
"""

from __future__ import annotations

from spam_blocker.risk_score.types import FACTOR_ACCOUNT_AGE, RiskContext, RiskFactor
from spam_blocker.risk_score.utils import SECONDS_PER_DAY

# (minimum age in days, exclusive; score; label), oldest first.
AGE_BUCKETS: tuple[tuple[int, float, str], ...] = (
    (365, 0.1, "very established"),
    (90, 0.2, "old"),
    (30, 0.35, "established"),
    (7, 0.5, "moderate"),
    (1, 0.7, "new"),
)
VERY_NEW_SCORE = 0.85
NO_HISTORY_SCORE = 1.0


def calculate_account_age(ctx: RiskContext, weight: float) -> RiskFactor:
    first_seen = ctx.data.get_author_first_seen_timestamp(ctx.author_public_key)
    if first_seen is None:
        return RiskFactor(
            name=FACTOR_ACCOUNT_AGE,
            score=NO_HISTORY_SCORE,
            weight=weight,
            explanation="No account history (first publication seen by this service)",
        )

    age_days = max(0, ctx.now - first_seen) / SECONDS_PER_DAY
    score, label = VERY_NEW_SCORE, "very new"
    for min_days, bucket_score, bucket_label in AGE_BUCKETS:
        if age_days > min_days:
            score, label = bucket_score, bucket_label
            break

    return RiskFactor(
        name=FACTOR_ACCOUNT_AGE,
        score=score,
        weight=weight,
        explanation=f"Account is {int(age_days)} days old ({label})",
    )
