"""Wallet velocity factor.

Counts publications made with each of the author's wallets across every
author that used it, so one wallet shared by a farm of identities is caught
even when each identity posts slowly.
"""

from __future__ import annotations

from spam_blocker.risk_score.factors.velocity import (
    VELOCITY_THRESHOLDS,
    classify_rate,
    describe,
    effective_rate,
)
from spam_blocker.risk_score.types import FACTOR_WALLET_VELOCITY, RiskContext, RiskFactor
from spam_blocker.risk_score.utils import truncate_address


def calculate_wallet_velocity(ctx: RiskContext, weight: float) -> RiskFactor:
    wallets = ctx.publication.author.wallet_addresses()
    if not wallets:
        return RiskFactor(
            name=FACTOR_WALLET_VELOCITY,
            score=0.0,
            weight=0.0,
            explanation="Wallet velocity: no wallets linked to author",
        )

    publication_type = ctx.publication_type
    thresholds = VELOCITY_THRESHOLDS.get(publication_type)
    if thresholds is None:
        return RiskFactor(
            name=FACTOR_WALLET_VELOCITY,
            score=0.0,
            weight=0.0,
            explanation=f"Wallet velocity: not tracked for {publication_type}",
        )

    best = None
    for _, address in wallets:
        stats = ctx.evidence.get_wallet_velocity_stats(address, publication_type, ctx.now)
        score, label = classify_rate(effective_rate(stats), thresholds)
        if best is None or score > best[0]:
            best = (score, label, stats, address)

    score, label, stats, address = best
    return RiskFactor(
        name=FACTOR_WALLET_VELOCITY,
        score=score,
        weight=weight,
        explanation=(
            f"Wallet velocity ({publication_type}): {describe(stats)} "
            f"from {truncate_address(address)} ({label})"
        ),
    )
