"""Wallet verification factor.

Uses a wallet's on-chain transaction count (nonce) as a proxy for age and
activity. A wallet already seen with a different author's public key is
discarded entirely, enforcing one wallet per author. The best remaining
wallet wins.
"""

from __future__ import annotations

from spam_blocker.risk_score.types import (
    FACTOR_WALLET_VERIFICATION,
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
)
from spam_blocker.risk_score.utils import pick_bucket, truncate_address

NONCE_LADDER = (
    (10, 0.35, "some activity"),
    (50, 0.25, "moderate activity"),
    (200, 0.15, "strong activity"),
)
VERY_STRONG = (0.10, "very strong activity")


def _skipped(explanation: str) -> RiskFactor:
    return RiskFactor(
        name=FACTOR_WALLET_VERIFICATION,
        score=NEUTRAL_SCORE,
        weight=0.0,
        explanation=explanation,
    )


def calculate_wallet_verification(ctx: RiskContext, weight: float) -> RiskFactor:
    wallets = ctx.publication.author.wallet_addresses()
    counts = ctx.wallet_transaction_counts
    if not wallets or not counts:
        return _skipped("No wallet data available")

    best_nonce = 0
    best_address = ""
    discarded = 0
    for _, address in wallets:
        nonce = counts.get(address.lower())
        if nonce is None:
            continue
        if ctx.evidence.is_wallet_used_by_other_author(address, ctx.author_public_key):
            discarded += 1
            continue
        if nonce > best_nonce:
            best_nonce = nonce
            best_address = address

    if best_nonce == 0:
        if discarded:
            return _skipped("All wallets discarded (used by other authors)")
        return _skipped("Wallet has no transaction history")

    score, label = pick_bucket(best_nonce, NONCE_LADDER, VERY_STRONG)
    return RiskFactor(
        name=FACTOR_WALLET_VERIFICATION,
        score=score,
        weight=weight,
        explanation=(
            f"Wallet {truncate_address(best_address)}: {best_nonce} transactions ({label})"
        ),
    )
