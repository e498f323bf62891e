"""Social verification factor based on OAuth identities linked to the author.

Credibility per identity depends on the provider and is divided by
``sqrt(n)`` when the same identity was linked to ``n`` different authors.
Identities are combined strongest first, each further one contributing 70%
of the previous multiplier, and the total is capped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from spam_blocker.risk_score.types import (
    FACTOR_SOCIAL_VERIFICATION,
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
)
from spam_blocker.risk_score.utils import clamp

PROVIDER_CREDIBILITY: dict[str, float] = {
    "google": 1.0,
    "github": 1.0,
    "twitter": 0.85,
    "discord": 0.7,
    "tiktok": 0.6,
    "reddit": 0.6,
    "yandex": 0.5,
}
UNKNOWN_PROVIDER_CREDIBILITY = 0.5
MULTIPLE_SERVICE_DECAY = 0.7
MAX_COMBINED_CREDIBILITY = 2.5


@dataclass(frozen=True)
class IdentityCredibility:
    identity: str
    provider: str
    base: float
    author_count: int

    @property
    def effective(self) -> float:
        if self.author_count <= 0:
            return self.base
        return self.base / math.sqrt(self.author_count)


def provider_of(identity: str) -> str:
    """Return the provider part of a ``provider:id`` identity, lower-cased."""
    provider, _, _ = identity.partition(":")
    return provider.lower()


def combine_credibility(identities: list[IdentityCredibility]) -> float:
    total = 0.0
    multiplier = 1.0
    for item in sorted(identities, key=lambda item: item.effective, reverse=True):
        total += item.effective * multiplier
        multiplier *= MULTIPLE_SERVICE_DECAY
    return min(total, MAX_COMBINED_CREDIBILITY)


def credibility_to_score(credibility: float) -> float:
    return clamp(1 - 0.75 * credibility + 0.15 * credibility * credibility)


def calculate_social_verification(ctx: RiskContext, weight: float) -> RiskFactor:
    if not ctx.enabled_oauth_providers:
        return RiskFactor(
            name=FACTOR_SOCIAL_VERIFICATION,
            score=NEUTRAL_SCORE,
            weight=0.0,
            explanation="OAuth verification disabled on server",
        )

    identities = ctx.evidence.get_author_oauth_identities(ctx.author_public_key)
    if not identities:
        return RiskFactor(
            name=FACTOR_SOCIAL_VERIFICATION,
            score=1.0,
            weight=weight,
            explanation="No OAuth verification (OAuth enabled but author unverified)",
        )

    breakdown = [
        IdentityCredibility(
            identity=identity,
            provider=provider_of(identity),
            base=PROVIDER_CREDIBILITY.get(provider_of(identity), UNKNOWN_PROVIDER_CREDIBILITY),
            author_count=ctx.evidence.count_authors_with_oauth_identity(identity),
        )
        for identity in identities
    ]
    credibility = combine_credibility(breakdown)

    summary = ", ".join(
        item.provider
        + (f" (shared by {item.author_count} authors)" if item.author_count > 1 else "")
        for item in breakdown
    )
    if len(breakdown) == 1:
        explanation = f"Verified via {summary} (credibility: {credibility:.2f})"
    else:
        explanation = (
            f"Verified via {len(breakdown)} providers: {summary} "
            f"(combined credibility: {credibility:.2f})"
        )

    return RiskFactor(
        name=FACTOR_SOCIAL_VERIFICATION,
        score=credibility_to_score(credibility),
        weight=weight,
        explanation=explanation,
    )
