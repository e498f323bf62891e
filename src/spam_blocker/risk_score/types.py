"""Shared types for risk scoring: factor results, evaluation context and weights."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.schemas.publication import ChallengeRequest, Publication, PublicationType
from spam_blocker.services.combined_data import CombinedDataService

FACTOR_COMMENT_CONTENT_TITLE_RISK = "commentContentTitleRisk"
FACTOR_COMMENT_URL_RISK = "commentUrlRisk"
FACTOR_VELOCITY_RISK = "velocityRisk"
FACTOR_ACCOUNT_AGE = "accountAge"
FACTOR_KARMA_SCORE = "karmaScore"
FACTOR_IP_RISK = "ipRisk"
FACTOR_NETWORK_BAN_HISTORY = "networkBanHistory"
FACTOR_MODQUEUE_REJECTION_RATE = "modqueueRejectionRate"
FACTOR_NETWORK_REMOVAL_RATE = "networkRemovalRate"
FACTOR_SOCIAL_VERIFICATION = "socialVerification"
FACTOR_WALLET_VERIFICATION = "walletVerification"
FACTOR_WALLET_VELOCITY = "walletVelocity"

# Nominal weights; they sum to 1.0 and are renormalised over active factors.
DEFAULT_WEIGHTS: dict[str, float] = {
    FACTOR_COMMENT_CONTENT_TITLE_RISK: 0.14,
    FACTOR_COMMENT_URL_RISK: 0.12,
    FACTOR_VELOCITY_RISK: 0.10,
    FACTOR_ACCOUNT_AGE: 0.12,
    FACTOR_KARMA_SCORE: 0.10,
    FACTOR_IP_RISK: 0.08,
    FACTOR_NETWORK_BAN_HISTORY: 0.08,
    FACTOR_MODQUEUE_REJECTION_RATE: 0.05,
    FACTOR_NETWORK_REMOVAL_RATE: 0.05,
    FACTOR_SOCIAL_VERIFICATION: 0.06,
    FACTOR_WALLET_VERIFICATION: 0.05,
    FACTOR_WALLET_VELOCITY: 0.05,
}

NEUTRAL_SCORE = 0.5


def resolve_weights(overrides: Mapping[str, float] | None = None) -> dict[str, float]:
    """Merge partial weight overrides over :data:`DEFAULT_WEIGHTS`.

    Raises:
        ValueError: If an override names an unknown factor or is negative.
    """
    weights = dict(DEFAULT_WEIGHTS)
    for name, weight in (overrides or {}).items():
        if name not in DEFAULT_WEIGHTS:
            raise ValueError(f"Unknown risk factor: {name}")
        if weight < 0:
            raise ValueError(f"Weight for {name} must be non-negative, got {weight}")
        weights[name] = weight
    return weights


@dataclass
class RiskFactor:
    """One factor's contribution.

    ``weight`` is the nominal weight (0 means the factor was skipped);
    ``effective_weight`` is filled in by the engine after redistribution.
    """

    name: str
    score: float
    weight: float
    explanation: str
    effective_weight: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.weight > 0


@dataclass
class RiskScoreResult:
    score: float
    factors: list[RiskFactor]
    explanation: str

    def factor(self, name: str) -> RiskFactor | None:
        return next((factor for factor in self.factors if factor.name == name), None)


@dataclass(frozen=True)
class IpIntelligence:
    """IP classification supplied by an external IP intelligence provider."""

    is_vpn: bool = False
    is_proxy: bool = False
    is_tor: bool = False
    is_datacenter: bool = False
    country_code: str | None = None


@dataclass
class RiskContext:
    """Everything a factor needs to score one challenge request.

    Attributes:
        request: The decrypted challenge request being evaluated.
        now: Evaluation time in Unix seconds.
        data: Merged view over local and crawled evidence.
        evidence: Local store, for lookups only it holds (wallets, OAuth links).
        ip_intelligence: Optional IP classification for the requesting client.
        wallet_transaction_counts: Optional lower-cased wallet address -> nonce.
        enabled_oauth_providers: OAuth providers offered by the forum.
    """

    request: ChallengeRequest
    now: int
    data: CombinedDataService
    evidence: EvidenceStore
    ip_intelligence: IpIntelligence | None = None
    wallet_transaction_counts: Mapping[str, int] | None = None
    enabled_oauth_providers: Sequence[str] = field(default_factory=tuple)

    @property
    def publication(self) -> Publication:
        return self.request.publication

    @property
    def publication_type(self) -> PublicationType:
        return self.request.publication_type

    @property
    def author_public_key(self) -> str:
        return self.request.publication.author_public_key
