"""Risk scoring: factors, weight redistribution and challenge tiers."""

from spam_blocker.risk_score.challenge_tier import (
    ChallengeTier,
    ChallengeTierConfig,
    determine_challenge_tier,
)
from spam_blocker.risk_score.engine import combine_factors, evaluate
from spam_blocker.risk_score.types import (
    DEFAULT_WEIGHTS,
    IpIntelligence,
    RiskContext,
    RiskFactor,
    RiskScoreResult,
)

__all__ = [
    "DEFAULT_WEIGHTS",
    "ChallengeTier",
    "ChallengeTierConfig",
    "IpIntelligence",
    "RiskContext",
    "RiskFactor",
    "RiskScoreResult",
    "combine_factors",
    "determine_challenge_tier",
    "evaluate",
]
