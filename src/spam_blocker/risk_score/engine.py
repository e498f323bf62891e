"""Risk scoring engine.

Runs every factor with its nominal weight, then redistributes weight over
the factors that actually applied: with ``W`` the sum of active weights, each
active factor gets ``weight / W`` so the effective weights sum to 1. The
final score is therefore unaffected by factors that were skipped for this
publication type. When nothing applies the score is neutral.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from spam_blocker.risk_score.factors import FACTOR_CALCULATORS
from spam_blocker.risk_score.types import (
    NEUTRAL_SCORE,
    RiskContext,
    RiskFactor,
    RiskScoreResult,
    resolve_weights,
)
from spam_blocker.risk_score.utils import clamp, percent

logger = logging.getLogger(__name__)

TOP_FACTOR_COUNT = 3


def risk_level(score: float) -> str:
    if score < 0.3:
        return "Low"
    if score < 0.7:
        return "Moderate"
    return "High"


def combine_factors(factors: list[RiskFactor]) -> RiskScoreResult:
    """Assign effective weights and compute the weighted score.

    ``factors`` are updated in place with their effective weight.
    """
    total_weight = sum(factor.weight for factor in factors if factor.is_active)

    if total_weight <= 0:
        for factor in factors:
            factor.effective_weight = 0.0
        score = NEUTRAL_SCORE
    else:
        for factor in factors:
            factor.effective_weight = factor.weight / total_weight if factor.is_active else 0.0
        score = clamp(sum(factor.score * factor.effective_weight for factor in factors))

    return RiskScoreResult(score=score, factors=factors, explanation=explain(score, factors))


def explain(score: float, factors: list[RiskFactor]) -> str:
    """Summarise the score and the factors contributing most to it."""
    top = sorted(
        (factor for factor in factors if factor.effective_weight > 0),
        key=lambda factor: factor.score * factor.effective_weight,
        reverse=True,
    )[:TOP_FACTOR_COUNT]
    summary = ", ".join(f"{factor.name}: {percent(factor.score)}" for factor in top)
    return f"{risk_level(score)} risk ({percent(score)}). Key factors: {summary or 'none'}"


def evaluate(
    ctx: RiskContext, weights: Mapping[str, float] | None = None
) -> RiskScoreResult:
    """Score a challenge request.

    Args:
        ctx: Evaluation context (request, clock, data access, side inputs).
        weights: Optional partial overrides of the default factor weights.

    Returns:
        The final score with a per-factor breakdown and an explanation.
    """
    resolved = resolve_weights(weights)
    factors = [
        calculator(ctx, resolved[name]) for name, calculator in FACTOR_CALCULATORS.items()
    ]
    result = combine_factors(factors)
    logger.debug(
        "Risk score %.3f for %s from %s: %s",
        result.score,
        ctx.publication_type,
        ctx.author_public_key,
        result.explanation,
    )
    return result
