"""IP type risk factor.

Only applies once IP intelligence is available (after the author opened the
challenge page); without it the factor is skipped.
"""

from __future__ import annotations

from spam_blocker.risk_score.types import (
    FACTOR_IP_RISK,
    NEUTRAL_SCORE,
    IpIntelligence,
    RiskContext,
    RiskFactor,
)

SCORE_TOR = 0.95
SCORE_PROXY = 0.85
SCORE_VPN = 0.75
SCORE_DATACENTER = 0.7
SCORE_RESIDENTIAL = 0.2


def classify_ip(intel: IpIntelligence) -> tuple[float, str]:
    """Return the score and label of the riskiest classification present."""
    if intel.is_tor:
        return SCORE_TOR, "Tor exit node"
    if intel.is_proxy:
        return SCORE_PROXY, "proxy server"
    if intel.is_vpn:
        return SCORE_VPN, "VPN"
    if intel.is_datacenter:
        return SCORE_DATACENTER, "datacenter IP"
    return SCORE_RESIDENTIAL, "residential IP"


def calculate_ip_risk(ctx: RiskContext, weight: float) -> RiskFactor:
    intel = ctx.ip_intelligence
    if intel is None:
        return RiskFactor(
            name=FACTOR_IP_RISK,
            score=NEUTRAL_SCORE,
            weight=0.0,
            explanation="IP risk: no IP intelligence available",
        )

    score, label = classify_ip(intel)
    explanation = f"IP risk: {label}"
    if intel.country_code:
        explanation += f" ({intel.country_code})"
    return RiskFactor(name=FACTOR_IP_RISK, score=score, weight=weight, explanation=explanation)
