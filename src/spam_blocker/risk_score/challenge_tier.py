"""Map a risk score to the challenge an author must pass."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from spam_blocker.core.errors import InvalidChallengeTierConfigError
from spam_blocker.core.settings import settings

ChallengeTier = Literal["auto_accept", "captcha_only", "captcha_and_oauth", "auto_reject"]

TIER_AUTO_ACCEPT: ChallengeTier = "auto_accept"
TIER_CAPTCHA_ONLY: ChallengeTier = "captcha_only"
TIER_CAPTCHA_AND_OAUTH: ChallengeTier = "captcha_and_oauth"
TIER_AUTO_REJECT: ChallengeTier = "auto_reject"


@dataclass(frozen=True)
class ChallengeTierConfig:
    """Score thresholds; each must be strictly below the next."""

    auto_accept_threshold: float = 0.2
    captcha_only_threshold: float = 0.4
    auto_reject_threshold: float = 0.8

    @classmethod
    def from_settings(cls) -> ChallengeTierConfig:
        return cls(
            auto_accept_threshold=settings.challenge_auto_accept_threshold,
            captcha_only_threshold=settings.challenge_captcha_only_threshold,
            auto_reject_threshold=settings.challenge_auto_reject_threshold,
        )

    def validate(self) -> None:
        if self.auto_accept_threshold >= self.captcha_only_threshold:
            raise InvalidChallengeTierConfigError(
                "auto_accept_threshold must be less than captcha_only_threshold"
            )
        if self.captcha_only_threshold >= self.auto_reject_threshold:
            raise InvalidChallengeTierConfigError(
                "captcha_only_threshold must be less than auto_reject_threshold"
            )


def determine_challenge_tier(
    risk_score: float, config: ChallengeTierConfig | None = None
) -> ChallengeTier:
    """Pick the challenge tier for ``risk_score``.

    Args:
        risk_score: Final engine score in [0, 1].
        config: Thresholds to use; defaults to the configured settings.

    Raises:
        InvalidChallengeTierConfigError: If thresholds are not strictly increasing.
    """
    config = config or ChallengeTierConfig.from_settings()
    config.validate()

    if risk_score < config.auto_accept_threshold:
        return TIER_AUTO_ACCEPT
    if risk_score < config.captcha_only_threshold:
        return TIER_CAPTCHA_ONLY
    if risk_score < config.auto_reject_threshold:
        return TIER_CAPTCHA_AND_OAUTH
    return TIER_AUTO_REJECT
