"""Risk factor calculators.

Each calculator takes a :class:`~spam_blocker.risk_score.types.RiskContext`
and its nominal weight and returns a
:class:`~spam_blocker.risk_score.types.RiskFactor`. A returned weight of 0
means the factor does not apply or has no data.
"""

from collections.abc import Callable

from spam_blocker.risk_score.factors.account_age import calculate_account_age
from spam_blocker.risk_score.factors.content_title_risk import (
    calculate_comment_content_title_risk,
)
from spam_blocker.risk_score.factors.ip_risk import calculate_ip_risk
from spam_blocker.risk_score.factors.karma import calculate_karma
from spam_blocker.risk_score.factors.network_risk import (
    calculate_modqueue_rejection_rate,
    calculate_network_ban_history,
    calculate_network_removal_rate,
)
from spam_blocker.risk_score.factors.social_verification import calculate_social_verification
from spam_blocker.risk_score.factors.url_risk import calculate_comment_url_risk
from spam_blocker.risk_score.factors.velocity import calculate_velocity
from spam_blocker.risk_score.factors.wallet_activity import calculate_wallet_verification
from spam_blocker.risk_score.factors.wallet_velocity import calculate_wallet_velocity
from spam_blocker.risk_score.types import (
    FACTOR_ACCOUNT_AGE,
    FACTOR_COMMENT_CONTENT_TITLE_RISK,
    FACTOR_COMMENT_URL_RISK,
    FACTOR_IP_RISK,
    FACTOR_KARMA_SCORE,
    FACTOR_MODQUEUE_REJECTION_RATE,
    FACTOR_NETWORK_BAN_HISTORY,
    FACTOR_NETWORK_REMOVAL_RATE,
    FACTOR_SOCIAL_VERIFICATION,
    FACTOR_VELOCITY_RISK,
    FACTOR_WALLET_VELOCITY,
    FACTOR_WALLET_VERIFICATION,
    RiskContext,
    RiskFactor,
)

FactorCalculator = Callable[[RiskContext, float], RiskFactor]

FACTOR_CALCULATORS: dict[str, FactorCalculator] = {
    FACTOR_COMMENT_CONTENT_TITLE_RISK: calculate_comment_content_title_risk,
    FACTOR_COMMENT_URL_RISK: calculate_comment_url_risk,
    FACTOR_VELOCITY_RISK: calculate_velocity,
    FACTOR_ACCOUNT_AGE: calculate_account_age,
    FACTOR_KARMA_SCORE: calculate_karma,
    FACTOR_IP_RISK: calculate_ip_risk,
    FACTOR_NETWORK_BAN_HISTORY: calculate_network_ban_history,
    FACTOR_MODQUEUE_REJECTION_RATE: calculate_modqueue_rejection_rate,
    FACTOR_NETWORK_REMOVAL_RATE: calculate_network_removal_rate,
    FACTOR_SOCIAL_VERIFICATION: calculate_social_verification,
    FACTOR_WALLET_VERIFICATION: calculate_wallet_verification,
    FACTOR_WALLET_VELOCITY: calculate_wallet_velocity,
}

__all__ = [
    "FACTOR_CALCULATORS",
    "FactorCalculator",
    "calculate_account_age",
    "calculate_comment_content_title_risk",
    "calculate_comment_url_risk",
    "calculate_ip_risk",
    "calculate_karma",
    "calculate_modqueue_rejection_rate",
    "calculate_network_ban_history",
    "calculate_network_removal_rate",
    "calculate_social_verification",
    "calculate_velocity",
    "calculate_wallet_velocity",
    "calculate_wallet_verification",
]
