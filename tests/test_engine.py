import pytest

from spam_blocker.risk_score.engine import combine_factors, evaluate, risk_level
from spam_blocker.risk_score.types import (
    DEFAULT_WEIGHTS,
    FACTOR_ACCOUNT_AGE,
    FACTOR_COMMENT_CONTENT_TITLE_RISK,
    FACTOR_COMMENT_URL_RISK,
    FACTOR_IP_RISK,
    RiskFactor,
    resolve_weights,
)
from tests.conftest import build_request

CLEAN_CONTENT = "What do people think about the new release?"


def test_default_weights_sum_to_one():
    assert sum(DEFAULT_WEIGHTS.values()) == pytest.approx(1.0)


def test_effective_weights_sum_to_one(make_context):
    result = evaluate(make_context(build_request(content=CLEAN_CONTENT)))

    assert sum(factor.effective_weight for factor in result.factors) == pytest.approx(1.0)
    assert all(
        factor.effective_weight == 0 for factor in result.factors if factor.weight == 0
    )


def test_new_author_vote(make_context):
    result = evaluate(make_context(build_request("vote")))

    # velocity 0.1 * 0.10, account age 1.0 * 0.12, karma 0.5 * 0.10 over 0.32
    assert result.score == pytest.approx(0.5625)
    assert result.factor(FACTOR_COMMENT_CONTENT_TITLE_RISK).effective_weight == 0
    assert result.factor(FACTOR_COMMENT_URL_RISK).effective_weight == 0
    assert result.explanation.startswith("Moderate risk (56%)")
    assert "accountAge: 100%" in result.explanation


def test_new_author_clean_post(make_context):
    result = evaluate(make_context(build_request(content=CLEAN_CONTENT)))

    # vote factors plus content 0.2 * 0.14 and url 0.1 * 0.12 over 0.58
    assert result.score == pytest.approx(0.22 / 0.58)


def test_scaling_all_weights_does_not_change_score(make_context):
    ctx = make_context(build_request(content=CLEAN_CONTENT))
    doubled = {name: weight * 2 for name, weight in DEFAULT_WEIGHTS.items()}

    assert evaluate(ctx, doubled).score == pytest.approx(
        evaluate(ctx).score
    )


def test_zero_weight_override_disables_factor(make_context):
    result = evaluate(
        make_context(build_request("vote")), {FACTOR_ACCOUNT_AGE: 0}
    )

    assert result.factor(FACTOR_ACCOUNT_AGE).effective_weight == 0
    # velocity 0.1 * 0.10 and karma 0.5 * 0.10 over 0.20
    assert result.score == pytest.approx(0.3)


def test_all_factors_skipped_is_neutral():
    factors = [
        RiskFactor(name=FACTOR_IP_RISK, score=0.9, weight=0.0, explanation="skipped"),
        RiskFactor(name=FACTOR_ACCOUNT_AGE, score=0.1, weight=0.0, explanation="skipped"),
    ]

    result = combine_factors(factors)

    assert result.score == 0.5
    assert all(factor.effective_weight == 0 for factor in result.factors)
    assert result.explanation.endswith("Key factors: none")


def test_single_active_factor_takes_full_weight():
    factors = [
        RiskFactor(name=FACTOR_IP_RISK, score=0.95, weight=0.08, explanation="tor"),
        RiskFactor(name=FACTOR_ACCOUNT_AGE, score=0.1, weight=0.0, explanation="skipped"),
    ]

    result = combine_factors(factors)

    assert result.score == pytest.approx(0.95)
    assert result.factor(FACTOR_IP_RISK).effective_weight == pytest.approx(1.0)


def test_resolve_weights_merges_overrides():
    weights = resolve_weights({FACTOR_IP_RISK: 0.3})

    assert weights[FACTOR_IP_RISK] == 0.3
    assert weights[FACTOR_ACCOUNT_AGE] == DEFAULT_WEIGHTS[FACTOR_ACCOUNT_AGE]


@pytest.mark.parametrize(
    "overrides",
    [{"noSuchFactor": 0.1}, {FACTOR_IP_RISK: -0.1}],
)
def test_resolve_weights_rejects_invalid(overrides):
    with pytest.raises(ValueError):
        resolve_weights(overrides)


@pytest.mark.parametrize(
    ("score", "level"),
    [(0.0, "Low"), (0.29, "Low"), (0.3, "Moderate"), (0.69, "Moderate"), (0.7, "High")],
)
def test_risk_level(score, level):
    assert risk_level(score) == level


@pytest.mark.parametrize(
    "publication_type",
    ["post", "reply", "vote", "commentEdit", "commentModeration", "subplebbitEdit"],
)
def test_redistribution_keeps_weight_ratios(make_context, publication_type):
    result = evaluate(make_context(build_request(publication_type)))
    active = [factor for factor in result.factors if factor.is_active]

    assert active
    assert sum(factor.effective_weight for factor in active) == pytest.approx(1.0, abs=1e-5)
    # Every active factor is scaled by the same 1 / W.
    scale = active[0].effective_weight / active[0].weight
    for factor in active:
        assert factor.effective_weight / factor.weight == pytest.approx(scale)
    for first, second in zip(active, active[1:]):
        assert first.effective_weight / second.effective_weight == pytest.approx(
            first.weight / second.weight
        )
