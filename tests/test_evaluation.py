import pytest
from sqlalchemy import func, select

from spam_blocker.core.errors import UnknownPublicationTypeError
from spam_blocker.models import Comment, Vote
from spam_blocker.models.indexer import DISCOVERED_VIA_EVALUATE_API
from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.risk_score.challenge_tier import TIER_AUTO_REJECT, ChallengeTierConfig
from spam_blocker.risk_score.types import (
    FACTOR_ACCOUNT_AGE,
    FACTOR_IP_RISK,
    FACTOR_VELOCITY_RISK,
    IpIntelligence,
)
from spam_blocker.schemas.publication import ChallengeRequest
from spam_blocker.services.evaluation import EvaluationService
from tests.conftest import NOW, build_request

DAY = 86_400


def _count(db_session, model):
    return db_session.scalar(select(func.count()).select_from(model))


def test_evaluation_records_session_and_publication(db_session):
    service = EvaluationService(db_session, use_indexer=True)

    result = service.evaluate(build_request(content="hello there"), now=NOW)

    assert len(result.session_id) == 32
    assert result.expires_at == NOW + 3600
    assert 0.0 <= result.risk_score <= 1.0
    stored = EvidenceStore(db_session).get_challenge_session(result.session_id)
    assert stored.risk_score == pytest.approx(result.risk_score)
    assert stored.challenge_tier == result.challenge_tier
    assert stored.received_at == NOW
    assert _count(db_session, Comment) == 1


def test_own_publication_is_not_counted_against_itself(db_session):
    service = EvaluationService(db_session, use_indexer=False)

    first = service.evaluate(build_request("vote"), now=NOW)
    second = service.evaluate(build_request("vote"), now=NOW + 1)

    assert "0/hr" in first.risk.factor(FACTOR_VELOCITY_RISK).explanation
    assert "1/hr" in second.risk.factor(FACTOR_VELOCITY_RISK).explanation
    assert _count(db_session, Vote) == 2
    assert first.session_id != second.session_id


def test_new_forums_are_registered_once(db_session, mocker):
    on_new_subplebbit = mocker.MagicMock()
    service = EvaluationService(
        db_session, use_indexer=True, on_new_subplebbit=on_new_subplebbit
    )

    service.evaluate(build_request(), subplebbit_public_key="12D3KooWForum", now=NOW)
    service.evaluate(build_request("vote"), now=NOW)

    on_new_subplebbit.assert_called_once_with("news.eth")
    forum = IndexerQueries(db_session).get_indexed_subplebbit("news.eth")
    assert forum.discovered_via == DISCOVERED_VIA_EVALUATE_API
    assert forum.public_key == "12D3KooWForum"


def test_without_indexer_forums_are_not_registered(db_session, mocker):
    on_new_subplebbit = mocker.MagicMock()
    service = EvaluationService(
        db_session, use_indexer=False, on_new_subplebbit=on_new_subplebbit
    )

    service.evaluate(build_request(), now=NOW)

    assert service.indexer is None
    on_new_subplebbit.assert_not_called()
    assert IndexerQueries(db_session).get_indexed_subplebbit("news.eth") is None


def test_ip_address_and_intelligence_are_recorded(db_session):
    service = EvaluationService(db_session, use_indexer=False)
    intel = IpIntelligence(is_tor=True, country_code="NL")

    result = service.evaluate(
        build_request(), ip_address="198.51.100.9", ip_intelligence=intel, now=NOW
    )

    record = EvidenceStore(db_session).get_ip_record(result.session_id)
    assert record.ip_address == "198.51.100.9"
    assert record.is_tor is True
    assert record.country_code == "NL"
    assert result.risk.factor(FACTOR_IP_RISK).score == 0.95


def test_tier_config_is_applied(db_session):
    config = ChallengeTierConfig(
        auto_accept_threshold=0.01, captcha_only_threshold=0.02, auto_reject_threshold=0.03
    )
    service = EvaluationService(db_session, use_indexer=False, tier_config=config)

    result = service.evaluate(build_request(), now=NOW)

    assert result.challenge_tier == TIER_AUTO_REJECT


def test_forum_settings_edit_creates_session_only(db_session):
    service = EvaluationService(db_session, use_indexer=False)

    result = service.evaluate(build_request("subplebbitEdit"), now=NOW)

    assert EvidenceStore(db_session).get_challenge_session(result.session_id) is not None
    assert _count(db_session, Comment) == 0
    assert _count(db_session, Vote) == 0


def test_request_without_publication_is_rejected(db_session):
    service = EvaluationService(db_session, use_indexer=False)
    request = ChallengeRequest.model_validate({"challengeRequestId": "req"})

    with pytest.raises(UnknownPublicationTypeError):
        service.evaluate(request, now=NOW)


def test_history_survives_session_purge(db_session):
    service = EvaluationService(db_session, use_indexer=False)
    first = service.evaluate(build_request(content="first post here"), now=NOW)
    later = NOW + 30 * DAY

    removed = EvidenceStore(db_session).purge_expired_sessions(later)
    second = service.evaluate(build_request(content="another post"), now=later)

    assert removed == 1
    assert EvidenceStore(db_session).get_challenge_session(first.session_id) is None
    assert _count(db_session, Comment) == 2
    account_age = second.risk.factor(FACTOR_ACCOUNT_AGE)
    assert account_age.score < 1.0
    assert "No account history" not in account_age.explanation
