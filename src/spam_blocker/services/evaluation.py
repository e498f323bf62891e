"""Evaluation of incoming challenge requests.

Scores the publication against the evidence already persisted, assigns a
challenge tier, and only then records the session and the publication so an
author's own submission never counts against itself.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from sqlalchemy.orm import Session

from spam_blocker.core.settings import settings
from spam_blocker.db.time import now_seconds
from spam_blocker.models.indexer import DISCOVERED_VIA_EVALUATE_API
from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.risk_score import engine as risk_engine
from spam_blocker.risk_score.challenge_tier import (
    ChallengeTier,
    ChallengeTierConfig,
    determine_challenge_tier,
)
from spam_blocker.risk_score.types import IpIntelligence, RiskContext, RiskScoreResult
from spam_blocker.schemas.publication import ChallengeRequest
from spam_blocker.services.combined_data import CombinedDataService

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 16


@dataclass(frozen=True)
class EvaluationResult:
    session_id: str
    risk: RiskScoreResult
    challenge_tier: ChallengeTier
    expires_at: int

    @property
    def risk_score(self) -> float:
        return self.risk.score


class EvaluationService:
    """Score challenge requests and record their sessions.

    Args:
        db: Database session used for both stores.
        weights: Optional partial overrides of the factor weights.
        tier_config: Challenge tier thresholds; defaults to settings.
        use_indexer: Whether crawled evidence takes part in scoring.
        on_new_subplebbit: Called with the address of a forum first seen
            through evaluation traffic, e.g. ``Indexer.add_subplebbit``.
    """

    def __init__(
        self,
        db: Session,
        *,
        weights: Mapping[str, float] | None = None,
        tier_config: ChallengeTierConfig | None = None,
        use_indexer: bool | None = None,
        on_new_subplebbit: Callable[[str], None] | None = None,
    ) -> None:
        self.evidence = EvidenceStore(db)
        use_indexer = settings.indexer_enabled if use_indexer is None else use_indexer
        self.indexer = IndexerQueries(db) if use_indexer else None
        self.data = CombinedDataService(self.evidence, self.indexer)
        self.weights = weights
        self.tier_config = tier_config or ChallengeTierConfig.from_settings()
        self.on_new_subplebbit = on_new_subplebbit

    def evaluate(
        self,
        request: ChallengeRequest,
        *,
        subplebbit_public_key: str | None = None,
        ip_address: str | None = None,
        ip_intelligence: IpIntelligence | None = None,
        wallet_transaction_counts: Mapping[str, int] | None = None,
        enabled_oauth_providers: Sequence[str] = (),
        now: int | None = None,
    ) -> EvaluationResult:
        """Score ``request``, persist its session and return the outcome.

        Raises:
            UnknownPublicationTypeError: If the request carries no publication.
            InvalidChallengeTierConfigError: If tier thresholds are misconfigured.
        """
        now = now if now is not None else now_seconds()
        publication = request.publication

        ctx = RiskContext(
            request=request,
            now=now,
            data=self.data,
            evidence=self.evidence,
            ip_intelligence=ip_intelligence,
            wallet_transaction_counts=wallet_transaction_counts,
            enabled_oauth_providers=tuple(enabled_oauth_providers),
        )
        risk = risk_engine.evaluate(ctx, self.weights)
        tier = determine_challenge_tier(risk.score, self.tier_config)

        session_id = secrets.token_hex(SESSION_ID_BYTES)
        expires_at = now + settings.challenge_session_ttl_seconds
        self.evidence.insert_challenge_session(
            session_id=session_id,
            expires_at=expires_at,
            author_address=publication.author.address,
            author_public_key=publication.author_public_key,
            subplebbit_address=publication.subplebbit_address,
            subplebbit_public_key=subplebbit_public_key,
            received_at=now,
        )
        self.evidence.update_challenge_session_risk(session_id, risk.score, tier)
        self.evidence.insert_publication(session_id, request, received_at=now)

        if ip_address:
            intel = ip_intelligence
            self.evidence.insert_ip_record(
                session_id,
                ip_address,
                now,
                is_vpn=intel.is_vpn if intel else None,
                is_proxy=intel.is_proxy if intel else None,
                is_tor=intel.is_tor if intel else None,
                is_datacenter=intel.is_datacenter if intel else None,
                country_code=intel.country_code if intel else None,
            )

        self._register_subplebbit(publication.subplebbit_address, subplebbit_public_key)

        logger.info(
            "Evaluated %s %s: score %.2f, tier %s",
            request.publication_type,
            session_id,
            risk.score,
            tier,
        )
        return EvaluationResult(
            session_id=session_id,
            risk=risk,
            challenge_tier=tier,
            expires_at=expires_at,
        )

    def _register_subplebbit(self, address: str, public_key: str | None) -> None:
        if self.indexer is None:
            return
        is_new = self.indexer.get_indexed_subplebbit(address) is None
        self.indexer.upsert_indexed_subplebbit(address, DISCOVERED_VIA_EVALUATE_API, public_key)
        if is_new and self.on_new_subplebbit is not None:
            self.on_new_subplebbit(address)
