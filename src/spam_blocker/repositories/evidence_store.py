# src/spam_blocker/repositories/evidence_store.py
"""Data access for publications this service received directly.

The evidence store holds challenge sessions and the publications submitted
through them. It has no business logic: risk factors read it through
:class:`~spam_blocker.services.combined_data.CombinedDataService`.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.orm import Session

from spam_blocker.core.settings import settings
from spam_blocker.db.time import now_seconds
from spam_blocker.models import (
    ChallengeSession,
    Comment,
    CommentEdit,
    CommentModeration,
    IpRecord,
    PublicationWallet,
    Vote,
)
from spam_blocker.models.challenge import (
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_PENDING,
    SESSION_STATUSES,
)
from spam_blocker.repositories.matching import CommentMatchingMixin
from spam_blocker.repositories.records import (
    SOURCE_ENGINE,
    CommentEvidence,
    KarmaRecord,
    VelocityStats,
)
from spam_blocker.schemas.publication import (
    PUBLICATION_COMMENT_EDIT,
    PUBLICATION_COMMENT_MODERATION,
    PUBLICATION_POST,
    PUBLICATION_REPLY,
    PUBLICATION_VOTE,
    VELOCITY_TRACKED_TYPES,
    ChallengeRequest,
    CommentEditPublication,
    CommentModerationPublication,
    CommentPublication,
    Publication,
    PublicationType,
    VotePublication,
)

__all__ = ["EvidenceStore"]

logger = logging.getLogger(__name__)

ONE_HOUR_SECONDS = 3600
ONE_DAY_SECONDS = 86_400

_PUBLICATION_MODELS = (Comment, Vote, CommentEdit, CommentModeration)


def _type_filter(publication_type: PublicationType) -> tuple[Any, ColumnElement[bool] | None]:
    """Map a publication type to its table and an optional extra filter."""
    if publication_type == PUBLICATION_POST:
        return Comment, Comment.parent_cid.is_(None)
    if publication_type == PUBLICATION_REPLY:
        return Comment, Comment.parent_cid.is_not(None)
    if publication_type == PUBLICATION_VOTE:
        return Vote, None
    if publication_type == PUBLICATION_COMMENT_EDIT:
        return CommentEdit, None
    if publication_type == PUBLICATION_COMMENT_MODERATION:
        return CommentModeration, None
    raise ValueError(f"Publication type {publication_type!r} is not stored")


class EvidenceStore(CommentMatchingMixin):
    """Typed queries over challenge sessions and locally received publications."""

    def __init__(self, session: Session) -> None:
        """Initialize the store with a SQLAlchemy session."""
        self.session = session

    # ------------------------------------------------------------------
    # Challenge sessions
    # ------------------------------------------------------------------

    def insert_challenge_session(
        self,
        *,
        session_id: str,
        expires_at: int,
        author_address: str | None = None,
        author_public_key: str | None = None,
        subplebbit_address: str | None = None,
        subplebbit_public_key: str | None = None,
        received_at: int | None = None,
    ) -> ChallengeSession:
        challenge = ChallengeSession(
            session_id=session_id,
            author_address=author_address,
            author_public_key=author_public_key,
            subplebbit_address=subplebbit_address,
            subplebbit_public_key=subplebbit_public_key,
            status=SESSION_STATUS_PENDING,
            captcha_completed=False,
            received_at=received_at if received_at is not None else now_seconds(),
            expires_at=expires_at,
        )
        self.session.add(challenge)
        self.session.commit()
        return challenge

    def get_challenge_session(self, session_id: str) -> ChallengeSession | None:
        return self.session.get(ChallengeSession, session_id)

    def update_challenge_session_status(
        self,
        session_id: str,
        status: str,
        completed_at: int | None = None,
        oauth_identity: str | None = None,
    ) -> bool:
        """Update a session's status.

        An existing ``oauth_identity`` is kept unless a new one is supplied.

        Returns:
            True when a session row was updated.
        """
        if status not in SESSION_STATUSES:
            raise ValueError(f"Invalid challenge session status: {status}")

        values: dict[str, Any] = {"status": status, "completed_at": completed_at}
        if oauth_identity is not None:
            values["oauth_identity"] = oauth_identity

        result = self.session.execute(
            update(ChallengeSession)
            .where(ChallengeSession.session_id == session_id)
            .values(**values)
        )
        self.session.commit()
        return result.rowcount > 0

    def update_challenge_session_risk(
        self, session_id: str, risk_score: float, challenge_tier: str
    ) -> bool:
        result = self.session.execute(
            update(ChallengeSession)
            .where(ChallengeSession.session_id == session_id)
            .values(risk_score=risk_score, challenge_tier=challenge_tier)
        )
        self.session.commit()
        return result.rowcount > 0

    def mark_captcha_completed(self, session_id: str) -> bool:
        result = self.session.execute(
            update(ChallengeSession)
            .where(ChallengeSession.session_id == session_id)
            .values(captcha_completed=True)
        )
        self.session.commit()
        return result.rowcount > 0

    def update_challenge_session_iframe_access(self, session_id: str, accessed_at: int) -> bool:
        result = self.session.execute(
            update(ChallengeSession)
            .where(ChallengeSession.session_id == session_id)
            .values(author_accessed_iframe_at=accessed_at)
        )
        self.session.commit()
        return result.rowcount > 0

    def count_oauth_identity_completions(
        self, oauth_identity: str, since: int | None = None
    ) -> int:
        """Count completed sessions verified with one OAuth identity."""
        stmt = select(func.count()).select_from(ChallengeSession).where(
            ChallengeSession.oauth_identity == oauth_identity,
            ChallengeSession.status == SESSION_STATUS_COMPLETED,
        )
        if since is not None:
            stmt = stmt.where(ChallengeSession.completed_at >= since)
        return self.session.scalar(stmt) or 0

    def purge_expired_sessions(self, now: int, retention_seconds: int | None = None) -> int:
        """Delete sessions that expired without completing, along with their IP records.

        Publications and wallet rows are evidence and stay in place. Completed
        sessions are kept because they anchor OAuth identity links.

        Returns:
            Number of sessions removed.
        """
        if retention_seconds is None:
            retention_seconds = settings.challenge_session_retention_seconds
        cutoff = now - retention_seconds
        expired_ids = list(
            self.session.scalars(
                select(ChallengeSession.session_id).where(
                    ChallengeSession.expires_at < cutoff,
                    ChallengeSession.status != SESSION_STATUS_COMPLETED,
                )
            )
        )
        if not expired_ids:
            return 0

        self.session.execute(delete(IpRecord).where(IpRecord.session_id.in_(expired_ids)))
        self.session.execute(
            delete(ChallengeSession).where(ChallengeSession.session_id.in_(expired_ids))
        )
        self.session.commit()
        logger.info("Purged %d expired challenge sessions", len(expired_ids))
        return len(expired_ids)

    # ------------------------------------------------------------------
    # Publications
    # ------------------------------------------------------------------

    def insert_publication(
        self, session_id: str, request: ChallengeRequest, received_at: int | None = None
    ) -> None:
        """Store the request's publication in the table matching its type.

        Forum settings edits are not evidence for any factor and are not stored.
        """
        if request.comment is not None:
            self.insert_comment(session_id, request.comment, received_at)
        elif request.vote is not None:
            self.insert_vote(session_id, request.vote, received_at)
        elif request.comment_edit is not None:
            self.insert_comment_edit(session_id, request.comment_edit, received_at)
        elif request.comment_moderation is not None:
            self.insert_comment_moderation(session_id, request.comment_moderation, received_at)
        else:
            logger.debug(
                "Not storing %s publication for session %s",
                request.publication_type,
                session_id,
            )

    def insert_comment(
        self, session_id: str, comment: CommentPublication, received_at: int | None = None
    ) -> Comment:
        row = Comment(
            **self._common_columns(session_id, comment, received_at),
            parent_cid=comment.parent_cid,
            post_cid=comment.post_cid,
            content=comment.content,
            title=comment.title,
            link=comment.link,
            link_width=comment.link_width,
            link_height=comment.link_height,
            link_html_tag_name=comment.link_html_tag_name,
            flair=comment.flair,
            spoiler=comment.spoiler,
            nsfw=comment.nsfw,
        )
        publication_type = PUBLICATION_REPLY if comment.parent_cid else PUBLICATION_POST
        return self._insert(row, comment, publication_type)

    def insert_vote(
        self, session_id: str, vote: VotePublication, received_at: int | None = None
    ) -> Vote:
        row = Vote(
            **self._common_columns(session_id, vote, received_at),
            comment_cid=vote.comment_cid,
            vote=vote.vote,
        )
        return self._insert(row, vote, PUBLICATION_VOTE)

    def insert_comment_edit(
        self, session_id: str, edit: CommentEditPublication, received_at: int | None = None
    ) -> CommentEdit:
        row = CommentEdit(
            **self._common_columns(session_id, edit, received_at),
            comment_cid=edit.comment_cid,
            content=edit.content,
            reason=edit.reason,
            deleted=edit.deleted,
            flair=edit.flair,
            spoiler=edit.spoiler,
            nsfw=edit.nsfw,
        )
        return self._insert(row, edit, PUBLICATION_COMMENT_EDIT)

    def insert_comment_moderation(
        self,
        session_id: str,
        moderation: CommentModerationPublication,
        received_at: int | None = None,
    ) -> CommentModeration:
        row = CommentModeration(
            **self._common_columns(session_id, moderation, received_at),
            comment_cid=moderation.comment_cid,
            comment_moderation=moderation.comment_moderation,
        )
        return self._insert(row, moderation, PUBLICATION_COMMENT_MODERATION)

    def _common_columns(
        self, session_id: str, publication: Publication, received_at: int | None
    ) -> dict[str, Any]:
        karma = publication.author.subplebbit
        return {
            "session_id": session_id,
            "author": publication.author.to_wire(),
            "signature": publication.signature.to_wire(),
            "author_public_key": publication.author_public_key,
            "subplebbit_address": publication.subplebbit_address,
            "author_post_score": karma.post_score if karma else None,
            "author_reply_score": karma.reply_score if karma else None,
            "protocol_version": publication.protocol_version,
            "timestamp": publication.timestamp,
            "received_at": received_at if received_at is not None else now_seconds(),
        }

    def _insert(self, row: Any, publication: Publication, publication_type: PublicationType) -> Any:
        self.session.add(row)
        for chain_ticker, address in publication.author.wallet_addresses():
            self.session.add(
                PublicationWallet(
                    session_id=row.session_id,
                    publication_type=publication_type,
                    wallet_address=address.lower(),
                    chain_ticker=chain_ticker,
                    author_public_key=row.author_public_key,
                    received_at=row.received_at,
                )
            )
        self.session.commit()
        return row

    # ------------------------------------------------------------------
    # IP records
    # ------------------------------------------------------------------

    def insert_ip_record(
        self,
        session_id: str,
        ip_address: str,
        timestamp: int,
        *,
        is_vpn: bool | None = None,
        is_proxy: bool | None = None,
        is_tor: bool | None = None,
        is_datacenter: bool | None = None,
        country_code: str | None = None,
    ) -> IpRecord:
        record = IpRecord(
            session_id=session_id,
            ip_address=ip_address,
            is_vpn=is_vpn,
            is_proxy=is_proxy,
            is_tor=is_tor,
            is_datacenter=is_datacenter,
            country_code=country_code,
            timestamp=timestamp,
        )
        self.session.add(record)
        self.session.commit()
        return record

    def get_ip_record(self, session_id: str) -> IpRecord | None:
        return self.session.get(IpRecord, session_id)

    def update_ip_record_intelligence(
        self,
        session_id: str,
        *,
        is_vpn: bool | None = None,
        is_proxy: bool | None = None,
        is_tor: bool | None = None,
        is_datacenter: bool | None = None,
        country_code: str | None = None,
    ) -> bool:
        result = self.session.execute(
            update(IpRecord)
            .where(IpRecord.session_id == session_id)
            .values(
                is_vpn=is_vpn,
                is_proxy=is_proxy,
                is_tor=is_tor,
                is_datacenter=is_datacenter,
                country_code=country_code,
            )
        )
        self.session.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Account age, velocity and karma
    # ------------------------------------------------------------------

    def get_author_first_seen_timestamp(self, author_public_key: str) -> int | None:
        """Return the earliest time this service received anything from the author."""
        earliest: int | None = None
        for model in _PUBLICATION_MODELS:
            value = self.session.scalar(
                select(func.min(model.received_at)).where(
                    model.author_public_key == author_public_key
                )
            )
            if value is not None and (earliest is None or value < earliest):
                earliest = value
        return earliest

    def get_author_velocity_stats(
        self, author_public_key: str, publication_type: PublicationType, now: int
    ) -> VelocityStats:
        model, condition = _type_filter(publication_type)
        return VelocityStats(
            last_hour=self._count_since(
                model, condition, author_public_key, now - ONE_HOUR_SECONDS
            ),
            last_24_hours=self._count_since(
                model, condition, author_public_key, now - ONE_DAY_SECONDS
            ),
        )

    def get_author_aggregate_velocity_stats(
        self, author_public_key: str, now: int
    ) -> VelocityStats:
        total = VelocityStats()
        for publication_type in VELOCITY_TRACKED_TYPES:
            total += self.get_author_velocity_stats(author_public_key, publication_type, now)
        return total

    def _count_since(
        self,
        model: Any,
        condition: ColumnElement[bool] | None,
        author_public_key: str,
        since: int,
    ) -> int:
        stmt = select(func.count()).select_from(model).where(
            model.author_public_key == author_public_key,
            model.received_at >= since,
        )
        if condition is not None:
            stmt = stmt.where(condition)
        return self.session.scalar(stmt) or 0

    def get_author_karma_by_subplebbit(self, author_public_key: str) -> dict[str, KarmaRecord]:
        """Return the most recently received karma snapshot per forum.

        Publications that carried no karma data for the forum are ignored.
        """
        karma: dict[str, KarmaRecord] = {}
        for model in _PUBLICATION_MODELS:
            rows = self.session.execute(
                select(
                    model.subplebbit_address,
                    model.author_post_score,
                    model.author_reply_score,
                    model.received_at,
                ).where(
                    model.author_public_key == author_public_key,
                    or_(
                        model.author_post_score.is_not(None),
                        model.author_reply_score.is_not(None),
                    ),
                )
            )
            for address, post_score, reply_score, received_at in rows:
                existing = karma.get(address)
                if existing is None or received_at > existing.observed_at:
                    karma[address] = KarmaRecord(
                        post_score=post_score or 0,
                        reply_score=reply_score or 0,
                        observed_at=received_at,
                        source=SOURCE_ENGINE,
                    )
        return karma

    # ------------------------------------------------------------------
    # Content and link similarity
    # ------------------------------------------------------------------

    def _comment_candidates(
        self,
        since: int,
        *,
        author_public_key: str | None = None,
        exclude_author_public_key: str | None = None,
        domain: str | None = None,
    ) -> list[CommentEvidence]:
        stmt = select(Comment).where(Comment.received_at >= since)
        if author_public_key is not None:
            stmt = stmt.where(Comment.author_public_key == author_public_key)
        if exclude_author_public_key is not None:
            stmt = stmt.where(Comment.author_public_key != exclude_author_public_key)
        if domain:
            stmt = stmt.where(
                or_(
                    func.lower(Comment.link).contains(domain),
                    func.lower(Comment.content).contains(domain),
                    func.lower(Comment.title).contains(domain),
                )
            )
        stmt = stmt.order_by(Comment.received_at.desc())
        return [
            CommentEvidence(
                id=row.session_id,
                source=SOURCE_ENGINE,
                author_public_key=row.author_public_key,
                subplebbit_address=row.subplebbit_address,
                content=row.content,
                title=row.title,
                link=row.link,
                timestamp=row.received_at,
            )
            for row in self.session.scalars(stmt)
        ]

    # ------------------------------------------------------------------
    # Wallets and OAuth identities
    # ------------------------------------------------------------------

    def is_wallet_used_by_other_author(self, wallet_address: str, author_public_key: str) -> bool:
        stmt = select(PublicationWallet.id).where(
            PublicationWallet.wallet_address == wallet_address.lower(),
            PublicationWallet.author_public_key != author_public_key,
        ).limit(1)
        return self.session.scalar(stmt) is not None

    def get_wallet_velocity_stats(
        self, wallet_address: str, publication_type: PublicationType, now: int
    ) -> VelocityStats:
        """Count publications of one type made with a wallet, across all authors."""

        def count_since(since: int) -> int:
            stmt = select(func.count(func.distinct(PublicationWallet.session_id))).where(
                PublicationWallet.wallet_address == wallet_address.lower(),
                PublicationWallet.publication_type == publication_type,
                PublicationWallet.received_at >= since,
            )
            return self.session.scalar(stmt) or 0

        return VelocityStats(
            last_hour=count_since(now - ONE_HOUR_SECONDS),
            last_24_hours=count_since(now - ONE_DAY_SECONDS),
        )

    def get_author_oauth_identities(self, author_public_key: str) -> list[str]:
        """Return distinct "provider:id" identities linked via completed sessions."""
        stmt = (
            select(ChallengeSession.oauth_identity)
            .where(
                ChallengeSession.author_public_key == author_public_key,
                ChallengeSession.status == SESSION_STATUS_COMPLETED,
                ChallengeSession.oauth_identity.is_not(None),
            )
            .distinct()
        )
        return [identity for identity in self.session.scalars(stmt) if identity]

    def count_authors_with_oauth_identity(self, oauth_identity: str) -> int:
        stmt = select(func.count(func.distinct(ChallengeSession.author_public_key))).where(
            ChallengeSession.oauth_identity == oauth_identity,
            ChallengeSession.status == SESSION_STATUS_COMPLETED,
            ChallengeSession.author_public_key.is_not(None),
        )
        return self.session.scalar(stmt) or 0
