# src/spam_blocker/repositories/indexer_queries.py
"""Data access for the crawled mirror of public forum content.

Comment ipfs rows are write-once; update rows are upserted as new snapshots
arrive. Inserts tolerate conflicts so a retried crawl never fails on rows it
already stored.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spam_blocker.db.time import now_seconds
from spam_blocker.models import (
    IndexedCommentIpfs,
    IndexedCommentUpdate,
    IndexedSubplebbit,
    ModQueueCommentIpfs,
    ModQueueCommentUpdate,
)
from spam_blocker.models.indexer import DISCOVERY_SOURCES
from spam_blocker.repositories.matching import CommentMatchingMixin
from spam_blocker.repositories.records import (
    SOURCE_INDEXER,
    AuthorNetworkStats,
    CommentEvidence,
    KarmaRecord,
    VelocityStats,
)
from spam_blocker.schemas.pages import CommentIpfs, CommentUpdate, PageComment
from spam_blocker.schemas.publication import (
    PUBLICATION_POST,
    PUBLICATION_REPLY,
    AuthorSubplebbit,
    PublicationType,
)

__all__ = ["IndexerQueries"]

logger = logging.getLogger(__name__)

ONE_HOUR_SECONDS = 3600
ONE_DAY_SECONDS = 86_400


def _author_subplebbit(update: CommentUpdate | PageComment) -> AuthorSubplebbit | None:
    if update.author is None:
        return None
    return update.author.subplebbit


class IndexerQueries(CommentMatchingMixin):
    """Typed queries over indexed forums, crawled comments and modqueue items."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Forums
    # ------------------------------------------------------------------

    def upsert_indexed_subplebbit(
        self, address: str, discovered_via: str, public_key: str | None = None
    ) -> IndexedSubplebbit:
        """Create the forum record if missing, otherwise refresh its public key.

        The original discovery source is never overwritten.
        """
        if discovered_via not in DISCOVERY_SOURCES:
            raise ValueError(f"Invalid discovery source: {discovered_via}")

        subplebbit = self.session.get(IndexedSubplebbit, address)
        if subplebbit is None:
            subplebbit = IndexedSubplebbit(
                address=address,
                public_key=public_key,
                discovered_via=discovered_via,
                discovered_at=now_seconds(),
                indexing_enabled=True,
                consecutive_errors=0,
            )
            self.session.add(subplebbit)
            logger.info("Discovered subplebbit %s via %s", address, discovered_via)
        elif public_key is not None:
            subplebbit.public_key = public_key
        self.session.commit()
        return subplebbit

    def get_indexed_subplebbit(self, address: str) -> IndexedSubplebbit | None:
        return self.session.get(IndexedSubplebbit, address)

    def list_indexed_subplebbits(self) -> list[IndexedSubplebbit]:
        stmt = select(IndexedSubplebbit).order_by(IndexedSubplebbit.discovered_at)
        return list(self.session.scalars(stmt))

    def get_enabled_subplebbits(self) -> list[IndexedSubplebbit]:
        stmt = (
            select(IndexedSubplebbit)
            .where(IndexedSubplebbit.indexing_enabled.is_(True))
            .order_by(IndexedSubplebbit.discovered_at)
        )
        return list(self.session.scalars(stmt))

    def update_subplebbit_cache_markers(
        self,
        address: str,
        last_posts_page_cid_new: str | None,
        last_subplebbit_updated_at: int | None,
    ) -> None:
        """Persist change-detection markers after a successful update and clear errors."""
        subplebbit = self.session.get(IndexedSubplebbit, address)
        if subplebbit is None:
            return
        subplebbit.last_posts_page_cid_new = last_posts_page_cid_new
        subplebbit.last_subplebbit_updated_at = last_subplebbit_updated_at
        subplebbit.consecutive_errors = 0
        subplebbit.last_error = None
        self.session.commit()

    def record_subplebbit_error(self, address: str, error: str) -> int:
        """Increment the forum's consecutive error count.

        Returns:
            The new consecutive error count (0 if the forum is unknown).
        """
        subplebbit = self.session.get(IndexedSubplebbit, address)
        if subplebbit is None:
            return 0
        subplebbit.consecutive_errors += 1
        subplebbit.last_error = error
        self.session.commit()
        return subplebbit.consecutive_errors

    def set_subplebbit_indexing_enabled(self, address: str, enabled: bool) -> None:
        subplebbit = self.session.get(IndexedSubplebbit, address)
        if subplebbit is None:
            return
        subplebbit.indexing_enabled = enabled
        if enabled:
            subplebbit.consecutive_errors = 0
            subplebbit.last_error = None
        self.session.commit()

    # ------------------------------------------------------------------
    # Crawled comments
    # ------------------------------------------------------------------

    def insert_comment_ipfs(
        self,
        cid: str,
        comment: CommentIpfs,
        subplebbit_address: str,
        fetched_at: int | None = None,
    ) -> bool:
        """Insert immutable comment fields once.

        Returns:
            True if a row was inserted, False if the cid was already stored.
        """
        if self.session.get(IndexedCommentIpfs, cid) is not None:
            return False
        self.session.add(
            IndexedCommentIpfs(
                cid=cid,
                fetched_at=fetched_at if fetched_at is not None else now_seconds(),
                **self._ipfs_columns(comment, subplebbit_address),
            )
        )
        return self._commit_insert(cid)

    def upsert_comment_update(
        self,
        cid: str,
        update: CommentUpdate | PageComment,
        fetched_at: int | None = None,
    ) -> IndexedCommentUpdate:
        """Store the latest mutable state of a crawled comment.

        ``last_replies_page_cid`` is left untouched; it only moves forward via
        :meth:`set_last_replies_page_cid` once the replies were actually stored.
        """
        author = _author_subplebbit(update)
        row = self.session.get(IndexedCommentUpdate, cid)
        if row is None:
            row = IndexedCommentUpdate(cid=cid, fetch_failure_count=0)
            self.session.add(row)

        row.author = {"subplebbit": author.to_wire()} if author else None
        row.author_post_score = author.post_score if author else None
        row.author_reply_score = author.reply_score if author else None
        row.author_ban_expires_at = author.ban_expires_at if author else None
        row.upvote_count = update.upvote_count
        row.downvote_count = update.downvote_count
        row.reply_count = update.reply_count
        row.removed = update.removed
        row.deleted = update.deleted
        row.locked = update.locked
        row.pinned = update.pinned
        row.approved = update.approved
        row.updated_at = update.updated_at
        row.fetched_at = fetched_at if fetched_at is not None else now_seconds()
        self.session.commit()
        return row

    def is_comment_indexed(self, cid: str) -> bool:
        return self.session.get(IndexedCommentIpfs, cid) is not None

    def get_comment_ipfs(self, cid: str) -> IndexedCommentIpfs | None:
        return self.session.get(IndexedCommentIpfs, cid)

    def get_comment_update(self, cid: str) -> IndexedCommentUpdate | None:
        return self.session.get(IndexedCommentUpdate, cid)

    def get_last_replies_page_cid(self, cid: str) -> str | None:
        row = self.session.get(IndexedCommentUpdate, cid)
        return row.last_replies_page_cid if row else None

    def set_last_replies_page_cid(self, cid: str, page_cid: str | None) -> None:
        """Record the replies page that was fully stored. Absent values are ignored."""
        if not page_cid:
            return
        row = self.session.get(IndexedCommentUpdate, cid)
        if row is None:
            if not self.is_comment_indexed(cid):
                return
            row = IndexedCommentUpdate(cid=cid, fetch_failure_count=0)
            self.session.add(row)
        row.last_replies_page_cid = page_cid
        self.session.commit()

    def record_comment_fetch_failure(self, cid: str, failed_at: int | None = None) -> None:
        if not self.is_comment_indexed(cid):
            return
        row = self.session.get(IndexedCommentUpdate, cid)
        if row is None:
            row = IndexedCommentUpdate(cid=cid, fetch_failure_count=0)
            self.session.add(row)
        row.last_fetch_failed_at = failed_at if failed_at is not None else now_seconds()
        row.fetch_failure_count += 1
        self.session.commit()

    def count_indexed_comments(self, subplebbit_address: str | None = None) -> int:
        stmt = select(func.count()).select_from(IndexedCommentIpfs)
        if subplebbit_address is not None:
            stmt = stmt.where(IndexedCommentIpfs.subplebbit_address == subplebbit_address)
        return self.session.scalar(stmt) or 0

    # ------------------------------------------------------------------
    # Modqueue
    # ------------------------------------------------------------------

    def upsert_modqueue_comment(
        self,
        cid: str,
        comment: PageComment,
        subplebbit_address: str,
        seen_at: int | None = None,
    ) -> None:
        """Record a comment currently sitting in a forum's modqueue."""
        seen_at = seen_at if seen_at is not None else now_seconds()
        if self.session.get(ModQueueCommentIpfs, cid) is None:
            self.session.add(
                ModQueueCommentIpfs(
                    cid=cid,
                    first_seen_at=seen_at,
                    **self._ipfs_columns(comment, subplebbit_address),
                )
            )
            if not self._commit_insert(cid):
                return

        author = _author_subplebbit(comment)
        row = self.session.get(ModQueueCommentUpdate, cid)
        if row is None:
            row = ModQueueCommentUpdate(cid=cid, resolved=False)
            self.session.add(row)
        row.author = {"subplebbit": author.to_wire()} if author else None
        row.protocol_version = comment.protocol_version
        row.number = comment.number
        row.post_number = comment.post_number
        row.pending_approval = True
        row.last_seen_at = seen_at
        self.session.commit()

    def get_unresolved_modqueue_cids(self, subplebbit_address: str) -> list[str]:
        stmt = (
            select(ModQueueCommentUpdate.cid)
            .join(ModQueueCommentIpfs, ModQueueCommentIpfs.cid == ModQueueCommentUpdate.cid)
            .where(
                ModQueueCommentIpfs.subplebbit_address == subplebbit_address,
                ModQueueCommentUpdate.resolved.is_(False),
            )
        )
        return list(self.session.scalars(stmt))

    def resolve_modqueue_comment(
        self, cid: str, accepted: bool, resolved_at: int | None = None
    ) -> None:
        row = self.session.get(ModQueueCommentUpdate, cid)
        if row is None:
            return
        row.resolved = True
        row.accepted = accepted
        row.pending_approval = False
        row.resolved_at = resolved_at if resolved_at is not None else now_seconds()
        self.session.commit()

    def get_modqueue_comment(self, cid: str) -> ModQueueCommentUpdate | None:
        return self.session.get(ModQueueCommentUpdate, cid)

    # ------------------------------------------------------------------
    # Author evidence
    # ------------------------------------------------------------------

    def get_author_first_seen_timestamp(self, author_public_key: str) -> int | None:
        """Return when the indexer first fetched any comment by this author."""
        return self.session.scalar(
            select(func.min(IndexedCommentIpfs.fetched_at)).where(
                IndexedCommentIpfs.author_public_key == author_public_key
            )
        )

    def get_author_velocity_stats(
        self, author_public_key: str, publication_type: PublicationType, now: int
    ) -> VelocityStats:
        """Count crawled comments by publish time. Only posts and replies are crawled."""
        if publication_type == PUBLICATION_POST:
            condition = IndexedCommentIpfs.parent_cid.is_(None)
        elif publication_type == PUBLICATION_REPLY:
            condition = IndexedCommentIpfs.parent_cid.is_not(None)
        else:
            return VelocityStats()

        def count_since(since: int) -> int:
            stmt = select(func.count()).select_from(IndexedCommentIpfs).where(
                IndexedCommentIpfs.author_public_key == author_public_key,
                IndexedCommentIpfs.timestamp >= since,
                condition,
            )
            return self.session.scalar(stmt) or 0

        return VelocityStats(
            last_hour=count_since(now - ONE_HOUR_SECONDS),
            last_24_hours=count_since(now - ONE_DAY_SECONDS),
        )

    def get_author_karma_by_subplebbit(self, author_public_key: str) -> dict[str, KarmaRecord]:
        """Return the most recently fetched karma snapshot per forum."""
        stmt = (
            select(
                IndexedCommentIpfs.subplebbit_address,
                IndexedCommentUpdate.author_post_score,
                IndexedCommentUpdate.author_reply_score,
                IndexedCommentUpdate.fetched_at,
            )
            .join(IndexedCommentUpdate, IndexedCommentUpdate.cid == IndexedCommentIpfs.cid)
            .where(
                IndexedCommentIpfs.author_public_key == author_public_key,
                IndexedCommentUpdate.fetched_at.is_not(None),
                or_(
                    IndexedCommentUpdate.author_post_score.is_not(None),
                    IndexedCommentUpdate.author_reply_score.is_not(None),
                ),
            )
        )
        karma: dict[str, KarmaRecord] = {}
        for address, post_score, reply_score, fetched_at in self.session.execute(stmt):
            existing = karma.get(address)
            if existing is None or fetched_at > existing.observed_at:
                karma[address] = KarmaRecord(
                    post_score=post_score or 0,
                    reply_score=reply_score or 0,
                    observed_at=fetched_at,
                    source=SOURCE_INDEXER,
                )
        return karma

    def get_author_network_stats(self, author_public_key: str, now: int) -> AuthorNetworkStats:
        """Aggregate moderation outcomes for an author across every crawled forum.

        A forum counts as banning the author when any of the author's comments
        there carries a ban that has not yet expired.
        """
        authored = IndexedCommentIpfs.author_public_key == author_public_key

        total = self.session.scalar(
            select(func.count()).select_from(IndexedCommentIpfs).where(authored)
        ) or 0
        distinct_subplebbits = self.session.scalar(
            select(func.count(func.distinct(IndexedCommentIpfs.subplebbit_address))).where(
                authored
            )
        ) or 0

        joined = select(func.count(func.distinct(IndexedCommentIpfs.subplebbit_address))).join(
            IndexedCommentUpdate, IndexedCommentUpdate.cid == IndexedCommentIpfs.cid
        )
        ban_count = self.session.scalar(
            joined.where(authored, IndexedCommentUpdate.author_ban_expires_at > now)
        ) or 0

        def count_updates(*conditions: Any) -> int:
            stmt = (
                select(func.count())
                .select_from(IndexedCommentIpfs)
                .join(IndexedCommentUpdate, IndexedCommentUpdate.cid == IndexedCommentIpfs.cid)
                .where(authored, *conditions)
            )
            return self.session.scalar(stmt) or 0

        removal_count = count_updates(IndexedCommentUpdate.removed.is_(True))
        disapproval_count = count_updates(
            IndexedCommentUpdate.approved.is_(False),
            or_(IndexedCommentUpdate.removed.is_(None), IndexedCommentUpdate.removed.is_(False)),
        )
        unfetchable_count = count_updates(
            IndexedCommentUpdate.last_fetch_failed_at.is_not(None),
            IndexedCommentUpdate.updated_at.is_(None),
        )

        def count_modqueue(accepted: bool) -> int:
            stmt = (
                select(func.count())
                .select_from(ModQueueCommentIpfs)
                .join(ModQueueCommentUpdate, ModQueueCommentUpdate.cid == ModQueueCommentIpfs.cid)
                .where(
                    ModQueueCommentIpfs.author_public_key == author_public_key,
                    and_(
                        ModQueueCommentUpdate.resolved.is_(True),
                        ModQueueCommentUpdate.accepted.is_(accepted),
                    ),
                )
            )
            return self.session.scalar(stmt) or 0

        return AuthorNetworkStats(
            ban_count=ban_count,
            removal_count=removal_count,
            disapproval_count=disapproval_count,
            unfetchable_count=unfetchable_count,
            modqueue_rejected=count_modqueue(False),
            modqueue_accepted=count_modqueue(True),
            total_indexed_comments=total,
            distinct_subplebbits=distinct_subplebbits,
        )

    def _comment_candidates(
        self,
        since: int,
        *,
        author_public_key: str | None = None,
        exclude_author_public_key: str | None = None,
        domain: str | None = None,
    ) -> list[CommentEvidence]:
        stmt = select(IndexedCommentIpfs).where(IndexedCommentIpfs.timestamp >= since)
        if author_public_key is not None:
            stmt = stmt.where(IndexedCommentIpfs.author_public_key == author_public_key)
        if exclude_author_public_key is not None:
            stmt = stmt.where(IndexedCommentIpfs.author_public_key != exclude_author_public_key)
        if domain:
            stmt = stmt.where(
                or_(
                    func.lower(IndexedCommentIpfs.link).contains(domain),
                    func.lower(IndexedCommentIpfs.content).contains(domain),
                    func.lower(IndexedCommentIpfs.title).contains(domain),
                )
            )
        stmt = stmt.order_by(IndexedCommentIpfs.timestamp.desc())
        return [
            CommentEvidence(
                id=row.cid,
                source=SOURCE_INDEXER,
                author_public_key=row.author_public_key,
                subplebbit_address=row.subplebbit_address,
                content=row.content,
                title=row.title,
                link=row.link,
                timestamp=row.timestamp,
            )
            for row in self.session.scalars(stmt)
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ipfs_columns(comment: CommentIpfs, subplebbit_address: str) -> dict[str, Any]:
        return {
            "subplebbit_address": subplebbit_address,
            # author.subplebbit is mutable forum data and belongs to the update row.
            "author": comment.author.model_dump(
                by_alias=True, exclude_none=True, exclude={"subplebbit"}, mode="json"
            ),
            "signature": comment.signature.to_wire(),
            "author_public_key": comment.signature.public_key,
            "author_previous_comment_cid": comment.author.previous_comment_cid,
            "parent_cid": comment.parent_cid,
            "content": comment.content,
            "title": comment.title,
            "link": comment.link,
            "timestamp": comment.timestamp,
            "depth": comment.depth,
            "protocol_version": comment.protocol_version,
        }

    def _commit_insert(self, cid: str) -> bool:
        try:
            self.session.commit()
        except IntegrityError:
            # Another worker stored the same cid first.
            self.session.rollback()
            logger.debug("Comment %s already stored", cid)
            return False
        return True
