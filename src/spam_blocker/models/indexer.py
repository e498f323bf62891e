"""Models for the crawled mirror of public network content."""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from spam_blocker.db.session import Base
from spam_blocker.db.time import now_seconds

DISCOVERED_VIA_EVALUATE_API = "evaluate_api"
DISCOVERED_VIA_PREVIOUS_COMMENT_CID = "previous_comment_cid"
DISCOVERED_VIA_MANUAL = "manual"

DISCOVERY_SOURCES = (
    DISCOVERED_VIA_EVALUATE_API,
    DISCOVERED_VIA_PREVIOUS_COMMENT_CID,
    DISCOVERED_VIA_MANUAL,
)


class IndexedSubplebbit(Base):
    """A forum the indexer knows about, with its change-detection markers."""

    __tablename__ = "indexed_subplebbits"

    address: Mapped[str] = mapped_column(Text, primary_key=True)
    public_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    discovered_via: Mapped[str] = mapped_column(String(32), nullable=False)
    discovered_at: Mapped[int] = mapped_column(Integer, nullable=False, default=now_seconds)
    indexing_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    # posts.pageCids.new as last indexed
    last_posts_page_cid_new: Mapped[str | None] = mapped_column(Text, nullable=True)
    # subplebbit.updatedAt as last indexed
    last_subplebbit_updated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consecutive_errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)


class CommentIpfsMixin:
    """Immutable comment fields keyed by content identifier."""

    cid: Mapped[str] = mapped_column(Text, primary_key=True)
    # Not a foreign key: crawled comments may belong to forums not indexed yet.
    subplebbit_address: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    author: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    signature: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    author_public_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    author_previous_comment_cid: Mapped[str | None] = mapped_column(Text, nullable=True)
    # NULL parent = post, set = reply
    parent_cid: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    depth: Mapped[int | None] = mapped_column(Integer, nullable=True)
    protocol_version: Mapped[str | None] = mapped_column(String(16), nullable=True)


class IndexedCommentIpfs(CommentIpfsMixin, Base):
    """Crawled comment content. Inserted once, never updated."""

    __tablename__ = "indexed_comments_ipfs"

    fetched_at: Mapped[int] = mapped_column(Integer, nullable=False, default=now_seconds)


class IndexedCommentUpdate(Base):
    """Mutable moderation and vote-tally state of a crawled comment."""

    __tablename__ = "indexed_comments_update"

    cid: Mapped[str] = mapped_column(
        Text, ForeignKey("indexed_comments_ipfs.cid"), primary_key=True
    )
    # author.subplebbit data only; author.address lives on the ipfs row.
    author: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    author_post_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    author_reply_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    author_ban_expires_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    upvote_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    downvote_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reply_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    removed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    deleted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    locked: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    pinned: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    # True = approved, False = disapproved
    approved: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    updated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_replies_page_cid: Mapped[str | None] = mapped_column(Text, nullable=True)
    fetched_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_fetch_failed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fetch_failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ModQueueCommentIpfs(CommentIpfsMixin, Base):
    """Comment content seen in a forum's pending-approval queue."""

    __tablename__ = "modqueue_comments_ipfs"

    first_seen_at: Mapped[int] = mapped_column(Integer, nullable=False, default=now_seconds)


class ModQueueCommentUpdate(Base):
    """Pending-approval state of a modqueue comment until it is resolved."""

    __tablename__ = "modqueue_comments_update"

    cid: Mapped[str] = mapped_column(
        Text, ForeignKey("modqueue_comments_ipfs.cid"), primary_key=True
    )
    author: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    protocol_version: Mapped[str | None] = mapped_column(String(16), nullable=True)
    number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    post_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Always True while the item sits in the queue.
    pending_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_seen_at: Mapped[int] = mapped_column(Integer, nullable=False, default=now_seconds)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    resolved_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # True when a full CommentUpdate appeared after the item left the queue.
    accepted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
