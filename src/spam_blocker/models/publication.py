"""Publications received directly by this service (the local evidence side)."""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from spam_blocker.db.session import Base
from spam_blocker.db.time import now_seconds


class PublicationMixin:
    """Columns shared by every locally received publication table."""

    # No foreign key: publications outlive their purged challenge session.
    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    author: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    signature: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # Copied out of signature.publicKey so lookups never parse JSON.
    author_public_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    subplebbit_address: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    # Karma snapshot from author.subplebbit at the time the publication arrived.
    author_post_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    author_reply_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    protocol_version: Mapped[str | None] = mapped_column(String(16), nullable=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
    received_at: Mapped[int] = mapped_column(
        Integer, nullable=False, default=now_seconds, index=True
    )


class Comment(PublicationMixin, Base):
    """A post (no parent) or reply (with parent) received for evaluation."""

    __tablename__ = "comments"

    parent_cid: Mapped[str | None] = mapped_column(Text, nullable=True)
    post_cid: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    link_width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    link_height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    link_html_tag_name: Mapped[str | None] = mapped_column(String(32), nullable=True)
    flair: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    spoiler: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    nsfw: Mapped[bool | None] = mapped_column(Boolean, nullable=True)


class Vote(PublicationMixin, Base):
    """An up/down vote on a comment."""

    __tablename__ = "votes"

    comment_cid: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    vote: Mapped[int] = mapped_column(Integer, nullable=False)


class CommentEdit(PublicationMixin, Base):
    """An author edit of an existing comment."""

    __tablename__ = "comment_edits"

    comment_cid: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    flair: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    spoiler: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    nsfw: Mapped[bool | None] = mapped_column(Boolean, nullable=True)


class CommentModeration(PublicationMixin, Base):
    """A moderator action (remove, lock, ban, ...) against a comment."""

    __tablename__ = "comment_moderations"

    comment_cid: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    comment_moderation: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class PublicationWallet(Base):
    """Wallet address presented in author.wallets for one received publication."""

    __tablename__ = "publication_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # 'post', 'reply', 'vote', 'commentEdit', 'commentModeration'
    publication_type: Mapped[str] = mapped_column(String(32), nullable=False)
    # Stored lower-cased for case-insensitive matching.
    wallet_address: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    chain_ticker: Mapped[str] = mapped_column(String(16), nullable=False)
    author_public_key: Mapped[str] = mapped_column(Text, nullable=False)
    received_at: Mapped[int] = mapped_column(Integer, nullable=False, default=now_seconds)


class IpRecord(Base):
    """IP address observed for a challenge session plus its intelligence flags."""

    __tablename__ = "ip_records"

    session_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("challenge_sessions.session_id", ondelete="CASCADE"),
        primary_key=True,
    )
    ip_address: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    is_vpn: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_proxy: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_tor: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_datacenter: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
