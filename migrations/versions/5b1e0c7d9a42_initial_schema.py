"""initial schema

Revision ID: 5b1e0c7d9a42
Revises:
Create Date: 2026-10-19 09:12:44.318201

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7d9a42"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _publication_columns() -> list[sa.Column]:
    return [
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("author", sa.JSON(), nullable=False),
        sa.Column("signature", sa.JSON(), nullable=False),
        sa.Column("author_public_key", sa.Text(), nullable=False),
        sa.Column("subplebbit_address", sa.Text(), nullable=False),
        sa.Column("author_post_score", sa.Integer(), nullable=True),
        sa.Column("author_reply_score", sa.Integer(), nullable=True),
        sa.Column("protocol_version", sa.String(length=16), nullable=True),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.Column("received_at", sa.Integer(), nullable=False),
    ]


def _publication_constraints() -> list[sa.Constraint]:
    return [sa.PrimaryKeyConstraint("session_id")]


def _publication_indexes(table: str) -> None:
    for column in ("author_public_key", "subplebbit_address", "received_at"):
        op.create_index(op.f(f"ix_{table}_{column}"), table, [column], unique=False)


def _comment_ipfs_columns() -> list[sa.Column]:
    return [
        sa.Column("cid", sa.Text(), nullable=False),
        sa.Column("subplebbit_address", sa.Text(), nullable=False),
        sa.Column("author", sa.JSON(), nullable=False),
        sa.Column("signature", sa.JSON(), nullable=False),
        sa.Column("author_public_key", sa.Text(), nullable=False),
        sa.Column("author_previous_comment_cid", sa.Text(), nullable=True),
        sa.Column("parent_cid", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.Column("depth", sa.Integer(), nullable=True),
        sa.Column("protocol_version", sa.String(length=16), nullable=True),
    ]


def _comment_ipfs_indexes(table: str) -> None:
    for column in ("subplebbit_address", "author_public_key", "timestamp"):
        op.create_index(op.f(f"ix_{table}_{column}"), table, [column], unique=False)


def upgrade() -> None:
    """Create the evidence store and indexer tables."""
    op.create_table(
        "challenge_sessions",
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("author_address", sa.Text(), nullable=True),
        sa.Column("author_public_key", sa.Text(), nullable=True),
        sa.Column("subplebbit_address", sa.Text(), nullable=True),
        sa.Column("subplebbit_public_key", sa.Text(), nullable=True),
        sa.Column("risk_score", sa.Float(), nullable=True),
        sa.Column("challenge_tier", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("captcha_completed", sa.Boolean(), nullable=False),
        sa.Column("oauth_identity", sa.Text(), nullable=True),
        sa.Column("received_at", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("author_accessed_iframe_at", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("session_id"),
    )
    for column in ("author_public_key", "oauth_identity", "expires_at"):
        op.create_index(
            op.f(f"ix_challenge_sessions_{column}"), "challenge_sessions", [column], unique=False
        )

    op.create_table(
        "comments",
        *_publication_columns(),
        sa.Column("parent_cid", sa.Text(), nullable=True),
        sa.Column("post_cid", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("link_width", sa.Integer(), nullable=True),
        sa.Column("link_height", sa.Integer(), nullable=True),
        sa.Column("link_html_tag_name", sa.String(length=32), nullable=True),
        sa.Column("flair", sa.JSON(), nullable=True),
        sa.Column("spoiler", sa.Boolean(), nullable=True),
        sa.Column("nsfw", sa.Boolean(), nullable=True),
        *_publication_constraints(),
    )
    _publication_indexes("comments")

    op.create_table(
        "votes",
        *_publication_columns(),
        sa.Column("comment_cid", sa.Text(), nullable=False),
        sa.Column("vote", sa.Integer(), nullable=False),
        *_publication_constraints(),
    )
    _publication_indexes("votes")
    op.create_index(op.f("ix_votes_comment_cid"), "votes", ["comment_cid"], unique=False)

    op.create_table(
        "comment_edits",
        *_publication_columns(),
        sa.Column("comment_cid", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=True),
        sa.Column("flair", sa.JSON(), nullable=True),
        sa.Column("spoiler", sa.Boolean(), nullable=True),
        sa.Column("nsfw", sa.Boolean(), nullable=True),
        *_publication_constraints(),
    )
    _publication_indexes("comment_edits")
    op.create_index(
        op.f("ix_comment_edits_comment_cid"), "comment_edits", ["comment_cid"], unique=False
    )

    op.create_table(
        "comment_moderations",
        *_publication_columns(),
        sa.Column("comment_cid", sa.Text(), nullable=False),
        sa.Column("comment_moderation", sa.JSON(), nullable=True),
        *_publication_constraints(),
    )
    _publication_indexes("comment_moderations")
    op.create_index(
        op.f("ix_comment_moderations_comment_cid"),
        "comment_moderations",
        ["comment_cid"],
        unique=False,
    )

    op.create_table(
        "publication_wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("publication_type", sa.String(length=32), nullable=False),
        sa.Column("wallet_address", sa.Text(), nullable=False),
        sa.Column("chain_ticker", sa.String(length=16), nullable=False),
        sa.Column("author_public_key", sa.Text(), nullable=False),
        sa.Column("received_at", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_publication_wallets_session_id"),
        "publication_wallets",
        ["session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_publication_wallets_wallet_address"),
        "publication_wallets",
        ["wallet_address"],
        unique=False,
    )

    op.create_table(
        "ip_records",
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("ip_address", sa.Text(), nullable=False),
        sa.Column("is_vpn", sa.Boolean(), nullable=True),
        sa.Column("is_proxy", sa.Boolean(), nullable=True),
        sa.Column("is_tor", sa.Boolean(), nullable=True),
        sa.Column("is_datacenter", sa.Boolean(), nullable=True),
        sa.Column("country_code", sa.String(length=8), nullable=True),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id"], ["challenge_sessions.session_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("session_id"),
    )
    op.create_index(op.f("ix_ip_records_ip_address"), "ip_records", ["ip_address"], unique=False)

    op.create_table(
        "indexed_subplebbits",
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("public_key", sa.Text(), nullable=True),
        sa.Column("discovered_via", sa.String(length=32), nullable=False),
        sa.Column("discovered_at", sa.Integer(), nullable=False),
        sa.Column("indexing_enabled", sa.Boolean(), nullable=False),
        sa.Column("last_posts_page_cid_new", sa.Text(), nullable=True),
        sa.Column("last_subplebbit_updated_at", sa.Integer(), nullable=True),
        sa.Column("consecutive_errors", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("address"),
    )
    op.create_index(
        op.f("ix_indexed_subplebbits_indexing_enabled"),
        "indexed_subplebbits",
        ["indexing_enabled"],
        unique=False,
    )

    op.create_table(
        "indexed_comments_ipfs",
        *_comment_ipfs_columns(),
        sa.Column("fetched_at", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("cid"),
    )
    _comment_ipfs_indexes("indexed_comments_ipfs")

    op.create_table(
        "indexed_comments_update",
        sa.Column("cid", sa.Text(), nullable=False),
        sa.Column("author", sa.JSON(), nullable=True),
        sa.Column("author_post_score", sa.Integer(), nullable=True),
        sa.Column("author_reply_score", sa.Integer(), nullable=True),
        sa.Column("author_ban_expires_at", sa.Integer(), nullable=True),
        sa.Column("upvote_count", sa.Integer(), nullable=True),
        sa.Column("downvote_count", sa.Integer(), nullable=True),
        sa.Column("reply_count", sa.Integer(), nullable=True),
        sa.Column("removed", sa.Boolean(), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=True),
        sa.Column("locked", sa.Boolean(), nullable=True),
        sa.Column("pinned", sa.Boolean(), nullable=True),
        sa.Column("approved", sa.Boolean(), nullable=True),
        sa.Column("updated_at", sa.Integer(), nullable=True),
        sa.Column("last_replies_page_cid", sa.Text(), nullable=True),
        sa.Column("fetched_at", sa.Integer(), nullable=True),
        sa.Column("last_fetch_failed_at", sa.Integer(), nullable=True),
        sa.Column("fetch_failure_count", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["cid"], ["indexed_comments_ipfs.cid"]),
        sa.PrimaryKeyConstraint("cid"),
    )

    op.create_table(
        "modqueue_comments_ipfs",
        *_comment_ipfs_columns(),
        sa.Column("first_seen_at", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("cid"),
    )
    _comment_ipfs_indexes("modqueue_comments_ipfs")

    op.create_table(
        "modqueue_comments_update",
        sa.Column("cid", sa.Text(), nullable=False),
        sa.Column("author", sa.JSON(), nullable=True),
        sa.Column("protocol_version", sa.String(length=16), nullable=True),
        sa.Column("number", sa.Integer(), nullable=True),
        sa.Column("post_number", sa.Integer(), nullable=True),
        sa.Column("pending_approval", sa.Boolean(), nullable=False),
        sa.Column("last_seen_at", sa.Integer(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", sa.Integer(), nullable=True),
        sa.Column("accepted", sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(["cid"], ["modqueue_comments_ipfs.cid"]),
        sa.PrimaryKeyConstraint("cid"),
    )
    op.create_index(
        op.f("ix_modqueue_comments_update_resolved"),
        "modqueue_comments_update",
        ["resolved"],
        unique=False,
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    for table in (
        "modqueue_comments_update",
        "modqueue_comments_ipfs",
        "indexed_comments_update",
        "indexed_comments_ipfs",
        "indexed_subplebbits",
        "ip_records",
        "publication_wallets",
        "comment_moderations",
        "comment_edits",
        "votes",
        "comments",
        "challenge_sessions",
    ):
        op.drop_table(table)
