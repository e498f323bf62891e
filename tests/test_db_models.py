"""Unit tests for the ORM models defined in spam_blocker.models.

These tests verify basic mapping correctness: table names, primary keys,
the IP records tied to their challenge session, and that publications and
the crawled mirror keep no foreign keys that a purge could cascade through.
"""

from sqlalchemy import inspect

from spam_blocker import models
from spam_blocker.db.session import Base


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert models.ChallengeSession.__tablename__ == "challenge_sessions"
    assert models.Comment.__tablename__ == "comments"
    assert models.Vote.__tablename__ == "votes"
    assert models.CommentEdit.__tablename__ == "comment_edits"
    assert models.CommentModeration.__tablename__ == "comment_moderations"
    assert models.IndexedSubplebbit.__tablename__ == "indexed_subplebbits"
    assert models.IndexedCommentIpfs.__tablename__ == "indexed_comments_ipfs"
    assert models.ModQueueCommentUpdate.__tablename__ == "modqueue_comments_update"


def test_publications_are_keyed_by_session():
    """Each publication table stores at most one row per challenge session.

    Publications keep no foreign key so they survive the purge of their session.
    """
    for model in (models.Comment, models.Vote, models.CommentEdit, models.CommentModeration):
        table = model.__table__
        assert {c.name for c in table.primary_key} == {"session_id"}
        assert not table.foreign_keys
    assert not models.PublicationWallet.__table__.foreign_keys


def test_ip_records_reference_their_session():
    targets = {fk.target_fullname for fk in models.IpRecord.__table__.foreign_keys}

    assert targets == {"challenge_sessions.session_id"}


def test_update_rows_reference_their_comment():
    update_fks = {fk.target_fullname for fk in models.IndexedCommentUpdate.__table__.foreign_keys}
    modqueue_fks = {
        fk.target_fullname for fk in models.ModQueueCommentUpdate.__table__.foreign_keys
    }

    assert update_fks == {"indexed_comments_ipfs.cid"}
    assert modqueue_fks == {"modqueue_comments_ipfs.cid"}


def test_crawled_comments_do_not_reference_forum_table():
    """Comments can be stored for forums that are not (yet) indexed."""
    assert not models.IndexedCommentIpfs.__table__.foreign_keys
    assert not models.ModQueueCommentIpfs.__table__.foreign_keys


def test_every_model_is_registered_on_the_metadata(engine):
    tables = set(inspect(engine).get_table_names())

    assert set(Base.metadata.tables) <= tables
    assert len(Base.metadata.tables) == 12
