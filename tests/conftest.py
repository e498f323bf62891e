# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")

from spam_blocker.db.session import Base
from spam_blocker.indexer.comment_fetcher import store_comment_from_page
from spam_blocker.repositories.evidence_store import EvidenceStore
from spam_blocker.repositories.indexer_queries import IndexerQueries
from spam_blocker.risk_score.types import RiskContext
from spam_blocker.schemas.pages import PageComment
from spam_blocker.schemas.publication import ChallengeRequest
from spam_blocker.services.combined_data import CombinedDataService

TEST_DB_URL = "sqlite://"

NOW = 1_700_000_000
AUTHOR_KEY = "12D3KooWAuthorPublicKey"
SUBPLEBBIT = "news.eth"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _clean_tables(engine: Engine) -> None:
    with engine.begin() as cleanup_conn:
        for table in reversed(Base.metadata.sorted_tables):
            cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        _clean_tables(engine)


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    """Session factory for code that opens its own short-lived sessions (workers)."""
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield factory
    finally:
        _clean_tables(engine)


@pytest.fixture()
def evidence_store(db_session: Session) -> EvidenceStore:
    return EvidenceStore(db_session)


@pytest.fixture()
def indexer_queries(db_session: Session) -> IndexerQueries:
    return IndexerQueries(db_session)


@pytest.fixture()
def combined_data(
    evidence_store: EvidenceStore, indexer_queries: IndexerQueries
) -> CombinedDataService:
    return CombinedDataService(evidence_store, indexer_queries)


def build_author(
    address: str = "author.eth",
    *,
    previous_comment_cid: str | None = None,
    post_score: int | None = None,
    reply_score: int | None = None,
    wallets: dict[str, str] | None = None,
) -> dict[str, Any]:
    author: dict[str, Any] = {"address": address}
    if previous_comment_cid:
        author["previousCommentCid"] = previous_comment_cid
    if post_score is not None or reply_score is not None:
        author["subplebbit"] = {"postScore": post_score, "replyScore": reply_score}
    if wallets:
        author["wallets"] = {
            chain: {"address": wallet, "timestamp": NOW} for chain, wallet in wallets.items()
        }
    return author


def build_request(
    kind: str = "post",
    *,
    author_key: str = AUTHOR_KEY,
    subplebbit: str = SUBPLEBBIT,
    timestamp: int = NOW,
    author: dict[str, Any] | None = None,
    **fields: Any,
) -> ChallengeRequest:
    """Build a decrypted challenge request carrying one publication of ``kind``."""
    publication: dict[str, Any] = {
        "author": author or build_author(),
        "signature": {"publicKey": author_key, "signature": "sig", "type": "ed25519"},
        "subplebbitAddress": subplebbit,
        "timestamp": timestamp,
        "protocolVersion": "1.0.0",
    }
    if kind == "post":
        key = "comment"
    elif kind == "reply":
        publication.update(parentCid="QmParent", postCid="QmParent")
        key = "comment"
    elif kind == "vote":
        publication.update(commentCid="QmVoted", vote=1)
        key = "vote"
    elif kind == "commentEdit":
        publication.update(commentCid="QmEdited", content="edited")
        key = "commentEdit"
    elif kind == "commentModeration":
        publication.update(commentCid="QmModerated", commentModeration={"removed": True})
        key = "commentModeration"
    elif kind == "subplebbitEdit":
        publication.update(subplebbitEdit={"title": "New title"})
        key = "subplebbitEdit"
    else:
        raise ValueError(f"Unknown publication kind: {kind}")

    publication.update(fields)
    return ChallengeRequest.model_validate({"challengeRequestId": "req", key: publication})


@pytest.fixture()
def make_request() -> Callable[..., ChallengeRequest]:
    return build_request


@pytest.fixture()
def record_publication(
    evidence_store: EvidenceStore,
) -> Callable[..., str]:
    """Store a publication as if it had been evaluated at ``received_at``."""

    def _record(request: ChallengeRequest, received_at: int = NOW - 60, **session: Any) -> str:
        session_id = f"session-{uuid4().hex}"
        publication = request.publication
        evidence_store.insert_challenge_session(
            session_id=session_id,
            expires_at=received_at + 3600,
            author_address=publication.author.address,
            author_public_key=publication.author_public_key,
            subplebbit_address=publication.subplebbit_address,
            received_at=received_at,
        )
        if session:
            evidence_store.update_challenge_session_status(session_id, **session)
        evidence_store.insert_publication(session_id, request, received_at=received_at)
        return session_id

    return _record


def build_page_comment(
    cid: str | None = None,
    *,
    author_key: str = AUTHOR_KEY,
    subplebbit: str = SUBPLEBBIT,
    timestamp: int = NOW - 60,
    author: dict[str, Any] | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Build a comment as a remote node serves it inside a page."""
    comment: dict[str, Any] = {
        "cid": cid or f"QmComment{uuid4().hex[:12]}",
        "author": author or build_author(),
        "signature": {"publicKey": author_key, "signature": "sig", "type": "ed25519"},
        "subplebbitAddress": subplebbit,
        "timestamp": timestamp,
        "protocolVersion": "1.0.0",
    }
    comment.update(fields)
    return comment


@pytest.fixture()
def index_comment(indexer_queries: IndexerQueries) -> Callable[..., str]:
    """Store a crawled comment, with an update row when update fields are given."""

    def _index(**kwargs: Any) -> str:
        comment = PageComment.model_validate(build_page_comment(**kwargs))
        store_comment_from_page(indexer_queries, comment, comment.subplebbit_address)
        return comment.cid

    return _index


@pytest.fixture()
def make_context(
    evidence_store: EvidenceStore, combined_data: CombinedDataService
) -> Callable[..., RiskContext]:
    def _make(request: ChallengeRequest, now: int = NOW, **kwargs: Any) -> RiskContext:
        return RiskContext(
            request=request,
            now=now,
            data=combined_data,
            evidence=evidence_store,
            **kwargs,
        )

    return _make
