"""Challenge session model tracking one publication evaluation."""

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from spam_blocker.db.session import Base
from spam_blocker.db.time import now_seconds

SESSION_STATUS_PENDING = "pending"
SESSION_STATUS_COMPLETED = "completed"
SESSION_STATUS_FAILED = "failed"

SESSION_STATUSES = (SESSION_STATUS_PENDING, SESSION_STATUS_COMPLETED, SESSION_STATUS_FAILED)


class ChallengeSession(Base):
    """Lifecycle of a single publication's risk evaluation and follow-up challenge."""

    __tablename__ = "challenge_sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    author_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    author_public_key: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    subplebbit_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    subplebbit_public_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    challenge_tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # 'pending', 'completed', 'failed'
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SESSION_STATUS_PENDING
    )
    captcha_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # "provider:userId", e.g. "github:12345678"
    oauth_identity: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    received_at: Mapped[int] = mapped_column(Integer, nullable=False, default=now_seconds)
    expires_at: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    author_accessed_iframe_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
