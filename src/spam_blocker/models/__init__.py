# src/spam_blocker/models/__init__.py
"""SQLAlchemy models for the spam blocker service."""

from .challenge import ChallengeSession
from .indexer import (
    IndexedCommentIpfs,
    IndexedCommentUpdate,
    IndexedSubplebbit,
    ModQueueCommentIpfs,
    ModQueueCommentUpdate,
)
from .publication import Comment, CommentEdit, CommentModeration, IpRecord, PublicationWallet, Vote

__all__ = [
    "ChallengeSession",
    "Comment", "CommentEdit", "CommentModeration", "Vote",
    "IpRecord", "PublicationWallet",
    "IndexedSubplebbit", "IndexedCommentIpfs", "IndexedCommentUpdate",
    "ModQueueCommentIpfs", "ModQueueCommentUpdate",
]
