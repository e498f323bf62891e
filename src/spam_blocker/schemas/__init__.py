"""Pydantic schemas for publication and remote page payloads."""

from .pages import CommentIpfs, CommentUpdate, Page, PageComment, PageListing, parse_remote
from .publication import (
    Author,
    AuthorSubplebbit,
    ChallengeRequest,
    CommentEditPublication,
    CommentModerationPublication,
    CommentPublication,
    Publication,
    Signature,
    SubplebbitEditPublication,
    VotePublication,
    Wallet,
)

__all__ = [
    "Author", "AuthorSubplebbit", "Signature", "Wallet",
    "ChallengeRequest", "Publication",
    "CommentPublication", "VotePublication", "CommentEditPublication",
    "CommentModerationPublication", "SubplebbitEditPublication",
    "CommentIpfs", "CommentUpdate", "Page", "PageComment", "PageListing", "parse_remote",
]
