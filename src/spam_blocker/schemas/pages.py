# src/spam_blocker/schemas/pages.py
"""Pydantic schemas for data returned by remote forum nodes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from spam_blocker.core.errors import InvalidRemoteDataError
from spam_blocker.schemas.publication import Author, AuthorSubplebbit, Signature, WireModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class CommentIpfs(WireModel):
    """Immutable comment fields as signed by the author."""

    author: Author
    signature: Signature
    subplebbit_address: str
    timestamp: int
    parent_cid: str | None = None
    post_cid: str | None = None
    content: str | None = None
    title: str | None = None
    link: str | None = None
    depth: int | None = None
    protocol_version: str | None = None


class CommentUpdateAuthor(WireModel):
    subplebbit: AuthorSubplebbit | None = None


class PageListing(WireModel):
    """Paginated listing: sort name -> first page cid, plus any inlined pages."""

    page_cids: dict[str, str] = {}
    pages: dict[str, Page] = {}


class CommentUpdate(WireModel):
    """Mutable comment state published by the forum."""

    cid: str | None = None
    author: CommentUpdateAuthor | None = None
    upvote_count: int | None = None
    downvote_count: int | None = None
    reply_count: int | None = None
    removed: bool | None = None
    deleted: bool | None = None
    locked: bool | None = None
    pinned: bool | None = None
    approved: bool | None = None
    updated_at: int | None = None
    number: int | None = None
    post_number: int | None = None
    replies: PageListing | None = None


class PageComment(CommentIpfs):
    """A comment as it appears inside a page, with update fields flattened in.

    In page form author.subplebbit carries the CommentUpdate author data.
    """

    cid: str | None = None
    subplebbit_address: str | None = None  # type: ignore[assignment]
    upvote_count: int | None = None
    downvote_count: int | None = None
    reply_count: int | None = None
    removed: bool | None = None
    deleted: bool | None = None
    locked: bool | None = None
    pinned: bool | None = None
    approved: bool | None = None
    updated_at: int | None = None
    number: int | None = None
    post_number: int | None = None
    replies: PageListing | None = None

    def first_replies_page_cid(self) -> str | None:
        """Return replies.pageCids.new, or any available replies page cid."""
        if self.replies is None or not self.replies.page_cids:
            return None
        return self.replies.page_cids.get("new") or next(iter(self.replies.page_cids.values()))


class Page(WireModel):
    comments: list[PageComment] = []
    next_cid: str | None = None


PageListing.model_rebuild()
CommentUpdate.model_rebuild()
PageComment.model_rebuild()


def parse_remote(model: type[ModelT], data: Mapping[str, Any] | ModelT, what: str) -> ModelT:
    """Validate a remote payload, raising a descriptive error when it is malformed.

    Args:
        model: Pydantic model describing the expected payload.
        data: Raw mapping received from the remote node (or an already parsed model).
        what: Human readable description used in the error message.

    Returns:
        The validated model instance.

    Raises:
        InvalidRemoteDataError: If the payload does not match the schema.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidRemoteDataError(
            f"Malformed {what}: {exc.error_count()} validation error(s): {exc}"
        ) from exc
