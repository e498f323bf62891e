# src/spam_blocker/schemas/publication.py
"""Pydantic schemas for publications carried inside a decrypted challenge request.

Wire payloads use camelCase keys; the models expose snake_case attributes and
accept either spelling. Unknown keys are preserved so the stored JSON matches
what the author actually signed.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from spam_blocker.core.errors import UnknownPublicationTypeError

PublicationType = Literal[
    "post", "reply", "vote", "commentEdit", "commentModeration", "subplebbitEdit"
]

PUBLICATION_POST: PublicationType = "post"
PUBLICATION_REPLY: PublicationType = "reply"
PUBLICATION_VOTE: PublicationType = "vote"
PUBLICATION_COMMENT_EDIT: PublicationType = "commentEdit"
PUBLICATION_COMMENT_MODERATION: PublicationType = "commentModeration"
PUBLICATION_SUBPLEBBIT_EDIT: PublicationType = "subplebbitEdit"

# Types whose rate is tracked for velocity scoring.
VELOCITY_TRACKED_TYPES: tuple[PublicationType, ...] = (
    PUBLICATION_POST,
    PUBLICATION_REPLY,
    PUBLICATION_VOTE,
    PUBLICATION_COMMENT_EDIT,
    PUBLICATION_COMMENT_MODERATION,
)


class WireModel(BaseModel):
    """Base model for camelCase protocol payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the camelCase JSON form, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Signature(WireModel):
    """Publication signature. The public key is the author's true identity."""

    public_key: str
    signature: str | None = None
    type: str | None = None
    signed_property_names: list[str] | None = None


class AuthorSubplebbit(WireModel):
    """Per-forum author data attached by the forum (karma, bans, flair)."""

    post_score: int | None = None
    reply_score: int | None = None
    ban_expires_at: int | None = None
    first_comment_timestamp: int | None = None
    last_comment_cid: str | None = None
    flair: dict[str, Any] | None = None


class Wallet(WireModel):
    """A wallet the author claims ownership of, keyed by chain ticker in author.wallets."""

    address: str
    timestamp: int | None = None
    signature: dict[str, Any] | None = None


class Author(WireModel):
    address: str
    display_name: str | None = None
    previous_comment_cid: str | None = None
    wallets: dict[str, Wallet] | None = None
    avatar: dict[str, Any] | None = None
    flair: dict[str, Any] | None = None
    subplebbit: AuthorSubplebbit | None = None

    def wallet_addresses(self) -> list[tuple[str, str]]:
        """Return ``(chain_ticker, address)`` pairs from author.wallets.

        The avatar's owning wallet is always one of author.wallets, so the avatar
        is not inspected separately.
        """
        if not self.wallets:
            return []
        return [
            (chain_ticker, wallet.address)
            for chain_ticker, wallet in self.wallets.items()
            if wallet.address
        ]


class Publication(WireModel):
    """Fields common to every publication type."""

    author: Author
    signature: Signature
    subplebbit_address: str
    timestamp: int
    protocol_version: str | None = None

    @property
    def author_public_key(self) -> str:
        return self.signature.public_key


class CommentPublication(Publication):
    parent_cid: str | None = None
    post_cid: str | None = None
    content: str | None = None
    title: str | None = None
    link: str | None = None
    link_width: int | None = None
    link_height: int | None = None
    link_html_tag_name: str | None = None
    flair: dict[str, Any] | None = None
    spoiler: bool | None = None
    nsfw: bool | None = None


class VotePublication(Publication):
    comment_cid: str
    vote: int = Field(ge=-1, le=1)


class CommentEditPublication(Publication):
    comment_cid: str
    content: str | None = None
    reason: str | None = None
    deleted: bool | None = None
    flair: dict[str, Any] | None = None
    spoiler: bool | None = None
    nsfw: bool | None = None


class CommentModerationPublication(Publication):
    comment_cid: str
    comment_moderation: dict[str, Any] | None = None


class SubplebbitEditPublication(Publication):
    subplebbit_edit: dict[str, Any] | None = None


class ChallengeRequest(WireModel):
    """Decrypted challenge request. Exactly one publication field is expected."""

    challenge_request_id: str | None = None
    comment: CommentPublication | None = None
    vote: VotePublication | None = None
    comment_edit: CommentEditPublication | None = None
    comment_moderation: CommentModerationPublication | None = None
    subplebbit_edit: SubplebbitEditPublication | None = None

    @property
    def publication(self) -> Publication:
        """Return whichever publication the request carries.

        Raises:
            UnknownPublicationTypeError: If the request carries none.
        """
        for candidate in (
            self.comment,
            self.vote,
            self.comment_edit,
            self.comment_moderation,
            self.subplebbit_edit,
        ):
            if candidate is not None:
                return candidate
        raise UnknownPublicationTypeError("Unknown publication type in challenge request")

    @property
    def publication_type(self) -> PublicationType:
        """Classify the publication; a comment is a post without parentCid, else a reply."""
        if self.comment is not None:
            return PUBLICATION_REPLY if self.comment.parent_cid else PUBLICATION_POST
        if self.vote is not None:
            return PUBLICATION_VOTE
        if self.comment_edit is not None:
            return PUBLICATION_COMMENT_EDIT
        if self.comment_moderation is not None:
            return PUBLICATION_COMMENT_MODERATION
        if self.subplebbit_edit is not None:
            return PUBLICATION_SUBPLEBBIT_EDIT
        raise UnknownPublicationTypeError("Unknown publication type in challenge request")
