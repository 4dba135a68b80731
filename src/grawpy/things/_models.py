"""
Data models for Reddit "things".

Reddit wraps every object in an envelope ``{"kind": ..., "data": {...}}``.
This module defines the envelope itself, the closed set of kinds, the two
sum-type wire fields (``edited`` and ``replies``) and the typed records the
decoder produces.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

# =============================================================================
# Envelope
# =============================================================================


class ThingKind(enum.StrEnum):
    """Discriminator values accepted by the decoder."""

    LISTING = "Listing"
    COMMENT = "t1"
    ACCOUNT = "t2"
    POST = "t3"
    MESSAGE = "t4"
    SUBREDDIT = "t5"
    MORE = "more"

    @classmethod
    def parse(cls, value: Any) -> ThingKind | None:
        """Return the matching kind, or None when the value is not supported."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class Envelope:
    """
    Wire-level tagged union: a discriminator plus an opaque payload.

    Attributes:
        kind: Raw discriminator as received (may be outside ThingKind).
        data: The payload, left undecoded.
        id: Optional id carried next to the payload.
        name: Optional fullname carried next to the payload.

    Example:
        >>> env = Envelope.from_json({"kind": "t3", "data": {"id": "abc"}})
        >>> env.kind
        't3'
    """

    kind: str
    data: Mapping[str, Any] = field(default_factory=dict)
    id: str | None = None
    name: str | None = None

    @classmethod
    def from_json(cls, obj: Any) -> Envelope:
        """
        Build an envelope from a decoded JSON value.

        Raises:
            ValueError: If `obj` is not an object with a string `kind` and an
                object (or missing) `data`.
        """
        if isinstance(obj, Envelope):
            return obj
        if not isinstance(obj, Mapping):
            raise ValueError(f"envelope must be a JSON object, got {type(obj).__name__}")

        kind = obj.get("kind")
        if not isinstance(kind, str):
            raise ValueError(f"envelope kind must be a string, got {kind!r}")

        data = obj.get("data")
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError(f"envelope data must be a JSON object, got {type(data).__name__}")

        return cls(kind=kind, data=data, id=obj.get("id"), name=obj.get("name"))


# =============================================================================
# Sum-type wire fields
# =============================================================================


class EditedState(enum.StrEnum):
    NEVER = "NEVER"
    LEGACY_TRUE = "LEGACY_TRUE"
    AT = "AT"


@dataclass(frozen=True)
class Edited:
    """
    The ``edited`` field of posts and comments.

    Reddit sends ``false`` for records never edited, ``true`` for records
    edited before it started recording timestamps, and the edit time as a
    number otherwise. ``null`` is treated as ``false``.

    Example:
        >>> Edited.parse(False).state
        <EditedState.NEVER: 'NEVER'>
        >>> Edited.parse(1700000000.0).timestamp
        1700000000.0
    """

    state: EditedState
    timestamp: float | None = None

    NEVER: ClassVar[Edited]
    LEGACY_TRUE: ClassVar[Edited]

    @classmethod
    def at(cls, timestamp: float) -> Edited:
        return cls(state=EditedState.AT, timestamp=float(timestamp))

    @classmethod
    def parse(cls, raw: Any) -> Edited:
        """
        Resolve a raw ``edited`` value.

        Raises:
            ValueError: If the value is not a boolean, null or a number.
        """
        # bool must be checked before int: True is an int in Python.
        if raw is None or raw is False:
            return cls.NEVER
        if raw is True:
            return cls.LEGACY_TRUE
        if isinstance(raw, int | float):
            return cls.at(raw)
        raise ValueError(f"unrecognized type for 'edited' field: {raw!r}")

    @property
    def is_edited(self) -> bool:
        return self.state != EditedState.NEVER


Edited.NEVER = Edited(state=EditedState.NEVER)
Edited.LEGACY_TRUE = Edited(state=EditedState.LEGACY_TRUE)


@dataclass(frozen=True)
class Replies:
    """
    The ``replies`` field of comments: either empty or a nested Listing.

    Reddit encodes "no replies" as the empty string, so that sentinel is
    matched exactly before any structured decoding is attempted.
    """

    listing: Envelope | None = None

    EMPTY: ClassVar[Replies]

    @classmethod
    def parse(cls, raw: Any) -> Replies:
        """
        Resolve a raw ``replies`` value.

        Raises:
            ValueError: If the value is neither the empty sentinel nor a
                Listing envelope.
        """
        if raw is None or raw == "":
            return cls.EMPTY

        envelope = Envelope.from_json(raw)
        if envelope.kind != ThingKind.LISTING:
            raise ValueError(f"expected Listing for replies, got {envelope.kind}")
        return cls(listing=envelope)

    @property
    def is_empty(self) -> bool:
        return self.listing is None


Replies.EMPTY = Replies()


# =============================================================================
# Typed records
# =============================================================================


@dataclass(frozen=True)
class Listing:
    """
    A page of sibling envelopes plus pagination cursors.

    Attributes:
        before: Fullname of the first item, for the previous page.
        after: Fullname of the last item, for the next page.
        modhash: Opaque token sent by Reddit.
        children: Undecoded child envelopes, in response order.
    """

    before: str | None = None
    after: str | None = None
    modhash: str | None = None
    children: list[Envelope] = field(default_factory=list)


@dataclass(frozen=True)
class Comment:
    """
    A node of a discussion tree (kind t1).

    Attributes:
        replies: Direct children only; each child carries its own replies.
        deferred_child_ids: Ids of comments Reddit elided anywhere under this
            node ("more" markers), flattened so a single follow-up request can
            fetch them.
    """

    id: str
    name: str
    author: str
    body: str
    parent_id: str
    link_id: str
    subreddit: str
    subreddit_id: str | None = None
    body_html: str | None = None
    score: int = 0
    ups: int = 0
    downs: int = 0
    created: float = 0.0
    created_utc: float = 0.0
    edited: Edited = Edited.NEVER
    gilded: int = 0
    score_hidden: bool = False
    stickied: bool = False
    distinguished: str | None = None
    permalink: str | None = None
    replies: list[Comment] = field(default_factory=list)
    deferred_child_ids: list[str] = field(default_factory=list)

    @property
    def is_top_level(self) -> bool:
        """True when the comment replies directly to the post."""
        return self.parent_id.startswith("t3_")


@dataclass(frozen=True)
class Post:
    """A link or self post (kind t3)."""

    id: str
    name: str
    author: str
    title: str
    subreddit: str
    url: str
    permalink: str
    subreddit_id: str | None = None
    selftext: str = ""
    domain: str | None = None
    score: int = 0
    ups: int = 0
    downs: int = 0
    upvote_ratio: float = 0.0
    num_comments: int = 0
    created: float = 0.0
    created_utc: float = 0.0
    edited: Edited = Edited.NEVER
    is_self: bool = False
    over_18: bool = False
    locked: bool = False
    stickied: bool = False
    distinguished: str | None = None
    link_flair_text: str | None = None


@dataclass(frozen=True)
class Account:
    """A user account (kind t2). `name` is the username."""

    id: str
    name: str
    comment_karma: int = 0
    link_karma: int = 0
    created: float = 0.0
    created_utc: float = 0.0
    is_gold: bool = False
    is_mod: bool = False
    has_verified_email: bool | None = None
    over_18: bool = False


@dataclass(frozen=True)
class Message:
    """A private message (kind t4)."""

    id: str
    name: str
    author: str
    subject: str
    body: str
    created: float = 0.0
    created_utc: float = 0.0
    parent_id: str | None = None
    context: str | None = None
    subreddit: str | None = None
    new: bool = False
    was_comment: bool = False


@dataclass(frozen=True)
class Subreddit:
    """A community (kind t5)."""

    id: str
    name: str
    display_name: str
    title: str = ""
    public_description: str = ""
    description: str = ""
    subscribers: int = 0
    accounts_active: int = 0
    over18: bool = False
    subreddit_type: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class MoreMarker:
    """Placeholder for comments Reddit elided (kind "more")."""

    id: str
    name: str
    children: list[str] = field(default_factory=list)
    count: int = 0
    depth: int = 0
    parent_id: str | None = None


Thing = Listing | Comment | Account | Post | Message | Subreddit | MoreMarker


@dataclass(frozen=True)
class CommentsPage:
    """
    Result of decoding a post+comments response.

    Partial success is explicit: `post` and `comments` are independent and
    `error` describes the half that could not be decoded, if any.

    Attributes:
        post: The post, when the response carried a decodable one.
        comments: Top-level comments, each with its reply tree.
        more_ids: Every elided comment id found in the page.
        after: Cursor of the comment listing.
        before: Cursor of the comment listing.
        error: PartialResultError when one half failed, else None.
    """

    post: Post | None = None
    comments: list[Comment] = field(default_factory=list)
    more_ids: list[str] = field(default_factory=list)
    after: str | None = None
    before: str | None = None
    error: Exception | None = None

    def is_complete(self) -> bool:
        return self.error is None
