"""
Envelope decoding for Reddit things.

EnvelopeDecoder turns one envelope into one typed, validated record,
dispatching strictly on the envelope kind. Comments decoded here are flat:
their replies are not expanded. TreeBuilder (see grawpy.things._tree) extends
this decoder to rebuild whole discussion trees.

Example:
    >>> from grawpy.things import EnvelopeDecoder
    >>> decoder = EnvelopeDecoder()
    >>> post = decoder.decode({"kind": "t3", "data": {...}})
    >>> post.title
    'Hello'
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from grawpy import _validation
from grawpy._errors import DecodeError, UnknownKindError, ValidationFailedError
from grawpy.things._models import (
    Account,
    Comment,
    Edited,
    Envelope,
    Listing,
    Message,
    MoreMarker,
    Post,
    Replies,
    Subreddit,
    Thing,
    ThingKind,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Field readers
# =============================================================================


def _read_str(data: Mapping[str, Any], key: str, default: str | None = "") -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"field '{key}' must be a string, got {value!r}")
    return value


def _read_int(data: Mapping[str, Any], key: str, default: int = 0) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"field '{key}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"field '{key}' must be an integer, got {value!r}")


def _read_float(data: Mapping[str, Any], key: str, default: float = 0.0) -> float:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"field '{key}' must be a number, got {value!r}")
    return float(value)


def _read_bool(data: Mapping[str, Any], key: str, default: bool | None = False) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"field '{key}' must be a boolean, got {value!r}")
    return value


def _read_edited(data: Mapping[str, Any]) -> Edited:
    return Edited.parse(data.get("edited"))


# =============================================================================
# Decoder
# =============================================================================


class EnvelopeDecoder:
    """
    Decodes envelopes into typed records.

    Dispatch is closed: Listing, t1, t2, t3, t4, t5 and more are supported and
    any other kind raises UnknownKindError. Each typed record is validated
    before being returned; a single rule violation rejects the whole record
    with ValidationFailedError.

    This class is stateless and safe to share between threads.
    """

    def decode(self, envelope: Envelope | Mapping[str, Any]) -> Thing:
        """
        Decode one envelope into its typed record.

        Args:
            envelope: An Envelope or the raw JSON object of one.

        Returns:
            The typed record matching the envelope kind.

        Raises:
            UnknownKindError: If the kind is not supported.
            ValidationFailedError: If the payload is malformed or invalid.
        """
        env = self._to_envelope(envelope)
        kind = ThingKind.parse(env.kind)
        if kind is None:
            logger.warning(f"Unknown thing kind: {env.kind!r}")
            raise UnknownKindError(env.kind)

        decoders: dict[ThingKind, Callable[[Envelope], Thing]] = {
            ThingKind.LISTING: self.decode_listing,
            ThingKind.COMMENT: self.decode_comment,
            ThingKind.ACCOUNT: self.decode_account,
            ThingKind.POST: self.decode_post,
            ThingKind.MESSAGE: self.decode_message,
            ThingKind.SUBREDDIT: self.decode_subreddit,
            ThingKind.MORE: self.decode_more,
        }
        return decoders[kind](env)

    # -------------------------------------------------------------------------
    # Per-kind decoders
    # -------------------------------------------------------------------------

    def decode_listing(self, envelope: Envelope | Mapping[str, Any]) -> Listing:
        """
        Decode a Listing envelope. Children are kept as undecoded envelopes.

        Raises:
            ValidationFailedError: If a cursor is not a fullname or a child is
                not an envelope.
        """
        env = self._expect(envelope, ThingKind.LISTING)
        data = env.data

        try:
            before = _read_str(data, "before", default=None)
            after = _read_str(data, "after", default=None)
            modhash = _read_str(data, "modhash", default=None)
            raw_children = data.get("children") or []
            if not isinstance(raw_children, list):
                raise ValueError(f"field 'children' must be a list, got {type(raw_children).__name__}")
            children = [Envelope.from_json(child) for child in raw_children]
        except ValueError as e:
            raise ValidationFailedError(ThingKind.LISTING, [str(e)], cause=e) from e

        problems = []
        if after and not _validation.is_valid_fullname(after):
            problems.append(f"invalid after cursor: {after}")
        if before and not _validation.is_valid_fullname(before):
            problems.append(f"invalid before cursor: {before}")
        if problems:
            logger.warning(f"Invalid listing cursors from Reddit API: {'; '.join(problems)}")
            raise ValidationFailedError(ThingKind.LISTING, problems)

        return Listing(before=before or None, after=after or None, modhash=modhash, children=children)

    def decode_comment(self, envelope: Envelope | Mapping[str, Any]) -> Comment:
        """Decode a single comment without expanding its replies."""
        comment, _ = self.read_comment(envelope)
        return comment

    def read_comment(self, envelope: Envelope | Mapping[str, Any]) -> tuple[Comment, Any]:
        """
        Decode and validate a comment's own fields.

        Returns:
            The flat comment (no replies) and the raw ``replies`` value, left
            for the caller to expand.
        """
        env = self._expect(envelope, ThingKind.COMMENT)
        comment = self._build(env, self._build_comment, _validation.validate_comment)
        return comment, env.data.get("replies")

    def decode_post(self, envelope: Envelope | Mapping[str, Any]) -> Post:
        env = self._expect(envelope, ThingKind.POST)
        return self._build(env, self._build_post, _validation.validate_post)

    def decode_account(self, envelope: Envelope | Mapping[str, Any]) -> Account:
        env = self._expect(envelope, ThingKind.ACCOUNT)
        return self._build(env, self._build_account, _validation.validate_account)

    def decode_message(self, envelope: Envelope | Mapping[str, Any]) -> Message:
        env = self._expect(envelope, ThingKind.MESSAGE)
        return self._build(env, self._build_message, _validation.validate_message)

    def decode_subreddit(self, envelope: Envelope | Mapping[str, Any]) -> Subreddit:
        env = self._expect(envelope, ThingKind.SUBREDDIT)
        return self._build(env, self._build_subreddit, _validation.validate_subreddit)

    def decode_more(self, envelope: Envelope | Mapping[str, Any]) -> MoreMarker:
        env = self._expect(envelope, ThingKind.MORE)
        return self._build(env, self._build_more, _validation.validate_more)

    @staticmethod
    def parse_replies(raw: Any) -> Replies:
        """
        Resolve the ``replies`` field of a comment.

        Raises:
            ValidationFailedError: If the value is neither "" nor a Listing.
        """
        try:
            return Replies.parse(raw)
        except ValueError as e:
            raise ValidationFailedError(ThingKind.COMMENT, [str(e)], cause=e) from e

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_envelope(envelope: Envelope | Mapping[str, Any]) -> Envelope:
        try:
            return Envelope.from_json(envelope)
        except ValueError as e:
            raise DecodeError(f"malformed envelope: {e}", cause=e) from e

    def _expect(self, envelope: Envelope | Mapping[str, Any], kind: ThingKind) -> Envelope:
        env = self._to_envelope(envelope)
        if env.kind != kind:
            raise DecodeError(f"expected {kind}, got {env.kind}")
        return env

    @staticmethod
    def _build(
        env: Envelope,
        build: Callable[[Mapping[str, Any]], Any],
        validate: Callable[[Any], list[str]],
    ) -> Any:
        try:
            record = build(env.data)
        except ValueError as e:
            logger.warning(f"Failed to parse {env.kind} data: {e}")
            raise ValidationFailedError(env.kind, [str(e)], cause=e) from e

        problems = validate(record)
        if problems:
            logger.warning(f"Invalid {env.kind} data from Reddit API: {'; '.join(problems)}")
            raise ValidationFailedError(env.kind, problems)
        return record

    @staticmethod
    def _build_comment(data: Mapping[str, Any]) -> Comment:
        return Comment(
            id=_read_str(data, "id"),
            name=_read_str(data, "name"),
            author=_read_str(data, "author"),
            body=_read_str(data, "body"),
            parent_id=_read_str(data, "parent_id"),
            link_id=_read_str(data, "link_id"),
            subreddit=_read_str(data, "subreddit"),
            subreddit_id=_read_str(data, "subreddit_id", default=None),
            body_html=_read_str(data, "body_html", default=None),
            score=_read_int(data, "score"),
            ups=_read_int(data, "ups"),
            downs=_read_int(data, "downs"),
            created=_read_float(data, "created"),
            created_utc=_read_float(data, "created_utc"),
            edited=_read_edited(data),
            gilded=_read_int(data, "gilded"),
            score_hidden=_read_bool(data, "score_hidden"),
            stickied=_read_bool(data, "stickied"),
            distinguished=_read_str(data, "distinguished", default=None),
            permalink=_read_str(data, "permalink", default=None),
        )

    @staticmethod
    def _build_post(data: Mapping[str, Any]) -> Post:
        return Post(
            id=_read_str(data, "id"),
            name=_read_str(data, "name"),
            author=_read_str(data, "author"),
            title=_read_str(data, "title"),
            subreddit=_read_str(data, "subreddit"),
            url=_read_str(data, "url"),
            permalink=_read_str(data, "permalink"),
            subreddit_id=_read_str(data, "subreddit_id", default=None),
            selftext=_read_str(data, "selftext"),
            domain=_read_str(data, "domain", default=None),
            score=_read_int(data, "score"),
            ups=_read_int(data, "ups"),
            downs=_read_int(data, "downs"),
            upvote_ratio=_read_float(data, "upvote_ratio"),
            num_comments=_read_int(data, "num_comments"),
            created=_read_float(data, "created"),
            created_utc=_read_float(data, "created_utc"),
            edited=_read_edited(data),
            is_self=_read_bool(data, "is_self"),
            over_18=_read_bool(data, "over_18"),
            locked=_read_bool(data, "locked"),
            stickied=_read_bool(data, "stickied"),
            distinguished=_read_str(data, "distinguished", default=None),
            link_flair_text=_read_str(data, "link_flair_text", default=None),
        )

    @staticmethod
    def _build_account(data: Mapping[str, Any]) -> Account:
        return Account(
            id=_read_str(data, "id"),
            name=_read_str(data, "name"),
            comment_karma=_read_int(data, "comment_karma"),
            link_karma=_read_int(data, "link_karma"),
            created=_read_float(data, "created"),
            created_utc=_read_float(data, "created_utc"),
            is_gold=_read_bool(data, "is_gold"),
            is_mod=_read_bool(data, "is_mod"),
            has_verified_email=_read_bool(data, "has_verified_email", default=None),
            over_18=_read_bool(data, "over_18"),
        )

    @staticmethod
    def _build_message(data: Mapping[str, Any]) -> Message:
        return Message(
            id=_read_str(data, "id"),
            name=_read_str(data, "name"),
            author=_read_str(data, "author"),
            subject=_read_str(data, "subject"),
            body=_read_str(data, "body"),
            created=_read_float(data, "created"),
            created_utc=_read_float(data, "created_utc"),
            parent_id=_read_str(data, "parent_id", default=None),
            context=_read_str(data, "context", default=None),
            subreddit=_read_str(data, "subreddit", default=None),
            new=_read_bool(data, "new"),
            was_comment=_read_bool(data, "was_comment"),
        )

    @staticmethod
    def _build_subreddit(data: Mapping[str, Any]) -> Subreddit:
        return Subreddit(
            id=_read_str(data, "id"),
            name=_read_str(data, "name"),
            display_name=_read_str(data, "display_name"),
            title=_read_str(data, "title"),
            public_description=_read_str(data, "public_description"),
            description=_read_str(data, "description"),
            subscribers=_read_int(data, "subscribers"),
            accounts_active=_read_int(data, "accounts_active"),
            over18=_read_bool(data, "over18"),
            subreddit_type=_read_str(data, "subreddit_type", default=None),
            url=_read_str(data, "url", default=None),
        )

    @staticmethod
    def _build_more(data: Mapping[str, Any]) -> MoreMarker:
        children = data.get("children") or []
        if not isinstance(children, list) or not all(isinstance(c, str) for c in children):
            raise ValueError(f"field 'children' must be a list of strings, got {children!r}")
        return MoreMarker(
            id=_read_str(data, "id"),
            name=_read_str(data, "name"),
            children=list(children),
            count=_read_int(data, "count"),
            depth=_read_int(data, "depth"),
            parent_id=_read_str(data, "parent_id", default=None),
        )
