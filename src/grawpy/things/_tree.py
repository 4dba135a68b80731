"""
Comment tree reconstruction.

Reddit nests replies inside each comment as another Listing, to a depth the
server (or an attacker feeding a proxy) controls. TreeBuilder rebuilds those
trees with three protections:

- Depth guard: nesting beyond `max_depth` (50 by default) is abandoned with
  DepthExceededError instead of recursing further.
- Cycle guard: a comment id seen earlier in the same decode is returned as a
  leaf, so self-referencing payloads terminate.
- Per-child isolation: a reply that fails to decode is logged and skipped;
  its siblings and parent are kept.

Every top-level decode runs with its own ParseContext, drawn from a pool and
reset before use, so concurrent decodes never share depth or seen-id state.

Example:
    >>> from grawpy.things import TreeBuilder
    >>> builder = TreeBuilder()
    >>> page = builder.extract_post_and_comments(envelopes)
    >>> page.post.title, len(page.comments), page.more_ids
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, override

from grawpy._errors import DecodeError, DepthExceededError, PartialResultError
from grawpy.things._decoder import EnvelopeDecoder
from grawpy.things._models import Comment, CommentsPage, Envelope, Post, ThingKind

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50


# =============================================================================
# Parse Context
# =============================================================================


@dataclass
class ParseContext:
    """
    Scratch state of one top-level decode.

    Attributes:
        depth: Nesting level of the comment currently being decoded
            (0 for comments at the top of a listing).
        seen_ids: Ids of every comment decoded so far in this call.
    """

    depth: int = 0
    seen_ids: set[str] = field(default_factory=set)

    def reset(self) -> None:
        self.depth = 0
        self.seen_ids.clear()


class ParseContextPool:
    """
    Thread-safe pool of reusable ParseContext objects.

    Contexts are reset when handed out, so a context returned by a decode
    that failed halfway is still clean for the next caller.

    Args:
        max_size: Maximum number of idle contexts kept for reuse.
    """

    def __init__(self, max_size: int = 32):
        assert max_size > 0, "max_size must be greater than 0."
        self.max_size = max_size
        self._idle: list[ParseContext] = []
        self._lock = threading.Lock()

    def get(self) -> ParseContext:
        with self._lock:
            ctx = self._idle.pop() if self._idle else ParseContext()
        ctx.reset()
        return ctx

    def put(self, ctx: ParseContext) -> None:
        with self._lock:
            if len(self._idle) < self.max_size:
                self._idle.append(ctx)

    @contextmanager
    def borrow(self) -> Iterator[ParseContext]:
        ctx = self.get()
        try:
            yield ctx
        finally:
            self.put(ctx)


# =============================================================================
# Tree Builder
# =============================================================================


class TreeBuilder(EnvelopeDecoder):
    """
    EnvelopeDecoder that expands comment replies into full trees.

    `decode()` on a t1 envelope returns the comment with its whole reply tree;
    every other kind decodes exactly as in EnvelopeDecoder.

    Args:
        max_depth: Deepest nesting level accepted (root comments are level 0).
        pool: ParseContext pool; a private one is created when omitted.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH, pool: ParseContextPool | None = None):
        assert max_depth is not None, "max_depth cannot be None."
        assert max_depth > 0, "max_depth must be greater than 0."

        self.max_depth = max_depth
        self._pool = pool or ParseContextPool()

    @classmethod
    def from_config(cls, config: Any = None) -> TreeBuilder:
        """Create a builder using `GRAW.config.parser` when no config is given."""
        if config is None:
            from grawpy._config import GRAW

            config = GRAW.config.parser
        return cls(max_depth=config.max_depth)

    @override
    def decode_comment(self, envelope: Envelope | Mapping[str, Any]) -> Comment:
        with self._pool.borrow() as ctx:
            return self.build_tree(envelope, ctx)

    def build_tree(self, envelope: Envelope | Mapping[str, Any], ctx: ParseContext) -> Comment:
        """
        Decode a comment and, recursively, its replies.

        Args:
            envelope: A t1 envelope.
            ctx: Fresh or reset context; `ctx.depth` is the depth of this
                comment.

        Returns:
            The comment with `replies` holding its direct children and
            `deferred_child_ids` every elided id of its subtree.

        Raises:
            DepthExceededError: If `ctx.depth` is beyond `max_depth`.
            ValidationFailedError: If the comment itself is invalid.
        """
        if ctx.depth > self.max_depth:
            logger.warning(f"Comment tree depth {ctx.depth} exceeds maximum of {self.max_depth}; subtree dropped.")
            raise DepthExceededError(ctx.depth, self.max_depth)

        comment, raw_replies = self.read_comment(envelope)

        if comment.id in ctx.seen_ids:
            logger.warning(f"Detected comment loop on id '{comment.id}'; returning it as a leaf.")
            return comment
        ctx.seen_ids.add(comment.id)

        try:
            replies = self.parse_replies(raw_replies)
        except DecodeError as e:
            logger.warning(f"Failed to parse replies of comment '{comment.id}': {e}")
            return comment
        if replies.is_empty:
            return comment

        try:
            listing = self.decode_listing(replies.listing)  # type: ignore[arg-type]
        except DecodeError as e:
            logger.warning(f"Failed to parse replies listing of comment '{comment.id}': {e}")
            return comment

        children: list[Comment] = []
        deferred: list[str] = []
        ctx.depth += 1
        try:
            for child in listing.children:
                self._collect_child(child, ctx, children, deferred)
        finally:
            ctx.depth -= 1

        return _with_replies(comment, children, deferred)

    def _collect_child(
        self,
        child: Envelope,
        ctx: ParseContext,
        children: list[Comment],
        deferred: list[str],
    ) -> None:
        if child.kind == ThingKind.COMMENT:
            try:
                node = self.build_tree(child, ctx)
            except DecodeError as e:
                logger.warning(f"Skipping reply at depth {ctx.depth}: {e}")
                return
            children.append(node)
            deferred.extend(node.deferred_child_ids)
        elif child.kind == ThingKind.MORE:
            try:
                more = self.decode_more(child)
            except DecodeError as e:
                logger.warning(f"Skipping invalid 'more' marker at depth {ctx.depth}: {e}")
                return
            deferred.extend(more.children)
        else:
            logger.debug(f"Ignoring reply of kind {child.kind!r} at depth {ctx.depth}")

    # -------------------------------------------------------------------------
    # Listing extraction
    # -------------------------------------------------------------------------

    def extract_posts(self, envelope: Envelope | Mapping[str, Any]) -> list[Post]:
        """
        Decode every post of a Listing, skipping invalid ones.

        Raises:
            DecodeError: If the envelope is not a valid Listing.
        """
        listing = self.decode_listing(envelope)

        posts: list[Post] = []
        for child in listing.children:
            if child.kind != ThingKind.POST:
                continue
            try:
                posts.append(self.decode_post(child))
            except DecodeError as e:
                logger.warning(f"Skipping invalid post: {e}")
        return posts

    def extract_comments(self, envelope: Envelope | Mapping[str, Any]) -> tuple[list[Comment], list[str]]:
        """
        Decode the comment trees of a Listing (or a single t1 envelope).

        Returns:
            The top-level comments and every elided comment id found, in
            document order.

        Raises:
            DecodeError: If the envelope is neither a Listing nor a t1, or the
                single t1 is invalid.
        """
        env = self._to_envelope(envelope)

        with self._pool.borrow() as ctx:
            if env.kind == ThingKind.COMMENT:
                comment = self.build_tree(env, ctx)
                return [comment], list(comment.deferred_child_ids)

            if env.kind != ThingKind.LISTING:
                raise DecodeError(f"expected Listing or t1, got {env.kind}")

            listing = self.decode_listing(env)
            comments: list[Comment] = []
            more_ids: list[str] = []
            for child in listing.children:
                self._collect_child(child, ctx, comments, more_ids)
            return comments, more_ids

    def extract_post_and_comments(self, envelopes: Sequence[Envelope | Mapping[str, Any]]) -> CommentsPage:
        """
        Decode a post+comments response.

        Two listings (post, comments) are tried first; a single envelope is
        read as comments, and a lone t3 envelope as the post. Whatever half
        can be decoded is returned, with `error` naming the half that failed.

        Raises:
            DecodeError: If the response is empty or neither half can be
                decoded.
        """
        if not envelopes:
            raise DecodeError("empty response")

        if len(envelopes) >= 2:
            return self._extract_two_listings(envelopes[0], envelopes[1])
        return self._extract_single_listing(envelopes[0])

    def _extract_two_listings(self, first: Any, second: Any) -> CommentsPage:
        post: Post | None = None
        post_error: Exception | None = None
        try:
            posts = self.extract_posts(first)
            post = posts[0] if posts else None
            if post is None:
                post_error = DecodeError("no valid post in first listing")
        except DecodeError as e:
            post_error = e

        after, before = self._cursors(second)
        try:
            comments, more_ids = self.extract_comments(second)
        except DecodeError as e:
            if post is None:
                raise DecodeError("failed to extract both post and comments", cause=e) from e
            logger.warning(f"Comments could not be decoded; returning the post only: {e}")
            return CommentsPage(post=post, after=after, before=before, error=PartialResultError("comments", cause=e))

        error = None
        if post is None:
            logger.warning(f"Post could not be decoded; returning comments only: {post_error}")
            error = PartialResultError("post", cause=post_error)
        return CommentsPage(
            post=post, comments=comments, more_ids=more_ids, after=after, before=before, error=error
        )

    def _extract_single_listing(self, only: Any) -> CommentsPage:
        try:
            comments, more_ids = self.extract_comments(only)
        except DecodeError as e:
            post = self._lone_post(only)
            if post is None:
                raise DecodeError(f"failed to extract data from single listing: {e}", cause=e) from e
            return CommentsPage(post=post, error=PartialResultError("comments", cause=e))

        after, before = self._cursors(only)
        return CommentsPage(comments=comments, more_ids=more_ids, after=after, before=before)

    def _lone_post(self, envelope: Any) -> Post | None:
        """Decode `envelope` as a bare t3, or return None when it is anything else."""
        try:
            env = self._to_envelope(envelope)
            if env.kind != ThingKind.POST:
                return None
            return self.decode_post(env)
        except DecodeError as e:
            logger.debug(f"Single envelope is not a post either: {e}")
            return None

    def _cursors(self, envelope: Any) -> tuple[str | None, str | None]:
        try:
            listing = self.decode_listing(envelope)
        except DecodeError:
            return None, None
        return listing.after, listing.before


def _with_replies(comment: Comment, replies: list[Comment], deferred: list[str]) -> Comment:
    return replace(comment, replies=replies, deferred_child_ids=deferred)
