"""
Request and response models of RedditClient.

Requests are immutable and carry a ULID `id` used to correlate log lines of
concurrent batch calls. Responses keep a reference to the request they
answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ulid import ULID

from grawpy.things._models import Comment, Post


def _new_request_id() -> str:
    return str(ULID())


@dataclass(frozen=True)
class Pagination:
    """
    Listing pagination options.

    Attributes:
        limit: Maximum items per page (0 lets Reddit pick its default; max 100).
        after: Fullname of the last item of the previous page.
        before: Fullname of the first item of the next page.
    """

    limit: int = 0
    after: str | None = None
    before: str | None = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.limit:
            params["limit"] = self.limit
        if self.after:
            params["after"] = self.after
        if self.before:
            params["before"] = self.before
        return params


@dataclass(frozen=True)
class PostsRequest:
    """
    Request for a subreddit (or front page) post listing.

    Attributes:
        subreddit: Subreddit name without the ``r/`` prefix; None for the front page.
        pagination: Page options.
    """

    subreddit: str | None = None
    pagination: Pagination = field(default_factory=Pagination)
    id: str = field(default_factory=_new_request_id)


@dataclass(frozen=True)
class CommentsRequest:
    """
    Request for a post and its comment tree.

    Example:
        >>> request = CommentsRequest(subreddit="python", post_id="abc123")
        >>> request.id  # ULID
        '01J9Z3...'
    """

    subreddit: str
    post_id: str
    pagination: Pagination = field(default_factory=Pagination)
    id: str = field(default_factory=_new_request_id)

    def __post_init__(self) -> None:
        assert self.id, "Request ID can not be empty."


@dataclass(frozen=True)
class MoreCommentsRequest:
    """
    Request for comments elided behind "more" markers.

    Attributes:
        link_id: The post, as ``t3_<id>`` or a bare id.
        comment_ids: Elided comment ids (at most 100).
        sort: Optional sort order ("confidence", "top", "new", ...).
        depth: Optional maximum depth of the returned subtrees.
        limit_children: Only return the listed comments, not their children.
    """

    link_id: str
    comment_ids: list[str] = field(default_factory=list)
    sort: str | None = None
    depth: int | None = None
    limit_children: bool = False
    id: str = field(default_factory=_new_request_id)


@dataclass(frozen=True)
class PostsResponse:
    """A page of posts with its pagination cursors."""

    posts: list[Post] = field(default_factory=list)
    after: str | None = None
    before: str | None = None


@dataclass(frozen=True)
class CommentsResponse:
    """
    Result of fetching a post and its comments.

    Partial success is explicit: `post` and `comments` are independent, and
    `error` holds whatever prevented a complete result. In batch calls
    `error` can also be the exception that failed the whole request.

    Attributes:
        request: The request this response answers.
        post: The post, when it could be decoded.
        comments: Top-level comments with their reply trees.
        more_ids: Elided comment ids, for MoreCommentsRequest.
        after: Cursor of the comment listing.
        before: Cursor of the comment listing.
        error: The failure, if any.

    Example:
        >>> response = client.get_comments(request)
        >>> if not response.is_complete():
        ...     print(f"Partial result: {response.error}")
    """

    request: CommentsRequest
    post: Post | None = None
    comments: list[Comment] = field(default_factory=list)
    more_ids: list[str] = field(default_factory=list)
    after: str | None = None
    before: str | None = None
    error: Exception | None = None

    def is_complete(self) -> bool:
        return self.error is None

    def is_failure(self) -> bool:
        """True when neither the post nor any comment was obtained."""
        return self.error is not None and self.post is None and not self.comments
