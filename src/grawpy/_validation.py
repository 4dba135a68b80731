"""
Field validators for grawpy.

Two families live here:

- Thing validators (validate_post, validate_comment, ...) check records decoded
  from Reddit responses. They return the list of problems found; an empty list
  means the record is valid. The decoder turns a non-empty list into a
  ValidationFailedError.
- Request validators (validate_subreddit_name, validate_pagination, ...) check
  caller input before a request is sent and raise RequestValidationError.

Example:
    >>> from grawpy._validation import is_valid_fullname, normalize_link_id
    >>> is_valid_fullname("t3_abc123")
    True
    >>> normalize_link_id("abc123")
    't3_abc123'
"""

from __future__ import annotations

import re
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from grawpy._errors import RequestValidationError

if TYPE_CHECKING:
    from grawpy._models import Pagination
    from grawpy.things._models import Account, Comment, Message, MoreMarker, Post, Subreddit

BASE36_PATTERN = re.compile(r"^[0-9a-z]+$")
SUBREDDIT_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,21}$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,20}$")
FULLNAME_PATTERN = re.compile(r"^t[1-6]_[0-9a-z]+$")
PERMALINK_PATTERN = re.compile(r"^/r/[a-zA-Z0-9_]{3,21}/comments/[0-9a-z]+/[^/]+/?([0-9a-z]+/?)?$")

DELETED_AUTHOR = "[deleted]"
MAX_POST_TITLE_LENGTH = 300
MAX_COMMENT_BODY_LENGTH = 10000

# Reddit launched in June 2005; nothing can be older.
REDDIT_EPOCH = datetime(2005, 6, 1, tzinfo=UTC).timestamp()
FUTURE_GRACE_SECONDS = 3600.0

MAX_PAGINATION_LIMIT = 100
MAX_COMMENT_IDS = 100
MAX_COMMENT_ID_LENGTH = 100
MAX_USER_AGENT_LENGTH = 256


# =============================================================================
# Predicates
# =============================================================================


def is_valid_base36(value: str | None) -> bool:
    return bool(value) and BASE36_PATTERN.fullmatch(value) is not None  # type: ignore[arg-type]


def is_valid_fullname(value: str | None) -> bool:
    return bool(value) and FULLNAME_PATTERN.fullmatch(value) is not None  # type: ignore[arg-type]


def is_valid_subreddit(value: str | None) -> bool:
    return bool(value) and SUBREDDIT_PATTERN.fullmatch(value) is not None  # type: ignore[arg-type]


def is_valid_username(value: str | None) -> bool:
    return bool(value) and USERNAME_PATTERN.fullmatch(value) is not None  # type: ignore[arg-type]


def is_valid_permalink(value: str | None) -> bool:
    return bool(value) and PERMALINK_PATTERN.fullmatch(value) is not None  # type: ignore[arg-type]


# =============================================================================
# Thing Validators
# =============================================================================


def _check_identity(problems: list[str], id_: str, name: str | None, name_is_username: bool = False) -> None:
    if not id_:
        problems.append("ID is required")
    elif not is_valid_base36(id_):
        problems.append(f"ID has invalid format: {id_}")

    if not name:
        return
    if name_is_username:
        if name != DELETED_AUTHOR and not is_valid_username(name):
            problems.append(f"Name has invalid username format: {name}")
    elif not is_valid_fullname(name):
        problems.append(f"Name has invalid fullname format: {name}")


def _check_votable(problems: list[str], ups: int, downs: int, score: int) -> None:
    if ups != score:
        problems.append(f"Ups ({ups}) does not match Score ({score})")
    if downs != 0:
        problems.append(f"Downs should be 0, got {downs}")


def _check_created(problems: list[str], created: float, created_utc: float, now: float | None = None) -> None:
    if created != created_utc:
        problems.append(f"Created ({created}) does not match CreatedUTC ({created_utc})")
    if created_utc <= 0:
        problems.append(f"CreatedUTC must be positive, got {created_utc}")

    now = time.time() if now is None else now
    if created_utc > now + FUTURE_GRACE_SECONDS:
        problems.append(f"CreatedUTC is in the future: {created_utc}")
    if created_utc < REDDIT_EPOCH:
        problems.append(f"CreatedUTC is before Reddit existed: {created_utc}")


def _check_author(problems: list[str], author: str) -> None:
    if not author:
        problems.append("Author is required")
    elif author != DELETED_AUTHOR and not is_valid_username(author):
        problems.append(f"Author has invalid username format: {author}")


def _check_subreddit(problems: list[str], subreddit: str, subreddit_id: str | None) -> None:
    if not subreddit:
        problems.append("Subreddit is required")
    elif not is_valid_subreddit(subreddit):
        problems.append(f"Subreddit has invalid format: {subreddit}")

    if subreddit_id and not is_valid_fullname(subreddit_id):
        problems.append(f"SubredditID has invalid fullname format: {subreddit_id}")


def validate_post(post: Post) -> list[str]:
    """
    Validate a decoded post.

    Returns:
        The list of problems found. Empty when the post is valid.
    """
    problems: list[str] = []
    _check_identity(problems, post.id, post.name)
    _check_votable(problems, post.ups, post.downs, post.score)
    _check_created(problems, post.created, post.created_utc)

    if not post.title:
        problems.append("Title is required")
    elif len(post.title) > MAX_POST_TITLE_LENGTH:
        problems.append(f"Title exceeds {MAX_POST_TITLE_LENGTH} character limit ({len(post.title)} chars)")

    _check_subreddit(problems, post.subreddit, post.subreddit_id)
    _check_author(problems, post.author)

    if not post.permalink:
        problems.append("Permalink is required")
    elif not is_valid_permalink(post.permalink):
        problems.append(f"Permalink has invalid format: {post.permalink}")

    if not post.url:
        problems.append("URL is required")
    if not 0.0 <= post.upvote_ratio <= 1.0:
        problems.append(f"UpvoteRatio must be between 0 and 1, got {post.upvote_ratio}")
    if post.num_comments < 0:
        problems.append(f"NumComments cannot be negative, got {post.num_comments}")
    return problems


def validate_comment(comment: Comment) -> list[str]:
    """
    Validate a decoded comment (its own fields only, never its replies).

    Returns:
        The list of problems found. Empty when the comment is valid.
    """
    problems: list[str] = []
    _check_identity(problems, comment.id, comment.name)
    _check_votable(problems, comment.ups, comment.downs, comment.score)
    _check_created(problems, comment.created, comment.created_utc)

    if not comment.body:
        problems.append("Body is required")
    elif len(comment.body) > MAX_COMMENT_BODY_LENGTH:
        problems.append(f"Body exceeds {MAX_COMMENT_BODY_LENGTH} character limit ({len(comment.body)} chars)")

    _check_subreddit(problems, comment.subreddit, comment.subreddit_id)
    _check_author(problems, comment.author)

    for label, value in (("ParentID", comment.parent_id), ("LinkID", comment.link_id)):
        if not value:
            problems.append(f"{label} is required")
        elif not is_valid_fullname(value):
            problems.append(f"{label} has invalid fullname format: {value}")
    return problems


def validate_subreddit(subreddit: Subreddit) -> list[str]:
    problems: list[str] = []
    _check_identity(problems, subreddit.id, subreddit.name)

    if not subreddit.display_name:
        problems.append("DisplayName is required")
    elif not is_valid_subreddit(subreddit.display_name):
        problems.append(f"DisplayName has invalid format: {subreddit.display_name}")

    if subreddit.subscribers < 0:
        problems.append(f"Subscribers cannot be negative, got {subreddit.subscribers}")
    if subreddit.accounts_active < 0:
        problems.append(f"AccountsActive cannot be negative, got {subreddit.accounts_active}")
    return problems


def validate_message(message: Message) -> list[str]:
    problems: list[str] = []
    _check_identity(problems, message.id, message.name)
    _check_created(problems, message.created, message.created_utc)

    if not message.body:
        problems.append("Body is required")
    _check_author(problems, message.author)
    if not message.subject:
        problems.append("Subject is required")
    if message.parent_id and not is_valid_fullname(message.parent_id):
        problems.append(f"ParentID has invalid fullname format: {message.parent_id}")
    return problems


def validate_account(account: Account) -> list[str]:
    # An account's `name` is the username, not a fullname.
    problems: list[str] = []
    _check_identity(problems, account.id, account.name, name_is_username=True)
    _check_created(problems, account.created, account.created_utc)

    if account.comment_karma < 0:
        problems.append(f"CommentKarma cannot be negative, got {account.comment_karma}")
    if account.link_karma < 0:
        problems.append(f"LinkKarma cannot be negative, got {account.link_karma}")
    return problems


def validate_more(more: MoreMarker) -> list[str]:
    problems: list[str] = []
    _check_identity(problems, more.id, more.name)

    if more.count < 0:
        problems.append(f"Count cannot be negative, got {more.count}")
    for idx, child_id in enumerate(more.children):
        if not is_valid_base36(child_id):
            problems.append(f"Child ID at index {idx} has invalid format: {child_id}")
    return problems


# =============================================================================
# Request Validators
# =============================================================================


def validate_subreddit_name(name: str | None) -> str:
    """
    Validate a subreddit name supplied by the caller.

    Args:
        name: Subreddit name without the "r/" prefix.

    Returns:
        The name, unchanged.

    Raises:
        RequestValidationError: If the name is empty or malformed.
    """
    if not name:
        raise RequestValidationError("subreddit", "subreddit name cannot be empty")

    if not is_valid_subreddit(name):
        if len(name) < 3:
            raise RequestValidationError("subreddit", "subreddit name must be at least 3 characters")
        if len(name) > 21:
            raise RequestValidationError("subreddit", "subreddit name cannot exceed 21 characters")
        raise RequestValidationError(
            "subreddit",
            "subreddit name contains invalid characters (only letters, numbers, and underscores allowed)",
        )

    if name.startswith("_") or name.endswith("_"):
        raise RequestValidationError("subreddit", "subreddit name cannot start or end with underscore")
    if "__" in name:
        raise RequestValidationError(
            "subreddit", f"subreddit name cannot contain consecutive underscores at position {name.index('__') + 1}"
        )
    return name


def validate_pagination(pagination: Pagination | None) -> None:
    """
    Validate pagination parameters.

    Raises:
        RequestValidationError: If both cursors are set, a cursor is not a
            fullname, or the limit is outside [0, 100].
    """
    if pagination is None:
        return

    if pagination.after and pagination.before:
        raise RequestValidationError("pagination", "cannot set both after and before pagination parameters")
    if pagination.after and not is_valid_fullname(pagination.after):
        raise RequestValidationError("pagination.after", f"invalid pagination token: {pagination.after}")
    if pagination.before and not is_valid_fullname(pagination.before):
        raise RequestValidationError("pagination.before", f"invalid pagination token: {pagination.before}")
    if pagination.limit < 0:
        raise RequestValidationError("pagination.limit", "limit cannot be negative")
    if pagination.limit > MAX_PAGINATION_LIMIT:
        raise RequestValidationError("pagination.limit", f"limit cannot exceed {MAX_PAGINATION_LIMIT}")


def validate_comment_ids(ids: list[str]) -> None:
    if len(ids) > MAX_COMMENT_IDS:
        raise RequestValidationError(
            "comment_ids", f"cannot request more than {MAX_COMMENT_IDS} comment IDs at once (got {len(ids)})"
        )

    for idx, comment_id in enumerate(ids):
        if not comment_id:
            problem = "comment ID cannot be empty"
        elif len(comment_id) > MAX_COMMENT_ID_LENGTH:
            problem = f"comment ID too long (max {MAX_COMMENT_ID_LENGTH} characters)"
        elif not is_valid_base36(comment_id):
            problem = "comment ID has invalid format (must be base36: 0-9, a-z)"
        else:
            continue
        raise RequestValidationError(f"comment_ids[{idx}]", f"invalid comment ID at index {idx}: {problem}")


def validate_user_agent(user_agent: str | None) -> str:
    if not user_agent:
        raise RequestValidationError("user_agent", "user agent cannot be empty")
    if "\r" in user_agent or "\n" in user_agent:
        raise RequestValidationError("user_agent", "user agent cannot contain newline characters")
    if len(user_agent) > MAX_USER_AGENT_LENGTH:
        raise RequestValidationError("user_agent", f"user agent too long (max {MAX_USER_AGENT_LENGTH} characters)")
    return user_agent


def normalize_link_id(link_id: str | None) -> str:
    """
    Return the post fullname (t3_...) for a link id.

    Bare base36 ids get the "t3_" prefix; fullnames of other kinds are
    rejected.

    Example:
        >>> normalize_link_id("abc123")
        't3_abc123'
        >>> normalize_link_id("t3_abc123")
        't3_abc123'
    """
    if not link_id:
        raise RequestValidationError("link_id", "link ID is required")

    if link_id.startswith("t3_"):
        if len(link_id) <= 3:
            raise RequestValidationError("link_id", "link ID has t3_ prefix but no content after")
        if not is_valid_fullname(link_id):
            raise RequestValidationError("link_id", f"link ID has invalid format: {link_id}")
        return link_id

    if re.match(r"^t[1-6]_", link_id):
        raise RequestValidationError(
            "link_id", f"link ID has wrong type prefix, expected t3_ for posts but got: {link_id[:3]}"
        )
    if not is_valid_base36(link_id):
        raise RequestValidationError("link_id", f"link ID has invalid format (must be base36): {link_id}")
    return f"t3_{link_id}"
