"""
Error taxonomy for the grawpy client.

Every exception raised by the library derives from GrawError, so callers can
catch a single base class when they do not care about the specific failure.

Hierarchy:
    GrawError
    ├── DecodeError                  malformed or invalid payload
    │   ├── UnknownKindError         envelope kind outside the closed set
    │   ├── ValidationFailedError    typed record failed domain validation
    │   ├── DepthExceededError       comment tree nested beyond max_depth
    │   └── PartialResultError       one half of a post+comments page failed
    ├── TransportError               network failure or timeout
    ├── APIError                     non-2xx status or Reddit error object
    ├── RequestValidationError       invalid caller input (also a ValueError)
    ├── AuthError                    see grawpy._auth
    └── RateLimitCancelledError      see grawpy._rate_limit

Example:
    >>> from grawpy import RedditClient, DecodeError, TransportError
    >>> try:
    ...     client.get_subreddit("python")
    ... except DecodeError as e:
    ...     print(f"Bad payload: {e}")
    ... except TransportError as e:
    ...     print(f"Network problem: {e}")
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class GrawError(Exception):
    """
    Base class for all grawpy errors.

    Attributes:
        message: Human readable description of the failure.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


# =============================================================================
# Decoding
# =============================================================================


class DecodeError(GrawError):
    """Raised when a response payload cannot be turned into typed objects."""

    pass


class UnknownKindError(DecodeError):
    """
    Raised when an envelope carries a kind outside the supported set.

    Attributes:
        kind: The offending discriminator value.
    """

    def __init__(self, kind: Any):
        self.kind = kind
        super().__init__(f"Unknown kind: {kind!r}")


class ValidationFailedError(DecodeError):
    """
    Raised when a decoded record violates a domain rule.

    The record is rejected wholesale; partially valid records are never
    returned.

    Attributes:
        kind: Kind of the record being validated (e.g. "t3").
        problems: Every rule violation found, in check order.

    Example:
        >>> err = ValidationFailedError("t3", ["Title is required", "URL is required"])
        >>> str(err)
        'invalid t3 data: Title is required; URL is required'
    """

    def __init__(self, kind: str, problems: Sequence[str], cause: Exception | None = None):
        self.kind = kind
        self.problems = list(problems)
        super().__init__(f"invalid {kind} data: {'; '.join(self.problems)}", cause=cause)


class DepthExceededError(DecodeError):
    """
    Raised when a comment tree is nested deeper than the configured maximum.

    Attributes:
        depth: Depth at which decoding was abandoned.
        max_depth: The configured limit.
    """

    def __init__(self, depth: int, max_depth: int):
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(f"comment tree depth {depth} exceeds maximum of {max_depth}")


class PartialResultError(DecodeError):
    """
    Describes which half of a post+comments page could not be decoded.

    Not raised on its own when the other half succeeded: it is attached to
    the returned result so the caller can inspect what is missing.

    Attributes:
        part: Either "post" or "comments".
    """

    def __init__(self, part: str, cause: Exception | None = None):
        self.part = part
        detail = f": {cause}" if cause else ""
        super().__init__(f"failed to extract {part}{detail}", cause=cause)


# =============================================================================
# Transport and API
# =============================================================================


class TransportError(GrawError):
    """
    Raised when the HTTP round trip itself fails (connection error, timeout).

    Attributes:
        url: The URL being requested, if known.
    """

    def __init__(self, message: str, url: str | None = None, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.url = url


class APIError(GrawError):
    """
    Raised when Reddit answers with an error.

    Covers non-2xx status codes, top-level error objects such as
    ``{"error": 404, "message": "Not Found"}`` and the ``json.errors``
    list returned by form endpoints.

    Attributes:
        status_code: HTTP status code of the response.
        error: Reddit's error code, when the body carried one.
        body: Truncated response body, for troubleshooting.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        body: str | None = None,
        error: Any = None,
    ):
        self.status_code = status_code
        self.error = error
        self.body = body
        super().__init__(f"reddit API error (HTTP {status_code}): {message}")


class RequestValidationError(GrawError, ValueError):
    """
    Raised when caller input is rejected before any request is sent.

    Attributes:
        field: Name of the offending input field.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"invalid {field}: {message}")
