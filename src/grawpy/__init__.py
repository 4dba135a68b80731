"""
grawpy: a rate-limited, defensive client for the Reddit OAuth API.

Every request passes through a RateGate (token bucket + server-fed forced
delay), and every response is decoded into typed, validated records. Comment
trees are rebuilt with depth and cycle protection, so hostile or broken
payloads degrade into partial results instead of crashes.

Quick Start:
    >>> from grawpy import GRAW, RedditClient, PostsRequest, CommentsRequest
    >>> GRAW.configure(auth={"client_id": "x", "client_secret": "y"})
    >>> client = RedditClient()
    >>> hot = client.get_hot(PostsRequest(subreddit="python"))
    >>> page = client.get_comments(CommentsRequest(subreddit="python", post_id=hot.posts[0].id))
    >>> CommentTree(page.comments).count()

Global Configuration:
    >>> from grawpy import GRAW
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> rpm = GRAW.config.rate_limit.requests_per_minute
    >>>
    >>> # Custom configuration
    >>> GRAW.configure(
    ...     auth={"client_id": "x", "client_secret": "y", "user_agent": "python:app:v1 (by /u/me)"},
    ...     client={"request_timeout": 60},
    ...     rate_limit={"requests_per_minute": 600, "burst": 5},
    ...     parser={"max_depth": 20},
    ... )

Main Classes:
    - RedditClient: High level API (me, subreddits, listings, comments).
    - PostsRequest, CommentsRequest, MoreCommentsRequest: Request models.
    - PostsResponse, CommentsResponse: Response models.
    - Pagination: Listing cursors and page size.

Configuration:
    - GRAW: Global singleton for configuration.
    - GrawConfig: Root configuration dataclass.
    - AuthConfig, ClientConfig, RateLimitConfig, ParserConfig: Sections.
    - ConfigEnvVarError: Exception raised when env var parsing fails.
    - ConfigValidationError: Exception raised when config validation fails.

Authentication:
    - AuthProvider: Abstract base class for authentication providers.
    - RedditOAuthProvider: OAuth2 client_credentials / password grant.
    - TokenCache: Lock-free token cache with early refresh.

HTTP Client:
    - HttpClient: Abstract base class for HTTP clients.
    - StandaloneHttpClient: Bearer-authenticated client.
    - RateLimitedHttpClient: Decorator that throttles through a RateGate.
    - RateGate: Token bucket + forced-delay limiter.

Things:
    - See grawpy.things for envelopes, typed records, EnvelopeDecoder,
      TreeBuilder and CommentTree.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("grawpy")

from grawpy._auth import (
    AuthError,
    AuthProvider,
    RedditOAuthProvider,
    TokenCache,
    TokenInfo,
    create_standalone_auth,
)
from grawpy._client import RedditClient, create_http_client
from grawpy._config import (
    GRAW,
    AuthConfig,
    ClientConfig,
    ConfigEnvVarError,
    ConfigValidationError,
    GrawConfig,
    ParserConfig,
    RateLimitConfig,
)
from grawpy._errors import (
    APIError,
    DecodeError,
    DepthExceededError,
    GrawError,
    PartialResultError,
    RequestValidationError,
    TransportError,
    UnknownKindError,
    ValidationFailedError,
)
from grawpy._http import HttpClient, StandaloneHttpClient
from grawpy._models import (
    CommentsRequest,
    CommentsResponse,
    MoreCommentsRequest,
    Pagination,
    PostsRequest,
    PostsResponse,
)
from grawpy._rate_limit import RateGate, RateLimitCancelledError, RateLimitedHttpClient
from grawpy.things import (
    Account,
    Comment,
    CommentsPage,
    CommentTree,
    Edited,
    EnvelopeDecoder,
    Listing,
    Message,
    MoreMarker,
    Post,
    Replies,
    Subreddit,
    TreeBuilder,
)

__all__ = [
    "__version__",
    # Configuration
    "GRAW",
    "GrawConfig",
    "AuthConfig",
    "ClientConfig",
    "RateLimitConfig",
    "ParserConfig",
    "ConfigEnvVarError",
    "ConfigValidationError",
    # Errors
    "GrawError",
    "DecodeError",
    "UnknownKindError",
    "ValidationFailedError",
    "DepthExceededError",
    "PartialResultError",
    "TransportError",
    "APIError",
    "RequestValidationError",
    # Authentication
    "AuthProvider",
    "RedditOAuthProvider",
    "TokenCache",
    "TokenInfo",
    "AuthError",
    "create_standalone_auth",
    # HTTP Client
    "HttpClient",
    "StandaloneHttpClient",
    "RateLimitedHttpClient",
    "RateGate",
    "RateLimitCancelledError",
    "create_http_client",
    # Client
    "RedditClient",
    "Pagination",
    "PostsRequest",
    "PostsResponse",
    "CommentsRequest",
    "CommentsResponse",
    "MoreCommentsRequest",
    # Things
    "Account",
    "Comment",
    "Post",
    "Message",
    "Subreddit",
    "MoreMarker",
    "Listing",
    "Edited",
    "Replies",
    "CommentsPage",
    "EnvelopeDecoder",
    "TreeBuilder",
    "CommentTree",
]
