"""
Authentication providers for the grawpy client.

This module provides authentication abstractions that can be used with
HTTP clients to authenticate requests to the Reddit OAuth API.

The main classes are:
- TokenCache: Holds the current token as an immutable record.
- AuthProvider: Abstract base class for authentication providers.
- RedditOAuthProvider: OAuth2 client_credentials / password grant implementation.

Example:
    >>> from grawpy._auth import RedditOAuthProvider
    >>> auth = RedditOAuthProvider(
    ...     client_id="my-client-id",
    ...     client_secret="my-client-secret",
    ...     user_agent="python:myapp:v1.0 (by /u/me)",
    ... )
    >>> headers = auth.get_auth_headers()
    >>> # {"Authorization": "bearer eyJ..."}
"""

from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, override

import requests

from grawpy._errors import GrawError

if TYPE_CHECKING:
    from grawpy._config import AuthConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class AuthError(GrawError):
    """
    Raised when authentication fails.

    Attributes:
        message: Description of the authentication failure.
        status_code: HTTP status of the token endpoint, when it answered.
        body: Raw response body of the token endpoint, when it answered.
        cause: The underlying exception that caused the failure, if any.

    Example:
        >>> try:
        ...     token = auth.get_access_token()
        ... except AuthError as e:
        ...     print(f"Auth failed ({e.status_code}): {e}")
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.body = body


# =============================================================================
# Token Cache
# =============================================================================


@dataclass(frozen=True)
class TokenInfo:
    """
    Token with expiration metadata.

    Attributes:
        access_token: The OAuth2 access token.
        expires_at: Clock time after which the token is refreshed. Already
            includes the refresh margin (see TokenCache.REFRESH_FACTOR).
    """

    access_token: str
    expires_at: float


class TokenCache:
    """
    Lock-free cache of the current access token.

    The token lives in a single immutable TokenInfo; readers load the
    reference and compare its expiry, writers replace the reference. A reader
    therefore sees either the old record or the new one, never a mix.

    Concurrent callers that all find the token expired each fetch a new one;
    fetches are not coalesced and the last record stored wins.

    Args:
        clock: Time source in seconds, `time.time` by default.
    """

    REFRESH_FACTOR = 0.9

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._token: TokenInfo | None = None

    def peek(self) -> TokenInfo | None:
        """Return the current record if it has not expired."""
        token = self._token
        if token is not None and self._clock() < token.expires_at:
            return token
        return None

    def store(self, access_token: str, expires_in: float) -> TokenInfo:
        """Store a token valid for `REFRESH_FACTOR * expires_in` seconds from now."""
        token = TokenInfo(
            access_token=access_token,
            expires_at=self._clock() + expires_in * self.REFRESH_FACTOR,
        )
        self._token = token
        return token

    def get(self, fetch: Callable[[], tuple[str, float]]) -> str:
        """
        Return the cached token, calling `fetch` when absent or expired.

        Args:
            fetch: Returns `(access_token, expires_in_seconds)`.
        """
        token = self.peek()
        if token is not None:
            logger.debug("Using cached access token")
            return token.access_token

        access_token, expires_in = fetch()
        return self.store(access_token, expires_in).access_token

    def invalidate(self) -> None:
        self._token = None


# =============================================================================
# Abstract Base Class
# =============================================================================


class AuthProvider(ABC):
    """
    Abstract base class for authentication providers.

    Implementations are responsible for obtaining and managing access tokens.
    All implementations must be thread-safe.

    Example:
        >>> class StaticAuthProvider(AuthProvider):
        ...     def get_access_token(self) -> str:
        ...         return "my-token"
        ...
        >>> StaticAuthProvider().get_auth_headers()
        {'Authorization': 'bearer my-token'}
    """

    @abstractmethod
    def get_access_token(self) -> str:
        """
        Obtain a valid access token.

        Returns:
            Access token string (without "bearer" prefix).

        Raises:
            AuthError: If unable to obtain a valid token.
        """
        pass

    def get_auth_headers(self) -> dict[str, str]:
        """Return the Authorization header for HTTP requests."""
        return {"Authorization": f"bearer {self.get_access_token()}"}


# =============================================================================
# Implementations
# =============================================================================


class RedditOAuthProvider(AuthProvider):
    """
    OAuth2 token provider for Reddit.

    Uses the client_credentials grant, or the password grant when username
    and password are given. The application credentials travel as HTTP basic
    auth and every token request carries the configured User-Agent, which
    Reddit requires.

    Tokens are cached in a TokenCache and refreshed once 90% of their
    lifetime has elapsed.

    Args:
        client_id: Reddit application id.
        client_secret: Reddit application secret.
        user_agent: User-Agent sent to the token endpoint.
        username: Account name for the password grant.
        password: Account password for the password grant.
        auth_url: Base URL of the token endpoint host.
        timeout: Token request timeout in seconds.
        cache: Token cache; a private one is created when omitted.
    """

    DEFAULT_AUTH_URL = "https://www.reddit.com/"
    DEFAULT_EXPIRES_IN = 3600
    TOKEN_PATH = "api/v1/access_token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        user_agent: str,
        username: str | None = None,
        password: str | None = None,
        auth_url: str = DEFAULT_AUTH_URL,
        timeout: int = 30,
        cache: TokenCache | None = None,
    ):
        assert client_id, "client_id cannot be empty"
        assert client_secret, "client_secret cannot be empty"
        assert user_agent, "user_agent cannot be empty"
        assert timeout > 0, "timeout must be greater than 0."

        self._client_id = client_id
        self._client_secret = client_secret
        self._user_agent = user_agent
        self._username = username
        self._password = password
        self._token_url = auth_url.rstrip("/") + "/" + self.TOKEN_PATH
        self._timeout = timeout
        self.cache = cache or TokenCache()

    @property
    def grant_type(self) -> str:
        if self._username and self._password:
            return "password"
        return "client_credentials"

    @override
    def get_access_token(self) -> str:
        """
        Obtain a valid access token, fetching a new one if necessary.

        Raises:
            AuthError: If unable to obtain a valid token.
        """
        return self.cache.get(self._fetch_new_token)

    def _fetch_new_token(self) -> tuple[str, float]:
        form = {"grant_type": self.grant_type}
        if self.grant_type == "password":
            form["username"] = self._username  # type: ignore[assignment]
            form["password"] = self._password  # type: ignore[assignment]

        try:
            response = requests.post(
                self._token_url,
                data=form,
                auth=(self._client_id, self._client_secret),
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise AuthError(f"Failed to obtain access token: {e}", cause=e) from e

        if response.status_code != 200:
            raise AuthError(
                f"Failed to obtain access token (HTTP {response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthError("Invalid token response: body is not JSON", status_code=200, cause=e) from e
        if not isinstance(data, dict):
            raise AuthError("Invalid token response: expected a JSON object", status_code=200)

        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise AuthError("Invalid token response: empty access_token", status_code=200)

        expires_in = data.get("expires_in") or self.DEFAULT_EXPIRES_IN
        try:
            lifetime = float(expires_in)
        except (TypeError, ValueError) as e:
            raise AuthError("Invalid token response: bad expires_in", status_code=200, cause=e) from e
        if not math.isfinite(lifetime) or lifetime <= 0:
            raise AuthError("Invalid token response: bad expires_in", status_code=200)

        logger.info(f"Obtained new access token ({self.grant_type} grant, expires in {lifetime:g}s)")
        return access_token, lifetime


# =============================================================================
# Helper Functions
# =============================================================================


def create_standalone_auth(config: AuthConfig | None = None) -> RedditOAuthProvider:
    """
    Create a RedditOAuthProvider from configuration.

    Args:
        config: Optional AuthConfig with credentials. If None, uses
            GRAW.config.auth from global configuration.

    Raises:
        ValueError: If credentials are not configured.

    Example:
        >>> from grawpy import GRAW
        >>> GRAW.configure(auth={"client_id": "x", "client_secret": "y"})
        >>> auth = create_standalone_auth()
    """
    if config is None:
        from grawpy._config import GRAW

        config = GRAW.config.auth

    if not config.has_credentials():
        raise ValueError(
            "Client credentials not configured. "
            "Set client_id and client_secret via GRAW.configure() or environment variables "
            "(GRAW_AUTH_CLIENT_ID, GRAW_AUTH_CLIENT_SECRET)."
        )

    return RedditOAuthProvider(
        client_id=config.client_id,  # type: ignore[arg-type]
        client_secret=config.client_secret,  # type: ignore[arg-type]
        user_agent=config.user_agent,
        username=config.username,
        password=config.password,
        auth_url=config.auth_url,
    )
