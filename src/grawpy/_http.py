"""
HTTP client abstraction for the grawpy client.

This module provides a generic HTTP client interface that every component
of the client goes through, so cross-cutting concerns (rate limiting) can be
added as decorators.

Available implementations:
    - StandaloneHttpClient: Uses an AuthProvider for OAuth bearer tokens.
    - RateLimitedHttpClient: Decorator that adds rate limiting (see grawpy._rate_limit).

Example:
    >>> from grawpy._auth import RedditOAuthProvider
    >>> from grawpy._http import StandaloneHttpClient
    >>> client = StandaloneHttpClient(
    ...     auth_provider=RedditOAuthProvider("id", "secret", "python:app:v1"),
    ...     user_agent="python:app:v1",
    ... )
    >>> response = client.get("https://oauth.reddit.com/api/v1/me")
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, override

import requests

from grawpy._errors import TransportError

if TYPE_CHECKING:
    from grawpy._auth import AuthProvider


# =============================================================================
# Abstract Base Class
# =============================================================================


class HttpClient(ABC):
    """
    Abstract base class for HTTP clients.

    Implementations handle authentication and can be wrapped with
    decorators for rate limiting and other cross-cutting concerns.

    Every method accepts an optional `cancel` event. Implementations that
    wait (for example on a rate limit) must stop waiting once it is set.
    """

    @abstractmethod
    def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cancel: threading.Event | None = None,
    ) -> requests.Response:
        """
        Execute an authenticated GET request.

        Args:
            url: The full URL to request.
            params: Query string parameters.
            headers: Additional headers to include (merged with auth headers).
            timeout: Request timeout in seconds.
            cancel: Cancellation token.

        Returns:
            The HTTP response, whatever its status code.

        Raises:
            requests.RequestException: If the HTTP request fails.
        """
        pass

    @abstractmethod
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cancel: threading.Event | None = None,
    ) -> requests.Response:
        """
        Execute an authenticated POST request with a form-encoded body.

        Args:
            url: The full URL to request.
            data: Form fields to send in the request body.
            headers: Additional headers to include (merged with auth headers).
            timeout: Request timeout in seconds.
            cancel: Cancellation token.

        Returns:
            The HTTP response, whatever its status code.

        Raises:
            requests.RequestException: If the HTTP request fails.
        """
        pass


# =============================================================================
# Standalone Implementation
# =============================================================================


class StandaloneHttpClient(HttpClient):
    """
    HTTP client using an AuthProvider for bearer authentication.

    Adds the Authorization and User-Agent headers to every request; headers
    passed by the caller take precedence.

    Args:
        auth_provider: Provider for authorization tokens.
        user_agent: User-Agent header value.
    """

    def __init__(self, auth_provider: AuthProvider, user_agent: str):
        from grawpy._auth import AuthProvider

        assert auth_provider is not None, "auth_provider cannot be None"
        assert isinstance(auth_provider, AuthProvider), "auth_provider must be an AuthProvider instance"
        assert user_agent, "user_agent cannot be empty"

        self._auth = auth_provider
        self._user_agent = user_agent

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            **self._auth.get_auth_headers(),
            **(headers or {}),
        }

    @staticmethod
    def _check_cancelled(url: str, cancel: threading.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise TransportError("request cancelled before it was sent", url=url)

    @override
    def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cancel: threading.Event | None = None,
    ) -> requests.Response:
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        self._check_cancelled(url, cancel)
        return requests.get(
            url,
            params=params,
            headers=self._headers(headers),
            timeout=timeout,
        )

    @override
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cancel: threading.Event | None = None,
    ) -> requests.Response:
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        self._check_cancelled(url, cancel)
        return requests.post(
            url,
            data=data,
            headers=self._headers(headers),
            timeout=timeout,
        )
