"""Tests for HTTP client implementations."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from grawpy import AuthProvider, HttpClient, StandaloneHttpClient, TransportError


class StaticAuthProvider(AuthProvider):
    def get_access_token(self) -> str:
        return "token-123"


@pytest.fixture
def client():
    return StandaloneHttpClient(auth_provider=StaticAuthProvider(), user_agent="python:test:v1")


class TestStandaloneHttpClientInit:
    def test_is_http_client(self, client):
        assert isinstance(client, HttpClient)

    def test_requires_auth_provider(self):
        with pytest.raises(AssertionError, match="auth_provider cannot be None"):
            StandaloneHttpClient(auth_provider=None, user_agent="python:test:v1")  # type: ignore[arg-type]

    def test_requires_auth_provider_instance(self):
        with pytest.raises(AssertionError, match="must be an AuthProvider"):
            StandaloneHttpClient(auth_provider="token", user_agent="python:test:v1")  # type: ignore[arg-type]

    def test_requires_user_agent(self):
        with pytest.raises(AssertionError, match="user_agent cannot be empty"):
            StandaloneHttpClient(auth_provider=StaticAuthProvider(), user_agent="")


class TestStandaloneHttpClientGet:
    @patch("grawpy._http.requests.get")
    def test_sends_auth_and_user_agent(self, mock_get, client):
        """Should send the bearer token and User-Agent with the query params."""
        mock_get.return_value = MagicMock(status_code=200)

        response = client.get("https://oauth.reddit.com/r/python/hot", params={"limit": 5}, timeout=10)

        assert response is mock_get.return_value
        mock_get.assert_called_once_with(
            "https://oauth.reddit.com/r/python/hot",
            params={"limit": 5},
            headers={"User-Agent": "python:test:v1", "Authorization": "bearer token-123"},
            timeout=10,
        )

    @patch("grawpy._http.requests.get")
    def test_caller_headers_take_precedence(self, mock_get, client):
        mock_get.return_value = MagicMock(status_code=200)

        client.get("https://oauth.reddit.com/api/v1/me", headers={"User-Agent": "custom", "Accept": "application/json"})

        headers = mock_get.call_args.kwargs["headers"]
        assert headers["User-Agent"] == "custom"
        assert headers["Accept"] == "application/json"
        assert headers["Authorization"] == "bearer token-123"

    @patch("grawpy._http.requests.get")
    def test_cancelled_request_is_not_sent(self, mock_get, client):
        """Should raise TransportError without touching the network when cancelled."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(TransportError, match="cancelled") as exc_info:
            client.get("https://oauth.reddit.com/api/v1/me", cancel=cancel)

        assert exc_info.value.url == "https://oauth.reddit.com/api/v1/me"
        mock_get.assert_not_called()

    def test_rejects_empty_url(self, client):
        with pytest.raises(AssertionError, match="URL cannot be empty"):
            client.get("")

    def test_rejects_non_positive_timeout(self, client):
        with pytest.raises(AssertionError, match="Timeout must be greater than 0"):
            client.get("https://oauth.reddit.com/api/v1/me", timeout=0)


class TestStandaloneHttpClientPost:
    @patch("grawpy._http.requests.post")
    def test_sends_form_body(self, mock_post, client):
        """Should send a form-encoded body with auth headers."""
        mock_post.return_value = MagicMock(status_code=200)

        client.post("https://oauth.reddit.com/api/morechildren", data={"api_type": "json"}, timeout=15)

        mock_post.assert_called_once_with(
            "https://oauth.reddit.com/api/morechildren",
            data={"api_type": "json"},
            headers={"User-Agent": "python:test:v1", "Authorization": "bearer token-123"},
            timeout=15,
        )

    @patch("grawpy._http.requests.post")
    def test_cancelled_request_is_not_sent(self, mock_post, client):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(TransportError):
            client.post("https://oauth.reddit.com/api/morechildren", cancel=cancel)

        mock_post.assert_not_called()
