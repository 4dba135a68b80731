"""Tests for global configuration module."""

import os
import unittest
from dataclasses import FrozenInstanceError
from unittest.mock import patch

from grawpy._config import (
    DEFAULT_USER_AGENT,
    GRAW,
    AuthConfig,
    ClientConfig,
    ConfigEntry,
    ConfigEnvVarError,
    ConfigValidationError,
    GrawConfig,
    ParserConfig,
    RateLimitConfig,
)


class TestDefaults(unittest.TestCase):
    """Tests for default configuration values."""

    def setUp(self):
        GRAW.reset()

    def tearDown(self):
        GRAW.reset()

    def test_auth_defaults(self):
        """Should have no credentials and the default user agent."""
        self.assertIsNone(GRAW.config.auth.client_id)
        self.assertIsNone(GRAW.config.auth.client_secret)
        self.assertEqual(GRAW.config.auth.auth_url, "https://www.reddit.com/")
        self.assertEqual(GRAW.config.auth.user_agent, DEFAULT_USER_AGENT)
        self.assertFalse(GRAW.config.auth.has_credentials())

    def test_client_defaults(self):
        """Should point at the OAuth host with a 30s timeout."""
        self.assertEqual(GRAW.config.client.base_url, "https://oauth.reddit.com/")
        self.assertEqual(GRAW.config.client.request_timeout, 30)
        self.assertEqual(GRAW.config.client.max_response_bytes, 10 * 1024 * 1024)

    def test_rate_limit_defaults(self):
        """Should enable the gate at 1000 rpm with a burst of 10."""
        self.assertTrue(GRAW.config.rate_limit.enabled)
        self.assertEqual(GRAW.config.rate_limit.requests_per_minute, 1000)
        self.assertEqual(GRAW.config.rate_limit.burst, 10)
        self.assertEqual(GRAW.config.rate_limit.threshold, 5)

    def test_parser_defaults(self):
        """Should cap comment trees at 50 levels."""
        self.assertEqual(GRAW.config.parser.max_depth, 50)


class TestGRAWConfigure(unittest.TestCase):
    """Tests for GRAW.configure() method."""

    def setUp(self):
        GRAW.reset()

    def tearDown(self):
        GRAW.reset()

    def test_configure_sections(self):
        """Should override only the given fields."""
        GRAW.configure(
            client={"request_timeout": 60},
            rate_limit={"burst": 3},
            parser={"max_depth": 20},
        )

        self.assertEqual(GRAW.config.client.request_timeout, 60)
        self.assertEqual(GRAW.config.client.base_url, "https://oauth.reddit.com/")
        self.assertEqual(GRAW.config.rate_limit.burst, 3)
        self.assertEqual(GRAW.config.rate_limit.requests_per_minute, 1000)
        self.assertEqual(GRAW.config.parser.max_depth, 20)

    def test_configure_returns_instance(self):
        """Should return the configured GrawConfig."""
        result = GRAW.configure(auth={"client_id": "id", "client_secret": "secret"})

        self.assertIsInstance(result, GrawConfig)
        self.assertIs(result, GRAW.config)
        self.assertTrue(result.auth.has_credentials())

    def test_configure_unknown_field(self):
        """Should reject unknown field names."""
        with self.assertRaises(ValueError) as ctx:
            GRAW.configure(client={"request_timout": 60})

        self.assertIn("request_timout", str(ctx.exception))

    def test_configure_validates(self):
        """Should validate the resulting config."""
        with self.assertRaises(ConfigValidationError) as ctx:
            GRAW.configure(parser={"max_depth": 0})

        self.assertEqual(ctx.exception.section, "parser")
        self.assertEqual(ctx.exception.field, "max_depth")

    def test_repr(self):
        """Should include the config in the repr."""
        self.assertIn("GrawConfig", repr(GRAW))


class TestEnvVars(unittest.TestCase):
    """Tests for environment variable override."""

    def setUp(self):
        GRAW.reset()

    def tearDown(self):
        GRAW.reset()

    @patch.dict(os.environ, {"GRAW_AUTH_CLIENT_ID": "env-id", "GRAW_AUTH_CLIENT_SECRET": "env-secret"})
    def test_auth_from_env_vars(self):
        """Should read credentials from env vars."""
        GRAW.reset()

        self.assertEqual(GRAW.config.auth.client_id, "env-id")
        self.assertEqual(GRAW.config.auth.client_secret, "env-secret")

    @patch.dict(os.environ, {"GRAW_CLIENT_REQUEST_TIMEOUT": "45", "GRAW_RATE_LIMIT_ENABLED": "false"})
    def test_type_conversion(self):
        """Should convert env var strings to int and bool."""
        GRAW.reset()

        self.assertEqual(GRAW.config.client.request_timeout, 45)
        self.assertFalse(GRAW.config.rate_limit.enabled)

    @patch.dict(os.environ, {"GRAW_CLIENT_REQUEST_TIMEOUT": "45", "GRAW_PARSER_MAX_DEPTH": "9"})
    def test_configure_wins_over_env(self):
        """Should prefer configure() values, using env vars as fallback."""
        GRAW.configure(client={"request_timeout": 90})

        self.assertEqual(GRAW.config.client.request_timeout, 90)
        self.assertEqual(GRAW.config.parser.max_depth, 9)

    @patch.dict(os.environ, {"GRAW_PARSER_MAX_DEPTH": "9"})
    def test_configure_without_env_override(self):
        """Should ignore env vars when allow_env_override=False."""
        GRAW.configure(allow_env_override=False)

        self.assertEqual(GRAW.config.parser.max_depth, 50)

    @patch.dict(os.environ, {"GRAW_CLIENT_REQUEST_TIMEOUT": "soon"})
    def test_invalid_int(self):
        """Should raise ConfigEnvVarError naming the variable."""
        with self.assertRaises(ConfigEnvVarError) as ctx:
            GrawConfig().with_env_vars()

        self.assertEqual(ctx.exception.env_var, "GRAW_CLIENT_REQUEST_TIMEOUT")
        self.assertEqual(ctx.exception.value, "soon")

    @patch.dict(os.environ, {"GRAW_RATE_LIMIT_ENABLED": "maybe"})
    def test_invalid_bool(self):
        """Should reject values that are not recognised booleans."""
        with self.assertRaises(ConfigEnvVarError):
            GrawConfig().with_env_vars()

    @patch.dict(os.environ, {"GRAW_CLIENT_REQUEST_TIMEOUT": ""})
    def test_empty_env_var_is_ignored(self):
        """Should treat empty env vars as unset."""
        GRAW.reset()

        self.assertEqual(GRAW.config.client.request_timeout, 30)


class TestValidation(unittest.TestCase):
    """Tests for section validate() methods."""

    def test_valid_defaults(self):
        """Should accept the defaults."""
        AuthConfig().validate()
        ClientConfig().validate()
        RateLimitConfig().validate()
        ParserConfig().validate()

    def test_empty_client_id(self):
        """Should reject empty credential strings."""
        with self.assertRaises(ConfigValidationError):
            AuthConfig(client_id="").validate()

    def test_username_without_password(self):
        """Should require username and password together."""
        with self.assertRaises(ConfigValidationError):
            AuthConfig(client_id="id", client_secret="s", username="alice").validate()

    def test_user_agent_with_newline(self):
        """Should reject user agents that could split headers."""
        with self.assertRaises(ConfigValidationError):
            AuthConfig(user_agent="python:app:v1\r\nX-Evil: 1").validate()

    def test_user_agent_too_long(self):
        """Should reject user agents longer than 256 characters."""
        with self.assertRaises(ConfigValidationError):
            AuthConfig(user_agent="a" * 257).validate()

    def test_base_url_scheme(self):
        """Should require an http(s) base URL."""
        with self.assertRaises(ConfigValidationError):
            ClientConfig(base_url="ftp://oauth.reddit.com/").validate()

    def test_base_url_trailing_slash(self):
        """Should require a trailing slash on the base URL."""
        with self.assertRaises(ConfigValidationError):
            ClientConfig(base_url="https://oauth.reddit.com").validate()

    def test_non_positive_timeout(self):
        """Should reject a non-positive timeout."""
        with self.assertRaises(ConfigValidationError):
            ClientConfig(request_timeout=0).validate()

    def test_rate_limit_values(self):
        """Should reject non-positive rates and an empty bucket."""
        with self.assertRaises(ConfigValidationError):
            RateLimitConfig(requests_per_minute=0).validate()
        with self.assertRaises(ConfigValidationError):
            RateLimitConfig(burst=0).validate()
        with self.assertRaises(ConfigValidationError):
            RateLimitConfig(threshold=-1).validate()

    def test_error_message(self):
        """Should include section, field and value in the message."""
        with self.assertRaises(ConfigValidationError) as ctx:
            ParserConfig(max_depth=0).validate()

        self.assertEqual(str(ctx.exception), "[parser] Invalid value for 'max_depth': 0. Must be >= 1.")


class TestSections(unittest.TestCase):
    """Tests for section helpers."""

    def test_grant_type(self):
        """Should switch to the password grant when both user fields are set."""
        self.assertEqual(AuthConfig(client_id="id", client_secret="s").grant_type, "client_credentials")
        self.assertEqual(
            AuthConfig(client_id="id", client_secret="s", username="alice", password="pw").grant_type,
            "password",
        )

    def test_with_overrides_ignores_none(self):
        """Should skip None values."""
        config = ClientConfig().with_overrides({"request_timeout": None})

        self.assertEqual(config.request_timeout, 30)

    def test_frozen(self):
        """Should be immutable."""
        config = ClientConfig()
        with self.assertRaises(FrozenInstanceError):
            config.request_timeout = 5  # type: ignore[misc]


class TestExplain(unittest.TestCase):
    """Tests for GRAW.explain() and ConfigEntry."""

    def setUp(self):
        GRAW.reset()

    def tearDown(self):
        GRAW.reset()

    def _capture_explain(self) -> str:
        lines: list[str] = []
        GRAW.explain(output=lines.append)
        return "\n".join(lines)

    def test_explain_prints_sections(self):
        """Should print a header and every section."""
        output = self._capture_explain()

        self.assertIn("GRAW Configuration:", output)
        for section in ("[auth]", "[client]", "[rate_limit]", "[parser]"):
            self.assertIn(section, output)

    def test_explain_shows_configure_source(self):
        """Should mark values set through configure()."""
        GRAW.configure(client={"request_timeout": 60})

        output = self._capture_explain()

        self.assertIn("✎ configure", output)

    @patch.dict(os.environ, {"GRAW_PARSER_MAX_DEPTH": "12"})
    def test_explain_shows_env_source(self):
        """Should name the env var a value came from."""
        GRAW.reset()

        output = self._capture_explain()

        self.assertIn("env:GRAW_PARSER_MAX_DEPTH", output)

    def test_explain_masks_secrets(self):
        """Should never print secrets in full."""
        GRAW.configure(auth={"client_id": "id", "client_secret": "super-secret-key"})

        output = self._capture_explain()

        self.assertNotIn("super-secret-key", output)
        self.assertIn("supe********-key", output)

    def test_formatted_value(self):
        """Should mask short secrets and truncate long values."""
        self.assertEqual(ConfigEntry("password", "short", "configure").formatted_value, "********t")
        self.assertEqual(ConfigEntry("password", "ab", "configure").formatted_value, "********")
        self.assertEqual(ConfigEntry("client_id", None, "default").formatted_value, "None")
        self.assertEqual(len(ConfigEntry("user_agent", "x" * 80, "default").formatted_value), 50)
