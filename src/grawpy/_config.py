"""
Global configuration for the grawpy client.

This module provides a simple configuration system following Convention over Configuration (CoC).
Users can optionally call GRAW.configure() at application startup to customize defaults.
If not called, sensible defaults are used.

Hierarchy of precedence (highest to lowest):
1. *Arguments passed to client constructors
2. Values set via GRAW.configure()
3. Environment variables (GRAW_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from grawpy import GRAW
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> rpm = GRAW.config.rate_limit.requests_per_minute
    >>>
    >>> # Custom configuration
    >>> GRAW.configure(
    ...     auth={"client_id": "x", "client_secret": "y"},
    ...     client={"request_timeout": 60},
    ... )
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from functools import wraps
from typing import Any, Self

DEFAULT_USER_AGENT = "python:grawpy:v0.1.0"

_SECTIONS = ("auth", "client", "rate_limit", "parser")
_SECRET_FIELDS = ("client_secret", "password")


# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


class EnvVars:
    """
    Utility class for reading environment variables with type conversion.

    Example:
        >>> EnvVars.get("GRAW_CLIENT_REQUEST_TIMEOUT", type_hint=int)
        30
        >>> EnvVars.get("GRAW_AUTH_CLIENT_ID")
        'my-client-id'
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Args:
            var_name: The environment variable name.
            type_hint: Type hint used to infer the converter (ignored if converter is provided).
            converter: Custom converter function (takes precedence over type_hint).

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:  # None or empty string
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        """
        Infer converter function from type hint.

        Handles both actual types and string annotations (PEP 563).
        """
        type_str = str(type_hint)

        if type_hint is int or type_str == "int":
            return int
        if type_hint is float or type_str == "float":
            return float
        if type_hint is bool or type_str == "bool":
            return _parse_bool
        return str


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Provides `.with_overrides()` method for creating new instances
    with partial field updates. Unknown field names are rejected so
    typos surface early.

    Example:
        >>> config = ClientConfig()
        >>> custom = config.with_overrides({"request_timeout": 60})
        >>> custom.request_timeout
        60
    """

    def with_overrides(self, overrides: dict[str, Any]) -> Self:
        """
        Return a new instance with specified fields overridden.

        Args:
            overrides: Dict of field names to new values.
                       Only existing fields are allowed; None values are
                       filtered out.

        Returns:
            New instance with updated values.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        filtered = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return new instance with environment variables applied.

        Reads env vars declared in field metadata and applies them as overrides.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(
                    var_name=env_var,
                    type_hint=f.type,
                    converter=f.metadata.get("converter"),
                )
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)


def _require_http_url(section: str, name: str, value: str) -> None:
    if not (value.startswith("http://") or value.startswith("https://")):
        raise ConfigValidationError(name, value, "Must start with 'http://' or 'https://'.", section=section)
    if not value.endswith("/"):
        raise ConfigValidationError(name, value, "Must end with '/'.", section=section)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class AuthConfig(OverridableConfig):
    """
    OAuth2 configuration for the Reddit API.

    With only client_id and client_secret the client_credentials grant is
    used; adding username and password switches to the password grant.

    Attributes:
        client_id: Reddit application id.
            Env var: GRAW_AUTH_CLIENT_ID

        client_secret: Reddit application secret.
            Env var: GRAW_AUTH_CLIENT_SECRET

        username: Reddit account name (password grant only).
            Env var: GRAW_AUTH_USERNAME

        password: Reddit account password (password grant only).
            Env var: GRAW_AUTH_PASSWORD

        auth_url: Base URL of the token endpoint host.
            Env var: GRAW_AUTH_AUTH_URL

        user_agent: User-Agent header sent on every request, token requests included.
            Env var: GRAW_AUTH_USER_AGENT

    Example:
        >>> from grawpy import GRAW
        >>> if GRAW.config.auth.has_credentials():
        ...     print(GRAW.config.auth.grant_type)
        client_credentials
    """

    client_id: str | None = field(default=None, metadata={"env": "GRAW_AUTH_CLIENT_ID"})
    client_secret: str | None = field(default=None, metadata={"env": "GRAW_AUTH_CLIENT_SECRET"})
    username: str | None = field(default=None, metadata={"env": "GRAW_AUTH_USERNAME"})
    password: str | None = field(default=None, metadata={"env": "GRAW_AUTH_PASSWORD"})
    auth_url: str = field(default="https://www.reddit.com/", metadata={"env": "GRAW_AUTH_AUTH_URL"})
    user_agent: str = field(default=DEFAULT_USER_AGENT, metadata={"env": "GRAW_AUTH_USER_AGENT"})

    def has_credentials(self) -> bool:
        """Check if both client_id and client_secret are set."""
        return bool(self.client_id and self.client_secret)

    @property
    def grant_type(self) -> str:
        if self.username and self.password:
            return "password"
        return "client_credentials"

    def validate(self) -> Self:
        """Validate auth configuration fields."""
        for name in ("client_id", "client_secret", "username", "password"):
            value = getattr(self, name)
            if value is not None and value == "":
                raise ConfigValidationError(name, value, "Must not be empty string.", section="auth")
        if bool(self.username) != bool(self.password):
            raise ConfigValidationError(
                "username", self.username,
                "username and password must be set together.", section="auth"
            )
        _require_http_url("auth", "auth_url", self.auth_url)
        if not self.user_agent:
            raise ConfigValidationError("user_agent", self.user_agent, "Must not be empty.", section="auth")
        if len(self.user_agent) > 256:
            raise ConfigValidationError(
                "user_agent", self.user_agent,
                "Must be at most 256 characters.", section="auth"
            )
        if "\r" in self.user_agent or "\n" in self.user_agent:
            raise ConfigValidationError(
                "user_agent", self.user_agent,
                "Must not contain line breaks.", section="auth"
            )
        return self


@dataclass(frozen=True)
class ClientConfig(OverridableConfig):
    """
    Configuration for RedditClient and its HTTP transport.

    Attributes:
        base_url: Base URL for authenticated API calls.
            Env var: GRAW_CLIENT_BASE_URL

        request_timeout: HTTP request timeout in seconds.
            Env var: GRAW_CLIENT_REQUEST_TIMEOUT

        max_response_bytes: Largest response body accepted before decoding.
            Env var: GRAW_CLIENT_MAX_RESPONSE_BYTES

    Example:
        >>> from grawpy import GRAW
        >>> GRAW.config.client.request_timeout
        30
    """

    base_url: str = field(default="https://oauth.reddit.com/", metadata={"env": "GRAW_CLIENT_BASE_URL"})
    request_timeout: int = field(default=30, metadata={"env": "GRAW_CLIENT_REQUEST_TIMEOUT"})
    max_response_bytes: int = field(default=10 * 1024 * 1024, metadata={"env": "GRAW_CLIENT_MAX_RESPONSE_BYTES"})

    def validate(self) -> Self:
        """Validate client configuration fields."""
        _require_http_url("client", "base_url", self.base_url)
        if self.request_timeout <= 0:
            raise ConfigValidationError(
                "request_timeout", self.request_timeout,
                "Must be greater than 0.", section="client"
            )
        if self.max_response_bytes <= 0:
            raise ConfigValidationError(
                "max_response_bytes", self.max_response_bytes,
                "Must be greater than 0.", section="client"
            )
        return self


@dataclass(frozen=True)
class RateLimitConfig(OverridableConfig):
    """
    Client-side rate limiting configuration.

    Requests pass a token bucket refilled at `requests_per_minute / 60`
    tokens per second (never below one per second) holding at most `burst`
    tokens. Independently, the server's rate-limit headers can push back
    every request until a deadline; see RateGate.

    Attributes:
        enabled: Whether create_http_client() wraps the transport with a RateGate.
            Env var: GRAW_RATE_LIMIT_ENABLED

        requests_per_minute: Sustained request rate.
            Env var: GRAW_RATE_LIMIT_REQUESTS_PER_MINUTE

        burst: Bucket capacity, i.e. requests allowed back to back.
            Env var: GRAW_RATE_LIMIT_BURST

        threshold: When X-RateLimit-Remaining drops below this value,
            requests are spread over the remaining reset window.
            Env var: GRAW_RATE_LIMIT_THRESHOLD

    Example:
        >>> from grawpy import GRAW
        >>> GRAW.configure(rate_limit={"requests_per_minute": 60, "burst": 1})
    """

    enabled: bool = field(default=True, metadata={"env": "GRAW_RATE_LIMIT_ENABLED"})
    requests_per_minute: int = field(default=1000, metadata={"env": "GRAW_RATE_LIMIT_REQUESTS_PER_MINUTE"})
    burst: int = field(default=10, metadata={"env": "GRAW_RATE_LIMIT_BURST"})
    threshold: int = field(default=5, metadata={"env": "GRAW_RATE_LIMIT_THRESHOLD"})

    def validate(self) -> Self:
        """Validate rate limit configuration fields."""
        if self.requests_per_minute <= 0:
            raise ConfigValidationError(
                "requests_per_minute", self.requests_per_minute,
                "Must be greater than 0.", section="rate_limit"
            )
        if self.burst < 1:
            raise ConfigValidationError(
                "burst", self.burst,
                "Must be >= 1.", section="rate_limit"
            )
        if self.threshold < 0:
            raise ConfigValidationError(
                "threshold", self.threshold,
                "Must be >= 0.", section="rate_limit"
            )
        return self


@dataclass(frozen=True)
class ParserConfig(OverridableConfig):
    """
    Configuration for comment tree decoding.

    Attributes:
        max_depth: Deepest reply nesting kept; deeper subtrees are dropped.
            Env var: GRAW_PARSER_MAX_DEPTH
    """

    max_depth: int = field(default=50, metadata={"env": "GRAW_PARSER_MAX_DEPTH"})

    def validate(self) -> Self:
        """Validate parser configuration fields."""
        if self.max_depth < 1:
            raise ConfigValidationError(
                "max_depth", self.max_depth,
                "Must be >= 1.", section="parser"
            )
        return self


@dataclass(frozen=True)
class ConfigEntry:
    """
    A configuration field with its resolved value and source.

    Attributes:
        name: The field name (e.g., "request_timeout").
        value: The resolved value.
        source: Where the value came from:
            - "default": Hardcoded default value
            - "env:VAR_NAME": Environment variable
            - "configure": Set via GRAW.configure()

    Example:
        >>> entry = ConfigEntry("request_timeout", 60, "configure")
        >>> entry.formatted_value
        '60'
    """

    name: str
    value: Any
    source: str

    @property
    def formatted_value(self) -> str:
        """
        Return value formatted for display.

        Masks sensitive fields (client_secret, password) showing only
        first and last 4 characters, and truncates long strings.

        Examples:
            >>> ConfigEntry("client_secret", "super-secret-key", "configure").formatted_value
            'supe********-key'
            >>> ConfigEntry("password", "short", "configure").formatted_value
            '********t'
        """
        if self.name in _SECRET_FIELDS and self.value is not None:
            secret = str(self.value)
            if len(secret) >= 12:
                return f"{secret[:4]}********{secret[-4:]}"
            if len(secret) >= 3:
                visible = max(1, len(secret) // 3)
                return f"********{secret[-visible:]}"
            return "********"

        if self.value is None:
            return "None"

        str_value = str(self.value)
        max_length = 50
        if len(str_value) > max_length:
            return str_value[: max_length - 3] + "..."

        return str_value


@dataclass(frozen=True)
class GrawConfigTracker:
    """
    Tracks the source of config field values.

    Attributes:
        sources: Dict tracking source of each field value.
            Structure: {"section": {"field": "source"}}
            Source values: "env:VAR_NAME", "configure"
    """

    sources: dict[str, dict[str, str]] = field(default_factory=dict)

    @staticmethod
    def track_changes(
        source_type: str,
    ) -> Callable[[Callable[..., GrawConfig]], Callable[..., GrawConfig]]:
        """
        Decorator that records which fields the decorated method touched.

        Args:
            source_type: Source label for tracking ("env" or "configure").
        """

        def decorator(
            method: Callable[..., GrawConfig],
        ) -> Callable[..., GrawConfig]:
            @wraps(method)
            def wrapper(self: GrawConfig, *args: Any, **kwargs: Any) -> GrawConfig:
                new_config = method(self, *args, **kwargs)
                new_tracker = self._tracker.with_changes_tracked(
                    new_config, source_type, overrides=kwargs
                )
                return replace(new_config, _tracker=new_tracker)

            return wrapper

        return decorator

    def with_changes_tracked(
        self,
        new_config: GrawConfig,
        source_type: str,
        overrides: dict[str, Any] | None = None,
    ) -> GrawConfigTracker:
        """Return a new tracker with the fields touched by `source_type` recorded."""
        new_sources = {section: dict(flds) for section, flds in self.sources.items()}

        for section_name in _SECTIONS:
            section_config = getattr(new_config, section_name)
            section_sources = new_sources.setdefault(section_name, {})

            for f in fields(section_config):
                if source_type == "env":
                    # Touched if set and non-empty, consistent with EnvVars.get
                    env_var = f.metadata.get("env")
                    if env_var and os.environ.get(env_var):
                        section_sources[f.name] = f"env:{env_var}"
                elif source_type == "configure" and overrides:
                    section_overrides = overrides.get(section_name) or {}
                    if f.name in section_overrides:
                        section_sources[f.name] = "configure"

        return GrawConfigTracker(sources={k: v for k, v in new_sources.items() if v})


@dataclass(frozen=True)
class GrawConfig:
    """
    Global configuration for the grawpy client.

    Aggregates all configuration sections: auth, client, rate_limit and parser.
    Access via the global `GRAW.config` property.

    Example:
        >>> from grawpy import GRAW
        >>> GRAW.config.client.base_url
        'https://oauth.reddit.com/'
        >>> GRAW.config.rate_limit.burst
        10
        >>> GRAW.config.parser.max_depth
        50
    """

    auth: AuthConfig = field(default_factory=AuthConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    _tracker: GrawConfigTracker = field(default_factory=GrawConfigTracker, repr=False)

    @GrawConfigTracker.track_changes("env")
    def with_env_vars(self) -> GrawConfig:
        """Return a new config with GRAW_* environment variables applied on top."""
        return GrawConfig(
            auth=self.auth.with_env_vars(),
            client=self.client.with_env_vars(),
            rate_limit=self.rate_limit.with_env_vars(),
            parser=self.parser.with_env_vars(),
            _tracker=self._tracker,
        )

    @GrawConfigTracker.track_changes("configure")
    def with_section_overrides(
        self,
        *,
        auth: dict[str, Any] | None = None,
        client: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
        parser: dict[str, Any] | None = None,
    ) -> GrawConfig:
        """
        Return a new config with overrides applied to nested sections.

        Each section dict is merged with the existing section config,
        only overriding the specified fields.

        Example:
            >>> config = GrawConfig()
            >>> custom = config.with_section_overrides(
            ...     client={"request_timeout": 60},
            ...     parser={"max_depth": 20},
            ... )
        """
        return GrawConfig(
            auth=self.auth.with_overrides(auth or {}),
            client=self.client.with_overrides(client or {}),
            rate_limit=self.rate_limit.with_overrides(rate_limit or {}),
            parser=self.parser.with_overrides(parser or {}),
            _tracker=self._tracker,
        )

    def explain_data(self) -> dict[str, list[ConfigEntry]]:
        """
        Return config data structured for explain output.

        Returns:
            Dict mapping section names to list of ConfigEntry objects.

        Example:
            >>> data = GrawConfig().with_env_vars().explain_data()
            >>> for entry in data["client"]:
            ...     print(f"{entry.name}: {entry.value} ({entry.source})")
            base_url: https://oauth.reddit.com/ (default)
            ...
        """
        result: dict[str, list[ConfigEntry]] = {}
        for section_name in _SECTIONS:
            section_config = getattr(self, section_name)
            section_sources = self._tracker.sources.get(section_name, {})
            result[section_name] = [
                ConfigEntry(
                    name=f.name,
                    value=getattr(section_config, f.name),
                    source=section_sources.get(f.name, "default"),
                )
                for f in fields(section_config)
            ]
        return result


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _GRAW:
    """
    Singleton for client configuration.

    Use `GRAW.configure()` to customize settings and `GRAW.config`
    to access current configuration.

    Example:
        >>> from grawpy import GRAW
        >>> GRAW.configure(auth={"client_id": "..."})
        >>> print(GRAW.config.client.request_timeout)
    """

    def __init__(self) -> None:
        self._config: GrawConfig = GrawConfig().with_env_vars()

    def configure(
        self,
        *,
        auth: dict[str, Any] | None = None,
        client: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
        parser: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> GrawConfig:
        """
        Configure client settings.

        Call at application startup to customize defaults. Updates the
        internal configuration and returns the configured instance.

        Args:
            auth: Auth config overrides (client_id, client_secret, username, ...).
            client: Client config overrides (base_url, request_timeout, ...).
            rate_limit: Rate limit overrides (enabled, requests_per_minute, burst, threshold).
            parser: Parser overrides (max_depth).
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, ignores env vars entirely.

        Returns:
            The configured GrawConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.

        Precedence:
            GRAW.configure() > ENV vars > defaults
        """
        base = GrawConfig()
        if allow_env_override:
            base = base.with_env_vars()

        self._config = base.with_section_overrides(
            auth=auth,
            client=client,
            rate_limit=rate_limit,
            parser=parser,
        )

        return self.validate()

    @property
    def config(self) -> GrawConfig:
        """Access current configuration (read-only)."""
        return self._config

    def reset(self) -> GrawConfig:
        """
        Reset configuration to defaults + env vars.

        Useful for testing to ensure clean state between tests.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config = GrawConfig().with_env_vars()
        return self.validate()

    def validate(self) -> GrawConfig:
        """
        Validate current configuration.

        Called automatically on module load and after configure().

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config.auth.validate()
        self._config.client.validate()
        self._config.rate_limit.validate()
        self._config.parser.validate()
        return self._config

    def explain(
        self,
        output: Callable[[str], None] = print,
    ) -> None:
        """
        Print current configuration with sources.

        Args:
            output: Callable to output each line. Defaults to print.
                    Can be used with logging: `GRAW.explain(logger.info)`

        Example:
            >>> GRAW.explain()
            GRAW Configuration:
            ====================
            [client]
              base_url .......... https://oauth.reddit.com/   default
              request_timeout ... 60                        ✎ configure
            ...
        """
        name_width = 25
        value_width = 50
        total_width = 2 + name_width + 2 + (value_width + 2) + 1 + 8

        output("GRAW Configuration:")
        output("=" * total_width)

        output(f"  {'Field':<{name_width}} │ {'Value':<{value_width}} │ Source")
        output(f"--{'-' * name_width}-+{'-' * (value_width + 2)}+--------")

        for section_name, entries in self._config.explain_data().items():
            output(f"[{section_name}]")
            for entry in entries:
                dots = "." * (name_width - len(entry.name))
                value_padded = entry.formatted_value.ljust(value_width)
                marker = "✎" if entry.source != "default" else " "
                output(f"  {entry.name} {dots} {value_padded} {marker} {entry.source}")

        output("=" * total_width)

    def __repr__(self) -> str:
        return f"GRAW(config={self._config!r})"


# Global singleton instance - always reflects current configuration
GRAW: _GRAW = _GRAW()
GRAW.validate()  # Validate defaults + env vars on module load
