"""
Utility functions for the grawpy client.

This module provides internal helper functions for reading rate-limit
headers and turning raw response bodies into envelopes. These functions are
not part of the public API and may change without notice.
"""

from __future__ import annotations

import io
import json
import logging
import math
from collections.abc import Mapping
from typing import Any

import ijson

from grawpy._errors import APIError, DecodeError

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 500
DEFAULT_MAX_NESTING = 512

_START_EVENTS = {"start_map": dict, "start_array": list}
_END_EVENTS = frozenset({"end_map", "end_array"})


def parse_float_header(headers: Mapping[str, str] | None, name: str) -> float | None:
    """
    Read a numeric header value.

    Args:
        headers: Response headers (case-insensitive mapping from requests).
        name: Header name.

    Returns:
        The value as a float, or None when the header is missing, empty or
        not a finite number.

    Example:
        >>> parse_float_header({"X-RateLimit-Remaining": "42.0"}, "X-RateLimit-Remaining")
        42.0
        >>> parse_float_header({}, "Retry-After") is None
        True
    """
    if not headers:
        return None
    raw = headers.get(name)
    if raw is None or not str(raw).strip():
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric header {name}: {raw!r}")
        return None
    if not math.isfinite(value):
        return None
    return value


def preview(content: bytes | str | None, limit: int = PREVIEW_LENGTH) -> str:
    """Return at most `limit` characters of a body, for logs and error messages."""
    if not content:
        return ""
    if isinstance(content, bytes):
        content = content[:limit].decode("utf-8", errors="replace")
    return content[:limit]


def decode_json_body(content: bytes, max_bytes: int, max_nesting: int = DEFAULT_MAX_NESTING) -> Any:
    """
    Parse a response body as JSON, refusing oversized input and pruning deep nesting.

    The body is read as a stream of ijson events and assembled without
    recursion. Arrays and objects nested deeper than `max_nesting` levels are
    left out of the result (an object loses the key, an array the element),
    so an adversarially deep body still yields its shallow part.

    Args:
        content: Raw response body.
        max_bytes: Largest accepted body size.
        max_nesting: Deepest array/object nesting kept; the outermost value
            is level 1.

    Raises:
        DecodeError: If the body is too large or not JSON.

    Example:
        >>> decode_json_body(b'{"a": {"b": [1]}, "c": 2}', max_bytes=100, max_nesting=2)
        {'a': {}, 'c': 2}
    """
    assert max_nesting > 0, "max_nesting must be greater than 0."

    if len(content) > max_bytes:
        raise DecodeError(f"response body of {len(content)} bytes exceeds limit of {max_bytes} bytes")
    try:
        payload, pruned = _build_bounded(content, max_nesting)
    except (ijson.JSONError, ValueError) as e:
        raise DecodeError(f"response body is not valid JSON: {e}", cause=e) from e

    if pruned:
        logger.warning(f"Pruned {pruned} JSON values nested deeper than {max_nesting} levels")
    return payload


def _build_bounded(content: bytes, max_nesting: int) -> tuple[Any, int]:
    root: Any = None
    containers: list[Any] = []
    keys: list[str | None] = []
    skipping = 0
    pruned = 0

    for event, value in ijson.basic_parse(io.BytesIO(content), use_float=True):
        if skipping:
            if event in _START_EVENTS:
                skipping += 1
            elif event in _END_EVENTS:
                skipping -= 1
            continue

        if event == "map_key":
            keys[-1] = value
            continue
        if event in _END_EVENTS:
            containers.pop()
            keys.pop()
            continue
        if event in _START_EVENTS:
            if len(containers) >= max_nesting:
                skipping = 1
                pruned += 1
                continue
            value = _START_EVENTS[event]()

        if not containers:
            root = value
        elif isinstance(containers[-1], list):
            containers[-1].append(value)
        else:
            containers[-1][keys[-1]] = value

        if event in _START_EVENTS:
            containers.append(value)
            keys.append(None)

    return root, pruned


def raise_for_error_object(payload: Any, status_code: int = 200) -> None:
    """
    Raise APIError when `payload` is a Reddit error object.

    Reddit reports some failures with a 200-class status and a body such as
    ``{"error": 403, "message": "Forbidden"}``.
    """
    if isinstance(payload, Mapping) and "error" in payload and "kind" not in payload:
        error = payload.get("error")
        message = payload.get("message") or payload.get("reason") or str(error)
        code = error if isinstance(error, int) and not isinstance(error, bool) else status_code
        raise APIError(code, str(message), body=preview(json.dumps(payload)), error=error)


def normalize_envelopes(payload: Any) -> list[Any]:
    """
    Normalize a decoded body into a list of envelopes.

    Post+comments endpoints answer with an array of two Listings, but some
    answer with a single Listing object; a lone object becomes a one-element
    list.

    Raises:
        APIError: If the body is a Reddit error object.
        DecodeError: If the body is neither an array nor an object.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        raise_for_error_object(payload)
        return [payload]
    raise DecodeError(f"expected a JSON array or object, got {type(payload).__name__}")


def is_timeout_exception(exc: Exception) -> bool:
    """
    Determine if an exception indicates a timeout condition.

    Supported timeout exceptions:
        - requests.Timeout: HTTP request timeout
        - TimeoutError: Python built-in
    """
    import requests

    return isinstance(exc, (requests.Timeout, TimeoutError))
