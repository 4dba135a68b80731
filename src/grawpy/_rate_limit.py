"""
Rate limiting components for the grawpy client.

Reddit meters OAuth clients per access token and reports the remaining
budget on every response. RateGate combines two controls in front of each
request:

- Token Bucket: steady-state rate (`requests_per_minute`) with `burst` capacity.
- Forced delay: a deadline fed by the server's Retry-After and X-RateLimit-*
  headers. Every request waits until the deadline has passed. The deadline
  only ever moves later: concurrent responses merge with "later value wins".

Available implementations:
    - RateGate: The limiter itself.
    - RateLimitedHttpClient: HttpClient decorator that passes every request
      through a RateGate and feeds it every response's headers.

Example:
    >>> from grawpy._rate_limit import RateGate, RateLimitedHttpClient
    >>> client = RateLimitedHttpClient(
    ...     delegate=StandaloneHttpClient(auth, user_agent),
    ...     gate=RateGate(requests_per_minute=600, burst=5),
    ... )
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, override

import requests

from grawpy._errors import GrawError
from grawpy._http import HttpClient
from grawpy._utils import parse_float_header

if TYPE_CHECKING:
    from grawpy._config import RateLimitConfig

logger = logging.getLogger(__name__)

HEADER_RETRY_AFTER = "Retry-After"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"

# Spread the remaining budget with a 10% margin
PROACTIVE_SAFETY_FACTOR = 1.1

# Longest forced delay honoured from a single response
MAX_DEFER_SECONDS = 24 * 60 * 60.0


# =============================================================================
# Exceptions
# =============================================================================


class RateLimitCancelledError(GrawError):
    """
    Raised when the caller cancels a request while it waits on the RateGate.

    The request never reached the network.

    Attributes:
        waited: Time in seconds spent waiting before the cancellation.

    Example:
        >>> cancel = threading.Event()
        >>> try:
        ...     client.get_hot(cancel=cancel)
        ... except RateLimitCancelledError as e:
        ...     print(f"Gave up after {e.waited:.1f}s")
    """

    def __init__(self, waited: float):
        self.waited = waited
        super().__init__(f"Rate limit wait cancelled after {waited:.2f}s")


# =============================================================================
# Forced-delay deadline
# =============================================================================


class _Deadline:
    """
    A clock reading with compare-and-set semantics.

    Reads are plain attribute loads. Writes go through `compare_and_set`,
    which only succeeds if the value is still the one the writer read.
    0.0 means "no deadline".
    """

    def __init__(self) -> None:
        self._value = 0.0
        self._lock = threading.Lock()

    def load(self) -> float:
        return self._value

    def compare_and_set(self, expected: float, new: float) -> bool:
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True

    def extend_to(self, until: float) -> bool:
        """Move the deadline to `until` unless it is already at or past it."""
        while True:
            current = self.load()
            if until <= current:
                return False
            if self.compare_and_set(current, until):
                return True


# =============================================================================
# RateGate
# =============================================================================


class RateGate:
    """
    Token bucket limiter with a server-fed forced-delay gate.

    `acquire()` blocks until the forced-delay deadline has passed and a
    bucket token is available. `observe()` reads the rate-limit headers of a
    response and pushes the deadline later when the server asks for it:

    - ``Retry-After: S`` defers every request by S seconds.
    - ``X-RateLimit-Remaining: N`` below `threshold` with
      ``X-RateLimit-Reset: R`` defers by ``R * 1.1 / N``, or by R when N is 0.

    Both waits honour the caller's cancellation event. A cancelled acquire
    raises RateLimitCancelledError and leaves the gate state untouched.

    Args:
        requests_per_minute: Sustained rate; the bucket refills at
            `requests_per_minute / 60` tokens per second, at least 1.
        burst: Bucket capacity.
        threshold: Remaining-budget level below which requests are spread.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        requests_per_minute: int = 1000,
        burst: int = 10,
        threshold: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        assert requests_per_minute is not None, "requests_per_minute cannot be None."
        assert requests_per_minute > 0, "requests_per_minute must be greater than 0."
        assert burst is not None, "burst cannot be None."
        assert burst >= 1, "burst must be at least 1."
        assert threshold is not None, "threshold cannot be None."
        assert threshold >= 0, "threshold must be >= 0."

        self.requests_per_minute = requests_per_minute
        self.burst = burst
        self.threshold = threshold
        self.rate = max(requests_per_minute / 60.0, 1.0)
        self._clock = clock

        # Token bucket state
        self._tokens = float(burst)
        self._last_refill = clock()
        self._lock = threading.Lock()

        self._forced_until = _Deadline()
        self._never = threading.Event()

    @classmethod
    def from_config(cls, config: RateLimitConfig | None = None) -> RateGate:
        """Create a gate from `GRAW.config.rate_limit` when no config is given."""
        if config is None:
            from grawpy._config import GRAW

            config = GRAW.config.rate_limit
        return cls(
            requests_per_minute=config.requests_per_minute,
            burst=config.burst,
            threshold=config.threshold,
        )

    # -------------------------------------------------------------------------
    # Acquire
    # -------------------------------------------------------------------------

    def acquire(self, cancel: threading.Event | None = None) -> None:
        """
        Block until the request may be sent.

        Raises:
            RateLimitCancelledError: If `cancel` is set before or while waiting.
        """
        start = self._clock()
        if cancel is not None and cancel.is_set():
            raise RateLimitCancelledError(waited=0.0)

        self._wait_forced_delay(cancel, start)
        self._acquire_token(cancel, start)

    def _wait_forced_delay(self, cancel: threading.Event | None, start: float) -> None:
        while True:
            until = self._forced_until.load()
            if until == 0.0:
                return
            now = self._clock()
            if now >= until:
                # Clear only the deadline we saw; a later one set meanwhile is kept
                if self._forced_until.compare_and_set(until, 0.0):
                    return
                continue
            self._sleep(until - now, cancel, start)

    def _acquire_token(self, cancel: threading.Event | None, start: float) -> None:
        while True:
            with self._lock:
                now = self._clock()
                # Refill tokens based on elapsed time
                elapsed_since_refill = max(0.0, now - self._last_refill)
                self._tokens = min(float(self.burst), self._tokens + elapsed_since_refill * self.rate)
                self._last_refill = now

                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return

                # Calculate wait time for next token
                wait_time = (1.0 - self._tokens) / self.rate

            # Sleep outside the lock to allow other threads to proceed
            self._sleep(wait_time, cancel, start)

    def _sleep(self, seconds: float, cancel: threading.Event | None, start: float) -> None:
        event = cancel if cancel is not None else self._never
        if event.wait(seconds):
            raise RateLimitCancelledError(waited=max(0.0, self._clock() - start))

    # -------------------------------------------------------------------------
    # Observe
    # -------------------------------------------------------------------------

    def observe(self, headers: Mapping[str, Any] | None) -> None:
        """Update the forced delay from a response's rate-limit headers."""
        if not headers:
            return

        retry_after = parse_float_header(headers, HEADER_RETRY_AFTER)
        if retry_after is not None and retry_after > 0:
            self.defer(retry_after, "retry_after")

        remaining = parse_float_header(headers, HEADER_REMAINING)
        reset = parse_float_header(headers, HEADER_RESET)
        if remaining is None or reset is None or remaining >= self.threshold:
            return

        if remaining > 0:
            self.defer(reset * PROACTIVE_SAFETY_FACTOR / remaining, "proactive_ratelimit")
        else:
            self.defer(reset, "ratelimit_exhausted")

    def defer(self, seconds: float, reason: str) -> bool:
        """
        Push the forced-delay deadline to `now + seconds` if that is later.

        Delays longer than MAX_DEFER_SECONDS are clamped to it.

        Returns:
            True if the deadline moved, False if an equal or later one was
            already in place.
        """
        if seconds <= 0:
            return False
        if seconds > MAX_DEFER_SECONDS:
            logger.warning(f"Clamping requested delay of {seconds:.0f}s ({reason}) to {MAX_DEFER_SECONDS:.0f}s")
            seconds = MAX_DEFER_SECONDS

        until = self._clock() + seconds
        if not self._forced_until.extend_to(until):
            return False

        wall_until = datetime.fromtimestamp(time.time() + seconds, tz=UTC)
        logger.info(
            f"Requests deferred: delay={seconds:.3f}s until={wall_until.isoformat()} reason={reason}"
        )
        return True

    @property
    def forced_until(self) -> float:
        """Current deadline on the gate's clock, or 0.0 when none is set."""
        return self._forced_until.load()

    def forced_delay_remaining(self) -> float:
        until = self._forced_until.load()
        if until == 0.0:
            return 0.0
        return max(0.0, until - self._clock())


# =============================================================================
# HttpClient decorator
# =============================================================================


class RateLimitedHttpClient(HttpClient):
    """
    HTTP client decorator that throttles requests through a RateGate.

    Every request acquires the gate before being delegated, and every
    response, whatever its status, is fed back to `gate.observe()`.

    Example:
        >>> client = RateLimitedHttpClient(
        ...     delegate=StandaloneHttpClient(auth, "python:app:v1"),
        ...     gate=RateGate(requests_per_minute=60, burst=1),
        ... )

    Args:
        delegate: The underlying HTTP client to delegate requests to.
        gate: The rate gate; one built from GRAW.config when omitted.
    """

    def __init__(self, delegate: HttpClient, gate: RateGate | None = None):
        assert delegate is not None, "Delegate HTTP client is required."

        self.delegate = delegate
        self.gate = gate or RateGate.from_config()

    @override
    def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cancel: threading.Event | None = None,
    ) -> requests.Response:
        self.gate.acquire(cancel)
        response = self.delegate.get(url, params=params, headers=headers, timeout=timeout, cancel=cancel)
        self.gate.observe(response.headers)
        return response

    @override
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cancel: threading.Event | None = None,
    ) -> requests.Response:
        self.gate.acquire(cancel)
        response = self.delegate.post(url, data=data, headers=headers, timeout=timeout, cancel=cancel)
        self.gate.observe(response.headers)
        return response
