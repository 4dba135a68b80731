"""Tests for RateGate and RateLimitedHttpClient."""

import logging
import threading
import time
from unittest.mock import MagicMock

import pytest
from requests.structures import CaseInsensitiveDict

from grawpy import GrawError, HttpClient, RateGate, RateLimitCancelledError, RateLimitedHttpClient
from grawpy._config import RateLimitConfig
from grawpy._rate_limit import MAX_DEFER_SECONDS


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def headers(**values):
    names = {
        "retry_after": "Retry-After",
        "remaining": "X-RateLimit-Remaining",
        "reset": "X-RateLimit-Reset",
        "used": "X-RateLimit-Used",
    }
    return CaseInsensitiveDict({names[k]: str(v) for k, v in values.items()})


# =============================================================================
# RateLimitCancelledError
# =============================================================================


class TestRateLimitCancelledError:
    def test_exposes_waited(self):
        error = RateLimitCancelledError(waited=1.5)

        assert error.waited == 1.5
        assert "1.50s" in str(error)
        assert isinstance(error, GrawError)


# =============================================================================
# Construction
# =============================================================================


class TestRateGateInit:
    def test_rate_from_requests_per_minute(self):
        assert RateGate(requests_per_minute=600).rate == pytest.approx(10.0)

    def test_rate_never_below_one_per_second(self):
        assert RateGate(requests_per_minute=30).rate == 1.0

    def test_from_config(self):
        gate = RateGate.from_config(RateLimitConfig(requests_per_minute=120, burst=4, threshold=2))

        assert gate.rate == pytest.approx(2.0)
        assert gate.burst == 4
        assert gate.threshold == 2

    @pytest.mark.parametrize(
        "kwargs",
        [{"requests_per_minute": 0}, {"burst": 0}, {"threshold": -1}],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(AssertionError):
            RateGate(**kwargs)


# =============================================================================
# Observe
# =============================================================================


class TestObserve:
    def test_exhausted_budget_waits_for_reset(self):
        """Should defer by the full reset window when nothing remains."""
        gate = RateGate(clock=FakeClock())

        gate.observe(headers(remaining=0, reset=10))

        assert gate.forced_delay_remaining() == pytest.approx(10.0)

    def test_low_budget_spreads_requests(self):
        """Should defer by reset * 1.1 / remaining below the threshold."""
        gate = RateGate(clock=FakeClock())

        gate.observe(headers(remaining=1, reset=10))

        assert gate.forced_delay_remaining() == pytest.approx(11.0)

    def test_budget_above_threshold_is_ignored(self):
        gate = RateGate(threshold=5, clock=FakeClock())

        gate.observe(headers(remaining=5, reset=10))

        assert gate.forced_until == 0.0

    def test_retry_after(self):
        gate = RateGate(clock=FakeClock())

        gate.observe(headers(retry_after=7))

        assert gate.forced_delay_remaining() == pytest.approx(7.0)

    def test_retry_after_and_budget_later_wins(self):
        """Should keep the later of the two deadlines."""
        gate = RateGate(clock=FakeClock())

        gate.observe(headers(retry_after=3, remaining=0, reset=20))

        assert gate.forced_delay_remaining() == pytest.approx(20.0)

    def test_unparseable_headers_are_ignored(self):
        gate = RateGate(clock=FakeClock())

        gate.observe(CaseInsensitiveDict({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT", "X-RateLimit-Remaining": "abc"}))
        gate.observe(None)

        assert gate.forced_until == 0.0

    def test_header_names_are_case_insensitive(self):
        gate = RateGate(clock=FakeClock())

        gate.observe(CaseInsensitiveDict({"x-ratelimit-remaining": "0", "x-ratelimit-reset": "4"}))

        assert gate.forced_delay_remaining() == pytest.approx(4.0)

    def test_defer_logs(self, caplog):
        gate = RateGate(clock=FakeClock())

        with caplog.at_level(logging.INFO):
            gate.observe(headers(retry_after=2))

        assert "Requests deferred" in caplog.text
        assert "reason=retry_after" in caplog.text

    def test_huge_retry_after_is_clamped(self, caplog):
        """Should cap an absurd Retry-After instead of failing."""
        gate = RateGate(clock=FakeClock())

        with caplog.at_level(logging.INFO):
            gate.observe(headers(retry_after="1e12"))

        assert gate.forced_delay_remaining() == pytest.approx(MAX_DEFER_SECONDS)
        assert "Clamping requested delay" in caplog.text
        assert "Requests deferred" in caplog.text

    def test_huge_reset_is_clamped(self):
        gate = RateGate(clock=FakeClock())

        gate.observe(headers(remaining=0, reset="1e300"))

        assert gate.forced_until == pytest.approx(100.0 + MAX_DEFER_SECONDS)


class TestDefer:
    def test_earlier_deadline_does_not_shorten(self):
        """Should never move the deadline earlier."""
        clock = FakeClock()
        gate = RateGate(clock=clock)

        assert gate.defer(10.0, "retry_after") is True
        assert gate.defer(5.0, "retry_after") is False

        assert gate.forced_until == pytest.approx(110.0)

    def test_non_positive_delay_is_ignored(self):
        gate = RateGate(clock=FakeClock())

        assert gate.defer(0.0, "retry_after") is False
        assert gate.forced_until == 0.0

    def test_concurrent_defers_keep_the_latest(self):
        """Should end at the latest deadline regardless of thread interleaving."""
        gate = RateGate(clock=FakeClock(now=100.0))
        barrier = threading.Barrier(3)

        def defer(seconds):
            barrier.wait()
            gate.defer(seconds, "retry_after")

        threads = [threading.Thread(target=defer, args=(s,)) for s in (0.020, 0.005, 0.040)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert gate.forced_until == pytest.approx(100.040)


# =============================================================================
# Acquire
# =============================================================================


class TestAcquire:
    def test_burst_is_served_immediately(self):
        gate = RateGate(requests_per_minute=60, burst=3, clock=FakeClock())

        for _ in range(3):
            gate.acquire()

    def test_preset_cancel(self):
        """Should fail fast when already cancelled."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(RateLimitCancelledError) as exc_info:
            RateGate().acquire(cancel)

        assert exc_info.value.waited == 0.0

    def test_forced_delay_blocks_until_deadline(self):
        """Should wait for the deadline and then clear it."""
        gate = RateGate()
        gate.defer(0.05, "retry_after")

        start = time.monotonic()
        gate.acquire()

        assert time.monotonic() - start >= 0.04
        assert gate.forced_until == 0.0

    def test_cancel_during_forced_delay(self):
        """Should stop waiting once cancelled and keep the deadline."""
        gate = RateGate()
        gate.defer(5.0, "retry_after")
        cancel = threading.Event()
        timer = threading.Timer(0.05, cancel.set)
        timer.start()

        try:
            start = time.monotonic()
            with pytest.raises(RateLimitCancelledError) as exc_info:
                gate.acquire(cancel)
        finally:
            timer.cancel()

        assert time.monotonic() - start < 2.0
        assert exc_info.value.waited > 0.0
        assert gate.forced_delay_remaining() > 0.0

    def test_cancel_while_waiting_for_token(self):
        """Should stop waiting for a bucket token once cancelled."""
        gate = RateGate(requests_per_minute=60, burst=1)
        gate.acquire()
        cancel = threading.Event()
        timer = threading.Timer(0.05, cancel.set)
        timer.start()

        try:
            with pytest.raises(RateLimitCancelledError):
                gate.acquire(cancel)
        finally:
            timer.cancel()


# =============================================================================
# RateLimitedHttpClient
# =============================================================================


class TestRateLimitedHttpClient:
    def _delegate(self, response_headers=None, status_code=200):
        delegate = MagicMock(spec=HttpClient)
        response = MagicMock(status_code=status_code, headers=CaseInsensitiveDict(response_headers or {}))
        delegate.get.return_value = response
        delegate.post.return_value = response
        return delegate

    def test_get_delegates_with_arguments(self):
        delegate = self._delegate()
        client = RateLimitedHttpClient(delegate, gate=RateGate(clock=FakeClock()))
        cancel = threading.Event()

        response = client.get("https://oauth.reddit.com/r/python/hot", params={"limit": 5}, timeout=10, cancel=cancel)

        assert response is delegate.get.return_value
        delegate.get.assert_called_once_with(
            "https://oauth.reddit.com/r/python/hot",
            params={"limit": 5},
            headers=None,
            timeout=10,
            cancel=cancel,
        )

    def test_observes_error_responses(self):
        """Should feed rate-limit headers back even for failed responses."""
        delegate = self._delegate({"Retry-After": "3"}, status_code=500)
        gate = RateGate(clock=FakeClock())
        client = RateLimitedHttpClient(delegate, gate=gate)

        client.post("https://oauth.reddit.com/api/morechildren", data={"api_type": "json"})

        assert gate.forced_delay_remaining() == pytest.approx(3.0)

    def test_huge_retry_after_keeps_response(self):
        """Should return the delegate's response when Retry-After is absurdly large."""
        delegate = self._delegate({"Retry-After": "1e12"})
        gate = RateGate(clock=FakeClock())
        client = RateLimitedHttpClient(delegate, gate=gate)

        response = client.get("https://oauth.reddit.com/api/v1/me")

        assert response is delegate.get.return_value
        assert gate.forced_delay_remaining() == pytest.approx(MAX_DEFER_SECONDS)

    def test_cancelled_request_never_reaches_delegate(self):
        delegate = self._delegate()
        client = RateLimitedHttpClient(delegate, gate=RateGate(clock=FakeClock()))
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(RateLimitCancelledError):
            client.get("https://oauth.reddit.com/api/v1/me", cancel=cancel)

        delegate.get.assert_not_called()

    def test_requires_delegate(self):
        with pytest.raises(AssertionError, match="Delegate HTTP client is required"):
            RateLimitedHttpClient(None)  # type: ignore[arg-type]
