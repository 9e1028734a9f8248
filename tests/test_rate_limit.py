"""Tests for the fixed-window rate limiter."""

import time

import pytest
from starlette.requests import Request

from vaultx.core.exceptions import RateLimitExceededError
from vaultx.core.rate_limit import (
    RateLimiter,
    admin_rate_limiter,
    get_client_key,
    login_rate_limiter,
    public_event_rate_limiter,
    sensitive_operation_rate_limiter,
)


def make_request(headers=None, client=("10.0.0.9", 1234)):
    raw = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "client": client})


class TestRateLimiter:
    """Test request counting per window."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter("t", "3/minute")
        assert [limiter.check("a") for _ in range(3)] == [2, 1, 0]

    def test_rejects_overflow_with_retry_after(self):
        limiter = RateLimiter("t", "2/minute", message="Slow down")
        limiter.check("a")
        limiter.check("a")

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.check("a")

        error = exc_info.value
        assert error.status_code == 429
        assert error.message == "Slow down"
        assert 1 <= error.details["retry_after"] <= 60

    def test_clients_are_independent(self):
        limiter = RateLimiter("t", "1/minute")
        limiter.check("a")
        assert limiter.check("b") == 0

    def test_window_resets_after_expiry(self):
        limiter = RateLimiter("t", "1/second")
        limiter.check("a")
        time.sleep(1.1)
        assert limiter.check("a") == 0

    def test_reset_clears_windows(self):
        limiter = RateLimiter("t", "1/minute")
        limiter.check("a")
        limiter.reset()
        assert limiter.check("a") == 0

    def test_limiters_do_not_share_counters(self):
        first = RateLimiter("same", "1/minute")
        second = RateLimiter("same", "1/minute")
        first.check("a")
        assert second.check("a") == 0

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            RateLimiter("t", "0/minute")
        with pytest.raises(ValueError):
            RateLimiter("t", "lots per fortnight")

    def test_presets(self):
        assert (admin_rate_limiter.max_requests, admin_rate_limiter.window_seconds) == (100, 900)
        assert (login_rate_limiter.max_requests, login_rate_limiter.window_seconds) == (5, 900)
        assert (sensitive_operation_rate_limiter.max_requests, sensitive_operation_rate_limiter.window_seconds) == (10, 3600)
        assert (public_event_rate_limiter.max_requests, public_event_rate_limiter.window_seconds) == (60, 60)

class TestClientKey:
    """Test caller identification."""

    def test_forwarded_for_first_hop(self):
        request = make_request({"X-Forwarded-For": "1.2.3.4, 10.0.0.1"})
        assert get_client_key(request) == "1.2.3.4"

    def test_real_ip(self):
        assert get_client_key(make_request({"X-Real-IP": " 5.6.7.8 "})) == "5.6.7.8"

    def test_socket_peer(self):
        assert get_client_key(make_request()) == "10.0.0.9"

    def test_unknown(self):
        assert get_client_key(make_request(client=None)) == "unknown"
