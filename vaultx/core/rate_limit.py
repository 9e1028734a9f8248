"""Fixed-window in-memory rate limiting backed by the ``limits`` package."""

import math
import time
from typing import List, Optional
from fastapi import Request
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from .exceptions import RateLimitExceededError
from .logging import get_logger

logger = get_logger(__name__)


def get_client_key(request: Request) -> str:
    """Identify the caller by forwarded IP, real IP or socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimiter:
    """
    Counts requests per client in fixed windows and rejects overflow.

    ``limit`` uses the limits string notation, e.g. ``"100/15 minutes"``.
    Every limiter owns its storage so presets never share counters.
    """

    def __init__(self, name: str, limit: str, message: str = "Too many requests"):
        self.item = parse(limit)
        if self.item.amount < 1:
            raise ValueError(f"Rate limit '{limit}' must allow at least one request")

        self.name = name
        self.message = message
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    @property
    def max_requests(self) -> int:
        return self.item.amount

    @property
    def window_seconds(self) -> int:
        return self.item.get_expiry()

    def check(self, client_key: str) -> int:
        """
        Record one request for the client.

        Args:
            client_key: Caller identity (usually an IP address)

        Returns:
            Requests remaining in the current window

        Raises:
            RateLimitExceededError: If the client has used up its window
        """
        if not self.strategy.hit(self.item, self.name, client_key):
            stats = self.strategy.get_window_stats(self.item, self.name, client_key)
            retry_after = max(math.ceil(stats.reset_time - time.time()), 1)
            logger.warning(
                f"Rate limit '{self.name}' exceeded for {client_key} ({self.item})"
            )
            raise RateLimitExceededError(self.message, retry_after=retry_after, client_key=client_key)

        return self.strategy.get_window_stats(self.item, self.name, client_key).remaining

    def reset(self):
        """Forget all windows (mainly for testing)."""
        self.storage.reset()

    async def __call__(self, request: Request) -> None:
        """FastAPI dependency entry point."""
        self.check(get_client_key(request))


admin_rate_limiter = RateLimiter(
    "admin", "100/15 minutes",
    message="Too many admin requests. Please try again later."
)

login_rate_limiter = RateLimiter(
    "login", "5/15 minutes",
    message="Too many login attempts. Please try again later."
)

sensitive_operation_rate_limiter = RateLimiter(
    "sensitive", "10/hour",
    message="Too many sensitive operations. Please try again later."
)

public_event_rate_limiter = RateLimiter(
    "public_event", "60/minute",
    message="Too many events. Please slow down."
)

_PRESETS: List[RateLimiter] = [
    admin_rate_limiter,
    login_rate_limiter,
    sensitive_operation_rate_limiter,
    public_event_rate_limiter,
]


def reset_rate_limiters(limiters: Optional[List[RateLimiter]] = None):
    """Reset the preset limiters (mainly for testing)."""
    for limiter in limiters or _PRESETS:
        limiter.reset()
