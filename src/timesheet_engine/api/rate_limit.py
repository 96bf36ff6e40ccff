"""In-memory sliding-window rate limiting for the email endpoints."""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Callable

from fastapi import Request

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."


class RateLimitExceeded(Exception):
    """Raised when a client has used up its window."""

    def __init__(self, client_ip: str):
        self.client_ip = client_ip
        super().__init__(RATE_LIMITED_MESSAGE)


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per client in any ``window`` seconds.

    State lives in process memory, so limits are per worker.
    """

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._hits: dict[str, list[float]] = defaultdict(list)

    def check(self, client_ip: str) -> bool:
        """Returns True if request is allowed, False if rate limited."""
        now = self._clock()
        window_start = now - self.window

        # Clean old entries
        recent = [t for t in self._hits[client_ip] if t > window_start]
        self._hits[client_ip] = recent

        if len(recent) >= self.max_requests:
            return False

        recent.append(now)
        return True


def get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For for proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """Dependency guarding a route with the app's limiter."""
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    client_ip = get_client_ip(request)
    if not limiter.check(client_ip):
        raise RateLimitExceeded(client_ip)
