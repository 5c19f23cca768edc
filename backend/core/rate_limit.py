"""
Fixed-window request counter keyed by client address.

Counts live in a thread-safe TTL cache whose TTL equals the window, so a
client's entry disappears when its window ends. State is per process and
resets on restart.
"""

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

from cachetools import TTLCache
from fastapi import Request

from core.error_handlers import handle_analysis_error
from core.errors import RateLimited

# Maximum number of distinct clients tracked at once
RATE_LIMIT_MAX_CLIENTS = 10000

RATE_LIMITED_PATHS = ("/analyze",)


@dataclass
class _Window:
    started_at: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # whole seconds until the window resets

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_after)
        return headers


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        max_clients: int = RATE_LIMIT_MAX_CLIENTS,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._timer = timer
        self._windows: TTLCache = TTLCache(maxsize=max_clients, ttl=window_seconds, timer=timer)
        self._lock = Lock()

    def hit(self, key: str) -> RateLimitDecision:
        """
        Count one request for the given client key.

        Args:
            key: Client identifier, usually the IP address

        Returns:
            The admission decision for this request
        """
        with self._lock:
            now = self._timer()
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                window = _Window(started_at=now)
                self._windows[key] = window

            # Mutate in place; re-assigning would restart the TTL
            window.count += 1

            reset_after = max(0, math.ceil(window.started_at + self.window_seconds - now))
            return RateLimitDecision(
                allowed=window.count <= self.max_requests,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - window.count),
                reset_after=reset_after,
            )

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one client's window, or every window when no key is given."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


def get_client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """Extract client IP from request"""
    if trust_forwarded_for:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request) -> None:
    """Admit or reject the request against the app's limiter."""
    limiter: Optional[FixedWindowRateLimiter] = request.app.state.rate_limiter
    if limiter is None:
        return

    settings = request.app.state.settings
    decision = limiter.hit(get_client_ip(request, settings.TRUST_FORWARDED_FOR))
    if not decision.allowed:
        raise RateLimited(headers=decision.headers())


async def rate_limit_middleware(request: Request, call_next):
    """
    Count POST /analyze before its body is read, so malformed bodies are throttled too.

    Runs outside FastAPI's exception handling, so a rejection is rendered here.
    """
    if request.method == "POST" and request.url.path in RATE_LIMITED_PATHS:
        try:
            enforce_rate_limit(request)
        except RateLimited as exc:
            return await handle_analysis_error(request, exc)
    return await call_next(request)
