"""Rate limiting utilities for public endpoints.

Fixed-window counters stored in the injected key-value store. Each
identifier (client ip, ip + user agent for webhooks) gets one counter per
window; the counter expires with its window.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request

from zephra.config import settings
from zephra.core.exceptions import RateLimitError
from zephra.core.kv_store import KeyValueStore, get_kv_store


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests: int  # Maximum requests allowed per window
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: int  # Epoch seconds when the current window ends

    @property
    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


DEFAULT_LIMIT = RateLimitConfig(
    requests=settings.rate_limit_default_requests,
    window_seconds=settings.rate_limit_window_seconds,
)
WEBHOOK_LIMIT = RateLimitConfig(
    requests=settings.rate_limit_webhook_requests,
    window_seconds=settings.rate_limit_window_seconds,
)
CHECKOUT_LIMIT = RateLimitConfig(
    requests=settings.rate_limit_checkout_requests,
    window_seconds=settings.rate_limit_window_seconds,
)


def get_client_ip(request: Request) -> str:
    """Best-effort client ip: first X-Forwarded-For hop, then X-Real-IP, then the socket."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client:
        return request.client.host
    return "unknown"


class RateLimiter:
    """Fixed-window rate limiter backed by a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> KeyValueStore:
        return self._store if self._store is not None else get_kv_store()

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count this request against the identifier's current window."""
        now = self._clock()
        window_start = int(now // config.window_seconds) * config.window_seconds
        reset = window_start + config.window_seconds

        key = f"rate_limit:{identifier}:{window_start}"
        count = self.store.increment(key, ttl_seconds=config.window_seconds)

        if count > config.requests:
            return RateLimitResult(success=False, limit=config.requests, remaining=0, reset=reset)

        return RateLimitResult(
            success=True,
            limit=config.requests,
            remaining=max(0, config.requests - count),
            reset=reset,
        )

    def enforce(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Check the limit and raise RateLimitError (429) when it is exceeded."""
        result = self.check(identifier, config)
        if not result.success:
            retry_after = max(1, int(result.reset - self._clock()))
            raise RateLimitError(
                f"Rate limit exceeded. Try again in {retry_after} seconds.",
                context={"identifier": identifier},
                headers={"Retry-After": str(retry_after), **result.headers},
            )
        return result


def webhook_identifier(request: Request) -> str:
    user_agent = request.headers.get("user-agent", "unknown")
    return f"webhook:{get_client_ip(request)}:{user_agent[:50]}"


# Singleton instance for application-wide use
rate_limiter = RateLimiter()
