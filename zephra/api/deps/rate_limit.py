"""Rate limit enforcement for route handlers."""

from fastapi import Request

from zephra.core.audit_log import SecurityEventType, SecuritySeverity, log_security_event
from zephra.core.exceptions import RateLimitError
from zephra.core.rate_limit import RateLimitConfig, RateLimitResult, rate_limiter


async def enforce_rate_limit(
    request: Request,
    identifier: str,
    config: RateLimitConfig,
) -> RateLimitResult:
    """Count the request and raise 429 when over the limit, auditing the rejection."""
    try:
        return rate_limiter.enforce(identifier, config)
    except RateLimitError:
        await log_security_event(
            SecurityEventType.RATE_LIMIT_EXCEEDED,
            SecuritySeverity.MEDIUM,
            f"Rate limit exceeded for {identifier}",
            request,
            {"limit": config.requests, "window_seconds": config.window_seconds},
        )
        raise
