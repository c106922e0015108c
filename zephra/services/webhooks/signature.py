import logging
from typing import Any

from fastapi import Request

from zephra.core.audit_log import SecurityEventType, SecuritySeverity, log_security_event
from zephra.core.exceptions import SignatureInvalidError
from zephra.core.rate_limit import get_client_ip
from zephra.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)


async def verify_webhook_signature(
    payload: bytes,
    signature: str | None,
    request: Request | None = None,
) -> dict[str, Any]:
    """
    Verify a Stripe webhook against the raw request body.

    The payload must be the exact bytes received; re-serialized JSON will
    not verify. On failure a security event (source ip, path) is recorded
    before SignatureInvalidError is raised.
    """
    if not signature:
        await _record_failure("Missing Stripe signature header", request)
        raise SignatureInvalidError("Missing signature")

    try:
        return stripe_service.construct_webhook_event(payload, signature)
    except SignatureInvalidError as e:
        await _record_failure(f"Webhook signature verification failed: {e.message}", request)
        raise


async def _record_failure(message: str, request: Request | None) -> None:
    metadata: dict[str, Any] = {}
    if request is not None:
        metadata = {"source_ip": get_client_ip(request), "path": request.url.path}
    await log_security_event(
        SecurityEventType.WEBHOOK_SIGNATURE_INVALID,
        SecuritySeverity.HIGH,
        message,
        request,
        metadata,
    )
