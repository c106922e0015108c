"""Stripe webhook endpoint."""

import logging

from fastapi import APIRouter, Request, status

from zephra.api.deps import DbSession
from zephra.api.deps.rate_limit import enforce_rate_limit
from zephra.config import settings
from zephra.core.audit_log import (
    SecurityEventType,
    SecuritySeverity,
    log_security_event,
    log_webhook_event,
)
from zephra.core.exceptions import AppError, ValidationError, WebhookProcessingError
from zephra.core.rate_limit import WEBHOOK_LIMIT, webhook_identifier
from zephra.core.saga import transaction_manager
from zephra.services.webhooks import dispatch, parse_event, verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

MAX_BODY_SIZE = 1024 * 1024  # 1 MiB


async def _read_body(request: Request) -> bytes:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_BODY_SIZE:
        raise ValidationError("Payload too large", status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
    body = await request.body()
    if len(body) > MAX_BODY_SIZE:
        raise ValidationError("Payload too large", status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
    return body


@router.post("/webhooks/stripe")
@router.post("/stripe/webhook")
async def handle_stripe_webhook(
    request: Request,
    db: DbSession,
) -> dict[str, bool]:
    """
    Handle Stripe webhook events.

    No authentication required (verified by Stripe signature). The raw body
    is verified before anything is parsed. Handler failures answer 500 so
    Stripe retries the delivery.
    """
    await enforce_rate_limit(request, webhook_identifier(request), WEBHOOK_LIMIT)

    if not settings.stripe_webhook_secret:
        await log_security_event(
            SecurityEventType.SUSPICIOUS_REQUEST,
            SecuritySeverity.CRITICAL,
            "Missing webhook secret configuration",
            request,
            {"path": request.url.path},
        )
        raise AppError("Webhook not configured")

    payload = await _read_body(request)
    raw_event = await verify_webhook_signature(
        payload, request.headers.get("stripe-signature"), request
    )

    event_type = str(raw_event.get("type", ""))
    event_id = str(raw_event.get("id", ""))
    await log_webhook_event(
        event_type,
        True,
        request,
        {
            "event_id": event_id,
            "livemode": raw_event.get("livemode"),
            "api_version": raw_event.get("api_version"),
        },
    )

    event = parse_event(raw_event)
    try:
        await transaction_manager.execute_with_rollback(
            f"webhook:{event_id}",
            lambda: dispatch(db, event, request),
            rollback=db.rollback,
        )
        await db.commit()
    except Exception as e:
        logger.error(f"Error processing {event_type} ({event_id}): {e}")
        await log_webhook_event(event_type, False, request, {"event_id": event_id, "error": str(e)})
        raise WebhookProcessingError(event_type, context={"event_id": event_id, "cause": str(e)}) from e

    return {"received": True}
