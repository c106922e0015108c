"""Route typed webhook events to exactly one reconciliation handler."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, assert_never

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from zephra.core.audit_log import SecurityEventType, SecuritySeverity, log_security_event
from zephra.services.webhooks import handlers
from zephra.services.webhooks.events import (
    CheckoutCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
    WebhookEvent,
    WebhookEventKind,
)

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, Any], Awaitable[None]]

HANDLERS: dict[WebhookEventKind, Handler] = {
    WebhookEventKind.CHECKOUT_COMPLETED: handlers.handle_checkout_completed,
    WebhookEventKind.SUBSCRIPTION_CREATED: handlers.handle_subscription_changed,
    WebhookEventKind.SUBSCRIPTION_UPDATED: handlers.handle_subscription_changed,
    WebhookEventKind.SUBSCRIPTION_DELETED: handlers.handle_subscription_deleted,
    WebhookEventKind.INVOICE_PAID: handlers.handle_invoice_paid,
    WebhookEventKind.INVOICE_PAYMENT_FAILED: handlers.handle_invoice_payment_failed,
}


def check_exhaustive(table: dict[WebhookEventKind, Handler]) -> None:
    """Fail at import time when an event kind has no handler."""
    missing = [kind.value for kind in WebhookEventKind if kind not in table]
    if missing:
        raise RuntimeError(f"No webhook handler registered for: {', '.join(missing)}")


check_exhaustive(HANDLERS)


async def dispatch(
    db: AsyncSession,
    event: WebhookEvent,
    request: Request | None = None,
) -> None:
    """
    Run the handler for a parsed event.

    Unhandled event types succeed after a low-severity audit entry so
    Stripe does not keep retrying them.
    """
    match event:
        case UnhandledEvent():
            logger.info(f"Unhandled webhook event type: {event.type}")
            await log_security_event(
                SecurityEventType.WEBHOOK_RECEIVED,
                SecuritySeverity.LOW,
                f"Received unhandled webhook event: {event.type}",
                request,
                {"event_type": event.type, "event_id": event.event_id},
            )
        case (
            CheckoutCompleted()
            | SubscriptionChanged()
            | SubscriptionDeleted()
            | InvoicePaid()
            | InvoicePaymentFailed()
        ):
            logger.info(f"Processing webhook {event.event_id}: {event.kind.value}")
            await HANDLERS[event.kind](db, event)
        case _:
            assert_never(event)
