"""Typed webhook events.

Stripe event payloads are parsed once, at the edge, into one variant per
handled event kind. Anything else becomes UnhandledEvent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WebhookEventKind(str, Enum):
    """Closed set of Stripe event types the application reconciles."""

    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAID = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


def _id_of(value: Any) -> str | None:
    """Stripe fields may hold an id string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    mode: str | None
    customer_id: str | None
    subscription_id: str | None
    metadata: dict[str, str] = field(default_factory=dict)
    kind: WebhookEventKind = WebhookEventKind.CHECKOUT_COMPLETED


@dataclass(frozen=True)
class SubscriptionChanged:
    event_id: str
    kind: WebhookEventKind
    subscription_id: str
    customer_id: str | None
    status: str | None
    price_id: str | None
    trial_end: int | None


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: str
    subscription_id: str
    customer_id: str | None
    kind: WebhookEventKind = WebhookEventKind.SUBSCRIPTION_DELETED


@dataclass(frozen=True)
class InvoicePaid:
    event_id: str
    invoice_id: str
    customer_id: str | None
    subscription_id: str | None
    kind: WebhookEventKind = WebhookEventKind.INVOICE_PAID


@dataclass(frozen=True)
class InvoicePaymentFailed:
    event_id: str
    invoice_id: str
    customer_id: str | None
    subscription_id: str | None
    kind: WebhookEventKind = WebhookEventKind.INVOICE_PAYMENT_FAILED


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    type: str


WebhookEvent = (
    CheckoutCompleted
    | SubscriptionChanged
    | SubscriptionDeleted
    | InvoicePaid
    | InvoicePaymentFailed
    | UnhandledEvent
)


def _first_price_id(subscription: dict[str, Any]) -> str | None:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return _id_of((items[0] or {}).get("price"))


def parse_event(raw: dict[str, Any]) -> WebhookEvent:
    """Turn a verified Stripe event dict into its typed variant.

    Type strings are compared for exact equality against WebhookEventKind.
    """
    event_id = raw.get("id", "")
    event_type = raw.get("type", "")
    obj: dict[str, Any] = (raw.get("data") or {}).get("object") or {}

    try:
        kind = WebhookEventKind(event_type)
    except ValueError:
        return UnhandledEvent(event_id=event_id, type=event_type)

    if kind is WebhookEventKind.CHECKOUT_COMPLETED:
        return CheckoutCompleted(
            event_id=event_id,
            session_id=obj.get("id", ""),
            mode=obj.get("mode"),
            customer_id=_id_of(obj.get("customer")),
            subscription_id=_id_of(obj.get("subscription")),
            metadata=dict(obj.get("metadata") or {}),
        )
    if kind in (WebhookEventKind.SUBSCRIPTION_CREATED, WebhookEventKind.SUBSCRIPTION_UPDATED):
        return SubscriptionChanged(
            event_id=event_id,
            kind=kind,
            subscription_id=obj.get("id", ""),
            customer_id=_id_of(obj.get("customer")),
            status=obj.get("status"),
            price_id=_first_price_id(obj),
            trial_end=obj.get("trial_end"),
        )
    if kind is WebhookEventKind.SUBSCRIPTION_DELETED:
        return SubscriptionDeleted(
            event_id=event_id,
            subscription_id=obj.get("id", ""),
            customer_id=_id_of(obj.get("customer")),
        )

    invoice_fields = {
        "event_id": event_id,
        "invoice_id": obj.get("id", ""),
        "customer_id": _id_of(obj.get("customer")),
        "subscription_id": _id_of(obj.get("subscription")),
    }
    if kind is WebhookEventKind.INVOICE_PAID:
        return InvoicePaid(**invoice_fields)
    return InvoicePaymentFailed(**invoice_fields)
