"""Reconciliation handlers - apply Stripe billing events to user rows.

Every write is a single UPDATE with set semantics, so replaying an event
converges on the same row state. An update that matches no row raises
UserNotFoundError; nothing here catches errors locally.
"""

import logging
import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from zephra.config.plans import DEFAULT_PLAN_ID, plan_for_price_id
from zephra.core.exceptions import MissingUserReferenceError
from zephra.domain import user_ops
from zephra.models.user import SubscriptionStatus, SubscriptionTier
from zephra.services.stripe_service import stripe_service
from zephra.services.webhooks.events import (
    CheckoutCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionChanged,
    SubscriptionDeleted,
)
from zephra.services.webhooks.status_mapper import map_subscription_status

logger = logging.getLogger(__name__)


def _parse_user_id(value: str | None) -> uuid_pkg.UUID | None:
    if not value:
        return None
    try:
        return uuid_pkg.UUID(value)
    except ValueError:
        return None


async def handle_checkout_completed(db: AsyncSession, event: CheckoutCompleted) -> None:
    """
    Link a completed subscription checkout to the local account.

    The account is referenced by metadata.userId on the Stripe customer,
    falling back to the session metadata written at checkout creation.
    """
    if event.mode != "subscription" or not event.subscription_id:
        logger.info(f"Ignoring checkout session {event.session_id} (mode={event.mode})")
        return

    if not event.customer_id:
        raise MissingUserReferenceError(
            f"Checkout session {event.session_id} has no customer",
            context={"session_id": event.session_id},
        )

    customer = stripe_service.retrieve_customer(event.customer_id)
    customer_metadata = customer.get("metadata") or {}
    raw_user_id = customer_metadata.get("userId") or event.metadata.get("userId")
    user_id = _parse_user_id(raw_user_id)
    if user_id is None:
        raise MissingUserReferenceError(
            f"No user reference for customer {event.customer_id}",
            context={"customer_id": event.customer_id, "session_id": event.session_id},
        )

    await user_ops.update_matching(
        db,
        values={
            "stripe_customer_id": event.customer_id,
            "stripe_subscription_id": event.subscription_id,
            "subscription_status": SubscriptionStatus.ACTIVE.value,
            "payment_confirmed": True,
        },
        match={"id": user_id},
    )
    logger.info(f"Checkout completed for user {user_id} (subscription {event.subscription_id})")


async def handle_subscription_changed(db: AsyncSession, event: SubscriptionChanged) -> None:
    tier = plan_for_price_id(event.price_id) or DEFAULT_PLAN_ID
    if event.price_id and tier == DEFAULT_PLAN_ID:
        logger.warning(f"Unknown price {event.price_id} on subscription {event.subscription_id}")

    status = map_subscription_status(event.status)
    trial_ends_at = (
        datetime.fromtimestamp(event.trial_end, tz=UTC) if event.trial_end else None
    )

    await user_ops.update_matching(
        db,
        values={
            "subscription_tier": SubscriptionTier(tier).value,
            "subscription_status": status.value,
            "trial_ends_at": trial_ends_at,
        },
        match={"stripe_subscription_id": event.subscription_id},
    )
    logger.info(f"Subscription {event.subscription_id} is now {tier} ({status.value})")


async def handle_subscription_deleted(db: AsyncSession, event: SubscriptionDeleted) -> None:
    if not event.customer_id:
        raise MissingUserReferenceError(
            f"Deleted subscription {event.subscription_id} has no customer",
            context={"subscription_id": event.subscription_id},
        )

    await user_ops.update_matching(
        db,
        values={
            "subscription_tier": SubscriptionTier.STARTER.value,
            "stripe_subscription_id": None,
            "subscription_status": SubscriptionStatus.CANCELED.value,
        },
        match={"stripe_customer_id": event.customer_id},
    )
    logger.info(f"Canceled subscription for customer {event.customer_id}")


async def _set_invoice_status(
    db: AsyncSession,
    event: InvoicePaid | InvoicePaymentFailed,
    status: SubscriptionStatus,
) -> None:
    # Match on both ids so a customer who switched plans only has the
    # subscription this invoice belongs to touched.
    if not event.customer_id or not event.subscription_id:
        raise MissingUserReferenceError(
            f"Invoice {event.invoice_id} lacks a customer or subscription id",
            context={"invoice_id": event.invoice_id},
        )

    await user_ops.update_matching(
        db,
        values={"subscription_status": status.value},
        match={
            "stripe_customer_id": event.customer_id,
            "stripe_subscription_id": event.subscription_id,
        },
    )
    logger.info(f"Invoice {event.invoice_id}: customer {event.customer_id} -> {status.value}")


async def handle_invoice_paid(db: AsyncSession, event: InvoicePaid) -> None:
    await _set_invoice_status(db, event, SubscriptionStatus.ACTIVE)


async def handle_invoice_payment_failed(db: AsyncSession, event: InvoicePaymentFailed) -> None:
    await _set_invoice_status(db, event, SubscriptionStatus.PAST_DUE)
