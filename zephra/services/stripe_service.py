"""Stripe payment service for customers, checkout and subscriptions."""

import json
import logging
from typing import Any

import stripe
from stripe import StripeError

from zephra.config import settings
from zephra.core.exceptions import ProviderError, SignatureInvalidError

logger = logging.getLogger(__name__)

# Initialize Stripe with secret key
stripe.api_key = settings.stripe_secret_key

# Trial period in days
TRIAL_PERIOD_DAYS = 7


class StripeService:
    """
    Handles all Stripe API interactions.

    All methods are static and stateless. Stripe SDK handles connection pooling.
    SDK failures are logged and re-raised as ProviderError with the original
    error chained.
    """

    # ─────────────────────────────────────────────────────────────────────────────
    # Customers
    # ─────────────────────────────────────────────────────────────────────────────

    @staticmethod
    def find_customer_by_email(email: str) -> Any | None:
        """Return the first Stripe customer with this email, if any."""
        try:
            customers = stripe.Customer.list(email=email, limit=1)
        except StripeError as e:
            logger.error(f"Failed to look up Stripe customer: {e}")
            raise ProviderError("customer lookup", str(e)) from e
        return customers.data[0] if customers.data else None

    @staticmethod
    def create_customer(
        email: str,
        name: str,
        metadata: dict[str, str],
        phone: str | None = None,
    ) -> Any:
        """Create a Stripe customer. Returns the customer object (cus_...)."""
        params: dict[str, Any] = {"email": email, "name": name, "metadata": metadata}
        if phone:
            params["phone"] = phone
        try:
            customer = stripe.Customer.create(**params)
        except StripeError as e:
            logger.error(f"Failed to create Stripe customer: {e}")
            raise ProviderError("customer creation", str(e)) from e
        logger.info(f"Created Stripe customer {customer.id}")
        return customer

    @staticmethod
    def update_customer(
        customer_id: str,
        name: str,
        metadata: dict[str, str],
        phone: str | None = None,
    ) -> Any:
        params: dict[str, Any] = {"name": name, "metadata": metadata}
        if phone:
            params["phone"] = phone
        try:
            return stripe.Customer.modify(customer_id, **params)
        except StripeError as e:
            logger.error(f"Failed to update Stripe customer {customer_id}: {e}")
            raise ProviderError("customer update", str(e)) from e

    @staticmethod
    def retrieve_customer(customer_id: str) -> Any:
        try:
            return stripe.Customer.retrieve(customer_id)
        except StripeError as e:
            logger.error(f"Failed to retrieve Stripe customer {customer_id}: {e}")
            raise ProviderError("customer retrieval", str(e)) from e

    # ─────────────────────────────────────────────────────────────────────────────
    # Checkout & Portal
    # ─────────────────────────────────────────────────────────────────────────────

    @staticmethod
    def create_checkout_session(
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> Any:
        """
        Create a subscription-mode Checkout session for a single price.

        Includes a 7-day trial, promotion codes and required billing address.
        The metadata is attached to both the session and the subscription it
        creates, so webhook handlers can find the account either way.
        """
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                mode="subscription",
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                allow_promotion_codes=True,
                billing_address_collection="required",
                metadata=metadata,
                subscription_data={
                    "trial_period_days": TRIAL_PERIOD_DAYS,
                    "metadata": metadata,
                },
            )
        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise ProviderError("checkout session creation", str(e)) from e
        logger.info(f"Created checkout session {session.id} for customer {customer_id}")
        return session

    @staticmethod
    def retrieve_checkout_session(session_id: str) -> Any:
        """Retrieve a checkout session with customer and subscription expanded."""
        try:
            return stripe.checkout.Session.retrieve(
                session_id,
                expand=["customer", "subscription"],
            )
        except StripeError as e:
            logger.error(f"Failed to retrieve checkout session {session_id}: {e}")
            raise ProviderError("checkout session retrieval", str(e)) from e

    @staticmethod
    def create_portal_session(customer_id: str, return_url: str) -> str:
        """
        Create a Stripe Customer Portal session for self-service billing.

        Returns the portal session URL.
        """
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
        except StripeError as e:
            logger.error(f"Failed to create portal session: {e}")
            raise ProviderError("portal session creation", str(e)) from e
        return session.url

    # ─────────────────────────────────────────────────────────────────────────────
    # Subscriptions
    # ─────────────────────────────────────────────────────────────────────────────

    @staticmethod
    def list_active_subscriptions(customer_id: str) -> list[Any]:
        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                status="active",
                limit=10,
            )
        except StripeError as e:
            logger.error(f"Failed to list subscriptions for {customer_id}: {e}")
            raise ProviderError("subscription listing", str(e)) from e
        return list(subscriptions.data)

    @staticmethod
    def cancel_subscription(subscription_id: str) -> Any:
        """Cancel a Stripe subscription immediately, prorating the unused period."""
        try:
            cancelled = stripe.Subscription.cancel(subscription_id, prorate=True)
        except StripeError as e:
            logger.error(f"Failed to cancel subscription {subscription_id}: {e}")
            raise ProviderError("subscription cancellation", str(e)) from e
        logger.info(f"Cancelled subscription {subscription_id}")
        return cancelled

    # ─────────────────────────────────────────────────────────────────────────────
    # Webhooks
    # ─────────────────────────────────────────────────────────────────────────────

    @staticmethod
    def construct_webhook_event(payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and construct a webhook event from Stripe.

        Raises SignatureInvalidError if the signature or payload is invalid.
        """
        try:
            stripe.Webhook.construct_event(  # type: ignore[no-untyped-call]
                payload,
                signature,
                settings.stripe_webhook_secret,
                tolerance=settings.stripe_webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise SignatureInvalidError() from None
        except ValueError as e:
            logger.warning(f"Invalid webhook payload: {e}")
            raise SignatureInvalidError("Invalid webhook payload") from None
        # Plain dicts all the way down; the SDK event object wraps nested values
        return json.loads(payload)


# Singleton instance
stripe_service = StripeService()
