"""Checkout session factory - customer upsert plus subscription checkout."""

import logging
import re
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email

from zephra.config.plans import normalize_plan_id
from zephra.core.exceptions import ProviderError, ValidationError
from zephra.services.stripe_service import StripeService, stripe_service

logger = logging.getLogger(__name__)

_PHONE_PATTERN = re.compile(r"^\d{7,15}$")


def is_valid_email(email: str) -> bool:
    """Syntax check only; no DNS lookup for the domain."""
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_phone(phone: str) -> bool:
    """7 to 15 digits once formatting characters are stripped."""
    return bool(_PHONE_PATTERN.match(re.sub(r"\D", "", phone)))


@dataclass
class CheckoutSessionData:
    email: str
    name: str
    plan_id: str
    price_id: str
    success_url: str
    cancel_url: str
    user_id: str | None = None
    phone: str | None = None
    company: str | None = None


@dataclass
class CheckoutResult:
    success: bool
    session_id: str | None = None
    url: str | None = None
    customer_id: str | None = None
    error: str | None = None


class CheckoutSessionFactory:
    """
    Creates Stripe Checkout sessions for subscription sign-ups.

    The customer is looked up by email and updated, or created when missing;
    the session then carries planId/userId metadata so the webhook handlers
    can reconcile the subscription with the local account. Failures never
    raise: they come back as CheckoutResult(success=False, error=...).
    """

    def __init__(self, service: StripeService = stripe_service) -> None:
        self.service = service

    @staticmethod
    def validate(data: CheckoutSessionData) -> CheckoutSessionData:
        """Check required fields and formats, returning a sanitized copy."""
        required = {
            "email": data.email,
            "name": data.name,
            "planId": data.plan_id,
            "priceId": data.price_id,
            "successUrl": data.success_url,
            "cancelUrl": data.cancel_url,
        }
        missing = [field for field, value in required.items() if not (value or "").strip()]
        if missing:
            raise ValidationError(
                f"Missing required fields for checkout: {', '.join(missing)}",
                context={"missing": missing},
            )

        email = data.email.strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")

        phone = data.phone.strip() if data.phone else None
        if phone and not is_valid_phone(phone):
            raise ValidationError("Invalid phone number format")

        return CheckoutSessionData(
            email=email,
            name=data.name.strip(),
            plan_id=normalize_plan_id(data.plan_id),
            price_id=data.price_id.strip(),
            success_url=data.success_url.strip(),
            cancel_url=data.cancel_url.strip(),
            user_id=data.user_id.strip() if data.user_id else None,
            phone=phone or None,
            company=data.company.strip() if data.company else None,
        )

    def _upsert_customer(self, data: CheckoutSessionData) -> str:
        metadata = {"planId": data.plan_id, "userId": data.user_id or ""}
        if data.company:
            metadata["company"] = data.company

        existing = self.service.find_customer_by_email(data.email)
        if existing is not None:
            self.service.update_customer(existing.id, data.name, metadata, phone=data.phone)
            return existing.id

        customer = self.service.create_customer(data.email, data.name, metadata, phone=data.phone)
        return customer.id

    def create(self, data: CheckoutSessionData) -> CheckoutResult:
        try:
            clean = self.validate(data)
        except ValidationError as e:
            logger.info(f"Rejected checkout request: {e.message}")
            return CheckoutResult(success=False, error=e.message)

        try:
            customer_id = self._upsert_customer(clean)
            session = self.service.create_checkout_session(
                customer_id=customer_id,
                price_id=clean.price_id,
                success_url=clean.success_url,
                cancel_url=clean.cancel_url,
                metadata={"planId": clean.plan_id, "userId": clean.user_id or ""},
            )
        except ProviderError as e:
            return CheckoutResult(success=False, error=f"Unable to start checkout: {e.message}")

        logger.info(f"Checkout session {session.id} ready for plan {clean.plan_id}")
        return CheckoutResult(
            success=True,
            session_id=session.id,
            url=session.url,
            customer_id=customer_id,
        )


checkout_factory = CheckoutSessionFactory()
