"""Checkout, plan catalog and billing portal endpoints."""

import logging
from typing import Any

import stripe
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from zephra.api.deps import CurrentUser
from zephra.api.deps.rate_limit import enforce_rate_limit
from zephra.config import settings
from zephra.config.plans import (
    PLANS,
    BillingFrequency,
    get_price_id,
    normalize_plan_id,
    plan_for_price_id,
)
from zephra.core.exceptions import NotFoundError, ProviderError, ValidationError
from zephra.core.rate_limit import CHECKOUT_LIMIT, get_client_ip
from zephra.services.checkout import CheckoutSessionData, checkout_factory
from zephra.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["stripe"])

PAID_STATUSES = frozenset({"paid", "no_payment_required"})


# ─────────────────────────────────────────────────────────────────────────────
# Request/Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PlanInfo(CamelModel):
    """Public plan information."""

    key: str
    name: str
    description: str
    monthly_price: int = Field(serialization_alias="monthlyPrice")
    yearly_price: int = Field(serialization_alias="yearlyPrice")
    features: list[str]
    limits: dict[str, int]
    popular: bool


class CheckoutRequest(CamelModel):
    """Request to create a checkout session."""

    email: str
    name: str
    plan_id: str = Field(alias="planId")
    frequency: BillingFrequency = BillingFrequency.MONTHLY
    price_id: str | None = Field(default=None, alias="priceId")
    user_id: str | None = Field(default=None, alias="userId")
    phone: str | None = None
    company: str | None = None
    success_url: str = Field(alias="successUrl")
    cancel_url: str = Field(alias="cancelUrl")


class CheckoutResponse(CamelModel):
    session_id: str = Field(serialization_alias="sessionId")
    url: str | None
    customer_id: str = Field(serialization_alias="customerId")


class SessionData(CamelModel):
    payment_status: str | None = Field(serialization_alias="paymentStatus")
    customer_email: str | None = Field(serialization_alias="customerEmail")
    subscription_id: str | None = Field(serialization_alias="subscriptionId")


class VerifySessionResponse(CamelModel):
    success: bool = True
    verified: bool
    session_data: SessionData = Field(serialization_alias="sessionData")


class PortalRequest(CamelModel):
    return_url: str | None = Field(default=None, alias="returnUrl")


class PortalResponse(BaseModel):
    url: str


def _require_stripe() -> None:
    if not settings.stripe_enabled:
        raise ValidationError("Payments not configured")


def _id_of(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


# ─────────────────────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────────────────────


@router.get("/plans", response_model=list[PlanInfo], response_model_by_alias=True)
async def list_plans() -> list[PlanInfo]:
    """List the public plan catalog."""
    return [
        PlanInfo(
            key=plan.key,
            name=plan.name,
            description=plan.description,
            monthly_price=plan.monthly_price,
            yearly_price=plan.yearly_price,
            features=list(plan.features),
            limits=plan.limits,
            popular=plan.popular,
        )
        for plan in PLANS.values()
    ]


@router.post(
    "/create-checkout-session",
    response_model=CheckoutResponse,
    response_model_by_alias=True,
)
async def create_checkout_session(
    request: Request,
    body: CheckoutRequest,
) -> CheckoutResponse:
    """
    Start a Stripe Checkout for a plan.

    The plan id is normalized first (aliases and unknown values resolve to
    a catalog key); without an explicit priceId the catalog price for the
    requested frequency is used. An explicit priceId must belong to the plan.
    """
    await enforce_rate_limit(request, f"checkout:{get_client_ip(request)}", CHECKOUT_LIMIT)
    _require_stripe()

    plan_id = normalize_plan_id(body.plan_id)
    if body.price_id and plan_for_price_id(body.price_id) != plan_id:
        raise ValidationError(f"Price {body.price_id} does not belong to plan {plan_id}")

    price_id = body.price_id or get_price_id(plan_id, body.frequency)
    if not price_id:
        raise ValidationError(f"No price configured for {plan_id} ({body.frequency.value})")

    result = checkout_factory.create(
        CheckoutSessionData(
            email=body.email,
            name=body.name,
            plan_id=plan_id,
            price_id=price_id,
            success_url=body.success_url,
            cancel_url=body.cancel_url,
            user_id=body.user_id,
            phone=body.phone,
            company=body.company,
        )
    )
    if not result.success or not result.session_id or not result.customer_id:
        raise ValidationError(result.error or "Unable to start checkout")

    return CheckoutResponse(
        session_id=result.session_id,
        url=result.url,
        customer_id=result.customer_id,
    )


@router.get(
    "/verify-session",
    response_model=VerifySessionResponse,
    response_model_by_alias=True,
)
async def verify_session(
    current_user: CurrentUser,
    session_id: str = Query(min_length=1),
) -> VerifySessionResponse:
    """Confirm a checkout session is paid and belongs to the caller."""
    _require_stripe()

    try:
        session = stripe_service.retrieve_checkout_session(session_id)
    except ProviderError as e:
        if isinstance(e.__cause__, stripe.InvalidRequestError):
            raise ValidationError("Invalid session ID") from e
        raise

    customer_details = session.get("customer_details") or {}
    customer_email = customer_details.get("email")
    payment_status = session.get("payment_status")
    verified = (
        payment_status in PAID_STATUSES
        and bool(customer_email)
        and customer_email.lower() == (current_user.email or "").lower()
    )

    return VerifySessionResponse(
        verified=verified,
        session_data=SessionData(
            payment_status=payment_status,
            customer_email=customer_email,
            subscription_id=_id_of(session.get("subscription")),
        ),
    )


@router.post("/customer-portal", response_model=PortalResponse)
async def create_customer_portal(
    body: PortalRequest,
    current_user: CurrentUser,
) -> PortalResponse:
    """
    Create a Stripe billing portal session for the caller.

    Uses the stored customer id, falling back to a lookup by email.
    """
    _require_stripe()

    customer_id = current_user.stripe_customer_id
    if not customer_id:
        customer = stripe_service.find_customer_by_email(current_user.email)
        if customer is None:
            raise NotFoundError("Customer")
        customer_id = customer.id

    return_url = body.return_url or f"{settings.frontend_url}/dashboard"
    url = stripe_service.create_portal_session(customer_id, return_url)
    return PortalResponse(url=url)
