"""Operator endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from zephra.api.deps import AdminUser, DbSession
from zephra.core.audit_log import SecurityEventType, SecuritySeverity, log_security_event
from zephra.core.exceptions import NotFoundError
from zephra.domain import user_ops
from zephra.models.user import SubscriptionStatus, SubscriptionTier
from zephra.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class CancelSubscriptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = Field(alias="userId")


class CancelSubscriptionResponse(BaseModel):
    success: bool
    cancelled_subscriptions: int
    subscription_ids: list[str]


@router.post("/cancel-subscription", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    request: Request,
    body: CancelSubscriptionRequest,
    admin: AdminUser,
    db: DbSession,
) -> CancelSubscriptionResponse:
    """
    Cancel every active Stripe subscription of a user (prorated) and
    downgrade the account to starter.
    """
    user = await user_ops.get(db, body.user_id)
    if user is None or not user.stripe_customer_id:
        raise NotFoundError("Customer")

    subscriptions = stripe_service.list_active_subscriptions(user.stripe_customer_id)
    if not subscriptions:
        raise NotFoundError("Active subscription")

    cancelled_ids = [stripe_service.cancel_subscription(sub.id).id for sub in subscriptions]

    await user_ops.update_matching(
        db,
        values={
            "subscription_status": SubscriptionStatus.CANCELED.value,
            "subscription_tier": SubscriptionTier.STARTER.value,
            "stripe_subscription_id": None,
        },
        match={"id": user.id},
    )

    logger.info(f"Admin {admin.id} cancelled {len(cancelled_ids)} subscription(s) for {user.id}")
    await log_security_event(
        SecurityEventType.SUSPICIOUS_REQUEST,
        SecuritySeverity.MEDIUM,
        f"Admin cancelled subscriptions for user {user.id}",
        request,
        {"action": "subscription_cancelled", "cancelled_subscriptions": cancelled_ids},
        user_id=str(admin.id),
    )

    return CancelSubscriptionResponse(
        success=True,
        cancelled_subscriptions=len(cancelled_ids),
        subscription_ids=cancelled_ids,
    )
