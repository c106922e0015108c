"""Account endpoints for the authenticated user."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from zephra.api.deps import CurrentUser, DbSession
from zephra.core.csrf import csrf_protection, require_csrf, session_id_of
from zephra.domain import user_ops
from zephra.models.user import User, UserProfileUpdate

router = APIRouter(prefix="/user", tags=["user"])


class SubscriptionStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_active_subscription: bool = Field(serialization_alias="hasActiveSubscription")
    subscription_status: str | None = Field(serialization_alias="subscriptionStatus")
    subscription_tier: str | None = Field(serialization_alias="subscriptionTier")
    trial_ends_at: datetime | None = Field(serialization_alias="trialEndsAt")


class UserProfile(BaseModel):
    id: UUID
    email: str
    full_name: str | None
    phone: str | None
    company: str | None
    avatar_url: str | None
    subscription_tier: str
    subscription_status: str
    payment_confirmed: bool


def _profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        company=user.company,
        avatar_url=user.avatar_url,
        subscription_tier=user.subscription_tier,
        subscription_status=user.subscription_status,
        payment_confirmed=user.payment_confirmed,
    )


@router.get(
    "/subscription-status",
    response_model=SubscriptionStatusResponse,
    response_model_by_alias=True,
)
async def get_subscription_status(current_user: CurrentUser) -> SubscriptionStatusResponse:
    """Active, or trialing with the trial still running, counts as subscribed."""
    return SubscriptionStatusResponse(
        has_active_subscription=current_user.has_active_subscription,
        subscription_status=current_user.subscription_status,
        subscription_tier=current_user.subscription_tier,
        trial_ends_at=current_user.trial_ends_at,
    )


@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: CurrentUser) -> UserProfile:
    return _profile(current_user)


@router.patch(
    "/profile",
    response_model=UserProfile,
    dependencies=[Depends(require_csrf)],
)
async def update_profile(
    request: Request,
    data: UserProfileUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> UserProfile:
    """
    Update profile fields. Only fields present in the request are changed.

    The CSRF token is single use: it is revoked once the update succeeds.
    """
    user = await user_ops.update_profile(db, current_user, data.model_dump(exclude_unset=True))
    csrf_protection.revoke(session_id_of(request))
    return _profile(user)
