"""User model - Zephra accounts and their billing state."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Column, DateTime, String, text
from sqlmodel import Field, SQLModel


class SubscriptionTier(str, Enum):
    """Plan tiers stored on the account (canonical plan catalog keys)."""

    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Local subscription lifecycle states."""

    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"


class User(SQLModel, table=True):
    """
    User model - mirrors Supabase auth.users.

    The id comes from Supabase Auth. Billing columns are written by the
    Stripe webhook handlers; stripe_subscription_id is unique so one
    external subscription maps to at most one account.
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(
        primary_key=True,
        index=True,
        nullable=False,
        description="UUID from Supabase auth.users",
    )
    email: str = Field(max_length=255, unique=True, index=True)
    full_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    company: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=500)

    is_admin: bool = Field(
        default=False,
        nullable=False,
        sa_column_kwargs={"server_default": text("false")},
    )

    # Billing
    subscription_tier: str = Field(
        default=SubscriptionTier.STARTER.value,
        sa_column=Column(
            String(20),
            nullable=False,
            server_default=SubscriptionTier.STARTER.value,
        ),
    )
    subscription_status: str = Field(
        default=SubscriptionStatus.CANCELED.value,
        sa_column=Column(
            String(20),
            nullable=False,
            server_default=SubscriptionStatus.CANCELED.value,
        ),
    )
    stripe_customer_id: str | None = Field(default=None, max_length=255, index=True)
    stripe_subscription_id: str | None = Field(default=None, max_length=255, unique=True)
    trial_ends_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    payment_confirmed: bool = Field(
        default=False,
        nullable=False,
        sa_column_kwargs={"server_default": text("false")},
    )

    onboarding_completed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    updated_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": text("now()")},
    )

    @property
    def has_active_subscription(self) -> bool:
        """Active, or trialing with a trial end still in the future."""
        if self.subscription_status == SubscriptionStatus.ACTIVE.value:
            return True
        if self.subscription_status == SubscriptionStatus.TRIALING.value and self.trial_ends_at:
            trial_end = self.trial_ends_at
            if trial_end.tzinfo is None:
                trial_end = trial_end.replace(tzinfo=UTC)
            return trial_end > datetime.now(UTC)
        return False


class UserProfileUpdate(SQLModel):
    """Fields a user may change on their own profile."""

    full_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    company: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=500)
