from zephra.models.user import SubscriptionStatus

# Provider statuses that carry over unchanged. Everything else, including
# incomplete, incomplete_expired, unpaid, paused and unknown values, cuts
# access off.
_PASS_THROUGH = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
}


def map_subscription_status(provider_status: str | None) -> SubscriptionStatus:
    """Map a Stripe subscription status onto the local status enum. Never raises."""
    if not provider_status:
        return SubscriptionStatus.CANCELED
    return _PASS_THROUGH.get(provider_status, SubscriptionStatus.CANCELED)
