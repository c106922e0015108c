from zephra.models.user import SubscriptionStatus, SubscriptionTier, User, UserProfileUpdate

__all__ = [
    "SubscriptionStatus",
    "SubscriptionTier",
    "User",
    "UserProfileUpdate",
]
