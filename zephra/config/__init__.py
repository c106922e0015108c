"""Configuration package."""

from zephra.config.plans import (
    DEFAULT_PLAN_ID,
    PLANS,
    BillingFrequency,
    PlanConfig,
    get_plan,
    get_price_id,
    normalize_plan_id,
    plan_for_price_id,
)
from zephra.config.settings import Settings, settings

__all__ = [
    "BillingFrequency",
    "DEFAULT_PLAN_ID",
    "PlanConfig",
    "PLANS",
    "get_plan",
    "get_price_id",
    "normalize_plan_id",
    "plan_for_price_id",
    "Settings",
    "settings",
]
