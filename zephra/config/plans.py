"""Plan catalog - pricing, Stripe price ids, features and limits for each tier."""

from dataclasses import dataclass, field
from enum import Enum

from zephra.config.settings import settings


class BillingFrequency(str, Enum):
    """Billing frequencies offered at checkout."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class PlanConfig:
    """Configuration for a subscription plan tier."""

    key: str
    name: str
    description: str
    monthly_price: int  # USD
    yearly_price: int  # USD
    monthly_price_setting: str  # Settings attribute holding the Stripe price id
    yearly_price_setting: str
    features: tuple[str, ...]

    # Limits (-1 = unlimited)
    campaigns: int
    contacts: int
    emails_per_month: int
    funnels: int

    aliases: tuple[str, ...] = field(default_factory=tuple)
    popular: bool = False

    @property
    def limits(self) -> dict[str, int]:
        """Return usage limits as a dictionary for API responses."""
        return {
            "campaigns": self.campaigns,
            "contacts": self.contacts,
            "emails_per_month": self.emails_per_month,
            "funnels": self.funnels,
        }

    @property
    def price_ids(self) -> dict[str, str]:
        """Configured Stripe price ids keyed by billing frequency."""
        return {
            BillingFrequency.MONTHLY.value: getattr(settings, self.monthly_price_setting),
            BillingFrequency.YEARLY.value: getattr(settings, self.yearly_price_setting),
        }


DEFAULT_PLAN_ID = "starter"

PLANS: dict[str, PlanConfig] = {
    "starter": PlanConfig(
        key="starter",
        name="Basic",
        description="Perfect for solo entrepreneurs ready to automate",
        monthly_price=197,
        yearly_price=1970,
        monthly_price_setting="stripe_price_basic_monthly",
        yearly_price_setting="stripe_price_basic_yearly",
        features=(
            "90-Day Marketing Blueprint with step-by-step implementation guide",
            "25 high-converting ad variations with proven templates",
            "Complete sales funnel with 7-email sequence",
            "High-converting landing page templates",
            "Lead magnets that attract ideal customers",
            "Priority chat support for perfect setup",
        ),
        campaigns=5,
        contacts=1000,
        emails_per_month=5000,
        funnels=3,
        aliases=("basic",),
    ),
    "pro": PlanConfig(
        key="pro",
        name="Pro",
        description="Perfect for growing businesses that need results",
        monthly_price=297,
        yearly_price=2970,
        monthly_price_setting="stripe_price_pro_monthly",
        yearly_price_setting="stripe_price_pro_yearly",
        features=(
            "Everything in Basic +",
            "Advanced Market Intelligence with 3 detailed customer personas",
            "100 unique ad variations across all major platforms",
            "5 custom sales funnels with 12-email nurture sequences",
            "SMS campaigns for immediate engagement",
            "Weekly strategy calls with performance optimization",
        ),
        campaigns=-1,
        contacts=10000,
        emails_per_month=50000,
        funnels=25,
        aliases=("professional",),
        popular=True,
    ),
    "enterprise": PlanConfig(
        key="enterprise",
        name="Elite",
        description="Perfect for established businesses ready to dominate",
        monthly_price=497,
        yearly_price=4970,
        monthly_price_setting="stripe_price_elite_monthly",
        yearly_price_setting="stripe_price_elite_yearly",
        features=(
            "Everything in Pro +",
            "Enterprise Market Domination with 5 customer segments",
            "Unlimited ad creatives across all platforms including LinkedIn & TikTok",
            "AI-Powered Marketing Intelligence with custom models",
            "Dedicated senior marketing strategist",
            "Weekly strategy calls with direct founder access",
        ),
        campaigns=-1,
        contacts=-1,
        emails_per_month=-1,
        funnels=-1,
        aliases=("elite",),
    ),
}


def _build_alias_map() -> dict[str, str]:
    alias_map: dict[str, str] = {}
    for key, plan in PLANS.items():
        for name in (key, *plan.aliases):
            if name in alias_map and alias_map[name] != key:
                raise RuntimeError(f"Plan alias '{name}' maps to both {alias_map[name]} and {key}")
            alias_map[name] = key
    return alias_map


# Canonical key and every alias -> canonical key
PLAN_ALIASES: dict[str, str] = _build_alias_map()


def normalize_plan_id(plan_id: str | None) -> str:
    """
    Resolve a plan id or alias to its canonical catalog key.

    Input is trimmed and lowercased. Empty or unknown values resolve to
    DEFAULT_PLAN_ID rather than raising.
    """
    if not plan_id:
        return DEFAULT_PLAN_ID
    return PLAN_ALIASES.get(plan_id.strip().lower(), DEFAULT_PLAN_ID)


def get_plan(plan_id: str | None) -> PlanConfig:
    """Get plan configuration by id or alias."""
    return PLANS[normalize_plan_id(plan_id)]


def get_price_id(plan_id: str | None, frequency: BillingFrequency | str) -> str:
    """
    Get the configured Stripe price id for a plan and billing frequency.

    Returns an empty string when the price id is not configured.
    """
    frequency = BillingFrequency(frequency)
    return get_plan(plan_id).price_ids[frequency.value]


def plan_for_price_id(price_id: str | None) -> str | None:
    """Map a Stripe price id (monthly or yearly) back to its canonical plan key."""
    if not price_id:
        return None
    for key, plan in PLANS.items():
        if price_id in plan.price_ids.values():
            return key
    return None

