"""
Subscription Tiers

Static tier tables consulted inline by handlers and middleware:
display names, prices, SKU limits, rate limits and the feature set each
tier unlocks. Features are cumulative along TIER_HIERARCHY, except for
``google_only`` which is a side product (Google feed only, no storefront
or directory).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, FrozenSet

GOOGLE_ONLY = "google_only"
STARTER = "starter"
PROFESSIONAL = "professional"
ENTERPRISE = "enterprise"
ORGANIZATION = "organization"

TIER_HIERARCHY = [GOOGLE_ONLY, STARTER, PROFESSIONAL, ENTERPRISE, ORGANIZATION]

# Tiers a Stripe price may map to. google_only is sold separately and is
# never assigned from a checkout.
BILLABLE_TIERS = [STARTER, PROFESSIONAL, ENTERPRISE, ORGANIZATION]
DEFAULT_BILLABLE_TIER = STARTER

SUBSCRIPTION_STATUSES = ["trial", "active", "past_due", "canceled", "expired"]
INACTIVE_STATUSES = ("canceled", "expired")

# Features introduced at each tier; a tier has its own plus all lower ones
_FEATURES_INTRODUCED = {
    GOOGLE_ONLY: {"google_shopping", "google_merchant_center", "basic_product_pages", "qr_codes_512"},
    STARTER: {"storefront", "directory_listing", "product_search", "mobile_responsive", "featured_products"},
    PROFESSIONAL: {
        "gbp_integration", "custom_branding", "business_logo", "qr_codes_1024",
        "image_gallery_5", "interactive_maps", "privacy_mode", "behavior_analytics",
    },
    ENTERPRISE: {
        "unlimited_skus", "white_label", "custom_domain", "qr_codes_2048",
        "image_gallery_10", "api_access", "advanced_analytics",
    },
    ORGANIZATION: {"multi_location", "chain_management", "shared_catalog", "centralized_control"},
}


@dataclass(frozen=True)
class TierInfo:
    tier: str
    display_name: str
    monthly_price: int
    max_skus: Optional[int]  # None = unlimited
    max_locations: Optional[int]
    rate_limit_per_minute: int
    rate_limit_burst: int
    features: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def sku_limit_label(self) -> str:
        return "Unlimited" if self.max_skus is None else f"{self.max_skus:,}"


def _cumulative_features(tier: str) -> FrozenSet[str]:
    if tier == GOOGLE_ONLY:
        return frozenset(_FEATURES_INTRODUCED[GOOGLE_ONLY])
    features = set()
    for name in TIER_HIERARCHY:
        features |= _FEATURES_INTRODUCED[name]
        if name == tier:
            break
    return frozenset(features)


TIERS = {
    GOOGLE_ONLY: TierInfo(GOOGLE_ONLY, "Google-Only", 29, 250, 1, 60, 10, _cumulative_features(GOOGLE_ONLY)),
    STARTER: TierInfo(STARTER, "Starter", 49, 500, 1, 120, 20, _cumulative_features(STARTER)),
    PROFESSIONAL: TierInfo(PROFESSIONAL, "Professional", 499, 5000, 1, 300, 50, _cumulative_features(PROFESSIONAL)),
    ENTERPRISE: TierInfo(ENTERPRISE, "Enterprise", 999, None, 1, 600, 100, _cumulative_features(ENTERPRISE)),
    ORGANIZATION: TierInfo(ORGANIZATION, "Organization", 999, None, None, 1200, 200, _cumulative_features(ORGANIZATION)),
}


def get_tier(tier: Optional[str]) -> TierInfo:
    return TIERS.get(tier or STARTER, TIERS[STARTER])


def max_skus(tier: Optional[str]) -> Optional[int]:
    """SKU cap for ``tier``; None means unlimited."""
    return get_tier(tier).max_skus


def tier_has_feature(tier: Optional[str], feature: str) -> bool:
    info = TIERS.get(tier or "")
    return info is not None and feature in info.features


def required_tier_for(feature: str) -> Optional[str]:
    """Lowest tier on the hierarchy whose feature set includes ``feature``."""
    for name in TIER_HIERARCHY:
        if feature in TIERS[name].features:
            return name
    return None


def normalize_billable_tier(value: Optional[str]) -> str:
    """Map a Stripe price tier/plan string onto a tier a checkout may grant."""
    candidate = (value or "").strip().lower()
    return candidate if candidate in BILLABLE_TIERS else DEFAULT_BILLABLE_TIER


def is_tenant_frozen(tenant, now: Optional[datetime] = None) -> bool:
    """
    A frozen tenant is read-only: no feed pushes, no catalog writes.

    Canceled and expired subscriptions are frozen. google_only tenants are
    frozen unless they are inside their maintenance window, which is an
    active subscription whose trial end is still in the future.
    """
    now = now or datetime.utcnow()
    status = tenant.subscription_status
    if status in INACTIVE_STATUSES:
        return True
    if tenant.subscription_tier == GOOGLE_ONLY:
        in_maintenance = (
            status == "active"
            and tenant.trial_ends_at is not None
            and now < tenant.trial_ends_at
        )
        return not in_maintenance
    return False
