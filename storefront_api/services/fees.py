"""
Platform and gateway fee calculation (all amounts in cents).
"""
from dataclasses import dataclass
from typing import Optional

from storefront_api.config import get_settings
from storefront_api.core.tiers import ENTERPRISE, ORGANIZATION

settings = get_settings()

# Published card rates, used for net amount estimates before the gateway
# reports the real fee
GATEWAY_RATES = {
    "stripe": (0.029, 30),
    "paypal": (0.0349, 49),
}

FEE_WAIVED_TIERS = (ENTERPRISE, ORGANIZATION)


@dataclass
class FeeBreakdown:
    amount_cents: int
    gateway_fee_cents: int
    platform_fee_cents: int
    platform_fee_percent: float
    fee_waived_reason: Optional[str]

    @property
    def net_amount_cents(self) -> int:
        return self.amount_cents - self.gateway_fee_cents - self.platform_fee_cents


def estimate_gateway_fee(gateway_type: str, amount_cents: int) -> int:
    percent, fixed = GATEWAY_RATES.get(gateway_type, (0.0, 0))
    return int(round(amount_cents * percent)) + fixed


def calculate_fees(amount_cents: int, gateway_type: str, tier: Optional[str]) -> FeeBreakdown:
    gateway_fee = estimate_gateway_fee(gateway_type, amount_cents)

    if tier in FEE_WAIVED_TIERS:
        return FeeBreakdown(amount_cents, gateway_fee, 0, 0.0, "tier_included")

    percent = settings.PLATFORM_FEE_PERCENT
    platform_fee = int(round(amount_cents * percent / 100)) + settings.PLATFORM_FEE_FIXED_CENTS
    return FeeBreakdown(amount_cents, gateway_fee, platform_fee, percent, None)
