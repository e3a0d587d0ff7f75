# omnisale/agents/loyalty_agent.py
from math import floor
from typing import Any, Dict, Optional

from ..schemas import LoyaltyTier

EARN_RATE_PER_RUPEE = 0.1  # 10 points per ₹100

TIER_RULES = {
    LoyaltyTier.BRONZE: {"max_discount_percent": 5, "points_multiplier": 1.0},
    LoyaltyTier.SILVER: {"max_discount_percent": 10, "points_multiplier": 1.25},
    LoyaltyTier.GOLD: {"max_discount_percent": 15, "points_multiplier": 1.5},
    LoyaltyTier.PLATINUM: {"max_discount_percent": 20, "points_multiplier": 2.0},
}

PROMOTIONS = {
    "WELCOME100": {"description": "₹100 off your first order", "flat_discount": 100},
    "FESTIVE250": {"description": "₹250 off festive picks", "flat_discount": 250},
    "WEDDING10": {"description": "10% off on wedding outfits", "flat_discount": 0},
}


def tier_rules(tier: Any) -> Dict[str, float]:
    if not isinstance(tier, LoyaltyTier):
        tier = LoyaltyTier.parse(tier)
    return TIER_RULES.get(tier, TIER_RULES[LoyaltyTier.BRONZE])


def price_cart(tier: Any, cart_total: float, coupon_code: Optional[str] = None) -> Dict[str, Any]:
    """Loyalty pricing for a cart total. Never fails; finalAmount is never negative."""
    total = max(float(cart_total or 0), 0.0)
    rules = tier_rules(tier)
    discount = total * rules["max_discount_percent"] / 100

    promo = PROMOTIONS.get((coupon_code or "").strip().upper())
    if promo and promo.get("flat_discount"):
        discount += promo["flat_discount"]

    discount = round(discount, 2)
    final_amount = round(max(0.0, total - discount), 2)
    points_earned = floor(total * EARN_RATE_PER_RUPEE * rules["points_multiplier"])
    return {
        "discount": discount,
        "finalAmount": final_amount,
        "pointsEarned": points_earned,
        "couponApplied": coupon_code.upper() if promo else None,
    }


class LoyaltyAgent:
    def price(self, customer, cart_total: float, coupon_code: Optional[str] = None) -> Dict[str, Any]:
        return price_cart(customer.loyalty_tier, cart_total, coupon_code)
