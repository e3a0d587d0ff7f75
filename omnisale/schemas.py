# omnisale/schemas.py
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class LoyaltyTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "LoyaltyTier":
        # unknown or missing tiers get the lowest tier's rules
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.BRONZE


TIER_ORDER = [LoyaltyTier.BRONZE, LoyaltyTier.SILVER, LoyaltyTier.GOLD, LoyaltyTier.PLATINUM]


class Intent(str, Enum):
    RECOMMEND = "recommend"
    CHECK_INVENTORY = "check_inventory"
    CHECKOUT = "checkout"
    POST_PURCHASE = "post_purchase"
    SMALLTALK = "smalltalk"

    @classmethod
    def coerce(cls, raw: Any) -> "Intent":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.RECOMMEND


class CartLine(BaseModel):
    sku: str
    qty: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    name: Optional[str] = None


class RecommendedItem(BaseModel):
    sku: str
    name: Optional[str] = None
    category: Optional[str] = None


class SessionSnapshot(BaseModel):
    """Durable per-customer cross-channel state. The only authoritative cart."""

    cart: List[CartLine] = Field(default_factory=list)
    last_recommended: Optional[RecommendedItem] = None
    last_browsed_category: Optional[str] = None
    persona_traits: Dict[str, Any] = Field(default_factory=dict)
    current_channel: Optional[str] = None
    previous_channel: Optional[str] = None
    channel_switched: bool = False

    def cart_total(self) -> float:
        return round(sum(line.price * line.qty for line in self.cart), 2)

    @classmethod
    def from_stored(cls, raw: Optional[Dict[str, Any]]) -> "SessionSnapshot":
        if not raw:
            return cls()
        return cls.model_validate(raw)


class CustomerProfile(BaseModel):
    customer_id: str
    name: Optional[str] = None
    phone_number: Optional[str] = None
    loyalty_tier: LoyaltyTier = LoyaltyTier.BRONZE
    loyalty_points: int = 0
    store_location: Optional[str] = None
    total_spend: float = 0.0
    last_channel: Optional[str] = None
    snapshot: SessionSnapshot = Field(default_factory=SessionSnapshot)

    @field_validator("loyalty_tier", mode="before")
    @classmethod
    def _tier(cls, v):
        if isinstance(v, LoyaltyTier):
            return v
        return LoyaltyTier.parse(v)

    def public_view(self) -> Dict[str, Any]:
        """Profile fields handed to the classifier / reply generator."""
        return {
            "customer_id": self.customer_id,
            "name": self.name,
            "loyalty_tier": self.loyalty_tier.value,
            "store_location": self.store_location,
            "persona_traits": self.snapshot.persona_traits,
        }


class IntentPlan(BaseModel):
    intent: Intent = Intent.RECOMMEND
    target_skus: List[str] = Field(default_factory=list)
    occasion: Optional[str] = None
    payment_method: Optional[str] = "upi"
    fulfillment_mode: Optional[str] = "reserve_in_store"
    source: str = "llm"  # "llm" | "fallback"

    @field_validator("intent", mode="before")
    @classmethod
    def _intent(cls, v):
        if isinstance(v, Intent):
            return v
        return Intent.coerce(v)

    @field_validator("target_skus", mode="before")
    @classmethod
    def _skus(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(x) for x in v if x]

    @field_validator("payment_method", mode="before")
    @classmethod
    def _payment_method(cls, v):
        return v or "upi"

    @field_validator("fulfillment_mode", mode="before")
    @classmethod
    def _fulfillment_mode(cls, v):
        return v or "reserve_in_store"


class InteractionRecord(BaseModel):
    session_id: str
    customer_id: str
    channel: str
    message: str
    intent: str
    context: Dict[str, Any] = Field(default_factory=dict)
