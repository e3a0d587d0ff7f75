# omnisale/crud.py
import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, insert, update, text
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Customer, Product, Inventory, Order, PaymentRecord, InteractionHistory

logger = logging.getLogger(__name__)

ONLINE_WAREHOUSE = "online_warehouse"

# cumulative spend needed to reach a tier
TIER_THRESHOLDS = [
    (30000, "platinum"),
    (15000, "gold"),
    (5000, "silver"),
    (0, "bronze"),
]
_TIER_RANK = {"bronze": 0, "silver": 1, "gold": 2, "platinum": 3}


def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(0)


def compute_tier(total_spend) -> str:
    ts = float(_to_decimal(total_spend))
    for threshold, tier in TIER_THRESHOLDS:
        if ts >= threshold:
            return tier
    return "bronze"


def promoted_tier(current: Optional[str], total_spend) -> str:
    """Tier earned by spend, never below the current one."""
    earned = compute_tier(total_spend)
    cur = (current or "bronze").lower()
    if _TIER_RANK.get(earned, 0) > _TIER_RANK.get(cur, 0):
        return earned
    return cur if cur in _TIER_RANK else earned


# ---------- customers ----------
async def get_customer(db: AsyncSession, customer_id: str) -> Optional[Customer]:
    q = select(Customer).where(Customer.customer_id == customer_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def get_customer_by_phone(db: AsyncSession, phone: str) -> Optional[Customer]:
    q = select(Customer).where(Customer.phone_number == phone)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def create_customer(
    db: AsyncSession,
    customer_id: str,
    name: Optional[str],
    phone_number: Optional[str],
    loyalty_tier: str = "bronze",
    store_location: Optional[str] = None,
) -> Customer:
    stmt = insert(Customer).values(
        customer_id=customer_id,
        name=name or customer_id,
        phone_number=phone_number,
        loyalty_tier=loyalty_tier,
        loyalty_points=0,
        store_location=store_location,
        total_spend=0,
        session_snapshot={},
    )
    await db.execute(stmt)
    await db.commit()
    logger.info("[CRUD] create_customer %s phone=%s tier=%s", customer_id, phone_number, loyalty_tier)
    return await get_customer(db, customer_id)


async def save_session_snapshot(db: AsyncSession, customer_id: str, snapshot: Dict, channel: Optional[str]):
    # last writer wins: no version check on the row
    stmt = (
        update(Customer)
        .where(Customer.customer_id == customer_id)
        .values(session_snapshot=snapshot, last_channel=channel)
    )
    await db.execute(stmt)
    await db.commit()


async def add_spend(db: AsyncSession, customer_id: str, amount: float, points: int = 0) -> Optional[Customer]:
    customer = await get_customer(db, customer_id)
    if not customer:
        return None
    amt = _to_decimal(amount)
    if amt < 0:
        # spend never goes down
        amt = Decimal(0)
    prev = _to_decimal(customer.total_spend or 0)
    customer.total_spend = prev + amt
    customer.loyalty_points = int(customer.loyalty_points or 0) + max(int(points or 0), 0)
    customer.loyalty_tier = promoted_tier(customer.loyalty_tier, customer.total_spend)
    await db.commit()
    return customer


# ---------- catalog ----------
async def get_product(db: AsyncSession, sku: str) -> Optional[Product]:
    q = select(Product).where(Product.sku == sku)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def list_products(db: AsyncSession, category: Optional[str] = None, limit: int = 200) -> List[Product]:
    q = select(Product)
    if category:
        q = q.where(Product.category == category)
    q = q.limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def get_inventory_rows(db: AsyncSession, skus: Sequence[str]) -> List[Inventory]:
    if not skus:
        return []
    q = select(Inventory).where(Inventory.sku.in_(list(skus)))
    r = await db.execute(q)
    return list(r.scalars().all())


# ---------- orders & payments ----------
async def create_order(
    db: AsyncSession,
    customer_id: str,
    items: List[Dict],
    total: float,
    discount: float = 0.0,
    fulfillment_mode: str = "reserve_in_store",
    transaction_id: Optional[str] = None,
) -> str:
    order_id = "ORD-" + uuid.uuid4().hex[:8]
    stmt = insert(Order).values(
        order_id=order_id,
        customer_id=customer_id,
        items=items,
        total_amount=total,
        discount=discount,
        status="pending",
        fulfillment_mode=fulfillment_mode,
        transaction_id=transaction_id,
    )
    await db.execute(stmt)
    await db.commit()
    logger.info("[CRUD] create_order created order %s for customer %s", order_id, customer_id)
    return order_id


async def create_payment_record(
    db: AsyncSession,
    transaction_id: str,
    customer_id: str,
    amount: float,
    method: str,
    status: str,
    order_id: Optional[str] = None,
    reason: Optional[str] = None,
):
    stmt = insert(PaymentRecord).values(
        transaction_id=transaction_id,
        customer_id=customer_id,
        order_id=order_id,
        amount=amount,
        method=method,
        status=status,
        reason=reason,
    )
    await db.execute(stmt)
    await db.commit()


async def get_latest_order_for_customer(db: AsyncSession, customer_id: str) -> Optional[Order]:
    q = (
        select(Order)
        .where(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.order_id.desc())
        .limit(1)
    )
    r = await db.execute(q)
    return r.scalar_one_or_none()


# ---------- interaction history ----------
async def create_interaction(
    db: AsyncSession,
    session_id: str,
    customer_id: str,
    channel: str,
    message: str,
    intent: Optional[str] = None,
    context: Optional[Dict] = None,
):
    stmt = insert(InteractionHistory).values(
        session_id=session_id,
        customer_id=customer_id,
        channel=channel,
        message=message,
        intent=intent,
        context=context,
    )
    await db.execute(stmt)
    await db.commit()


async def get_history_for_customer(db: AsyncSession, customer_id: str, limit: int = 10) -> List[InteractionHistory]:
    # session ids are time-ordered, so they break created_at ties
    q = (
        select(InteractionHistory)
        .where(InteractionHistory.customer_id == customer_id)
        .order_by(InteractionHistory.session_id.desc())
        .limit(limit)
    )
    r = await db.execute(q)
    return list(r.scalars().all())


async def ping(db: AsyncSession) -> bool:
    r = await db.execute(text("SELECT 1"))
    return r.scalar() == 1
