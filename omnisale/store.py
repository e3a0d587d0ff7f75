# omnisale/store.py
"""Data-store adapters used by the orchestrator.

``SessionStore`` owns customer rows, session snapshots, orders, payment
records and the interaction log. ``Catalog`` is the read-only product and
stock view the worker capabilities query. Both take an async session factory
so tests can point them at a throwaway database.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from . import crud
from .db import AsyncSessionLocal
from .errors import PersistenceFailure, WorkerUnavailable
from .schemas import CustomerProfile, InteractionRecord, SessionSnapshot

logger = logging.getLogger(__name__)


def _profile_from_row(row) -> CustomerProfile:
    return CustomerProfile(
        customer_id=row.customer_id,
        name=row.name,
        phone_number=row.phone_number,
        loyalty_tier=row.loyalty_tier,
        loyalty_points=int(row.loyalty_points or 0),
        store_location=row.store_location,
        total_spend=float(row.total_spend or 0),
        last_channel=row.last_channel,
        snapshot=SessionSnapshot.from_stored(row.session_snapshot),
    )


def _product_dict(p) -> Dict[str, Any]:
    try:
        price = float(p.price or 0)
    except (TypeError, ValueError):
        price = 0.0
    return {
        "sku": p.sku,
        "name": p.name or "",
        "category": p.category or "",
        "price": price,
        "attributes": p.attributes or {},
        "tags": p.tags or [],
    }


class SessionStore:
    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_customer(self, customer_id: str) -> Optional[CustomerProfile]:
        async with self.session_factory() as db:
            row = await crud.get_customer(db, customer_id)
        return _profile_from_row(row) if row else None

    async def get_customer_by_phone(self, phone: str) -> Optional[CustomerProfile]:
        async with self.session_factory() as db:
            row = await crud.get_customer_by_phone(db, phone)
        return _profile_from_row(row) if row else None

    async def create_customer(
        self,
        customer_id: str,
        name: Optional[str],
        phone_number: Optional[str],
        loyalty_tier: str = "bronze",
        store_location: Optional[str] = None,
    ) -> CustomerProfile:
        async with self.session_factory() as db:
            row = await crud.create_customer(db, customer_id, name, phone_number, loyalty_tier, store_location)
        return _profile_from_row(row)

    async def recent_history(self, customer_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        async with self.session_factory() as db:
            rows = await crud.get_history_for_customer(db, customer_id, limit=limit)
        # oldest first, the way a transcript reads
        return [
            {
                "session_id": r.session_id,
                "channel": r.channel,
                "message": r.message,
                "intent": r.intent,
                "created_at": str(r.created_at),
            }
            for r in reversed(rows)
        ]

    async def append_interaction(self, record: InteractionRecord) -> None:
        try:
            async with self.session_factory() as db:
                await crud.create_interaction(
                    db,
                    session_id=record.session_id,
                    customer_id=record.customer_id,
                    channel=record.channel,
                    message=record.message,
                    intent=record.intent,
                    context=record.context,
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure("interaction record", str(e)) from e

    async def save_snapshot(self, customer_id: str, snapshot: SessionSnapshot, channel: Optional[str]) -> None:
        try:
            async with self.session_factory() as db:
                await crud.save_session_snapshot(db, customer_id, snapshot.model_dump(mode="json"), channel)
        except SQLAlchemyError as e:
            raise PersistenceFailure("session snapshot", str(e)) from e

    async def create_order(
        self,
        customer_id: str,
        items: List[Dict[str, Any]],
        total: float,
        discount: float,
        fulfillment_mode: str,
        transaction_id: Optional[str],
    ) -> str:
        async with self.session_factory() as db:
            return await crud.create_order(
                db, customer_id, items, total,
                discount=discount,
                fulfillment_mode=fulfillment_mode,
                transaction_id=transaction_id,
            )

    async def record_payment(
        self,
        transaction_id: str,
        customer_id: str,
        amount: float,
        method: str,
        status: str,
        order_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        try:
            async with self.session_factory() as db:
                await crud.create_payment_record(
                    db, transaction_id, customer_id, amount, method, status,
                    order_id=order_id, reason=reason,
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure("payment record", str(e)) from e

    async def add_spend(self, customer_id: str, amount: float, points: int = 0) -> None:
        try:
            async with self.session_factory() as db:
                await crud.add_spend(db, customer_id, amount, points)
        except SQLAlchemyError as e:
            raise PersistenceFailure("customer spend", str(e)) from e

    async def latest_order(self, customer_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as db:
                o = await crud.get_latest_order_for_customer(db, customer_id)
        except SQLAlchemyError as e:
            raise WorkerUnavailable("post_purchase", str(e)) from e
        if not o:
            return None
        return {
            "order_id": o.order_id,
            "status": o.status,
            "items": o.items or [],
            "total": float(o.total_amount or 0),
            "fulfillment_mode": o.fulfillment_mode,
            "created_at": str(o.created_at),
        }

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as db:
                return await crud.ping(db)
        except Exception as e:
            logger.warning("[STORE] ping failed: %s", e)
            return False


class Catalog:
    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def list_products(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            async with self.session_factory() as db:
                rows = await crud.list_products(db, category=category)
        except SQLAlchemyError as e:
            raise WorkerUnavailable("catalog", str(e)) from e
        return [_product_dict(p) for p in rows]

    async def get_product(self, sku: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as db:
                p = await crud.get_product(db, sku)
        except SQLAlchemyError as e:
            raise WorkerUnavailable("catalog", str(e)) from e
        return _product_dict(p) if p else None

    async def inventory_rows(self, sku: str, location: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            async with self.session_factory() as db:
                rows = await crud.get_inventory_rows(db, [sku])
        except SQLAlchemyError as e:
            raise WorkerUnavailable("inventory", str(e)) from e
        out = []
        for r in rows:
            if location and r.location != location:
                continue
            out.append({
                "sku": r.sku,
                "location": r.location,
                "stock": max((r.stock or 0) - (r.reserved or 0), 0),
            })
        return out

    async def stock_levels(self, skus: Sequence[str], store_location: Optional[str]) -> Dict[str, Dict[str, int]]:
        """Available units per sku: ``{sku: {"online": n, "store": m}}``."""
        try:
            async with self.session_factory() as db:
                rows = await crud.get_inventory_rows(db, skus)
        except SQLAlchemyError as e:
            raise WorkerUnavailable("inventory", str(e)) from e
        levels = {sku: {"online": 0, "store": 0} for sku in skus}
        for r in rows:
            available = max((r.stock or 0) - (r.reserved or 0), 0)
            entry = levels.setdefault(r.sku, {"online": 0, "store": 0})
            if r.location == crud.ONLINE_WAREHOUSE:
                entry["online"] += available
            elif store_location and r.location == store_location:
                entry["store"] += available
        return levels
