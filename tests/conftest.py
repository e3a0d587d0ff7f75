"""Shared test fixtures and in-memory fakes."""

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest

from omnisale.agents.checkout_saga import CheckoutSaga
from omnisale.agents.fulfillment_agent import FulfillmentAgent, StaticFulfillmentScheduler
from omnisale.agents.intent_classifier import IntentClassifier
from omnisale.agents.inventory_agent import InventoryAgent
from omnisale.agents.loyalty_agent import LoyaltyAgent
from omnisale.agents.orchestrator import Orchestrator
from omnisale.agents.payment_agent import PaymentAgent, StaticPaymentGateway
from omnisale.agents.postpurchase_agent import PostPurchaseAgent
from omnisale.agents.rec_agent import RecommendationAgent
from omnisale.config import settings
from omnisale.errors import PersistenceFailure, WorkerUnavailable
from omnisale.llm import LLMUnavailable
from omnisale.schemas import CartLine, CustomerProfile, SessionSnapshot


PRODUCTS = [
    {"sku": "SH-101", "name": "Linen Summer Shirt", "category": "shirts", "price": 1499.0,
     "attributes": {"occasion": ["casual", "vacation"]}, "tags": ["linen", "summer"]},
    {"sku": "SH-102", "name": "Oxford Formal Shirt", "category": "shirts", "price": 1999.0,
     "attributes": {"occasion": ["office"]}, "tags": ["formal", "cotton"]},
    {"sku": "FW-201", "name": "White Canvas Sneakers", "category": "footwear", "price": 2499.0,
     "attributes": {"occasion": ["casual"]}, "tags": ["sneakers", "white"]},
    {"sku": "ET-301", "name": "Silk Wedding Kurta", "category": "ethnic", "price": 4999.0,
     "attributes": {"occasion": ["wedding", "festive"]}, "tags": ["silk", "wedding"]},
]

STOCK = {
    "SH-101": {"online": 12, "store": 3},
    "SH-102": {"online": 0, "store": 4},
    "FW-201": {"online": 5, "store": 0},
    "ET-301": {"online": 0, "store": 0},
}


class FakeSessionStore:
    """In-memory stand-in for SessionStore with switchable failures."""

    def __init__(self):
        self.customers: Dict[str, CustomerProfile] = {}
        self.history: List[Dict[str, Any]] = []
        self.orders: List[Dict[str, Any]] = []
        self.payments: List[Dict[str, Any]] = []
        self.spend_updates: List[Dict[str, Any]] = []
        self.saved_snapshots: List[Dict[str, Any]] = []
        self.fail_order = False
        self.fail_history_read = False
        self.fail_history_write = False
        self.fail_snapshot = False
        self.fail_payment_record = False
        self.fail_spend = False
        self.fail_orders_read = False
        # store calls that never return
        self.hang_order = False
        self.hang_snapshot = False
        self.hang_interaction = False
        self.healthy = True

    def add_customer(self, customer_id="C1", tier="bronze", last_channel=None,
                     snapshot: Optional[SessionSnapshot] = None, **kw) -> CustomerProfile:
        profile = CustomerProfile(
            customer_id=customer_id,
            name=kw.get("name", "Asha"),
            phone_number=kw.get("phone_number"),
            loyalty_tier=tier,
            store_location=kw.get("store_location", "Mumbai-Andheri"),
            last_channel=last_channel,
            snapshot=snapshot or SessionSnapshot(),
        )
        self.customers[customer_id] = profile
        return profile

    async def get_customer(self, customer_id):
        c = self.customers.get(customer_id)
        return c.model_copy(deep=True) if c else None

    async def get_customer_by_phone(self, phone):
        for c in self.customers.values():
            if c.phone_number == phone:
                return c.model_copy(deep=True)
        return None

    async def create_customer(self, customer_id, name, phone_number, loyalty_tier="bronze", store_location=None):
        return self.add_customer(customer_id, tier=loyalty_tier, name=name,
                                 phone_number=phone_number, store_location=store_location)

    async def recent_history(self, customer_id, limit=10):
        if self.fail_history_read:
            raise RuntimeError("history table locked")
        return [h for h in self.history if h["customer_id"] == customer_id][-limit:]

    async def append_interaction(self, record):
        if self.hang_interaction:
            await asyncio.sleep(5)
        if self.fail_history_write:
            raise PersistenceFailure("interaction record", "disk full")
        self.history.append(record.model_dump())

    async def save_snapshot(self, customer_id, snapshot, channel):
        if self.hang_snapshot:
            await asyncio.sleep(5)
        if self.fail_snapshot:
            raise PersistenceFailure("session snapshot", "disk full")
        c = self.customers[customer_id]
        c.snapshot = snapshot.model_copy(deep=True)
        c.last_channel = channel
        self.saved_snapshots.append({"customer_id": customer_id, "channel": channel})

    async def create_order(self, customer_id, items, total, discount, fulfillment_mode, transaction_id):
        if self.hang_order:
            await asyncio.sleep(5)
        if self.fail_order:
            raise RuntimeError("orders table unavailable")
        order_id = f"ORD-{len(self.orders) + 1:08d}"
        self.orders.append({
            "order_id": order_id, "customer_id": customer_id, "items": items, "total": total,
            "discount": discount, "status": "pending", "fulfillment_mode": fulfillment_mode,
            "transaction_id": transaction_id,
        })
        return order_id

    async def record_payment(self, transaction_id, customer_id, amount, method, status, order_id=None, reason=None):
        if self.fail_payment_record:
            raise PersistenceFailure("payment record", "disk full")
        self.payments.append({"transaction_id": transaction_id, "customer_id": customer_id, "amount": amount,
                              "method": method, "status": status, "order_id": order_id, "reason": reason})

    async def add_spend(self, customer_id, amount, points=0):
        self.spend_updates.append({"customer_id": customer_id, "amount": amount, "points": points})
        if self.fail_spend:
            raise PersistenceFailure("customer spend", "disk full")

    async def latest_order(self, customer_id):
        if self.fail_orders_read:
            raise WorkerUnavailable("post_purchase", "orders table unavailable")
        mine = [o for o in self.orders if o["customer_id"] == customer_id]
        return dict(mine[-1]) if mine else None

    async def ping(self):
        return self.healthy


class FakeCatalog:
    def __init__(self, products=None, stock=None, fail=False):
        self.products = products if products is not None else [dict(p) for p in PRODUCTS]
        self.stock = stock if stock is not None else dict(STOCK)
        self.fail = fail

    async def list_products(self, category=None):
        if self.fail:
            raise WorkerUnavailable("catalog", "db down")
        return [dict(p) for p in self.products if not category or p["category"] == category]

    async def get_product(self, sku):
        if self.fail:
            raise WorkerUnavailable("catalog", "db down")
        for p in self.products:
            if p["sku"] == sku:
                return dict(p)
        return None

    async def inventory_rows(self, sku, location=None):
        if self.fail:
            raise WorkerUnavailable("inventory", "db down")
        lvl = self.stock.get(sku)
        if lvl is None:
            return []
        rows = [
            {"sku": sku, "location": "online_warehouse", "stock": lvl["online"]},
            {"sku": sku, "location": "Mumbai-Andheri", "stock": lvl["store"]},
        ]
        return [r for r in rows if not location or r["location"] == location]

    async def stock_levels(self, skus, store_location):
        if self.fail:
            raise WorkerUnavailable("inventory", "db down")
        return {s: dict(self.stock.get(s, {"online": 0, "store": 0})) for s in skus}


class DownLLM:
    """Every call fails the way an unreachable provider does."""

    provider = None

    def __init__(self):
        self.calls = 0

    async def complete(self, *args, **kwargs):
        self.calls += 1
        raise LLMUnavailable("No LLM provider configured")

    async def complete_json(self, *args, **kwargs):
        self.calls += 1
        raise LLMUnavailable("No LLM provider configured")

    async def ping(self, timeout=3.0):
        return "not_configured"


class ScriptedLLM:
    """Returns a fixed plan for classification and a fixed reply for generation."""

    provider = "scripted"

    def __init__(self, plan: Dict[str, Any], reply: str = "Here you go!"):
        self.plan = plan
        self.reply = reply
        self.prompts: List[str] = []

    async def complete_json(self, system_prompt, prompt, timeout=15):
        return dict(self.plan)

    async def complete(self, system_prompt, prompt, json_mode=False, max_tokens=500, timeout=15):
        self.prompts.append(prompt)
        return self.reply

    async def ping(self, timeout=3.0):
        return "ok"


class SlowLLM(DownLLM):
    async def complete_json(self, *args, **kwargs):
        await asyncio.sleep(5)
        return {"intent": "checkout"}


class RecordingTicketing:
    def __init__(self):
        self.tickets: List[Dict[str, str]] = []

    async def __call__(self, summary, description):
        self.tickets.append({"summary": summary, "description": description})
        return {"success": True, "issue_key": f"OPS-{len(self.tickets)}"}


def cart_snapshot(*lines) -> SessionSnapshot:
    """Snapshot holding the given ``(sku, qty, price)`` lines."""
    return SessionSnapshot(cart=[CartLine(sku=s, qty=q, price=p, name=s) for s, q, p in lines])


def build_orchestrator(store, catalog=None, llm=None, gateway=None, scheduler=None, ticketing=None,
                       store_timeout=1):
    catalog = catalog or FakeCatalog()
    llm = llm or DownLLM()
    saga = CheckoutSaga(
        store,
        LoyaltyAgent(),
        PaymentAgent(gateway or StaticPaymentGateway(), timeout=1),
        FulfillmentAgent(scheduler or StaticFulfillmentScheduler(), timeout=1),
        pickup_slot="6pm-8pm",
        store_timeout=store_timeout,
    )
    return Orchestrator(
        store=store,
        classifier=IntentClassifier(llm, timeout=0.5),
        recommender=RecommendationAgent(catalog),
        inventory=InventoryAgent(catalog),
        postpurchase=PostPurchaseAgent(store),
        saga=saga,
        llm=llm,
        ticketing=ticketing or RecordingTicketing(),
        cfg=replace(settings, store_timeout_s=store_timeout),
    )


@pytest.fixture
def store():
    return FakeSessionStore()


@pytest.fixture
def catalog():
    return FakeCatalog()
