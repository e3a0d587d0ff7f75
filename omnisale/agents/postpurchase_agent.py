# omnisale/agents/postpurchase_agent.py
from typing import Any, Dict


class PostPurchaseAgent:
    def __init__(self, store):
        self.store = store

    async def latest_order_status(self, customer_id: str) -> Dict[str, Any]:
        order = await self.store.latest_order(customer_id)
        if not order:
            return {"found": False, "message": "You don't have any recent orders to track."}
        return {
            "found": True,
            "order_id": order["order_id"],
            "status": order["status"],
            "fulfillment_mode": order.get("fulfillment_mode"),
            "items_count": len(order.get("items") or []),
            "total": order.get("total", 0.0),
        }
