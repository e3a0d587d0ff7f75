# omnisale/agents/fulfillment_agent.py
import asyncio
import logging
import random
from typing import Any, Dict, List

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

SLOT_WINDOWS: List[str] = ["10am-12pm", "12pm-2pm", "4pm-6pm", "6pm-8pm"]
DEFAULT_ETA_DAYS = 3

PICKUP_MODES = ("reserve_in_store", "click_and_collect")
DELIVERY_MODES = ("ship_to_home", "delivery", "home_delivery")


def failed(reason: str, slot: str = None) -> Dict[str, Any]:
    return {
        "status": "failed",
        "reason": reason,
        "alternate_slots": [s for s in SLOT_WINDOWS if s != slot],
    }


class FulfillmentScheduler:
    async def schedule(self, order_id: str, mode: str, store_location: str, slot: str) -> Dict[str, Any]:
        raise NotImplementedError


class StaticFulfillmentScheduler(FulfillmentScheduler):
    """In-process scheduler; ``unavailable_slots`` lets tests force a failure."""

    def __init__(self, unavailable_slots=()):
        self.unavailable_slots = set(unavailable_slots)

    async def schedule(self, order_id: str, mode: str, store_location: str, slot: str) -> Dict[str, Any]:
        if slot in self.unavailable_slots:
            return failed("Slot unavailable", slot)
        if mode in PICKUP_MODES:
            return {
                "status": "scheduled",
                "orderId": order_id,
                "mode": mode,
                "pickupCode": "PICK-" + str(random.randint(100000, 999999)),
                "message": f"Order reserved at {store_location} for {slot}",
            }
        if mode in DELIVERY_MODES:
            return {
                "status": "scheduled",
                "orderId": order_id,
                "mode": "ship_to_home",
                "deliveryEstimateDays": DEFAULT_ETA_DAYS,
                "message": "Delivery scheduled successfully",
            }
        return {"status": "failed", "reason": f"Invalid fulfillment mode: {mode}", "alternate_slots": []}


class HttpFulfillmentScheduler(FulfillmentScheduler):
    def __init__(self, base_url: str, timeout: float = settings.fulfillment_timeout_s):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def schedule(self, order_id: str, mode: str, store_location: str, slot: str) -> Dict[str, Any]:
        payload = {"orderId": order_id, "mode": mode, "storeLocation": store_location, "slot": slot}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(f"{self.base_url}/api/fulfillment/schedule", json=payload)
            r.raise_for_status()
            return r.json()


class FulfillmentAgent:
    def __init__(self, scheduler: FulfillmentScheduler, timeout: float = settings.fulfillment_timeout_s):
        self.scheduler = scheduler
        self.timeout = timeout

    async def schedule(self, order_id: str, mode: str, store_location: str, slot: str) -> Dict[str, Any]:
        try:
            res = await asyncio.wait_for(
                self.scheduler.schedule(order_id, mode, store_location, slot),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[FULFILLMENT] scheduler timeout for %s", order_id)
            return dict(failed("Scheduler timeout", slot), orderId=order_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("[FULFILLMENT] scheduler error for %s: %s", order_id, e)
            return dict(failed("Scheduler unavailable", slot), orderId=order_id)
        except Exception:
            logger.exception("[FULFILLMENT] scheduler failure for %s", order_id)
            return dict(failed("Scheduler unavailable", slot), orderId=order_id)
        res = dict(res or {})
        if res.get("status") != "scheduled":
            res["status"] = "failed"
            res.setdefault("reason", "Slot unavailable")
            res.setdefault("alternate_slots", [s for s in SLOT_WINDOWS if s != slot])
        res.setdefault("orderId", order_id)
        return res
