# omnisale/agents/checkout_saga.py
"""
Checkout for a single turn, run strictly in order:

  empty cart  -> abort ("cart_empty")
  price       -> loyalty pricing on the cart total
  payment     -> declined: stop here, cart untouched, declined record best-effort
  order       -> persisted with status "pending"; failure raises SagaInconsistency
  bookkeeping -> payment record + spend update, best-effort
  fulfillment -> scheduled or failed, the checkout is committed either way

Payment success is the commit point. After it the cart is always cleared.
"""
import asyncio
import logging
import uuid
from typing import Any, Awaitable, Dict, Optional

from ..config import settings
from ..errors import PersistenceFailure, SagaInconsistency
from ..schemas import CustomerProfile, IntentPlan, SessionSnapshot
from .cart import clear_cart
from .fulfillment_agent import failed

logger = logging.getLogger(__name__)


class CheckoutSaga:
    def __init__(self, store, loyalty, payment, fulfillment,
                 pickup_slot: str = settings.default_pickup_slot,
                 store_timeout: float = settings.store_timeout_s):
        self.store = store
        self.loyalty = loyalty
        self.payment = payment
        self.fulfillment = fulfillment
        self.pickup_slot = pickup_slot
        self.store_timeout = store_timeout

    async def run(self, customer: CustomerProfile, snapshot: SessionSnapshot,
                  plan: IntentPlan, coupon_code: Optional[str] = None) -> Dict[str, Any]:
        """Run checkout against ``snapshot`` (mutated in place on commit)."""
        cid = customer.customer_id
        if not snapshot.cart:
            logger.info("[CHECKOUT] %s: cart empty, nothing to check out", cid)
            return {"status": "aborted", "reason": "cart_empty"}

        cart_total = snapshot.cart_total()
        pricing = self.loyalty.price(customer, cart_total, coupon_code)
        amount = pricing["finalAmount"]
        method = plan.payment_method or "upi"
        logger.info("[CHECKOUT] %s: total=%.2f discount=%.2f final=%.2f method=%s",
                    cid, cart_total, pricing["discount"], amount, method)

        payment = await self.payment.pay(cid, amount, method)
        if payment.get("status") != "success":
            logger.info("[CHECKOUT] %s: payment declined (%s)", cid, payment.get("reason"))
            await self._best_effort(
                "declined payment record", cid,
                self.store.record_payment(
                    payment.get("transactionId") or "DCL-" + uuid.uuid4().hex[:10].upper(),
                    cid, amount, method, "declined",
                    order_id=None, reason=payment.get("reason"),
                ),
            )
            return {
                "status": "declined",
                "reason": payment.get("reason"),
                "retry_supported": payment["retry_supported"],
                "pricing": pricing,
                "payment": payment,
            }

        txn = payment.get("transactionId")
        items = [line.model_dump() for line in snapshot.cart]
        fulfillment_mode = plan.fulfillment_mode or "reserve_in_store"
        try:
            order_id = await asyncio.wait_for(
                self.store.create_order(
                    cid, items, amount,
                    discount=pricing["discount"],
                    fulfillment_mode=fulfillment_mode,
                    transaction_id=txn,
                ),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError as e:
            raise SagaInconsistency(cid, txn, amount, "order write timed out") from e
        except Exception as e:
            raise SagaInconsistency(cid, txn, amount, str(e)) from e

        await self._best_effort(
            f"payment record for {order_id}", cid,
            self.store.record_payment(txn, cid, amount, method, "success", order_id=order_id),
        )
        await self._best_effort(
            f"spend update for {order_id}", cid,
            self.store.add_spend(cid, amount, pricing["pointsEarned"]),
        )

        store_location = customer.store_location or settings.default_store_location
        try:
            fulfillment = await self.fulfillment.schedule(order_id, fulfillment_mode, store_location, self.pickup_slot)
        except Exception:
            logger.exception("[CHECKOUT] %s: fulfillment for %s raised", cid, order_id)
            fulfillment = dict(failed("Scheduler unavailable", self.pickup_slot), orderId=order_id)
        if fulfillment.get("status") != "scheduled":
            logger.warning("[CHECKOUT] %s: fulfillment for %s failed (%s)", cid, order_id, fulfillment.get("reason"))

        clear_cart(snapshot)
        snapshot.last_recommended = None
        logger.info("[CHECKOUT] %s: committed order %s", cid, order_id)
        return {
            "status": "committed",
            "order_id": order_id,
            "order_status": "pending",
            "pricing": pricing,
            "payment": payment,
            "fulfillment": fulfillment,
        }

    async def _best_effort(self, what: str, cid: str, write: Awaitable[Any]) -> None:
        try:
            await asyncio.wait_for(write, timeout=self.store_timeout)
        except asyncio.TimeoutError:
            logger.warning("[CHECKOUT] %s: %s timed out", cid, what)
        except PersistenceFailure as e:
            logger.warning("[CHECKOUT] %s: %s not written: %s", cid, what, e)
        except Exception:
            logger.exception("[CHECKOUT] %s: %s failed", cid, what)
