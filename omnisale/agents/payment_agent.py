# omnisale/agents/payment_agent.py
"""Payment capability.

The agent talks to a gateway through a small interface so the outcome can be
fixed in tests and delegated to a real gateway in production. A decline is a
normal result, not an error. A timeout or transport failure is reported as a
retryable decline and never as success, so a retry cannot double-charge.
"""
import asyncio
import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


def declined(reason: str, retry_supported: bool = True) -> Dict[str, Any]:
    return {"status": "declined", "reason": reason, "retry_supported": retry_supported}


class PaymentGateway:
    async def authorize(self, customer_id: str, amount: float, method: str) -> Dict[str, Any]:
        raise NotImplementedError


class StaticPaymentGateway(PaymentGateway):
    """In-process gateway with a fixed outcome."""

    def __init__(self, status: str = "success", reason: str = "Card declined", retry_supported: bool = True):
        self.status = status
        self.reason = reason
        self.retry_supported = retry_supported
        self.calls = 0

    async def authorize(self, customer_id: str, amount: float, method: str) -> Dict[str, Any]:
        self.calls += 1
        if self.status != "success":
            return declined(self.reason, self.retry_supported)
        return {
            "status": "success",
            "transactionId": "TXN-" + uuid.uuid4().hex[:10].upper(),
            "message": "Payment processed successfully",
        }


class HttpPaymentGateway(PaymentGateway):
    def __init__(self, base_url: str, timeout: float = settings.payment_timeout_s):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def authorize(self, customer_id: str, amount: float, method: str) -> Dict[str, Any]:
        payload = {"customerId": customer_id, "amount": amount, "method": method}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(f"{self.base_url}/api/payment/authorize", json=payload)
            r.raise_for_status()
            return r.json()


class PaymentAgent:
    def __init__(self, gateway: PaymentGateway, timeout: float = settings.payment_timeout_s):
        self.gateway = gateway
        self.timeout = timeout

    async def pay(self, customer_id: str, amount: float, method: Optional[str]) -> Dict[str, Any]:
        method = method or "upi"
        started = time.monotonic()
        try:
            res = await asyncio.wait_for(
                self.gateway.authorize(customer_id, amount, method),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[PAYMENT] gateway timeout after %.1fs for %s", time.monotonic() - started, customer_id)
            return declined("Gateway timeout", retry_supported=True)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("[PAYMENT] gateway error for %s: %s", customer_id, e)
            return declined("Gateway unavailable", retry_supported=True)
        except Exception:
            logger.exception("[PAYMENT] gateway failure for %s", customer_id)
            return declined("Gateway unavailable", retry_supported=True)

        res = res or {}
        if res.get("status") == "success" and res.get("transactionId"):
            return {
                "status": "success",
                "transactionId": res["transactionId"],
                "amount": amount,
                "method": method,
                "message": res.get("message") or "Payment processed successfully",
            }
        # anything that isn't an unambiguous success counts as a decline
        out = declined(res.get("reason") or "Payment declined", bool(res.get("retry_supported", True)))
        out.update({"amount": amount, "method": method})
        if res.get("transactionId"):
            out["transactionId"] = res["transactionId"]
        return out
