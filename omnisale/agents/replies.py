# omnisale/agents/replies.py
"""Reply text: the generation prompt and the templated replies used when no
text-generation provider answers."""
from typing import Any, Dict, Optional

from ..schemas import Intent

REPLY_SYSTEM_PROMPT = """
You are a friendly retail sales associate.
Given the user message, customer info, session context and worker agent results,
write a natural, concise reply.
Explain any discounts, inventory options, and next steps clearly.
If the session context says the customer switched channels, open by
acknowledging where they left off (the previous channel and the item they
were looking at, when one is given).
Never invent products, prices, order ids or stock numbers that are not in the worker results.
"""

CHANNEL_LABELS = {
    "web": "the website",
    "app": "the app",
    "mobile": "the app",
    "whatsapp": "WhatsApp",
    "kiosk": "the in-store kiosk",
    "pos": "the store counter",
}


def channel_label(channel: Optional[str]) -> str:
    return CHANNEL_LABELS.get((channel or "").lower(), channel or "another channel")


def continuity_prefix(continuity: Optional[Dict[str, Any]]) -> str:
    if not continuity:
        return ""
    prev = channel_label(continuity.get("previous_channel"))
    if continuity.get("item_name") or continuity.get("sku"):
        item = continuity.get("item_name") or continuity.get("sku")
        return f"Welcome back! Picking up from {prev}, you were looking at {item}. "
    return f"Welcome back! Picking up where you left off on {prev}. "


def _money(x: Any) -> str:
    try:
        return f"₹{float(x):,.0f}"
    except (TypeError, ValueError):
        return "₹0"


def _recommend(result: Dict[str, Any]) -> str:
    recs = result.get("recommendations") or []
    if not recs:
        return "I couldn't find a match for that just now. Could you tell me a little more about what you're after?"
    lines = [f"- {r.get('name') or r['sku']} ({_money(r.get('price'))})" for r in recs[:3]]
    return "Here are a few picks for you:\n" + "\n".join(lines)


def _inventory(result: Dict[str, Any]) -> str:
    rows = result.get("inventory") or []
    if not rows:
        return "I couldn't check stock for that item right now. Please share the product code or try again shortly."
    parts = []
    for r in rows:
        options = ", ".join(o.replace("_", " ") for o in r.get("fulfillmentOptions") or [])
        parts.append(
            f"{r['sku']}: {r.get('onlineStock', 0)} online, {r.get('storeStock', 0)} at "
            f"{r.get('storeLocation') or 'your store'} ({options})"
        )
    return "Here's what I found:\n" + "\n".join(parts)


def _checkout(result: Dict[str, Any]) -> str:
    checkout = result.get("checkout") or {}
    status = checkout.get("status")
    if status == "aborted":
        return "Your cart is empty. Add something first and I'll check you out."
    if status == "declined":
        msg = f"Your payment didn't go through ({checkout.get('reason') or 'declined'})."
        if checkout.get("retry_supported"):
            msg += " Your cart is saved, so you can try again."
        return msg
    if status == "inconsistent":
        return ("Your payment was received but we couldn't confirm your order. "
                "Our team has been alerted and will contact you shortly.")
    if status == "committed":
        pricing = checkout.get("pricing") or {}
        msg = (f"Order {checkout.get('order_id')} is placed. You paid {_money(pricing.get('finalAmount'))} "
               f"after a {_money(pricing.get('discount'))} discount and earned {pricing.get('pointsEarned', 0)} points.")
        fulfillment = checkout.get("fulfillment") or {}
        if fulfillment.get("status") == "scheduled":
            msg += " " + (fulfillment.get("message") or "")
        else:
            slots = ", ".join(fulfillment.get("alternate_slots") or [])
            msg += " We couldn't book your slot"
            msg += f"; available slots are {slots}." if slots else "."
        return msg.strip()
    return "Something went wrong with checkout. Please try again."


def _post_purchase(result: Dict[str, Any]) -> str:
    order = result.get("post_purchase") or {}
    if not order.get("found"):
        return order.get("message") or "I couldn't find a recent order on your account."
    return f"Your order {order['order_id']} is currently {order.get('status')}."


def _smalltalk(result: Dict[str, Any]) -> str:
    return "Hi! I can suggest outfits, check stock at your store, or help you check out. What are you looking for?"


TEMPLATES = {
    Intent.RECOMMEND: _recommend,
    Intent.CHECK_INVENTORY: _inventory,
    Intent.CHECKOUT: _checkout,
    Intent.POST_PURCHASE: _post_purchase,
    Intent.SMALLTALK: _smalltalk,
}


def templated_reply(intent: Intent, worker_result: Dict[str, Any],
                    continuity: Optional[Dict[str, Any]] = None) -> str:
    render = TEMPLATES.get(intent, _recommend)
    return continuity_prefix(continuity) + render(worker_result or {})
