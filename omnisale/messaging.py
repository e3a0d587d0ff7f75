# omnisale/messaging.py
import logging
from typing import Optional
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response

from .agents.orchestrator import Orchestrator
from .config import settings
from .deps import get_orchestrator, get_session_store
from .errors import CustomerNotFound
from .store import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter()

CHANNEL = "whatsapp"
APOLOGY = "Sorry, I hit an error processing your request. Please try again in a moment."


def normalize_phone(text: str) -> str:
    # gateways prefix the sender, e.g. "whatsapp:+919876543210"
    text = (text or "").split(":")[-1]
    return "".join(ch for ch in text if ch.isdigit() or ch == "+")


def twiml(message: str) -> Response:
    body = f'<?xml version="1.0" encoding="UTF-8"?><Response><Message>{escape(message)}</Message></Response>'
    return Response(content=body, media_type="application/xml")


async def find_or_create_customer(store: SessionStore, phone: str, profile_name: Optional[str]):
    customer = await store.get_customer_by_phone(phone)
    if customer is not None:
        return customer
    digits = "".join(ch for ch in phone if ch.isdigit())
    logger.info("[MESSAGING] first contact from %s; creating customer", phone)
    return await store.create_customer(
        customer_id=f"wa-{digits}",
        name=profile_name or None,
        phone_number=phone,
        loyalty_tier="bronze",
        store_location=settings.default_store_location,
    )


@router.post("/messaging-webhook")
async def messaging_webhook(
    Body: str = Form(""),
    From: str = Form(...),
    ProfileName: Optional[str] = Form(None),
    store: SessionStore = Depends(get_session_store),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    text = (Body or "").strip()
    phone = normalize_phone(From)
    if not phone:
        return twiml("We couldn't read your number. Please try again.")
    if not text:
        return twiml("Hi! Tell me what you're looking for and I'll help you find it.")

    try:
        customer = await find_or_create_customer(store, phone, ProfileName)
        result = await orchestrator.handle_turn(text, customer.customer_id, CHANNEL)
    except CustomerNotFound as e:
        return twiml(e.user_message)
    except Exception:
        logger.exception("[MESSAGING] turn failed for %s", phone)
        return twiml(APOLOGY)
    return twiml(result.reply)
