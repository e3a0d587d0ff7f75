# omnisale/agents/intent_classifier.py
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

from ..config import settings
from ..errors import ClassificationUnavailable
from ..llm import LLMClient, LLMUnavailable
from ..schemas import Intent, IntentPlan

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are the Sales Orchestrator for an omnichannel fashion retailer.
RESPOND IN JSON ONLY.

Your job: from the user's message and context, decide what they are trying to do.

Possible intents:
- "recommend": they are asking what to buy, styles, outfits, suggestions.
- "check_inventory": they are asking if something is in stock or available at a store.
- "checkout": they are ready to buy / pay / place order / reserve.
- "post_purchase": they ask about order status, returns, exchange, tracking.
- "smalltalk": greetings or chit-chat, no need to call worker agents.

Return ONLY valid JSON in this shape:
{
  "intent": "recommend" | "check_inventory" | "checkout" | "post_purchase" | "smalltalk",
  "target_skus": [],
  "occasion": null,
  "payment_method": null | "upi" | "card" | "pos",
  "fulfillment_mode": null | "ship_to_home" | "click_and_collect" | "reserve_in_store"
}
"""

# checked in this order; first hit wins
INVENTORY_TERMS = ("stock", "availab", "in store", "inventory")
CHECKOUT_TERMS = ("buy", "purchase", "pay", "checkout", "check out")
POST_PURCHASE_TERMS = ("order", "status", "track", "return", "refund", "exchange")
GREETING_TERMS = ("hi", "hello", "hey", "hiya", "namaste", "good morning", "good evening", "thanks", "thank you")

SKU_RE = re.compile(r"\b[A-Z]{1,5}-?\d{2,6}\b")


def _has_term(text: str, terms) -> bool:
    return any(re.search(r"\b" + re.escape(t), text) for t in terms)


def _has_word(text: str, words) -> bool:
    return any(re.search(r"\b" + re.escape(w) + r"\b", text) for w in words)


def extract_skus(utterance: str) -> List[str]:
    seen = []
    for m in SKU_RE.findall(utterance or ""):
        if m not in seen:
            seen.append(m)
    return seen


def keyword_intent(utterance: str) -> Intent:
    text = (utterance or "").lower()
    if _has_term(text, INVENTORY_TERMS):
        return Intent.CHECK_INVENTORY
    if _has_term(text, CHECKOUT_TERMS):
        return Intent.CHECKOUT
    if _has_term(text, POST_PURCHASE_TERMS):
        return Intent.POST_PURCHASE
    if _has_word(text, GREETING_TERMS):
        return Intent.SMALLTALK
    return Intent.RECOMMEND


def fallback_plan(utterance: str) -> IntentPlan:
    """Deterministic plan used when the remote classifier is out. Never raises."""
    try:
        return IntentPlan(
            intent=keyword_intent(utterance),
            target_skus=extract_skus(utterance),
            source="fallback",
        )
    except Exception:
        logger.exception("[CLASSIFIER] keyword fallback failed, defaulting to recommend")
        return IntentPlan(intent=Intent.RECOMMEND, source="fallback")


def plan_from_payload(parsed: Dict[str, Any]) -> IntentPlan:
    return IntentPlan(
        intent=parsed.get("intent"),
        target_skus=parsed.get("target_skus"),
        occasion=parsed.get("occasion"),
        payment_method=parsed.get("payment_method"),
        fulfillment_mode=parsed.get("fulfillment_mode"),
        source="llm",
    )


class IntentClassifier:
    def __init__(self, llm: Optional[LLMClient] = None, timeout: float = settings.classify_timeout_s):
        self.llm = llm
        self.timeout = timeout

    async def _classify_remote(self, utterance: str, profile: Dict[str, Any],
                               history: List[Dict[str, Any]]) -> IntentPlan:
        if self.llm is None:
            raise ClassificationUnavailable("no classifier configured")
        prompt = (
            f"User message: {json.dumps(utterance)}\n"
            f"Customer: {json.dumps(profile, default=str)}\n"
            f"ConversationHistory: {json.dumps(history[-10:], default=str)}\n\n"
            "Respond strictly in JSON as specified."
        )
        try:
            parsed = await asyncio.wait_for(
                self.llm.complete_json(SYSTEM_PROMPT, prompt, timeout=self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ClassificationUnavailable("classifier timed out") from e
        except LLMUnavailable as e:
            raise ClassificationUnavailable(str(e)) from e
        return plan_from_payload(parsed)

    async def classify(self, utterance: str, profile: Dict[str, Any],
                       history: List[Dict[str, Any]]) -> IntentPlan:
        try:
            return await self._classify_remote(utterance, profile, history or [])
        except ClassificationUnavailable as e:
            logger.info("[CLASSIFIER] remote unavailable (%s); using keyword fallback", e)
        except Exception:
            logger.exception("[CLASSIFIER] unexpected classifier failure; using keyword fallback")
        return fallback_plan(utterance)
