# omnisale/agents/orchestrator.py
"""
Top-level turn handler.

One turn runs these steps in order, each awaited before the next:

  1. load customer (CustomerNotFound aborts the turn)
  2. load recent history (best-effort, empty on failure)
  3. build the working session state
  4. classify intent (keyword fallback if the classifier is out)
  5. dispatch to the worker capability or the checkout saga
  6. append the interaction record (best-effort)
  7. persist the session snapshot (best-effort)
  8. generate reply text (templated fallback)
"""
import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

from ..config import settings
from ..errors import CustomerNotFound, PersistenceFailure, SagaInconsistency, WorkerUnavailable
from ..llm import LLMUnavailable
from ..schemas import CustomerProfile, Intent, IntentPlan, InteractionRecord, RecommendedItem
from ..ticketing import create_ticket
from .replies import REPLY_SYSTEM_PROMPT, templated_reply
from .session_continuity import SessionState, advance_snapshot, build_session_state

logger = logging.getLogger(__name__)

Handler = Callable[[CustomerProfile, SessionState, IntentPlan, str], Awaitable[Dict[str, Any]]]


@dataclass
class TurnResult:
    reply: str
    structured: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"reply": self.reply, "structured": self.structured}


def new_session_id() -> str:
    # sorts by creation time
    return f"SID-{time.time_ns():020d}-{uuid.uuid4().hex[:6]}"


class Orchestrator:
    def __init__(
        self,
        store,
        classifier,
        recommender,
        inventory,
        postpurchase,
        saga,
        llm=None,
        ticketing: Callable[[str, str], Awaitable[Dict[str, Any]]] = create_ticket,
        cfg=settings,
    ):
        self.store = store
        self.classifier = classifier
        self.recommender = recommender
        self.inventory = inventory
        self.postpurchase = postpurchase
        self.saga = saga
        self.llm = llm
        self.ticketing = ticketing
        self.cfg = cfg

        self.handlers: Dict[Intent, Handler] = {
            Intent.RECOMMEND: self._recommend,
            Intent.CHECK_INVENTORY: self._check_inventory,
            Intent.CHECKOUT: self._checkout,
            Intent.POST_PURCHASE: self._post_purchase,
            Intent.SMALLTALK: self._smalltalk,
        }
        missing = set(Intent) - set(self.handlers)
        if missing:
            raise RuntimeError(f"no handler for intents: {sorted(i.value for i in missing)}")

    async def handle_turn(self, utterance: str, customer_id: str, channel: str = "web") -> TurnResult:
        customer = await asyncio.wait_for(
            self.store.get_customer(customer_id),
            timeout=self.cfg.store_timeout_s,
        )
        if customer is None:
            raise CustomerNotFound(customer_id)

        history = await self._load_history(customer_id)
        state = build_session_state(customer.last_channel, channel, customer.snapshot)
        logger.info("[MASTER] %s on %s (previous=%s switched=%s)",
                    customer_id, channel, customer.last_channel, state.channel_switched)

        plan = await self.classifier.classify(utterance, customer.public_view(), history)
        logger.info("[MASTER] intent=%s source=%s skus=%s", plan.intent.value, plan.source, plan.target_skus)

        worker_result = await self._dispatch(customer, state, plan, utterance)
        snapshot = advance_snapshot(state)

        await self._append_interaction(customer_id, channel, utterance, plan, worker_result, state)
        await self._best_effort(
            f"snapshot for {customer_id}",
            self.store.save_snapshot(customer_id, snapshot, channel),
        )

        reply = await self._reply(utterance, customer, state, plan, worker_result)
        return TurnResult(
            reply=reply,
            structured={
                "plan": plan.model_dump(mode="json"),
                "workerResult": worker_result,
                "sessionContext": state.context(),
                "channelSwitched": state.channel_switched,
            },
        )

    async def _load_history(self, customer_id: str) -> List[Dict[str, Any]]:
        try:
            return await asyncio.wait_for(
                self.store.recent_history(customer_id, limit=self.cfg.history_limit),
                timeout=self.cfg.store_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("[MASTER] history read for %s timed out", customer_id)
        except Exception as e:
            logger.warning("[MASTER] history read for %s failed: %s", customer_id, e)
        return []

    async def _dispatch(self, customer: CustomerProfile, state: SessionState,
                        plan: IntentPlan, utterance: str) -> Dict[str, Any]:
        handler = self.handlers.get(plan.intent, self._recommend)
        try:
            return await handler(customer, state, plan, utterance)
        except WorkerUnavailable as e:
            logger.warning("[MASTER] %s unavailable for %s: %s", e.capability, customer.customer_id, e.reason)
            return {"unavailable": e.capability}

    async def _recommend(self, customer, state, plan, utterance) -> Dict[str, Any]:
        recs = await self.recommender.recommend(customer, utterance, plan.occasion)
        if recs:
            top = recs[0]
            state.snapshot.last_recommended = RecommendedItem(
                sku=top["sku"], name=top.get("name"), category=top.get("category"),
            )
            state.snapshot.last_browsed_category = top.get("category") or state.snapshot.last_browsed_category
        return {"recommendations": recs}

    async def _check_inventory(self, customer, state, plan, utterance) -> Dict[str, Any]:
        skus = list(plan.target_skus)
        if not skus:
            skus = [line.sku for line in state.snapshot.cart]
        if not skus and state.snapshot.last_recommended is not None:
            skus = [state.snapshot.last_recommended.sku]
        location = customer.store_location or self.cfg.default_store_location
        return {"inventory": await self.inventory.check(skus, location)}

    async def _checkout(self, customer, state, plan, utterance) -> Dict[str, Any]:
        try:
            outcome = await self.saga.run(customer, state.snapshot, plan)
        except SagaInconsistency as e:
            logger.critical("[CHECKOUT] INCONSISTENT: %s", e)
            ticket = await self.ticketing(
                f"Payment {e.transaction_id} captured without an order",
                f"Customer {e.customer_id} paid {e.amount:.2f} (transaction {e.transaction_id}) "
                f"but the order could not be saved: {e.reason}",
            )
            outcome = {
                "status": "inconsistent",
                "transaction_id": e.transaction_id,
                "amount": e.amount,
                "ticket": ticket.get("issue_key"),
            }
        return {"checkout": outcome}

    async def _post_purchase(self, customer, state, plan, utterance) -> Dict[str, Any]:
        return {"post_purchase": await self.postpurchase.latest_order_status(customer.customer_id)}

    async def _smalltalk(self, customer, state, plan, utterance) -> Dict[str, Any]:
        return {}

    async def _append_interaction(self, customer_id, channel, utterance, plan, worker_result, state) -> None:
        record = InteractionRecord(
            session_id=new_session_id(),
            customer_id=customer_id,
            channel=channel,
            message=utterance,
            intent=plan.intent.value,
            context={
                "plan": plan.model_dump(mode="json"),
                "channel_switched": state.channel_switched,
                "previous_channel": state.previous_channel,
                "result_keys": sorted(worker_result),
            },
        )
        await self._best_effort(f"interaction for {customer_id}", self.store.append_interaction(record))

    async def _best_effort(self, what: str, write: Awaitable[Any]) -> None:
        try:
            await asyncio.wait_for(write, timeout=self.cfg.store_timeout_s)
        except asyncio.TimeoutError:
            logger.warning("[MASTER] %s timed out", what)
        except PersistenceFailure as e:
            logger.warning("[MASTER] %s not written: %s", what, e)
        except Exception:
            logger.exception("[MASTER] %s failed", what)

    async def _reply(self, utterance: str, customer: CustomerProfile, state: SessionState,
                     plan: IntentPlan, worker_result: Dict[str, Any]) -> str:
        if self.llm is not None:
            prompt = (
                f"User message: {json.dumps(utterance)}\n"
                f"Customer: {json.dumps(customer.public_view(), default=str)}\n"
                f"Session: {json.dumps(state.context(), default=str)}\n"
                f"Agent plan: {json.dumps(plan.model_dump(mode='json'))}\n"
                f"Worker results: {json.dumps(worker_result, default=str)}"
            )
            try:
                text = await asyncio.wait_for(
                    self.llm.complete(REPLY_SYSTEM_PROMPT, prompt, timeout=self.cfg.generate_timeout_s),
                    timeout=self.cfg.generate_timeout_s,
                )
                if text and text.strip():
                    return text.strip()
            except asyncio.TimeoutError:
                logger.warning("[MASTER] reply generation timed out; using template")
            except LLMUnavailable as e:
                logger.info("[MASTER] reply generation unavailable (%s); using template", e)
        return templated_reply(plan.intent, worker_result, state.continuity)
