# omnisale/deps.py
from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from .agents.checkout_saga import CheckoutSaga
from .agents.fulfillment_agent import FulfillmentAgent, HttpFulfillmentScheduler, StaticFulfillmentScheduler
from .agents.intent_classifier import IntentClassifier
from .agents.inventory_agent import InventoryAgent
from .agents.loyalty_agent import LoyaltyAgent
from .agents.orchestrator import Orchestrator
from .agents.payment_agent import HttpPaymentGateway, PaymentAgent, StaticPaymentGateway
from .agents.postpurchase_agent import PostPurchaseAgent
from .agents.rec_agent import RecommendationAgent
from .config import settings
from .llm import LLMClient
from .store import Catalog, SessionStore

security = HTTPBearer(auto_error=False)


def get_customer_from_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing auth token")
    token = credentials.credentials
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    customer_id = payload.get("sub")
    if not customer_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return customer_id


@lru_cache
def get_session_store() -> SessionStore:
    return SessionStore()


@lru_cache
def get_catalog() -> Catalog:
    return Catalog()


@lru_cache
def get_llm() -> LLMClient:
    return LLMClient(settings)


@lru_cache
def get_orchestrator() -> Orchestrator:
    store = get_session_store()
    catalog = get_catalog()
    llm = get_llm()

    gateway = (HttpPaymentGateway(settings.payment_gateway_url)
               if settings.payment_gateway_url else StaticPaymentGateway())
    scheduler = (HttpFulfillmentScheduler(settings.fulfillment_service_url)
                 if settings.fulfillment_service_url else StaticFulfillmentScheduler())

    saga = CheckoutSaga(
        store,
        LoyaltyAgent(),
        PaymentAgent(gateway, timeout=settings.payment_timeout_s),
        FulfillmentAgent(scheduler, timeout=settings.fulfillment_timeout_s),
        pickup_slot=settings.default_pickup_slot,
    )
    return Orchestrator(
        store=store,
        classifier=IntentClassifier(llm, timeout=settings.classify_timeout_s),
        recommender=RecommendationAgent(catalog),
        inventory=InventoryAgent(catalog),
        postpurchase=PostPurchaseAgent(store),
        saga=saga,
        llm=llm,
    )
