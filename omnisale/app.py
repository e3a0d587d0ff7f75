# omnisale/app.py
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .agents.cart import add_line, cart_summary, remove_line
from .agents.inventory_agent import fulfillment_options
from .agents.orchestrator import Orchestrator
from .agents.rec_agent import product_occasions
from .config import configure_logging, settings
from .crud import ONLINE_WAREHOUSE
from .db import Base, engine
from .deps import get_catalog, get_customer_from_token, get_llm, get_orchestrator, get_session_store
from .errors import CustomerNotFound, PersistenceFailure, WorkerUnavailable
from .llm import LLMClient
from .messaging import router as messaging_router
from .schemas import CartLine
from .store import Catalog, SessionStore

configure_logging()
logger = logging.getLogger(__name__)

APOLOGY = "Sorry, something went wrong while processing your request. Please try again."


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title="OmniSale Orchestration Engine",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messaging_router)


class OrchestratorIn(BaseModel):
    user_query: Optional[str] = None
    channel: Optional[str] = "web"


class CartAddIn(BaseModel):
    sku: str
    qty: int = Field(default=1, ge=1)


def error_payload(e: Exception) -> dict:
    payload = {"reply": APOLOGY}
    if settings.debug:
        payload["error"] = str(e)
        payload["trace"] = traceback.format_exc()
    return payload


@app.post("/orchestrator")
async def orchestrator_endpoint(
    payload: OrchestratorIn,
    customer_id: str = Depends(get_customer_from_token),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    text = (payload.user_query or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="user_query is required")
    channel = (payload.channel or "web").lower()
    try:
        result = await orchestrator.handle_turn(text, customer_id, channel)
    except CustomerNotFound as e:
        return JSONResponse(status_code=404, content={"reply": e.user_message})
    except Exception as e:
        logger.exception("[MASTER] turn failed for %s", customer_id)
        return JSONResponse(status_code=500, content=error_payload(e))
    return result.to_dict()


# ---------- cart ----------
async def _load_customer(store: SessionStore, customer_id: str):
    customer = await store.get_customer(customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


async def _save_cart(store: SessionStore, customer) -> None:
    # cart edits are not a channel turn; keep last_channel as it was
    try:
        await store.save_snapshot(customer.customer_id, customer.snapshot, customer.last_channel)
    except PersistenceFailure as e:
        logger.error("[CART] save failed for %s: %s", customer.customer_id, e)
        raise HTTPException(status_code=503, detail="Could not save cart")


@app.get("/cart")
async def get_cart(
    customer_id: str = Depends(get_customer_from_token),
    store: SessionStore = Depends(get_session_store),
):
    customer = await _load_customer(store, customer_id)
    return cart_summary(customer.snapshot)


@app.post("/cart")
async def add_to_cart(
    payload: CartAddIn,
    customer_id: str = Depends(get_customer_from_token),
    store: SessionStore = Depends(get_session_store),
    catalog: Catalog = Depends(get_catalog),
):
    customer = await _load_customer(store, customer_id)
    product = await catalog.get_product(payload.sku)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    add_line(customer.snapshot, CartLine(
        sku=product["sku"], qty=payload.qty, price=product["price"], name=product["name"],
    ))
    await _save_cart(store, customer)
    return {"ok": True, "cart": cart_summary(customer.snapshot)}


@app.delete("/cart/{sku}")
async def remove_from_cart(
    sku: str,
    customer_id: str = Depends(get_customer_from_token),
    store: SessionStore = Depends(get_session_store),
):
    customer = await _load_customer(store, customer_id)
    if not remove_line(customer.snapshot, sku):
        raise HTTPException(status_code=404, detail="Item not in cart")
    await _save_cart(store, customer)
    return {"ok": True, "cart": cart_summary(customer.snapshot)}


# ---------- catalog ----------
@app.get("/api/products")
async def list_products(
    category: Optional[str] = Query(None),
    occasion: Optional[str] = Query(None),
    catalog: Catalog = Depends(get_catalog),
):
    try:
        products = await catalog.list_products(category=category)
    except WorkerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if occasion:
        products = [p for p in products if occasion.lower() in product_occasions(p)]
    return products


@app.get("/api/products/{sku}")
async def get_product(sku: str, catalog: Catalog = Depends(get_catalog)):
    try:
        product = await catalog.get_product(sku)
    except WorkerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.get("/api/inventory/{sku}")
async def get_inventory(
    sku: str,
    location: Optional[str] = Query(None),
    catalog: Catalog = Depends(get_catalog),
):
    try:
        rows = await catalog.inventory_rows(sku, location)
    except WorkerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not rows:
        raise HTTPException(status_code=404, detail="No inventory found for SKU")
    for r in rows:
        online = r["stock"] if r["location"] == ONLINE_WAREHOUSE else 0
        in_store = r["stock"] if r["location"] != ONLINE_WAREHOUSE else 0
        r["fulfillmentOptions"] = fulfillment_options(online, in_store)
    return rows


@app.get("/health")
async def health(
    store: SessionStore = Depends(get_session_store),
    llm: LLMClient = Depends(get_llm),
):
    database = "ok" if await store.ping() else "unreachable"
    llm_status = await llm.ping()
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "llm": llm_status,
    }


if __name__ == "__main__":
    uvicorn.run("omnisale.app:app", host="0.0.0.0", port=8000, reload=settings.debug)
