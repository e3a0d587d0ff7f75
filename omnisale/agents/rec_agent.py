# omnisale/agents/rec_agent.py
import logging
import re
from typing import Any, Dict, List, Optional

from .inventory_agent import fulfillment_options

logger = logging.getLogger(__name__)

MAX_RECS = 10

# words in the request that pin the category
CATEGORY_HINTS = {
    "shirt": "shirts",
    "shirts": "shirts",
    "shoe": "footwear",
    "shoes": "footwear",
    "sneaker": "footwear",
    "sneakers": "footwear",
    "kurta": "ethnic",
    "saree": "ethnic",
    "dress": "dresses",
    "jeans": "bottoms",
    "trousers": "bottoms",
}


def category_hint(query: str) -> Optional[str]:
    for tok in re.split(r"\W+", (query or "").lower()):
        if tok in CATEGORY_HINTS:
            return CATEGORY_HINTS[tok]
    return None


def product_occasions(prod: Dict[str, Any]) -> List[str]:
    occ = (prod.get("attributes") or {}).get("occasion") or []
    if isinstance(occ, str):
        occ = [occ]
    return [str(o).lower() for o in occ]


def score_product(prod: Dict[str, Any], query: str, occasion: Optional[str] = None) -> int:
    q = (query or "").lower()
    tokens = [t for t in re.split(r"\W+", q) if len(t) > 2]
    score = 0
    text = " ".join([prod.get("name", ""), prod.get("category", "")] + list(prod.get("tags") or [])).lower()
    for tok in tokens:
        if tok in text:
            score += 1
    for t in (prod.get("tags") or []):
        if t and t.lower() in q:
            score += 2
    m = re.search(r"([0-9]{3,6})", q)
    if m:
        budget = float(m.group(1))
        if (prod.get("price") or 0) <= budget:
            score += 2
    for av in (prod.get("attributes") or {}).values():
        if any(tok in str(av).lower() for tok in tokens):
            score += 1
    if occasion and occasion.lower() in product_occasions(prod):
        score += 3
    return score


def rank_products(products: List[Dict[str, Any]], query: str, occasion: Optional[str] = None,
                  top_k: int = MAX_RECS) -> List[Dict[str, Any]]:
    hint = category_hint(query)
    pool = [p for p in products if p.get("category") == hint] if hint else list(products)
    scored = [(score_product(p, query, occasion), p) for p in pool]
    # higher score first, cheaper first on ties
    scored.sort(key=lambda x: (-x[0], float(x[1].get("price") or 0)))
    if hint:
        ranked = [p for _, p in scored]
    else:
        ranked = [p for s, p in scored if s > 0]
    return [dict(p) for p in ranked[:min(top_k, MAX_RECS)]]


class RecommendationAgent:
    def __init__(self, catalog):
        self.catalog = catalog

    async def recommend(self, customer, utterance: str, occasion: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            products = await self.catalog.list_products()
            recs = rank_products(products, utterance, occasion)
            if not recs:
                return []
            levels = await self.catalog.stock_levels([r["sku"] for r in recs], customer.store_location)
        except Exception as e:
            logger.warning("[REC] recommendation failed for %s: %s", customer.customer_id, e)
            return []

        for r in recs:
            lvl = levels.get(r["sku"]) or {}
            online = int(lvl.get("online", 0) or 0)
            store = int(lvl.get("store", 0) or 0)
            r["available"] = online > 0 or store > 0
            r["onlineStock"] = online
            r["storeStock"] = store
            r["fulfillmentOptions"] = fulfillment_options(online, store)
        return recs
