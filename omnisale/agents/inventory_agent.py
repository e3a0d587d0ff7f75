# omnisale/agents/inventory_agent.py
import logging
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


def fulfillment_options(online_stock: int, store_stock: int) -> List[str]:
    options = []
    if (online_stock or 0) > 0:
        options.append("ship_to_home")
    if (store_stock or 0) > 0:
        options.extend(["click_and_collect", "reserve_in_store"])
    if not options:
        # every queried sku gets at least one option
        options.append("ship_to_home")
    return options


class InventoryAgent:
    def __init__(self, catalog):
        self.catalog = catalog

    async def check(self, skus: Sequence[str], store_location: Optional[str]) -> List[Dict[str, Any]]:
        skus = [s for s in dict.fromkeys(skus or []) if s]
        if not skus:
            return []
        try:
            levels = await self.catalog.stock_levels(skus, store_location)
        except Exception as e:
            logger.warning("[INVENTORY] lookup failed for %s: %s", skus, e)
            return []

        out = []
        for sku in skus:
            lvl = levels.get(sku) or {}
            online = int(lvl.get("online", 0) or 0)
            store = int(lvl.get("store", 0) or 0)
            out.append({
                "sku": sku,
                "storeLocation": store_location,
                "onlineStock": online,
                "storeStock": store,
                "fulfillmentOptions": fulfillment_options(online, store),
            })
        return out
