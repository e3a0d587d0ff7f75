# omnisale/agents/cart.py
from typing import Any, Dict, List

from ..schemas import CartLine, SessionSnapshot


def add_line(snapshot: SessionSnapshot, line: CartLine) -> SessionSnapshot:
    """Merge a line into the cart. An sku already in the cart gets its qty bumped."""
    for existing in snapshot.cart:
        if existing.sku == line.sku:
            existing.qty += line.qty
            return snapshot
    snapshot.cart.append(line.model_copy())
    return snapshot


def remove_line(snapshot: SessionSnapshot, sku: str) -> bool:
    before = len(snapshot.cart)
    snapshot.cart = [l for l in snapshot.cart if l.sku != sku]
    return len(snapshot.cart) != before


def clear_cart(snapshot: SessionSnapshot) -> SessionSnapshot:
    snapshot.cart = []
    return snapshot


def cart_total(snapshot: SessionSnapshot) -> float:
    return snapshot.cart_total()


def cart_summary(snapshot: SessionSnapshot) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = [l.model_dump() for l in snapshot.cart]
    return {
        "items": items,
        "count": sum(l.qty for l in snapshot.cart),
        "subtotal": snapshot.cart_total(),
    }
