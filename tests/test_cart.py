"""Tests for the shared cart merge rule."""

from omnisale.agents.cart import add_line, cart_summary, clear_cart, remove_line
from omnisale.schemas import CartLine, SessionSnapshot


class TestCart:
    def test_same_sku_twice_merges_into_one_line(self):
        snap = SessionSnapshot()
        add_line(snap, CartLine(sku="S1", qty=1, price=100.0))
        add_line(snap, CartLine(sku="S1", qty=1, price=100.0))
        assert len(snap.cart) == 1
        assert snap.cart[0].qty == 2

    def test_different_skus_get_separate_lines(self):
        snap = SessionSnapshot()
        add_line(snap, CartLine(sku="S1", qty=1, price=100.0))
        add_line(snap, CartLine(sku="S2", qty=3, price=50.0))
        assert [l.sku for l in snap.cart] == ["S1", "S2"]
        assert snap.cart_total() == 250.0

    def test_added_line_is_copied(self):
        snap = SessionSnapshot()
        line = CartLine(sku="S1", qty=1, price=10.0)
        add_line(snap, line)
        add_line(snap, CartLine(sku="S1", qty=1, price=10.0))
        assert line.qty == 1

    def test_remove_line(self):
        snap = SessionSnapshot(cart=[CartLine(sku="S1", qty=2, price=10.0)])
        assert remove_line(snap, "S1") is True
        assert snap.cart == []
        assert remove_line(snap, "S1") is False

    def test_clear_and_summary(self):
        snap = SessionSnapshot(cart=[CartLine(sku="S1", qty=2, price=10.0), CartLine(sku="S2", qty=1, price=5.0)])
        summary = cart_summary(snap)
        assert summary["count"] == 3
        assert summary["subtotal"] == 25.0
        clear_cart(snap)
        assert cart_summary(snap) == {"items": [], "count": 0, "subtotal": 0}
