"""Tests for cross-channel session state."""

from omnisale.agents.session_continuity import (
    advance_snapshot,
    build_session_state,
    detect_channel_switch,
)
from omnisale.schemas import CartLine, RecommendedItem, SessionSnapshot


def _snapshot_with_rec() -> SessionSnapshot:
    return SessionSnapshot(
        cart=[CartLine(sku="SH-101", qty=1, price=1499.0)],
        last_recommended=RecommendedItem(sku="SH-101", name="Linen Summer Shirt", category="shirts"),
    )


class TestDetectChannelSwitch:
    def test_first_turn_is_not_a_switch(self):
        assert detect_channel_switch(None, "web") is False

    def test_same_channel_is_not_a_switch(self):
        assert detect_channel_switch("web", "web") is False

    def test_different_channel_is_a_switch(self):
        assert detect_channel_switch("web", "whatsapp") is True

    def test_missing_current_channel_is_not_a_switch(self):
        assert detect_channel_switch("web", None) is False


class TestBuildSessionState:
    def test_first_turn_has_no_continuity(self):
        state = build_session_state(None, "web", None)
        assert state.channel_switched is False
        assert state.continuity is None
        assert state.snapshot.cart == []

    def test_switch_with_recommendation_surfaces_item(self):
        state = build_session_state("web", "whatsapp", _snapshot_with_rec())
        assert state.channel_switched is True
        assert state.continuity == {
            "previous_channel": "web",
            "current_channel": "whatsapp",
            "item_name": "Linen Summer Shirt",
            "sku": "SH-101",
            "category": "shirts",
        }

    def test_switch_without_recommendation_surfaces_transition_only(self):
        state = build_session_state("kiosk", "web", SessionSnapshot())
        assert state.continuity == {"previous_channel": "kiosk", "current_channel": "web"}

    def test_same_channel_keeps_cart_and_no_continuity(self):
        state = build_session_state("web", "web", _snapshot_with_rec())
        assert state.continuity is None
        assert [line.sku for line in state.snapshot.cart] == ["SH-101"]

    def test_input_snapshot_is_not_mutated(self):
        original = _snapshot_with_rec()
        state = build_session_state("web", "whatsapp", original)
        state.snapshot.cart.clear()
        assert len(original.cart) == 1

    def test_context_block(self):
        ctx = build_session_state("web", "whatsapp", _snapshot_with_rec()).context()
        assert ctx["channel"] == "whatsapp"
        assert ctx["previous_channel"] == "web"
        assert ctx["channel_switched"] is True
        assert ctx["cart_total"] == 1499.0
        assert ctx["last_recommended"]["sku"] == "SH-101"


class TestAdvanceSnapshot:
    def test_stamps_channel_fields(self):
        state = build_session_state("web", "whatsapp", SessionSnapshot())
        snap = advance_snapshot(state)
        assert snap.current_channel == "whatsapp"
        assert snap.previous_channel == "web"
        assert snap.channel_switched is True
