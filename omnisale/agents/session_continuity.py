# omnisale/agents/session_continuity.py
"""Cross-channel session continuity.

A customer can browse on web, pick the conversation up on WhatsApp and finish
at a kiosk. Each turn starts from the durable snapshot on the customer row;
this module works out whether the channel changed since the last turn and
what the reply step needs to acknowledge it.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..schemas import SessionSnapshot


@dataclass
class SessionState:
    snapshot: SessionSnapshot
    channel: str
    previous_channel: Optional[str]
    channel_switched: bool
    continuity: Optional[Dict[str, Any]] = None

    def context(self) -> Dict[str, Any]:
        """The ``sessionContext`` block returned to clients."""
        return {
            "channel": self.channel,
            "previous_channel": self.previous_channel,
            "channel_switched": self.channel_switched,
            "continuity": self.continuity,
            "cart": [line.model_dump() for line in self.snapshot.cart],
            "cart_total": self.snapshot.cart_total(),
            "last_recommended": (
                self.snapshot.last_recommended.model_dump() if self.snapshot.last_recommended else None
            ),
            "last_browsed_category": self.snapshot.last_browsed_category,
        }


def detect_channel_switch(last_channel: Optional[str], current_channel: Optional[str]) -> bool:
    return last_channel is not None and current_channel is not None and last_channel != current_channel


def build_session_state(
    last_channel: Optional[str],
    current_channel: str,
    snapshot: Optional[SessionSnapshot],
) -> SessionState:
    # work on a copy; the caller's snapshot stays as loaded
    working = snapshot.model_copy(deep=True) if snapshot is not None else SessionSnapshot()
    switched = detect_channel_switch(last_channel, current_channel)

    continuity = None
    if switched:
        continuity = {
            "previous_channel": last_channel,
            "current_channel": current_channel,
        }
        rec = working.last_recommended
        if rec is not None:
            continuity.update({
                "item_name": rec.name,
                "sku": rec.sku,
                "category": rec.category,
            })

    return SessionState(
        snapshot=working,
        channel=current_channel,
        previous_channel=last_channel,
        channel_switched=switched,
        continuity=continuity,
    )


def advance_snapshot(state: SessionState) -> SessionSnapshot:
    """Stamp the outgoing snapshot with this turn's channel bookkeeping."""
    snap = state.snapshot
    snap.previous_channel = state.previous_channel
    snap.current_channel = state.channel
    snap.channel_switched = state.channel_switched
    return snap
