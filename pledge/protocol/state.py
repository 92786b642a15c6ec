"""
Pledge protocol state representation.

PledgeState is immutable (frozen dataclass) to enable pure functional transitions.
The PeerState enum is the commitment stage; a pending *incoming* request is
not a stage of its own but a deadline overlaid on IDLE or PENDING_OUTGOING.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class PeerState(Enum):
    """Commitment stages."""

    # Neutral: nothing requested locally
    IDLE = auto()

    # Local request sent, awaiting the peer's accept
    PENDING_OUTGOING = auto()

    # Both peers committed; terminal until reset or disconnect
    MATCHED = auto()


@dataclass(frozen=True)
class PledgeState:
    """
    Immutable per-connection protocol state.

    Expiries are epoch milliseconds on the local clock. A request is
    "valid" while ``now_ms < expiry``.
    """

    peer_state: PeerState = PeerState.IDLE

    # Unanswered local request (only while PENDING_OUTGOING)
    outgoing_expiry_ms: int | None = None

    # Unanswered remote request (never while MATCHED)
    incoming_expiry_ms: int | None = None

    connected: bool = False

    @property
    def deadlines(self) -> tuple[int | None, int | None]:
        return (self.outgoing_expiry_ms, self.incoming_expiry_ms)

    def outgoing_valid(self, now_ms: int) -> bool:
        return self.outgoing_expiry_ms is not None and now_ms < self.outgoing_expiry_ms

    def incoming_valid(self, now_ms: int) -> bool:
        return self.incoming_expiry_ms is not None and now_ms < self.incoming_expiry_ms
