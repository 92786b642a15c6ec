"""
In-memory channel adapter.

Joins two engines in the same process, delivering each payload straight
to the other side's ``on_receive``. Traffic can be held and released
later, which is how simultaneous requests are staged in tests and
simulations.
"""
from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Deque

if TYPE_CHECKING:
    from ..engine import PledgeEngine


class LoopbackChannel:
    """One direction of a loopback link. Implements IChannel."""

    def __init__(self, name: str = "loopback"):
        self.name = name
        self.peer: "LoopbackChannel | None" = None
        self.engine: "PledgeEngine | None" = None
        self.connected = False
        self.holding = False
        self.sent: list[bytes] = []
        self._held: Deque[bytes] = deque()

    def attach(self, engine: "PledgeEngine") -> None:
        """Set the engine that receives what the peer sends."""
        self.engine = engine

    def send_bytes(self, payload: bytes) -> bool:
        if not self.connected or self.peer is None:
            return False
        self.sent.append(payload)
        if self.holding:
            self._held.append(payload)
        else:
            self.peer.deliver(payload)
        return True

    def deliver(self, payload: bytes) -> None:
        if self.engine is not None:
            self.engine.on_receive(payload)

    def flush(self) -> int:
        """Deliver held payloads in send order. Returns how many."""
        count = 0
        while self._held and self.peer is not None:
            self.peer.deliver(self._held.popleft())
            count += 1
        return count

    def drop_held(self) -> int:
        count = len(self._held)
        self._held.clear()
        return count


class LoopbackLink:
    """
    Two engines wired back to back.

    Usage:
        link = LoopbackLink()
        alice = PledgeEngine(channel=link.a, timers=timers, clock=clock)
        bob = PledgeEngine(channel=link.b, timers=timers, clock=clock)
        link.attach(alice, bob)
        link.connect()
    """

    def __init__(self):
        self.a = LoopbackChannel("a")
        self.b = LoopbackChannel("b")
        self.a.peer = self.b
        self.b.peer = self.a

    def attach(self, engine_a: "PledgeEngine", engine_b: "PledgeEngine") -> None:
        self.a.attach(engine_a)
        self.b.attach(engine_b)

    def connect(self) -> None:
        self.a.connected = self.b.connected = True
        for channel in (self.a, self.b):
            if channel.engine is not None:
                channel.engine.on_connected()

    def disconnect(self, reason: str = "link closed") -> None:
        self.a.connected = self.b.connected = False
        self.a.drop_held()
        self.b.drop_held()
        for channel in (self.a, self.b):
            if channel.engine is not None:
                channel.engine.on_disconnected(reason)

    def hold(self) -> None:
        """Queue traffic in both directions instead of delivering it."""
        self.a.holding = self.b.holding = True

    def release(self) -> None:
        """Stop holding and deliver everything queued, a's traffic first."""
        self.a.holding = self.b.holding = False
        self.a.flush()
        self.b.flush()
