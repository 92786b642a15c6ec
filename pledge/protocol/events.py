"""
Events are inputs to the Pledge state machines.

The protocol reacts to events and produces actions.
Events are clock-agnostic: the engine stamps each one with ``now_ms``
when it enters the queue, and timer callbacks become events too.
"""
from __future__ import annotations

from dataclasses import dataclass

from ..codec import Decoded


@dataclass(frozen=True)
class Event:
    """Base class for all protocol events."""
    now_ms: int


# === Connection Lifecycle ===

@dataclass(frozen=True)
class Connected(Event):
    """The channel to the peer is open."""
    pass


@dataclass(frozen=True)
class Disconnected(Event):
    """The channel reported disconnection. Authoritative."""
    reason: str = "disconnected"


# === User Intents ===

@dataclass(frozen=True)
class Initiate(Event):
    """User asks to commit for ``duration_ms`` (or accepts a pending request)."""
    duration_ms: int


@dataclass(frozen=True)
class AcceptIncoming(Event):
    """User accepts the peer's pending request. Never sends a request of its own."""
    pass


@dataclass(frozen=True)
class UserReset(Event):
    """User returns to neutral."""
    pass


# === Inbound ===

@dataclass(frozen=True)
class MessageReceived(Event):
    """A payload from the peer, already decoded."""
    message: Decoded


# === Timer Events ===

@dataclass(frozen=True)
class ExpiryFired(Event):
    """The expiry scheduler's one-shot timer elapsed."""
    deadline_ms: int | None = None
    # Scheduler arm this firing belongs to; None for hand-fed expiries
    generation: int | None = None


@dataclass(frozen=True)
class HeartbeatTick(Event):
    """The periodic heartbeat timer ticked."""
    pass
