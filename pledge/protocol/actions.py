"""
Actions are outputs from the Pledge state machines.

The engine executes actions by calling concrete implementations
(codec + channel, expiry scheduler, heartbeat timer, application callbacks).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..codec import ControlMessage


@dataclass(frozen=True)
class Action:
    """Base class for all protocol actions."""
    pass


# === Channel Actions ===

@dataclass(frozen=True)
class SendMessage(Action):
    """Encode a control message and hand it to the channel."""
    message: ControlMessage


# === Timer Actions ===

@dataclass(frozen=True)
class ScheduleExpiry(Action):
    """Re-arm the expiry scheduler for the earliest of these deadlines."""
    candidates: tuple[int | None, ...]


@dataclass(frozen=True)
class CancelExpiry(Action):
    """Disarm the expiry scheduler."""
    pass


@dataclass(frozen=True)
class StartHeartbeat(Action):
    """Start (or restart) the periodic heartbeat timer."""
    interval_ms: int


@dataclass(frozen=True)
class StopHeartbeat(Action):
    """Stop the periodic heartbeat timer."""
    pass


# === Application Callbacks ===

@dataclass(frozen=True)
class AppNotify(Action):
    """Notify application of a protocol event."""
    event_type: str  # "state_changed", "match", "peer_reset", "connection_stale", etc.
    details: dict[str, Any] = field(default_factory=dict)


# === Logging ===

@dataclass(frozen=True)
class Log(Action):
    """Emit a log message."""
    level: str  # "debug", "info", "warn", "error"
    message: str
