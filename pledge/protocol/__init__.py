"""
Pledge Protocol - Pure functional state machine.

This module contains the commitment logic separated from I/O concerns.
The PledgeProtocol.step() function is the core: it takes state and event,
returns new state and actions to execute.
"""
from .state import PledgeState, PeerState
from .events import (
    Event,
    Connected,
    Disconnected,
    Initiate,
    AcceptIncoming,
    UserReset,
    MessageReceived,
    ExpiryFired,
    HeartbeatTick,
)
from .actions import (
    Action,
    SendMessage,
    ScheduleExpiry,
    CancelExpiry,
    StartHeartbeat,
    StopHeartbeat,
    AppNotify,
    Log,
)
from .machine import PledgeProtocol

__all__ = [
    # State
    "PledgeState",
    "PeerState",
    # Events
    "Event",
    "Connected",
    "Disconnected",
    "Initiate",
    "AcceptIncoming",
    "UserReset",
    "MessageReceived",
    "ExpiryFired",
    "HeartbeatTick",
    # Actions
    "Action",
    "SendMessage",
    "ScheduleExpiry",
    "CancelExpiry",
    "StartHeartbeat",
    "StopHeartbeat",
    "AppNotify",
    "Log",
    # Protocol
    "PledgeProtocol",
]
