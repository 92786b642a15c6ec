"""
Pledge Protocol State Machine.

This is the core commitment logic, implemented as a pure function:
    step(state, event) -> (new_state, actions)

No I/O, no side effects, no clock dependency (events carry ``now_ms``).
The engine executes the returned actions.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Callable

from ..codec import Accept, Request, Reset
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
)
from .actions import (
    Action,
    SendMessage,
    ScheduleExpiry,
    CancelExpiry,
    AppNotify,
    Log,
)


# Type alias for the step function signature
StepResult = tuple[PledgeState, list[Action]]

_IDLE = PeerState.IDLE
_PENDING = PeerState.PENDING_OUTGOING
_MATCHED = PeerState.MATCHED

# Events that still mean something while disconnected
_LIFECYCLE = (Connected, Disconnected)


class PledgeProtocol:
    """
    Pure functional state machine for the commitment handshake.

    Usage:
        state = PledgeState()
        state, actions = PledgeProtocol.step(state, Connected(now_ms=t))
        state, actions = PledgeProtocol.step(state, Initiate(now_ms=t, duration_ms=30 * 60_000))
        # engine executes actions...
        state, actions = PledgeProtocol.step(state, MessageReceived(now_ms=t2, message=Accept()))
    """

    @staticmethod
    def step(state: PledgeState, event: Event) -> StepResult:
        """
        Process an event and return (new_state, actions).

        Every handled event except a disconnect ends by re-arming the expiry
        scheduler with the post-transition deadlines, and every change of
        peer state is announced with a "state_changed" notification.
        """
        if not state.connected and not isinstance(event, _LIFECYCLE):
            return _not_connected(state, event)

        handler = _find_handler(state, event)
        if handler is None:
            # No handler: no state change, no actions
            return (state, [])

        new_state, actions = handler(state, event)

        if new_state.peer_state != state.peer_state:
            actions.append(AppNotify("state_changed", {"state": new_state.peer_state}))

        if new_state.connected:
            actions.append(ScheduleExpiry(new_state.deadlines))

        return (new_state, actions)


def _find_handler(state: PledgeState, event: Event):
    if isinstance(event, MessageReceived):
        return _MESSAGE_HANDLERS.get((state.peer_state, type(event.message)))

    handler = _HANDLERS.get((state.peer_state, type(event)))
    if handler:
        return handler

    # Try phase-agnostic handlers
    return _GLOBAL_HANDLERS.get(type(event))


def _not_connected(state: PledgeState, event: Event) -> StepResult:
    if isinstance(event, (Initiate, AcceptIncoming, UserReset)):
        return (state, [Log("warn", f"[PledgeProtocol] Not connected, ignoring {type(event).__name__}")])
    return (state, [])


def _cleared(state: PledgeState, peer_state: PeerState) -> PledgeState:
    return replace(state, peer_state=peer_state, outgoing_expiry_ms=None, incoming_expiry_ms=None)


def _match(state: PledgeState, how: str, send_accept: bool) -> StepResult:
    actions: list[Action] = [Log("info", f"[PledgeProtocol] Matched ({how})")]
    if send_accept:
        actions.append(SendMessage(Accept()))
    actions.append(AppNotify("match", {"via": how}))
    return (_cleared(state, _MATCHED), actions)


# =============================================================================
# User intents
# =============================================================================

def _handle_idle_initiate(state: PledgeState, event: Initiate) -> StepResult:
    """IDLE + Initiate -> send a request, or accept the peer's pending one."""

    if state.incoming_valid(event.now_ms):
        # Pressing "commit" while the peer is waiting on us is an accept
        return _match(state, "accept", send_accept=True)

    expires_at = event.now_ms + event.duration_ms
    return (
        replace(
            state,
            peer_state=_PENDING,
            outgoing_expiry_ms=expires_at,
            incoming_expiry_ms=None,
        ),
        [
            Log("info", f"[PledgeProtocol] Requesting commitment until {expires_at}"),
            SendMessage(Request(expires_at_ms=expires_at)),
        ]
    )


def _handle_busy_initiate(state: PledgeState, event: Initiate) -> StepResult:
    """PENDING_OUTGOING / MATCHED + Initiate -> nothing to do."""
    return (state, [Log("warn", f"[PledgeProtocol] Initiate ignored in {state.peer_state.name}")])


def _handle_idle_accept(state: PledgeState, event: AcceptIncoming) -> StepResult:
    """IDLE + AcceptIncoming -> match if the peer's request is still valid."""
    if not state.incoming_valid(event.now_ms):
        return (state, [Log("warn", "[PledgeProtocol] No valid incoming request to accept")])
    return _match(state, "accept", send_accept=True)


def _handle_busy_accept(state: PledgeState, event: AcceptIncoming) -> StepResult:
    return (state, [Log("warn", f"[PledgeProtocol] Accept ignored in {state.peer_state.name}")])


def _handle_user_reset(state: PledgeState, event: UserReset) -> StepResult:
    """Any + UserReset -> back to neutral, tell the peer."""
    return (
        _cleared(state, _IDLE),
        [
            Log("info", "[PledgeProtocol] Reset by user"),
            SendMessage(Reset()),
        ]
    )


# =============================================================================
# Inbound messages
# =============================================================================

def _handle_request(state: PledgeState, event: MessageReceived) -> StepResult:
    """IDLE / PENDING_OUTGOING + Request -> race match, or note the incoming request."""
    request: Request = event.message
    exp = request.expires_at_ms

    if exp <= event.now_ms:
        return (state, [Log("debug", f"[PledgeProtocol] Ignoring expired request (exp={exp})")])

    if state.peer_state is _PENDING and state.outgoing_valid(event.now_ms):
        # Both sides asked: each resolves to MATCHED on its own
        return _match(state, "race", send_accept=True)

    return (
        replace(state, incoming_expiry_ms=exp),
        [
            Log("info", f"[PledgeProtocol] Incoming request until {exp}"),
            AppNotify("incoming_request", {"expires_at_ms": exp}),
        ]
    )


def _handle_matched_request(state: PledgeState, event: MessageReceived) -> StepResult:
    """MATCHED + Request -> ignored, MATCHED holds no incoming deadline."""
    return (state, [Log("debug", "[PledgeProtocol] Ignoring request while matched")])


def _handle_accept(state: PledgeState, event: MessageReceived) -> StepResult:
    """IDLE / PENDING_OUTGOING + Accept -> MATCHED."""
    return _match(state, "peer_accept", send_accept=False)


def _handle_matched_accept(state: PledgeState, event: MessageReceived) -> StepResult:
    """MATCHED + Accept -> duplicate, no reply and no second notification."""
    return (state, [Log("debug", "[PledgeProtocol] Duplicate accept while matched")])


def _handle_peer_reset(state: PledgeState, event: MessageReceived) -> StepResult:
    """Any + Reset -> IDLE."""
    return (
        _cleared(state, _IDLE),
        [
            Log("info", "[PledgeProtocol] Reset by peer"),
            AppNotify("peer_reset", {}),
        ]
    )


# =============================================================================
# Timers
# =============================================================================

def _handle_expiry(state: PledgeState, event: ExpiryFired) -> StepResult:
    """Any + ExpiryFired -> clear whichever slots have elapsed."""
    now = event.now_ms
    new_state = state
    actions: list[Action] = []

    out = state.outgoing_expiry_ms
    if state.peer_state is _PENDING and out is not None and now >= out:
        new_state = replace(new_state, peer_state=_IDLE, outgoing_expiry_ms=None)
        actions += [
            Log("info", f"[PledgeProtocol] Outgoing request expired ({out})"),
            SendMessage(Reset()),
            AppNotify("request_expired", {"direction": "outgoing", "expires_at_ms": out}),
        ]

    inc = state.incoming_expiry_ms
    if state.peer_state is not _MATCHED and inc is not None and now >= inc:
        new_state = replace(new_state, incoming_expiry_ms=None)
        actions += [
            Log("info", f"[PledgeProtocol] Incoming request expired ({inc})"),
            AppNotify("request_expired", {"direction": "incoming", "expires_at_ms": inc}),
        ]

    return (new_state, actions)


# =============================================================================
# Connection lifecycle
# =============================================================================

def _handle_connected(state: PledgeState, event: Connected) -> StepResult:
    """Any + Connected -> fresh IDLE state."""
    return (
        PledgeState(connected=True),
        [Log("info", "[PledgeProtocol] Connected")],
    )


def _handle_disconnected(state: PledgeState, event: Disconnected) -> StepResult:
    """Any + Disconnected -> IDLE, deadlines gone, scheduler cancelled."""
    return (
        PledgeState(connected=False),
        [
            CancelExpiry(),
            Log("info", f"[PledgeProtocol] Disconnected: {event.reason}"),
        ]
    )


# =============================================================================
# Handler dispatch tables
# =============================================================================

# Phase-specific handlers: (peer_state, event_type) -> handler
_HANDLERS: dict[tuple, Callable[[PledgeState, Event], StepResult]] = {
    (_IDLE, Initiate): _handle_idle_initiate,
    (_PENDING, Initiate): _handle_busy_initiate,
    (_MATCHED, Initiate): _handle_busy_initiate,
    (_IDLE, AcceptIncoming): _handle_idle_accept,
    (_PENDING, AcceptIncoming): _handle_busy_accept,
    (_MATCHED, AcceptIncoming): _handle_busy_accept,
}

# Inbound message handlers: (peer_state, message_type) -> handler
_MESSAGE_HANDLERS: dict[tuple, Callable[[PledgeState, MessageReceived], StepResult]] = {
    (_IDLE, Request): _handle_request,
    (_PENDING, Request): _handle_request,
    (_MATCHED, Request): _handle_matched_request,

    (_IDLE, Accept): _handle_accept,
    (_PENDING, Accept): _handle_accept,
    (_MATCHED, Accept): _handle_matched_accept,

    (_IDLE, Reset): _handle_peer_reset,
    (_PENDING, Reset): _handle_peer_reset,
    (_MATCHED, Reset): _handle_peer_reset,
    # Ping, Pong and Unrecognized carry no transition
}

# Global handlers: event_type -> handler (checked if no phase-specific handler)
_GLOBAL_HANDLERS: dict[type, Callable[[PledgeState, Event], StepResult]] = {
    UserReset: _handle_user_reset,
    ExpiryFired: _handle_expiry,
    Connected: _handle_connected,
    Disconnected: _handle_disconnected,
}
