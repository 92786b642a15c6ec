"""
Liveness monitor.

Periodic PING/PONG over the control channel, used only to observe
connection health. Staleness is reported, never acted on: the channel's
own disconnect notification is the only authority on the connection.

Like the protocol machine this is a pure step function; the engine runs
the heartbeat timer and executes the returned actions.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

from .codec import Ping, Pong
from .protocol.events import Event, Connected, Disconnected, HeartbeatTick, MessageReceived
from .protocol.actions import Action, SendMessage, StartHeartbeat, StopHeartbeat, AppNotify, Log


@dataclass(frozen=True)
class LivenessRecord:
    """
    Heartbeat bookkeeping for one connection.

    ``last_heartbeat_observed_at_ms`` moves on every PING or PONG, sent or
    received. Staleness is judged on ``last_peer_heartbeat_at_ms`` alone,
    since our own pings would otherwise keep the record fresh forever.
    """

    heartbeat_interval_ms: int = 30_000
    heartbeat_timeout_ms: int = 120_000

    last_heartbeat_observed_at_ms: int | None = None
    last_peer_heartbeat_at_ms: int | None = None

    running: bool = False
    stale: bool = False

    def silent_for_ms(self, now_ms: int) -> int | None:
        if self.last_peer_heartbeat_at_ms is None:
            return None
        return now_ms - self.last_peer_heartbeat_at_ms


StepResult = tuple[LivenessRecord, list[Action]]


class LivenessMonitor:
    """Pure step function over LivenessRecord."""

    @staticmethod
    def step(record: LivenessRecord, event: Event) -> StepResult:
        if isinstance(event, Connected):
            return _on_connected(record, event)
        if isinstance(event, Disconnected):
            return _on_disconnected(record, event)

        if not record.running:
            return (record, [])

        if isinstance(event, HeartbeatTick):
            return _on_tick(record, event)
        if isinstance(event, MessageReceived):
            if isinstance(event.message, Ping):
                return _on_peer_heartbeat(record, event, reply=True)
            if isinstance(event.message, Pong):
                return _on_peer_heartbeat(record, event, reply=False)

        return (record, [])


def _cleared(record: LivenessRecord) -> LivenessRecord:
    return LivenessRecord(
        heartbeat_interval_ms=record.heartbeat_interval_ms,
        heartbeat_timeout_ms=record.heartbeat_timeout_ms,
    )


def _on_connected(record: LivenessRecord, event: Connected) -> StepResult:
    now = event.now_ms
    return (
        replace(
            _cleared(record),
            running=True,
            last_heartbeat_observed_at_ms=now,
            last_peer_heartbeat_at_ms=now,
        ),
        [
            Log("debug", f"[Liveness] Heartbeat every {record.heartbeat_interval_ms}ms"),
            StartHeartbeat(record.heartbeat_interval_ms),
        ]
    )


def _on_disconnected(record: LivenessRecord, event: Disconnected) -> StepResult:
    actions: list[Action] = [StopHeartbeat()] if record.running else []
    return (_cleared(record), actions)


def _on_tick(record: LivenessRecord, event: HeartbeatTick) -> StepResult:
    now = event.now_ms
    actions: list[Action] = []

    silent = record.silent_for_ms(now)
    stale = silent is not None and silent > record.heartbeat_timeout_ms
    if stale and not record.stale:
        actions += [
            Log("warn", f"[Liveness] No heartbeat from peer for {silent // 1000}s"),
            AppNotify("connection_stale", {"silent_ms": silent}),
        ]

    actions.append(SendMessage(Ping(sent_at_ms=now)))
    return (replace(record, stale=stale, last_heartbeat_observed_at_ms=now), actions)


def _on_peer_heartbeat(record: LivenessRecord, event: MessageReceived, reply: bool) -> StepResult:
    now = event.now_ms
    actions: list[Action] = []

    if record.stale:
        actions += [
            Log("info", "[Liveness] Peer heartbeat resumed"),
            AppNotify("connection_recovered", {}),
        ]
    if reply:
        actions.append(SendMessage(Pong(sent_at_ms=now)))

    return (
        replace(
            record,
            stale=False,
            last_heartbeat_observed_at_ms=now,
            last_peer_heartbeat_at_ms=now,
        ),
        actions,
    )
