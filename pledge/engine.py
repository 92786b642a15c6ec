"""
Pledge Engine - Executes protocol actions.

The engine bridges the pure functional state machines to concrete implementations:
- Codec + channel (outbound control messages)
- ExpiryScheduler (request deadlines)
- Timer service (heartbeat)
- Application callbacks

It is also the single event-processing context of a connection: user
intents, inbound payloads and timer firings all go through feed_event()
and are processed one at a time, in arrival order.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable

from .codec import Unrecognized, decode, encode
from .config import PledgeConfig
from .errors import ChannelError
from .liveness import LivenessMonitor, LivenessRecord
from .protocol import (
    PledgeProtocol,
    PledgeState,
    PeerState,
    Event,
    Action,
    # Events
    Connected,
    Disconnected,
    Initiate,
    AcceptIncoming,
    UserReset,
    MessageReceived,
    ExpiryFired,
    HeartbeatTick,
    # Actions
    SendMessage,
    ScheduleExpiry,
    CancelExpiry,
    StartHeartbeat,
    StopHeartbeat,
    AppNotify,
    Log,
)
from .scheduler import ExpiryScheduler
from .timers import Clock, ITimerService, TimerHandle, epoch_ms
from .transport.interface import IChannel


Logger = Callable[[str, str], None]

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def stdlib_logger(name: str = "pledge") -> Logger:
    """Adapt the ``logger(level, message)`` convention to ``logging``."""
    log = logging.getLogger(name)

    def _log(level: str, message: str) -> None:
        log.log(_LEVELS.get(level, logging.INFO), message)

    return _log


class PledgeEngine:
    """
    Runs the commitment protocol and liveness monitor for one connection.

    Usage:
        engine = PledgeEngine(channel=my_channel, timers=ThreadingTimerService())
        engine.on_match = lambda: print("It's a match!")
        engine.on_state_changed = lambda state: print(state.name)

        # Transport side
        engine.on_connected()
        engine.on_receive(payload)
        engine.on_disconnected("peer left")

        # User side
        engine.initiate(60 * 60_000)
        engine.reset()
    """

    def __init__(
        self,
        channel: IChannel,
        timers: ITimerService,
        clock: Clock | None = None,
        config: PledgeConfig | None = None,
        logger: Logger | None = None,
    ):
        self._channel = channel
        self._timers = timers
        self._clock = clock or epoch_ms
        self._config = config or PledgeConfig()
        self._logger = logger or stdlib_logger()

        # Protocol state
        self._state = PledgeState()
        self._liveness = LivenessRecord(
            heartbeat_interval_ms=self._config.heartbeat_interval_ms,
            heartbeat_timeout_ms=self._config.heartbeat_timeout_ms,
        )

        self._scheduler = ExpiryScheduler(
            clock=self._clock,
            timers=timers,
            logger=self._logger,
            on_due=self._on_expiry_due,
        )
        self._heartbeat: TimerHandle | None = None

        # Event queue; one drainer at a time
        self._lock = threading.Lock()
        self._inbox: deque[Event] = deque()
        self._draining = False

        self._status = "Disconnected"

        # Application callbacks
        self.on_state_changed: Callable[[PeerState], None] | None = None
        self.on_match: Callable[[], None] | None = None
        self.on_peer_reset: Callable[[], None] | None = None
        self.on_incoming_request: Callable[[int], None] | None = None
        self.on_connection_stale: Callable[[int], None] | None = None
        self.on_status: Callable[[str], None] | None = None
        self.on_event: Callable[[str, dict[str, Any]], None] | None = None

    # === Properties ===

    @property
    def state(self) -> PledgeState:
        """Current protocol state (read-only)."""
        return self._state

    @property
    def peer_state(self) -> PeerState:
        return self._state.peer_state

    @property
    def liveness(self) -> LivenessRecord:
        return self._liveness

    @property
    def config(self) -> PledgeConfig:
        return self._config

    @property
    def scheduler(self) -> ExpiryScheduler:
        return self._scheduler

    @property
    def status(self) -> str:
        """Human readable connection status."""
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._state.connected

    @property
    def is_matched(self) -> bool:
        return self._state.peer_state == PeerState.MATCHED

    @property
    def has_incoming_request(self) -> bool:
        """A peer request is waiting for our answer and has not expired."""
        return self._state.incoming_valid(self._clock())

    # === Transport Side ===

    def on_connected(self) -> None:
        self.feed_event(Connected(now_ms=self._clock()))

    def on_disconnected(self, reason: str = "disconnected") -> None:
        self.feed_event(Disconnected(now_ms=self._clock(), reason=reason))

    def on_receive(self, payload: bytes) -> None:
        """Decode an inbound payload and feed it to the state machines."""
        message = decode(payload)
        if isinstance(message, Unrecognized):
            self._logger("debug", f"[Engine] Dropping unrecognized payload ({message.reason})")
            return
        self.feed_event(MessageReceived(now_ms=self._clock(), message=message))

    def report_send_failure(self, error: object) -> None:
        """For transports that learn about failed sends asynchronously."""
        self._send_failed(str(error))

    # === User Side ===

    def initiate(self, duration_ms: int | None = None) -> None:
        """
        Ask the peer to commit within ``duration_ms``.

        If the peer's own request is still pending this accepts it instead.
        """
        if duration_ms is None:
            duration_ms = self._config.default_request_ms
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, int) or duration_ms <= 0:
            raise ValueError(f"Request duration must be a positive number of ms, got {duration_ms!r}")
        if self._config.restrict_durations and duration_ms not in self._config.request_durations_ms:
            raise ValueError(f"Request duration {duration_ms} is not one of {self._config.request_durations_ms}")
        self.feed_event(Initiate(now_ms=self._clock(), duration_ms=duration_ms))

    def accept(self) -> bool:
        """
        Accept the pending incoming request. Returns False if there is none.

        Never falls back to sending a request: if the peer's request lapses
        before the accept is processed, the accept is dropped.
        """
        now = self._clock()
        if not self._state.incoming_valid(now):
            self._logger("warn", "[Engine] No incoming request to accept")
            return False
        self.feed_event(AcceptIncoming(now_ms=now))
        return True

    def reset(self) -> None:
        self.feed_event(UserReset(now_ms=self._clock()))

    def close(self) -> None:
        """Stop all timers without touching protocol state."""
        self._scheduler.cancel()
        self._stop_heartbeat()

    # === Event Feeding ===

    def feed_event(self, event: Event) -> None:
        """
        Feed an event to the state machines.

        Events fed while another is being processed (from a callback, a
        loopback peer or a timer thread) are queued behind it.
        """
        with self._lock:
            self._inbox.append(event)
            if self._draining:
                return
            self._draining = True

        try:
            while True:
                with self._lock:
                    if not self._inbox:
                        self._draining = False
                        return
                    event = self._inbox.popleft()
                self._process(event)
        except BaseException:
            with self._lock:
                self._draining = False
            raise

    def _process(self, event: Event) -> None:
        if isinstance(event, ExpiryFired) and event.generation is not None:
            # Claimed here, not on the timer thread; a re-armed scheduler drops it
            if not self._scheduler.fire(event.generation):
                self._logger("debug", f"[Engine] Dropping superseded expiry for {event.deadline_ms}")
                return

        new_state, actions = PledgeProtocol.step(self._state, event)
        self._state = new_state

        new_liveness, liveness_actions = LivenessMonitor.step(self._liveness, event)
        self._liveness = new_liveness

        for action in actions + liveness_actions:
            self._execute(action)

        if isinstance(event, Connected):
            self._set_status("Connected")
        elif isinstance(event, Disconnected):
            self._set_status(f"Disconnected: {event.reason}")

    # === Action Execution ===

    def _execute(self, action: Action) -> None:
        """Execute a single action."""

        match action:
            case Log(level, message):
                self._logger(level, message)

            case SendMessage(message):
                self._send(message)

            case ScheduleExpiry(candidates):
                self._scheduler.arm(candidates)

            case CancelExpiry():
                self._scheduler.cancel()

            case StartHeartbeat(interval_ms):
                self._stop_heartbeat()
                self._heartbeat = self._timers.call_every(interval_ms, self._on_heartbeat_timer)

            case StopHeartbeat():
                self._stop_heartbeat()

            case AppNotify(event_type, details):
                self._logger("info", f"[Engine] App event: {event_type} {details}")
                self._notify(event_type, details)

            case _:
                self._logger("warn", f"[Engine] Unknown action: {action}")

    def _send(self, message) -> None:
        payload = encode(message)
        try:
            sent = self._channel.send_bytes(payload)
            error = "channel refused payload"
        except (ChannelError, OSError) as e:
            sent = False
            error = str(e)

        if sent:
            self._logger("debug", f"[Engine] Sent {type(message).__name__} ({len(payload)} bytes)")
        else:
            # Local state stays as decided; the send was only a notification
            self._send_failed(f"{type(message).__name__}: {error}")

    def _send_failed(self, error: str) -> None:
        self._logger("warn", f"[Engine] Send failed: {error}")
        self._set_status(f"Send failed: {error}")
        self._notify("send_failed", {"error": error})

    def _notify(self, event_type: str, details: dict[str, Any]) -> None:
        self._call(self.on_event, event_type, details)

        if event_type == "state_changed":
            self._call(self.on_state_changed, details["state"])
        elif event_type == "match":
            self._call(self.on_match)
        elif event_type == "peer_reset":
            self._call(self.on_peer_reset)
        elif event_type == "incoming_request":
            self._call(self.on_incoming_request, details["expires_at_ms"])
        elif event_type == "connection_stale":
            self._call(self.on_connection_stale, details["silent_ms"])

    def _set_status(self, text: str) -> None:
        self._status = text
        self._call(self.on_status, text)

    def _call(self, callback: Callable | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            self._logger("error", f"[Engine] Callback {getattr(callback, '__name__', callback)} failed: {e}")

    # === Timers ===

    def _on_expiry_due(self, deadline_ms: int, generation: int) -> None:
        self.feed_event(ExpiryFired(now_ms=self._clock(), deadline_ms=deadline_ms, generation=generation))

    def _on_heartbeat_timer(self) -> None:
        self.feed_event(HeartbeatTick(now_ms=self._clock()))

    def _stop_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            self._heartbeat = None
