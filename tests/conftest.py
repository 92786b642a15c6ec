"""
Pytest configuration for pledge tests.

Provides a manual clock and timer service so every timing scenario runs
instantly and deterministically, plus a channel that records what the
engine sends.
"""
import pytest
import sys
from pathlib import Path

# Ensure pledge package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pledge.codec import decode
from pledge.engine import PledgeEngine


MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

# Arbitrary but realistic epoch start (2024-01-01T00:00:00Z)
T0_MS = 1_704_067_200_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = T0_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class _ManualTimer:
    def __init__(self, due_ms, interval_ms, callback, seq):
        self.due_ms = due_ms
        self.interval_ms = interval_ms
        self.callback = callback
        self.seq = seq
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTimerService:
    """ITimerService driven by FakeClock.advance()."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self._timers = []
        self._seq = 0

    def _add(self, due_ms, interval_ms, callback):
        self._seq += 1
        timer = _ManualTimer(due_ms, interval_ms, callback, self._seq)
        self._timers.append(timer)
        return timer

    def call_later(self, delay_ms, callback):
        return self._add(self.clock.now_ms + delay_ms, None, callback)

    def call_every(self, interval_ms, callback):
        return self._add(self.clock.now_ms + interval_ms, interval_ms, callback)

    @property
    def pending(self):
        return [t for t in self._timers if not t.cancelled]

    @property
    def pending_one_shots(self):
        return [t for t in self.pending if t.interval_ms is None]

    def advance(self, ms: int) -> None:
        """Move the clock forward, firing due timers in deadline order."""
        target = self.clock.now_ms + ms
        while True:
            due = [t for t in self.pending if t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due_ms, t.seq))
            self.clock.now_ms = timer.due_ms
            if timer.interval_ms is None:
                timer.cancelled = True
            else:
                timer.due_ms += timer.interval_ms
            timer.callback()
        self.clock.now_ms = target


class RecordingChannel:
    """IChannel that records payloads and can be told to fail."""

    def __init__(self):
        self.sent = []
        self.accept = True
        self.error = None

    def send_bytes(self, payload: bytes) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(payload)
        return self.accept

    @property
    def messages(self):
        return [decode(p) for p in self.sent]

    def clear(self):
        self.sent.clear()


class RecordingLogger:
    def __init__(self):
        self.records = []

    def __call__(self, level, message):
        self.records.append((level, message))

    def at(self, level):
        return [m for (lvl, m) in self.records if lvl == level]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return ManualTimerService(clock)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def events():
    """List of (event_type, details) seen through engine.on_event."""
    return []


@pytest.fixture
def engine(channel, timers, clock, logger, events):
    """A connected engine with an empty outbox."""
    eng = PledgeEngine(channel=channel, timers=timers, clock=clock, logger=logger)
    eng.on_event = lambda event_type, details: events.append((event_type, details))
    eng.on_connected()
    channel.clear()
    events.clear()
    return eng
