"""
Timer primitives.

The protocol never sleeps. It asks a timer service for one-shot and
periodic callbacks and a clock for the current epoch milliseconds.
Hosts pick the service matching their runtime: threads or asyncio.
"""
from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable, Protocol, runtime_checkable


Clock = Callable[[], int]

# Longest single wait handed to a timer (one year). Longer deadlines fire
# early and get re-armed for the remainder.
MAX_DELAY_MS = int(min(threading.TIMEOUT_MAX, 365 * 24 * 3600) * 1000)


def _seconds(delay_ms: int) -> float:
    return min(max(delay_ms, 0), MAX_DELAY_MS) / 1000.0


def epoch_ms() -> int:
    """Wall clock in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


@runtime_checkable
class ITimerService(Protocol):
    """
    Scheduling primitives consumed by the engine.

    Callbacks run on whatever context the service uses (a timer thread,
    the event loop). The engine serializes them with everything else.
    """

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms``."""
        ...

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval_ms`` until cancelled."""
        ...


class _PeriodicThread:
    def __init__(self, interval_ms: int, callback: Callable[[], None]):
        self._interval_s = _seconds(interval_ms)
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="pledge-heartbeat", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            self._callback()

    def cancel(self) -> None:
        self._stop_event.set()


class ThreadingTimerService:
    """Timer service backed by ``threading``."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(_seconds(delay_ms), callback)
        timer.daemon = True
        timer.start()
        return timer

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        return _PeriodicThread(interval_ms, callback)


class _PeriodicHandle:
    def __init__(self, loop: asyncio.AbstractEventLoop, interval_ms: int, callback: Callable[[], None]):
        self._loop = loop
        self._interval_s = _seconds(interval_ms)
        self._callback = callback
        self._cancelled = False
        self._handle = loop.call_later(self._interval_s, self._tick)

    def _tick(self) -> None:
        if self._cancelled:
            return
        self._handle = self._loop.call_later(self._interval_s, self._tick)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioTimerService:
    """Timer service backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        # Without an explicit loop this must be built inside a running one
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        return self._loop.call_later(_seconds(delay_ms), callback)

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        return _PeriodicHandle(self._loop, interval_ms, callback)
