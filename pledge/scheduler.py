"""
Expiry scheduler.

One timer covers both request deadlines (outgoing and incoming). Each
``arm()`` reads the clock once, drops deadlines that are absent or already
past, and schedules a single one-shot timer for the earliest survivor.
Equal deadlines collapse into one firing.
"""
from __future__ import annotations

from typing import Callable, Iterable

from .timers import Clock, ITimerService, TimerHandle


class ExpiryScheduler:
    """
    Single-timer scheduler for the earliest pending deadline.

    Usage:
        scheduler = ExpiryScheduler(clock, timers, on_expiry=engine_callback)
        scheduler.arm((outgoing_expiry_ms, incoming_expiry_ms))
        ...
        scheduler.cancel()

    ``on_expiry`` receives the deadline that elapsed. The caller is expected
    to re-arm once it has processed the expiry, so the remaining deadline
    (if any) gets its own firing.

    With ``on_due`` the timer callback touches no scheduler state: it hands
    ``(deadline_ms, generation)`` to ``on_due`` and the owner calls
    ``fire(generation)`` later from its own event-processing context.
    """

    def __init__(
        self,
        clock: Clock,
        timers: ITimerService,
        on_expiry: Callable[[int], None] | None = None,
        logger: Callable[[str, str], None] | None = None,
        on_due: Callable[[int, int], None] | None = None,
    ):
        self._clock = clock
        self._timers = timers
        self._on_expiry = on_expiry
        self._on_due = on_due
        self._logger = logger or (lambda level, msg: None)

        self._handle: TimerHandle | None = None
        self._deadline_ms: int | None = None
        # Bumped on every arm/cancel/fire so a superseded timer firing late is ignored
        self._generation = 0

    @property
    def armed_deadline_ms(self) -> int | None:
        """Deadline the timer is armed for, or None."""
        return self._deadline_ms

    @property
    def is_armed(self) -> bool:
        return self._handle is not None

    @property
    def generation(self) -> int:
        return self._generation

    def arm(self, candidates: Iterable[int | None]) -> int | None:
        """Cancel any armed timer, then arm for the earliest future candidate."""
        self.cancel()

        now = self._clock()
        future = [c for c in candidates if c is not None and c > now]
        if not future:
            return None

        deadline = min(future)
        generation = self._generation
        self._deadline_ms = deadline
        self._handle = self._timers.call_later(deadline - now, lambda: self._due(deadline, generation))
        self._logger("debug", f"[Scheduler] Armed for {deadline} (in {deadline - now}ms)")
        return deadline

    def _due(self, deadline: int, generation: int) -> None:
        if self._on_due is not None:
            self._on_due(deadline, generation)
        else:
            self.fire(generation)

    def fire(self, generation: int | None = None) -> bool:
        """
        Claim the armed deadline. Stale generations are dropped.

        Returns True if the firing was current; ``on_expiry`` has then been
        called with the elapsed deadline.
        """
        if generation is not None and generation != self._generation:
            return False
        deadline = self._deadline_ms
        if deadline is None:
            return False

        self._handle = None
        self._deadline_ms = None
        self._generation += 1
        self._logger("debug", f"[Scheduler] Fired for {deadline}")
        if self._on_expiry is not None:
            self._on_expiry(deadline)
        return True

    def cancel(self) -> None:
        """Disarm unconditionally."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._deadline_ms = None
