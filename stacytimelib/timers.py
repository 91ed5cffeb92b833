"""Cancellable one-shot timers for the debounce and quiet-period logic.

The core never assumes an event loop or spawns threads for its timers.
Components take a *timer factory* ``(delay_seconds, callback) -> handle``
whose handles expose ``cancel()``, plus a ``clock()`` returning seconds.
Qt hosts pass ``stacytimegui.timers.QtTimerFactory`` so callbacks run on
the GUI thread.  Everything else uses a :class:`Scheduler`, whose
callbacks only run when the host calls :meth:`Scheduler.poll` from its
own loop.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]
Clock = Callable[[], float]


def monotonic_clock() -> float:
    return time.monotonic()


class ScheduledTimer:
    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Timer factory driven by the host loop.

    Scheduling is safe from any thread (the background analysis runner
    may request a redraw); callbacks run only inside :meth:`poll`, on the
    thread that calls it, in due order.
    """

    def __init__(self, clock: Clock = monotonic_clock):
        self._clock = clock
        self._queue: list[tuple[float, int, ScheduledTimer]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def __call__(self, delay: float, callback: Callable[[], None]) -> ScheduledTimer:
        timer = ScheduledTimer(self._clock() + max(0.0, delay), callback)
        with self._lock:
            heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    def next_due(self) -> float | None:
        """Clock time of the earliest live timer, or None."""
        with self._lock:
            while self._queue and self._queue[0][2].cancelled:
                heapq.heappop(self._queue)
            return self._queue[0][0] if self._queue else None

    def poll(self) -> int:
        """Run every timer that is due now.  Returns how many ran."""
        ran = 0
        now = self._clock()
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > now:
                    return ran
                _, _, timer = heapq.heappop(self._queue)
            # a callback earlier in this poll may have cancelled it
            if timer.cancelled:
                continue
            timer.cancelled = True
            timer.callback()
            ran += 1


class Debouncer:
    """Runs *callback* once, *delay* seconds after the last ``trigger()``.

    At most one timer is pending; each trigger replaces it.
    """

    def __init__(self, delay: float, callback: Callable[..., None],
                 timer_factory: TimerFactory):
        self.delay = delay
        self._callback = callback
        self._timer_factory = timer_factory
        self._timer: TimerHandle | None = None
        self._args: tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self, *args: Any) -> None:
        self.cancel()
        self._args = args
        self._timer = self._timer_factory(self.delay, self._fire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        args, self._args = self._args, ()
        self._callback(*args)


class Throttle:
    """Runs *callback* at most once per *interval* seconds.

    A request inside the interval schedules a single trailing call so the
    last state is always delivered.
    """

    def __init__(self, interval: float, callback: Callable[[], None],
                 timer_factory: TimerFactory,
                 clock: Clock = monotonic_clock):
        self.interval = interval
        self._callback = callback
        self._clock = clock
        self._timer_factory = timer_factory
        self._timer: TimerHandle | None = None
        self._last: float | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def request(self) -> bool:
        """Returns True when the callback ran immediately."""
        now = self._clock()
        if self._last is None or now - self._last >= self.interval:
            self.cancel()
            self._run(now)
            return True
        if self._timer is None:
            remaining = self.interval - (now - self._last)
            self._timer = self._timer_factory(remaining, self._fire)
        return False

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._run(self._clock())

    def _run(self, now: float) -> None:
        self._last = now
        self._callback()
