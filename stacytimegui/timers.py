from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, QTimer


class QtTimerHandle:
    """Single-shot QTimer wrapped in the core's ``cancel()`` handle shape."""

    def __init__(self, delay: float, callback: Callable[[], None],
                 parent: QObject | None = None,
                 on_finished: Callable[[QtTimerHandle], None] | None = None):
        self._callback = callback
        self._on_finished = on_finished
        self._timer = QTimer(parent)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, int(round(delay * 1000))))
        self._timer.timeout.connect(self._on_timeout)
        self._timer.start()

    @property
    def active(self) -> bool:
        return self._timer.isActive()

    def cancel(self) -> None:
        self._timer.stop()
        self._finish()

    def _finish(self) -> None:
        on_finished, self._on_finished = self._on_finished, None
        if on_finished is not None:
            on_finished(self)

    def _on_timeout(self) -> None:
        self._finish()
        self._callback()


class QtTimerFactory:
    """Timer factory that schedules on the Qt event loop of *parent*'s thread.

    Pass an instance as ``timer_factory`` to ``TimelineEditor`` or
    ``ViewportController`` so quiet-period, resize and redraw timers fire
    on the GUI thread.  The factory holds every live handle, so callers
    may drop the one they get back.
    """

    def __init__(self, parent: QObject | None = None):
        self._parent = parent
        self._live: set[QtTimerHandle] = set()

    @property
    def pending(self) -> int:
        return len(self._live)

    def __call__(self, delay: float, callback: Callable[[], None]) -> QtTimerHandle:
        handle = QtTimerHandle(delay, callback, self._parent,
                               on_finished=self._live.discard)
        self._live.add(handle)
        return handle
