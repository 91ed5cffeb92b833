"""Zoom, scroll and auto-follow state for the timeline view.

Two follow states:

* ``FOLLOWING`` -- during playback the view recenters on the playhead
  whenever it comes within ``follow_margin`` of either visible edge.
* ``MANUAL_OVERRIDE`` -- entered on any user scroll.  Auto-follow resumes
  once no user scroll has happened for ``scroll_quiet_s``; the check runs
  from a single timer re-armed on every scroll.  A seek returns to
  ``FOLLOWING`` at once.

The controller also owns the drag-to-move protocol for one command at a
time.
"""

from __future__ import annotations

from typing import Any, Callable

from .coordinates import CoordinateMapper, clamp
from .events import EventBus
from .log import dbg
from .models import DragState, FollowState, ViewportState
from .timers import (
    Clock,
    Debouncer,
    Scheduler,
    TimerFactory,
    TimerHandle,
    monotonic_clock,
)


class ViewportController:

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        duration: float = 0.0,
        container_width: float = 800.0,
        event_bus: EventBus | None = None,
        clock: Clock = monotonic_clock,
        timer_factory: TimerFactory | None = None,
    ):
        self.config = config or {}
        self.event_bus = event_bus
        self._clock = clock
        # without a host factory, timers run from timer_factory.poll()
        self.timer_factory: TimerFactory = (
            timer_factory if timer_factory is not None else Scheduler(clock))

        self.zoom_min: float = float(self.config.get("zoom_min", 0.1))
        self.zoom_max: float = float(self.config.get("zoom_max", 4.0))
        self.zoom_step: float = float(self.config.get("zoom_step", 1.5))
        self.follow_margin: float = float(self.config.get("follow_margin", 0.1))
        self.quiet_period: float = float(self.config.get("scroll_quiet_s", 2.0))
        self.recheck_delay: float = float(self.config.get("scroll_recheck_s", 2.1))

        self._duration = max(0.0, float(duration))
        self._zoom = 1.0
        self._scroll_offset = 0.0
        self._container_width = float(container_width)
        self._follow_state = FollowState.FOLLOWING
        self._last_manual_scroll_at: float | None = None
        self._scroll_timer: TimerHandle | None = None
        self._scroll_token: object | None = None
        self._drag: DragState | None = None
        self._on_drag_update: Callable[[str, float], None] | None = None

        resize_delay = int(self.config.get("resize_debounce_ms", 100)) / 1000.0
        self._resize = Debouncer(resize_delay, self.set_container_width,
                                 self.timer_factory)

    def _emit(self, event_type: str, **data):
        if self.event_bus:
            self.event_bus.emit(event_type, **data)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def scroll_offset(self) -> float:
        return self._scroll_offset

    @property
    def container_width(self) -> float:
        return self._container_width

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def follow_state(self) -> FollowState:
        return self._follow_state

    @property
    def is_auto_following(self) -> bool:
        return self._follow_state == FollowState.FOLLOWING

    @property
    def drag(self) -> DragState | None:
        return self._drag

    def mapper(self) -> CoordinateMapper:
        return CoordinateMapper.from_config(self._duration, self._zoom, self.config)

    def state(self) -> ViewportState:
        return ViewportState(
            zoom=self._zoom,
            scroll_offset=self._scroll_offset,
            container_width=self._container_width,
            follow_state=self._follow_state,
            last_manual_scroll_at=self._last_manual_scroll_at,
        )

    def max_scroll(self) -> float:
        return max(0.0, self.mapper().track_width - self._container_width)

    # ------------------------------------------------------------------
    # Geometry inputs
    # ------------------------------------------------------------------

    def set_duration(self, duration: float) -> None:
        self._duration = max(0.0, float(duration))
        self._set_scroll(self._scroll_offset)

    def set_container_width(self, width: float) -> None:
        self._container_width = max(0.0, float(width))
        self._set_scroll(self._scroll_offset)
        self._emit("viewport.resized", width=self._container_width)

    def request_resize(self, width: float) -> None:
        """Debounced :meth:`set_container_width` for continuous resize events."""
        self._resize.trigger(width)

    # ------------------------------------------------------------------
    # Zoom
    # ------------------------------------------------------------------

    def set_zoom(self, zoom: float) -> float:
        """Clamp and apply *zoom*, keeping the time at the left edge fixed."""
        new_zoom = clamp(float(zoom), self.zoom_min, self.zoom_max)
        if new_zoom == self._zoom:
            return self._zoom
        left_time = self.mapper().pixel_to_time(self._scroll_offset)
        self._zoom = new_zoom
        self._set_scroll(self.mapper().time_to_pixel(left_time))
        self._emit("viewport.zoom_changed", zoom=self._zoom)
        return self._zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self._zoom * self.zoom_step)

    def zoom_out(self) -> float:
        return self.set_zoom(self._zoom / self.zoom_step)

    def reset_zoom(self) -> float:
        return self.set_zoom(1.0)

    # ------------------------------------------------------------------
    # Scrolling and follow state
    # ------------------------------------------------------------------

    def _set_scroll(self, offset: float) -> float:
        new_offset = clamp(float(offset), 0.0, self.max_scroll())
        if new_offset != self._scroll_offset:
            self._scroll_offset = new_offset
            self._emit("viewport.scrolled", offset=new_offset)
        return self._scroll_offset

    def _set_follow_state(self, state: FollowState) -> None:
        if state == self._follow_state:
            return
        self._follow_state = state
        dbg(f"follow state -> {state.value}")
        self._emit("viewport.follow_changed",
                   following=state == FollowState.FOLLOWING)

    def _cancel_scroll_timer(self) -> None:
        self._scroll_token = None
        if self._scroll_timer is not None:
            self._scroll_timer.cancel()
            self._scroll_timer = None

    def _arm_quiet_check(self, delay: float) -> None:
        """Replace the pending quiet-period check with one *delay* from now."""
        self._cancel_scroll_timer()
        token = object()
        self._scroll_token = token
        self._scroll_timer = self.timer_factory(
            delay, lambda: self._check_quiet_period(token))

    def on_user_scroll(self, offset: float) -> float:
        """A scroll initiated by the user: suspend auto-follow."""
        self._last_manual_scroll_at = self._clock()
        self._set_follow_state(FollowState.MANUAL_OVERRIDE)
        self._arm_quiet_check(self.recheck_delay)
        return self._set_scroll(offset)

    def _check_quiet_period(self, token: object) -> None:
        # a check that was replaced or cancelled after it was queued
        if token is not self._scroll_token:
            return
        self._scroll_timer = None
        self._scroll_token = None
        if self._follow_state != FollowState.MANUAL_OVERRIDE:
            return
        last = self._last_manual_scroll_at
        elapsed = self._clock() - last if last is not None else self.quiet_period
        if elapsed >= self.quiet_period:
            self._set_follow_state(FollowState.FOLLOWING)
        else:
            self._arm_quiet_check(self.quiet_period - elapsed)

    def scroll_to(self, offset: float) -> float:
        """Programmatic scroll; does not affect the follow state."""
        return self._set_scroll(offset)

    def on_playhead(self, current_time: float, playing: bool = True) -> float:
        """Playhead tick.  Recenters when following and the playhead is
        within the edge margin.  Returns the scroll offset."""
        if playing and self.is_auto_following:
            self._recenter_if_near_edge(current_time)
        return self._scroll_offset

    def _recenter_if_near_edge(self, current_time: float) -> None:
        x = self.mapper().time_to_pixel(current_time)
        width = self._container_width
        margin = width * self.follow_margin
        left = self._scroll_offset
        right = left + width
        if x < left + margin or x > right - margin:
            self._set_scroll(max(0.0, x - width / 2))

    def follow_playhead_now(self, current_time: float) -> float:
        """Resume auto-follow immediately and bring the playhead into view."""
        self._cancel_scroll_timer()
        self._set_follow_state(FollowState.FOLLOWING)
        self._recenter_if_near_edge(current_time)
        return self._scroll_offset

    def seek(self, t: float) -> float:
        """Clamp a seek target into the track and resume following.
        Returns the clamped time."""
        target = clamp(float(t), 0.0, self._duration)
        self.follow_playhead_now(target)
        return target

    def seek_pixel(self, x: float) -> float:
        """Seek to a click at track pixel *x*."""
        return self.seek(self.mapper().pixel_to_time(x))

    # ------------------------------------------------------------------
    # Drag-to-move
    # ------------------------------------------------------------------

    def begin_drag(self, command_id: str, command_time: float, pointer_x: float,
                   on_update: Callable[[str, float], None] | None = None) -> bool:
        """Start dragging a command.  Returns False if a drag is active."""
        if self._drag is not None:
            return False
        offset = pointer_x - self.mapper().time_to_pixel(command_time)
        self._drag = DragState(command_id=command_id, offset_px=offset)
        self._on_drag_update = on_update
        return True

    def drag_to(self, pointer_x: float) -> float | None:
        """Live update while dragging.  Returns the command's new time."""
        if self._drag is None:
            return None
        mapper = self.mapper()
        t = mapper.clamp_time(mapper.pixel_to_time(pointer_x - self._drag.offset_px))
        if self._on_drag_update is not None:
            self._on_drag_update(self._drag.command_id, t)
        return t

    def end_drag(self) -> str | None:
        """Finish the drag; the last live update stands."""
        drag, self._drag = self._drag, None
        self._on_drag_update = None
        return drag.command_id if drag else None

    def dispose(self) -> None:
        self._cancel_scroll_timer()
        self._resize.cancel()
