from __future__ import annotations

import bisect
from typing import Any
from uuid import uuid4

from .analysis import AnalysisRunner, AnalysisSession
from .commands import Command, CommandList, CommandType
from .config import default_config, merge_configs, validate_config
from .coordinates import clamp
from .events import EventBus
from .input import InputDispatcher
from .layout import TrackLayoutEngine
from .models import AnalysisResult, BeatEvent, CommandBox, LaneLayout, SampleBuffer
from .timers import Clock, Scheduler, Throttle, TimerFactory, monotonic_clock
from .viewport import ViewportController


class TimelineEditor:
    """Owns the editor state behind the timeline view.

    Wires together the command store, the analysis session, the row
    layout, the viewport and the key dispatch table.  Rendering hosts
    subscribe to ``event_bus`` and read :meth:`geometry`, ``waveform``,
    ``beats`` and :meth:`viewport_state`.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        event_bus: EventBus | None = None,
        clock: Clock = monotonic_clock,
        timer_factory: TimerFactory | None = None,
        background_analysis: bool = False,
        container_width: float = 800.0,
    ):
        self.config = merge_configs(default_config(), config or {})
        validate_config(self.config)
        self.event_bus = event_bus or EventBus()
        # headless hosts call poll_timers() from their loop
        self.timer_factory: TimerFactory = (
            timer_factory if timer_factory is not None else Scheduler(clock))

        self.commands = CommandList()
        self.analysis = AnalysisSession(self.config, self.event_bus)
        self._runner = AnalysisRunner(self.analysis) if background_analysis else None
        self.layout_engine = TrackLayoutEngine(self.config)
        self.viewport = ViewportController(
            self.config,
            container_width=container_width,
            event_bus=self.event_bus,
            clock=clock,
            timer_factory=self.timer_factory,
        )
        self._redraw = Throttle(
            1.0 / float(self.config["redraw_fps"]),
            lambda: self.event_bus.emit("timeline.redraw"),
            clock=clock,
            timer_factory=self.timer_factory,
        )

        self.duration = 0.0
        self.current_time = 0.0
        self.is_playing = False
        self.selected_id: str | None = None

        self.input = InputDispatcher()
        self._register_actions()

        self._unsubscribe_view = self.event_bus.subscribe("viewport.*", self._on_view_changed)

    def _register_actions(self) -> None:
        seek_step = float(self.config["seek_step"])
        fine_step = float(self.config["fine_seek_step"])
        actions = {
            "toggle_play": self.toggle_play,
            "go_to_start": self.go_to_start,
            "step_back": lambda: self.step(-seek_step),
            "step_forward": lambda: self.step(seek_step),
            "fine_step_back": lambda: self.step(-fine_step),
            "fine_step_forward": lambda: self.step(fine_step),
            "previous_beat": self.previous_beat,
            "next_beat": self.next_beat,
            "zoom_in": self.viewport.zoom_in,
            "zoom_out": self.viewport.zoom_out,
            "reset_zoom": self.viewport.reset_zoom,
            "delete_selected": self.delete_selected,
        }
        for name, handler in actions.items():
            self.input.register(name, handler)

    def _on_view_changed(self, **_data) -> None:
        self.request_redraw()

    def request_redraw(self) -> None:
        self._redraw.request()

    def poll_timers(self) -> int:
        """Run due quiet-period, resize and redraw timers on this thread.

        Only needed with the default :class:`~stacytimelib.timers.Scheduler`;
        hosts that passed their own timer factory get callbacks from it.
        """
        if isinstance(self.timer_factory, Scheduler):
            return self.timer_factory.poll()
        return 0

    # ------------------------------------------------------------------
    # Audio and analysis
    # ------------------------------------------------------------------

    @property
    def waveform(self):
        return self.analysis.waveform

    @property
    def beats(self) -> list[BeatEvent]:
        return self.analysis.beats

    @property
    def is_analyzing(self) -> bool:
        return self.analysis.is_analyzing

    def set_duration(self, duration: float) -> None:
        self.duration = max(0.0, float(duration))
        self.current_time = clamp(self.current_time, 0.0, self.duration)
        self.viewport.set_duration(self.duration)
        self.request_redraw()

    def load_audio(self, source: str | SampleBuffer) -> int:
        """Start analysing a new audio source; returns the request generation.

        With ``background_analysis`` the work runs on the runner's worker
        thread and the view catches up on the next timer poll; otherwise it
        runs inline.  Hosts with their own worker
        (see ``stacytimegui``) call :meth:`begin_analysis` and deliver the
        result through :meth:`apply_analysis` instead.
        """
        if isinstance(source, SampleBuffer):
            self.set_duration(source.duration_sec)
        if self._runner is None:
            result = self.analysis.analyze_now(source)
            self._after_analysis(result)
            return self.analysis.generation
        self._runner.submit(source, on_done=self._on_runner_done)
        return self.analysis.generation

    def _on_runner_done(self, generation: int, result: AnalysisResult) -> None:
        # runner thread: hand the view update back to the timer thread
        self.timer_factory(0.0, lambda: self._deliver(generation, result))

    def _deliver(self, generation: int, result: AnalysisResult) -> None:
        if generation == self.analysis.generation:
            self._after_analysis(result)

    def begin_analysis(self) -> int:
        return self.analysis.begin()

    def apply_analysis(self, generation: int, result: AnalysisResult) -> bool:
        """Deliver a result computed elsewhere (e.g. a Qt worker)."""
        accepted = self.analysis.complete(generation, result)
        if accepted:
            self._after_analysis(result)
        return accepted

    def _after_analysis(self, result: AnalysisResult) -> None:
        if result.duration_sec > 0 and result.duration_sec != self.duration:
            self.set_duration(result.duration_sec)
        self.request_redraw()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _commands_changed(self) -> None:
        self.layout_engine.invalidate()
        self.request_redraw()

    def add_command(self, type: CommandType | str, parameters: dict[str, Any] | None = None,
                    lane: str | None = None, time: float | None = None) -> Command:
        params = dict(parameters or {})
        t = max(0.0, self.current_time if time is None else float(time))
        if self.duration > 0:
            t = min(t, self.duration)
        cmd = Command(
            id=uuid4().hex,
            time=t,
            type=CommandType(type),
            parameters=params,
            lane=lane or str(params.get("lightType", "")),
        )
        self.commands.add(cmd)
        self._commands_changed()
        self.event_bus.emit("command.added", command=cmd)
        return cmd

    def update_command(self, command_id: str, **changes: Any) -> Command:
        cmd = self.commands.update(command_id, **changes)
        self._commands_changed()
        self.event_bus.emit("command.updated", command=cmd)
        return cmd

    def delete_command(self, command_id: str) -> Command:
        cmd = self.commands.remove(command_id)
        if self.selected_id == command_id:
            self.selected_id = None
        self._commands_changed()
        self.event_bus.emit("command.deleted", command=cmd)
        return cmd

    def delete_selected(self) -> None:
        if self.selected_id is not None:
            self.delete_command(self.selected_id)

    def select_command(self, command_id: str | None) -> Command | None:
        if command_id is None:
            self.selected_id = None
            return None
        cmd = self.commands.get(command_id)
        self.selected_id = command_id
        return cmd

    @property
    def selected(self) -> Command | None:
        if self.selected_id is None:
            return None
        return self.commands.get(self.selected_id)

    def layout(self) -> dict[str, LaneLayout]:
        return self.layout_engine.layout(self.commands)

    def geometry(self) -> list[CommandBox]:
        return self.layout_engine.geometry(self.layout(), self.viewport.mapper())

    # -- drag -------------------------------------------------------------

    def begin_drag(self, command_id: str, pointer_x: float) -> bool:
        cmd = self.commands.get(command_id)
        return self.viewport.begin_drag(
            command_id, cmd.time, pointer_x,
            on_update=lambda cid, t: self.update_command(cid, time=t),
        )

    def drag_to(self, pointer_x: float) -> float | None:
        return self.viewport.drag_to(pointer_x)

    def end_drag(self) -> str | None:
        return self.viewport.end_drag()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def viewport_state(self):
        return self.viewport.state()

    def on_time_update(self, t: float) -> float:
        """Playback clock tick from the host player."""
        self.current_time = clamp(float(t), 0.0, self.duration)
        self.viewport.on_playhead(self.current_time, self.is_playing)
        self.request_redraw()
        return self.current_time

    def seek(self, t: float) -> float:
        self.current_time = self.viewport.seek(t)
        self.event_bus.emit("timeline.seek", time=self.current_time)
        self.request_redraw()
        return self.current_time

    def seek_pixel(self, x: float) -> float:
        """Seek from a click at track pixel *x*.  Ignored mid-drag."""
        if self.viewport.drag is not None:
            return self.current_time
        return self.seek(self.viewport.mapper().pixel_to_time(x))

    def set_playing(self, playing: bool) -> None:
        if playing and self.duration <= 0:
            playing = False
        if playing == self.is_playing:
            return
        self.is_playing = playing
        self.event_bus.emit("timeline.play_state", playing=playing)

    def toggle_play(self) -> None:
        self.set_playing(not self.is_playing)

    def go_to_start(self) -> None:
        self.seek(0.0)

    def step(self, delta: float) -> float:
        return self.seek(self.current_time + delta)

    def next_beat(self) -> float:
        times = [b.time for b in self.beats]
        idx = bisect.bisect_right(times, self.current_time + 1e-9)
        if idx < len(times):
            return self.seek(times[idx])
        return self.current_time

    def previous_beat(self) -> float:
        times = [b.time for b in self.beats]
        idx = bisect.bisect_left(times, self.current_time - 1e-9)
        if idx > 0:
            return self.seek(times[idx - 1])
        return self.current_time

    def handle_key(self, code: str, shift: bool = False,
                   editing_text: bool = False) -> bool:
        return self.input.dispatch(code, shift=shift, editing_text=editing_text)

    def shutdown(self) -> None:
        self._unsubscribe_view()
        self.viewport.dispose()
        self._redraw.cancel()
        if self._runner is not None:
            self._runner.shutdown()
