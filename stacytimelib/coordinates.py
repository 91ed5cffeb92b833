from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(value, hi))


@dataclass(frozen=True)
class CoordinateMapper:
    """Linear mapping between track time (s) and horizontal pixels.

    The track is ``duration * pixels_per_second * zoom`` pixels wide,
    clamped to ``[min_width, max_width]``.  A zero duration maps everything
    to 0.  Results are not clamped so the mapper also converts deltas.
    """
    duration: float
    zoom: float = 1.0
    pixels_per_second: float = 60.0
    min_width: float = 800.0
    max_width: float = 20000.0

    @classmethod
    def from_config(cls, duration: float, zoom: float,
                    config: dict[str, Any] | None = None) -> CoordinateMapper:
        config = config or {}
        return cls(
            duration=max(0.0, float(duration)),
            zoom=float(zoom),
            pixels_per_second=float(config.get("pixels_per_second", 60.0)),
            min_width=float(config.get("min_track_px", 800.0)),
            max_width=float(config.get("max_track_px", 20000.0)),
        )

    @property
    def track_width(self) -> float:
        return clamp(self.duration * self.pixels_per_second * self.zoom,
                     self.min_width, self.max_width)

    @property
    def seconds_per_pixel(self) -> float:
        if self.duration == 0:
            return 0.0
        return self.duration / self.track_width

    def time_to_pixel(self, t: float) -> float:
        if self.duration == 0:
            return 0.0
        return (t / self.duration) * self.track_width

    def pixel_to_time(self, x: float) -> float:
        if self.duration == 0:
            return 0.0
        return (x / self.track_width) * self.duration

    def clamp_time(self, t: float) -> float:
        return clamp(t, 0.0, self.duration)

    def visible_time_range(self, scroll_offset: float,
                           container_width: float) -> tuple[float, float]:
        start = self.clamp_time(self.pixel_to_time(scroll_offset))
        end = self.clamp_time(self.pixel_to_time(scroll_offset + container_width))
        return start, end

    # -- ruler ------------------------------------------------------------

    def marker_interval(self) -> float:
        if self.zoom < 0.5:
            return 10.0
        if self.zoom < 1.0:
            return 5.0
        if self.zoom < 2.0:
            return 1.0
        return 0.5

    def marker_times(self) -> Iterator[tuple[float, bool]]:
        """Yield ``(time, is_whole_second)`` for every ruler tick."""
        interval = self.marker_interval()
        i = 0
        while True:
            # multiply rather than accumulate so ticks don't drift
            t = i * interval
            if t > self.duration:
                return
            yield t, float(t).is_integer()
            i += 1
