"""Row packing of overlapping commands within each lane.

Commands occupy half-open intervals ``[time, time + duration)``.  Within a
lane they are partitioned greedily: in start order, each command goes into
the lowest-index row whose last command has already ended, or a new row
when none has.  The row count equals the largest number of commands that
overlap at any instant, which is the minimum possible.
"""

from __future__ import annotations

import heapq
from typing import Any, Iterable

from .commands import (
    POINT_DURATION,
    Command,
    command_duration,
    command_label,
    lane_color,
    lane_order,
)
from .coordinates import CoordinateMapper
from .models import CommandBox, LaneLayout, Row


def assign_rows(commands: Iterable[Command],
                point_duration: float = POINT_DURATION) -> list[Row]:
    """Partition *commands* into the minimum number of non-overlapping rows."""
    ordered = sorted(commands, key=lambda c: c.time)
    rows: list[Row] = []
    busy: list[tuple[float, int]] = []   # (end time, row index)
    free: list[int] = []                 # row indices whose last command has ended

    for cmd in ordered:
        start = cmd.time
        end = start + command_duration(cmd, point_duration)
        while busy and busy[0][0] <= start:
            _, idx = heapq.heappop(busy)
            heapq.heappush(free, idx)
        if free:
            row = rows[heapq.heappop(free)]
        else:
            row = Row(index=len(rows))
            rows.append(row)
        row.commands.append(cmd)
        row.end = end
        heapq.heappush(busy, (end, row.index))
    return rows


def max_overlap(intervals: Iterable[tuple[float, float]]) -> int:
    """Largest number of half-open intervals covering a single instant."""
    points: list[tuple[float, int]] = []
    for start, end in intervals:
        if end <= start:
            continue
        points.append((start, 1))
        points.append((end, -1))
    # ends sort before starts at the same instant: touching is not overlapping
    points.sort(key=lambda p: (p[0], p[1]))
    depth = best = 0
    for _, delta in points:
        depth += delta
        best = max(best, depth)
    return best


class TrackLayoutEngine:
    """Derives per-lane row layouts and render geometry from the command set.

    The layout is cached until :meth:`invalidate` is called; the editor
    invalidates on every command mutation.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self._cache: dict[str, LaneLayout] | None = None
        self.configure(config or {})

    def configure(self, config: dict[str, Any]) -> None:
        self.point_duration: float = float(config.get("point_duration", POINT_DURATION))
        self.min_box_px: float = float(config.get("min_box_px", 60))
        self.invalidate()

    def invalidate(self) -> None:
        self._cache = None

    @property
    def is_valid(self) -> bool:
        return self._cache is not None

    def layout(self, commands: Iterable[Command]) -> dict[str, LaneLayout]:
        if self._cache is not None:
            return self._cache
        by_lane: dict[str, list[Command]] = {}
        for cmd in commands:
            by_lane.setdefault(cmd.lane, []).append(cmd)
        self._cache = {
            lane: LaneLayout(lane=lane,
                             rows=assign_rows(by_lane[lane], self.point_duration))
            for lane in lane_order(by_lane)
        }
        return self._cache

    def geometry(self, layouts: dict[str, LaneLayout],
                 mapper: CoordinateMapper) -> list[CommandBox]:
        boxes: list[CommandBox] = []
        for lane, lane_layout in layouts.items():
            for row in lane_layout.rows:
                for cmd in row.commands:
                    width = mapper.time_to_pixel(
                        command_duration(cmd, self.point_duration))
                    boxes.append(CommandBox(
                        command_id=cmd.id,
                        lane=lane,
                        row=row.index,
                        x=mapper.time_to_pixel(cmd.time),
                        width=max(self.min_box_px, width),
                        label=command_label(cmd),
                        color=cmd.color or lane_color(lane),
                    ))
        return boxes
