from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class AnalysisStatus(Enum):
    OK = "ok"
    FALLBACK = "fallback"


class FollowState(Enum):
    FOLLOWING = "following"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(frozen=True)
class SampleBuffer:
    """Decoded single-channel audio handed to the analysis pass.

    Attributes:
        samples:      1-D float64 array, typically in [-1, 1].
        samplerate:   Samples per second.
        duration_sec: Total track duration in seconds.
    """
    samples: np.ndarray
    samplerate: int
    duration_sec: float

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])

    @classmethod
    def from_array(cls, data, samplerate: int,
                   duration_sec: float | None = None) -> SampleBuffer:
        """Build a buffer from any array-like.  Multi-channel input keeps
        channel 0 only."""
        arr = np.asarray(data, dtype=np.float64)
        if arr.ndim > 1:
            arr = arr[:, 0]
        arr = np.ascontiguousarray(arr)
        if duration_sec is None:
            duration_sec = arr.shape[0] / samplerate if samplerate > 0 else 0.0
        return cls(samples=arr, samplerate=int(samplerate),
                   duration_sec=float(duration_sec))


@dataclass(frozen=True)
class BeatEvent:
    time: float
    strength: float


@dataclass
class AnalysisResult:
    """Output of one analysis pass.  Replaced wholesale on re-analysis."""
    waveform: np.ndarray
    beats: list[BeatEvent]
    block_count: int
    block_size: int
    duration_sec: float
    status: AnalysisStatus = AnalysisStatus.OK
    error: str | None = None
    generation: int = 0

    @property
    def is_fallback(self) -> bool:
        return self.status == AnalysisStatus.FALLBACK


@dataclass(frozen=True)
class ViewportState:
    """Snapshot of the viewport handed to rendering collaborators."""
    zoom: float
    scroll_offset: float
    container_width: float
    follow_state: FollowState
    last_manual_scroll_at: float | None

    @property
    def is_auto_following(self) -> bool:
        return self.follow_state == FollowState.FOLLOWING


@dataclass(frozen=True)
class DragState:
    command_id: str
    offset_px: float


@dataclass
class Row:
    """Commands of one lane that never overlap in time, in start order."""
    index: int
    commands: list = field(default_factory=list)
    end: float = 0.0


@dataclass
class LaneLayout:
    lane: str
    rows: list[Row] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def row_of(self, command_id: str) -> int | None:
        for row in self.rows:
            for cmd in row.commands:
                if cmd.id == command_id:
                    return row.index
        return None


@dataclass(frozen=True)
class CommandBox:
    """Render geometry for one command on the timeline."""
    command_id: str
    lane: str
    row: int
    x: float
    width: float
    label: str
    color: str
