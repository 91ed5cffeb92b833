"""Light-show command records, their derived durations and labels,
and the ordered command store the editor mutates."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator
from uuid import uuid4


class CommandType(Enum):
    ON = "On"
    OFF = "Off"
    FADE_ON = "FadeOn"
    FADE_OFF = "FadeOff"
    CUE = "Cue"
    ACTION = "Action"
    BEAM_MODE = "BeamMode"
    BEAM_THICKNESS = "BeamThickness"
    GOBO_SPREAD = "GoboSpread"
    TILT = "Tilt"
    PAN = "Pan"
    MOTOR_SPEED = "MotorSpeed"
    ROTATE_GOBO = "RotateGobo"
    FOLLOW = "Follow"
    STOP_FOLLOWING = "StopFollowing"
    COLOR = "Color"
    SMOOTH_COLOR = "SmoothColor"
    ANIMATED_GRADIENTS = "AnimatedGradients"
    SET_GLOBAL_CUE_SETTING = "SetGlobalCueSetting"
    SET_CUE_SETTING = "SetCueSetting"
    LOOP_CUES = "LoopCues"
    CUE_SPEED = "CueSpeed"
    FADE_SPEED = "FadeSpeed"
    DIMNESS = "Dimness"
    RESET = "Reset"
    HARD_RESET = "HardReset"


# Lane id -> display colour, in on-screen order
LANES: dict[str, str] = {
    "BarsA": "#EC4899",
    "BarsB": "#EC4899",
    "HeadsA": "#10B981",
    "HeadsB": "#10B981",
    "LEDsA": "#3B82F6",
    "LEDsB": "#3B82F6",
    "LEDsC": "#3B82F6",
    "StrobesA": "#F59E0B",
    "StrobesB": "#F59E0B",
    "WashesA": "#8B5CF6",
}

DEFAULT_LANE_COLOR = "#6B7280"

POINT_DURATION = 0.1

_FIXED_DURATIONS: dict[CommandType, float] = {
    CommandType.COLOR: 2.0,
    CommandType.CUE: 3.0,
}


@dataclass
class Command:
    """A timed command on one lane.

    ``time`` and ``parameters`` are edited in place; ``id`` never changes.
    """
    id: str
    time: float
    type: CommandType
    parameters: dict[str, Any] = field(default_factory=dict)
    lane: str = ""
    label: str | None = None
    color: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Command:
        """Build a command from the editor's plain record shape.

        ``lane`` falls back to ``parameters["lightType"]``.  A missing id
        gets a fresh one.
        """
        params = dict(data.get("parameters") or {})
        lane = data.get("lane") or params.get("lightType") or ""
        return cls(
            id=str(data.get("id") or uuid4().hex),
            time=max(0.0, float(data.get("time", 0.0))),
            type=CommandType(data["type"]),
            parameters=params,
            lane=str(lane),
            label=data.get("label"),
            color=data.get("color"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "time": self.time,
            "type": self.type.value,
            "parameters": dict(self.parameters),
            "lane": self.lane,
        }
        if self.label is not None:
            data["label"] = self.label
        if self.color is not None:
            data["color"] = self.color
        return data


def command_duration(command: Command, point_duration: float = POINT_DURATION) -> float:
    """Display duration of *command* in seconds.

    Fades last for their ``fadeSpeed`` (1 s when unset or zero), colour
    changes 2 s, cues 3 s.  Everything else is a point effect.
    """
    if command.type in (CommandType.FADE_ON, CommandType.FADE_OFF):
        return float(command.parameters.get("fadeSpeed") or 1.0)
    return _FIXED_DURATIONS.get(command.type, point_duration)


def command_end(command: Command, point_duration: float = POINT_DURATION) -> float:
    return command.time + command_duration(command, point_duration)


def command_label(command: Command) -> str:
    """Short on-timeline label for *command*."""
    if command.label:
        return command.label
    p = command.parameters
    t = command.type
    if t == CommandType.COLOR:
        color = p.get("color")
        if isinstance(color, dict) and "r" in color:
            return f"Color RGB({color['r']}, {color['g']}, {color['b']})"
        return "Color"
    if t == CommandType.CUE:
        state = "ON" if p.get("cueValue") else "OFF"
        return f"{p.get('cueType') or 'Unknown'} {state}"
    if t == CommandType.ACTION:
        return f"Action {p.get('actionType') or 'Unknown'}"
    if t == CommandType.BEAM_THICKNESS:
        return f"Thickness: {p.get('beamThickness') or 0}%"
    if t == CommandType.DIMNESS:
        return f"Dimness: {round((p.get('dimness') or 0) * 100)}%"
    if t == CommandType.TILT:
        return f"Tilt: {p.get('tilt') or 0}°"
    if t == CommandType.PAN:
        return f"Pan: {p.get('pan') or 0}°"
    return t.value


def lane_color(lane: str) -> str:
    return LANES.get(lane, DEFAULT_LANE_COLOR)


def lane_order(lanes) -> list[str]:
    """Known lanes in display order, then any others alphabetically."""
    present = set(lanes)
    ordered = [lane for lane in LANES if lane in present]
    ordered.extend(sorted(present - set(LANES)))
    return ordered


class CommandList:
    """Commands ordered by time.

    ``version`` increases on every mutation so derived views (row layout,
    geometry) know when they are stale.
    """

    def __init__(self, commands: list[Command] | None = None):
        self._commands: list[Command] = []
        self.version: int = 0
        for cmd in commands or []:
            self.add(cmd)

    def __iter__(self) -> Iterator[Command]:
        return iter(list(self._commands))

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, command_id: object) -> bool:
        return any(c.id == command_id for c in self._commands)

    def _sort(self) -> None:
        self._commands.sort(key=lambda c: c.time)

    def add(self, command: Command) -> Command:
        if command.id in self:
            raise ValueError(f"Duplicate command id: {command.id}")
        self._commands.append(command)
        self._sort()
        self.version += 1
        return command

    def get(self, command_id: str) -> Command:
        for cmd in self._commands:
            if cmd.id == command_id:
                return cmd
        raise KeyError(command_id)

    def update(self, command_id: str, **changes: Any) -> Command:
        """Apply *changes* to the command in place and re-sort.

        ``parameters`` is merged into the existing map; ``id`` cannot change.
        """
        cmd = self.get(command_id)
        if "id" in changes and changes["id"] != command_id:
            raise ValueError("Command id cannot be changed")
        for key, value in changes.items():
            if key == "id":
                continue
            if key == "parameters":
                cmd.parameters.update(value)
            elif key == "type":
                cmd.type = CommandType(value)
            elif key == "time":
                cmd.time = max(0.0, float(value))
            elif key in ("lane", "label", "color"):
                setattr(cmd, key, value)
            else:
                raise AttributeError(f"Command has no field {key!r}")
        self._sort()
        self.version += 1
        return cmd

    def remove(self, command_id: str) -> Command:
        cmd = self.get(command_id)
        self._commands.remove(cmd)
        self.version += 1
        return cmd

    def for_lane(self, lane: str) -> list[Command]:
        return [c for c in self._commands if c.lane == lane]

    def lanes(self) -> list[str]:
        return lane_order({c.lane for c in self._commands})

    def clear(self) -> None:
        self._commands.clear()
        self.version += 1
