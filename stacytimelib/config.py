from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

PRESET_SCHEMA_VERSION = "1.0"


class ConfigError(Exception):
    """Invalid configuration values or an unreadable preset file."""


@dataclass
class ConfigFieldError:
    """One rejected config value.  ``key`` is flat (``"zoom_max"``) or,
    from :func:`validate_structured_config`, section-qualified
    (``"viewport.zoom_max"``)."""
    key: str
    value: Any
    message: str


@dataclass(frozen=True)
class ParamSpec:
    """One tunable: its key, accepted type(s), default and legal range.

    The section lists below are the single source for defaults, preset
    filtering and validation messages.
    """
    key: str
    type: type | tuple
    default: Any
    label: str
    description: str = ""
    min: float | int | None = None
    max: float | int | None = None
    min_exclusive: bool = False     # min itself is not allowed
    max_exclusive: bool = False
    nullable: bool = False


# ---------------------------------------------------------------------------
# Parameter sections
# ---------------------------------------------------------------------------

ANALYSIS_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="max_blocks", type=int, default=1500, min=1,
        label="Waveform resolution (blocks)",
        description="Upper bound on the number of amplitude blocks per track.",
    ),
    ParamSpec(
        key="block_size", type=int, default=1024, min=1,
        label="Minimum block size (samples)",
        description=(
            "Tracks shorter than max_blocks × block_size get fewer blocks so "
            "that every block spans at least this many samples."
        ),
    ),
    ParamSpec(
        key="beat_ratio", type=(int, float), default=1.3,
        min=1.0, min_exclusive=True,
        label="Onset energy ratio",
        description=(
            "A block is an onset when its RMS energy exceeds the smoothed "
            "running energy by this factor."
        ),
    ),
    ParamSpec(
        key="beat_energy_floor", type=(int, float), default=0.1, min=0.0,
        label="Onset energy floor",
        description="Blocks with RMS energy at or below this level never trigger.",
    ),
    ParamSpec(
        key="beat_attack_weight", type=(int, float), default=0.7,
        min=0.0, max=1.0,
        label="Energy smoothing: new block weight",
    ),
    ParamSpec(
        key="beat_decay_weight", type=(int, float), default=0.3,
        min=0.0, max=1.0,
        label="Energy smoothing: running energy weight",
    ),
    ParamSpec(
        key="beat_epsilon", type=(int, float), default=1e-9,
        min=0.0, min_exclusive=True,
        label="Silent baseline threshold",
        description=(
            "Running energy at or below this is treated as silence; the ratio "
            "test is skipped and only the energy floor applies."
        ),
    ),
    ParamSpec(
        key="fallback_points", type=int, default=100, min=1,
        label="Placeholder waveform length",
    ),
    ParamSpec(
        key="fallback_level", type=(int, float), default=0.1,
        min=0.0, max=1.0,
        label="Placeholder waveform level",
    ),
]

LAYOUT_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="point_duration", type=(int, float), default=0.1,
        min=0.0, min_exclusive=True,
        label="Point command duration (s)",
        description=(
            "Duration assumed for instantaneous command types so that two "
            "commands at the same instant still occupy separate rows."
        ),
    ),
    ParamSpec(
        key="min_box_px", type=(int, float), default=60, min=0,
        label="Minimum command width (px)",
    ),
]

VIEWPORT_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="pixels_per_second", type=(int, float), default=60,
        min=0.0, min_exclusive=True,
        label="Pixels per second at 100%",
    ),
    ParamSpec(
        key="min_track_px", type=(int, float), default=800, min=1,
        label="Minimum track width (px)",
    ),
    ParamSpec(
        key="max_track_px", type=(int, float), default=20000, min=1,
        label="Maximum track width (px)",
    ),
    ParamSpec(
        key="zoom_min", type=(int, float), default=0.1,
        min=0.0, min_exclusive=True,
        label="Minimum zoom",
    ),
    ParamSpec(
        key="zoom_max", type=(int, float), default=4.0,
        min=0.0, min_exclusive=True,
        label="Maximum zoom",
    ),
    ParamSpec(
        key="zoom_step", type=(int, float), default=1.5,
        min=1.0, min_exclusive=True,
        label="Zoom step factor",
    ),
    ParamSpec(
        key="follow_margin", type=(int, float), default=0.1,
        min=0.0, max=0.5,
        label="Auto-follow edge margin",
        description=(
            "Fraction of the visible width at either edge. The view recenters "
            "when the playhead enters this margin."
        ),
    ),
    ParamSpec(
        key="scroll_quiet_s", type=(int, float), default=2.0, min=0.0,
        label="Manual scroll quiet period (s)",
        description="Auto-follow resumes after this long without a user scroll.",
    ),
    ParamSpec(
        key="scroll_recheck_s", type=(int, float), default=2.1, min=0.0,
        label="Quiet period re-check delay (s)",
    ),
    ParamSpec(
        key="resize_debounce_ms", type=int, default=100, min=0,
        label="Resize debounce (ms)",
    ),
    ParamSpec(
        key="redraw_fps", type=(int, float), default=30,
        min=0.0, min_exclusive=True,
        label="Maximum redraw rate (per second)",
    ),
    ParamSpec(
        key="seek_step", type=(int, float), default=1.0,
        min=0.0, min_exclusive=True,
        label="Arrow key seek step (s)",
    ),
    ParamSpec(
        key="fine_seek_step", type=(int, float), default=0.1,
        min=0.0, min_exclusive=True,
        label="Shift+arrow seek step (s)",
    ),
]

_SECTIONS: dict[str, list[ParamSpec]] = {
    "analysis": ANALYSIS_PARAMS,
    "layout": LAYOUT_PARAMS,
    "viewport": VIEWPORT_PARAMS,
}


def _all_param_specs() -> list[ParamSpec]:
    specs: list[ParamSpec] = []
    for params in _SECTIONS.values():
        specs.extend(params)
    return specs


def default_config() -> dict[str, Any]:
    """Returns the built-in default configuration (flat)."""
    return {p.key: p.default for p in _all_param_specs()}


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple config dicts left-to-right.  Later values override
    earlier ones; ``None`` values are skipped so unset CLI options do not
    clobber preset values."""
    result: dict[str, Any] = {}
    for cfg in configs:
        for k, v in cfg.items():
            if v is None and k in result:
                continue
            result[k] = v
    return result


def load_preset(path: str) -> dict[str, Any]:
    """
    Load a JSON preset file. Returns a partial config dict.
    Accepts both flat presets and structured (sectioned) ones.
    Raises ConfigError if the file cannot be read or parsed.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Preset file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in preset file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read preset file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Preset file must contain a JSON object, got {type(data).__name__}")

    preset = {k: v for k, v in data.items() if k not in ("schema_version", "_description")}
    if any(k in _SECTIONS and isinstance(v, dict) for k, v in preset.items()):
        preset = flatten_structured_config(preset)
    return preset


def save_preset(config: dict[str, Any], path: str, *, description: str | None = None) -> None:
    """
    Save a config dict as a JSON preset file.
    Only values that differ from the defaults are written.
    """
    preset: dict[str, Any] = {"schema_version": PRESET_SCHEMA_VERSION}
    if description:
        preset["_description"] = description

    defaults = default_config()
    for k, v in config.items():
        if k.startswith("_"):
            continue
        if k in defaults and defaults[k] == v:
            continue
        preset[k] = v

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(preset, f, indent=4, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Validation  (ParamSpec-driven)
# ---------------------------------------------------------------------------

def _bound_problem(spec: ParamSpec, value: float) -> str | None:
    lo, hi = spec.min, spec.max
    if lo is not None and (value <= lo if spec.min_exclusive else value < lo):
        relation = "greater than" if spec.min_exclusive else "at least"
        return f"{spec.label} must be {relation} {lo}."
    if hi is not None and (value >= hi if spec.max_exclusive else value > hi):
        relation = "less than" if spec.max_exclusive else "at most"
        return f"{spec.label} must be {relation} {hi}."
    return None


def _problem(spec: ParamSpec, value: Any) -> str | None:
    """Why *value* is not acceptable for *spec*, or None when it is."""
    if value is None:
        return None if spec.nullable else f"{spec.label} must not be empty."
    # bool is an int subclass; numeric fields must not accept it
    if isinstance(value, bool) and spec.type is not bool:
        return f"{spec.label} must be {_type_label(spec.type)}, got boolean."
    if not isinstance(value, spec.type):
        return (f"{spec.label} must be {_type_label(spec.type)}, "
                f"got {type(value).__name__}.")
    if _is_number(value):
        if value != value or value in (float("inf"), float("-inf")):
            return f"{spec.label} must be a finite number."
        return _bound_problem(spec, value)
    return None


def validate_param_values(
    params: list[ParamSpec],
    values: dict[str, Any],
) -> list[ConfigFieldError]:
    """Check the keys of *values* that *params* describe.

    Missing keys are fine (they take their default); unknown keys are
    ignored.  Returns one :class:`ConfigFieldError` per bad key.
    """
    errors: list[ConfigFieldError] = []
    for spec in params:
        if spec.key not in values:
            continue
        message = _problem(spec, values[spec.key])
        if message is not None:
            errors.append(ConfigFieldError(spec.key, values[spec.key], message))
    return errors


def _cross_field_errors(config: dict[str, Any]) -> list[ConfigFieldError]:
    """Checks that span more than one key."""
    errors: list[ConfigFieldError] = []
    lo, hi = config.get("zoom_min"), config.get("zoom_max")
    if _is_number(lo) and _is_number(hi) and lo > hi:
        errors.append(ConfigFieldError(
            "zoom_max", hi, "Maximum zoom must not be below minimum zoom.",
        ))
    lo, hi = config.get("min_track_px"), config.get("max_track_px")
    if _is_number(lo) and _is_number(hi) and lo > hi:
        errors.append(ConfigFieldError(
            "max_track_px", hi,
            "Maximum track width must not be below minimum track width.",
        ))
    return errors


def validate_config_fields(config: dict[str, Any]) -> list[ConfigFieldError]:
    """Validate a **flat** config dict against every known :class:`ParamSpec`.

    Returns structured errors.  Never raises.
    """
    errors = validate_param_values(_all_param_specs(), config)
    errors.extend(_cross_field_errors(config))
    return errors


def validate_config(config: dict[str, Any]) -> None:
    """Validate a flat config dict.

    Raises :class:`ConfigError` listing every invalid field.
    """
    errors = validate_config_fields(config)
    if errors:
        lines = [e.message for e in errors]
        raise ConfigError(
            "Configuration has invalid values:\n  • " + "\n  • ".join(lines)
        )


# ---------------------------------------------------------------------------
# Structured config  (sectioned preset format)
# ---------------------------------------------------------------------------

def build_structured_defaults() -> dict[str, Any]:
    """Build a structured config dict with all defaults, organized by section.

    Returns::

        {
            "analysis": { ... },
            "layout": { ... },
            "viewport": { ... },
        }
    """
    return {
        name: {p.key: p.default for p in params}
        for name, params in _SECTIONS.items()
    }


def flatten_structured_config(structured: dict[str, Any]) -> dict[str, Any]:
    """Flatten a structured config into a flat key-value dict.

    Components read from the flat dict via ``config.get(key, default)``.
    Top-level keys that are not sections are carried over unchanged.
    """
    flat: dict[str, Any] = {}
    for k, v in structured.items():
        if k in _SECTIONS and isinstance(v, dict):
            continue
        flat[k] = v
    for name in _SECTIONS:
        section = structured.get(name)
        if isinstance(section, dict):
            flat.update(section)
    return flat


def validate_structured_config(
    structured: dict[str, Any],
) -> list[ConfigFieldError]:
    """Validate a structured config dict section by section.

    Error keys are prefixed by their section, e.g. ``"viewport.zoom_max"``.
    """
    errors: list[ConfigFieldError] = []
    for name, params in _SECTIONS.items():
        section = structured.get(name, {})
        if not isinstance(section, dict):
            continue
        for err in validate_param_values(params, section):
            errors.append(ConfigFieldError(
                f"{name}.{err.key}", err.value, err.message,
            ))
    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_label(t) -> str:
    """Human-readable label for an expected type or tuple of types."""
    if isinstance(t, tuple):
        return " or ".join(x.__name__ for x in t)
    return t.__name__
