from ._version import __version__
from .models import (
    AnalysisResult,
    AnalysisStatus,
    BeatEvent,
    CommandBox,
    DragState,
    FollowState,
    LaneLayout,
    Row,
    SampleBuffer,
    ViewportState,
)
from .commands import (
    LANES,
    Command,
    CommandList,
    CommandType,
    command_duration,
    command_label,
)
from .config import (
    default_config,
    merge_configs,
    validate_config,
    validate_config_fields,
    validate_param_values,
    validate_structured_config,
    build_structured_defaults,
    flatten_structured_config,
    load_preset,
    save_preset,
    ConfigError,
    ConfigFieldError,
    ParamSpec,
    ANALYSIS_PARAMS,
    LAYOUT_PARAMS,
    VIEWPORT_PARAMS,
)
from .audio import DecodeError, load_sample_buffer, format_time, format_clock
from .analysis import (
    WaveformAnalyzer,
    BeatDetector,
    AnalysisSession,
    AnalysisRunner,
    analyze_buffer,
    analyze_source,
    fallback_result,
)
from .coordinates import CoordinateMapper
from .layout import TrackLayoutEngine, assign_rows, max_overlap
from .viewport import ViewportController
from .input import InputDispatcher
from .timeline import TimelineEditor
from .events import EventBus

__all__ = [
    "__version__",
    "AnalysisResult",
    "AnalysisStatus",
    "BeatEvent",
    "CommandBox",
    "DragState",
    "FollowState",
    "LaneLayout",
    "Row",
    "SampleBuffer",
    "ViewportState",
    "LANES",
    "Command",
    "CommandList",
    "CommandType",
    "command_duration",
    "command_label",
    "default_config",
    "merge_configs",
    "validate_config",
    "validate_config_fields",
    "validate_param_values",
    "validate_structured_config",
    "build_structured_defaults",
    "flatten_structured_config",
    "load_preset",
    "save_preset",
    "ConfigError",
    "ConfigFieldError",
    "ParamSpec",
    "ANALYSIS_PARAMS",
    "LAYOUT_PARAMS",
    "VIEWPORT_PARAMS",
    "DecodeError",
    "load_sample_buffer",
    "format_time",
    "format_clock",
    "WaveformAnalyzer",
    "BeatDetector",
    "AnalysisSession",
    "AnalysisRunner",
    "analyze_buffer",
    "analyze_source",
    "fallback_result",
    "CoordinateMapper",
    "TrackLayoutEngine",
    "assign_rows",
    "max_overlap",
    "ViewportController",
    "InputDispatcher",
    "TimelineEditor",
    "EventBus",
]
