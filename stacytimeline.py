import json
import os
import sys
import argparse

try:
    from rich.console import Console
    from rich.table import Table
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, TextColumn
    from rich import box
except ImportError:
    print("Error: The 'rich' library is required for the CLI but not installed.", file=sys.stderr)
    print("Please install it with: pip install stacytimeline[cli]", file=sys.stderr)
    sys.exit(1)

from stacytimelib import __version__
from stacytimelib.analysis import AnalysisSession
from stacytimelib.commands import Command, command_duration, command_label
from stacytimelib.config import (
    ConfigError,
    default_config,
    load_preset,
    merge_configs,
    validate_config,
)
from stacytimelib.audio import format_time
from stacytimelib.coordinates import CoordinateMapper, clamp
from stacytimelib.events import EventBus
from stacytimelib.layout import TrackLayoutEngine

console = Console()

_SPARK = " ▁▂▃▄▅▆▇█"


def positive_float(value):
    fvalue = float(value)
    if fvalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive number")
    return fvalue


def positive_int(value):
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return ivalue


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="StacyTimeline: waveform, beat and lane-layout analysis",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version",
                        version=f"stacytimeline {__version__}")

    parser.add_argument("audio", type=str,
                        help="Audio file to analyze")
    parser.add_argument("--commands", type=str, default=None,
                        help="JSON file holding a list of command records to lay out")
    parser.add_argument("--preset", type=str, default=None,
                        help="JSON preset with configuration overrides")

    # Analysis tunables (None = keep preset/default)
    parser.add_argument("--beat_ratio", type=float, default=None,
                        help="Onset energy ratio over the smoothed running energy (default 1.3)")
    parser.add_argument("--beat_energy_floor", type=float, default=None,
                        help="Minimum block RMS for an onset (default 0.1)")
    parser.add_argument("--max_blocks", type=positive_int, default=None,
                        help="Maximum number of waveform blocks (default 1500)")

    # View
    parser.add_argument("--zoom", type=positive_float, default=1.0,
                        help="Zoom factor used for pixel geometry, clamped to [zoom_min, zoom_max]")
    parser.add_argument("--max_beats", type=positive_int, default=20,
                        help="Max beats to list")
    parser.add_argument("--spark_width", type=positive_int, default=64,
                        help="Width of the waveform sparkline in characters")

    parser.add_argument("--json", type=str, default=None,
                        help="Write waveform, beats and layout to this JSON file")

    return parser.parse_args(argv)


def sparkline(values, width):
    """Downsample *values* (0..1) to *width* block characters."""
    n = len(values)
    if n == 0:
        return ""
    width = min(width, n)
    chars = []
    for i in range(width):
        lo = i * n // width
        hi = max(lo + 1, (i + 1) * n // width)
        v = max(values[lo:hi])
        chars.append(_SPARK[min(len(_SPARK) - 1, int(round(v * (len(_SPARK) - 1))))])
    return "".join(chars)


def load_commands(path):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("commands", [])
    if not isinstance(data, list):
        raise ValueError("commands file must contain a list of command records")
    return [Command.from_dict(d) for d in data]


# ---------------------------------------------------------------------------
# Rich console rendering
# ---------------------------------------------------------------------------

def print_analysis(result, max_beats, spark_width):
    status = "[green]OK[/]" if not result.is_fallback else f"[yellow]PLACEHOLDER[/] ({result.error})"
    console.print(Panel.fit(
        f"Status: {status}\n"
        f"Duration: [cyan]{format_time(result.duration_sec)}[/]\n"
        f"Blocks: [cyan]{result.block_count}[/] × [cyan]{result.block_size}[/] samples\n"
        f"Beats: [cyan]{len(result.beats)}[/]\n"
        f"[dim]{sparkline(list(result.waveform), spark_width)}[/]",
        title="Waveform"
    ))

    if not result.beats:
        return
    table = Table(box=box.ROUNDED, title="Beats", title_justify="left")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Time", style="cyan")
    table.add_column("Strength", justify="right", style="bold green")
    for i, beat in enumerate(result.beats[:max_beats], start=1):
        table.add_row(str(i), format_time(beat.time), f"{min(beat.strength, 99.9):.2f}")
    console.print(table)
    if len(result.beats) > max_beats:
        console.print(f"  [dim]... {len(result.beats) - max_beats} more[/]")


def print_layout(layouts, point_duration):
    table = Table(box=box.ROUNDED, title="Lane Rows", title_justify="left")
    table.add_column("Lane", style="bold cyan")
    table.add_column("Row", justify="right")
    table.add_column("Commands", style="dim")
    for lane, lane_layout in layouts.items():
        for row in lane_layout.rows:
            items = ", ".join(
                f"{command_label(c)} @{format_time(c.time)}"
                f" ({command_duration(c, point_duration):g}s)"
                for c in row.commands
            )
            table.add_row(lane or "—", str(row.index + 1), items)
    console.print(table)


def layout_to_json(layouts, mapper, engine):
    boxes = {b.command_id: b for b in engine.geometry(layouts, mapper)}
    out = {}
    for lane, lane_layout in layouts.items():
        out[lane] = [
            [
                {
                    "id": c.id,
                    "time": c.time,
                    "x": boxes[c.id].x,
                    "width": boxes[c.id].width,
                    "label": boxes[c.id].label,
                }
                for c in row.commands
            ]
            for row in lane_layout.rows
        ]
    return out


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None):
    args = parse_arguments(argv)

    if not os.path.isfile(args.audio):
        console.print(f"[bold red]Error:[/] File '{args.audio}' not found.")
        return 1

    # --- BUILD CONFIG ---
    try:
        preset = load_preset(args.preset) if args.preset else {}
        config = merge_configs(default_config(), preset, {
            "beat_ratio": args.beat_ratio,
            "beat_energy_floor": args.beat_energy_floor,
            "max_blocks": args.max_blocks,
        })
        validate_config(config)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 2

    zoom = clamp(args.zoom, config["zoom_min"], config["zoom_max"])

    console.print(Panel.fit(
        f"[bold]StacyTimeline[/] {__version__}\n"
        f"Audio: [cyan]{os.path.basename(args.audio)}[/]\n"
        f"Onsets: ratio [cyan]{config['beat_ratio']:g}[/] | floor [cyan]{config['beat_energy_floor']:g}[/]\n"
        f"Zoom: [cyan]{zoom:g}[/] | Max blocks: [cyan]{config['max_blocks']}[/]",
        title="Configuration"
    ))

    # --- ANALYZE ---
    event_bus = EventBus()
    session = AnalysisSession(config, event_bus)

    def on_failed(**data):
        console.print(f"[yellow]⚠ Could not analyze audio: {data.get('error')}[/]")
    event_bus.subscribe("analysis.failed", on_failed)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("[cyan]Analyzing audio...", total=None)
        result = session.analyze_now(args.audio)

    print_analysis(result, args.max_beats, args.spark_width)

    # --- LAYOUT ---
    layouts = {}
    engine = TrackLayoutEngine(config)
    mapper = CoordinateMapper.from_config(result.duration_sec, zoom, config)
    if args.commands:
        try:
            commands = load_commands(args.commands)
        except (OSError, ValueError, KeyError) as e:
            console.print(f"[bold red]Error:[/] Cannot read commands: {e}")
            return 1
        layouts = engine.layout(commands)
        console.print("")
        print_layout(layouts, engine.point_duration)

    # --- JSON ---
    if args.json:
        data = {
            "schema_version": "1.0",
            "audio": os.path.abspath(args.audio),
            "status": result.status.value,
            "error": result.error,
            "duration": result.duration_sec,
            "zoom": zoom,
            "track_width": mapper.track_width,
            "waveform": [round(float(v), 6) for v in result.waveform],
            "beats": [{"time": b.time, "strength": b.strength} for b in result.beats],
            "lanes": layout_to_json(layouts, mapper, engine),
        }
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        console.print(f"[green]Wrote {args.json}[/]")

    return 0


if __name__ == "__main__":
    sys.exit(main())
