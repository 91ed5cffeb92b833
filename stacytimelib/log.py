"""Debug tracing for the timeline core.

Silent unless ``ST_DEBUG`` is set.  ``1``/``true``/``all`` traces every
component; any other value is read as a comma-separated list of the
component names to trace, e.g. ``ST_DEBUG=ViewportController,AnalysisSession``.
Lines go to stderr as ``[HH:MM:SS.mmm Component] message``, where the
component is the calling object's class (or the module for plain
functions).
"""

from __future__ import annotations

import inspect
import os
import sys
import time
from typing import Iterable

ENV_VAR = "ST_DEBUG"

# (enabled, component filter); None until first use
_settings: tuple[bool, frozenset[str]] | None = None


def _parse(raw: str) -> tuple[bool, frozenset[str]]:
    value = raw.strip()
    if value.lower() in ("", "0", "false", "off"):
        return False, frozenset()
    if value.lower() in ("1", "true", "all"):
        return True, frozenset()
    return True, frozenset(n.strip() for n in value.split(",") if n.strip())


def _current() -> tuple[bool, frozenset[str]]:
    global _settings
    if _settings is None:
        _settings = _parse(os.environ.get(ENV_VAR, ""))
    return _settings


def configure(enabled: bool | None = None, only: Iterable[str] | None = None) -> None:
    """Override the environment.  ``configure()`` with no arguments goes
    back to reading ``ST_DEBUG`` on the next call."""
    global _settings
    if enabled is None:
        _settings = None
    else:
        _settings = (enabled, frozenset(only or ()))


def _component(frame) -> str:
    owner = frame.f_locals.get("self")
    if owner is not None:
        return type(owner).__name__
    owner = frame.f_locals.get("cls")
    if isinstance(owner, type):
        return owner.__name__
    module = frame.f_globals.get("__name__") or "?"
    return module.rpartition(".")[2]


def dbg(msg: str) -> None:
    enabled, only = _current()
    if not enabled:
        return
    frame = inspect.currentframe()
    try:
        caller = frame.f_back if frame is not None else None
        name = _component(caller) if caller is not None else "?"
    finally:
        del frame
    if only and name not in only:
        return
    now = time.time()
    stamp = time.strftime("%H:%M:%S", time.localtime(now))
    print(f"[{stamp}.{int(now % 1 * 1000):03d} {name}] {msg}",
          file=sys.stderr, flush=True)
