"""Background analysis thread for Qt hosts."""

from __future__ import annotations

import threading
from typing import Any

from PySide6.QtCore import QThread, Signal

from stacytimelib.analysis import analyze_buffer, fallback_result
from stacytimelib.audio import DecodeError, load_sample_buffer
from stacytimelib.log import dbg
from stacytimelib.models import SampleBuffer


class AnalysisWorker(QThread):
    """Decode (when given a path) and analyze one audio source.

    The host obtains *generation* from ``TimelineEditor.begin_analysis()``
    and feeds the emitted pair back into ``apply_analysis`` on the GUI
    thread, which discards it if a newer request has started meanwhile.
    """

    finished = Signal(object)  # emits (generation, AnalysisResult)

    def __init__(self, source: str | SampleBuffer, generation: int,
                 config: dict[str, Any] | None = None, parent=None):
        super().__init__(parent)
        self._source = source
        self._generation = generation
        self._config = config or {}
        self._cancelled = threading.Event()

    @property
    def generation(self) -> int:
        return self._generation

    def cancel(self):
        """Request early termination; nothing is emitted afterwards."""
        self._cancelled.set()

    def run(self):
        source = self._source
        if isinstance(source, SampleBuffer):
            buffer = source
        else:
            try:
                buffer = load_sample_buffer(source)
            except DecodeError as e:
                dbg(f"decode failed: {e}")
                if not self._cancelled.is_set():
                    self.finished.emit(
                        (self._generation, fallback_result(self._config, error=str(e))))
                return

        if self._cancelled.is_set():
            return

        result = analyze_buffer(buffer, self._config)

        if self._cancelled.is_set():
            return
        self.finished.emit((self._generation, result))
