"""Waveform envelope and onset analysis.

Both analyzers share one partition of the sample buffer into equal-size
blocks (:class:`BlockStats`), computed in a single vectorised pass.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from .audio import DecodeError, load_sample_buffer
from .events import EventBus
from .log import dbg
from .models import AnalysisResult, AnalysisStatus, BeatEvent, SampleBuffer


@dataclass
class BlockStats:
    peak: np.ndarray      # max(|x|) per block
    rms: np.ndarray       # sqrt(mean(x²)) per block
    block_count: int
    block_size: int


class WaveformAnalyzer:
    """Downsamples a buffer into at most ``max_blocks`` normalized amplitudes."""

    def __init__(self, config: dict[str, Any] | None = None):
        self.configure(config or {})

    def configure(self, config: dict[str, Any]) -> None:
        self.max_blocks: int = int(config.get("max_blocks", 1500))
        self.block_size: int = int(config.get("block_size", 1024))
        self.fallback_points: int = int(config.get("fallback_points", 100))
        self.fallback_level: float = float(config.get("fallback_level", 0.1))

    def block_count(self, sample_count: int) -> int:
        if sample_count < self.block_size:
            return 1
        return min(self.max_blocks, sample_count // self.block_size)

    def block_stats(self, buffer: SampleBuffer) -> BlockStats:
        samples = buffer.samples
        count = self.block_count(buffer.sample_count)
        size = max(1, buffer.sample_count // count)
        # trailing samples that do not fill a whole block are dropped
        blocks = samples[:count * size].reshape(count, size)
        peak = np.max(np.abs(blocks), axis=1)
        rms = np.sqrt(np.mean(blocks * blocks, axis=1))
        return BlockStats(peak=peak, rms=rms, block_count=count, block_size=size)

    def analyze(self, stats: BlockStats) -> np.ndarray:
        amplitude = np.maximum(stats.peak, stats.rms * 2.0)
        top = float(np.max(amplitude)) if amplitude.size else 0.0
        if top <= 0.0:
            return np.zeros(stats.block_count, dtype=np.float64)
        return amplitude / top

    def fallback(self) -> np.ndarray:
        return np.full(self.fallback_points, self.fallback_level, dtype=np.float64)


class BeatDetector:
    """Energy-onset detector over the waveform blocks.

    A block is an onset when its RMS energy exceeds the exponentially
    smoothed running energy by ``beat_ratio`` and also exceeds
    ``beat_energy_floor``.  While the running energy is still (near) zero
    only the floor applies, and the reported strength is relative to it.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.configure(config or {})

    def configure(self, config: dict[str, Any]) -> None:
        self.ratio: float = float(config.get("beat_ratio", 1.3))
        self.energy_floor: float = float(config.get("beat_energy_floor", 0.1))
        self.attack_weight: float = float(config.get("beat_attack_weight", 0.7))
        self.decay_weight: float = float(config.get("beat_decay_weight", 0.3))
        self.epsilon: float = float(config.get("beat_epsilon", 1e-9))

    def analyze(self, stats: BlockStats, duration_sec: float) -> list[BeatEvent]:
        beats: list[BeatEvent] = []
        count = stats.block_count
        prev_energy = 0.0
        for index, value in enumerate(stats.rms):
            energy = float(value)
            if energy > self.energy_floor:
                t = (index / count) * duration_sec
                if prev_energy > self.epsilon:
                    if energy > prev_energy * self.ratio:
                        beats.append(BeatEvent(t, energy / prev_energy))
                else:
                    strength = energy / self.energy_floor if self.energy_floor > 0 else 1.0
                    beats.append(BeatEvent(t, strength))
            prev_energy = energy * self.attack_weight + prev_energy * self.decay_weight
        return beats


# ---------------------------------------------------------------------------
# One-shot analysis
# ---------------------------------------------------------------------------

def _invalid_reason(buffer: SampleBuffer | None) -> str | None:
    if buffer is None:
        return "no audio"
    if buffer.samples.ndim != 1:
        return f"expected 1-D samples, got shape {buffer.samples.shape}"
    if buffer.sample_count == 0:
        return "empty sample buffer"
    if buffer.samplerate <= 0:
        return f"invalid samplerate {buffer.samplerate}"
    if not np.isfinite(buffer.duration_sec) or buffer.duration_sec < 0:
        return f"invalid duration {buffer.duration_sec}"
    if not np.all(np.isfinite(buffer.samples)):
        return "non-finite samples"
    return None


def fallback_result(config: dict[str, Any] | None = None, *,
                    error: str | None = None,
                    duration_sec: float = 0.0) -> AnalysisResult:
    """Flat placeholder waveform with no beats."""
    waveform = WaveformAnalyzer(config).fallback()
    return AnalysisResult(
        waveform=waveform,
        beats=[],
        block_count=len(waveform),
        block_size=0,
        duration_sec=duration_sec,
        status=AnalysisStatus.FALLBACK,
        error=error,
    )


def analyze_buffer(buffer: SampleBuffer | None,
                   config: dict[str, Any] | None = None) -> AnalysisResult:
    """Compute the waveform envelope and beat list for *buffer*.

    Invalid buffers produce :func:`fallback_result` instead of raising.
    """
    config = config or {}
    reason = _invalid_reason(buffer)
    if reason is not None:
        dbg(f"analysis fallback: {reason}")
        duration = buffer.duration_sec if buffer is not None else 0.0
        if not np.isfinite(duration) or duration < 0:
            duration = 0.0
        return fallback_result(config, error=reason, duration_sec=duration)

    t0 = time.perf_counter()
    waveform_analyzer = WaveformAnalyzer(config)
    beat_detector = BeatDetector(config)
    stats = waveform_analyzer.block_stats(buffer)
    waveform = waveform_analyzer.analyze(stats)
    beats = beat_detector.analyze(stats, buffer.duration_sec)
    dt = (time.perf_counter() - t0) * 1000
    dbg(f"analyzed {buffer.sample_count} samples -> {stats.block_count} blocks, "
        f"{len(beats)} beats in {dt:.1f} ms")
    return AnalysisResult(
        waveform=waveform,
        beats=beats,
        block_count=stats.block_count,
        block_size=stats.block_size,
        duration_sec=buffer.duration_sec,
    )


def analyze_source(source: str | SampleBuffer,
                   config: dict[str, Any] | None = None) -> AnalysisResult:
    """Decode *source* when it is a path, then analyze it.

    Decode failures are logged and turned into the fallback result.
    """
    if isinstance(source, SampleBuffer):
        return analyze_buffer(source, config)
    try:
        buffer = load_sample_buffer(source)
    except DecodeError as e:
        dbg(f"decode failed: {e}")
        return fallback_result(config, error=str(e))
    return analyze_buffer(buffer, config)


# ---------------------------------------------------------------------------
# Result ownership across re-analysis
# ---------------------------------------------------------------------------

class AnalysisSession:
    """Holds the current analysis result for the loaded track.

    Every new request bumps ``generation``; a completion carrying an older
    generation is dropped so a slow analysis of a previous track can never
    overwrite the result for the current one.
    """

    def __init__(self, config: dict[str, Any] | None = None,
                 event_bus: EventBus | None = None):
        self.config = config or {}
        self.event_bus = event_bus
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: int | None = None
        self._result: AnalysisResult = fallback_result(self.config)

    def _emit(self, event_type: str, **data):
        if self.event_bus:
            self.event_bus.emit(event_type, **data)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_analyzing(self) -> bool:
        return self._pending is not None

    @property
    def result(self) -> AnalysisResult:
        return self._result

    @property
    def waveform(self) -> np.ndarray:
        return self._result.waveform

    @property
    def beats(self) -> list[BeatEvent]:
        return self._result.beats

    def begin(self) -> int:
        """Start a new request and return its generation."""
        with self._lock:
            self._generation += 1
            self._pending = self._generation
            generation = self._generation
        self._emit("analysis.start", generation=generation)
        return generation

    def complete(self, generation: int, result: AnalysisResult) -> bool:
        """Store *result* if it belongs to the current request."""
        with self._lock:
            if generation != self._generation:
                stale = True
            else:
                stale = False
                result.generation = generation
                self._result = result
                self._pending = None
        if stale:
            dbg(f"discarding stale analysis {generation} (current {self._generation})")
            self._emit("analysis.stale", generation=generation)
            return False
        if result.is_fallback:
            self._emit("analysis.failed", generation=generation, error=result.error)
        self._emit("analysis.complete", generation=generation, result=result)
        return True

    def abandon(self, generation: int) -> bool:
        """Drop *generation* without a result (cancelled or crashed).

        The stored result is kept.  Returns True if it was the pending
        request, which ends the analysing state.
        """
        with self._lock:
            if self._pending != generation:
                return False
            self._pending = None
        dbg(f"analysis {generation} abandoned")
        self._emit("analysis.cancelled", generation=generation)
        return True

    def analyze_now(self, source: str | SampleBuffer) -> AnalysisResult:
        """Synchronous request: analyze on the calling thread."""
        generation = self.begin()
        try:
            result = analyze_source(source, self.config)
        except Exception:
            self.abandon(generation)
            raise
        self.complete(generation, result)
        return self._result


class AnalysisRunner:
    """Runs analysis requests off the calling thread.

    Submitting a new source cancels the previous request; its result, if
    it still arrives, is rejected by the session's generation check.  A
    request that is cancelled or fails is abandoned on the session so
    ``is_analyzing`` never outlives the work.
    """

    def __init__(self, session: AnalysisSession,
                 executor: ThreadPoolExecutor | None = None):
        self.session = session
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="analysis")
        self._owns_executor = executor is None
        self._cancel: threading.Event | None = None
        self._future: Future | None = None

    def submit(self, source: str | SampleBuffer,
               on_done: Callable[[int, AnalysisResult], None] | None = None,
               ) -> Future:
        """Queue *source* for analysis.  The returned future resolves to
        ``(generation, result)``; *on_done* receives the same pair and is
        only called for a request that was not cancelled."""
        if self._cancel is not None:
            self._cancel.set()
        cancelled = threading.Event()
        self._cancel = cancelled
        generation = self.session.begin()
        config = self.session.config

        def job() -> tuple[int, AnalysisResult] | None:
            delivered = False
            try:
                if cancelled.is_set():
                    return None
                result = analyze_source(source, config)
                if cancelled.is_set():
                    dbg(f"analysis {generation} cancelled")
                    return generation, result
                delivered = self.session.complete(generation, result)
                if delivered and on_done is not None:
                    on_done(generation, result)
                return generation, result
            finally:
                if not delivered:
                    self.session.abandon(generation)

        self._future = self._executor.submit(job)
        return self._future

    def wait(self, timeout: float | None = None) -> tuple[int, AnalysisResult] | None:
        """Block until the latest request finishes."""
        if self._future is None:
            return None
        return self._future.result(timeout=timeout)

    def shutdown(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
        if self._owns_executor:
            self._executor.shutdown(wait=True, cancel_futures=True)
        # a queued job dropped by cancel_futures never ran its cleanup
        self.session.abandon(self.session.generation)
