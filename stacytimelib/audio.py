from __future__ import annotations

import os

import numpy as np
import soundfile as sf

from .models import SampleBuffer

AUDIO_EXTENSIONS = (".wav", ".aif", ".aiff", ".flac", ".ogg", ".mp3")


class DecodeError(Exception):
    """Raised when an audio source cannot be decoded into samples."""
    pass


# ---------------------------------------------------------------------------
# Time formatting
# ---------------------------------------------------------------------------

def format_time(seconds: float) -> str:
    """Ruler label: ``m:ss.cc``."""
    seconds = max(0.0, float(seconds))
    m = int(seconds // 60)
    s = int(seconds % 60)
    cs = int((seconds % 1) * 100)
    return f"{m}:{s:02d}.{cs:02d}"


def format_clock(seconds: float) -> str:
    """Transport display: ``m:ss``."""
    seconds = max(0.0, float(seconds))
    m = int(seconds // 60)
    s = int(seconds % 60)
    return f"{m}:{s:02d}"


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------

def load_sample_buffer(filepath: str) -> SampleBuffer:
    """Decode an audio file into a single-channel :class:`SampleBuffer`.

    Multi-channel files keep their first channel.  Raises
    :class:`DecodeError` for missing, unsupported or corrupt files.
    """
    if not os.path.isfile(filepath):
        raise DecodeError(f"Audio file not found: {filepath}")
    try:
        info = sf.info(filepath)
        data, samplerate = sf.read(filepath, dtype="float64", always_2d=True)
    except (sf.SoundFileError, RuntimeError, OSError) as e:
        raise DecodeError(f"Cannot decode {os.path.basename(filepath)}: {e}") from e
    mono = np.ascontiguousarray(data[:, 0]) if data.shape[1] else np.zeros(0)
    return SampleBuffer(
        samples=mono,
        samplerate=int(samplerate),
        duration_sec=float(info.duration),
    )
