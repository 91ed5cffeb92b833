import numpy as np
import pytest
import soundfile as sf

from stacytimelib.audio import DecodeError, format_clock, format_time, load_sample_buffer


def test_load_stereo_keeps_first_channel(tmp_path):
    sr = 22050
    left = np.linspace(-0.5, 0.5, sr, endpoint=False)
    right = np.zeros(sr)
    path = tmp_path / "stereo.wav"
    sf.write(str(path), np.column_stack([left, right]), sr, subtype="FLOAT")

    buffer = load_sample_buffer(str(path))

    assert buffer.samplerate == sr
    assert buffer.sample_count == sr
    assert buffer.duration_sec == pytest.approx(1.0)
    assert np.allclose(buffer.samples, left, atol=1e-6)


def test_missing_file(tmp_path):
    with pytest.raises(DecodeError, match="not found"):
        load_sample_buffer(str(tmp_path / "nope.wav"))


def test_corrupt_file(tmp_path):
    path = tmp_path / "broken.wav"
    path.write_bytes(b"RIFF\x00\x00\x00\x00garbage")

    with pytest.raises(DecodeError):
        load_sample_buffer(str(path))


@pytest.mark.parametrize("seconds,text", [
    (0, "0:00.00"),
    (5.25, "0:05.25"),
    (65.5, "1:05.50"),
    (-3, "0:00.00"),
])
def test_format_time(seconds, text):
    assert format_time(seconds) == text


def test_format_clock():
    assert format_clock(125.9) == "2:05"
