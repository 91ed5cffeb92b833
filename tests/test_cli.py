import json

import numpy as np
import pytest
import soundfile as sf

pytest.importorskip("rich")

import stacytimeline  # noqa: E402


@pytest.fixture
def clicks_wav(tmp_path):
    sr = 8000
    data = np.zeros(sr * 3)
    for second in (1, 2):
        data[second * sr:second * sr + 256] = 0.9
    path = tmp_path / "clicks.wav"
    sf.write(str(path), data, sr)
    return path


def test_analyze_and_export(tmp_path, clicks_wav):
    commands = tmp_path / "commands.json"
    commands.write_text(json.dumps([
        {"id": "a", "time": 1.0, "type": "On", "lane": "BarsA"},
        {"id": "b", "time": 1.05, "type": "Off", "lane": "BarsA"},
        {"id": "c", "time": 0.5, "type": "Cue", "parameters": {"lightType": "StrobesA"}},
    ]))
    out = tmp_path / "out.json"

    code = stacytimeline.main([str(clicks_wav), "--commands", str(commands),
                               "--json", str(out)])

    assert code == 0
    data = json.loads(out.read_text())
    assert data["status"] == "ok"
    assert data["duration"] == pytest.approx(3.0)
    assert [round(b["time"]) for b in data["beats"]] == [1, 2]
    assert len(data["lanes"]["BarsA"]) == 2
    # 3 s track stretched to the 800 px minimum; a cue spans all of it
    assert data["lanes"]["StrobesA"][0][0]["width"] == pytest.approx(800)
    assert data["track_width"] == 800


def test_missing_audio(tmp_path):
    assert stacytimeline.main([str(tmp_path / "nope.wav")]) == 1


def test_invalid_option(clicks_wav):
    assert stacytimeline.main([str(clicks_wav), "--beat_ratio", "0.5"]) == 2


@pytest.mark.parametrize("zoom,expected", [("100", 4.0), ("0.01", 0.1), ("2", 2.0)])
def test_zoom_is_clamped_to_configured_range(tmp_path, clicks_wav, zoom, expected):
    out = tmp_path / "out.json"

    assert stacytimeline.main([str(clicks_wav), "--zoom", zoom, "--json", str(out)]) == 0

    assert json.loads(out.read_text())["zoom"] == expected
