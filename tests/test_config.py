import json

import pytest

from stacytimelib.config import (
    ANALYSIS_PARAMS,
    VIEWPORT_PARAMS,
    ConfigError,
    build_structured_defaults,
    default_config,
    flatten_structured_config,
    load_preset,
    merge_configs,
    save_preset,
    validate_config,
    validate_config_fields,
    validate_param_values,
    validate_structured_config,
)


def test_defaults():
    config = default_config()

    assert config["max_blocks"] == 1500
    assert config["beat_ratio"] == 1.3
    assert config["beat_energy_floor"] == 0.1
    assert config["pixels_per_second"] == 60
    assert config["zoom_min"] == 0.1
    assert config["zoom_max"] == 4.0
    assert config["scroll_quiet_s"] == 2.0
    validate_config(config)


def test_merge_skips_unset_values():
    merged = merge_configs({"beat_ratio": 1.3, "max_blocks": 1500},
                           {"beat_ratio": 1.5},
                           {"beat_ratio": None, "max_blocks": 200})

    assert merged == {"beat_ratio": 1.5, "max_blocks": 200}


@pytest.mark.parametrize("key,value", [
    ("max_blocks", 0),
    ("max_blocks", 1.5),
    ("max_blocks", True),
    ("beat_ratio", 1.0),
    ("beat_energy_floor", -0.1),
    ("zoom_step", "fast"),
    ("beat_ratio", float("nan")),
])
def test_invalid_values(key, value):
    errors = validate_param_values(ANALYSIS_PARAMS + VIEWPORT_PARAMS, {key: value})

    assert [e.key for e in errors] == [key]


def test_cross_field_errors():
    config = merge_configs(default_config(), {"zoom_min": 5.0})
    errors = validate_config_fields(config)

    assert [e.key for e in errors] == ["zoom_max"]
    with pytest.raises(ConfigError, match="Maximum zoom"):
        validate_config(config)


def test_structured_roundtrip():
    structured = build_structured_defaults()
    assert set(structured) == {"analysis", "layout", "viewport"}

    flat = flatten_structured_config(structured)
    assert flat == default_config()


def test_structured_errors_are_prefixed():
    structured = build_structured_defaults()
    structured["viewport"]["zoom_max"] = -1

    errors = validate_structured_config(structured)
    assert [e.key for e in errors] == ["viewport.zoom_max"]


def test_preset_save_writes_only_overrides(tmp_path):
    path = tmp_path / "presets" / "club.json"
    config = merge_configs(default_config(), {"beat_ratio": 1.6})

    save_preset(config, str(path), description="club set")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"schema_version": "1.0", "_description": "club set",
                    "beat_ratio": 1.6}
    assert load_preset(str(path)) == {"beat_ratio": 1.6}


def test_structured_preset_is_flattened(tmp_path):
    path = tmp_path / "p.json"
    path.write_text(json.dumps({"analysis": {"max_blocks": 64},
                                "viewport": {"zoom_max": 8.0}}))

    assert load_preset(str(path)) == {"max_blocks": 64, "zoom_max": 8.0}


@pytest.mark.parametrize("content,match", [
    (None, "not found"),
    ("{nope", "Invalid JSON"),
    ("[1, 2]", "JSON object"),
])
def test_bad_presets(tmp_path, content, match):
    path = tmp_path / "bad.json"
    if content is not None:
        path.write_text(content)

    with pytest.raises(ConfigError, match=match):
        load_preset(str(path))
