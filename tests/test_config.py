import json

import pytest

import orbitai.settings as defaults
from orbitai.learning import Mode, SessionConfig
from orbitai.local.config import MergedSettings


def test_defaults_are_loaded(tmp_path):
    settings = MergedSettings(overrides_path=tmp_path / "overrides.json")
    assert settings.MOCHI_PORT == defaults.MOCHI_PORT
    assert settings.PARAMS_DEFAULT_VALUE == 42.0
    assert settings.get("MISSING", "fallback") == "fallback"


def test_only_modifiable_overrides_are_applied(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text(json.dumps({"LEARNING_ITERATIONS": 7, "MOCHI_ADDRESS": "10.0.0.1", "UNKNOWN": 1}))
    settings = MergedSettings(overrides_path=overrides)
    assert settings.LEARNING_ITERATIONS == 7
    assert settings.MOCHI_ADDRESS == "127.0.0.1"
    assert not hasattr(settings, "UNKNOWN")


def test_corrupt_overrides_file_keeps_defaults(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text("{not json")
    settings = MergedSettings(overrides_path=overrides)
    assert settings.LEARNING_ITERATIONS == defaults.LEARNING_ITERATIONS


def test_update_setting_coerces_and_persists(tmp_path):
    overrides = tmp_path / "bin" / "overrides.json"
    settings = MergedSettings(overrides_path=overrides)

    success, _ = settings.update_setting("LEARNING_ITERATIONS", "25")
    assert success
    assert settings.LEARNING_ITERATIONS == 25
    assert json.loads(overrides.read_text())["LEARNING_ITERATIONS"] == 25

    success, _ = settings.update_setting("MOCHI_PORT", "not-a-port")
    assert not success

    success, message = settings.update_setting("MOCHI_ADDRESS", "10.0.0.1")
    assert not success
    assert "not modifiable" in message


def test_session_config_from_settings(tmp_path):
    settings = MergedSettings(overrides_path=tmp_path / "overrides.json")
    settings.update_setting("EXPERIMENT_MODE", "inference")
    config = SessionConfig.from_settings(settings)
    assert config.mode is Mode.INFER
    assert config.port == settings.MOCHI_PORT
    assert config.photodiode_names == tuple(settings.PHOTODIODE_NAMES)
    assert config.executable.name == "OrbitAI_Mochi"


@pytest.mark.parametrize("key, value", [
    ("LEARNING_INTERVAL", "0"),
    ("LEARNING_ITERATIONS", "-3"),
    ("MOCHI_PORT", "70000"),
    ("EXPERIMENT_MODE", "evaluate"),
])
def test_out_of_range_values_are_rejected(tmp_path, key, value):
    settings = MergedSettings(overrides_path=tmp_path / "overrides.json")
    before = getattr(settings, key)
    success, _ = settings.update_setting(key, value)
    assert not success
    assert getattr(settings, key) == before
    assert not (tmp_path / "overrides.json").exists()


def test_invalid_override_values_are_ignored(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text(json.dumps({"MOCHI_PORT": 0, "LEARNING_INTERVAL": 2.5}))
    settings = MergedSettings(overrides_path=overrides)
    assert settings.MOCHI_PORT == defaults.MOCHI_PORT
    assert settings.LEARNING_INTERVAL == 2.5
