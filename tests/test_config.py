from __future__ import annotations

import json
from pathlib import Path

import pytest

from wifi_tuner.core.comparison import VerdictThresholds
from wifi_tuner.core.config import TunerSettings, load_settings, save_settings
from wifi_tuner.core.errors import ConfigError


def test_load_settings_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "settings.json")
    assert settings == TunerSettings()
    assert settings.thresholds == VerdictThresholds()


def test_load_settings_reads_values_and_ignores_bad_ones(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "adapter_name": "WLAN",
                "interval_s": "2",
                "duration_s": "oops",
                "targets": ["10.0.0.1", " ", "9.9.9.9"],
                "force_ax": True,
                "thresholds": {"latency_ms": 12},
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.adapter_name == "WLAN"
    assert settings.interval_s == 2.0
    assert settings.duration_s == 60.0
    assert settings.targets == ("10.0.0.1", "9.9.9.9")
    assert settings.force_ax is True
    assert settings.thresholds.latency_ms == 12.0
    assert settings.thresholds.loss_pct == 1.0


def test_save_and_reload_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = TunerSettings(adapter_name="WLAN", targets=("1.1.1.1",), duration_s=30.0)
    save_settings(original, path)
    assert load_settings(path) == original


@pytest.mark.parametrize(
    "payload",
    [
        {"interval_s": 0},
        {"duration_s": -5},
        {"targets": []},
        {"probe_timeout_s": 0},
    ],
)
def test_invalid_settings_raise(tmp_path: Path, payload: dict) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_with_gateway_replaces_first_target() -> None:
    settings = TunerSettings(targets=("192.168.1.1", "10.0.0.1", "8.8.8.8"))

    assert settings.with_gateway("10.0.0.1").targets == ("10.0.0.1", "8.8.8.8")
    assert settings.with_gateway(None).targets == settings.targets

    disabled = TunerSettings(use_gateway_target=False)
    assert disabled.with_gateway("10.0.0.1").targets == disabled.targets
