"""User-tunable settings for sampling, probing and verdicts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from pathlib import Path
from typing import Any

from wifi_tuner.core.comparison import VerdictThresholds
from wifi_tuner.core.errors import ConfigError
from wifi_tuner.core.storage import get_config_dir, load_json, save_json

SETTINGS_FILE = "settings.json"

DEFAULT_ADAPTER_NAME = "Wi-Fi"
DEFAULT_INTERVAL_S = 1.0
DEFAULT_DURATION_S = 60.0
DEFAULT_TARGETS: tuple[str, ...] = ("192.168.1.1", "1.1.1.1", "8.8.8.8")
DEFAULT_PROBE_TIMEOUT_S = 1.0
DEFAULT_RESTART_DELAY_S = 5.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TunerSettings:
    adapter_name: str = DEFAULT_ADAPTER_NAME
    interval_s: float = DEFAULT_INTERVAL_S
    duration_s: float = DEFAULT_DURATION_S
    targets: tuple[str, ...] = DEFAULT_TARGETS
    probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S
    restart_delay_s: float = DEFAULT_RESTART_DELAY_S
    force_ax: bool = False
    use_gateway_target: bool = True
    thresholds: VerdictThresholds = field(default_factory=VerdictThresholds)

    def validate(self) -> "TunerSettings":
        if not self.adapter_name.strip():
            raise ConfigError("Adapter name is empty", user_message="Set an adapter name.")
        if self.interval_s <= 0:
            raise ConfigError(
                f"Invalid sampling interval: {self.interval_s}",
                user_message="Sampling interval must be positive.",
            )
        if self.duration_s <= 0:
            raise ConfigError(
                f"Invalid sampling duration: {self.duration_s}",
                user_message="Sampling duration must be positive.",
            )
        if self.probe_timeout_s <= 0:
            raise ConfigError(
                f"Invalid probe timeout: {self.probe_timeout_s}",
                user_message="Probe timeout must be positive.",
            )
        if not self.targets:
            raise ConfigError("No probe targets configured", user_message="Add at least one probe target.")
        return self

    def with_gateway(self, gateway: str | None) -> "TunerSettings":
        """Replace the first target with the detected gateway, if enabled."""
        if not self.use_gateway_target or not gateway:
            return self
        rest = tuple(t for t in self.targets[1:] if t != gateway)
        return replace(self, targets=(gateway, *rest))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TunerSettings":
        defaults = cls()
        raw_targets = data.get("targets")
        targets = defaults.targets
        if isinstance(raw_targets, list):
            cleaned = tuple(str(t).strip() for t in raw_targets if str(t).strip())
            targets = cleaned
        raw_thresholds = data.get("thresholds")
        thresholds = (
            VerdictThresholds.from_dict(raw_thresholds)
            if isinstance(raw_thresholds, dict)
            else defaults.thresholds
        )
        return cls(
            adapter_name=str(data.get("adapter_name") or defaults.adapter_name).strip(),
            interval_s=_to_float(data.get("interval_s"), defaults.interval_s),
            duration_s=_to_float(data.get("duration_s"), defaults.duration_s),
            targets=targets,
            probe_timeout_s=_to_float(data.get("probe_timeout_s"), defaults.probe_timeout_s),
            restart_delay_s=_to_float(data.get("restart_delay_s"), defaults.restart_delay_s),
            force_ax=bool(data.get("force_ax", defaults.force_ax)),
            use_gateway_target=bool(data.get("use_gateway_target", defaults.use_gateway_target)),
            thresholds=thresholds,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "adapter_name": self.adapter_name,
            "interval_s": self.interval_s,
            "duration_s": self.duration_s,
            "targets": list(self.targets),
            "probe_timeout_s": self.probe_timeout_s,
            "restart_delay_s": self.restart_delay_s,
            "force_ax": self.force_ax,
            "use_gateway_target": self.use_gateway_target,
            "thresholds": self.thresholds.to_dict(),
        }


def _to_float(raw: Any, default: float) -> float:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def load_settings(path: Path | None = None) -> TunerSettings:
    path = path or (get_config_dir() / SETTINGS_FILE)
    data = load_json(path, {})
    if not isinstance(data, dict):
        logger.warning("Settings file is not a JSON object, using defaults: %s", path)
        data = {}
    return TunerSettings.from_dict(data).validate()


def save_settings(settings: TunerSettings, path: Path | None = None) -> Path:
    path = path or (get_config_dir() / SETTINGS_FILE)
    save_json(path, settings.to_dict())
    return path
