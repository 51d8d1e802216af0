from __future__ import annotations

from typing import Any

import pytest

from wifi_tuner.core.adapter import AdapterProperty
from wifi_tuner.core.errors import AppError, PropertyWriteError

LEVELS = ("1. Lowest", "2. Medium-Low", "3. Medium", "4. Medium-High", "5. Highest")

def intel_properties() -> dict[str, tuple[str, tuple[str, ...]]]:
    return {
        "Preferred Band": (
            "1. No Preference",
            ("1. No Preference", "2. Prefer 2.4GHz band", "3. Prefer 5GHz band"),
        ),
        "Channel Width for 5GHz": ("20MHz Only", ("Auto", "20MHz Only")),
        "MIMO Power Save Mode": ("Auto SMPS", ("Auto SMPS", "Static SMPS", "No SMPS")),
        "Roaming Aggressiveness": ("3. Medium", LEVELS),
        "Transmit Power": ("3. Medium", LEVELS),
        "802.11n/ac/ax Wireless Mode": (
            "4. 802.11ax",
            ("1. 802.11a", "2. 802.11n", "3. 802.11ac", "4. 802.11ax"),
        ),
        "Throughput Booster": ("Disabled", ("Disabled", "Enabled")),
    }


class FakePropertyStore:
    def __init__(
        self,
        properties: dict[str, tuple[str, tuple[str, ...]]] | None = None,
        *,
        power: dict[str, Any] | None = None,
        fail_writes: set[str] | None = None,
        fail_power: bool = False,
    ) -> None:
        properties = intel_properties() if properties is None else properties
        self.adapter_name = "Wi-Fi"
        self.values = {name: value for name, (value, _) in properties.items()}
        self.valid = {name: valid for name, (_, valid) in properties.items()}
        self.power = dict(power or {})
        self.fail_writes = set(fail_writes or ())
        self.fail_power = fail_power
        self.writes: list[tuple[str, str]] = []
        self.enabled_calls: list[bool] = []

    def list_properties(self) -> list[AdapterProperty]:
        return [
            AdapterProperty(name, self.values[name], self.valid[name]) for name in self.values
        ]

    def read_property(self, display_name: str) -> AdapterProperty | None:
        if display_name not in self.values:
            return None
        return AdapterProperty(display_name, self.values[display_name], self.valid[display_name])

    def write_property(self, display_name: str, value: str) -> None:
        if display_name in self.fail_writes:
            raise PropertyWriteError(
                f"write refused: {display_name}",
                property_name=display_name,
            )
        self.writes.append((display_name, value))
        self.values[display_name] = value

    def read_power_flags(self) -> dict[str, Any]:
        if self.fail_power:
            raise AppError("power flags unavailable")
        return dict(self.power)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled_calls.append(enabled)


@pytest.fixture
def store() -> FakePropertyStore:
    return FakePropertyStore(power={"AllowComputerToTurnOffDevice": True})


@pytest.fixture
def make_store():
    return FakePropertyStore


@pytest.fixture
def original_values() -> dict[str, str]:
    return {name: value for name, (value, _) in intel_properties().items()}
