"""The fixed, ordered set of adapter settings applied by an optimization pass."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class DesiredSetting:
    key: str
    display_names: tuple[str, ...]
    desired_value: str


# Drivers expose the same setting under different display names; the first
# one the adapter reports wins.
PREFERRED_BAND: Final = DesiredSetting(
    "preferred_band",
    ("Preferred Band", "Band Preference", "Preferred band"),
    "Prefer 5GHz",
)
CHANNEL_WIDTH: Final = DesiredSetting(
    "channel_width",
    ("Channel Width for 5GHz", "Bandwidth Capability", "802.11n Channel Width for band 5.2GHz"),
    "Auto",
)
POWER_SAVE: Final = DesiredSetting(
    "power_save",
    ("MIMO Power Save Mode", "Power Saving Mode", "Power Save Mode"),
    "No SMPS",
)
ROAMING: Final = DesiredSetting(
    "roaming_aggressiveness",
    ("Roaming Aggressiveness", "Roaming Sensitivity Level", "Roam Tendency"),
    "Lowest",
)
TRANSMIT_POWER: Final = DesiredSetting(
    "transmit_power",
    ("Transmit Power", "Transmit power"),
    "Highest",
)

_WIRELESS_MODE_NAMES: Final[tuple[str, ...]] = (
    "802.11n/ac/ax Wireless Mode",
    "802.11ax Wireless Mode",
    "Wireless Mode",
)


def wireless_mode_setting(force_ax: bool) -> DesiredSetting:
    return DesiredSetting(
        "wireless_mode",
        _WIRELESS_MODE_NAMES,
        "802.11ax" if force_ax else "802.11ac",
    )


def optimization_profile(force_ax: bool = False) -> list[DesiredSetting]:
    return [
        PREFERRED_BAND,
        CHANNEL_WIDTH,
        POWER_SAVE,
        ROAMING,
        TRANSMIT_POWER,
        wireless_mode_setting(force_ax),
    ]
