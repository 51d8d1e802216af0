"""Current wireless link and IPv4 state."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
import subprocess
from typing import Any

from wifi_tuner.core.adapter import parse_json_records, run_powershell
from wifi_tuner.core.errors import LinkReadError

logger = logging.getLogger(__name__)

_KEY_VALUE = re.compile(r"^\s*([^:]+?)\s+:\s?(.*)$")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass(frozen=True, slots=True)
class LinkState:
    ssid: str | None = None
    bssid: str | None = None
    channel: int | None = None
    radio_type: str | None = None
    signal_percent: int | None = None
    tx_rate_mbps: float | None = None
    rx_rate_mbps: float | None = None


@dataclass(frozen=True, slots=True)
class IPState:
    ipv4: str | None = None
    gateway_v4: str | None = None


def _first_number(raw: str | None) -> float | None:
    if not raw:
        return None
    match = _NUMBER.search(raw)
    return float(match.group(0)) if match else None


def _as_int(raw: str | None) -> int | None:
    number = _first_number(raw)
    return int(number) if number is not None else None


def _blank_to_none(raw: str | None) -> str | None:
    value = (raw or "").strip()
    return value or None


def _split_interfaces(output: str) -> list[dict[str, str]]:
    blocks: list[dict[str, str]] = []
    current: dict[str, str] | None = None
    for line in (output or "").splitlines():
        match = _KEY_VALUE.match(line)
        if not match:
            continue
        key = match.group(1).strip().lower()
        value = match.group(2).strip()
        if key == "name":
            current = {}
            blocks.append(current)
        if current is None:
            current = {}
            blocks.append(current)
        current.setdefault(key, value)
    return blocks


def parse_netsh_interfaces(output: str, interface: str | None = None) -> LinkState:
    """Parse ``netsh wlan show interfaces`` for one interface.

    Picks the block whose ``Name`` equals ``interface`` (case-insensitive),
    or the first block when no interface is given. An interface that is not
    listed yields an empty ``LinkState``. Missing fields stay ``None``.
    """
    blocks = _split_interfaces(output)
    if not blocks:
        return LinkState()

    block = blocks[0]
    if interface:
        matches = [b for b in blocks if b.get("name", "").lower() == interface.lower()]
        if not matches:
            logger.warning(
                "Interface %r not found in netsh output (have: %s)",
                interface,
                ", ".join(b.get("name", "?") for b in blocks),
            )
            return LinkState()
        block = matches[0]

    if block.get("state", "connected").lower() != "connected":
        logger.info("Interface %s is not connected (state=%s)", block.get("name"), block.get("state"))

    return LinkState(
        ssid=_blank_to_none(block.get("ssid")),
        bssid=_blank_to_none(block.get("ap bssid") or block.get("bssid")),
        channel=_as_int(block.get("channel")),
        radio_type=_blank_to_none(block.get("radio type")),
        signal_percent=_as_int(block.get("signal")),
        tx_rate_mbps=_first_number(block.get("transmit rate (mbps)")),
        rx_rate_mbps=_first_number(block.get("receive rate (mbps)")),
    )


def _run_netsh(timeout_s: float) -> str:
    cmd = ["netsh", "wlan", "show", "interfaces"]
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise LinkReadError(
            f"netsh failed: {exc}",
            user_message="Could not read Wi-Fi link state.",
        ) from exc
    if result.returncode != 0:
        detail = (result.stderr or "").strip() or (result.stdout or "").strip() or "unknown error"
        raise LinkReadError(
            f"netsh failed rc={result.returncode}: {detail}",
            user_message="Could not read Wi-Fi link state.",
        )
    return result.stdout or ""


def _ip_state_from_record(record: dict[str, Any]) -> IPState:
    return IPState(
        ipv4=_blank_to_none(str(record.get("ipv4") or "")),
        gateway_v4=_blank_to_none(str(record.get("gateway") or "")),
    )


class NetshLinkReader:
    """Reads link state via netsh and IPv4 state via Get-NetIPConfiguration."""

    def __init__(self, interface: str, *, timeout_s: float = 5.0) -> None:
        self.interface = interface
        self._timeout_s = timeout_s

    def read_link_state(self) -> LinkState:
        return parse_netsh_interfaces(_run_netsh(self._timeout_s), self.interface)

    def read_ip_state(self) -> IPState:
        alias = self.interface.replace("'", "''")
        script = (
            f"$c = Get-NetIPConfiguration -InterfaceAlias '{alias}' -ErrorAction Stop; "
            "[pscustomobject]@{ "
            "ipv4 = ($c.IPv4Address | Select-Object -First 1).IPAddress; "
            "gateway = ($c.IPv4DefaultGateway | Select-Object -First 1).NextHop "
            "} | ConvertTo-Json"
        )
        out = run_powershell(
            script,
            timeout_s=self._timeout_s,
            error_cls=LinkReadError,
            user_message="Could not read IPv4 configuration",
        ).stdout
        records = parse_json_records(out)
        if not records:
            return IPState()
        return _ip_state_from_record(records[0])
