"""Adapter property store: read/write driver advanced properties.

The transaction manager only talks to the ``PropertyStore`` protocol. The
shipped implementation drives the Windows NetAdapter cmdlets through
PowerShell; tests substitute an in-memory store.
"""

from __future__ import annotations

from dataclasses import dataclass
import ctypes
import json
import logging
import os
import shlex
import shutil
import subprocess
from typing import Any, Final, Protocol

from wifi_tuner.core.errors import AdapterRestartError, AppError, PropertyWriteError

logger = logging.getLogger(__name__)

POWER_FLAG_NAMES: Final[tuple[str, ...]] = (
    "AllowComputerToTurnOffDevice",
    "DeviceSleepOnDisconnect",
    "SelectiveSuspend",
    "WakeOnMagicPacket",
    "WakeOnPattern",
)


@dataclass(frozen=True, slots=True)
class AdapterProperty:
    display_name: str
    value: str
    valid_values: tuple[str, ...] = ()


class PropertyStore(Protocol):
    adapter_name: str

    def list_properties(self) -> list[AdapterProperty]: ...

    def read_property(self, display_name: str) -> AdapterProperty | None: ...

    def write_property(self, display_name: str, value: str) -> None: ...

    def read_power_flags(self) -> dict[str, Any]: ...

    def set_enabled(self, enabled: bool) -> None: ...


def is_elevated() -> bool:
    if os.name == "nt":
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError):
            logger.exception("Failed to query administrator status")
            return False
    return os.geteuid() == 0


def _ps_quote(value: str) -> str:
    return "'" + (value or "").replace("'", "''") + "'"


def _format_cmd(cmd: list[str]) -> str:
    try:
        return shlex.join(cmd)
    except Exception:
        return str(cmd)


def _find_powershell() -> str | None:
    for name in ("powershell", "pwsh"):
        path = shutil.which(name)
        if path:
            return path
    return None


def run_powershell(
    script: str,
    *,
    timeout_s: float = 15.0,
    error_cls: type[AppError] = AppError,
    user_message: str = "Adapter command failed.",
) -> subprocess.CompletedProcess[str]:
    executable = _find_powershell() or "powershell"
    cmd = [executable, "-NoProfile", "-NonInteractive", "-Command", script]
    command_text = _format_cmd(cmd)
    logger.debug("Running command: %s", command_text)
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as exc:
        logger.exception("Command timed out: %s", command_text)
        raise error_cls(
            f"Command timed out: {command_text}",
            user_message=f"{user_message} (timed out)",
        ) from exc
    except OSError as exc:
        logger.exception("Command execution failed: %s", command_text)
        raise error_cls(
            f"Command failed: {command_text}: {exc}",
            user_message=f"{user_message} (PowerShell unavailable)",
        ) from exc

    stdout = (result.stdout or "").strip()
    stderr = (result.stderr or "").strip()
    if result.returncode != 0:
        detail = stderr or stdout or "unknown error"
        logger.error(
            "Command failed rc=%s cmd=%s stdout=%r stderr=%r",
            result.returncode,
            command_text,
            stdout,
            stderr,
        )
        raise error_cls(
            f"Command failed: {command_text}: {detail}",
            user_message=f"{user_message}: {detail}",
        )

    return result


def parse_json_records(raw: str) -> list[dict[str, Any]]:
    """Decode ``ConvertTo-Json`` output, which is an object for one item."""
    raw = (raw or "").strip()
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unparseable PowerShell JSON output: %r", raw[:200])
        return []
    if isinstance(parsed, dict):
        return [parsed]
    if isinstance(parsed, list):
        return [item for item in parsed if isinstance(item, dict)]
    return []


def _to_property(record: dict[str, Any]) -> AdapterProperty | None:
    name = str(record.get("DisplayName") or "").strip()
    if not name:
        return None
    raw_valid = record.get("ValidDisplayValues")
    if isinstance(raw_valid, str):
        valid: tuple[str, ...] = (raw_valid,)
    elif isinstance(raw_valid, list):
        valid = tuple(str(v) for v in raw_valid if v is not None)
    else:
        valid = ()
    value = record.get("DisplayValue")
    return AdapterProperty(
        display_name=name,
        value="" if value is None else str(value),
        valid_values=valid,
    )


_PROPERTY_SELECT: Final[str] = (
    "Select-Object DisplayName,DisplayValue,ValidDisplayValues | ConvertTo-Json -Depth 3"
)


class PowerShellPropertyStore:
    """``PropertyStore`` backed by the Windows NetAdapter cmdlets."""

    def __init__(self, adapter_name: str, *, timeout_s: float = 15.0) -> None:
        self.adapter_name = adapter_name
        self._timeout_s = timeout_s

    def list_properties(self) -> list[AdapterProperty]:
        script = f"Get-NetAdapterAdvancedProperty -Name {_ps_quote(self.adapter_name)} | {_PROPERTY_SELECT}"
        out = run_powershell(
            script,
            timeout_s=self._timeout_s,
            user_message="Failed to read adapter properties",
        ).stdout
        props: list[AdapterProperty] = []
        for record in parse_json_records(out):
            prop = _to_property(record)
            if prop is None:
                logger.info("Skipping unreadable property record: %r", record)
                continue
            props.append(prop)
        return props

    def read_property(self, display_name: str) -> AdapterProperty | None:
        script = (
            f"Get-NetAdapterAdvancedProperty -Name {_ps_quote(self.adapter_name)}"
            f" -DisplayName {_ps_quote(display_name)} -ErrorAction SilentlyContinue | {_PROPERTY_SELECT}"
        )
        out = run_powershell(
            script,
            timeout_s=self._timeout_s,
            user_message=f"Failed to read adapter property {display_name!r}",
        ).stdout
        for record in parse_json_records(out):
            prop = _to_property(record)
            if prop is not None:
                return prop
        return None

    def write_property(self, display_name: str, value: str) -> None:
        script = (
            f"Set-NetAdapterAdvancedProperty -Name {_ps_quote(self.adapter_name)}"
            f" -DisplayName {_ps_quote(display_name)} -DisplayValue {_ps_quote(value)}"
            " -NoRestart -ErrorAction Stop"
        )
        try:
            run_powershell(
                script,
                timeout_s=self._timeout_s,
                error_cls=PropertyWriteError,
                user_message=f"Failed to set {display_name!r} to {value!r}",
            )
        except PropertyWriteError as exc:
            exc.property_name = display_name
            raise

    def read_power_flags(self) -> dict[str, Any]:
        fields = ",".join(
            f"@{{Name='{flag}';Expression={{[string]$_.{flag}}}}}" for flag in POWER_FLAG_NAMES
        )
        script = (
            f"Get-NetAdapterPowerManagement -Name {_ps_quote(self.adapter_name)}"
            f" | Select-Object {fields} | ConvertTo-Json"
        )
        out = run_powershell(
            script,
            timeout_s=self._timeout_s,
            user_message="Failed to read power management flags",
        ).stdout
        records = parse_json_records(out)
        if not records:
            return {}
        flags: dict[str, Any] = {}
        for name in POWER_FLAG_NAMES:
            value = records[0].get(name)
            if value in (None, ""):
                continue
            flags[name] = _decode_flag(str(value))
        return flags

    def set_enabled(self, enabled: bool) -> None:
        verb = "Enable" if enabled else "Disable"
        script = f"{verb}-NetAdapter -Name {_ps_quote(self.adapter_name)} -Confirm:$false -ErrorAction Stop"
        run_powershell(
            script,
            timeout_s=max(self._timeout_s, 30.0),
            error_cls=AdapterRestartError,
            user_message=f"Failed to {verb.lower()} adapter {self.adapter_name!r}",
        )


def _decode_flag(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return raw.strip()
