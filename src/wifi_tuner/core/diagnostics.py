"""Diagnostics collection."""

from __future__ import annotations

import platform
import shutil
import sys

from wifi_tuner.core.adapter import is_elevated
from wifi_tuner.core.config import TunerSettings
from wifi_tuner.core.errors import AppError
from wifi_tuner.core.link_state import NetshLinkReader
from wifi_tuner.core.logging_setup import redact
from wifi_tuner.core.settings_manager import BACKUP_FILE
from wifi_tuner.core.storage import get_logs_dir, get_runs_dir


def _tool_available(name: str) -> bool:
    return shutil.which(name) is not None


def collect_diagnostics(settings: TunerSettings | None = None) -> str:
    settings = settings or TunerSettings()
    lines: list[str] = []
    lines.append("wifi-tuner diagnostics")
    lines.append("")

    lines.append("System")
    lines.append(f"- OS: {platform.system()} {platform.release()}")
    lines.append(f"- Version: {platform.version()}")
    lines.append(f"- Arch: {platform.machine()}")
    lines.append(f"- Python: {sys.version.split()[0]}")
    lines.append(f"- Elevated: {'yes' if is_elevated() else 'no'}")
    lines.append("")

    lines.append("Tools")
    for tool in ("powershell", "netsh", "ping"):
        lines.append(f"- {tool}: {'yes' if _tool_available(tool) else 'no'}")
    lines.append("")

    lines.append("Paths")
    lines.append(f"- Logs: {get_logs_dir()}")
    runs_dir = get_runs_dir()
    backups = sorted(runs_dir.glob(f"*/{BACKUP_FILE}")) if runs_dir.exists() else []
    lines.append(f"- Runs: {runs_dir} ({len(backups)} backup(s))")
    if backups:
        lines.append(f"- Latest backup: {backups[-1]}")
    lines.append("")

    lines.append(f"Link ({settings.adapter_name})")
    if _tool_available("netsh"):
        try:
            link = NetshLinkReader(settings.adapter_name).read_link_state()
        except AppError as exc:
            lines.append(f"- Error reading link state: {exc.user_message}")
        else:
            lines.append(f"- SSID: {link.ssid or ''}")
            lines.append(f"- BSSID: {redact(link.bssid or '')}")
            lines.append(f"- Channel: {link.channel if link.channel is not None else ''}")
            lines.append(f"- Radio: {link.radio_type or ''}")
            lines.append(f"- Signal: {link.signal_percent if link.signal_percent is not None else ''}%")
    else:
        lines.append("- netsh unavailable")
    lines.append("")

    return "\n".join(lines)
