"""Single reachability probes using the system ``ping``."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import os
import re
import subprocess

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r"time\s*[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    ok: bool
    latency_ms: float | None
    error: str | None = None


def build_ping_command(target: str, timeout_s: float, *, windows: bool | None = None) -> list[str]:
    windows = os.name == "nt" if windows is None else windows
    if windows:
        return ["ping", "-n", "1", "-w", str(max(1, int(timeout_s * 1000))), target]
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_s))), target]


def parse_ping_latency(output: str) -> float | None:
    match = _TIME_PATTERN.search(output or "")
    return float(match.group(1)) if match else None


def ping_probe(target: str, timeout_s: float = 1.0) -> ProbeResult:
    """Send one echo request; never raises for network failures."""
    cmd = build_ping_command(target, timeout_s)
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_s + 2.0,
        )
    except subprocess.TimeoutExpired:
        return ProbeResult(ok=False, latency_ms=None, error="timeout")
    except OSError as exc:
        logger.error("ping unavailable: %s", exc)
        return ProbeResult(ok=False, latency_ms=None, error=str(exc))

    output = result.stdout or ""
    latency = parse_ping_latency(output)
    # Windows ping exits 0 for "Destination host unreachable" replies.
    if result.returncode != 0 or latency is None:
        lines = output.strip().splitlines()
        detail = (result.stderr or "").strip() or (lines[-1].strip() if lines else "no reply")
        return ProbeResult(ok=False, latency_ms=None, error=detail)
    return ProbeResult(ok=True, latency_ms=latency, error=None)
