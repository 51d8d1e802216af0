from __future__ import annotations

import subprocess

import pytest

import wifi_tuner.core.probe as probe
from wifi_tuner.core.probe import build_ping_command, parse_ping_latency, ping_probe


@pytest.mark.parametrize(
    "output, expected",
    [
        ("Reply from 8.8.8.8: bytes=32 time=14ms TTL=117", 14.0),
        ("Reply from 192.168.1.1: bytes=32 time<1ms TTL=64", 1.0),
        ("64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=9.87 ms", 9.87),
        ("Request timed out.", None),
    ],
)
def test_parse_ping_latency(output: str, expected: float | None) -> None:
    assert parse_ping_latency(output) == expected


def test_build_ping_command_per_platform() -> None:
    assert build_ping_command("1.1.1.1", 1.0, windows=True) == ["ping", "-n", "1", "-w", "1000", "1.1.1.1"]
    assert build_ping_command("1.1.1.1", 0.5, windows=False) == ["ping", "-c", "1", "-W", "1", "1.1.1.1"]


def test_ping_probe_success(monkeypatch) -> None:
    def fake_run(cmd, check, capture_output, text, timeout):  # noqa: ANN001
        return subprocess.CompletedProcess(cmd, 0, stdout="Reply from 8.8.8.8: time=21ms TTL=117\n", stderr="")

    monkeypatch.setattr(probe.subprocess, "run", fake_run)

    result = ping_probe("8.8.8.8", 1.0)
    assert result.ok is True
    assert result.latency_ms == 21.0


def test_ping_probe_unreachable_reply_counts_as_failure(monkeypatch) -> None:
    def fake_run(cmd, check, capture_output, text, timeout):  # noqa: ANN001
        return subprocess.CompletedProcess(
            cmd, 0, stdout="Reply from 192.168.1.20: Destination host unreachable.\n", stderr=""
        )

    monkeypatch.setattr(probe.subprocess, "run", fake_run)

    result = ping_probe("10.0.0.9", 1.0)
    assert result.ok is False
    assert result.latency_ms is None
    assert "unreachable" in (result.error or "")


@pytest.mark.parametrize(
    "exc",
    [subprocess.TimeoutExpired(cmd="ping", timeout=3.0), OSError("ping not found")],
)
def test_ping_probe_never_raises(monkeypatch, exc: Exception) -> None:
    def fake_run(cmd, check, capture_output, text, timeout):  # noqa: ANN001
        raise exc

    monkeypatch.setattr(probe.subprocess, "run", fake_run)

    result = ping_probe("8.8.8.8", 1.0)
    assert result.ok is False
    assert result.error
