"""Time-series and summary records produced by monitoring passes."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class SampleRow:
    timestamp: datetime
    ssid: str | None
    bssid: str | None
    channel: int | None
    radio_type: str | None
    signal_percent: int | None
    tx_rate_mbps: float | None
    rx_rate_mbps: float | None
    ipv4: str | None
    gateway_v4: str | None
    probe_target: str
    probe_ok: bool
    probe_latency_ms: float | None
    # Sampler tick index; rows of one tick share it.
    tick: int | None = None

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]


@dataclass(frozen=True, slots=True)
class SignalStats:
    avg: float | None
    min: int | None
    max: int | None

    def to_dict(self) -> dict[str, Any]:
        return {"avg": self.avg, "min": self.min, "max": self.max}


@dataclass(frozen=True, slots=True)
class TargetStats:
    loss_pct: float
    avg_latency_ms: float | None
    longest_fail_streak: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "loss_pct": self.loss_pct,
            "avg_latency_ms": self.avg_latency_ms,
            "longest_fail_streak": self.longest_fail_streak,
        }


@dataclass(frozen=True, slots=True)
class CaptureSummary:
    start: datetime | None
    end: datetime | None
    sample_count: int
    duration_sec: float
    signal: SignalStats
    per_target: dict[str, TargetStats] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "sample_count": self.sample_count,
            "duration_sec": self.duration_sec,
            "signal": self.signal.to_dict(),
            "per_target": {name: stats.to_dict() for name, stats in self.per_target.items()},
        }


@dataclass(frozen=True, slots=True)
class SignalDelta:
    avg: float | None
    min: int | None
    max: int | None

    def to_dict(self) -> dict[str, Any]:
        return {"avg": self.avg, "min": self.min, "max": self.max}


@dataclass(frozen=True, slots=True)
class TargetDelta:
    loss_pct_delta: float
    avg_latency_delta: float | None
    longest_fail_streak_delta: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "loss_pct_delta": self.loss_pct_delta,
            "avg_latency_delta": self.avg_latency_delta,
            "longest_fail_streak_delta": self.longest_fail_streak_delta,
        }


@dataclass(frozen=True, slots=True)
class DeltaReport:
    signal_delta: SignalDelta
    per_target_delta: dict[str, TargetDelta] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "signal_delta": self.signal_delta.to_dict(),
            "per_target_delta": {
                name: delta.to_dict() for name, delta in self.per_target_delta.items()
            },
        }


class Verdict(str, Enum):
    IMPROVED = "improved"
    WORSENED = "worsened"
    MIXED = "mixed"
    NO_CHANGE = "no_change"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ChartPoint:
    timestamp: datetime
    signal_percent: int | None
    per_target_latency: dict[str, float | None]
