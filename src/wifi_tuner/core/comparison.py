"""Before/after comparison of two capture summaries."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from statistics import fmean
from typing import Any

from wifi_tuner.core.models import (
    CaptureSummary,
    DeltaReport,
    SignalDelta,
    TargetDelta,
    Verdict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VerdictThresholds:
    """Smallest deltas that count as a real change on each axis."""

    loss_pct: float = 1.0
    latency_ms: float = 5.0
    signal_pct: float = 3.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VerdictThresholds":
        defaults = cls()
        return cls(
            loss_pct=_non_negative(data.get("loss_pct"), defaults.loss_pct),
            latency_ms=_non_negative(data.get("latency_ms"), defaults.latency_ms),
            signal_pct=_non_negative(data.get("signal_pct"), defaults.signal_pct),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "loss_pct": self.loss_pct,
            "latency_ms": self.latency_ms,
            "signal_pct": self.signal_pct,
        }


def _non_negative(raw: Any, default: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


def _sub(post: float | None, pre: float | None) -> float | None:
    if post is None or pre is None:
        return None
    return post - pre


def delta(pre: CaptureSummary, post: CaptureSummary) -> DeltaReport:
    """Return ``post - pre`` for every numeric field, matched by target name."""
    signal_delta = SignalDelta(
        avg=_sub(post.signal.avg, pre.signal.avg),
        min=_sub(post.signal.min, pre.signal.min),
        max=_sub(post.signal.max, pre.signal.max),
    )

    per_target: dict[str, TargetDelta] = {}
    for target, pre_stats in pre.per_target.items():
        post_stats = post.per_target.get(target)
        if post_stats is None:
            continue
        per_target[target] = TargetDelta(
            loss_pct_delta=post_stats.loss_pct - pre_stats.loss_pct,
            avg_latency_delta=_sub(post_stats.avg_latency_ms, pre_stats.avg_latency_ms),
            longest_fail_streak_delta=post_stats.longest_fail_streak - pre_stats.longest_fail_streak,
        )

    return DeltaReport(signal_delta=signal_delta, per_target_delta=per_target)


def _axis_direction(value: float | None, threshold: float, *, higher_is_better: bool) -> int:
    """+1 favorable, -1 unfavorable, 0 within threshold or unknown."""
    if value is None or abs(value) <= threshold:
        return 0
    favorable = value > 0 if higher_is_better else value < 0
    return 1 if favorable else -1


def classify(report: DeltaReport, thresholds: VerdictThresholds | None = None) -> Verdict:
    thresholds = thresholds or VerdictThresholds()

    target_deltas = list(report.per_target_delta.values())
    loss_values = [d.loss_pct_delta for d in target_deltas]
    latency_values = [d.avg_latency_delta for d in target_deltas if d.avg_latency_delta is not None]

    loss_delta = fmean(loss_values) if loss_values else None
    latency_delta = fmean(latency_values) if latency_values else None

    directions = [
        _axis_direction(loss_delta, thresholds.loss_pct, higher_is_better=False),
        _axis_direction(latency_delta, thresholds.latency_ms, higher_is_better=False),
        _axis_direction(report.signal_delta.avg, thresholds.signal_pct, higher_is_better=True),
    ]
    logger.info(
        "Verdict inputs: loss_delta=%s latency_delta=%s signal_delta=%s directions=%s",
        loss_delta,
        latency_delta,
        report.signal_delta.avg,
        directions,
    )

    favorable = any(d > 0 for d in directions)
    unfavorable = any(d < 0 for d in directions)
    if favorable and unfavorable:
        return Verdict.MIXED
    if favorable:
        return Verdict.IMPROVED
    if unfavorable:
        return Verdict.WORSENED
    return Verdict.NO_CHANGE


def verdict(
    pre: CaptureSummary,
    post: CaptureSummary,
    thresholds: VerdictThresholds | None = None,
) -> Verdict:
    """Classify the change from ``pre`` to ``post``.

    Loss and latency deltas are averaged across the targets present in both
    summaries; each axis (loss, latency, signal average) is favorable,
    unfavorable or neutral depending on whether it moves past its threshold.
    Any mix of favorable and unfavorable axes yields ``MIXED``.
    """
    return classify(delta(pre, post), thresholds)
