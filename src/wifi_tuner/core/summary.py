"""Reduce a monitoring pass into summary statistics and chart series."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from statistics import fmean

from wifi_tuner.core.models import (
    CaptureSummary,
    ChartPoint,
    SampleRow,
    SignalStats,
    TargetStats,
)


def _is_contiguous(previous: SampleRow, row: SampleRow) -> bool:
    if previous.tick is None or row.tick is None:
        return True
    return row.tick == previous.tick + 1


def _longest_fail_streak(rows: Sequence[SampleRow]) -> int:
    longest = 0
    current = 0
    previous: SampleRow | None = None
    for row in rows:
        if previous is not None and not _is_contiguous(previous, row):
            current = 0
        if row.probe_ok:
            current = 0
        else:
            current += 1
            longest = max(longest, current)
        previous = row
    return longest


def _target_stats(rows: Sequence[SampleRow]) -> TargetStats:
    failures = sum(1 for row in rows if not row.probe_ok)
    latencies = [
        row.probe_latency_ms
        for row in rows
        if row.probe_ok and row.probe_latency_ms is not None
    ]
    return TargetStats(
        loss_pct=100.0 * failures / len(rows),
        avg_latency_ms=fmean(latencies) if latencies else None,
        longest_fail_streak=_longest_fail_streak(rows),
    )


def summarize(rows: Iterable[SampleRow]) -> CaptureSummary:
    """Summarize a completed row sequence.

    Rows are taken in tick order. Failure streaks follow the sampler's tick
    index: a target missing from a tick ends its streak. Rows without a tick
    index are treated as contiguous.
    """
    ordered = sorted(
        rows,
        key=lambda row: (row.timestamp, row.tick if row.tick is not None else -1),
    )
    if not ordered:
        return CaptureSummary(
            start=None,
            end=None,
            sample_count=0,
            duration_sec=0.0,
            signal=SignalStats(avg=None, min=None, max=None),
        )

    start = ordered[0].timestamp
    end = ordered[-1].timestamp

    signals = [row.signal_percent for row in ordered if row.signal_percent is not None]
    signal = SignalStats(
        avg=fmean(signals) if signals else None,
        min=min(signals) if signals else None,
        max=max(signals) if signals else None,
    )

    by_target: dict[str, list[SampleRow]] = {}
    for row in ordered:
        by_target.setdefault(row.probe_target, []).append(row)

    return CaptureSummary(
        start=start,
        end=end,
        sample_count=len(ordered),
        duration_sec=(end - start).total_seconds(),
        signal=signal,
        per_target={
            target: _target_stats(target_rows)
            for target, target_rows in by_target.items()
        },
    )


class ChartSeries:
    """Restartable per-tick projection of a row sequence for plotting.

    Rows sharing a timestamp belong to one tick; each iteration yields one
    ``ChartPoint`` per tick in order without touching the rows.
    """

    def __init__(self, rows: Sequence[SampleRow]) -> None:
        self._rows = rows

    def __iter__(self) -> Iterator[ChartPoint]:
        current: ChartPoint | None = None
        for row in self._rows:
            if current is None or row.timestamp != current.timestamp:
                if current is not None:
                    yield current
                current = ChartPoint(
                    timestamp=row.timestamp,
                    signal_percent=row.signal_percent,
                    per_target_latency={},
                )
            current.per_target_latency[row.probe_target] = (
                row.probe_latency_ms if row.probe_ok else None
            )
        if current is not None:
            yield current


def chart_series(rows: Sequence[SampleRow]) -> ChartSeries:
    return ChartSeries(rows)
