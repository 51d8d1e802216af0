from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from wifi_tuner.core.errors import LinkReadError
from wifi_tuner.core.link_state import IPState, LinkState
from wifi_tuner.core.models import SampleRow
from wifi_tuner.core.probe import ProbeResult
from wifi_tuner.core.sampler import CsvSampleSink, Sampler, SamplerState, read_rows


class _FakeClock:
    def __init__(self) -> None:
        self.now_s = 0.0

    def monotonic(self) -> float:
        return self.now_s

    def sleep(self, seconds: float) -> None:
        self.now_s += seconds

    def wall(self) -> datetime:
        return datetime(2026, 3, 1, 12, 0, 0) + timedelta(seconds=self.now_s)


class _Reader:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.link_reads = 0

    def read_link_state(self) -> LinkState:
        self.link_reads += 1
        if self.fail:
            raise LinkReadError("netsh failed")
        return LinkState(
            ssid="HomeNet",
            bssid="aa:bb:cc:dd:ee:ff",
            channel=36,
            radio_type="802.11ax",
            signal_percent=88,
            tx_rate_mbps=1200.0,
            rx_rate_mbps=960.0,
        )

    def read_ip_state(self) -> IPState:
        if self.fail:
            raise LinkReadError("no ip")
        return IPState(ipv4="192.168.1.20", gateway_v4="192.168.1.1")


class _ListSink:
    def __init__(self) -> None:
        self.rows: list[SampleRow] = []

    def append(self, row: SampleRow) -> None:
        self.rows.append(row)


def _sampler(reader, clock: _FakeClock, prober) -> Sampler:
    return Sampler(
        reader,
        prober=prober,
        probe_timeout_s=0.5,
        clock=clock.monotonic,
        now=clock.wall,
        sleep=clock.sleep,
    )


def test_sampler_writes_row_per_tick_and_target_even_when_probes_fail() -> None:
    clock = _FakeClock()
    sink = _ListSink()
    sampler = _sampler(_Reader(), clock, lambda target, timeout: ProbeResult(False, None, "timeout"))

    assert sampler.state is SamplerState.IDLE
    count = sampler.start(sink, 1.0, 5.0, ["192.168.1.1", "8.8.8.8"])

    assert count == 10
    assert len(sink.rows) == 10
    assert sampler.ticks == 5
    assert sampler.state is SamplerState.COMPLETE
    assert all(row.probe_ok is False and row.probe_latency_ms is None for row in sink.rows)
    assert [row.probe_target for row in sink.rows[:2]] == ["192.168.1.1", "8.8.8.8"]


def test_sampler_reads_link_once_per_tick() -> None:
    clock = _FakeClock()
    reader = _Reader()
    calls: list[tuple[str, float]] = []

    def prober(target: str, timeout: float) -> ProbeResult:
        calls.append((target, timeout))
        return ProbeResult(True, 12.5)

    sink = _ListSink()
    _sampler(reader, clock, prober).start(sink, 1.0, 3.0, ["a", "b", "c"])

    assert reader.link_reads == 3
    assert len(calls) == 9
    assert all(timeout == 0.5 for _, timeout in calls)
    tick_one = sink.rows[:3]
    assert len({row.timestamp for row in tick_one}) == 1
    assert tick_one[0].signal_percent == 88
    assert tick_one[0].probe_latency_ms == 12.5
    assert tick_one[0].gateway_v4 == "192.168.1.1"


def test_sampler_records_nulls_when_link_read_fails() -> None:
    clock = _FakeClock()
    sink = _ListSink()
    _sampler(_Reader(fail=True), clock, lambda t, s: ProbeResult(True, 3.0)).start(
        sink, 1.0, 2.0, ["a"]
    )

    assert len(sink.rows) == 2
    row = sink.rows[0]
    assert row.ssid is None
    assert row.signal_percent is None
    assert row.ipv4 is None
    assert row.probe_ok is True


def test_sampler_cannot_be_restarted() -> None:
    clock = _FakeClock()
    sampler = _sampler(_Reader(), clock, lambda t, s: ProbeResult(True, 1.0))
    sampler.start(_ListSink(), 1.0, 1.0, ["a"])

    with pytest.raises(RuntimeError):
        sampler.start(_ListSink(), 1.0, 1.0, ["a"])


def test_csv_sink_flushes_rows_and_reads_back(tmp_path) -> None:
    clock = _FakeClock()
    path = tmp_path / "pre.csv"
    results = iter([ProbeResult(True, 10.0), ProbeResult(False, None, "timeout")] * 2)

    with CsvSampleSink(path) as sink:
        _sampler(_Reader(), clock, lambda t, s: next(results)).start(sink, 1.0, 2.0, ["a", "b"])
        assert len(path.read_text(encoding="utf-8").splitlines()) == 5

    rows = read_rows(path)
    assert len(rows) == 4
    assert rows[0].probe_ok is True
    assert rows[0].probe_latency_ms == 10.0
    assert rows[0].channel == 36
    assert rows[0].tx_rate_mbps == 1200.0
    assert rows[1].probe_ok is False
    assert rows[1].probe_latency_ms is None
    assert rows[1].timestamp == datetime(2026, 3, 1, 12, 0, 0)
    assert rows[2].timestamp == datetime(2026, 3, 1, 12, 0, 1)
    assert [row.tick for row in rows] == [0, 0, 1, 1]


def test_read_rows_skips_malformed_lines(tmp_path) -> None:
    path = tmp_path / "rows.csv"
    header = ",".join(SampleRow.field_names())
    good = "2026-03-01T12:00:00,,,,,,,,,,a,true,4.5"
    bad = "not-a-time,,,,,,,,,,a,true,4.5"
    path.write_text(f"{header}\n{good}\n{bad}\n", encoding="utf-8")

    rows = read_rows(path)
    assert len(rows) == 1
    assert rows[0].ssid is None
    assert rows[0].probe_latency_ms == 4.5
