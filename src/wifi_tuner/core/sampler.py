"""Fixed-cadence link and reachability sampler.

Each tick reads the link and IPv4 state once, then probes every target once,
writing one row per target straight to the sink. The loop is synchronous:
ticks never overlap and the calling thread is blocked for the whole run.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
import csv
from datetime import datetime
from enum import Enum
import logging
from pathlib import Path
import time
from typing import IO, Any, Protocol

from wifi_tuner.core.errors import AppError, SampleSinkError
from wifi_tuner.core.link_state import IPState, LinkState
from wifi_tuner.core.models import SampleRow
from wifi_tuner.core.probe import ProbeResult, ping_probe

logger = logging.getLogger(__name__)

Prober = Callable[[str, float], ProbeResult]


class LinkReader(Protocol):
    def read_link_state(self) -> LinkState: ...

    def read_ip_state(self) -> IPState: ...


class SampleSink(Protocol):
    def append(self, row: SampleRow) -> None: ...


class SamplerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _parse_optional(raw: str | None, cast: Callable[[str], Any]) -> Any:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError:
        return None


def _row_from_record(record: dict[str, str]) -> SampleRow:
    return SampleRow(
        timestamp=datetime.fromisoformat(record["timestamp"]),
        ssid=_parse_optional(record.get("ssid"), str),
        bssid=_parse_optional(record.get("bssid"), str),
        channel=_parse_optional(record.get("channel"), int),
        radio_type=_parse_optional(record.get("radio_type"), str),
        signal_percent=_parse_optional(record.get("signal_percent"), int),
        tx_rate_mbps=_parse_optional(record.get("tx_rate_mbps"), float),
        rx_rate_mbps=_parse_optional(record.get("rx_rate_mbps"), float),
        ipv4=_parse_optional(record.get("ipv4"), str),
        gateway_v4=_parse_optional(record.get("gateway_v4"), str),
        probe_target=record["probe_target"],
        probe_ok=(record.get("probe_ok") or "").strip().lower() == "true",
        probe_latency_ms=_parse_optional(record.get("probe_latency_ms"), float),
        tick=_parse_optional(record.get("tick"), int),
    )


class CsvSampleSink:
    """Append-only CSV sink; every row is flushed as soon as it is written."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle: IO[str] | None = None
        self._writer: Any = None
        self.rows_written = 0

    def open(self) -> "CsvSampleSink":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            logger.exception("Failed to open sample file: %s", self.path)
            raise SampleSinkError(
                f"Failed to open {self.path}: {exc}",
                user_message="Could not create the sample file.",
            ) from exc
        self._writer = csv.writer(self._handle)
        self._writer.writerow(SampleRow.field_names())
        self._handle.flush()
        return self

    def append(self, row: SampleRow) -> None:
        if self._handle is None:
            raise SampleSinkError("Sample sink is not open")
        self._writer.writerow([_format_cell(getattr(row, name)) for name in SampleRow.field_names()])
        self._handle.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "CsvSampleSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def iter_rows(path: Path) -> Iterator[SampleRow]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        for record in csv.DictReader(handle):
            try:
                yield _row_from_record(record)
            except (KeyError, ValueError):
                logger.warning("Skipping malformed sample row in %s: %r", path, record)


def read_rows(path: Path) -> list[SampleRow]:
    return list(iter_rows(path))


class Sampler:
    def __init__(
        self,
        reader: LinkReader,
        *,
        prober: Prober = ping_probe,
        probe_timeout_s: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now().astimezone(),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._reader = reader
        self._prober = prober
        self._probe_timeout_s = probe_timeout_s
        self._clock = clock
        self._now = now
        self._sleep = sleep
        self._state = SamplerState.IDLE
        self.ticks = 0
        self.rows_written = 0

    @property
    def state(self) -> SamplerState:
        return self._state

    def start(
        self,
        sink: SampleSink,
        interval_s: float,
        duration_s: float,
        targets: Sequence[str],
    ) -> int:
        """Sample until ``duration_s`` has elapsed; return the rows written."""
        if self._state is not SamplerState.IDLE:
            raise RuntimeError(f"Sampler already used (state={self._state.value})")
        if interval_s <= 0 or duration_s <= 0:
            raise ValueError("interval_s and duration_s must be positive")

        logger.info(
            "Sampling %d target(s) every %.1fs for %.0fs: %s",
            len(targets),
            interval_s,
            duration_s,
            ", ".join(targets),
        )
        self._state = SamplerState.RUNNING
        started = self._clock()
        try:
            while self._clock() - started < duration_s:
                self._tick(sink, targets)
                self._sleep(interval_s)
        finally:
            self._state = SamplerState.COMPLETE
            logger.info("Sampling finished: %d tick(s), %d row(s)", self.ticks, self.rows_written)
        return self.rows_written

    def _read_link(self) -> LinkState:
        try:
            return self._reader.read_link_state()
        except AppError:
            logger.warning("Link state unavailable this tick", exc_info=True)
            return LinkState()

    def _read_ip(self) -> IPState:
        try:
            return self._reader.read_ip_state()
        except AppError:
            logger.warning("IP state unavailable this tick", exc_info=True)
            return IPState()

    def _probe(self, target: str) -> ProbeResult:
        try:
            return self._prober(target, self._probe_timeout_s)
        except AppError as exc:
            logger.warning("Probe to %s failed: %s", target, exc)
            return ProbeResult(ok=False, latency_ms=None, error=str(exc))

    def _tick(self, sink: SampleSink, targets: Sequence[str]) -> None:
        timestamp = self._now()
        link = self._read_link()
        ip = self._read_ip()
        for target in targets:
            result = self._probe(target)
            sink.append(
                SampleRow(
                    timestamp=timestamp,
                    ssid=link.ssid,
                    bssid=link.bssid,
                    channel=link.channel,
                    radio_type=link.radio_type,
                    signal_percent=link.signal_percent,
                    tx_rate_mbps=link.tx_rate_mbps,
                    rx_rate_mbps=link.rx_rate_mbps,
                    ipv4=ip.ipv4,
                    gateway_v4=ip.gateway_v4,
                    probe_target=target,
                    probe_ok=result.ok,
                    probe_latency_ms=result.latency_ms if result.ok else None,
                    tick=self.ticks,
                )
            )
            self.rows_written += 1
        self.ticks += 1
