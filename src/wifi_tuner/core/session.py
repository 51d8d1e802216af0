"""Before/after tuning session: backup, measure, apply, measure, compare."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Final

from wifi_tuner.core.comparison import delta, classify
from wifi_tuner.core.config import TunerSettings
from wifi_tuner.core.errors import AppError
from wifi_tuner.core.models import CaptureSummary, DeltaReport, Verdict
from wifi_tuner.core.sampler import CsvSampleSink, LinkReader, Sampler, read_rows
from wifi_tuner.core.settings_manager import (
    BACKUP_FILE,
    AdapterSettingsManager,
    ChangeEntry,
    load_backup,
    save_backup,
)
from wifi_tuner.core.storage import new_run_dir, save_json
from wifi_tuner.core.summary import summarize

logger = logging.getLogger(__name__)

PRE_ROWS_FILE: Final[str] = "pre.csv"
POST_ROWS_FILE: Final[str] = "post.csv"
RESULT_FILE: Final[str] = "result.json"


@dataclass(slots=True)
class SessionResult:
    run_dir: Path
    targets: tuple[str, ...] = ()
    backup_path: Path | None = None
    changes: list[ChangeEntry] = field(default_factory=list)
    pre: CaptureSummary | None = None
    post: CaptureSummary | None = None
    delta: DeltaReport | None = None
    verdict: Verdict | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "targets": list(self.targets),
            "backup": str(self.backup_path) if self.backup_path else None,
            "changes": [
                {
                    "property": c.property_name,
                    "previous": c.previous_value,
                    "new": c.new_value,
                }
                for c in self.changes
            ],
            "pre": self.pre.to_dict() if self.pre else None,
            "post": self.post.to_dict() if self.post else None,
            "delta": self.delta.to_dict() if self.delta else None,
            "verdict": str(self.verdict) if self.verdict else None,
            "errors": list(self.errors),
        }


def capture(sampler: Sampler, settings: TunerSettings, path: Path) -> CaptureSummary:
    """Run one sampling pass into ``path`` and summarize what was written."""
    with CsvSampleSink(path) as sink:
        sampler.start(sink, settings.interval_s, settings.duration_s, settings.targets)
    return summarize(read_rows(path))


def _record_failure(result: SessionResult, step: str, exc: AppError) -> None:
    logger.error("%s failed: %s", step, exc)
    result.errors.append(f"{step}: {exc.user_message}")


def run_session(
    manager: AdapterSettingsManager,
    reader: LinkReader,
    settings: TunerSettings,
    run_dir: Path | None = None,
    *,
    sampler_factory: Callable[[], Sampler] | None = None,
    apply: bool = True,
) -> SessionResult:
    """Measure, apply the optimization profile, measure again, compare.

    A failed step stops the session but everything written so far (backup,
    pre-change rows, partial result) stays on disk.
    """
    settings = settings.validate()
    run_dir = run_dir or new_run_dir()
    make_sampler = sampler_factory or (
        lambda: Sampler(reader, probe_timeout_s=settings.probe_timeout_s)
    )
    result = SessionResult(run_dir=run_dir)

    try:
        try:
            snapshot = manager.backup()
            result.backup_path = save_backup(snapshot, run_dir / BACKUP_FILE)
        except AppError as exc:
            _record_failure(result, "backup", exc)
            return result

        try:
            gateway = reader.read_ip_state().gateway_v4
        except AppError:
            logger.warning("Gateway unknown; using configured targets", exc_info=True)
            gateway = None
        settings = settings.with_gateway(gateway)
        result.targets = settings.targets

        try:
            result.pre = capture(make_sampler(), settings, run_dir / PRE_ROWS_FILE)
        except AppError as exc:
            _record_failure(result, "pre-change capture", exc)
            return result

        if not apply:
            logger.info("Apply disabled; baseline capture only")
            return result

        try:
            result.changes = manager.apply_profile(
                force_ax=settings.force_ax,
                original=snapshot.properties,
            )
        except AppError as exc:
            _record_failure(result, "apply", exc)
            return result

        try:
            result.post = capture(make_sampler(), settings, run_dir / POST_ROWS_FILE)
        except AppError as exc:
            _record_failure(result, "post-change capture", exc)
            return result

        result.delta = delta(result.pre, result.post)
        result.verdict = classify(result.delta, settings.thresholds)
        logger.info("Session verdict: %s", result.verdict)
        return result
    finally:
        save_json(run_dir / RESULT_FILE, result.to_dict())


def restore_from_file(manager: AdapterSettingsManager, path: Path) -> None:
    snapshot = load_backup(path)
    if snapshot.adapter and snapshot.adapter != manager.store.adapter_name:
        logger.warning(
            "Backup was taken on adapter %r, restoring onto %r",
            snapshot.adapter,
            manager.store.adapter_name,
        )
    manager.restore(snapshot.properties)
