"""Storage paths and JSON helpers."""

from __future__ import annotations

from datetime import datetime
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any

from platformdirs import user_config_path, user_state_path

from wifi_tuner.core.errors import SnapshotError

APP_NAME = "wifi-tuner"

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    return Path(user_config_path(APP_NAME))


def get_state_dir() -> Path:
    return Path(user_state_path(APP_NAME))


def get_logs_dir() -> Path:
    return get_state_dir() / "logs"


def get_runs_dir() -> Path:
    return get_state_dir() / "runs"


def new_run_dir(base: Path | None = None, *, now: datetime | None = None) -> Path:
    """Create a fresh timestamped directory for one before/after run."""
    base = base or get_runs_dir()
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    path = base / stamp
    suffix = 1
    while path.exists():
        suffix += 1
        path = base / f"{stamp}-{suffix}"
    path.mkdir(parents=True)
    return path


def load_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError:
        return default


def save_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, sort_keys=True)


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    tmp_handle = None
    try:
        tmp_handle = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp_path = Path(tmp_handle.name)
        json.dump(payload, tmp_handle, indent=2, sort_keys=True)
        tmp_handle.flush()
        os.fsync(tmp_handle.fileno())
        tmp_handle.close()
        tmp_handle = None
        os.replace(tmp_path, path)
    except Exception as exc:
        logger.exception("Failed to write JSON atomically: target=%s temp=%s", path, tmp_path)
        raise SnapshotError(
            f"Failed to write {path}: {exc}",
            user_message="Failed to save adapter snapshot. Check file permissions.",
        ) from exc
    finally:
        if tmp_handle is not None:
            try:
                tmp_handle.close()
            except OSError:
                logger.exception("Failed to close temporary file handle")
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.exception("Failed to remove temporary file: %s", tmp_path)
