from __future__ import annotations

from datetime import datetime
import json

import pytest

import wifi_tuner.core.storage as storage
from wifi_tuner.core.errors import SnapshotError


def test_new_run_dir_is_unique(tmp_path) -> None:
    now = datetime(2026, 3, 1, 12, 0, 0)
    first = storage.new_run_dir(tmp_path, now=now)
    second = storage.new_run_dir(tmp_path, now=now)

    assert first.name == "20260301-120000"
    assert second.name == "20260301-120000-2"
    assert first.is_dir() and second.is_dir()


def test_write_json_atomic_replaces_target(tmp_path) -> None:
    path = tmp_path / "nested" / "backup.json"
    storage.write_json_atomic(path, {"a": 1})
    storage.write_json_atomic(path, {"a": 2})

    assert json.loads(path.read_text(encoding="utf-8")) == {"a": 2}
    assert [p.name for p in path.parent.iterdir()] == ["backup.json"]


def test_write_json_atomic_failure_cleans_up(tmp_path, monkeypatch) -> None:
    def boom(_src, _dst):  # noqa: ANN001
        raise OSError("disk full")

    monkeypatch.setattr(storage.os, "replace", boom)
    path = tmp_path / "backup.json"

    with pytest.raises(SnapshotError):
        storage.write_json_atomic(path, {"a": 1})
    assert list(tmp_path.iterdir()) == []


def test_load_json_returns_default_for_missing_or_corrupt(tmp_path) -> None:
    assert storage.load_json(tmp_path / "missing.json", {"x": 1}) == {"x": 1}
    corrupt = tmp_path / "bad.json"
    corrupt.write_text("{", encoding="utf-8")
    assert storage.load_json(corrupt, None) is None
