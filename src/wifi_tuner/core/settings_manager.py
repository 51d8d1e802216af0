"""Transactional changes to adapter advanced properties.

A profile is applied one property at a time. Every write that actually
changes a value is appended to a change log; if any later step fails the log
is replayed in reverse to put the touched properties back, and the original
error is re-raised. The adapter is restarted only after a batch that went
through completely.

Restoring from a snapshot uses the same resolve/write primitive without a
change log: each property stands alone and a failed write stops the restore
where it is.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
import re
import time
from types import MappingProxyType
from typing import Any, Final

from wifi_tuner.core.adapter import PropertyStore, is_elevated
from wifi_tuner.core.config import DEFAULT_RESTART_DELAY_S, TunerSettings
from wifi_tuner.core.errors import AppError, PrivilegeRequiredError, SnapshotError
from wifi_tuner.core.storage import load_json, write_json_atomic
from wifi_tuner.core.tuning_profile import DesiredSetting, optimization_profile

logger = logging.getLogger(__name__)

BACKUP_FILE: Final[str] = "backup.json"
SNAPSHOT_VERSION: Final[int] = 1

_NON_ALNUM = re.compile(r"[^0-9a-z]")
_TOKEN = re.compile(r"[0-9a-z]+")


@dataclass(frozen=True, slots=True)
class PropertySnapshot:
    adapter: str
    captured_at: str
    properties: Mapping[str, str]
    power_management: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        object.__setattr__(self, "power_management", MappingProxyType(dict(self.power_management)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "adapter": self.adapter,
            "captured_at": self.captured_at,
            "properties": dict(self.properties),
            "power_management": dict(self.power_management),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PropertySnapshot":
        if not isinstance(data, dict) or not isinstance(data.get("properties"), dict):
            raise SnapshotError(
                "Snapshot payload is invalid",
                user_message="The adapter backup file is corrupt.",
            )
        power = data.get("power_management")
        return cls(
            adapter=str(data.get("adapter") or ""),
            captured_at=str(data.get("captured_at") or ""),
            properties={
                str(k): "" if v is None else str(v) for k, v in data["properties"].items()
            },
            power_management=power if isinstance(power, dict) else {},
        )


@dataclass(frozen=True, slots=True)
class ChangeEntry:
    property_name: str
    previous_value: str
    new_value: str


def normalize_value(text: str) -> str:
    return _NON_ALNUM.sub("", (text or "").lower())


def _token_pattern(desired: str) -> re.Pattern[str] | None:
    tokens = _TOKEN.findall((desired or "").lower())
    if not tokens:
        return None
    return re.compile(".*?".join(re.escape(token) for token in tokens))


def resolve_value(display_name: str, desired: str, valid_values: Sequence[str]) -> str | None:
    """Pick the driver value matching a logical ``desired`` value.

    Both sides are lower-cased and stripped of non-alphanumerics. Precedence:
    exact match, then a candidate containing the desired text, then a
    candidate containing the desired words in order. Returns ``None`` when
    nothing matches.
    """
    wanted = normalize_value(desired)
    if not wanted:
        return None
    normalized = [(candidate, normalize_value(candidate)) for candidate in valid_values]

    for candidate, norm in normalized:
        if norm == wanted:
            return candidate
    for candidate, norm in normalized:
        if wanted in norm:
            return candidate
    pattern = _token_pattern(desired)
    if pattern is not None:
        for candidate in valid_values:
            if pattern.search(candidate.lower()):
                return candidate

    logger.info(
        "No value of %r matches %r (valid: %s)",
        display_name,
        desired,
        ", ".join(valid_values) or "<none>",
    )
    return None


def backup(store: PropertyStore, *, now: Callable[[], datetime] | None = None) -> PropertySnapshot:
    """Capture every advanced property value plus the power-management flags."""
    properties: dict[str, str] = {}
    for prop in store.list_properties():
        if prop.display_name in properties:
            logger.warning("Duplicate property name in adapter listing: %s", prop.display_name)
            continue
        properties[prop.display_name] = prop.value

    try:
        power = store.read_power_flags()
    except AppError:
        logger.warning("Power management flags unavailable for %s", store.adapter_name, exc_info=True)
        power = {}

    captured = (now or (lambda: datetime.now(timezone.utc)))()
    logger.info(
        "Backed up %d properties and %d power flags for %s",
        len(properties),
        len(power),
        store.adapter_name,
    )
    return PropertySnapshot(
        adapter=store.adapter_name,
        captured_at=captured.replace(microsecond=0).isoformat(),
        properties=properties,
        power_management=power,
    )


def save_backup(snapshot: PropertySnapshot, path: Path) -> Path:
    write_json_atomic(path, snapshot.to_dict())
    logger.info("Saved adapter backup: %s", path)
    return path


def load_backup(path: Path) -> PropertySnapshot:
    if not path.exists():
        raise SnapshotError(
            f"Backup file not found: {path}",
            user_message="No adapter backup found to restore.",
        )
    return PropertySnapshot.from_dict(load_json(path, None))


def apply_one(
    store: PropertyStore,
    display_name: str,
    desired: str,
    change_log: list[ChangeEntry] | None = None,
    original: Mapping[str, str] | None = None,
) -> ChangeEntry | None:
    """Set one property to the value matching ``desired``.

    Missing properties and unmatched values are skipped. A property already
    at the resolved value is left untouched. Write failures propagate.
    """
    prop = store.read_property(display_name)
    if prop is None:
        logger.info("Property not found on %s: %s (skipped)", store.adapter_name, display_name)
        return None

    target = resolve_value(display_name, desired, prop.valid_values)
    if target is None:
        logger.warning("No matching value for %s=%r (skipped)", display_name, desired)
        return None

    if target == prop.value:
        logger.info("Already set: %s=%r", display_name, target)
        return None

    previous = prop.value
    if original is not None and display_name in original:
        previous = original[display_name]

    logger.info("Setting %s: %r -> %r", display_name, prop.value, target)
    store.write_property(display_name, target)

    entry = ChangeEntry(property_name=display_name, previous_value=previous, new_value=target)
    if change_log is not None:
        change_log.append(entry)
    return entry


def rollback(store: PropertyStore, change_log: Sequence[ChangeEntry]) -> list[ChangeEntry]:
    """Write back every previous value in reverse order; return the failures."""
    failed: list[ChangeEntry] = []
    for entry in reversed(change_log):
        logger.warning(
            "Rollback: %s %r -> %r",
            entry.property_name,
            entry.new_value,
            entry.previous_value,
        )
        try:
            store.write_property(entry.property_name, entry.previous_value)
        except AppError:
            logger.exception("Rollback write failed for %s", entry.property_name)
            failed.append(entry)
    return failed


class AdapterSettingsManager:
    def __init__(
        self,
        store: PropertyStore,
        *,
        privilege_check: Callable[[], bool] = is_elevated,
        sleep: Callable[[float], None] = time.sleep,
        restart_delay_s: float = DEFAULT_RESTART_DELAY_S,
    ) -> None:
        self._store = store
        self._privilege_check = privilege_check
        self._sleep = sleep
        self._restart_delay_s = restart_delay_s

    @classmethod
    def from_settings(
        cls,
        store: PropertyStore,
        settings: TunerSettings,
        **kwargs: Any,
    ) -> "AdapterSettingsManager":
        return cls(store, restart_delay_s=settings.restart_delay_s, **kwargs)

    @property
    def store(self) -> PropertyStore:
        return self._store

    def backup(self) -> PropertySnapshot:
        return backup(self._store)

    def _require_privilege(self, action: str) -> None:
        if not self._privilege_check():
            logger.error("Refusing to %s without administrator rights", action)
            raise PrivilegeRequiredError(
                f"Elevated privileges required to {action}",
                user_message="Run as administrator to change adapter settings.",
            )

    def _available_names(self) -> set[str] | None:
        try:
            return {prop.display_name for prop in self._store.list_properties()}
        except AppError:
            logger.warning("Could not list adapter properties; trying first names", exc_info=True)
            return None

    @staticmethod
    def _pick_name(setting: DesiredSetting, available: set[str] | None) -> str:
        if available is not None:
            for name in setting.display_names:
                if name in available:
                    return name
        return setting.display_names[0]

    def apply_profile(
        self,
        profile: Sequence[DesiredSetting] | None = None,
        *,
        force_ax: bool = False,
        original: Mapping[str, str] | None = None,
    ) -> list[ChangeEntry]:
        """Apply ``profile`` as one batch; roll back everything on failure."""
        self._require_privilege("apply the optimization profile")
        profile = list(profile) if profile is not None else optimization_profile(force_ax)
        available = self._available_names()

        change_log: list[ChangeEntry] = []
        try:
            for setting in profile:
                name = self._pick_name(setting, available)
                apply_one(self._store, name, setting.desired_value, change_log, original)
        except Exception:
            logger.exception(
                "Profile apply failed after %d change(s); rolling back", len(change_log)
            )
            failed = rollback(self._store, change_log)
            if failed:
                logger.error(
                    "Rollback incomplete; properties left changed: %s",
                    ", ".join(entry.property_name for entry in failed),
                )
            raise

        logger.info("Profile applied: %d change(s)", len(change_log))
        self.restart_adapter()
        return change_log

    def restore(self, properties: Mapping[str, str]) -> None:
        """Write back an external property map; no rollback on failure."""
        self._require_privilege("restore adapter settings")
        applied = 0
        for name, value in properties.items():
            if apply_one(self._store, name, value) is not None:
                applied += 1
        logger.info("Restore wrote %d of %d properties", applied, len(properties))
        self.restart_adapter()

    def restart_adapter(self) -> None:
        logger.info("Restarting adapter %s", self._store.adapter_name)
        self._store.set_enabled(False)
        self._sleep(self._restart_delay_s)
        self._store.set_enabled(True)
        self._sleep(self._restart_delay_s)
