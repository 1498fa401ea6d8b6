"""
Registry-backed configuration for the update gate runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from app_update_gate.app_update_gate import logger as app_logger

try:
    import winreg
except ModuleNotFoundError:  # pragma: no cover - non-Windows environments
    winreg = None

_LOGGER = app_logger.get_logger()

_BASE_SUBKEY = r"Software\AppUpdateGate"
DEFAULT_COUNTDOWN_SECONDS = 300
_MIN_COUNTDOWN = 30
_MAX_COUNTDOWN = 3600
NOTIFICATION_SINKS = ("log", "syncro")


@dataclass(eq=True)
class GateSettings:
    countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS
    schedule_hour: int = 19
    schedule_minute: int = 0
    distinct_scheduled_exit_code: bool = False
    notification_sink: str = "log"
    profiles_path: Optional[Path] = None


class GateSettingsManager:
    """Loads machine policy from HKLM and clamps invalid data."""

    def __init__(self, *, hive: Optional[int] = None, winreg_module=winreg) -> None:
        self._winreg = winreg_module
        if hive is None and winreg_module is not None:
            hive = winreg_module.HKEY_LOCAL_MACHINE
        self.hive = hive

    def read_settings(self) -> GateSettings:
        if self._winreg is None:
            return GateSettings()
        key = self._open_key()
        if key is None:
            return GateSettings()

        try:
            profiles_path = self._read_string(key, "ProfilesPath")
            return GateSettings(
                countdown_seconds=self._read_clamped(
                    key, "CountdownSeconds", DEFAULT_COUNTDOWN_SECONDS, _MIN_COUNTDOWN, _MAX_COUNTDOWN
                ),
                schedule_hour=self._read_clamped(key, "ScheduleHour", 19, 0, 23),
                schedule_minute=self._read_clamped(key, "ScheduleMinute", 0, 0, 59),
                distinct_scheduled_exit_code=self._read_bool(key, "DistinctScheduledExitCode", False),
                notification_sink=self._read_sink(key),
                profiles_path=Path(profiles_path) if profiles_path else None,
            )
        finally:
            self._winreg.CloseKey(key)

    def _open_key(self):
        try:
            return self._winreg.OpenKey(self.hive, _BASE_SUBKEY, 0, self._winreg.KEY_READ)
        except FileNotFoundError:
            return None

    def _read_bool(self, key, name: str, default: bool) -> bool:
        raw = self._read_dword(key, name)
        if raw is None:
            return default
        return bool(raw)

    def _read_clamped(self, key, name: str, default: int, minimum: int, maximum: int) -> int:
        raw = self._read_dword(key, name)
        if raw is None:
            return default
        if raw < minimum or raw > maximum:
            _LOGGER.warning(
                "Invalid {} value {} found in registry. Clamping to {}..{}.",
                name,
                raw,
                minimum,
                maximum,
            )
        return max(minimum, min(maximum, raw))

    def _read_sink(self, key) -> str:
        raw = self._read_string(key, "NotificationSink")
        if raw is None:
            return "log"
        value = raw.strip().lower()
        if value not in NOTIFICATION_SINKS:
            _LOGGER.warning("Unknown notification sink '{}' in registry; using log.", raw)
            return "log"
        return value

    def _read_dword(self, key, name: str) -> Optional[int]:
        try:
            value, value_type = self._winreg.QueryValueEx(key, name)
        except FileNotFoundError:
            return None
        if value_type != self._winreg.REG_DWORD:
            _LOGGER.warning("Registry value {} has unexpected type {}.", name, value_type)
            return None
        return int(value)

    def _read_string(self, key, name: str) -> Optional[str]:
        try:
            value, value_type = self._winreg.QueryValueEx(key, name)
        except FileNotFoundError:
            return None
        if value_type not in {self._winreg.REG_SZ, self._winreg.REG_EXPAND_SZ}:
            _LOGGER.warning("Registry value {} has unexpected type {}.", name, value_type)
            return None
        return str(value).strip() or None
