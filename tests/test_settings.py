"""Tests for registry-backed settings."""

from __future__ import annotations

from pathlib import Path

from core.settings import GateSettings, GateSettingsManager

SUBKEY = r"Software\AppUpdateGate"


def _manager(make_winreg, values):
    winreg = make_winreg({(make_winreg.HKEY_LOCAL_MACHINE, SUBKEY): values})
    return GateSettingsManager(winreg_module=winreg), winreg


def test_defaults_without_registry() -> None:
    assert GateSettingsManager(winreg_module=None).read_settings() == GateSettings()


def test_defaults_when_key_missing(make_winreg) -> None:
    manager = GateSettingsManager(winreg_module=make_winreg())
    assert manager.read_settings() == GateSettings()


def test_reads_and_clamps_values(make_winreg) -> None:
    dword = make_winreg.REG_DWORD
    manager, winreg = _manager(
        make_winreg,
        {
            "CountdownSeconds": (5, dword),
            "ScheduleHour": (30, dword),
            "ScheduleMinute": (15, dword),
            "DistinctScheduledExitCode": (1, dword),
            "NotificationSink": ("Syncro", make_winreg.REG_SZ),
            "ProfilesPath": (r"C:\ProgramData\AppUpdateGate\profiles.json", make_winreg.REG_SZ),
        },
    )

    settings = manager.read_settings()

    assert settings.countdown_seconds == 30
    assert settings.schedule_hour == 23
    assert settings.schedule_minute == 15
    assert settings.distinct_scheduled_exit_code is True
    assert settings.notification_sink == "syncro"
    assert settings.profiles_path == Path(r"C:\ProgramData\AppUpdateGate\profiles.json")
    assert winreg.closed


def test_wrong_types_and_unknown_sink_fall_back(make_winreg) -> None:
    manager, _ = _manager(
        make_winreg,
        {
            "CountdownSeconds": ("600", make_winreg.REG_SZ),
            "NotificationSink": ("pager", make_winreg.REG_SZ),
            "ProfilesPath": (7, make_winreg.REG_DWORD),
        },
    )

    settings = manager.read_settings()

    assert settings.countdown_seconds == 300
    assert settings.notification_sink == "log"
    assert settings.profiles_path is None
