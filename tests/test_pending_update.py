"""Tests for the pending-update evaluator."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from core.pending_update import compare_versions, evaluate, read_live_version
from shared.app_profile import AppProfile, PendingCheckKind
from shared.outcomes import PendingState


def _unreachable(*_args, **_kwargs):
    raise AssertionError("environment must not be inspected")


@pytest.mark.parametrize("kind", list(PendingCheckKind))
def test_override_is_pending_without_inspection(path_profile: AppProfile, kind: PendingCheckKind) -> None:
    profile = replace(path_profile, pending_check_kind=kind, pending_check_parameter="99.0")
    state = evaluate(profile, True, version_provider=_unreachable, path_exists=_unreachable)
    assert state is PendingState.PENDING


def test_missing_profile_is_never_pending() -> None:
    assert evaluate(None, False) is PendingState.NOT_PENDING
    assert evaluate(None, True) is PendingState.NOT_PENDING


def test_path_exists_follows_marker(path_profile: AppProfile) -> None:
    assert evaluate(path_profile, False) is PendingState.NOT_PENDING

    Path(path_profile.pending_check_parameter).write_text("", encoding="utf-8")

    assert evaluate(path_profile, False) is PendingState.PENDING


def test_path_check_error_counts_as_absent(path_profile: AppProfile) -> None:
    def broken(_value: str) -> bool:
        raise PermissionError("denied")

    assert evaluate(path_profile, False, path_exists=broken) is PendingState.NOT_PENDING


@pytest.mark.parametrize(
    ("live", "expected"),
    [
        ("16.0.17000.20000", PendingState.PENDING),
        ("16.0.17928.20155", PendingState.PENDING),
        ("16.0.17928.20156", PendingState.NOT_PENDING),
        ("16.0.17928.20157", PendingState.NOT_PENDING),
        ("16.1", PendingState.NOT_PENDING),
    ],
)
def test_version_below_is_strict(version_profile: AppProfile, live: str, expected: PendingState) -> None:
    assert evaluate(version_profile, False, version_provider=lambda _source: live) is expected


def test_unknown_live_version_is_not_pending(version_profile: AppProfile) -> None:
    assert evaluate(version_profile, False, version_provider=lambda _source: None) is PendingState.NOT_PENDING


def test_version_provider_receives_profile_source(version_profile: AppProfile) -> None:
    seen = []
    profile = replace(version_profile, version_source="registry:HKLM\\SOFTWARE\\Vendor\\Version")

    evaluate(profile, False, version_provider=lambda source: seen.append(source) or "1.0")

    assert seen == ["registry:HKLM\\SOFTWARE\\Vendor\\Version"]


def test_compare_versions_handles_trailing_zeros_and_prefix() -> None:
    assert compare_versions("10.0.26100", "10.0.26100.0") == 0
    assert compare_versions("v2.0", "1.9.9") == 1
    assert compare_versions("1.0", "1.0.1") == -1


def test_compare_versions_falls_back_to_numeric_parts() -> None:
    assert compare_versions("build 22631 rev 7", "build 22631 rev 10") == -1
    assert compare_versions("build 22631 rev 7", "build 22631 rev 7") == 0


def test_read_live_version_from_registry_value(make_winreg) -> None:
    winreg = make_winreg(
        {
            (make_winreg.HKEY_LOCAL_MACHINE, r"SOFTWARE\Microsoft\Office\ClickToRun\Configuration"): {
                "VersionToReport": ("16.0.17830.20138", make_winreg.REG_SZ),
            }
        }
    )

    value = read_live_version(
        r"registry:HKLM\SOFTWARE\Microsoft\Office\ClickToRun\Configuration\VersionToReport",
        winreg_module=winreg,
    )

    assert value == "16.0.17830.20138"
    assert winreg.closed


def test_read_live_version_missing_registry_value(make_winreg) -> None:
    value = read_live_version(r"registry:HKLM\SOFTWARE\Missing\Version", winreg_module=make_winreg())
    assert value is None


def test_read_os_version_from_registry(make_winreg) -> None:
    winreg = make_winreg(
        {
            (make_winreg.HKEY_LOCAL_MACHINE, r"SOFTWARE\Microsoft\Windows NT\CurrentVersion"): {
                "CurrentMajorVersionNumber": (10, make_winreg.REG_DWORD),
                "CurrentMinorVersionNumber": (0, make_winreg.REG_DWORD),
                "CurrentBuild": ("22631", make_winreg.REG_SZ),
                "UBR": (4317, make_winreg.REG_DWORD),
            }
        }
    )

    assert read_live_version("os", winreg_module=winreg) == "10.0.22631.4317"
