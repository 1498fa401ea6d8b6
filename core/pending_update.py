"""
Decides whether a managed application has an update waiting.
"""

from __future__ import annotations

import platform
import re
from pathlib import Path
from typing import Callable, List, Optional

from packaging.version import InvalidVersion, Version

from shared.app_profile import OS_VERSION_SOURCE, REGISTRY_VERSION_PREFIX, AppProfile, PendingCheckKind
from shared.outcomes import PendingState
from app_update_gate.app_update_gate import logger as app_logger

try:
    import winreg
except ModuleNotFoundError:  # pragma: no cover - non-Windows environments
    winreg = None

_LOGGER = app_logger.get_logger()

_CURRENT_VERSION_SUBKEY = r"SOFTWARE\Microsoft\Windows NT\CurrentVersion"

VersionProvider = Callable[[str], Optional[str]]


def evaluate(
    profile: Optional[AppProfile],
    override: bool,
    *,
    version_provider: Optional[VersionProvider] = None,
    path_exists: Callable[[str], bool] = lambda value: Path(value).exists(),
) -> PendingState:
    """
    Return whether ``profile`` needs attention.

    ``override`` bypasses inspection entirely. A missing profile is never
    pending. Version and path lookups that fail count as "no update".
    """
    if profile is None:
        _LOGGER.warning("No profile supplied; treating application as up to date.")
        return PendingState.NOT_PENDING

    if override:
        _LOGGER.info("Override set for {}; skipping pending-update check.", profile.app_id)
        return PendingState.PENDING

    if profile.pending_check_kind is PendingCheckKind.PATH_EXISTS:
        try:
            exists = path_exists(profile.pending_check_parameter)
        except OSError as exc:
            _LOGGER.warning("Could not inspect marker {}: {}", profile.pending_check_parameter, exc)
            exists = False
        _LOGGER.info(
            "Marker {} for {} {}.",
            profile.pending_check_parameter,
            profile.app_id,
            "exists" if exists else "is absent",
        )
        return PendingState.PENDING if exists else PendingState.NOT_PENDING

    provider = version_provider or read_live_version
    live = provider(profile.version_source)
    if live is None:
        _LOGGER.warning("Live version for {} unavailable; treating as up to date.", profile.app_id)
        return PendingState.NOT_PENDING

    below = compare_versions(live, profile.pending_check_parameter) < 0
    _LOGGER.info(
        "{} live version {} vs required {}: {}",
        profile.app_id,
        live,
        profile.pending_check_parameter,
        "update pending" if below else "up to date",
    )
    return PendingState.PENDING if below else PendingState.NOT_PENDING


def compare_versions(v1: str, v2: str) -> int:
    """
    Compare two version strings.

    Returns 1 if v1 > v2, -1 if v1 < v2, 0 if equal. Strings that are not
    PEP 440 versions are compared by their numeric components.
    """
    try:
        ver1 = Version(v1.strip().lstrip("vV"))
        ver2 = Version(v2.strip().lstrip("vV"))
    except InvalidVersion:
        parts1 = _numeric_parts(v1)
        parts2 = _numeric_parts(v2)
        width = max(len(parts1), len(parts2))
        parts1.extend([0] * (width - len(parts1)))
        parts2.extend([0] * (width - len(parts2)))
        return (parts1 > parts2) - (parts1 < parts2)
    return (ver1 > ver2) - (ver1 < ver2)


def _numeric_parts(version: str) -> List[int]:
    parts = re.findall(r"\d+", version or "")
    return [int(p) for p in parts] if parts else [0]


def read_live_version(source: str, *, winreg_module=winreg) -> Optional[str]:
    """Resolve a profile's ``version_source`` to the installed version string."""
    if source == OS_VERSION_SOURCE:
        return _read_os_version(winreg_module)
    if source.startswith(REGISTRY_VERSION_PREFIX):
        return _read_registry_value(source[len(REGISTRY_VERSION_PREFIX):], winreg_module)
    _LOGGER.warning("Unsupported version source '{}'.", source)
    return None


def _read_os_version(winreg_module) -> Optional[str]:
    if winreg_module is not None:
        try:
            key = winreg_module.OpenKey(
                winreg_module.HKEY_LOCAL_MACHINE, _CURRENT_VERSION_SUBKEY, 0, winreg_module.KEY_READ
            )
        except OSError:
            key = None
        if key is not None:
            try:
                major, _ = winreg_module.QueryValueEx(key, "CurrentMajorVersionNumber")
                minor, _ = winreg_module.QueryValueEx(key, "CurrentMinorVersionNumber")
                build, _ = winreg_module.QueryValueEx(key, "CurrentBuild")
                try:
                    ubr, _ = winreg_module.QueryValueEx(key, "UBR")
                except OSError:
                    ubr = 0
                return f"{major}.{minor}.{build}.{ubr}"
            except OSError as exc:
                _LOGGER.debug("Registry OS version lookup failed: {}", exc)
            finally:
                winreg_module.CloseKey(key)
    return platform.version() or None


def _read_registry_value(location: str, winreg_module) -> Optional[str]:
    if winreg_module is None:
        _LOGGER.warning("Registry unavailable; cannot read {}.", location)
        return None
    hive_name, _, remainder = location.partition("\\")
    subkey, _, value_name = remainder.rpartition("\\")
    hives = {
        "HKLM": winreg_module.HKEY_LOCAL_MACHINE,
        "HKEY_LOCAL_MACHINE": winreg_module.HKEY_LOCAL_MACHINE,
        "HKCU": winreg_module.HKEY_CURRENT_USER,
        "HKEY_CURRENT_USER": winreg_module.HKEY_CURRENT_USER,
    }
    hive = hives.get(hive_name.upper())
    if hive is None or not subkey or not value_name:
        _LOGGER.warning("Malformed registry location {}.", location)
        return None
    try:
        key = winreg_module.OpenKey(hive, subkey, 0, winreg_module.KEY_READ)
    except OSError as exc:
        _LOGGER.warning("Registry key {} unavailable: {}", subkey, exc)
        return None
    try:
        value, _ = winreg_module.QueryValueEx(key, value_name)
    except OSError as exc:
        _LOGGER.warning("Registry value {} unavailable: {}", value_name, exc)
        return None
    finally:
        winreg_module.CloseKey(key)
    return str(value).strip() or None
