"""
Read-only lookup of managed application profiles.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from shared.app_profile import AppProfile, PendingCheckKind
from shared.profile_schema import ProfileValidationError, load_and_validate_profiles
from app_update_gate.app_update_gate import logger as app_logger

_CHROMIUM_RESTORE = "--restore-last-session"

BUILTIN_PROFILES: tuple[AppProfile, ...] = (
    AppProfile(
        app_id="Chrome",
        display_name="Google Chrome",
        process_names=("chrome",),
        restart_args=_CHROMIUM_RESTORE,
        pending_check_kind=PendingCheckKind.PATH_EXISTS,
        pending_check_parameter=r"C:\Program Files\Google\Chrome\Application\new_chrome.exe",
    ),
    AppProfile(
        app_id="Edge",
        display_name="Microsoft Edge",
        process_names=("msedge",),
        restart_args=_CHROMIUM_RESTORE,
        pending_check_kind=PendingCheckKind.PATH_EXISTS,
        pending_check_parameter=r"C:\Program Files (x86)\Microsoft\Edge\Application\new_msedge.exe",
    ),
    AppProfile(
        app_id="Firefox",
        display_name="Mozilla Firefox",
        process_names=("firefox",),
        pending_check_kind=PendingCheckKind.PATH_EXISTS,
        pending_check_parameter=r"C:\Program Files\Mozilla Firefox\updated\firefox.exe",
    ),
    AppProfile(
        app_id="Teams",
        display_name="Microsoft Teams",
        process_names=("ms-teams", "Teams"),
        pending_check_kind=PendingCheckKind.PATH_EXISTS,
        pending_check_parameter=r"C:\ProgramData\AppUpdateGate\Markers\Teams.pending",
    ),
    AppProfile(
        app_id="M365Apps",
        display_name="Microsoft 365 Apps",
        process_names=("WINWORD", "EXCEL", "POWERPNT", "OUTLOOK", "ONENOTE", "MSACCESS", "MSPUB", "VISIO", "WINPROJ"),
        pending_check_kind=PendingCheckKind.VERSION_BELOW,
        pending_check_parameter="16.0.17928.20156",
        version_source=r"registry:HKLM\SOFTWARE\Microsoft\Office\ClickToRun\Configuration\VersionToReport",
    ),
    AppProfile(
        app_id="FeatureUpdate",
        display_name="Windows Feature Update",
        process_names=(),
        pending_check_kind=PendingCheckKind.VERSION_BELOW,
        pending_check_parameter="10.0.26100",
        announce_approval=True,
    ),
)


class ProfileRegistry:
    """Case-insensitive, immutable map of application id to profile."""

    def __init__(self, profiles: Iterable[AppProfile] = BUILTIN_PROFILES) -> None:
        self._profiles: Dict[str, AppProfile] = {}
        for profile in profiles:
            self._profiles[profile.app_id.lower()] = profile

    @classmethod
    def load(cls, extra_profiles_path: Optional[Path] = None) -> "ProfileRegistry":
        """Return built-in profiles, overridden by a profile file when one validates."""
        registry = cls()
        if extra_profiles_path is None:
            return registry
        logger = app_logger.get_logger()
        try:
            entries = load_and_validate_profiles(extra_profiles_path)
        except ProfileValidationError as exc:
            logger.error("Ignoring profile file {}: {}", extra_profiles_path, exc)
            return registry
        for entry in entries:
            profile = AppProfile.from_manifest(entry)
            registry._profiles[profile.app_id.lower()] = profile
        logger.info("Loaded {} profile(s) from {}", len(entries), extra_profiles_path)
        return registry

    def get(self, app_id: str) -> Optional[AppProfile]:
        return self._profiles.get(app_id.strip().lower())

    def ids(self) -> List[str]:
        return sorted(profile.app_id for profile in self._profiles.values())

    def __contains__(self, app_id: object) -> bool:
        return isinstance(app_id, str) and app_id.strip().lower() in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)
