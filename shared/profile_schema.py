"""
Profile file validation shared by the registry and its tests.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .app_profile import OS_VERSION_SOURCE, REGISTRY_VERSION_PREFIX, PendingCheckKind


class ProfileValidationError(ValueError):
    """Raised when a profile file is missing required data or is malformed."""


@dataclass(frozen=True)
class ProfileConstraints:
    """Schema constraints as simple dataclass constants."""

    max_id_length: int = 64
    max_display_name_length: int = 120
    max_restart_args_length: int = 512


_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_REGISTRY_HIVES = {"HKLM", "HKCU", "HKEY_LOCAL_MACHINE", "HKEY_CURRENT_USER"}


def load_and_validate_profiles(path: Path) -> List[Dict[str, Any]]:
    """
    Load a profile file and validate every entry.

    The root may be a JSON list of profile objects or an object with a
    ``profiles`` list. Returns normalized dictionaries ready for
    ``AppProfile.from_manifest``.
    """
    try:
        contents = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ProfileValidationError(f"Profile file not found: {path}") from exc
    except OSError as exc:
        raise ProfileValidationError(f"Unable to read profile file: {path}") from exc

    try:
        raw = json.loads(contents)
    except json.JSONDecodeError as exc:
        raise ProfileValidationError(f"Profile file is not valid JSON: {exc}") from exc

    if isinstance(raw, dict):
        raw = raw.get("profiles")
    if not isinstance(raw, list):
        raise ProfileValidationError("Profile file must contain a list of profiles.")

    normalized: List[Dict[str, Any]] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ProfileValidationError(f"Profile #{index} must be a JSON object.")
        profile = validate_profile(entry)
        key = profile["id"].lower()
        if key in seen:
            raise ProfileValidationError(f"Duplicate profile id '{profile['id']}'.")
        seen.add(key)
        normalized.append(profile)
    return normalized


def validate_profile(entry: Dict[str, Any]) -> Dict[str, Any]:
    constraints = ProfileConstraints()

    app_id = _require_string(entry.get("id"), field="id", max_length=constraints.max_id_length, required=True)
    if not _ID_PATTERN.match(app_id):
        raise ProfileValidationError("id may only contain letters, digits, '.', '_' and '-'.")

    display_name = _require_string(
        entry.get("display_name"),
        field="display_name",
        max_length=constraints.max_display_name_length,
        required=False,
    )

    processes = _validate_processes(entry.get("processes"))

    restart_args = _require_string(
        entry.get("restart_args"),
        field="restart_args",
        max_length=constraints.max_restart_args_length,
        required=False,
    )

    kind_value = _require_string(entry.get("pending_check"), field="pending_check", required=True)
    try:
        kind = PendingCheckKind(kind_value)
    except ValueError as exc:
        allowed = ", ".join(k.value for k in PendingCheckKind)
        raise ProfileValidationError(f"pending_check must be one of: {allowed}.") from exc

    parameter = _require_string(entry.get("pending_parameter"), field="pending_parameter", required=True)

    version_source = _validate_version_source(entry.get("version_source"))

    logo = _require_string(entry.get("logo"), field="logo", required=False)

    announce = entry.get("announce_approval", False)
    if not isinstance(announce, bool):
        raise ProfileValidationError("announce_approval must be true or false.")

    return {
        "id": app_id,
        "display_name": display_name or None,
        "processes": processes,
        "restart_args": restart_args or None,
        "pending_check": kind.value,
        "pending_parameter": parameter,
        "version_source": version_source,
        "logo": logo or None,
        "announce_approval": announce,
    }


def _require_string(
    value: Any,
    *,
    field: str,
    max_length: Optional[int] = None,
    required: bool,
) -> str:
    """Validate that a value is a string in accordance with constraints."""
    if value is None:
        if required:
            raise ProfileValidationError(f"{field} is required.")
        return ""

    if not isinstance(value, str):
        raise ProfileValidationError(f"{field} must be a string.")

    stripped = value.strip()
    if required and stripped == "":
        raise ProfileValidationError(f"{field} must be a non-empty string.")

    if max_length is not None and len(stripped) > max_length:
        raise ProfileValidationError(
            f"{field} must be at most {max_length} characters."
        )

    return stripped


def _validate_processes(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProfileValidationError("processes must be a list of process names.")
    names: List[str] = []
    for item in value:
        name = _require_string(item, field="processes", required=True)
        if "\\" in name or "/" in name:
            raise ProfileValidationError("processes must be bare process names, not paths.")
        names.append(name)
    return names


def _validate_version_source(value: Any) -> str:
    if value is None:
        return OS_VERSION_SOURCE
    source = _require_string(value, field="version_source", required=False)
    if not source or source.lower() == OS_VERSION_SOURCE:
        return OS_VERSION_SOURCE
    if not source.lower().startswith(REGISTRY_VERSION_PREFIX):
        raise ProfileValidationError("version_source must be 'os' or 'registry:<HIVE>\\<key>\\<value>'.")
    location = source[len(REGISTRY_VERSION_PREFIX):]
    parts = location.split("\\")
    if len(parts) < 3 or parts[0].upper() not in _REGISTRY_HIVES or not all(parts):
        raise ProfileValidationError("version_source must be 'os' or 'registry:<HIVE>\\<key>\\<value>'.")
    return REGISTRY_VERSION_PREFIX + location
