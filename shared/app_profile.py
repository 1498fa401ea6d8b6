"""
Per-application metadata consumed by the update workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class PendingCheckKind(Enum):
    PATH_EXISTS = "PathExists"
    VERSION_BELOW = "VersionBelow"


OS_VERSION_SOURCE = "os"
REGISTRY_VERSION_PREFIX = "registry:"


@dataclass(frozen=True)
class AppProfile:
    """
    Immutable description of one managed application.

    ``process_names`` are matched case-insensitively and without the
    ``.exe`` suffix. ``pending_check_parameter`` is a marker path for
    ``PATH_EXISTS`` and a threshold version for ``VERSION_BELOW``.
    """

    app_id: str
    process_names: Tuple[str, ...]
    pending_check_kind: PendingCheckKind
    pending_check_parameter: str
    restart_args: Optional[str] = None
    version_source: str = OS_VERSION_SOURCE
    display_name: Optional[str] = None
    logo_path: Optional[Path] = None
    announce_approval: bool = False

    @property
    def title(self) -> str:
        return self.display_name or self.app_id

    @classmethod
    def from_manifest(cls, entry: Dict[str, Any]) -> "AppProfile":
        """Build a profile from a normalized profile-file entry."""
        logo = entry.get("logo")
        return cls(
            app_id=entry["id"],
            process_names=tuple(entry.get("processes") or ()),
            pending_check_kind=PendingCheckKind(entry["pending_check"]),
            pending_check_parameter=entry["pending_parameter"],
            restart_args=entry.get("restart_args") or None,
            version_source=entry.get("version_source") or OS_VERSION_SOURCE,
            display_name=entry.get("display_name") or None,
            logo_path=Path(logo) if logo else None,
            announce_approval=bool(entry.get("announce_approval", False)),
        )
