"""
Entry point for the app update gate.
"""

from __future__ import annotations

import argparse
import ctypes
import sys
from datetime import time
from typing import Optional, Sequence

from core.deferred_scheduler import DeferredScheduler
from core.notifications import create_sink
from core.profile_registry import ProfileRegistry
from core.settings import GateSettingsManager
from core.workflow import UpdateWorkflow
from shared.outcomes import ExitCode
from app_update_gate.app_update_gate import logger as app_logger

_LOGGER = app_logger.get_logger()
_MUTEX_NAME = "Global\\AppUpdateGateMutex"
_ERROR_ALREADY_EXISTS = 183


class _InstanceGuard:
    """
    Named mutex held for the lifetime of a run.

    Entering yields False when another run already owns the mutex. Outside
    Windows, or when the mutex cannot be created, the run is allowed.
    """

    def __init__(self, name: str, *, kernel32=None, last_error=None) -> None:
        self._name = name
        self._handle = None
        if kernel32 is None and sys.platform == "win32":
            kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
        self._kernel32 = kernel32
        self._last_error = last_error or getattr(ctypes, "get_last_error", lambda: 0)

    def __enter__(self) -> bool:
        if self._kernel32 is None:
            return True
        if hasattr(ctypes, "set_last_error"):
            ctypes.set_last_error(0)
        handle = self._kernel32.CreateMutexW(None, False, self._name)
        if not handle:
            _LOGGER.warning("Could not create mutex {}; continuing without it.", self._name)
            return True
        if self._last_error() == _ERROR_ALREADY_EXISTS:
            self._kernel32.CloseHandle(handle)
            return False
        self._handle = handle
        return True

    def __exit__(self, *_exc) -> None:
        if self._handle:
            self._kernel32.ReleaseMutex(self._handle)
            self._kernel32.CloseHandle(self._handle)
            self._handle = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="app-update-gate",
        description="Ask the signed-in user to restart an application so a pending update can apply.",
    )
    parser.add_argument("--app", help="Application profile id, e.g. Chrome, Edge, M365Apps.")
    parser.add_argument("--override", action="store_true", help="Skip the pending-update check.")
    parser.add_argument(
        "--deferred",
        action="store_true",
        help="Pre-approved scheduled run: restart the application without prompting.",
    )
    parser.add_argument("--countdown", type=int, help="Seconds before the prompt restarts automatically.")
    parser.add_argument("--list-apps", action="store_true", help="Print known application ids and exit.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = GateSettingsManager().read_settings()
    registry = ProfileRegistry.load(settings.profiles_path)

    if args.list_apps:
        for app_id in registry.ids():
            print(app_id)
        return int(ExitCode.SUCCESS)

    if not args.app:
        parser.error("--app is required")
    if args.countdown is not None and args.countdown < 0:
        parser.error("--countdown must not be negative")

    with _InstanceGuard(_MUTEX_NAME) as acquired:
        if not acquired:
            _LOGGER.warning("Another update gate run is in progress; exiting.")
            return int(ExitCode.FAILURE)
        try:
            workflow = UpdateWorkflow(
                decide=_qt_presenter(time(hour=settings.schedule_hour, minute=settings.schedule_minute)),
                registry=registry,
                settings=settings,
                scheduler=DeferredScheduler(),
                notifier=create_sink(settings.notification_sink),
            )
            _LOGGER.info(
                "Starting update gate for {} (override={}, deferred={}).",
                args.app,
                args.override,
                args.deferred,
            )
            return int(
                workflow.run(
                    args.app,
                    override=args.override,
                    deferred=args.deferred,
                    countdown_seconds=args.countdown,
                )
            )
        except Exception:  # pragma: no cover - last-resort crash guard
            _LOGGER.exception("Update gate crashed.")
            return int(ExitCode.FAILURE)


def _qt_presenter(schedule_at: time):
    def present(profile, countdown_seconds: int):
        # Qt is only loaded once a prompt is actually shown.
        from core.update_prompt import QtDecisionPrompt

        return QtDecisionPrompt(schedule_at=schedule_at)(profile, countdown_seconds)

    return present


if __name__ == "__main__":
    raise SystemExit(main())
