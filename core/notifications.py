"""
Operations-platform notification sinks.
"""

from __future__ import annotations

import subprocess
from typing import Callable, Protocol

from app_update_gate.app_update_gate import logger as app_logger

_COMMAND_TIMEOUT_SECONDS = 60


class NotificationSink(Protocol):
    def alert(self, category: str, body: str) -> None:
        ...

    def broadcast(self, title: str, message: str) -> None:
        ...

    def log_activity(self, message: str, event_name: str) -> None:
        ...


class LogNotificationSink:
    """Records notifications in the application log only."""

    def __init__(self) -> None:
        self._logger = app_logger.get_logger()

    def alert(self, category: str, body: str) -> None:
        self._logger.warning("ALERT [{}] {}", category, body)

    def broadcast(self, title: str, message: str) -> None:
        self._logger.info("BROADCAST {}: {}", title, message)

    def log_activity(self, message: str, event_name: str) -> None:
        self._logger.info("ACTIVITY {}: {}", event_name, message)


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class SyncroNotificationSink:
    """
    Sends notifications through the Syncro agent's PowerShell module.

    The agent exposes the module path as ``$env:SyncroModule``. Delivery
    failures are logged and never raised.
    """

    def __init__(self, *, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> None:
        self._runner = runner
        self._logger = app_logger.get_logger()

    def alert(self, category: str, body: str) -> None:
        self._invoke(f"Rmm-Alert -Category {_ps_quote(category)} -Body {_ps_quote(body)}")

    def broadcast(self, title: str, message: str) -> None:
        self._invoke(f"Broadcast-Message -Title {_ps_quote(title)} -Message {_ps_quote(message)}")

    def log_activity(self, message: str, event_name: str) -> None:
        self._invoke(f"Log-Activity -Message {_ps_quote(message)} -EventName {_ps_quote(event_name)}")

    def _invoke(self, statement: str) -> None:
        cmd = [
            "powershell.exe",
            "-NoProfile",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            f"Import-Module $env:SyncroModule -WarningAction SilentlyContinue; {statement}",
        ]
        try:
            result = self._runner(cmd, capture_output=True, text=True, timeout=_COMMAND_TIMEOUT_SECONDS)
        except (OSError, subprocess.SubprocessError) as exc:
            self._logger.error("Notification command failed to start: {}", exc)
            return
        if result.returncode != 0:
            self._logger.error(
                "Notification command exited with {}: {}",
                result.returncode,
                (result.stderr or "").strip()[-200:],
            )


def create_sink(kind: str) -> NotificationSink:
    if kind == "syncro":
        return SyncroNotificationSink()
    return LogNotificationSink()
