"""
One-shot deferred runs of the update workflow.

The deferred run re-invokes this same entry point with ``--deferred``;
nothing is generated on disk.
"""

from __future__ import annotations

import subprocess
import sys
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Sequence, Tuple

from shared.outcomes import ScheduledInvocation
from app_update_gate.app_update_gate import logger as app_logger

TASK_FOLDER = "AppUpdateGate"
ENTRY_MODULE = "app_update_gate.main"
_REGISTER_TIMEOUT_SECONDS = 60


class SchedulingError(RuntimeError):
    """Raised when a deferred run cannot be registered."""


class SchedulingSink(Protocol):
    def register_one_shot(self, command: str, args: Sequence[str], when_fired: datetime) -> None:
        ...


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _quote_argument(value: str) -> str:
    if value and not any(ch in value for ch in ' \t"'):
        return value
    return '"' + value.replace('"', '\\"') + '"'


class ScheduledTaskSink:
    """Registers a one-shot Windows scheduled task through PowerShell."""

    def __init__(
        self,
        *,
        task_folder: str = TASK_FOLDER,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.task_path = f"\\{task_folder}\\"
        self._runner = runner
        self._logger = app_logger.get_logger()

    def task_name(self, args: Sequence[str]) -> str:
        app_id = "run"
        if "--app" in args:
            index = list(args).index("--app")
            if index + 1 < len(args):
                app_id = args[index + 1]
        return app_id

    def build_script(self, command: str, args: Sequence[str], when_fired: datetime) -> str:
        argument_line = " ".join(_quote_argument(arg) for arg in args)
        at = when_fired.replace(microsecond=0).isoformat()
        end = (when_fired + timedelta(hours=12)).replace(microsecond=0).isoformat()
        return "; ".join(
            [
                "$ErrorActionPreference = 'Stop'",
                f"$action = New-ScheduledTaskAction -Execute {_ps_quote(command)} -Argument {_ps_quote(argument_line)}",
                f"$trigger = New-ScheduledTaskTrigger -Once -At ([datetime]::Parse({_ps_quote(at)}))",
                f"$trigger.EndBoundary = {_ps_quote(end)}",
                "$settings = New-ScheduledTaskSettingsSet -StartWhenAvailable "
                "-DeleteExpiredTaskAfter (New-TimeSpan -Seconds 0)",
                f"Register-ScheduledTask -TaskPath {_ps_quote(self.task_path)} "
                f"-TaskName {_ps_quote(self.task_name(args))} "
                "-Action $action -Trigger $trigger -Settings $settings -Force | Out-Null",
            ]
        )

    def register_one_shot(self, command: str, args: Sequence[str], when_fired: datetime) -> None:
        script = self.build_script(command, args, when_fired)
        cmd = [
            "powershell.exe",
            "-NoProfile",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ]
        self._logger.info(
            "Registering scheduled task {}{} for {}",
            self.task_path,
            self.task_name(args),
            when_fired.isoformat(),
        )
        try:
            result = self._runner(cmd, capture_output=True, text=True, timeout=_REGISTER_TIMEOUT_SECONDS)
        except (OSError, subprocess.SubprocessError) as exc:
            raise SchedulingError(f"Could not run PowerShell to register task: {exc}") from exc
        if result.returncode != 0:
            raise SchedulingError(
                "Register-ScheduledTask failed with exit code %s:\n%s\n%s"
                % (result.returncode, result.stdout, result.stderr)
            )


class DeferredScheduler:
    """Turns an approved 'later' decision into a registered future run."""

    def __init__(
        self,
        sink: Optional[SchedulingSink] = None,
        *,
        command: str = sys.executable,
        base_args: Tuple[str, ...] = ("-m", ENTRY_MODULE),
    ) -> None:
        self.sink = sink or ScheduledTaskSink()
        self.command = command
        self.base_args = base_args
        self._logger = app_logger.get_logger()

    def invocation_for(self, app_id: str, when: datetime) -> ScheduledInvocation:
        return ScheduledInvocation(
            app_id=app_id,
            fired_at=when,
            command=self.command,
            arguments=(*self.base_args, "--app", app_id, "--deferred"),
        )

    def schedule_for(self, app_id: str, when: datetime) -> ScheduledInvocation:
        """Register the deferred run, raising ``SchedulingError`` on any failure."""
        invocation = self.invocation_for(app_id, when)
        try:
            self.sink.register_one_shot(invocation.command, invocation.arguments, invocation.fired_at)
        except SchedulingError:
            raise
        except (OSError, ValueError) as exc:
            raise SchedulingError(f"Scheduling sink rejected {app_id}: {exc}") from exc
        self._logger.info("Deferred run for {} registered at {}", app_id, when.isoformat())
        return invocation
