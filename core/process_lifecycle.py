"""
Graceful close, forced kill and relaunch of an application's processes.
"""

from __future__ import annotations

import ctypes
import shlex
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import psutil

from core.call_activity import normalize_process_name
from shared.outcomes import ProcessErrorKind, ProcessOpResult
from app_update_gate.app_update_gate import logger as app_logger

GRACEFUL_WAIT_SECONDS = 5
POLL_INTERVAL_SECONDS = 1
SETTLE_DELAY_SECONDS = 3
_WM_CLOSE = 0x0010


@dataclass(frozen=True)
class _StopRecord:
    name: str
    executable: Optional[str]
    forced: bool


def request_graceful_close(proc) -> bool:
    """
    Ask ``proc`` to close its main window(s).

    Returns False when the process has no visible top-level window to close.
    Outside Windows the process is sent SIGTERM instead.
    """
    if sys.platform != "win32":
        proc.terminate()
        return True

    user32 = ctypes.windll.user32  # type: ignore[attr-defined]
    target_pid = proc.pid
    handles: List[int] = []

    @ctypes.WINFUNCTYPE(ctypes.c_bool, ctypes.c_void_p, ctypes.c_void_p)
    def _collect(hwnd, _lparam):
        owner = ctypes.c_ulong()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(owner))
        if owner.value == target_pid and user32.IsWindowVisible(hwnd):
            handles.append(hwnd)
        return True

    user32.EnumWindows(_collect, 0)
    for hwnd in handles:
        user32.PostMessageW(hwnd, _WM_CLOSE, 0, 0)
    return bool(handles)


def launch_process(executable: str, args: Sequence[str]) -> None:
    subprocess.Popen(
        [executable, *args],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        close_fds=True,
        creationflags=getattr(subprocess, "DETACHED_PROCESS", 0),
    )


class ProcessLifecycleManager:
    """Stops every matching process, then relaunches what it stopped."""

    def __init__(
        self,
        *,
        process_iter: Callable = psutil.process_iter,
        close_requester: Callable = request_graceful_close,
        launcher: Callable[[str, Sequence[str]], None] = launch_process,
        sleep: Callable[[float], None] = time.sleep,
        graceful_wait_seconds: int = GRACEFUL_WAIT_SECONDS,
        settle_delay_seconds: float = SETTLE_DELAY_SECONDS,
    ) -> None:
        self._process_iter = process_iter
        self._close_requester = close_requester
        self._launcher = launcher
        self._sleep = sleep
        self.graceful_wait_seconds = graceful_wait_seconds
        self.settle_delay_seconds = settle_delay_seconds
        self._logger = app_logger.get_logger()

    def stop_then_restart(self, process_names: Sequence[str], restart_args: Optional[str] = None) -> ProcessOpResult:
        detail: List[str] = []
        stopped, stop_ok = self._stop_all(process_names, detail)

        acted_on = _distinct_names(stopped)
        if not stop_ok:
            detail.append("Stop phase failed; restart skipped.")
            self._logger.error("Stop phase failed for {}; not restarting.", list(process_names))
            return ProcessOpResult(
                succeeded=False,
                names_acted_on=acted_on,
                detail_log=tuple(detail),
                error=ProcessErrorKind.STOP_FAILED,
            )

        if not stopped:
            detail.append("No matching processes were running.")
            self._logger.info("Nothing to stop for {}.", list(process_names))
            return ProcessOpResult(succeeded=True, names_acted_on=(), detail_log=tuple(detail))

        self._logger.debug("Waiting {}s before relaunch.", self.settle_delay_seconds)
        self._sleep(self.settle_delay_seconds)

        restart_ok = self._restart_all(stopped, restart_args, detail)
        return ProcessOpResult(
            succeeded=restart_ok,
            names_acted_on=acted_on,
            detail_log=tuple(detail),
            error=None if restart_ok else ProcessErrorKind.RESTART_FAILED,
        )

    def _stop_all(self, process_names: Sequence[str], detail: List[str]) -> Tuple[List[_StopRecord], bool]:
        wanted = {normalize_process_name(name): name for name in process_names}
        if not wanted:
            return [], True

        try:
            candidates = [proc for proc in self._process_iter(["name"]) if _matches(proc, wanted)]
        except (psutil.Error, OSError) as exc:
            self._logger.warning("Process enumeration failed ({}); treating as none running.", exc)
            detail.append(f"Process enumeration failed: {exc}")
            return [], True

        # Stop in profile order so names_acted_on does not depend on pid order.
        rank = {key: index for index, key in enumerate(wanted)}
        candidates.sort(key=lambda proc: rank[normalize_process_name(_process_name(proc))])

        results: List[Tuple[Optional[_StopRecord], bool]] = [
            self._stop_one(proc, wanted[normalize_process_name(_process_name(proc))], detail)
            for proc in candidates
        ]
        records = [record for record, _ in results if record is not None]
        forced = sum(1 for record in records if record.forced)
        if forced:
            detail.append(f"{forced} of {len(records)} process(es) had to be force-killed.")
        return records, all(ok for _, ok in results)

    def _stop_one(self, proc, name: str, detail: List[str]) -> Tuple[Optional[_StopRecord], bool]:
        pid = proc.pid
        executable: Optional[str] = None
        try:
            executable = _safe_exe(proc)
            forced = False
            if self._close_requester(proc):
                if not self._wait_for_exit(proc):
                    forced = True
            elif proc.is_running():
                forced = True
            if forced:
                proc.kill()
                detail.append(f"Force-killed {name} (pid {pid}).")
                self._logger.warning("Force-killed {} (pid {}).", name, pid)
            else:
                detail.append(f"Closed {name} (pid {pid}).")
                self._logger.info("Closed {} (pid {}) gracefully.", name, pid)
            return _StopRecord(name=name, executable=executable, forced=forced), True
        except psutil.NoSuchProcess:
            detail.append(f"{name} (pid {pid}) exited on its own.")
            return _StopRecord(name=name, executable=executable, forced=False), True
        except (psutil.Error, OSError) as exc:
            detail.append(f"Failed to stop {name} (pid {pid}): {exc}")
            self._logger.error("Failed to stop {} (pid {}): {}", name, pid, exc)
            return None, False
        except Exception as exc:
            detail.append(f"Failed to stop {name} (pid {pid}): {exc}")
            self._logger.exception("Unexpected error stopping {} (pid {}).", name, pid)
            return None, False

    def _wait_for_exit(self, proc) -> bool:
        for _ in range(self.graceful_wait_seconds):
            if not proc.is_running():
                return True
            self._sleep(POLL_INTERVAL_SECONDS)
        return not proc.is_running()

    def _restart_all(self, stopped: List[_StopRecord], restart_args: Optional[str], detail: List[str]) -> bool:
        args = shlex.split(restart_args) if restart_args else []
        executables: Dict[str, Optional[str]] = {}
        for record in stopped:
            if executables.get(record.name) is None:
                executables[record.name] = record.executable

        ok = True
        for name, executable in executables.items():
            executable = executable or name
            try:
                self._launcher(executable, args)
            except (OSError, ValueError, subprocess.SubprocessError) as exc:
                ok = False
                detail.append(f"Failed to restart {name}: {exc}")
                self._logger.error("Failed to restart {} ({}): {}", name, executable, exc)
                continue
            except Exception as exc:
                ok = False
                detail.append(f"Failed to restart {name}: {exc}")
                self._logger.exception("Unexpected error restarting {} ({}).", name, executable)
                continue
            detail.append(f"Restarted {name}.")
            self._logger.info("Restarted {} via {} {}", name, executable, args)
        return ok


def _matches(proc, wanted: Dict[str, str]) -> bool:
    try:
        return normalize_process_name(_process_name(proc)) in wanted
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _process_name(proc) -> str:
    info = getattr(proc, "info", None)
    if info and info.get("name"):
        return info["name"]
    return proc.name()


def _safe_exe(proc) -> Optional[str]:
    try:
        return proc.exe() or None
    except (psutil.AccessDenied, psutil.ZombieProcess):
        return None


def _distinct_names(records: List[_StopRecord]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(record.name for record in records))
