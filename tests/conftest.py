"""Test configuration and fixtures."""

import os
import tempfile
from collections import namedtuple
from pathlib import Path
from typing import Callable, List, Optional

os.environ.setdefault("APP_UPDATE_GATE_LOG_DIR", tempfile.mkdtemp(prefix="app_update_gate_logs_"))

import pytest  # noqa: E402

from shared.app_profile import AppProfile, PendingCheckKind  # noqa: E402


class FakeProcess:
    """Stand-in for ``psutil.Process`` driven by a poll budget."""

    def __init__(
        self,
        pid: int,
        name: str,
        exe: Optional[str] = None,
        *,
        has_window: bool = True,
        polls_until_exit: Optional[int] = 0,
        kill_error: Optional[Exception] = None,
    ) -> None:
        self.pid = pid
        self.info = {"name": name}
        self._exe = exe
        self.has_window = has_window
        self._polls_until_exit = polls_until_exit
        self._kill_error = kill_error
        self.running = True
        self.close_requested = False
        self.killed = False

    def name(self) -> str:
        return self.info["name"]

    def exe(self) -> str:
        return self._exe or ""

    def is_running(self) -> bool:
        if self.running and self.close_requested and self._polls_until_exit is not None:
            if self._polls_until_exit <= 0:
                self.running = False
            else:
                self._polls_until_exit -= 1
        return self.running

    def request_close(self) -> bool:
        if not self.has_window:
            return False
        self.close_requested = True
        return True

    def kill(self) -> None:
        if self._kill_error is not None:
            raise self._kill_error
        self.running = False
        self.killed = True


Address = namedtuple("Address", "ip port")


class FakeConnection:
    def __init__(self, pid: int, ip: str, port: int = 50000) -> None:
        self.pid = pid
        self.laddr = Address(ip, port)


class RecordingLauncher:
    def __init__(self, fail_for: tuple = ()) -> None:
        self.calls: List[tuple] = []
        self.fail_for = fail_for

    def __call__(self, executable: str, args) -> None:
        self.calls.append((executable, list(args)))
        if any(token in executable for token in self.fail_for):
            raise OSError(f"cannot start {executable}")


class RecordingNotifier:
    def __init__(self) -> None:
        self.alerts: List[tuple] = []
        self.broadcasts: List[tuple] = []
        self.activities: List[tuple] = []

    def alert(self, category: str, body: str) -> None:
        self.alerts.append((category, body))

    def broadcast(self, title: str, message: str) -> None:
        self.broadcasts.append((title, message))

    def log_activity(self, message: str, event_name: str) -> None:
        self.activities.append((message, event_name))


@pytest.fixture
def make_process() -> Callable[..., FakeProcess]:
    return FakeProcess


@pytest.fixture
def make_connection() -> Callable[..., FakeConnection]:
    return FakeConnection


@pytest.fixture
def make_launcher() -> Callable[..., RecordingLauncher]:
    return RecordingLauncher


@pytest.fixture
def launcher() -> RecordingLauncher:
    return RecordingLauncher()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def path_profile(tmp_path: Path) -> AppProfile:
    """A marker-file profile whose marker does not exist yet."""
    return AppProfile(
        app_id="Browser",
        process_names=("browser",),
        restart_args="--restore-last-session",
        pending_check_kind=PendingCheckKind.PATH_EXISTS,
        pending_check_parameter=str(tmp_path / "new_browser.exe"),
    )


@pytest.fixture
def version_profile() -> AppProfile:
    return AppProfile(
        app_id="Suite",
        process_names=("WINWORD", "EXCEL"),
        pending_check_kind=PendingCheckKind.VERSION_BELOW,
        pending_check_parameter="16.0.17928.20156",
    )


class FakeWinreg:
    """Dictionary-backed replacement for the ``winreg`` module."""

    HKEY_LOCAL_MACHINE = 0x80000002
    HKEY_CURRENT_USER = 0x80000001
    KEY_READ = 0x20019
    REG_SZ = 1
    REG_EXPAND_SZ = 2
    REG_DWORD = 4

    def __init__(self, keys: Optional[dict] = None) -> None:
        # {(hive, subkey): {value_name: (value, type)}}
        self.keys = keys or {}
        self.closed: List[tuple] = []

    def OpenKey(self, hive, subkey, reserved=0, access=0):  # noqa: N802
        if (hive, subkey) not in self.keys:
            raise FileNotFoundError(subkey)
        return (hive, subkey)

    def QueryValueEx(self, key, name):  # noqa: N802
        values = self.keys[key]
        if name not in values:
            raise FileNotFoundError(name)
        return values[name]

    def CloseKey(self, key):  # noqa: N802
        self.closed.append(key)


@pytest.fixture
def make_winreg() -> Callable[..., FakeWinreg]:
    return FakeWinreg
