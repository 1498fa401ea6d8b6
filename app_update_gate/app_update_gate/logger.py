"""
Logging setup for the update gate.

Runs are short-lived and launched by an RMM agent, so the log file is the
only record an administrator has once the console output is gone.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

_LOG_INITIALISED = False
LOG_DIR = Path(
    os.environ.get(
        "APP_UPDATE_GATE_LOG_DIR",
        str(Path.home() / "AppData" / "Local" / "App Update Gate"),
    )
)
DEFAULT_LOG_PATH = LOG_DIR / "update_gate.log"
CONSOLE_LEVEL = os.environ.get("APP_UPDATE_GATE_LOG_LEVEL", "INFO").upper()
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | pid {process} | {name}:{line} | {message}"


def configure(log_path: Optional[Path] = None) -> None:
    """Install the console and rotating file sinks once per process."""
    global _LOG_INITIALISED
    if _LOG_INITIALISED:
        return
    target = log_path or DEFAULT_LOG_PATH
    target.parent.mkdir(parents=True, exist_ok=True)

    _logger.remove()
    # stderr is None under pythonw / scheduled-task launches.
    if sys.stderr is not None:
        _logger.add(sys.stderr, level=CONSOLE_LEVEL, format="<level>{level: <8}</level> {message}")
    _logger.add(
        target,
        level="DEBUG",
        format=_FILE_FORMAT,
        rotation="5 MB",
        retention="30 days",
        encoding="utf-8",
        backtrace=True,
        diagnose=False,
    )
    _LOG_INITIALISED = True


def get_logger():
    """Return the shared logger instance."""
    configure()
    return _logger
