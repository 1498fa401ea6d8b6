"""
Maps the terminal state of a run to the process exit code.
"""

from __future__ import annotations

from enum import Enum

from shared.outcomes import ExitCode


class TerminalState(Enum):
    NOT_PENDING = "not-pending"
    CALL_ACTIVE = "call-active"
    CANCELLED = "cancelled"
    SCHEDULED = "scheduled"
    SCHEDULING_FAILED = "scheduling-failed"
    UPDATED = "updated"
    STOP_FAILED = "stop-failed"
    RESTART_FAILED = "restart-failed"
    FAILED = "failed"


_EXIT_CODES = {
    TerminalState.NOT_PENDING: ExitCode.NOT_PENDING,
    TerminalState.CALL_ACTIVE: ExitCode.CALL_ACTIVE,
    TerminalState.CANCELLED: ExitCode.CANCELLED,
    TerminalState.SCHEDULED: ExitCode.SUCCESS,
    TerminalState.SCHEDULING_FAILED: ExitCode.FAILURE,
    TerminalState.UPDATED: ExitCode.SUCCESS,
    TerminalState.STOP_FAILED: ExitCode.FAILURE,
    TerminalState.RESTART_FAILED: ExitCode.RESTART_FAILED,
    TerminalState.FAILED: ExitCode.FAILURE,
}


def exit_code_for(state: TerminalState, *, distinct_scheduled_code: bool = False) -> ExitCode:
    """
    Return the exit code for ``state``.

    A successful schedule reports 0 unless ``distinct_scheduled_code`` asks
    for the dedicated code 3.
    """
    if state is TerminalState.SCHEDULED and distinct_scheduled_code:
        return ExitCode.SCHEDULED
    return _EXIT_CODES[state]
