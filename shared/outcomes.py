"""
Value types exchanged between the update workflow stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional, Tuple


class PendingState(Enum):
    PENDING = "Pending"
    NOT_PENDING = "NotPending"


class CallState(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class DecisionKind(Enum):
    IMMEDIATE = "Immediate"
    SCHEDULED = "Scheduled"
    CANCELLED = "Cancelled"
    TIMED_OUT_DEFAULT = "TimedOutDefault"


@dataclass(frozen=True)
class DecisionOutcome:
    """The single value produced by the decision gate for a run."""

    kind: DecisionKind
    scheduled_for: Optional[datetime] = None

    @classmethod
    def immediate(cls) -> "DecisionOutcome":
        return cls(DecisionKind.IMMEDIATE)

    @classmethod
    def scheduled(cls, when: datetime) -> "DecisionOutcome":
        return cls(DecisionKind.SCHEDULED, scheduled_for=when)

    @classmethod
    def cancelled(cls) -> "DecisionOutcome":
        return cls(DecisionKind.CANCELLED)

    @classmethod
    def timed_out(cls) -> "DecisionOutcome":
        return cls(DecisionKind.TIMED_OUT_DEFAULT)

    @property
    def proceeds_now(self) -> bool:
        """Timeout falls back to the same restart as an explicit 'now'."""
        return self.kind in {DecisionKind.IMMEDIATE, DecisionKind.TIMED_OUT_DEFAULT}


class ProcessErrorKind(Enum):
    STOP_FAILED = "stop-failed"
    RESTART_FAILED = "restart-failed"


@dataclass(frozen=True)
class ProcessOpResult:
    succeeded: bool
    names_acted_on: Tuple[str, ...] = ()
    detail_log: Tuple[str, ...] = ()
    error: Optional[ProcessErrorKind] = None


@dataclass(frozen=True)
class ScheduledInvocation:
    """A re-entrant run of the workflow handed to the task scheduler."""

    app_id: str
    fired_at: datetime
    command: str
    arguments: Tuple[str, ...] = field(default_factory=tuple)


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    CANCELLED = 2
    SCHEDULED = 3
    RESTART_FAILED = 88
    CALL_ACTIVE = 99
    NOT_PENDING = 100
