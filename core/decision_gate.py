"""
Timed three-way decision with exactly one winner.

The gate holds no UI. A presenter feeds it one ``tick()`` per second and
forwards button presses; whichever signal arrives first resolves the
outcome and every later signal is ignored.
"""

from __future__ import annotations

import threading
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from shared.outcomes import DecisionOutcome

DEFAULT_COUNTDOWN_SECONDS = 300
DEFAULT_SCHEDULE_TIME = time(hour=19, minute=0)


class SingleFireResolver:
    """Write-once holder for the gate's outcome."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcome: Optional[DecisionOutcome] = None

    @property
    def outcome(self) -> Optional[DecisionOutcome]:
        return self._outcome

    @property
    def resolved(self) -> bool:
        return self._outcome is not None

    def resolve(self, outcome: DecisionOutcome) -> bool:
        """Store ``outcome`` if nothing has been stored yet. Returns True for the winner."""
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
            return True


def next_schedule_slot(now: datetime, at: time = DEFAULT_SCHEDULE_TIME) -> datetime:
    """Today at ``at``, or tomorrow when that moment has already passed."""
    slot = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if slot <= now:
        slot += timedelta(days=1)
    return slot


class DecisionGate:
    def __init__(
        self,
        countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        *,
        schedule_at: time = DEFAULT_SCHEDULE_TIME,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if countdown_seconds < 0:
            raise ValueError("countdown_seconds must not be negative.")
        self._remaining = countdown_seconds
        self._schedule_at = schedule_at
        self._clock = clock
        self._resolver = SingleFireResolver()
        if countdown_seconds == 0:
            self._resolver.resolve(DecisionOutcome.timed_out())

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def schedule_at(self) -> time:
        return self._schedule_at

    @property
    def resolved(self) -> bool:
        return self._resolver.resolved

    @property
    def outcome(self) -> Optional[DecisionOutcome]:
        return self._resolver.outcome

    def tick(self) -> bool:
        """Advance the countdown by one second; resolves to the timeout default at zero."""
        if self._resolver.resolved:
            return False
        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            return self._resolver.resolve(DecisionOutcome.timed_out())
        return False

    def choose_immediate(self) -> bool:
        return self._resolver.resolve(DecisionOutcome.immediate())

    def choose_schedule(self) -> bool:
        if self._resolver.resolved:
            return False
        return self._resolver.resolve(
            DecisionOutcome.scheduled(next_schedule_slot(self._clock(), self._schedule_at))
        )

    def choose_cancel(self) -> bool:
        return self._resolver.resolve(DecisionOutcome.cancelled())

    def countdown_text(self) -> str:
        minutes, seconds = divmod(self._remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"
