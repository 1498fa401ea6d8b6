"""
Update workflow coordinator.

Runs the stages strictly in order: pending check, call check, decision,
then either the process lifecycle, a deferred schedule or nothing. Each
run ends in exactly one exit code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from core.call_activity import detect_call_state
from core.deferred_scheduler import DeferredScheduler, SchedulingError
from core.exit_codes import TerminalState, exit_code_for
from core.notifications import LogNotificationSink, NotificationSink
from core.pending_update import evaluate
from core.process_lifecycle import ProcessLifecycleManager
from core.profile_registry import ProfileRegistry
from core.settings import GateSettings
from shared.app_profile import AppProfile
from shared.outcomes import (
    CallState,
    DecisionKind,
    DecisionOutcome,
    ExitCode,
    PendingState,
    ProcessErrorKind,
)
from app_update_gate.app_update_gate import logger as app_logger

DecisionPresenter = Callable[[AppProfile, int], DecisionOutcome]
StageReporter = Callable[[int, str], None]


def print_stage(number: int, message: str) -> None:
    line = f"Stage {number}: {message}"
    print(line, flush=True)
    app_logger.get_logger().info(line)


@dataclass
class UpdateWorkflow:
    decide: DecisionPresenter
    registry: ProfileRegistry = field(default_factory=ProfileRegistry)
    settings: GateSettings = field(default_factory=GateSettings)
    pending_evaluator: Callable[..., PendingState] = evaluate
    call_detector: Callable[[], CallState] = detect_call_state
    lifecycle: ProcessLifecycleManager = field(default_factory=ProcessLifecycleManager)
    scheduler: DeferredScheduler = field(default_factory=DeferredScheduler)
    notifier: NotificationSink = field(default_factory=LogNotificationSink)
    report_stage: StageReporter = print_stage

    def __post_init__(self) -> None:
        self._logger = app_logger.get_logger()

    def run(
        self,
        app_id: str,
        *,
        override: bool = False,
        deferred: bool = False,
        countdown_seconds: Optional[int] = None,
    ) -> ExitCode:
        state = self._run(app_id, override=override, deferred=deferred, countdown_seconds=countdown_seconds)
        code = exit_code_for(state, distinct_scheduled_code=self.settings.distinct_scheduled_exit_code)
        self._logger.info("Run for {} finished in state {} (exit {}).", app_id, state.value, int(code))
        return code

    def _run(
        self,
        app_id: str,
        *,
        override: bool,
        deferred: bool,
        countdown_seconds: Optional[int],
    ) -> TerminalState:
        profile = self.registry.get(app_id)
        if profile is None:
            self._logger.error("Unknown application '{}'. Known: {}", app_id, ", ".join(self.registry.ids()))

        if deferred:
            if profile is None:
                return TerminalState.FAILED
            self.report_stage(1, f"Running pre-approved deferred update for {profile.title}.")
            self.notifier.log_activity(
                f"Deferred update approved earlier by the user is starting for {profile.title}.",
                "DeferredUpdateStarted",
            )
            self._announce_approval(profile)
            return self._stop_and_restart(profile, stage=2)

        self.report_stage(1, f"Checking for a pending update for {app_id}.")
        if self.pending_evaluator(profile, override) is PendingState.NOT_PENDING:
            self.report_stage(1, "No update pending; nothing to do.")
            return TerminalState.NOT_PENDING

        self.report_stage(2, "Checking for an active call.")
        if self.call_detector() is CallState.ACTIVE:
            self.report_stage(2, "Active call detected; update postponed.")
            return TerminalState.CALL_ACTIVE

        seconds = self.settings.countdown_seconds if countdown_seconds is None else countdown_seconds
        self.report_stage(3, f"Asking the user to restart {profile.title} ({seconds}s countdown).")
        outcome = self.decide(profile, seconds)
        self._logger.info("Decision for {}: {}", profile.app_id, outcome.kind.value)

        if outcome.proceeds_now:
            if outcome.kind is DecisionKind.TIMED_OUT_DEFAULT:
                self.report_stage(4, "No answer before the countdown ended; restarting now.")
            else:
                self.report_stage(4, "User chose to restart now.")
            self._announce_approval(profile)
            return self._stop_and_restart(profile, stage=5)

        if outcome.kind is DecisionKind.SCHEDULED:
            return self._schedule(profile, outcome)

        self.report_stage(4, "User cancelled the restart.")
        self.notifier.log_activity(f"User postponed the {profile.title} update.", "UpdateCancelled")
        return TerminalState.CANCELLED

    def _schedule(self, profile: AppProfile, outcome: DecisionOutcome) -> TerminalState:
        when = outcome.scheduled_for
        self.report_stage(4, f"User scheduled the restart for {when:%Y-%m-%d %H:%M}.")
        try:
            self.scheduler.schedule_for(profile.app_id, when)
        except SchedulingError as exc:
            self._logger.error("Could not schedule deferred update for {}: {}", profile.app_id, exc)
            self.report_stage(5, "Scheduling failed.")
            return TerminalState.SCHEDULING_FAILED
        self.notifier.log_activity(
            f"User scheduled the {profile.title} update for {when:%Y-%m-%d %H:%M}.",
            "UpdateScheduled",
        )
        self.report_stage(5, "Deferred update registered.")
        return TerminalState.SCHEDULED

    def _stop_and_restart(self, profile: AppProfile, *, stage: int) -> TerminalState:
        self.report_stage(stage, f"Closing {', '.join(profile.process_names) or 'no processes'}.")
        result = self.lifecycle.stop_then_restart(profile.process_names, profile.restart_args)
        for line in result.detail_log:
            self.report_stage(stage, line)

        if result.succeeded:
            self.report_stage(stage + 1, f"{profile.title} restarted.")
            return TerminalState.UPDATED
        if result.error is ProcessErrorKind.RESTART_FAILED:
            self.report_stage(stage + 1, f"{profile.title} was closed but could not be restarted.")
            return TerminalState.RESTART_FAILED
        self.report_stage(stage + 1, f"Could not close {profile.title}.")
        return TerminalState.STOP_FAILED

    def _announce_approval(self, profile: AppProfile) -> None:
        if not profile.announce_approval:
            return
        body = f"User approved installation of {profile.title}."
        self.notifier.alert(profile.title, body)
        self.notifier.broadcast(profile.title, f"{profile.title} approved. Your device will update shortly.")
        self.notifier.log_activity(body, f"{profile.app_id}Approved")
