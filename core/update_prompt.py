"""
Restart prompt dialog with a visible countdown.
"""

from __future__ import annotations

from datetime import time

from PySide6.QtCore import QPoint, Qt, QTimer, Signal
from PySide6.QtGui import QCloseEvent, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from core.decision_gate import DEFAULT_SCHEDULE_TIME, DecisionGate
from shared.app_profile import AppProfile
from shared.outcomes import DecisionOutcome
from app_update_gate.app_update_gate import logger as app_logger

TICK_INTERVAL_MS = 1000

_PROMPT_STYLE = """
QDialog#UpdatePrompt { background-color: #1f2937; border: 1px solid #374151; }
QLabel { color: #f9fafb; }
QLabel#PromptTitle { font-size: 15px; font-weight: 600; }
QLabel#CountdownLabel { color: #fbbf24; }
QPushButton { padding: 0 12px; border: 1px solid #4b5563; border-radius: 4px; color: #f9fafb; background: #374151; }
QPushButton#PrimaryButton { background: #059669; border-color: #059669; }
"""


class UpdatePromptDialog(QDialog):
    """Feeds timer ticks and button presses into a ``DecisionGate``."""

    resolved = Signal()

    def __init__(self, profile: AppProfile, gate: DecisionGate, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint | Qt.WindowType.Tool | Qt.WindowType.WindowStaysOnTopHint
        )
        self.setObjectName("UpdatePrompt")
        self.setStyleSheet(_PROMPT_STYLE)

        self._profile = profile
        self._gate = gate

        self._logo_label = QLabel()
        self._logo_label.setFixedSize(48, 48)
        self._apply_logo(profile)

        self._title_label = QLabel(f"{profile.title} update ready")
        self._title_label.setObjectName("PromptTitle")
        self._message_label = QLabel(
            f"{profile.title} needs to restart to finish updating. "
            "Save your work, then restart now or pick a later time."
        )
        self._message_label.setWordWrap(True)
        self._message_label.setMaximumWidth(380)
        self._countdown_label = QLabel()
        self._countdown_label.setObjectName("CountdownLabel")

        self._now_btn = QPushButton("Restart now")
        self._now_btn.setObjectName("PrimaryButton")
        self._schedule_btn = QPushButton(f"Restart at {gate.schedule_at:%H:%M}")
        self._cancel_btn = QPushButton("Not now")

        header = QHBoxLayout()
        header.addWidget(self._logo_label)
        header.addWidget(self._title_label, 1)

        buttons = QHBoxLayout()
        buttons.addStretch()
        for btn in (self._now_btn, self._schedule_btn, self._cancel_btn):
            btn.setMinimumHeight(32)
            buttons.addWidget(btn)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(10)
        layout.addLayout(header)
        layout.addWidget(self._message_label)
        layout.addWidget(self._countdown_label)
        layout.addLayout(buttons)

        self._now_btn.clicked.connect(self._on_now)  # type: ignore[arg-type]
        self._schedule_btn.clicked.connect(self._on_schedule)  # type: ignore[arg-type]
        self._cancel_btn.clicked.connect(self._on_cancel)  # type: ignore[arg-type]

        self._timer = QTimer(self)
        self._timer.setInterval(TICK_INTERVAL_MS)
        self._timer.timeout.connect(self._on_tick)  # type: ignore[arg-type]
        self._refresh_countdown()

    @property
    def gate(self) -> DecisionGate:
        return self._gate

    def present(self) -> None:
        """Show the dialog and start the countdown."""
        self.adjustSize()
        self._position_bottom_right()
        self.show()
        if self._gate.resolved:
            self._finish()
            return
        self._timer.start()

    def _on_tick(self) -> None:
        self._gate.tick()
        self._refresh_countdown()
        self._finish_if_resolved()

    def _on_now(self) -> None:
        self._gate.choose_immediate()
        self._finish_if_resolved()

    def _on_schedule(self) -> None:
        self._gate.choose_schedule()
        self._finish_if_resolved()

    def _on_cancel(self) -> None:
        self._gate.choose_cancel()
        self._finish_if_resolved()

    def _finish_if_resolved(self) -> None:
        if self._gate.resolved:
            self._finish()

    def _finish(self) -> None:
        self._timer.stop()
        if self.isVisible():
            self.accept()
        self.resolved.emit()

    def _refresh_countdown(self) -> None:
        self._countdown_label.setText(f"Restarting automatically in {self._gate.countdown_text()}")

    def _apply_logo(self, profile: AppProfile) -> None:
        if profile.logo_path and profile.logo_path.exists():
            pixmap = QPixmap(str(profile.logo_path))
            if not pixmap.isNull():
                self._logo_label.setPixmap(
                    pixmap.scaled(
                        48,
                        48,
                        Qt.AspectRatioMode.KeepAspectRatio,
                        Qt.TransformationMode.SmoothTransformation,
                    )
                )
                return
        self._logo_label.hide()

    def _position_bottom_right(self) -> None:
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geometry = screen.availableGeometry()
        x = geometry.right() - self.width() - 30
        y = geometry.bottom() - self.height() - 30
        self.move(QPoint(x, y))

    def reject(self) -> None:
        # Escape key; only the three buttons or the countdown may close the prompt.
        if self._gate.resolved:
            super().reject()

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        if self._gate.resolved:
            super().closeEvent(event)
        else:
            event.ignore()


class QtDecisionPrompt:
    """Callable presenter used by the workflow: blocks until the gate resolves."""

    def __init__(self, *, schedule_at: time = DEFAULT_SCHEDULE_TIME) -> None:
        self.schedule_at = schedule_at
        self._logger = app_logger.get_logger()

    def __call__(self, profile: AppProfile, countdown_seconds: int) -> DecisionOutcome:
        app = QApplication.instance() or QApplication([])
        gate = DecisionGate(countdown_seconds, schedule_at=self.schedule_at)
        dialog = UpdatePromptDialog(profile, gate)
        self._logger.info("Presenting restart prompt for {} ({}s countdown).", profile.app_id, countdown_seconds)
        dialog.present()
        if not gate.resolved:
            dialog.exec()
        outcome = gate.outcome
        if outcome is None:
            # dialog torn down externally, e.g. session logoff
            outcome = DecisionOutcome.timed_out()
        dialog.deleteLater()
        app.processEvents()
        return outcome
