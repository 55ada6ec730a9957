from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QAction, QCloseEvent, QKeyEvent
from PySide6.QtWidgets import (
    QInputDialog,
    QLabel,
    QLineEdit,
    QMainWindow,
    QVBoxLayout,
    QWidget,
)

from typesetgo.core.anticheat import Outcome, SaveFailed, Unverified, Verified
from typesetgo.core.plan import PlanRepository
from typesetgo.core.session import FinishedAttempt, SessionState, Snapshot
from typesetgo.core.settings import TIME_PRESETS, WORD_PRESETS, Mode
from typesetgo.ui.colors import ThemeColors, dimmed
from typesetgo.ui.controller import TypingController
from typesetgo.ui.typing_widgets import TypingTextLabel


def format_time(seconds: int) -> str:
    h, rest = divmod(max(0, int(seconds)), 3600)
    m, s = divmod(rest, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    if m > 0:
        return f"{m}:{s:02d}"
    return f"{s}s"


class MainWindow(QMainWindow):
    """Single-screen typing window: target text, hidden input, stats and plan status."""

    def __init__(self, controller: TypingController, plans: Optional[PlanRepository] = None) -> None:
        super().__init__()
        self._controller = controller
        self._plans = plans
        self._dimmed = False
        self.setWindowTitle("TypeSetGo")

        self._build_ui()
        self._build_menus()
        self._connect_signals()
        QTimer.singleShot(0, self._controller.start)

    def _build_ui(self) -> None:
        central = QWidget()
        central.setStyleSheet(f"background: {ThemeColors.BACKGROUND};")
        layout = QVBoxLayout(central)
        layout.setContentsMargins(48, 32, 48, 32)
        layout.setSpacing(16)

        self.plan_label = QLabel("")
        self.plan_label.setAlignment(Qt.AlignCenter)
        self.plan_label.setVisible(False)

        self.stats_label = QLabel("")
        self.stats_label.setAlignment(Qt.AlignCenter)

        self.text_label = TypingTextLabel()

        self.quote_label = QLabel("")
        self.quote_label.setAlignment(Qt.AlignRight)

        self.status_label = QLabel("")
        self.status_label.setAlignment(Qt.AlignCenter)

        self.input_box = QLineEdit()
        self.input_box.setFixedHeight(0)
        self.input_box.setStyleSheet("background: transparent; border: none; color: transparent;")
        self.input_box.installEventFilter(self)

        layout.addWidget(self.plan_label)
        layout.addWidget(self.stats_label)
        layout.addStretch(1)
        layout.addWidget(self.text_label)
        layout.addWidget(self.quote_label)
        layout.addStretch(1)
        layout.addWidget(self.status_label)
        layout.addWidget(self.input_box)
        self.setCentralWidget(central)
        self._apply_chrome_colors()
        self.input_box.setFocus()

    def _build_menus(self) -> None:
        mode_menu = self.menuBar().addMenu("Mode")
        for mode in Mode:
            action = QAction(mode.value, self)
            action.triggered.connect(lambda _=False, m=mode: self._select_mode(m))
            mode_menu.addAction(action)

        length_menu = self.menuBar().addMenu("Length")
        for seconds in TIME_PRESETS:
            action = QAction(f"{seconds}s", self)
            action.triggered.connect(lambda _=False, s=seconds: self._controller.update_settings(duration=s))
            length_menu.addAction(action)
        length_menu.addSeparator()
        for count in WORD_PRESETS:
            action = QAction(f"{count} words", self)
            action.triggered.connect(lambda _=False, n=count: self._controller.update_settings(word_target=n))
            length_menu.addAction(action)

        self.difficulty_menu = self.menuBar().addMenu("Difficulty")
        self.quote_length_menu = self.menuBar().addMenu("Quote length")

        options_menu = self.menuBar().addMenu("Options")
        for name in ("punctuation", "numbers", "capitalization", "ghost_writer_enabled"):
            action = QAction(name.replace("_", " "), self)
            action.setCheckable(True)
            action.setChecked(bool(getattr(self._controller.session.settings, name)))
            action.toggled.connect(lambda checked, key=name: self._controller.update_settings(**{key: checked}))
            options_menu.addAction(action)

        if self._plans is None:
            return
        plan_menu = self.menuBar().addMenu("Plans")
        for plan in self._plans.all():
            action = QAction(plan.title, self)
            action.triggered.connect(lambda _=False, p=plan: self._controller.start_plan(p))
            plan_menu.addAction(action)
        plan_menu.addSeparator()
        exit_action = QAction("Exit plan", self)
        exit_action.triggered.connect(self._controller.exit_plan)
        plan_menu.addAction(exit_action)

    def _on_manifests_loaded(self, difficulties: list, quote_lengths: list) -> None:
        self.difficulty_menu.clear()
        for name in difficulties:
            action = QAction(name, self)
            action.triggered.connect(lambda _=False, d=name: self._controller.update_settings(difficulty=d))
            self.difficulty_menu.addAction(action)
        self.quote_length_menu.clear()
        for name in quote_lengths:
            action = QAction(name, self)
            action.triggered.connect(lambda _=False, q=name: self._controller.update_settings(quote_length=q))
            self.quote_length_menu.addAction(action)

    def _select_mode(self, mode: Mode) -> None:
        if self._controller.plan.is_active:
            self._controller.exit_plan()
        self._controller.update_settings(mode=mode)
        self.input_box.setFocus()

    def _connect_signals(self) -> None:
        c = self._controller
        self.input_box.textEdited.connect(c.handle_input)
        c.textChanged.connect(self._on_text_changed)
        c.statsChanged.connect(self._on_stats_changed)
        c.ghostMoved.connect(self.text_label.set_ghost)
        c.dimChanged.connect(self._on_dim_changed)
        c.stateChanged.connect(self._on_state_changed)
        c.finished.connect(self._on_finished)
        c.outcomeReady.connect(self._on_outcome)
        c.presetTextRequired.connect(self._ask_preset_text)
        c.planChanged.connect(self._refresh_plan)
        c.manifestsLoaded.connect(self._on_manifests_loaded)

    def eventFilter(self, obj, event) -> bool:
        """Route control keys on the hidden input to the controller."""
        if obj == self.input_box and event.type() == event.Type.KeyPress:
            if self._on_key_press(event):
                return True
        return super().eventFilter(obj, event)

    def _on_key_press(self, event: QKeyEvent) -> bool:
        blocked = self._controller.session.state is SessionState.FINISHED or not self._controller.accepts_input
        if blocked and event.text() and event.text().isprintable():
            return True
        return self._controller.handle_key(event.key(), event.modifiers())

    def _on_text_changed(self, target: str) -> None:
        self.text_label.set_target(target)
        quote = self._controller.session.current_quote
        self.quote_label.setText(f"- {quote.author}" if quote and quote.author else "")

    def _on_stats_changed(self, snapshot: Snapshot) -> None:
        session = self._controller.session
        self.text_label.set_typed(session.typed_text)
        parts = [f"{snapshot.wpm:.0f} wpm", f"{snapshot.accuracy:.0f}%"]
        if session.settings.is_timed:
            parts.insert(0, format_time(session.time_remaining))
        self.stats_label.setText("   ".join(parts))

    def _on_state_changed(self, state: str) -> None:
        if state == "idle":
            self.input_box.clear()
            self.text_label.set_typed("")
            self.text_label.set_ghost(None)
            self.status_label.setText("")
            self.stats_label.setText("")
        self.input_box.setFocus()

    def _on_dim_changed(self, value: bool) -> None:
        self._dimmed = value
        self._apply_chrome_colors()

    def _on_finished(self, attempt: FinishedAttempt) -> None:
        wrong = len(attempt.word_results.incorrect_words)
        self.status_label.setText(
            f"{attempt.wpm:.0f} wpm · {attempt.accuracy:.1f}% · "
            f"{attempt.stats.correct}/{attempt.stats.incorrect}/{attempt.stats.missed}/{attempt.stats.extra} · "
            f"{wrong} wrong words · enter for next, shift+tab to repeat"
        )

    def _on_outcome(self, outcome: Outcome) -> None:
        text = self.status_label.text()
        if isinstance(outcome, Verified):
            note = "verified" if outcome.is_valid else f"not verified: {outcome.invalid_reason}"
        elif isinstance(outcome, Unverified):
            note = "saved (unverified)"
        elif isinstance(outcome, SaveFailed):
            note = "could not save result"
        else:
            return
        self.status_label.setText(f"{text} · {note}" if text else note)

    def _ask_preset_text(self) -> None:
        text, ok = QInputDialog.getMultiLineText(self, "Preset text", "Text to type:")
        if not ok:
            return
        try:
            self._controller.set_preset_text(text)
        except ValueError as e:
            self.status_label.setText(str(e))

    def _refresh_plan(self) -> None:
        plan = self._controller.plan
        if not plan.is_active or plan.plan is None:
            self.plan_label.setVisible(False)
            return
        self.plan_label.setVisible(True)
        if plan.show_results:
            summary = plan.summary()
            self.plan_label.setText(
                f"{plan.plan.title}: {summary.completed}/{summary.total_steps} steps · "
                f"avg {summary.average_wpm:.0f} wpm · avg {summary.average_accuracy:.0f}% · "
                f"{format_time(summary.total_time_ms // 1000)}"
            )
            return
        item = plan.current_item
        step = f"Step {plan.index + 1}/{len(plan.plan)}"
        title = item.title if item and item.title else ""
        if plan.is_splash:
            self.plan_label.setText(f"{step} · {title} · press enter to start")
        else:
            self.plan_label.setText(f"{step} · {title}")

    def _apply_chrome_colors(self) -> None:
        color = dimmed(ThemeColors.TEXT_MUTED, self._dimmed)
        for label in (self.plan_label, self.stats_label, self.quote_label, self.status_label):
            label.setStyleSheet(f"color: {color}; font-size: 16px;")

    def closeEvent(self, event: QCloseEvent) -> None:
        """Drop any open anti-cheat session when closing the app."""
        self._controller.reporter.cancel()
        super().closeEvent(event)
