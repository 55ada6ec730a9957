from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from PySide6.QtCore import QObject, Qt, QTimer, Signal

from typesetgo.core.anticheat import AntiCheatReporter, Dispatcher, Outcome, ValidationService
from typesetgo.core.config import AppConfig
from typesetgo.core.plan import Plan, PlanOrchestrator
from typesetgo.core.results import ResultSink
from typesetgo.core.session import FinishedAttempt, SessionListener, SessionState, TestSession
from typesetgo.core.settings import Difficulty, Mode, QuoteLength, Settings, sanitize_preset_text
from typesetgo.core.texts import TextRepository
from typesetgo.ui.workers import QtDispatcher

logger = logging.getLogger(__name__)


class _SessionBridge(SessionListener):
    """Forwards session hooks to the controller's Qt signals."""

    def __init__(self, controller: "TypingController") -> None:
        self._controller = controller

    def on_text_changed(self, target_text: str) -> None:
        self._controller.textChanged.emit(target_text)

    def on_started(self) -> None:
        self._controller._sync_timers()
        self._controller.stateChanged.emit(SessionState.RUNNING.value)

    def on_keystroke(self) -> None:
        self._controller.keystroke.emit()

    def on_warning(self) -> None:
        self._controller.warning.emit()

    def on_dim_changed(self, dimmed: bool) -> None:
        self._controller.dimChanged.emit(dimmed)

    def on_finished(self, attempt: FinishedAttempt) -> None:
        self._controller._sync_timers()
        self._controller.stateChanged.emit(SessionState.FINISHED.value)
        self._controller.finished.emit(attempt)

    def on_outcome(self, outcome: Outcome) -> None:
        self._controller.outcomeReady.emit(outcome)

    def on_reset(self, is_repeat: bool) -> None:
        self._controller._sync_timers()
        self._controller.stateChanged.emit(SessionState.IDLE.value)

    def on_settings_changed(self, old: Settings, new: Settings) -> None:
        self._controller._on_settings_changed(old, new)

    def on_preset_text_required(self) -> None:
        self._controller.presetTextRequired.emit()


class TypingController(QObject):
    """Qt glue around one :class:`TestSession`.

    Owns the countdown clock and the ghost-writer timers (at most one of
    each, restarted whenever their inputs change), loads word pools and
    quotes in the background, maps keys to session transitions and runs
    plans through a :class:`PlanOrchestrator`.
    """

    textChanged = Signal(str)
    stateChanged = Signal(str)
    statsChanged = Signal(object)
    keystroke = Signal()
    warning = Signal()
    dimChanged = Signal(bool)
    ghostMoved = Signal(float)
    finished = Signal(object)
    outcomeReady = Signal(object)
    presetTextRequired = Signal()
    planChanged = Signal()
    manifestsLoaded = Signal(list, list)

    def __init__(
        self,
        texts: TextRepository,
        config: Optional[AppConfig] = None,
        service: Optional[ValidationService] = None,
        sink: Optional[ResultSink] = None,
        dispatcher: Optional[Dispatcher] = None,
        clock: Callable[[], float] = time.monotonic,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._config = config or AppConfig()
        self._texts = texts
        self._dispatcher = dispatcher or QtDispatcher(self)
        self._reporter = AntiCheatReporter(
            self._dispatcher,
            service=service,
            user_id=self._config.user_id,
            sink=sink,
            clock=clock,
            char_threshold=self._config.progress_char_threshold,
            interval_ms=self._config.progress_interval_ms,
        )
        self._session = TestSession(
            settings=self._config.settings,
            reporter=self._reporter,
            clock=clock,
            lookahead=self._config.lookahead_words,
        )
        self._plan = PlanOrchestrator(self._session)
        self._session.add_listener(_SessionBridge(self))

        self._clock_timer = QTimer(self)
        self._clock_timer.setInterval(self._config.tick_ms)
        self._clock_timer.timeout.connect(self._on_clock_tick)
        self._ghost_timer = QTimer(self)
        self._ghost_timer.setInterval(self._config.tick_ms)
        self._ghost_timer.timeout.connect(self._on_ghost_tick)

    @property
    def session(self) -> TestSession:
        return self._session

    @property
    def plan(self) -> PlanOrchestrator:
        return self._plan

    @property
    def reporter(self) -> AntiCheatReporter:
        return self._reporter

    @property
    def accepts_input(self) -> bool:
        """False while a plan shows its splash or its results instead of a test."""
        return not (self._plan.is_active and (self._plan.is_splash or self._plan.show_results))

    @property
    def clock_active(self) -> bool:
        return self._clock_timer.isActive()

    @property
    def ghost_active(self) -> bool:
        return self._ghost_timer.isActive()

    def start(self) -> None:
        """Load the text data the current settings need; generation follows."""
        self._load_for(self._session.settings)
        self.load_manifests()
        self._session.generate_test()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_input(self, text: str) -> None:
        if not self.accepts_input:
            return
        self._session.handle_input(text)
        self.statsChanged.emit(self._session.snapshot())

    def handle_key(self, key: int, modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier) -> bool:
        """Handle control keys. Returns True when the key was consumed."""
        session = self._session
        if key in (Qt.Key.Key_Tab, Qt.Key.Key_Backtab):
            shift = key == Qt.Key.Key_Backtab or bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
            if shift and not self._plan.is_active and session.settings.mode is not Mode.ZEN:
                session.repeat()
            return True
        if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            if self._plan.is_active and self._plan.is_splash:
                self.start_plan_step()
                return True
            if session.state is SessionState.FINISHED:
                if self._plan.is_active:
                    self.plan_next()
                else:
                    session.next_test()
                return True
            return False
        if key == Qt.Key.Key_Escape and session.state is SessionState.RUNNING:
            session.finish()
            return True
        return False

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, **changes) -> bool:
        return self._session.update_settings(**changes)

    def set_preset_text(self, text: str) -> None:
        """Sanitize and install preset text. Raises ValueError when unusable."""
        self._session.update_settings(preset_text=sanitize_preset_text(text))

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def start_plan(self, plan: Plan) -> bool:
        started = self._plan.start(plan)
        if started:
            self._session.reset()
            self.planChanged.emit()
        return started

    def start_plan_step(self) -> bool:
        generated = self._plan.start_step()
        self.planChanged.emit()
        return generated

    def plan_next(self) -> bool:
        moved = self._plan.next()
        self.planChanged.emit()
        return moved

    def plan_previous(self) -> bool:
        moved = self._plan.previous()
        self.planChanged.emit()
        return moved

    def exit_plan(self) -> None:
        self._plan.exit()
        self.planChanged.emit()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _sync_timers(self) -> None:
        self._clock_timer.stop()
        self._ghost_timer.stop()
        if self._session.state is not SessionState.RUNNING:
            return
        self._clock_timer.start()
        settings = self._session.settings
        if settings.ghost_writer_enabled and settings.ghost_writer_speed > 0:
            self._ghost_timer.start()

    def _on_clock_tick(self) -> None:
        self._session.tick()
        self.statsChanged.emit(self._session.snapshot())

    def _on_ghost_tick(self) -> None:
        self._session.advance_ghost(self._ghost_timer.interval() / 1000.0)
        self.ghostMoved.emit(self._session.ghost_index)

    # ------------------------------------------------------------------
    # Text data
    # ------------------------------------------------------------------

    def _on_settings_changed(self, old: Settings, new: Settings) -> None:
        if old.difficulty != new.difficulty or (new.mode is not Mode.QUOTE and old.mode != new.mode):
            self._load_for(new)
        elif new.mode is Mode.QUOTE and (old.mode is not Mode.QUOTE or old.quote_length != new.quote_length):
            self._load_for(new)
        self._sync_timers()

    def _load_for(self, settings: Settings) -> None:
        if settings.mode is Mode.QUOTE:
            self._load_quotes(settings.quote_length.fetch_key())
        elif settings.mode is not Mode.PRESET:
            self._load_word_pool(settings.difficulty.value)

    def _load_word_pool(self, difficulty: str) -> None:
        def _loaded(words: list[str]) -> None:
            if self._session.settings.difficulty.value != difficulty:
                return
            if not words:
                logger.warning("Word pool %r is empty", difficulty)
            self._session.set_word_pool(words)

        self._dispatcher.submit(
            lambda: self._texts.word_pool(difficulty),
            on_done=_loaded,
            on_error=lambda e: logger.warning("Loading word pool %r failed: %s", difficulty, e),
        )

    def load_manifests(self) -> None:
        """Fetch the available word pools and quote sets for the selection menus."""

        def _loaded(manifests: tuple[list[str], list[str]]) -> None:
            pools, quote_sets = manifests
            difficulties = [d.value for d in Difficulty if d.value in pools]
            lengths = [q.value for q in QuoteLength if q.fetch_key() in quote_sets]
            ignored = (set(pools) - set(difficulties)) | (set(quote_sets) - set(lengths))
            if ignored:
                logger.info("Ignoring unknown text sets: %s", sorted(ignored))
            self.manifestsLoaded.emit(difficulties, lengths)

        self._dispatcher.submit(
            lambda: (self._texts.difficulties(), self._texts.quote_lengths()),
            on_done=_loaded,
            on_error=lambda e: logger.warning("Loading text manifests failed: %s", e),
        )

    def _load_quotes(self, length: str) -> None:
        def _loaded(quotes: list) -> None:
            if self._session.settings.quote_length.fetch_key() != length:
                return
            self._session.set_quotes(quotes)

        self._dispatcher.submit(
            lambda: self._texts.quotes(length),
            on_done=_loaded,
            on_error=lambda e: logger.warning("Loading quotes %r failed: %s", length, e),
        )
