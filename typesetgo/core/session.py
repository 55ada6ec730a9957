from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from typesetgo.core import scoring
from typesetgo.core.anticheat import AntiCheatReporter, Outcome
from typesetgo.core.results import ResultSummary
from typesetgo.core.settings import Mode, Settings, needs_regeneration
from typesetgo.core.texts import Quote
from typesetgo.core.words import (
    INITIAL_BATCH,
    LOOKAHEAD_WORDS,
    GenerateOptions,
    extend_target,
    generate_words,
)

logger = logging.getLogger(__name__)

WARNING_SECONDS = 5
WARNING_MIN_DURATION = 10
DIM_AFTER_SECONDS = 2.0


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True)
class Snapshot:
    """Live numbers for the stats line."""

    wpm: float
    accuracy: float
    progress: float
    words_typed: int
    elapsed_ms: int
    is_finished: bool


@dataclass(frozen=True)
class FinishedAttempt:
    """Everything known about an attempt at the moment it finished."""

    typed_text: str
    target_text: str
    settings: Settings
    stats: scoring.Stats
    word_results: scoring.WordResults
    wpm: float
    accuracy: float
    elapsed_ms: int

    def summary(self) -> ResultSummary:
        return ResultSummary(
            wpm=round(self.wpm),
            accuracy=round(self.accuracy, 1),
            mode=self.settings.mode.value,
            duration_ms=self.elapsed_ms,
            word_count=len(self.typed_text) // 5,
            difficulty=self.settings.difficulty.value,
            punctuation=self.settings.punctuation,
            numbers=self.settings.numbers,
            capitalization=self.settings.capitalization,
            words_correct=len(self.word_results.correct_words),
            words_incorrect=len(self.word_results.incorrect_words),
            chars_missed=self.stats.missed,
            chars_extra=self.stats.extra,
        )


class SessionListener:
    """Side-effect hooks. Subclass and override what you need."""

    def on_text_changed(self, target_text: str) -> None:
        pass

    def on_started(self) -> None:
        pass

    def on_keystroke(self) -> None:
        pass

    def on_warning(self) -> None:
        pass

    def on_dim_changed(self, dimmed: bool) -> None:
        pass

    def on_finished(self, attempt: FinishedAttempt) -> None:
        pass

    def on_outcome(self, outcome: Outcome) -> None:
        pass

    def on_reset(self, is_repeat: bool) -> None:
        pass

    def on_settings_changed(self, old: Settings, new: Settings) -> None:
        pass

    def on_preset_text_required(self) -> None:
        pass


class TestSession:
    """One typing test attempt: idle -> running -> finished, and back on reset.

    The session owns the target text, the raw typed text and the attempt's
    timers.  Scores are recomputed from scratch on every keystroke so
    backspacing needs no bookkeeping.  Completion depends on the mode:

      * **time** – the clock reaches the configured duration.
      * **words** – the target word count is reached and committed with a space.
      * **quote** / **preset** – the typed length equals the target length.
      * **zen** – only an explicit :meth:`finish` (Escape).

    Word pools and quotes arrive asynchronously; until they do,
    :meth:`generate_test` is a no-op that is retried when the data lands.
    """

    __test__ = False

    def __init__(
        self,
        settings: Optional[Settings] = None,
        reporter: Optional[AntiCheatReporter] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        lookahead: int = LOOKAHEAD_WORDS,
    ) -> None:
        self._settings = settings or Settings()
        self._reporter = reporter
        self._clock = clock
        self._rng = rng or random.Random()
        self._lookahead = lookahead
        self._listeners: List[SessionListener] = []

        self._word_pool: List[str] = []
        self._quotes: List[Quote] = []
        self._current_quote: Optional[Quote] = None
        self._pending_generation = False

        self._target = ""
        self._typed = ""
        self._state = SessionState.IDLE
        self._start_time: Optional[float] = None
        self._last_key_time: Optional[float] = None
        self._elapsed_ms = 0
        self._ghost_index = 0.0
        self._is_repeated = False
        self._warning_played = False
        self._ui_dimmed = False
        self._stats = scoring.Stats()

    # ------------------------------------------------------------------
    # Listeners and data
    # ------------------------------------------------------------------

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_word_pool(self, words: Sequence[str]) -> None:
        """Install a freshly loaded word pool; runs a deferred generation."""
        self._word_pool = [w for w in words if w]
        if self._pending_generation and self._word_pool and self._uses_word_pool():
            self.generate_test()

    def set_quotes(self, quotes: Sequence[Quote]) -> None:
        self._quotes = list(quotes)
        if self._pending_generation and self._quotes and self._settings.mode is Mode.QUOTE:
            self.generate_test()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def target_text(self) -> str:
        return self._target

    @property
    def typed_text(self) -> str:
        return self._typed

    @property
    def stats(self) -> scoring.Stats:
        return self._stats

    @property
    def word_results(self) -> scoring.WordResults:
        return scoring.word_results(self._typed, self._target)

    @property
    def accuracy(self) -> float:
        return scoring.accuracy(self._stats, len(self._typed))

    @property
    def wpm(self) -> float:
        return scoring.wpm(len(self._typed), self._elapsed_ms)

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def time_remaining(self) -> int:
        """Whole seconds left on the clock; 0 for untimed modes."""
        if not self._settings.is_timed:
            return 0
        return max(0, self._settings.duration - self._elapsed_ms // 1000)

    @property
    def ghost_index(self) -> float:
        return self._ghost_index

    @property
    def is_repeated(self) -> bool:
        return self._is_repeated

    @property
    def warning_played(self) -> bool:
        return self._warning_played

    @property
    def ui_dimmed(self) -> bool:
        return self._ui_dimmed

    @property
    def current_quote(self) -> Optional[Quote]:
        return self._current_quote

    @property
    def pending_generation(self) -> bool:
        return self._pending_generation

    def snapshot(self) -> Snapshot:
        target_length = len(self._target)
        return Snapshot(
            wpm=round(self.wpm),
            accuracy=self.accuracy,
            progress=(len(self._typed) / target_length) * 100.0 if target_length else 0.0,
            words_typed=len(self._typed) // 5,
            elapsed_ms=self._elapsed_ms,
            is_finished=self._state is SessionState.FINISHED,
        )

    # ------------------------------------------------------------------
    # Settings and text generation
    # ------------------------------------------------------------------

    def update_settings(self, **changes) -> bool:
        return self.apply_settings(self._settings.merged(changes))

    def apply_settings(self, settings: Settings, regenerate: bool = True) -> bool:
        """Swap in new settings. Returns True when a new test was generated."""
        old, self._settings = self._settings, settings
        if old == settings:
            return False
        if old.difficulty != settings.difficulty:
            self._word_pool = []
        if old.quote_length != settings.quote_length:
            self._quotes = []
        for listener in list(self._listeners):
            listener.on_settings_changed(old, settings)
        if regenerate and needs_regeneration(old, settings):
            return self.generate_test()
        return False

    def generate_test(self) -> bool:
        """Build a fresh target text for the current mode and reset the attempt."""
        settings = self._settings
        if settings.mode is Mode.QUOTE:
            if not self._quotes:
                logger.info("Quotes not loaded yet, deferring test generation")
                self._pending_generation = True
                return False
            self._current_quote = self._rng.choice(self._quotes)
            text = self._current_quote.quote
        elif settings.mode is Mode.PRESET:
            if not settings.preset_text:
                self._pending_generation = False
                for listener in list(self._listeners):
                    listener.on_preset_text_required()
                return False
            self._current_quote = None
            text = settings.preset_text
        else:
            if not self._word_pool:
                logger.info("Word pool not loaded yet, deferring test generation")
                self._pending_generation = True
                return False
            self._current_quote = None
            if settings.mode is Mode.WORDS and settings.word_target > 0:
                count = settings.word_target
            else:
                count = INITIAL_BATCH
            text = generate_words(count, self._word_pool, self._options(), self._rng)

        self._pending_generation = False
        self._target = text
        self.reset(is_repeat=False)
        for listener in list(self._listeners):
            listener.on_text_changed(self._target)
        return True

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def handle_input(self, value: str) -> None:
        """Feed the full contents of the input box after a keystroke."""
        if self._state is SessionState.FINISHED:
            return
        if self._state is SessionState.IDLE:
            if not value:
                return
            self._start()

        now = self._clock()
        self._typed = value
        self._last_key_time = now
        self._set_dimmed(False)
        self._stats = scoring.score(self._typed, self._target)
        for listener in list(self._listeners):
            listener.on_keystroke()
        if self._reporter is not None:
            self._reporter.on_progress(len(self._typed))

        settings = self._settings
        if settings.mode in (Mode.QUOTE, Mode.PRESET):
            if len(value) == len(self._target):
                self.finish()
            return

        if settings.is_streaming and self._word_pool:
            extended = extend_target(
                value,
                self._target,
                self._word_pool,
                self._options(),
                self._lookahead,
                self._rng,
            )
            if extended != self._target:
                self._target = extended
                self._stats = scoring.score(self._typed, self._target)
                for listener in list(self._listeners):
                    listener.on_text_changed(self._target)

        if settings.mode is Mode.WORDS and settings.word_target > 0:
            if value.endswith(" ") and len(value.split()) >= settings.word_target:
                self.finish()

    def tick(self) -> None:
        """Clock callback: refresh elapsed time, then run time-based transitions."""
        if self._state is not SessionState.RUNNING or self._start_time is None:
            return
        now = self._clock()
        self._elapsed_ms = int((now - self._start_time) * 1000)

        settings = self._settings
        if settings.is_timed and settings.duration > 0:
            limit_ms = settings.duration * 1000
            if (
                not self._warning_played
                and settings.duration >= WARNING_MIN_DURATION
                and self._elapsed_ms >= limit_ms - WARNING_SECONDS * 1000
            ):
                self._warning_played = True
                for listener in list(self._listeners):
                    listener.on_warning()
            if self._elapsed_ms >= limit_ms:
                self.finish()
                return

        if self._last_key_time is not None and now - self._last_key_time >= DIM_AFTER_SECONDS:
            self._set_dimmed(True)

    def advance_ghost(self, seconds: float) -> None:
        """Move the pacing cursor forward by ``seconds`` at the ghost-writer speed."""
        settings = self._settings
        if not settings.ghost_writer_enabled or self._state is not SessionState.RUNNING:
            return
        chars_per_second = settings.ghost_writer_speed * 5 / 60
        self._ghost_index = min(self._ghost_index + chars_per_second * seconds, float(len(self._target)))

    def finish(self) -> Optional[FinishedAttempt]:
        """End a running attempt (completion or Escape). No-op otherwise."""
        if self._state is not SessionState.RUNNING:
            return None
        if self._start_time is not None:
            self._elapsed_ms = int((self._clock() - self._start_time) * 1000)
        self._state = SessionState.FINISHED
        self._set_dimmed(False)

        attempt = FinishedAttempt(
            typed_text=self._typed,
            target_text=self._target,
            settings=self._settings,
            stats=self._stats,
            word_results=self.word_results,
            wpm=self.wpm,
            accuracy=self.accuracy,
            elapsed_ms=self._elapsed_ms,
        )
        logger.info(
            "Test finished: mode=%s wpm=%.0f accuracy=%.1f elapsed=%dms",
            self._settings.mode.value,
            attempt.wpm,
            attempt.accuracy,
            attempt.elapsed_ms,
        )
        for listener in list(self._listeners):
            listener.on_finished(attempt)
        if self._reporter is not None:
            self._reporter.finish(attempt.typed_text, attempt.elapsed_ms, attempt.summary(), self._deliver_outcome)
        return attempt

    def repeat(self) -> None:
        """Retype the same target text (Shift+Tab)."""
        self.reset(is_repeat=True)

    def next_test(self) -> bool:
        """Generate a new test (Enter after finishing)."""
        return self.generate_test()

    def reset(self, is_repeat: bool = False) -> None:
        """Back to idle with the current target; cancels any open anti-cheat session."""
        if self._reporter is not None:
            self._reporter.cancel()
        self._typed = ""
        self._state = SessionState.IDLE
        self._start_time = None
        self._last_key_time = None
        self._elapsed_ms = 0
        self._ghost_index = 0.0
        self._is_repeated = is_repeat
        self._warning_played = False
        self._set_dimmed(False)
        self._stats = scoring.Stats()
        for listener in list(self._listeners):
            listener.on_reset(is_repeat)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self) -> None:
        self._state = SessionState.RUNNING
        self._start_time = self._clock()
        self._elapsed_ms = 0
        if self._reporter is not None:
            self._reporter.begin(self._settings, self._target)
        for listener in list(self._listeners):
            listener.on_started()

    def _set_dimmed(self, dimmed: bool) -> None:
        if self._ui_dimmed == dimmed:
            return
        self._ui_dimmed = dimmed
        for listener in list(self._listeners):
            listener.on_dim_changed(dimmed)

    def _deliver_outcome(self, outcome: Outcome) -> None:
        for listener in list(self._listeners):
            listener.on_outcome(outcome)

    def _uses_word_pool(self) -> bool:
        return self._settings.mode in (Mode.ZEN, Mode.TIME, Mode.WORDS)

    def _options(self) -> GenerateOptions:
        return GenerateOptions(
            punctuation=self._settings.punctuation,
            numbers=self._settings.numbers,
            capitalization=self._settings.capitalization,
        )
