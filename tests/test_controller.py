"""Tests for typesetgo.ui.controller – Qt glue around the typing session."""

from __future__ import annotations

from pathlib import Path

import pytest
from PySide6.QtCore import Qt

from typesetgo.core.anticheat import ImmediateDispatcher, Unverified
from typesetgo.core.config import AppConfig
from typesetgo.core.plan import parse_plan
from typesetgo.core.session import SessionState
from typesetgo.core.settings import Settings
from typesetgo.core.texts import TextRepository
from typesetgo.ui.controller import TypingController


@pytest.fixture()
def texts(tmp_path: Path) -> TextRepository:
    (tmp_path / "words").mkdir()
    (tmp_path / "quotes").mkdir()
    (tmp_path / "words" / "beginner.yaml").write_text("words: [a]\n", encoding="utf-8")
    (tmp_path / "words" / "hard.yaml").write_text("words: [zz]\n", encoding="utf-8")
    (tmp_path / "quotes" / "medium.yaml").write_text("quotes:\n  - quote: hi there\n    author: Me\n", encoding="utf-8")
    return TextRepository(tmp_path)


def make_controller(qapp, texts, clock, sink=None, **settings) -> TypingController:
    config = AppConfig(settings=Settings().merged(settings))
    controller = TypingController(texts, config=config, sink=sink, dispatcher=ImmediateDispatcher(), clock=clock)
    controller.start()
    return controller


# ---------------------------------------------------------------------------
# Loading and typing
# ---------------------------------------------------------------------------

class TestLoading:
    def test_start_generates_from_pool(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="words", word_target=3)
        assert controller.session.target_text == "a a a"

    def test_difficulty_change_reloads_pool(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="words", word_target=2)
        seen = []
        controller.textChanged.connect(seen.append)
        controller.update_settings(difficulty="hard")
        assert controller.session.target_text == "zz zz"
        assert seen[-1] == "zz zz"

    def test_quote_mode_loads_quotes(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        controller.update_settings(mode="quote")
        assert controller.session.target_text == "hi there"
        assert controller.session.current_quote.author == "Me"

    def test_start_publishes_manifests(self, qapp, texts, clock):
        (texts.data_dir / "words" / "custom.yaml").write_text("words: [q]\n", encoding="utf-8")
        controller = TypingController(texts, dispatcher=ImmediateDispatcher(), clock=clock)
        published = []
        controller.manifestsLoaded.connect(lambda d, q: published.append((d, q)))
        controller.start()
        assert published == [(["beginner", "hard"], ["all", "medium"])]

    def test_quote_length_from_menu_value(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="quote", quote_length="short")
        assert controller.session.target_text != "hi there"
        controller.update_settings(quote_length="medium")
        assert controller.session.target_text == "hi there"

    def test_preset_mode_asks_for_text(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        asked = []
        controller.presetTextRequired.connect(lambda: asked.append(True))
        controller.update_settings(mode="preset")
        assert asked == [True]
        controller.set_preset_text("  go   now ")
        assert controller.session.target_text == "go now"

    def test_bad_preset_text(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="preset")
        with pytest.raises(ValueError):
            controller.set_preset_text("   ")


class TestTyping:
    def test_input_starts_clock(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="time", duration=15)
        stats = []
        controller.statsChanged.connect(stats.append)
        assert not controller.clock_active
        controller.handle_input("a")
        assert controller.session.state is SessionState.RUNNING
        assert controller.clock_active
        assert not controller.ghost_active
        assert stats

    def test_clock_tick_finishes_timed_test(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="time", duration=15)
        states = []
        controller.stateChanged.connect(states.append)
        controller.handle_input("a")
        clock.advance(15)
        controller._on_clock_tick()
        assert controller.session.state is SessionState.FINISHED
        assert states[-1] == "finished"
        assert not controller.clock_active

    def test_ghost_timer(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, ghost_writer_enabled=True, ghost_writer_speed=60)
        moves = []
        controller.ghostMoved.connect(moves.append)
        controller.handle_input("a")
        assert controller.ghost_active
        controller._on_ghost_tick()
        assert moves[-1] == pytest.approx(0.5)

    def test_outcome_signal(self, qapp, texts, clock, sink):
        controller = make_controller(qapp, texts, clock, sink=sink, mode="words", word_target=1)
        outcomes = []
        controller.outcomeReady.connect(outcomes.append)
        controller.handle_input("a")
        controller.handle_input("a ")
        assert isinstance(outcomes[0], Unverified)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

class TestKeys:
    def test_escape_finishes(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        controller.handle_input("a")
        assert controller.handle_key(Qt.Key.Key_Escape)
        assert controller.session.state is SessionState.FINISHED

    def test_escape_when_idle_not_consumed(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        assert not controller.handle_key(Qt.Key.Key_Escape)

    def test_shift_tab_repeats(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="words", word_target=3)
        controller.handle_input("a a")
        assert controller.handle_key(Qt.Key.Key_Tab, Qt.KeyboardModifier.ShiftModifier)
        assert controller.session.is_repeated
        assert controller.session.state is SessionState.IDLE

    def test_backtab_repeats(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="words", word_target=3)
        controller.handle_input("a")
        controller.handle_key(Qt.Key.Key_Backtab)
        assert controller.session.is_repeated

    def test_plain_tab_is_swallowed(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="words", word_target=3)
        controller.handle_input("a")
        assert controller.handle_key(Qt.Key.Key_Tab)
        assert controller.session.state is SessionState.RUNNING

    def test_no_repeat_in_zen(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="zen")
        controller.handle_input("a")
        controller.handle_key(Qt.Key.Key_Tab, Qt.KeyboardModifier.ShiftModifier)
        assert controller.session.state is SessionState.RUNNING

    def test_enter_after_finish_generates_next(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock, mode="words", word_target=1)
        controller.handle_input("a ")
        assert controller.session.state is SessionState.FINISHED
        assert controller.handle_key(Qt.Key.Key_Return)
        assert controller.session.state is SessionState.IDLE
        assert not controller.session.is_repeated

    def test_enter_while_running_not_consumed(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        controller.handle_input("a")
        assert not controller.handle_key(Qt.Key.Key_Enter)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

PLAN = parse_plan(
    "drill",
    {
        "title": "Drill",
        "steps": [
            {"id": "first", "mode": "words", "settings": {"word_target": 2}},
            {"id": "second", "mode": "words", "settings": {"word_target": 1}},
        ],
    },
)


class TestPlans:
    def test_plan_flow(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        changes = []
        controller.planChanged.connect(lambda: changes.append(True))

        assert controller.start_plan(PLAN)
        assert controller.plan.is_splash
        assert controller.handle_key(Qt.Key.Key_Return)
        assert not controller.plan.is_splash
        assert controller.session.target_text == "a a"

        controller.handle_input("a")
        controller.handle_input("a a ")
        assert "first" in controller.plan.results

        # repeating is disabled inside a plan
        controller.handle_key(Qt.Key.Key_Tab, Qt.KeyboardModifier.ShiftModifier)
        assert controller.session.state is SessionState.FINISHED

        assert controller.handle_key(Qt.Key.Key_Return)
        assert controller.plan.index == 1
        assert controller.plan.is_splash
        assert controller.session.state is SessionState.IDLE
        assert len(changes) == 3

    def test_exit_plan(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        controller.start_plan(PLAN)
        controller.exit_plan()
        assert not controller.plan.is_active

    def test_typing_on_splash_is_ignored(self, qapp, texts, clock, sink):
        controller = make_controller(qapp, texts, clock, sink=sink, mode="words", word_target=1)
        controller.start_plan(PLAN)
        assert not controller.accepts_input
        controller.handle_input("a ")
        assert controller.session.state is SessionState.IDLE
        assert sink.saved == []
        assert controller.plan.results == {}

    def test_results_view_blocks_input(self, qapp, texts, clock):
        controller = make_controller(qapp, texts, clock)
        controller.start_plan(PLAN)
        controller.handle_key(Qt.Key.Key_Return)
        controller.handle_input("a a ")
        controller.handle_key(Qt.Key.Key_Return)
        controller.handle_key(Qt.Key.Key_Return)
        assert controller.accepts_input
        controller.handle_input("a ")
        assert "second" in controller.plan.results
        controller.handle_key(Qt.Key.Key_Return)
        assert controller.plan.show_results
        assert not controller.accepts_input
