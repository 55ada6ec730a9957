"""Tests for typesetgo.core.settings – test configuration."""

from __future__ import annotations

import pytest

from typesetgo.core.settings import (
    MAX_PRESET_LENGTH,
    Difficulty,
    Mode,
    PresetModeType,
    QuoteLength,
    Settings,
    changed_fields,
    needs_regeneration,
    sanitize_preset_text,
)


# ---------------------------------------------------------------------------
# Settings defaults and merging
# ---------------------------------------------------------------------------

class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.mode is Mode.ZEN
        assert s.duration == 30
        assert s.word_target == 25
        assert s.difficulty is Difficulty.BEGINNER
        assert s.quote_length is QuoteLength.ALL
        assert s.ghost_writer_speed == 40
        assert not s.ghost_writer_enabled

    def test_merged_coerces_enums(self):
        s = Settings().merged({"mode": "words", "difficulty": "hard"})
        assert s.mode is Mode.WORDS
        assert s.difficulty is Difficulty.HARD

    def test_merged_keeps_original(self):
        base = Settings()
        base.merged({"duration": 60})
        assert base.duration == 30

    def test_merged_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown setting"):
            Settings().merged({"colour": "red"})

    def test_merged_bad_enum_value(self):
        with pytest.raises(ValueError):
            Settings().merged({"mode": "marathon"})

    def test_merged_converts_numeric_text(self):
        s = Settings().merged({"duration": "15", "word_target": "2"})
        assert s.duration == 15
        assert s.word_target == 2

    @pytest.mark.parametrize(
        "overrides",
        [{"duration": "soon"}, {"word_target": None}, {"duration": True}, {"numbers": "yes"}, {"preset_text": ["a"]}],
    )
    def test_merged_rejects_wrong_types(self, overrides):
        with pytest.raises(ValueError):
            Settings().merged(overrides)

    def test_to_dict_uses_plain_values(self):
        d = Settings(mode=Mode.TIME).to_dict()
        assert d["mode"] == "time"
        assert d["preset_mode_type"] == "finish"


# ---------------------------------------------------------------------------
# Derived flags
# ---------------------------------------------------------------------------

class TestModeFlags:
    def test_time_is_timed(self):
        assert Settings(mode=Mode.TIME).is_timed

    def test_preset_time_is_timed(self):
        assert Settings(mode=Mode.PRESET, preset_mode_type=PresetModeType.TIME).is_timed
        assert not Settings(mode=Mode.PRESET).is_timed

    @pytest.mark.parametrize("mode", [Mode.TIME, Mode.ZEN])
    def test_streaming_modes(self, mode):
        assert Settings(mode=mode).is_streaming

    def test_words_with_zero_target_streams(self):
        assert Settings(mode=Mode.WORDS, word_target=0).is_streaming
        assert not Settings(mode=Mode.WORDS, word_target=10).is_streaming

    def test_quote_length_fetch_key(self):
        assert QuoteLength.ALL.fetch_key() == "medium"
        assert QuoteLength.XL.fetch_key() == "xl"


# ---------------------------------------------------------------------------
# Regeneration
# ---------------------------------------------------------------------------

class TestRegeneration:
    def test_changed_fields(self):
        assert changed_fields(Settings(), Settings(duration=60, numbers=True)) == {"duration", "numbers"}

    def test_mode_change_regenerates(self):
        assert needs_regeneration(Settings(), Settings(mode=Mode.WORDS))

    def test_ghost_writer_does_not_regenerate(self):
        assert not needs_regeneration(Settings(), Settings(ghost_writer_enabled=True, ghost_writer_speed=80))

    def test_sound_does_not_regenerate(self):
        assert not needs_regeneration(Settings(), Settings(sound_enabled=False))


# ---------------------------------------------------------------------------
# Preset text
# ---------------------------------------------------------------------------

class TestSanitizePresetText:
    def test_collapses_whitespace(self):
        assert sanitize_preset_text("  hello \n\n  world\t ") == "hello world"

    def test_strips_non_ascii(self):
        assert sanitize_preset_text("café olé") == "caf ol"

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            sanitize_preset_text(" \n ")

    def test_too_long_raises(self):
        with pytest.raises(ValueError):
            sanitize_preset_text("a" * (MAX_PRESET_LENGTH + 1))

    def test_max_length_ok(self):
        assert len(sanitize_preset_text("a" * MAX_PRESET_LENGTH)) == MAX_PRESET_LENGTH
