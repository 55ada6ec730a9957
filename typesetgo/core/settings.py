from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Mapping

TIME_PRESETS = (15, 30, 60, 120, 300)
WORD_PRESETS = (10, 25, 50, 100, 500)
MAX_PRESET_LENGTH = 10000


class Mode(str, Enum):
    ZEN = "zen"
    TIME = "time"
    WORDS = "words"
    QUOTE = "quote"
    PRESET = "preset"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class QuoteLength(str, Enum):
    ALL = "all"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    XL = "xl"

    def fetch_key(self) -> str:
        """Quote file to load for this length ("all" reads the medium set)."""
        return QuoteLength.MEDIUM.value if self is QuoteLength.ALL else self.value


class PresetModeType(str, Enum):
    FINISH = "finish"
    TIME = "time"


# Changing any of these means the current target text is stale.
REGENERATING_FIELDS = frozenset(
    {
        "mode",
        "difficulty",
        "duration",
        "word_target",
        "quote_length",
        "punctuation",
        "numbers",
        "capitalization",
        "preset_text",
    }
)

_ENUM_FIELDS = {
    "mode": Mode,
    "difficulty": Difficulty,
    "quote_length": QuoteLength,
    "preset_mode_type": PresetModeType,
}


@dataclass(frozen=True)
class Settings:
    """Test configuration. Owned by the UI; the engine only reads it."""

    mode: Mode = Mode.ZEN
    duration: int = 30
    word_target: int = 25
    difficulty: Difficulty = Difficulty.BEGINNER
    punctuation: bool = False
    numbers: bool = False
    capitalization: bool = False
    quote_length: QuoteLength = QuoteLength.ALL
    ghost_writer_speed: int = 40
    ghost_writer_enabled: bool = False
    sound_enabled: bool = True
    preset_text: str = ""
    preset_mode_type: PresetModeType = PresetModeType.FINISH

    def merged(self, overrides: Mapping[str, Any]) -> "Settings":
        """Return a copy with ``overrides`` applied.

        Values are converted to the field's type; unknown keys and values that
        do not convert raise ValueError.
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown setting: {key}")
            changes[key] = _coerce(key, value, type(getattr(self, key)))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.value if isinstance(value, Enum) else value
        return out

    @property
    def is_timed(self) -> bool:
        """True when the test ends on the clock."""
        if self.mode is Mode.TIME:
            return True
        return self.mode is Mode.PRESET and self.preset_mode_type is PresetModeType.TIME

    @property
    def is_streaming(self) -> bool:
        """True when the target text is extended while typing."""
        if self.mode in (Mode.TIME, Mode.ZEN):
            return True
        return self.mode is Mode.WORDS and self.word_target <= 0


def changed_fields(old: Settings, new: Settings) -> set[str]:
    return {f.name for f in fields(old) if getattr(old, f.name) != getattr(new, f.name)}


def needs_regeneration(old: Settings, new: Settings) -> bool:
    return bool(changed_fields(old, new) & REGENERATING_FIELDS)


def sanitize_preset_text(text: str) -> str:
    """Keep printable ASCII, collapse whitespace, trim. Raises ValueError when empty or too long."""
    cleaned = re.sub(r"[^\x20-\x7E\n]", "", text)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned:
        raise ValueError("Preset text is empty")
    if len(cleaned) > MAX_PRESET_LENGTH:
        raise ValueError(f"Preset text must be {MAX_PRESET_LENGTH} characters or less")
    return cleaned


def _coerce(key: str, value: Any, kind: type) -> Any:
    """Convert a raw (usually YAML) value to the type of the ``key`` field."""
    enum_type = _ENUM_FIELDS.get(key)
    if enum_type is not None:
        return enum_type(value)
    if kind is bool:
        if not isinstance(value, bool):
            raise ValueError(f"Setting {key} must be true or false, got {value!r}")
        return value
    if kind is int:
        if isinstance(value, bool):
            raise ValueError(f"Setting {key} must be a number, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Setting {key} must be a number, got {value!r}") from None
    if value is None or isinstance(value, (dict, list)):
        raise ValueError(f"Setting {key} must be text, got {value!r}")
    return str(value)
