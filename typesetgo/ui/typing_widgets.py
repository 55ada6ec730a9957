"""Typing area: target text coloured by what has been typed so far."""

from __future__ import annotations

import html
from enum import Enum
from typing import List, NamedTuple, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QLabel, QWidget

from typesetgo.ui.colors import ThemeColors


class CharState(str, Enum):
    UNTYPED = "untyped"
    CURSOR = "cursor"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    SKIPPED = "skipped"
    EXTRA = "extra"


class Glyph(NamedTuple):
    char: str
    state: CharState
    ghost: bool = False


def layout_glyphs(typed: str, target: str, ghost_index: Optional[float] = None) -> List[Glyph]:
    """Per-character states for drawing ``target`` with ``typed`` laid over it.

    Words are aligned the same way the scorer aligns them.  Characters typed
    past the end of a word are inserted as ``EXTRA`` glyphs; untyped
    characters of words already left behind are ``SKIPPED``.
    """
    target_words = target.split(" ")
    typed_words = typed.split(" ")
    current = len(typed_words) - 1
    ghost_at = int(ghost_index) if ghost_index is not None else -1

    glyphs: List[Glyph] = []
    offset = 0
    for w, word in enumerate(target_words):
        typed_word = typed_words[w] if w < len(typed_words) else ""
        for c, ch in enumerate(word):
            if c < len(typed_word):
                state = CharState.CORRECT if typed_word[c] == ch else CharState.INCORRECT
            elif w < current:
                state = CharState.SKIPPED
            elif w == current and c == len(typed_word):
                state = CharState.CURSOR
            else:
                state = CharState.UNTYPED
            glyphs.append(Glyph(ch, state, offset + c == ghost_at))
        if w <= current and len(typed_word) > len(word):
            glyphs.extend(Glyph(ch, CharState.EXTRA) for ch in typed_word[len(word):])
        offset += len(word) + 1
        if w < len(target_words) - 1:
            if w < current:
                space = CharState.CORRECT
            elif w == current and len(typed_word) >= len(word):
                space = CharState.CURSOR
            else:
                space = CharState.UNTYPED
            glyphs.append(Glyph(" ", space, offset - 1 == ghost_at))
    return glyphs


_STATE_COLORS = {
    CharState.UNTYPED: ThemeColors.DEFAULT_TEXT,
    CharState.CURSOR: ThemeColors.UPCOMING_TEXT,
    CharState.CORRECT: ThemeColors.CORRECT_TEXT,
    CharState.INCORRECT: ThemeColors.INCORRECT_TEXT,
    CharState.SKIPPED: ThemeColors.INCORRECT_TEXT,
    CharState.EXTRA: ThemeColors.INCORRECT_TEXT,
}


def render_html(glyphs: List[Glyph]) -> str:
    parts: List[str] = []
    for glyph in glyphs:
        style = f"color:{_STATE_COLORS[glyph.state]};"
        if glyph.state is CharState.CURSOR:
            style += f"border-left:2px solid {ThemeColors.CURSOR};"
        if glyph.ghost:
            style += f"background:{ThemeColors.GHOST_CURSOR};"
        parts.append(f'<span style="{style}">{html.escape(glyph.char)}</span>')
    return "".join(parts)


class TypingTextLabel(QLabel):
    """Rich-text label showing the target with per-character colouring."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setTextFormat(Qt.RichText)
        self.setWordWrap(True)
        self.setAlignment(Qt.AlignCenter)
        self.setStyleSheet(f"font-size: 28px; background: {ThemeColors.BACKGROUND};")
        self._target = ""
        self._typed = ""
        self._ghost: Optional[float] = None

    def set_target(self, target: str) -> None:
        self._target = target
        self._refresh()

    def set_typed(self, typed: str) -> None:
        self._typed = typed
        self._refresh()

    def set_ghost(self, index: Optional[float]) -> None:
        self._ghost = index
        self._refresh()

    def _refresh(self) -> None:
        glyphs = layout_glyphs(self._typed, self._target, self._ghost)
        self.setText(render_html(glyphs))
