from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

MIN_ELAPSED_MINUTES = 0.01


@dataclass(frozen=True)
class Stats:
    """Character counters for one (typed, target) pair."""

    correct: int = 0
    incorrect: int = 0
    missed: int = 0
    extra: int = 0


@dataclass(frozen=True)
class WordMismatch:
    typed: str
    expected: str


@dataclass(frozen=True)
class WordResults:
    correct_words: List[str] = field(default_factory=list)
    incorrect_words: List[WordMismatch] = field(default_factory=list)


def score(typed: str, target: str) -> Stats:
    """Classify every typed character against the target, word by word.

    Both strings are split on single spaces and compared index by index.
    The last typed word is still being typed, so characters past the end of
    its reference word are ``extra`` and untyped reference characters are
    not yet ``missed``.  Every committed word also scores the space after it:
    correct when the word was typed at least to full length, incorrect when
    cut short.  After the final reference word only a single trailing space
    is accepted; anything typed beyond it is ``extra``.
    """
    typed_words = typed.split(" ")
    reference_words = target.split(" ")

    correct = 0
    incorrect = 0
    missed = 0
    extra = 0

    last = len(typed_words) - 1
    for i, typed_word in enumerate(typed_words):
        ref_word = reference_words[i] if i < len(reference_words) else ""

        if i == last:
            for j, ch in enumerate(typed_word):
                if j < len(ref_word):
                    if ch == ref_word[j]:
                        correct += 1
                    else:
                        incorrect += 1
                else:
                    extra += 1
            continue

        for j, ref_ch in enumerate(ref_word):
            if j < len(typed_word):
                if typed_word[j] == ref_ch:
                    correct += 1
                else:
                    incorrect += 1
            else:
                missed += 1
        if len(typed_word) > len(ref_word):
            extra += len(typed_word) - len(ref_word)

        # the space that committed this word
        if i < len(reference_words) - 1:
            if len(typed_word) >= len(ref_word):
                correct += 1
            else:
                incorrect += 1
        elif i == last - 1 and typed_words[last] == "":
            correct += 1
        else:
            extra += 1

    return Stats(correct=correct, incorrect=incorrect, missed=missed, extra=extra)


def word_results(typed: str, target: str) -> WordResults:
    """Compare whole words; used for the review list, not for scoring."""
    typed_words = typed.split()
    reference_words = target.split(" ")

    correct_words: List[str] = []
    incorrect_words: List[WordMismatch] = []
    for i, typed_word in enumerate(typed_words):
        ref_word = reference_words[i] if i < len(reference_words) else ""
        if typed_word == ref_word:
            correct_words.append(typed_word)
        elif ref_word:
            incorrect_words.append(WordMismatch(typed=typed_word, expected=ref_word))
    return WordResults(correct_words=correct_words, incorrect_words=incorrect_words)


def accuracy(stats: Stats, typed_length: int) -> float:
    """Correct characters as a percentage of everything typed (100 when nothing typed)."""
    if typed_length <= 0:
        return 100.0
    return (stats.correct / typed_length) * 100.0


def wpm(typed_length: int, elapsed_ms: float) -> float:
    """Gross words per minute, one word being five characters."""
    elapsed_minutes = max(elapsed_ms / 60000.0, MIN_ELAPSED_MINUTES)
    return (typed_length / 5.0) / elapsed_minutes
