from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Sequence

PUNCTUATION_CHARS = [".", ",", "!", "?", ";", ":"]
NUMBER_CHARS = "0123456789"

NUMBER_PROBABILITY = 0.15
PUNCTUATION_PROBABILITY = 0.1
CAPITALIZATION_PROBABILITY = 0.2

INITIAL_BATCH = 200
LOOKAHEAD_WORDS = 50


@dataclass(frozen=True)
class GenerateOptions:
    punctuation: bool = False
    numbers: bool = False
    capitalization: bool = False


def generate_words(
    count: int,
    pool: Sequence[str],
    options: GenerateOptions = GenerateOptions(),
    rng: Optional[random.Random] = None,
) -> str:
    """Draw ``count`` words from ``pool`` and join them with single spaces.

    Each word may independently become a two-digit number, get a trailing
    punctuation mark (never the first word) or get its first letter
    capitalized, depending on ``options``.  An empty pool yields ``""``.
    """
    if not pool or count <= 0:
        return ""
    rng = rng or random

    words: list[str] = []
    for i in range(count):
        word = rng.choice(pool)
        if options.numbers and rng.random() < NUMBER_PROBABILITY:
            word = rng.choice(NUMBER_CHARS) + rng.choice(NUMBER_CHARS)
        if options.punctuation and i > 0 and rng.random() < PUNCTUATION_PROBABILITY:
            word += rng.choice(PUNCTUATION_CHARS)
        if options.capitalization and rng.random() < CAPITALIZATION_PROBABILITY:
            word = word[:1].upper() + word[1:]
        words.append(word)
    return " ".join(words)


def remaining_words(typed: str, target: str) -> int:
    """Number of target words the user has not reached yet."""
    typed_count = len(typed.split())
    return len(target.split(" ")) - max(typed_count, 1)


def needs_extension(typed: str, target: str, lookahead: int = LOOKAHEAD_WORDS) -> bool:
    return remaining_words(typed, target) < lookahead


def extend_target(
    typed: str,
    target: str,
    pool: Sequence[str],
    options: GenerateOptions = GenerateOptions(),
    lookahead: int = LOOKAHEAD_WORDS,
    rng: Optional[random.Random] = None,
) -> str:
    """Append another batch of words when fewer than ``lookahead`` remain."""
    if not needs_extension(typed, target, lookahead):
        return target
    batch = generate_words(lookahead, pool, options, rng)
    if not batch:
        return target
    if not target:
        return batch
    return f"{target} {batch}"
