"""Tests for typesetgo.core.texts – word pools and quotes from YAML."""

from __future__ import annotations

from pathlib import Path

import pytest

from typesetgo.core.errors import TextSourceError
from typesetgo.core.texts import Quote, TextRepository


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    _write(tmp_path / "words" / "easy.yaml", "words:\n  - alpha\n  - beta\n  - ' '\n  - gamma\n")
    _write(tmp_path / "words" / "hard.yaml", "- zephyr\n- quixotic\n")
    _write(
        tmp_path / "quotes" / "short.yaml",
        "quotes:\n"
        "  - quote: \"Less   is\n      more.\"\n"
        "    author: Mies\n"
        "  - plain string quote\n"
        "  - quote: ''\n",
    )
    return tmp_path


# ---------------------------------------------------------------------------
# Word pools
# ---------------------------------------------------------------------------

class TestWordPool:
    def test_reads_words_mapping(self, data_dir):
        assert TextRepository(data_dir).word_pool("easy") == ["alpha", "beta", "gamma"]

    def test_reads_bare_list(self, data_dir):
        assert TextRepository(data_dir).word_pool("hard") == ["zephyr", "quixotic"]

    def test_missing_pool_is_empty(self, data_dir):
        assert TextRepository(data_dir).word_pool("expert") == []

    def test_broken_yaml_is_empty(self, data_dir):
        _write(data_dir / "words" / "medium.yaml", "words: [unclosed\n")
        assert TextRepository(data_dir).word_pool("medium") == []

    def test_cached_after_first_read(self, data_dir):
        repo = TextRepository(data_dir)
        repo.word_pool("easy")
        (data_dir / "words" / "easy.yaml").unlink()
        assert repo.word_pool("easy") == ["alpha", "beta", "gamma"]

    def test_returns_copy(self, data_dir):
        repo = TextRepository(data_dir)
        repo.word_pool("easy").append("mutated")
        assert "mutated" not in repo.word_pool("easy")


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------

class TestQuotes:
    def test_normalizes_whitespace(self, data_dir):
        quotes = TextRepository(data_dir).quotes("short")
        assert quotes[0] == Quote(quote="Less is more.", author="Mies")

    def test_accepts_plain_strings_and_skips_empty(self, data_dir):
        quotes = TextRepository(data_dir).quotes("short")
        assert [q.quote for q in quotes] == ["Less is more.", "plain string quote"]

    def test_missing_quotes_is_empty(self, data_dir):
        assert TextRepository(data_dir).quotes("xl") == []


# ---------------------------------------------------------------------------
# Manifests and errors
# ---------------------------------------------------------------------------

class TestManifest:
    def test_difficulties(self, data_dir):
        assert TextRepository(data_dir).difficulties() == ["easy", "hard"]

    def test_quote_lengths(self, data_dir):
        assert TextRepository(data_dir).quote_lengths() == ["short"]

    def test_missing_dir(self, tmp_path):
        assert TextRepository(tmp_path / "nope").difficulties() == []

    def test_read_wraps_errors(self, tmp_path):
        with pytest.raises(TextSourceError):
            TextRepository(tmp_path)._read(tmp_path / "missing.yaml")


class TestBundledData:
    def test_every_difficulty_has_words(self):
        repo = TextRepository()
        for difficulty in ("beginner", "easy", "medium", "hard", "expert"):
            words = repo.word_pool(difficulty)
            assert words, difficulty
            assert all(isinstance(w, str) and " " not in w for w in words)

    def test_every_length_has_quotes(self):
        repo = TextRepository()
        for length in ("short", "medium", "long", "xl"):
            assert repo.quotes(length), length
