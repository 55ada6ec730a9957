from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from typesetgo.core.errors import TextSourceError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@dataclass(frozen=True)
class Quote:
    quote: str
    author: str = ""
    source: str = ""
    context: str = ""
    date: str = ""


class TextRepository:
    """Word pools and quotes read from YAML files under ``data/``.

    Layout::

        data/words/<difficulty>.yaml   -> {"words": [...]}
        data/quotes/<length>.yaml      -> {"quotes": [{"quote": ..., "author": ...}, ...]}

    Pools are cached after the first successful read.  Missing or broken
    files log a warning and yield an empty list; the engine treats an empty
    pool as "not loaded yet".
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self._word_pools: Dict[str, List[str]] = {}
        self._quotes: Dict[str, List[Quote]] = {}

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def difficulties(self) -> List[str]:
        """Manifest of available word pools."""
        return self._manifest("words")

    def quote_lengths(self) -> List[str]:
        """Manifest of available quote sets."""
        return self._manifest("quotes")

    def word_pool(self, difficulty: str) -> List[str]:
        if difficulty in self._word_pools:
            return list(self._word_pools[difficulty])
        try:
            raw = self._read(self._data_dir / "words" / f"{difficulty}.yaml")
        except TextSourceError as e:
            logger.warning("Word pool %r unavailable: %s", difficulty, e)
            return []
        items = raw.get("words") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            logger.warning("Word pool %r has no 'words' list", difficulty)
            return []
        words = [str(w).strip() for w in items if str(w).strip()]
        if words:
            self._word_pools[difficulty] = words
        return list(words)

    def quotes(self, length: str) -> List[Quote]:
        if length in self._quotes:
            return list(self._quotes[length])
        try:
            raw = self._read(self._data_dir / "quotes" / f"{length}.yaml")
        except TextSourceError as e:
            logger.warning("Quotes %r unavailable: %s", length, e)
            return []
        items = raw.get("quotes") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            logger.warning("Quote file %r has no 'quotes' list", length)
            return []

        quotes: List[Quote] = []
        for item in items:
            if isinstance(item, str):
                item = {"quote": item}
            if not isinstance(item, dict):
                continue
            text = " ".join(str(item.get("quote", "")).split())
            if not text:
                continue
            quotes.append(
                Quote(
                    quote=text,
                    author=str(item.get("author", "") or ""),
                    source=str(item.get("source", "") or ""),
                    context=str(item.get("context", "") or ""),
                    date=str(item.get("date", "") or ""),
                )
            )
        if quotes:
            self._quotes[length] = quotes
        return list(quotes)

    def _manifest(self, kind: str) -> List[str]:
        base = self._data_dir / kind
        if not base.is_dir():
            return []
        return sorted(p.stem for p in base.glob("*.yaml"))

    def _read(self, path: Path) -> Any:
        try:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise TextSourceError(f"{path.name}: {e}") from e
