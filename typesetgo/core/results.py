from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from typesetgo.core.errors import ServiceError

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_PATH = Path.home() / ".typesetgo" / "results.json"


@dataclass
class ResultSummary:
    """A finished attempt as handed to the result sink."""

    wpm: float
    accuracy: float
    mode: str
    duration_ms: int
    word_count: int
    difficulty: str
    punctuation: bool
    numbers: bool
    capitalization: bool
    words_correct: int
    words_incorrect: int
    chars_missed: int
    chars_extra: int
    created_at: float = field(default_factory=time.time)

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SaveAck:
    result_id: str
    new_achievements: List[str] = field(default_factory=list)


class ResultSink(Protocol):
    def save_result(self, summary: ResultSummary) -> SaveAck:
        """Persist ``summary``. Raises ServiceError on failure."""
        ...


class ResultStore:
    """Local result sink. Keeps every result plus the best WPM per mode.
    File: ~/.typesetgo/results.json. A corrupt file starts a fresh history."""

    def __init__(self, file_path: Optional[Path] = None) -> None:
        self._file_path = Path(file_path) if file_path else DEFAULT_RESULTS_PATH
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._history, self._best_wpm = self._load()

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def best_wpm(self, mode: str) -> float:
        return self._best_wpm.get(mode, 0.0)

    def save_result(self, summary: ResultSummary) -> SaveAck:
        result_id = uuid.uuid4().hex
        entry = summary.to_payload()
        entry["id"] = result_id
        saved_history, saved_best = list(self._history), dict(self._best_wpm)
        self._history.append(entry)

        new_achievements: List[str] = []
        previous = self._best_wpm.get(summary.mode)
        if previous is None or summary.wpm > previous:
            self._best_wpm[summary.mode] = float(summary.wpm)
            if previous is not None:
                new_achievements.append(f"personal-best-{summary.mode}")
        if not self._save():
            self._history, self._best_wpm = saved_history, saved_best
            raise ServiceError(f"Could not write {self._file_path}")
        return SaveAck(result_id=result_id, new_achievements=new_achievements)

    def reset(self) -> None:
        self._history = []
        self._best_wpm = {}
        self._save()

    def _load(self) -> tuple[List[Dict[str, Any]], Dict[str, float]]:
        history: List[Dict[str, Any]] = []
        best: Dict[str, float] = {}
        if not self._file_path.exists():
            return history, best
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load results from %s: %s", self._file_path, e)
            return history, best
        if not isinstance(payload, dict):
            return history, best

        raw_history = payload.get("history", [])
        if isinstance(raw_history, list):
            history = [item for item in raw_history if isinstance(item, dict)]
        raw_best = payload.get("best_wpm", {})
        if isinstance(raw_best, dict):
            for mode, value in raw_best.items():
                try:
                    best[str(mode)] = float(value)
                except (TypeError, ValueError):
                    continue
        return history, best

    def _save(self) -> bool:
        payload = {"history": self._history, "best_wpm": self._best_wpm}
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save results to %s: %s", self._file_path, e)
            return False
        return True
