"""Shared fakes for the engine tests: clock, validation service, result sink and dispatcher."""

from __future__ import annotations

import os
from typing import Any, Callable, List, Optional, Tuple

import pytest

from typesetgo.core.anticheat import FinalizeResponse, LocalTimeContext
from typesetgo.core.errors import ServiceError, SessionExpiredError
from typesetgo.core.results import ResultSummary, SaveAck
from typesetgo.core.settings import Settings

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeService:
    def __init__(self) -> None:
        self.started: List[Tuple[str, Settings, str]] = []
        self.progress: List[Tuple[str, int]] = []
        self.finalized: List[Tuple[str, str, int, LocalTimeContext]] = []
        self.cancelled: List[str] = []
        self.fail_start = False
        self.fail_progress = False
        self.fail_finalize = False
        self.is_valid = True
        self.invalid_reason: Optional[str] = None

    def start_session(self, user_id: str, settings: Settings, target_text: str) -> str:
        if self.fail_start:
            raise ServiceError("start refused")
        self.started.append((user_id, settings, target_text))
        return f"s{len(self.started)}"

    def record_progress(self, session_id: str, typed_length: int) -> None:
        if self.fail_progress:
            raise ServiceError("progress refused")
        self.progress.append((session_id, typed_length))

    def finalize_session(self, session_id, typed_text, elapsed_ms, local_time) -> FinalizeResponse:
        if self.fail_finalize:
            raise SessionExpiredError("gone")
        self.finalized.append((session_id, typed_text, elapsed_ms, local_time))
        return FinalizeResponse(is_valid=self.is_valid, invalid_reason=self.invalid_reason, new_achievements=["first-test"])

    def cancel_session(self, session_id: str) -> None:
        self.cancelled.append(session_id)


class FakeSink:
    def __init__(self) -> None:
        self.saved: List[ResultSummary] = []
        self.fail = False

    def save_result(self, summary: ResultSummary) -> SaveAck:
        if self.fail:
            raise ServiceError("disk full")
        self.saved.append(summary)
        return SaveAck(result_id=f"r{len(self.saved)}")


class DeferredDispatcher:
    """Queues calls until the test runs them, to model requests in flight."""

    def __init__(self) -> None:
        self.queue: List[Tuple[Callable[[], Any], Optional[Callable], Optional[Callable]]] = []

    def submit(self, call, on_done=None, on_error=None) -> None:
        self.queue.append((call, on_done, on_error))

    def run_next(self) -> None:
        call, on_done, on_error = self.queue.pop(0)
        try:
            result = call()
        except ServiceError as e:
            if on_error is not None:
                on_error(e)
            return
        if on_done is not None:
            on_done(result)

    def run_all(self) -> None:
        while self.queue:
            self.run_next()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def service() -> FakeService:
    return FakeService()


@pytest.fixture()
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture()
def deferred() -> DeferredDispatcher:
    return DeferredDispatcher()


@pytest.fixture()
def summary() -> ResultSummary:
    return ResultSummary(
        wpm=40,
        accuracy=95.0,
        mode="time",
        duration_ms=30000,
        word_count=20,
        difficulty="beginner",
        punctuation=False,
        numbers=False,
        capitalization=False,
        words_correct=19,
        words_incorrect=1,
        chars_missed=0,
        chars_extra=0,
    )


@pytest.fixture(scope="session")
def qapp():
    """One QCoreApplication for tests that create QObjects or timers."""
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
