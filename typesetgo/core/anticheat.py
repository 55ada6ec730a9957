"""Progress reporting to the anti-cheat validation service.

The reporter mirrors one test attempt to the server: ``begin`` opens a
session when typing starts, ``on_progress`` sends throttled typed-length
heartbeats, ``finish`` flushes the last heartbeat and asks the server to
verify the attempt, and ``cancel`` drops the session when the attempt is
abandoned.  Every call goes through a :class:`Dispatcher` so the typing path
never waits on the network, and every failure degrades to an unverified
result instead of an error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, TypeVar, Union

from typesetgo.core.errors import ServiceError
from typesetgo.core.results import ResultSink, ResultSummary, SaveAck
from typesetgo.core.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROGRESS_INTERVAL_MS = 2000
PROGRESS_CHAR_THRESHOLD = 50


@dataclass(frozen=True)
class Watermark:
    """Last acknowledged typed length and when it was acknowledged (clock seconds)."""

    length: int = 0
    timestamp: float = 0.0


def should_report(
    watermark: Watermark,
    now: float,
    typed_length: int,
    char_threshold: int = PROGRESS_CHAR_THRESHOLD,
    interval_ms: int = PROGRESS_INTERVAL_MS,
) -> bool:
    """True when enough characters or enough time have piled up since ``watermark``."""
    delta = typed_length - watermark.length
    if delta <= 0:
        return False
    if delta >= char_threshold:
        return True
    return (now - watermark.timestamp) * 1000.0 >= interval_ms


@dataclass(frozen=True)
class LocalTimeContext:
    """The player's local calendar position, used server-side for streaks."""

    local_date: str
    local_hour: int
    is_weekend: bool
    day_of_week: int
    month: int
    day: int

    @classmethod
    def from_datetime(cls, moment: datetime) -> "LocalTimeContext":
        # Sunday = 0, matching the service's calendar convention
        day_of_week = (moment.weekday() + 1) % 7
        return cls(
            local_date=moment.date().isoformat(),
            local_hour=moment.hour,
            is_weekend=day_of_week in (0, 6),
            day_of_week=day_of_week,
            month=moment.month,
            day=moment.day,
        )

    @classmethod
    def now(cls) -> "LocalTimeContext":
        return cls.from_datetime(datetime.now())


@dataclass(frozen=True)
class FinalizeResponse:
    is_valid: bool
    invalid_reason: Optional[str] = None
    new_achievements: List[str] = field(default_factory=list)


class ValidationService(Protocol):
    """Server side of the anti-cheat protocol. Every method may raise ServiceError."""

    def start_session(self, user_id: str, settings: Settings, target_text: str) -> str: ...

    def record_progress(self, session_id: str, typed_length: int) -> None: ...

    def finalize_session(
        self,
        session_id: str,
        typed_text: str,
        elapsed_ms: int,
        local_time: LocalTimeContext,
    ) -> FinalizeResponse: ...

    def cancel_session(self, session_id: str) -> None: ...


class Dispatcher(Protocol):
    """Runs a blocking call off the typing path and reports back."""

    def submit(
        self,
        call: Callable[[], T],
        on_done: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None: ...


class ImmediateDispatcher:
    """Runs calls inline. Used headless and in tests."""

    def submit(
        self,
        call: Callable[[], T],
        on_done: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        try:
            result = call()
        except ServiceError as e:
            if on_error is not None:
                on_error(e)
            return
        if on_done is not None:
            on_done(result)


@dataclass(frozen=True)
class Verified:
    """The server checked the attempt."""

    is_valid: bool
    invalid_reason: Optional[str] = None
    new_achievements: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Unverified:
    """Saved through the plain result sink without server validation."""

    ack: SaveAck


@dataclass(frozen=True)
class SaveFailed:
    reason: str


Outcome = Union[Verified, Unverified, SaveFailed]


class AntiCheatReporter:
    def __init__(
        self,
        dispatcher: Dispatcher,
        service: Optional[ValidationService] = None,
        user_id: Optional[str] = None,
        sink: Optional[ResultSink] = None,
        clock: Callable[[], float] = time.monotonic,
        char_threshold: int = PROGRESS_CHAR_THRESHOLD,
        interval_ms: int = PROGRESS_INTERVAL_MS,
        local_time: Callable[[], LocalTimeContext] = LocalTimeContext.now,
    ) -> None:
        self._dispatcher = dispatcher
        self._service = service
        self._user_id = user_id
        self._sink = sink
        self._clock = clock
        self._char_threshold = char_threshold
        self._interval_ms = interval_ms
        self._local_time = local_time

        self._attempt = 0
        self._session_id: Optional[str] = None
        self._starting = False
        self._pending_finish: Optional[Callable[[], None]] = None
        self._watermark = Watermark()
        self._highest_sent = 0
        self._in_flight = False

    @property
    def enabled(self) -> bool:
        """Only signed-in players with a configured service are verified."""
        return self._service is not None and bool(self._user_id)

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def watermark(self) -> Watermark:
        return self._watermark

    @property
    def is_open(self) -> bool:
        return self._session_id is not None or self._starting

    def begin(self, settings: Settings, target_text: str) -> None:
        """Open a session for the attempt that just started."""
        if self.is_open:
            self.cancel()
        self._attempt += 1
        self._watermark = Watermark(0, self._clock())
        self._highest_sent = 0
        self._in_flight = False
        self._pending_finish = None
        if not self.enabled:
            return

        attempt = self._attempt
        service = self._service
        user_id = self._user_id
        self._starting = True

        def _started(session_id: str) -> None:
            if attempt != self._attempt:
                # attempt was reset while the request was in flight
                self._cancel_remote(session_id)
                return
            self._starting = False
            self._session_id = session_id
            self._watermark = Watermark(0, self._clock())
            logger.debug("Anti-cheat session %s started", session_id)
            self._run_pending_finish()

        def _failed(error: Exception) -> None:
            if attempt != self._attempt:
                return
            self._starting = False
            logger.warning("Could not start anti-cheat session, result will be unverified: %s", error)
            self._run_pending_finish()

        self._dispatcher.submit(
            lambda: service.start_session(user_id, settings, target_text),
            on_done=_started,
            on_error=_failed,
        )

    def on_progress(self, typed_length: int) -> None:
        """Send a heartbeat if the character or time threshold has been reached."""
        if self._session_id is None or self._in_flight:
            return
        if typed_length < self._highest_sent:
            return
        if not should_report(
            self._watermark,
            self._clock(),
            typed_length,
            self._char_threshold,
            self._interval_ms,
        ):
            return
        self._send_progress(self._session_id, typed_length)

    def finish(
        self,
        typed_text: str,
        elapsed_ms: int,
        summary: ResultSummary,
        on_outcome: Callable[[Outcome], None],
    ) -> None:
        """Flush pending progress, finalize, and fall back to an unverified save on failure."""
        if self._starting:
            self._pending_finish = lambda: self.finish(typed_text, elapsed_ms, summary, on_outcome)
            return

        session_id = self._session_id
        if session_id is None:
            self._save_unverified(summary, on_outcome)
            return

        self._session_id = None
        typed_length = len(typed_text)
        already_sending = self._in_flight and typed_length == self._highest_sent
        if typed_length > self._watermark.length and typed_length >= self._highest_sent and not already_sending:
            self._send_progress(session_id, typed_length)

        service = self._service
        local_time = self._local_time()

        def _finalized(response: FinalizeResponse) -> None:
            on_outcome(
                Verified(
                    is_valid=response.is_valid,
                    invalid_reason=response.invalid_reason,
                    new_achievements=list(response.new_achievements),
                )
            )

        def _finalize_failed(error: Exception) -> None:
            logger.warning("Finalize failed for session %s, saving unverified: %s", session_id, error)
            self._save_unverified(summary, on_outcome)

        self._dispatcher.submit(
            lambda: service.finalize_session(session_id, typed_text, elapsed_ms, local_time),
            on_done=_finalized,
            on_error=_finalize_failed,
        )

    def cancel(self) -> None:
        """Drop the open session, if any. Never raises."""
        self._attempt += 1
        self._starting = False
        self._in_flight = False
        session_id, self._session_id = self._session_id, None
        if session_id is not None:
            self._cancel_remote(session_id)
        # a finished attempt still waiting on its start reply is saved unverified
        self._run_pending_finish()

    def _send_progress(self, session_id: str, typed_length: int) -> None:
        service = self._service
        attempt = self._attempt
        self._in_flight = True
        self._highest_sent = max(self._highest_sent, typed_length)

        def _acked(_: Any) -> None:
            if attempt != self._attempt:
                return
            self._in_flight = False
            self._watermark = Watermark(typed_length, self._clock())

        def _failed(error: Exception) -> None:
            if attempt != self._attempt:
                return
            self._in_flight = False
            logger.debug("Progress report %d for %s failed: %s", typed_length, session_id, error)

        self._dispatcher.submit(
            lambda: service.record_progress(session_id, typed_length),
            on_done=_acked,
            on_error=_failed,
        )

    def _cancel_remote(self, session_id: str) -> None:
        service = self._service
        self._dispatcher.submit(
            lambda: service.cancel_session(session_id),
            on_error=lambda e: logger.debug("Cancel of %s failed: %s", session_id, e),
        )

    def _run_pending_finish(self) -> None:
        pending, self._pending_finish = self._pending_finish, None
        if pending is not None:
            pending()

    def _save_unverified(self, summary: ResultSummary, on_outcome: Callable[[Outcome], None]) -> None:
        sink = self._sink
        if sink is None:
            on_outcome(SaveFailed("No result sink configured"))
            return

        def _saved(ack: SaveAck) -> None:
            on_outcome(Unverified(ack))

        def _failed(error: Exception) -> None:
            logger.warning("Could not save result: %s", error)
            on_outcome(SaveFailed(str(error)))

        self._dispatcher.submit(lambda: sink.save_result(summary), on_done=_saved, on_error=_failed)
