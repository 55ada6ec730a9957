"""HTTP clients for the validation service and the remote result sink."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from typesetgo.core.anticheat import FinalizeResponse, LocalTimeContext
from typesetgo.core.errors import ServiceError, SessionExpiredError
from typesetgo.core.results import ResultSummary, SaveAck
from typesetgo.core.settings import Mode, Settings

logger = logging.getLogger(__name__)

EXPIRED_STATUSES = (404, 410)


class _JsonClient:
    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self._http.request(method, url, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise ServiceError(f"{method} {path} failed: {e}") from e

        if response.status_code in EXPIRED_STATUSES and path.startswith("/sessions/"):
            raise SessionExpiredError(f"{method} {path}: session not found or expired")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise ServiceError(f"{method} {path} returned {response.status_code}") from e

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise ServiceError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise ServiceError(f"{method} {path} returned {type(body).__name__}, expected an object")
        return body


def settings_payload(settings: Settings) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "mode": settings.mode.value,
        "difficulty": settings.difficulty.value,
        "punctuation": settings.punctuation,
        "numbers": settings.numbers,
        "capitalization": settings.capitalization,
    }
    if settings.is_timed:
        payload["duration"] = settings.duration
    if settings.mode is Mode.WORDS:
        payload["wordTarget"] = settings.word_target
    return payload


class HttpValidationService(_JsonClient):
    """Anti-cheat session endpoints."""

    def start_session(self, user_id: str, settings: Settings, target_text: str) -> str:
        body = self._request(
            "POST",
            "/sessions",
            {"clerkId": user_id, "settings": settings_payload(settings), "targetText": target_text},
        )
        session_id = body.get("sessionId")
        if not session_id:
            raise ServiceError("start_session response has no sessionId")
        return str(session_id)

    def record_progress(self, session_id: str, typed_length: int) -> None:
        body = self._request("POST", f"/sessions/{session_id}/progress", {"typedTextLength": typed_length})
        if body.get("success") is False:
            raise ServiceError(f"Progress for {session_id} was rejected")

    def finalize_session(
        self,
        session_id: str,
        typed_text: str,
        elapsed_ms: int,
        local_time: LocalTimeContext,
    ) -> FinalizeResponse:
        body = self._request(
            "POST",
            f"/sessions/{session_id}/finalize",
            {
                "typedText": typed_text,
                "elapsedMs": elapsed_ms,
                "localDate": local_time.local_date,
                "localHour": local_time.local_hour,
                "isWeekend": local_time.is_weekend,
                "dayOfWeek": local_time.day_of_week,
                "month": local_time.month,
                "day": local_time.day,
            },
        )
        if "isValid" not in body:
            raise ServiceError("finalize_session response has no isValid")
        return FinalizeResponse(
            is_valid=bool(body["isValid"]),
            invalid_reason=body.get("invalidReason"),
            new_achievements=[str(a) for a in body.get("newAchievements") or []],
        )

    def cancel_session(self, session_id: str) -> None:
        self._request("DELETE", f"/sessions/{session_id}")


class HttpResultSink(_JsonClient):
    """Legacy result endpoint: stores a result without server-side validation."""

    def __init__(self, base_url: str, user_id: str, timeout: float = 5.0, session: Optional[requests.Session] = None) -> None:
        super().__init__(base_url, timeout, session)
        self._user_id = user_id

    def save_result(self, summary: ResultSummary) -> SaveAck:
        payload = {
            "clerkId": self._user_id,
            "wpm": summary.wpm,
            "accuracy": summary.accuracy,
            "mode": summary.mode,
            "duration": summary.duration_ms,
            "wordCount": summary.word_count,
            "difficulty": summary.difficulty,
            "punctuation": summary.punctuation,
            "numbers": summary.numbers,
            "capitalization": summary.capitalization,
            "wordsCorrect": summary.words_correct,
            "wordsIncorrect": summary.words_incorrect,
            "charsMissed": summary.chars_missed,
            "charsExtra": summary.chars_extra,
        }
        body = self._request("POST", "/results", payload)
        return SaveAck(
            result_id=str(body.get("resultId", "")),
            new_achievements=[str(a) for a in body.get("newAchievements") or []],
        )
