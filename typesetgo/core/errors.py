"""Exception types shared by the typing engine and its collaborators."""

from __future__ import annotations


class TypeSetGoError(Exception):
    """Base class for all TypeSetGo errors."""


class ServiceError(TypeSetGoError):
    """A validation or result-persistence call failed."""


class SessionExpiredError(ServiceError):
    """The server no longer knows the anti-cheat session (expired or deleted)."""


class TextSourceError(TypeSetGoError):
    """A word pool, quote or manifest file could not be read."""
