"""Exceptions raised by the tracker core and its storage."""

from __future__ import annotations

from datetime import datetime


class ThymeError(Exception):
    """Base class for all tracker errors."""


class CaptureFailure(ThymeError):
    """The platform window manager could not be queried."""


class DuplicateTimestamp(ThymeError):
    """A snapshot with the same timestamp is already recorded."""

    def __init__(self, time: datetime) -> None:
        super().__init__(f"A snapshot already exists for {time.isoformat()}")
        self.time = time


class MalformedRecord(ThymeError):
    """A stored snapshot record could not be decoded."""

    def __init__(self, key: object, reason: str) -> None:
        super().__init__(f"Malformed snapshot record {key!r}: {reason}")
        self.key = key
        self.reason = reason
