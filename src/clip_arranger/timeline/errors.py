"""Error taxonomy for Timeline Service interaction."""

from __future__ import annotations


class TimelineError(RuntimeError):
    """Base class for failures talking to or editing the timeline."""


class ServiceUnavailableError(TimelineError):
    """Raised when the remote Timeline Service cannot be reached."""


class InvalidReferenceError(TimelineError):
    """Raised when a clip reference is stale or cannot be re-resolved."""


class UnsupportedForClipStateError(TimelineError):
    """Raised when an edit is not possible for the clip's current state."""


class TimelineServiceError(TimelineError):
    """Raised for any other error payload returned by the service."""

    def __init__(self, message: str, code: str = "service_error") -> None:
        super().__init__(message)
        self.code = code
