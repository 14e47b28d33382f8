"""Exception taxonomy for the analysis pipeline."""

from __future__ import annotations


class StreamError(Exception):
    """Decompression or I/O failure while streaming an attachment."""


class SizeLimitExceeded(Exception):
    """Decompressed log grew past the configured ceiling."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"log exceeded {limit} bytes")
        self.limit = limit


class IntakeRejected(Exception):
    """All intake slots are busy; the run was not started."""


class ExternalLookupError(Exception):
    """Integrity manifest could not be fetched or decoded."""


class RunCancelled(StreamError):
    """The run's cancellation signal fired before the work finished."""
