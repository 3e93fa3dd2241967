"""Exceptions raised by the scrape engine and its plugins."""
from __future__ import annotations
from typing import Optional


class ScrapeError(Exception):
    pass


class CandidateFailure(ScrapeError):
    """A single mirror, source or embed attempt failed. The run continues."""

    def __init__(self, message: str, candidate_id: Optional[str] = None):
        super().__init__(message)
        self.candidate_id = candidate_id


class NotFoundError(CandidateFailure):
    """Raised by a plugin when the media simply isn't available there."""


class RunExhausted(ScrapeError):
    """Every candidate was tried and none produced a stream."""


class TransportFailure(ScrapeError):
    """The remote stream broke before sending a terminal event."""


class RunCancelled(ScrapeError):
    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or "run cancelled")
        self.detail = detail


class ProtocolViolation(ScrapeError):
    """An event referenced a candidate the run does not know about."""


class UnknownParent(ProtocolViolation):
    def __init__(self, parent_id: str):
        super().__init__(f"unknown parent candidate: {parent_id}")
        self.parent_id = parent_id


class DuplicateCandidate(ProtocolViolation):
    def __init__(self, candidate_id: str):
        super().__init__(f"candidate already registered: {candidate_id}")
        self.candidate_id = candidate_id


class ConcurrentRunRejected(ScrapeError):
    def __init__(self, running: tuple, requested: tuple):
        super().__init__(
            f"a run for {running} is still active; reset before starting {requested}"
        )
        self.running = running
        self.requested = requested
