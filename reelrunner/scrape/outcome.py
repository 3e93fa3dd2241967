"""Run-level outcomes: the only thing a run ever returns to its caller."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union

from ..providers.base import StreamResult
from .errors import RunCancelled, RunExhausted


@dataclass(frozen=True)
class Success:
    result: StreamResult
    status = "success"

    def unwrap(self) -> StreamResult:
        return self.result

    def to_dict(self):
        return {"status": self.status, "result": self.result.to_dict()}


@dataclass(frozen=True)
class NotFound:
    status = "notfound"

    def unwrap(self) -> StreamResult:
        raise RunExhausted("every candidate was tried without producing a stream")

    def to_dict(self):
        return {"status": self.status}


@dataclass(frozen=True)
class Cancelled:
    detail: Optional[str] = None
    status = "cancelled"

    def unwrap(self) -> StreamResult:
        raise RunCancelled(self.detail)

    def to_dict(self):
        return {"status": self.status, "detail": self.detail}


RunOutcome = Union[Success, NotFound, Cancelled]
