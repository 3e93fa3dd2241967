"""
Segment store — the live status of every candidate attempted in a run.

A plain mapping with a single writer (the orchestrator) and any number of
observers. Observers are called synchronously after each committed mutation,
in the order the mutations were applied. Readers only ever get immutable
point-in-time copies.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

log = logging.getLogger("reelrunner.scrape")


class CandidateStatus(str, Enum):
    WAITING = "waiting"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    NOTFOUND = "notfound"


@dataclass(frozen=True)
class Candidate:
    id: str
    name: str
    status: CandidateStatus = CandidateStatus.WAITING
    parent_id: Optional[str] = None   # set only for embeds
    embed_id: Optional[str] = None    # embed scraper id, set only for embeds
    reason: Optional[str] = None
    error: Any = None
    progress: int = 0

    def to_dict(self):
        d = {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "percentage": self.progress,
        }
        if self.parent_id is not None:
            d["parentId"] = self.parent_id
        if self.embed_id is not None:
            d["embedId"] = self.embed_id
        if self.reason is not None:
            d["reason"] = self.reason
        if self.error is not None:
            d["error"] = self.error if isinstance(self.error, (str, int, float, dict, list)) else str(self.error)
        return d


# observer(candidate); candidate is None when the store was cleared
Observer = Callable[[Optional[Candidate]], None]


class SegmentStore:
    def __init__(self):
        self._segments: dict[str, Candidate] = {}
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that removes it again."""
        self._observers.append(observer)

        def _unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)
        return _unsubscribe

    def upsert(self, candidate: Candidate) -> None:
        self._segments[candidate.id] = candidate
        self._notify(candidate)

    def transition(
        self,
        candidate_id: str,
        status: CandidateStatus | str,
        *,
        reason: Optional[str] = None,
        error: Any = None,
        progress: Optional[int] = None,
    ) -> bool:
        """Move a candidate to a new status.

        Returns False, without touching the store, when the id was never
        registered; the caller decides how loudly to report that.
        """
        current = self._segments.get(candidate_id)
        if current is None:
            log.warning(f"[{candidate_id}] transition to {status} for unknown candidate ignored")
            return False
        updated = replace(
            current,
            status=CandidateStatus(status),
            reason=reason,
            error=error,
            progress=current.progress if progress is None else _clamp(progress),
        )
        self._segments[candidate_id] = updated
        self._notify(updated)
        return True

    def get(self, candidate_id: str) -> Optional[Candidate]:
        return self._segments.get(candidate_id)

    def snapshot(self) -> Mapping[str, Candidate]:
        return MappingProxyType(dict(self._segments))

    def clear(self) -> None:
        self._segments = {}
        self._notify(None)

    def __contains__(self, candidate_id: str) -> bool:
        return candidate_id in self._segments

    def __len__(self) -> int:
        return len(self._segments)

    def _notify(self, candidate: Optional[Candidate]) -> None:
        for observer in list(self._observers):
            observer(candidate)


def _clamp(progress: int) -> int:
    return max(0, min(100, int(progress)))
