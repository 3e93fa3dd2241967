"""
Applies lifecycle events to the segment store and the candidate tree.

Both the local plugin runner and the remote service feed this same reducer,
so a given event sequence yields the same state no matter where it came from.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .errors import ProtocolViolation
from .events import (
    DiscoverEmbedsEvent, InitEvent, ScrapeEvent, StartEvent, UpdateEvent,
)
from .store import Candidate, CandidateStatus, SegmentStore
from .tree import CandidateTree, TreeItem

log = logging.getLogger("reelrunner.scrape")

NameLookup = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class ScrapeSnapshot:
    segments: Mapping[str, Candidate]
    order: tuple[TreeItem, ...]
    current: Optional[str] = None

    def to_dict(self):
        return {
            "segments": {k: v.to_dict() for k, v in self.segments.items()},
            "order": [item.to_dict() for item in self.order],
            "current": self.current,
        }


class ScrapeState:
    def __init__(self, names: Optional[NameLookup] = None):
        self.store = SegmentStore()
        self.tree = CandidateTree()
        self._names = names or (lambda _id: None)
        self.current: Optional[str] = None
        self._last_id: Optional[str] = None

    def reset(self) -> None:
        self.tree.clear()
        self.store.clear()
        self.current = None
        self._last_id = None

    def snapshot(self) -> ScrapeSnapshot:
        return ScrapeSnapshot(
            segments=self.store.snapshot(),
            order=self.tree.snapshot(),
            current=self.current,
        )

    def apply(self, event: ScrapeEvent) -> None:
        """Reflect one event. Raises ProtocolViolation for events about unknown candidates."""
        if isinstance(event, InitEvent):
            self._on_init(event)
        elif isinstance(event, StartEvent):
            self._on_start(event)
        elif isinstance(event, UpdateEvent):
            self._on_update(event)
        elif isinstance(event, DiscoverEmbedsEvent):
            self._on_discover(event)
        else:
            raise ProtocolViolation(f"unsupported event: {event!r}")

    def promote(self, candidate_id: str) -> None:
        """Mark the candidate that produced the run's stream as successful."""
        if not self.store.transition(candidate_id, CandidateStatus.SUCCESS, progress=100):
            log.warning(f"[{candidate_id}] winning candidate was never announced")

    # ── handlers ──────────────────

    def _on_init(self, event: InitEvent) -> None:
        self.tree.register_roots(event.source_ids)
        self.store.clear()
        self.current = None
        self._last_id = None
        for i, source_id in enumerate(event.source_ids):
            name = event.names[i] if i < len(event.names) else None
            self.store.upsert(Candidate(id=source_id, name=name or self._display_name(source_id)))

    def _on_start(self, event: StartEvent) -> None:
        if event.id not in self.store:
            raise ProtocolViolation(f"start for unknown candidate: {event.id}")
        last = self.store.get(self._last_id) if self._last_id else None
        if last is not None and last.status is CandidateStatus.PENDING and last.id != event.id:
            self.store.transition(last.id, CandidateStatus.SUCCESS, progress=last.progress)
        self.store.transition(event.id, CandidateStatus.PENDING)
        self.current = event.id
        self._last_id = event.id

    def _on_update(self, event: UpdateEvent) -> None:
        ok = self.store.transition(
            event.id,
            event.status,
            reason=event.reason,
            error=event.error,
            progress=event.percentage,
        )
        if not ok:
            raise ProtocolViolation(f"update for unknown candidate: {event.id}")

    def _on_discover(self, event: DiscoverEmbedsEvent) -> None:
        self.tree.attach_children(event.source_id, [e.id for e in event.embeds])
        for embed in event.embeds:
            self.store.upsert(Candidate(
                id=embed.id,
                name=self._display_name(embed.embed_scraper_id),
                parent_id=event.source_id,
                embed_id=embed.embed_scraper_id,
            ))

    def _display_name(self, scraper_id: str) -> str:
        return self._names(scraper_id) or scraper_id
