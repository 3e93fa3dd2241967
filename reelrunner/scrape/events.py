"""
Lifecycle events shared by every scrape strategy.

The local plugin runner and the remote orchestration service speak the same
vocabulary: ``init``, ``start``, ``update`` and ``discoverEmbeds``, followed by
exactly one terminal ``completed`` or ``noOutput``.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Union

from .errors import TransportFailure
from .store import CandidateStatus


class EventType(str, Enum):
    INIT = "init"
    START = "start"
    UPDATE = "update"
    DISCOVER_EMBEDS = "discoverEmbeds"
    COMPLETED = "completed"
    NO_OUTPUT = "noOutput"


@dataclass(frozen=True)
class InitEvent:
    source_ids: tuple[str, ...]
    names: tuple[str, ...] = ()       # display labels, when the emitter knows them

    def to_wire(self) -> dict:
        return {"sourceIds": list(self.source_ids)}


@dataclass(frozen=True)
class StartEvent:
    id: str

    def to_wire(self) -> str:
        return self.id


@dataclass(frozen=True)
class UpdateEvent:
    id: str
    status: CandidateStatus
    percentage: int = 0
    reason: Optional[str] = None
    error: Any = None

    def to_wire(self) -> dict:
        d = {"id": self.id, "status": CandidateStatus(self.status).value, "percentage": self.percentage}
        if self.reason is not None:
            d["reason"] = self.reason
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass(frozen=True)
class EmbedDiscovery:
    id: str                           # run-unique candidate id
    embed_scraper_id: str


@dataclass(frozen=True)
class DiscoverEmbedsEvent:
    source_id: str
    embeds: tuple[EmbedDiscovery, ...]

    def to_wire(self) -> dict:
        return {
            "sourceId": self.source_id,
            "embeds": [{"id": e.id, "embedScraperId": e.embed_scraper_id} for e in self.embeds],
        }


ScrapeEvent = Union[InitEvent, StartEvent, UpdateEvent, DiscoverEmbedsEvent]

_EVENT_NAMES = {
    InitEvent: EventType.INIT,
    StartEvent: EventType.START,
    UpdateEvent: EventType.UPDATE,
    DiscoverEmbedsEvent: EventType.DISCOVER_EMBEDS,
}


class EventSink(Protocol):
    """Write side handed to a strategy for the duration of one run."""

    @property
    def active(self) -> bool: ...

    def emit(self, event: ScrapeEvent) -> None: ...


def event_name(event: ScrapeEvent) -> str:
    return _EVENT_NAMES[type(event)].value


def parse_event(name: str, data: Any) -> Optional[ScrapeEvent]:
    """Decode one wire event. Unknown names return None so newer servers can add events."""
    try:
        if name == EventType.INIT:
            return InitEvent(source_ids=tuple(str(i) for i in data["sourceIds"]))
        if name == EventType.START:
            # start carries the bare id; tolerate {"id": ...} as well
            return StartEvent(id=str(data["id"] if isinstance(data, dict) else data))
        if name == EventType.UPDATE:
            return UpdateEvent(
                id=str(data["id"]),
                status=CandidateStatus(data["status"]),
                percentage=int(data.get("percentage") or 0),
                reason=data.get("reason"),
                error=data.get("error"),
            )
        if name == EventType.DISCOVER_EMBEDS:
            return DiscoverEmbedsEvent(
                source_id=str(data["sourceId"]),
                embeds=tuple(
                    EmbedDiscovery(id=str(e["id"]), embed_scraper_id=str(e["embedScraperId"]))
                    for e in data["embeds"]
                ),
            )
    except (KeyError, TypeError, ValueError) as e:
        raise TransportFailure(f"malformed {name} event: {e!r}") from e
    return None
