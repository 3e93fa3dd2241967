"""
Remote delegation — replay a run performed by an external orchestration
service.

The service streams Server-Sent Events over one long-lived GET request. The
four lifecycle events are forwarded as-is; the stream ends with either
``completed`` (carrying the run output) or ``noOutput``. Anything else that
ends the stream is a transport failure, never a "not found".
"""
from __future__ import annotations
import json
import logging
from typing import AsyncIterator, Optional

import httpx

from ..providers.base import MediaDescriptor, MediaKind, StreamResult
from .errors import TransportFailure
from .events import EventSink, EventType, parse_event

log = logging.getLogger("reelrunner.scrape")

LIFECYCLE_EVENTS = frozenset(e.value for e in (
    EventType.INIT, EventType.START, EventType.UPDATE, EventType.DISCOVER_EMBEDS,
))


def scrape_params(media: MediaDescriptor) -> dict:
    params = {
        "type": "show" if media.is_episode else "movie",
        "tmdbId": media.tmdb_id,
    }
    if media.title:
        params["title"] = media.title
    if media.year:
        params["releaseYear"] = str(media.year)
    if media.imdb_id:
        params["imdbId"] = media.imdb_id
    if media.is_episode:
        params["seasonNumber"] = str(media.season)
        params["episodeNumber"] = str(media.episode)
    elif media.kind is MediaKind.SERIES:
        # a series without an episode can only be resolved as a whole-title lookup
        params["type"] = "show"
    return params


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, str]]:
    """Decode an SSE body into (event name, data) pairs."""
    name, data = "", []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if name or data:
                yield name or "message", "\n".join(data)
            name, data = "", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            name = value
        elif field == "data":
            data.append(value)
    if name or data:
        yield name or "message", "\n".join(data)


class RemoteDelegatedStrategy:
    interruptible = True

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        read_timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client
        # None disables the read timeout: the run waits as long as the server keeps the stream open
        self.timeout = httpx.Timeout(read_timeout, connect=10.0)

    async def run(self, media: MediaDescriptor, events: EventSink) -> Optional[StreamResult]:
        owned = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream(
                "GET",
                f"{self.base_url}/scrape",
                params=scrape_params(media),
                headers={"Accept": "text/event-stream"},
            ) as resp:
                resp.raise_for_status()
                async for name, data in iter_sse(resp.aiter_lines()):
                    if name == EventType.COMPLETED:
                        return self._completed(data)
                    if name == EventType.NO_OUTPUT:
                        log.info("Remote run finished without output")
                        return None
                    if name not in LIFECYCLE_EVENTS:
                        # keepalives and newer event kinds; their data need not be JSON
                        log.debug(f"Ignoring unknown remote event {name!r}")
                        continue
                    event = parse_event(name, _decode(name, data))
                    if not events.active:
                        return None
                    events.emit(event)
        except httpx.HTTPError as e:
            raise TransportFailure(f"remote scrape failed: {e!r}") from e
        finally:
            if owned:
                await client.aclose()
        raise TransportFailure("remote stream closed before a terminal event")

    @staticmethod
    def _completed(data: str) -> Optional[StreamResult]:
        payload = _decode(EventType.COMPLETED.value, data)
        if not payload:
            return None
        try:
            return StreamResult.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise TransportFailure(f"malformed completed event: {e!r}") from e


def _decode(name: str, data: str):
    if not data:
        return ""
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise TransportFailure(f"malformed {name} frame: {e}") from e
