"""
Sequential mirror fallback.

Tries each mirror of the descriptor once, in list order, and stops at the
first one that returns a playable location.
"""
from __future__ import annotations
import logging
from typing import Optional

from ..providers.base import (
    CORS_ALLOWED, Caption, MediaDescriptor, MirrorRef, Stream, StreamResult,
)
from .events import EventSink, InitEvent, StartEvent, UpdateEvent
from .languages import caption_language
from .mirrors import MirrorClient, MirrorSource
from .store import CandidateStatus

log = logging.getLogger("reelrunner.scrape")

FETCH_FAILED = "Failed to fetch source"
SOURCE_NOT_FOUND = "source not found"


class LocalSequentialStrategy:
    # an in-flight fetch is left to finish; its result is discarded after a reset
    interruptible = False

    def __init__(self, client: MirrorClient):
        self.client = client

    async def run(self, media: MediaDescriptor, events: EventSink) -> Optional[StreamResult]:
        mirrors = media.mirrors
        if not mirrors:
            return None

        events.emit(InitEvent(
            source_ids=tuple(m.hash for m in mirrors),
            names=tuple(m.name for m in mirrors),
        ))
        for mirror in mirrors:
            if not events.active:
                return None
            events.emit(StartEvent(mirror.hash))
            try:
                log.info(f"[{mirror.hash}] Trying mirror {mirror.name}...")
                source = await self.client.fetch_source(mirror.hash)
            except Exception as e:
                log.warning(f"[{mirror.hash}] Mirror failed: {e}")
                if events.active:
                    events.emit(UpdateEvent(
                        id=mirror.hash,
                        status=CandidateStatus.FAILURE,
                        percentage=100,
                        reason=FETCH_FAILED,
                        error=str(e) or type(e).__name__,
                    ))
                continue

            if not events.active:
                return None
            if source.location:
                log.info(f"[{mirror.hash}] Stream found")
                return build_result(mirror, source)

            events.emit(UpdateEvent(
                id=mirror.hash,
                status=CandidateStatus.FAILURE,
                percentage=100,
                reason=FETCH_FAILED,
                error=SOURCE_NOT_FOUND,
            ))

        log.warning("All mirrors exhausted, no stream found")
        return None


def build_result(mirror: MirrorRef, source: MirrorSource) -> StreamResult:
    captions = tuple(
        Caption(
            id=sub.file,
            url=sub.file,
            lang=caption_language(sub.language_code, sub.label),
            format=sub.type or "vtt",
        )
        for sub in source.subtitles
    )
    stream = Stream(
        stream_type="hls",
        id=mirror.hash,
        playlist=source.location,
        captions=captions,
        flags=(CORS_ALLOWED,),
    )
    return StreamResult(stream=stream, source_id=mirror.hash)
