"""
Provider runtime — discovers source scrapers, resolves their embeds and
reports every attempt as a lifecycle event.

Usage:
    runner = PluginRunner()
    result = await runner.run_all(media, events=sink)
    if result:
        print(result.to_dict())
    await runner.close()
"""
from __future__ import annotations
import asyncio
import logging
from typing import Iterable, Optional, Sequence

from ..scrape.errors import NotFoundError
from ..scrape.events import (
    DiscoverEmbedsEvent, EmbedDiscovery, EventSink, InitEvent, StartEvent, UpdateEvent,
)
from ..scrape.store import CandidateStatus
from .base import MediaDescriptor, SourceResult, EmbedResult, StreamResult
from .fetcher import Fetcher

log = logging.getLogger("reelrunner.providers")


# ──────────────────────────────
#  Scraper registries
# ──────────────────────────────
class _SourceScraper:
    id: str
    name: str
    rank: int
    media_types: list[str]          # ["movie"] or ["movie", "series", "anime"]

    async def scrape(self, media: MediaDescriptor, fetcher: Fetcher) -> SourceResult:
        raise NotImplementedError


class _EmbedScraper:
    id: str
    name: str
    rank: int

    async def scrape(self, url: str, fetcher: Fetcher) -> EmbedResult:
        raise NotImplementedError


# Global registries, populated when source/embed modules are imported
_SOURCES: list[_SourceScraper] = []
_EMBEDS: dict[str, _EmbedScraper] = {}


def register_source(scraper):
    """Decorator to register a source scraper class."""
    # Deduplicate: remove any existing entry with same id
    global _SOURCES
    _SOURCES = [s for s in _SOURCES if s.id != scraper.id]
    inst = scraper()
    if not getattr(inst, 'disabled', False):
        _SOURCES.append(inst)
        _SOURCES.sort(key=lambda s: s.rank, reverse=True)
    return scraper


def register_embed(scraper):
    """Decorator to register an embed scraper class."""
    inst = scraper()
    _EMBEDS[inst.id] = inst
    return scraper


class _NullSink:
    active = True

    def emit(self, event):
        pass


# ──────────────────────────────
#  Runner
# ──────────────────────────────
class PluginRunner:
    def __init__(
        self,
        *,
        sources: Optional[Iterable[_SourceScraper]] = None,
        embeds: Optional[Iterable[_EmbedScraper]] = None,
        fetcher: Fetcher | None = None,
        source_timeout: float | None = None,
        embed_timeout: float | None = None,
    ):
        if sources is None:
            _load_scrapers()
            sources = _SOURCES
        if embeds is None:
            _load_scrapers()
            embeds = _EMBEDS.values()
        self.sources = sorted(
            (s for s in sources if not getattr(s, 'disabled', False)),
            key=lambda s: s.rank, reverse=True,
        )
        self.embeds = {e.id: e for e in embeds if not getattr(e, 'disabled', False)}
        self.fetcher = fetcher or Fetcher()
        # None means no engine-side limit; the fetcher's transport timeout still applies
        self.source_timeout = source_timeout
        self.embed_timeout = embed_timeout

    async def close(self):
        await self.fetcher.close()

    def list_sources(self):
        return [{'id': s.id, 'name': s.name, 'rank': s.rank, 'mediaTypes': list(s.media_types)}
                for s in self.sources]

    def list_embeds(self):
        return [{'id': e.id, 'name': e.name, 'rank': e.rank}
                for e in sorted(self.embeds.values(), key=lambda e: e.rank, reverse=True)]

    def display_name(self, scraper_id: str) -> Optional[str]:
        for s in self.sources:
            if s.id == scraper_id:
                return s.name
        embed = self.embeds.get(scraper_id)
        return embed.name if embed else None

    def applicable_sources(self, media: MediaDescriptor,
                           source_order: Sequence[str] = ()) -> list[_SourceScraper]:
        """Sources for this media; preferred ids first, in the given order, then by rank."""
        applicable = [s for s in self.sources if media.kind.value in s.media_types]
        preference = {sid: i for i, sid in enumerate(dict.fromkeys(source_order))}
        # sorted() is stable, so unlisted sources keep their rank order
        return sorted(applicable, key=lambda s: preference.get(s.id, len(preference)))

    async def run_all(
        self,
        media: MediaDescriptor,
        *,
        source_order: Sequence[str] = (),
        events: EventSink | None = None,
    ) -> Optional[StreamResult]:
        """Try sources one at a time, return the first working stream."""
        events = events or _NullSink()
        applicable = self.applicable_sources(media, source_order)
        events.emit(InitEvent(source_ids=tuple(s.id for s in applicable)))

        for source in applicable:
            if not events.active:
                return None
            events.emit(StartEvent(source.id))
            try:
                log.info(f"[{source.id}] Trying source scraper...")
                result = await self._with_timeout(source.scrape(media, self.fetcher), self.source_timeout)
                if not isinstance(result, SourceResult):
                    raise TypeError(f"scraper returned {type(result).__name__}, expected SourceResult")
            except Exception as e:
                log.warning(f"[{source.id}] Source failed: {e}")
                _report_failure(events, source.id, e)
                continue

            for stream in result.streams:
                if stream.playable:
                    log.info(f"[{source.id}] Direct stream found")
                    return StreamResult(stream=stream, source_id=source.id)

            refs = [r for r in result.embeds if r.embed_id in self.embeds]
            refs.sort(key=lambda r: self.embeds[r.embed_id].rank, reverse=True)
            if not refs:
                events.emit(UpdateEvent(
                    id=source.id, status=CandidateStatus.NOTFOUND, percentage=100,
                    reason="Source returned no playable stream",
                ))
                continue

            found = [EmbedDiscovery(id=f"{source.id}-{i}", embed_scraper_id=r.embed_id)
                     for i, r in enumerate(refs)]
            events.emit(DiscoverEmbedsEvent(source_id=source.id, embeds=tuple(found)))

            for discovery, ref in zip(found, refs):
                if not events.active:
                    return None
                scraper = self.embeds[ref.embed_id]
                events.emit(StartEvent(discovery.id))
                try:
                    log.info(f"  [{source.id} → {scraper.id}] Resolving embed...")
                    embed_out = await self._with_timeout(scraper.scrape(ref.url, self.fetcher), self.embed_timeout)
                    if not isinstance(embed_out, EmbedResult):
                        raise TypeError(f"scraper returned {type(embed_out).__name__}, expected EmbedResult")
                except Exception as e:
                    log.warning(f"  [{scraper.id}] Embed failed: {e}")
                    _report_failure(events, discovery.id, e)
                    continue
                for stream in embed_out.streams:
                    if stream.playable:
                        log.info(f"  [{scraper.id}] Stream resolved")
                        events.emit(UpdateEvent(id=discovery.id, status=CandidateStatus.SUCCESS, percentage=100))
                        return StreamResult(stream=stream, source_id=source.id, embed_id=scraper.id)
                events.emit(UpdateEvent(
                    id=discovery.id, status=CandidateStatus.NOTFOUND, percentage=100,
                    reason="Embed returned no playable stream",
                ))

        log.warning("All providers exhausted, no stream found")
        return None

    @staticmethod
    async def _with_timeout(coro, timeout: float | None):
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=timeout)


def _report_failure(events: EventSink, candidate_id: str, exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        events.emit(UpdateEvent(
            id=candidate_id, status=CandidateStatus.NOTFOUND, percentage=100, reason=str(exc),
        ))
        return
    events.emit(UpdateEvent(
        id=candidate_id, status=CandidateStatus.FAILURE, percentage=100,
        reason="Failed to scrape", error=str(exc) or type(exc).__name__,
    ))


# ──────────────────────────────
#  Import all scrapers to register them
# ──────────────────────────────
def _load_scrapers():
    # ── Sources ──
    from .sources import vidlink        # noqa: F401  rank 350
    from .sources import autoembed_src  # noqa: F401  rank 100
    # ── Embeds ──
    from .embeds import streamwish      # noqa: F401  rank 216
    from .embeds import autoembed       # noqa: F401  rank 10
