"""
Mirror service client — fixed fallback endpoints queried without plugin
discovery.

    GET {base}/{id}/servers?type=movie|tv[&season=&episode=]&key=  → {"data": [{name, hash}]}
    GET {base}/source/{hash}                                        → {"data": {source, thumbnails, subtitles}}

An empty ``source`` is the service's "not found" answer, not an error.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..providers.base import MediaDescriptor, MediaKind, MirrorRef
from ..providers.fetcher import Fetcher
from .errors import CandidateFailure

log = logging.getLogger("reelrunner.scrape")


@dataclass(frozen=True)
class MirrorSubtitle:
    file: str
    label: str = ""
    language_code: Optional[str] = None
    type: Optional[str] = None        # "vtt" | "srt"


@dataclass(frozen=True)
class MirrorSource:
    location: str
    thumbnail_location: str = ""
    subtitles: tuple[MirrorSubtitle, ...] = field(default_factory=tuple)


class MirrorClient(Protocol):
    async def list_servers(self, media: MediaDescriptor) -> list[MirrorRef]: ...

    async def fetch_source(self, handle: str) -> MirrorSource: ...


class HttpMirrorClient:
    def __init__(self, base_url: str, *, api_key: str | None = None, fetcher: Fetcher | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.fetcher = fetcher or Fetcher()

    async def close(self):
        await self.fetcher.close()

    async def list_servers(self, media: MediaDescriptor) -> list[MirrorRef]:
        params = {"type": "tv" if media.kind is MediaKind.SERIES else "movie"}
        if media.is_episode:
            params["season"] = str(media.season)
            params["episode"] = str(media.episode)
        if self.api_key:
            params["key"] = self.api_key
        payload = await self.fetcher.get_json(
            f"{self.base_url}/{media.tmdb_id}/servers",
            params=params,
            headers={"accept": "application/json"},
        )
        data = _unwrap(payload, list)
        try:
            return [MirrorRef(name=str(s["name"]), hash=str(s["hash"])) for s in data]
        except (KeyError, TypeError) as e:
            raise CandidateFailure(f"malformed server list: {e!r}") from e

    async def fetch_source(self, handle: str) -> MirrorSource:
        payload = await self.fetcher.get_json(
            f"{self.base_url}/source/{handle}",
            headers={"accept": "application/json"},
        )
        data = _unwrap(payload, dict, candidate_id=handle)
        try:
            subtitles = tuple(
                MirrorSubtitle(
                    file=s["file"],
                    label=s.get("label") or "",
                    language_code=s.get("languageCode") or None,
                    type=s.get("type") or None,
                )
                for s in data.get("subtitles") or []
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise CandidateFailure(f"malformed subtitles: {e!r}", handle) from e
        return MirrorSource(
            location=data.get("source") or "",
            thumbnail_location=data.get("thumbnails") or "",
            subtitles=subtitles,
        )


def _unwrap(payload, expected: type, candidate_id: str | None = None):
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), expected):
        raise CandidateFailure("malformed payload from mirror service", candidate_id)
    return payload["data"]
