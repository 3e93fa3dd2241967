"""
Core types shared by the provider plugins and the scrape engine.

Two stream types:
  - HLS: m3u8 playlist URL
  - File: direct mp4 URL(s) with quality labels
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

CORS_ALLOWED = "cors-allowed"


# ──────────────────────────────
#  Caption / Subtitle
# ──────────────────────────────
@dataclass(frozen=True)
class Caption:
    id: str
    url: str
    lang: str                         # ISO 639-1 code e.g. "en", or the raw label
    format: str = "vtt"               # "srt" | "vtt"
    has_cors_restrictions: bool = False

    def to_dict(self):
        return {
            "id": self.id,
            "url": self.url,
            "type": self.format,
            "language": self.lang,
            "hasCorsRestrictions": self.has_cors_restrictions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Caption":
        url = data["url"]
        return cls(
            id=str(data.get("id") or url),
            url=url,
            lang=data.get("language") or "",
            format=data.get("type") or "vtt",
            has_cors_restrictions=bool(data.get("hasCorsRestrictions", False)),
        )


# ──────────────────────────────
#  Stream definitions
# ──────────────────────────────
@dataclass(frozen=True)
class StreamFile:
    url: str
    quality: str = "unknown"          # "360" | "480" | "720" | "1080" | "4k" | "unknown"

    def to_dict(self):
        return {"url": self.url, "quality": self.quality}


@dataclass(frozen=True)
class Stream:
    stream_type: str                  # "hls" | "file"
    id: str = ""
    playlist: Optional[str] = None    # m3u8 URL (for type=hls)
    qualities: tuple[StreamFile, ...] = ()
    captions: tuple[Caption, ...] = ()
    headers: dict[str, str] = field(default_factory=dict, hash=False)
    flags: tuple[str, ...] = ()

    def to_dict(self):
        d = {
            "type": self.stream_type,
            "id": self.id,
            "flags": list(self.flags),
            "captions": [c.to_dict() for c in self.captions],
        }
        if self.headers:
            d["headers"] = dict(self.headers)
        if self.stream_type == "hls":
            d["playlist"] = self.playlist
        else:
            d["qualities"] = [q.to_dict() for q in self.qualities]
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Stream":
        qualities = data.get("qualities") or []
        # providers-api style payloads key file qualities by label
        if isinstance(qualities, dict):
            qualities = [{"quality": k, **v} for k, v in qualities.items()]
        return cls(
            stream_type=data["type"],
            id=str(data.get("id") or ""),
            playlist=data.get("playlist"),
            qualities=tuple(
                StreamFile(url=q["url"], quality=str(q.get("quality", "unknown")))
                for q in qualities
            ),
            captions=tuple(Caption.from_dict(c) for c in data.get("captions") or []),
            headers=dict(data.get("headers") or {}),
            flags=tuple(data.get("flags") or ()),
        )

    @property
    def playable(self) -> bool:
        if self.stream_type == "hls":
            return bool(self.playlist)
        if self.stream_type == "file":
            return any(q.url for q in self.qualities)
        return False


# ──────────────────────────────
#  Embed reference (returned by source scrapers)
# ──────────────────────────────
@dataclass
class EmbedRef:
    embed_id: str                     # must match an embed scraper id
    url: str


# ──────────────────────────────
#  Source scraper output
# ──────────────────────────────
@dataclass
class SourceResult:
    embeds: list[EmbedRef] = field(default_factory=list)
    streams: list[Stream] = field(default_factory=list)  # direct streams (skip embed step)


# ──────────────────────────────
#  Embed scraper output
# ──────────────────────────────
@dataclass
class EmbedResult:
    streams: list[Stream] = field(default_factory=list)


# ──────────────────────────────
#  Final run output
# ──────────────────────────────
@dataclass(frozen=True)
class StreamResult:
    stream: Stream
    source_id: str                    # winning top-level candidate
    embed_id: Optional[str] = None    # embed scraper id, when an embed produced the stream

    def to_dict(self):
        return {
            "sourceId": self.source_id,
            "embedId": self.embed_id,
            "stream": self.stream.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StreamResult":
        return cls(
            stream=Stream.from_dict(data["stream"]),
            source_id=str(data["sourceId"]),
            embed_id=data.get("embedId"),
        )


# ──────────────────────────────
#  Media descriptor (passed to scrapers)
# ──────────────────────────────
class MediaKind(str, Enum):
    MOVIE = "movie"
    SERIES = "series"
    ANIME = "anime"


_KIND_ALIASES = {"tv": MediaKind.SERIES, "show": MediaKind.SERIES}


@dataclass(frozen=True)
class MirrorRef:
    name: str
    hash: str                         # opaque handle understood by the mirror service


@dataclass(frozen=True)
class MediaDescriptor:
    tmdb_id: str
    kind: MediaKind = MediaKind.MOVIE
    season: Optional[int] = None
    episode: Optional[int] = None
    title: str = ""
    year: int = 0
    imdb_id: Optional[str] = None
    mirrors: tuple[MirrorRef, ...] = ()

    def __post_init__(self):
        # Normalize: accept "show" and "tv" as series
        kind = self.kind
        if not isinstance(kind, MediaKind):
            kind = _KIND_ALIASES.get(str(kind).lower()) or MediaKind(str(kind).lower())
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "tmdb_id", str(self.tmdb_id))
        object.__setattr__(self, "mirrors", tuple(self.mirrors))

    @property
    def identity(self) -> tuple:
        return (self.tmdb_id, self.kind, self.season, self.episode)

    @property
    def is_episode(self) -> bool:
        return self.season is not None and self.episode is not None

    def with_mirrors(self, mirrors) -> "MediaDescriptor":
        return replace(self, mirrors=tuple(mirrors))
