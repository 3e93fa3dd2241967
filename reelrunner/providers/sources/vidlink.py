"""VidLink — HLS playlists straight from the vidlink.pro API."""
from __future__ import annotations
from ..base import Caption, MediaDescriptor, SourceResult, Stream
from ..fetcher import Fetcher
from ..runner import register_source
from ...scrape.errors import NotFoundError
from ...scrape.languages import caption_language

BASE = "https://vidlink.pro"


@register_source
class VidLink:
    id = "vidlink"
    name = "VidLink"
    rank = 350
    media_types = ["movie", "series"]

    async def scrape(self, media: MediaDescriptor, fetcher: Fetcher) -> SourceResult:
        if media.is_episode:
            url = f"{BASE}/api/tv/{media.tmdb_id}/{media.season}/{media.episode}"
        else:
            url = f"{BASE}/api/movie/{media.tmdb_id}"
        headers = {"Referer": f"{BASE}/", "Origin": BASE}

        data = await fetcher.get_json(url, headers=headers)
        if not isinstance(data, dict) or not data:
            raise NotFoundError("VidLink: empty response")

        source = data.get("source") or data.get("stream") or {}
        if isinstance(source, str):
            playlist = source
        else:
            playlist = source.get("playlist") or source.get("url") or source.get("file")
        if not playlist:
            raise NotFoundError("VidLink: no stream URL found")

        captions = []
        tracks = data.get("subtitles") or data.get("captions") or []
        if isinstance(source, dict):
            tracks = tracks or source.get("captions") or []
        for track in tracks:
            if not isinstance(track, dict):
                continue
            track_url = track.get("url") or track.get("file")
            if not track_url:
                continue
            label = track.get("label") or track.get("language") or ""
            captions.append(Caption(
                id=track_url,
                url=track_url,
                lang=caption_language(track.get("lang") or track.get("srclang"), label),
                format="srt" if track_url.endswith(".srt") else "vtt",
            ))

        return SourceResult(streams=[
            Stream(stream_type="hls", id=self.id, playlist=playlist,
                   captions=tuple(captions), headers=headers)
        ])
