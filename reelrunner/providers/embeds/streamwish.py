"""Streamwish — packed player script → HLS playlist."""
from __future__ import annotations
import re
from urllib.parse import urlsplit

from ..base import EmbedResult, Stream
from ..fetcher import Fetcher
from ..runner import register_embed
from .. import unpacker
from ...scrape.errors import NotFoundError

LINK_RE = re.compile(r'file:\s*"(https?://[^"]+\.m3u8[^"]*)"')


@register_embed
class StreamwishEmbed:
    id = "streamwish"
    name = "Streamwish"
    rank = 216

    async def scrape(self, url: str, fetcher: Fetcher) -> EmbedResult:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}/"
        html = await fetcher.get(url, referer=origin)
        if not unpacker.detect(html):
            # removed videos get a plain "file not found" page
            raise NotFoundError("Streamwish: packed player script not found")
        link = LINK_RE.search(unpacker.unpack(html))
        if not link:
            raise ValueError("Streamwish: HLS link not found in unpacked script")
        return EmbedResult(streams=[
            Stream(stream_type="hls", id=self.id, playlist=link.group(1),
                   headers={"Referer": origin})
        ])
