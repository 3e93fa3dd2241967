"""AutoEmbed — pulls the HLS playlist out of the player page script."""
from __future__ import annotations
import re
from ..base import EmbedResult, Stream
from ..fetcher import Fetcher
from ..runner import register_embed
from ...scrape.errors import NotFoundError

REFERER = "https://autoembed.cc/"
PATTERNS = [
    re.compile(r'file:\s*["\']([^"\']+\.m3u8[^"\']*)["\']'),
    re.compile(r'source:\s*["\']([^"\']+\.m3u8[^"\']*)["\']'),
    re.compile(r'(https?://[^\s"\']+\.m3u8[^\s"\']*)'),
]


@register_embed
class AutoEmbedEmbed:
    id = "autoembed"
    name = "AutoEmbed"
    rank = 10

    async def scrape(self, url: str, fetcher: Fetcher) -> EmbedResult:
        html = await fetcher.get(url, referer=REFERER)
        for pattern in PATTERNS:
            match = pattern.search(html)
            if match:
                return EmbedResult(streams=[
                    Stream(stream_type="hls", id=self.id, playlist=match.group(1),
                           headers={"Referer": REFERER})
                ])
        raise NotFoundError("AutoEmbed: no HLS URL found")
