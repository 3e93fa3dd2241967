"""
AutoEmbed source — builds the player URL and hands it to the embed scraper.
"""
from __future__ import annotations
from ..base import EmbedRef, MediaDescriptor, SourceResult
from ..fetcher import Fetcher
from ..runner import register_source


@register_source
class AutoEmbedSource:
    id = "autoembed-src"
    name = "AutoEmbed"
    rank = 100
    media_types = ["movie", "series", "anime"]

    async def scrape(self, media: MediaDescriptor, fetcher: Fetcher) -> SourceResult:
        url = f"https://autoembed.cc/embed/oplayer.php?id={media.tmdb_id}"
        if media.is_episode:
            url += f"&s={media.season}&e={media.episode}"
        return SourceResult(embeds=[EmbedRef(embed_id="autoembed", url=url)])
