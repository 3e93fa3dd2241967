"""
HTTP fetcher shared by provider plugins and the mirror client.

One lazily created aiohttp session per fetcher. Every request raises on a
non-2xx status so a dead host shows up as a candidate failure instead of an
empty page being parsed.
"""
from __future__ import annotations
import logging
from typing import Optional

import aiohttp

log = logging.getLogger("reelrunner.providers")

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class Fetcher:
    def __init__(self, *, timeout: float | None = 10, proxy: str | None = None):
        # total=None leaves the engine-level timeouts in charge
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=4)
        self.proxy = proxy
        self._session: Optional[aiohttp.ClientSession] = None

    async def _session_for_request(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": DEFAULT_UA},
                connector=aiohttp.TCPConnector(ssl=False),
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(self, url, *, headers, params, referer, read):
        merged = dict(headers or {})
        if referer:
            merged.setdefault("Referer", referer)
        session = await self._session_for_request()
        log.debug(f"GET {url} params={params}")
        async with session.get(url, headers=merged, params=params, proxy=self.proxy) as resp:
            resp.raise_for_status()
            return await read(resp)

    async def get(
        self,
        url: str,
        *,
        headers: dict | None = None,
        params: dict | None = None,
        referer: str | None = None,
    ) -> str:
        """Fetch a page body as text."""
        return await self._request(url, headers=headers, params=params, referer=referer,
                                   read=lambda resp: resp.text())

    async def get_json(
        self,
        url: str,
        *,
        headers: dict | None = None,
        params: dict | None = None,
        referer: str | None = None,
    ) -> dict | list:
        """Fetch and decode JSON; embed hosts rarely send a proper content type."""
        return await self._request(url, headers=headers, params=params, referer=referer,
                                   read=lambda resp: resp.json(content_type=None))
