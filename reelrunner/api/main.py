import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from sse_starlette.sse import EventSourceResponse

from reelrunner import config
from reelrunner.providers.base import MediaDescriptor
from reelrunner.providers.runner import PluginRunner
from reelrunner.scrape.events import EventType, event_name
from reelrunner.scrape.orchestrator import Orchestrator

config.configure_logging()
log = logging.getLogger("reelrunner.api")

# one shared runtime for registry listings and the /scrape stream
runner = PluginRunner()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown: release the shared aiohttp session
    await runner.close()


app = FastAPI(title="ReelRunner | Stream Resolver", lifespan=lifespan)


def make_orchestrator() -> Orchestrator:
    """Each request gets its own orchestrator: one run at a time per instance."""
    return Orchestrator.from_config()


def _descriptor(media_type: str, tmdb_id: str, season: Optional[int], episode: Optional[int],
                title: str = "", year: int = 0, imdb_id: Optional[str] = None) -> MediaDescriptor:
    try:
        return MediaDescriptor(tmdb_id=tmdb_id, kind=media_type, season=season, episode=episode,
                               title=title, year=year, imdb_id=imdb_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown media type: {media_type}")


def _report(outcome, orchestrator: Orchestrator) -> dict:
    snap = orchestrator.snapshot()
    return {"outcome": outcome.to_dict(), **snap.to_dict()}


# --- 1. REGISTRY ---
@app.get("/sources")
def list_sources():
    return runner.list_sources()


@app.get("/embeds")
def list_embeds():
    return runner.list_embeds()


# --- 2. ORCHESTRATED SCRAPE ---
@app.get("/play/{media_type}/{tmdb_id}")
async def play_content(media_type: str, tmdb_id: str, season: Optional[int] = None,
                       episode: Optional[int] = None, title: str = "", year: int = 0):
    media = _descriptor(media_type, tmdb_id, season, episode, title, year)
    orchestrator = make_orchestrator()
    try:
        outcome = await orchestrator.start_run(media)
        return _report(outcome, orchestrator)
    finally:
        await orchestrator.close()


@app.get("/play/{media_type}/{tmdb_id}/mirrors")
async def play_mirrors(media_type: str, tmdb_id: str, season: Optional[int] = None,
                       episode: Optional[int] = None):
    orchestrator = make_orchestrator()
    try:
        if orchestrator.mirrors is None:
            raise HTTPException(status_code=404, detail="No mirror service configured")
        media = _descriptor(media_type, tmdb_id, season, episode)
        servers = await orchestrator.mirrors.list_servers(media)
        outcome = await orchestrator.run_mirrors(media.with_mirrors(servers))
        return _report(outcome, orchestrator)
    finally:
        await orchestrator.close()


# --- 3. REMOTE DELEGATION STREAM ---
class _QueueSink:
    active = True

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue

    def emit(self, event):
        self.queue.put_nowait({"event": event_name(event), "data": json.dumps(event.to_wire())})


async def scrape_events(plugins: PluginRunner, media: MediaDescriptor, source_order=()):
    """Run the plugin runtime and yield its lifecycle events as SSE messages."""
    queue: asyncio.Queue = asyncio.Queue()
    sink = _QueueSink(queue)
    task = asyncio.create_task(plugins.run_all(media, source_order=source_order, events=sink))
    getter: Optional[asyncio.Future] = None
    try:
        while not (task.done() and queue.empty()):
            getter = asyncio.ensure_future(queue.get())
            await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter.done():
                yield getter.result()
            else:
                getter.cancel()
        result = task.result()
    finally:
        sink.active = False
        if getter is not None and not getter.done():
            getter.cancel()
        if not task.done():
            task.cancel()

    if result is None:
        yield {"event": EventType.NO_OUTPUT.value, "data": ""}
    else:
        yield {"event": EventType.COMPLETED.value, "data": json.dumps(result.to_dict())}


@app.get("/scrape")
async def scrape_stream(tmdbId: str, type: str = "movie", seasonNumber: Optional[int] = None,
                        episodeNumber: Optional[int] = None, title: str = "",
                        releaseYear: int = 0, imdbId: Optional[str] = None):
    """SSE endpoint that streams a plugin run in the remote delegation wire format."""
    media = _descriptor(type, tmdbId, seasonNumber, episodeNumber, title, releaseYear, imdbId)
    return EventSourceResponse(scrape_events(runner, media, tuple(config.SOURCE_ORDER)))
