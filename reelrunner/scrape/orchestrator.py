"""
Scrape orchestrator — owns the run lifecycle.

    Idle → Running → Resolved | Cancelled      (reset() goes back to Idle from anywhere)

Every run gets a new id. Strategies write through a sink tagged with that id,
and events from a sink whose id is no longer current are dropped, so an
abandoned run can never touch the state of the next one.
"""
from __future__ import annotations
import asyncio
import logging
import random
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

import httpx

from .. import config
from ..providers.base import MediaDescriptor, StreamResult
from ..providers.fetcher import Fetcher
from ..providers.runner import PluginRunner
from .errors import ConcurrentRunRejected, ProtocolViolation, TransportFailure
from .events import EventSink, ScrapeEvent
from .fanout import PluginFanoutStrategy
from .mirrors import HttpMirrorClient, MirrorClient
from .outcome import Cancelled, NotFound, RunOutcome, Success
from .remote import RemoteDelegatedStrategy
from .sequential import LocalSequentialStrategy
from .state import ScrapeSnapshot, ScrapeState
from .store import Observer

log = logging.getLogger("reelrunner.scrape")


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class Strategy(Protocol):
    # whether reset() may interrupt the strategy's in-flight I/O
    interruptible: bool

    async def run(self, media: MediaDescriptor, events: EventSink) -> Optional[StreamResult]: ...


class _RunSink:
    def __init__(self, owner: "Orchestrator", run_id: int):
        self._owner = owner
        self._run_id = run_id

    @property
    def active(self) -> bool:
        return self._owner._run_id == self._run_id

    def emit(self, event: ScrapeEvent) -> None:
        self._owner._ingest(self._run_id, event)


class Orchestrator:
    def __init__(
        self,
        *,
        runner: PluginRunner | None = None,
        mirrors: MirrorClient | None = None,
        remote_urls: Sequence[str] = (),
        source_order: Sequence[str] = (),
        local_override: Callable[[], bool] | None = None,
        remote_read_timeout: float | None = None,
        remote_client: httpx.AsyncClient | None = None,
    ):
        self.runner = runner or PluginRunner()
        self.mirrors = mirrors
        self.remote_urls = [u for u in remote_urls if u]
        self.source_order = tuple(source_order)
        self.local_override = local_override or (lambda: False)
        self.remote_read_timeout = remote_read_timeout
        self.remote_client = remote_client

        self._state = ScrapeState(names=self.runner.display_name)
        self._status = RunState.IDLE
        self._run_id = 0
        self._media: Optional[MediaDescriptor] = None
        self._task: Optional[asyncio.Task] = None
        self._strategy: Optional[Strategy] = None

    @classmethod
    def from_config(cls) -> "Orchestrator":
        runner = PluginRunner(
            fetcher=Fetcher(timeout=config.FETCH_TIMEOUT),
            source_timeout=config.SOURCE_TIMEOUT,
            embed_timeout=config.EMBED_TIMEOUT,
        )
        mirrors = None
        if config.MIRROR_API_URL:
            mirrors = HttpMirrorClient(
                config.MIRROR_API_URL,
                api_key=config.MIRROR_API_KEY,
                fetcher=Fetcher(timeout=config.FETCH_TIMEOUT),
            )
        return cls(
            runner=runner,
            mirrors=mirrors,
            remote_urls=config.PROVIDER_API_URLS,
            source_order=config.SOURCE_ORDER,
            local_override=lambda: config.LOCAL_OVERRIDE,
            remote_read_timeout=config.REMOTE_READ_TIMEOUT,
        )

    async def close(self):
        self.reset()
        await self.runner.close()
        if self.mirrors is not None and hasattr(self.mirrors, "close"):
            await self.mirrors.close()

    # ── observation ──────────────────

    @property
    def status(self) -> RunState:
        return self._status

    @property
    def media(self) -> Optional[MediaDescriptor]:
        return self._media

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        return self._state.store.subscribe(observer)

    def snapshot(self) -> ScrapeSnapshot:
        return self._state.snapshot()

    # ── runs ──────────────────

    def select_strategy(self) -> Strategy:
        if self.remote_urls and not self.local_override():
            # load balance across the configured remote services
            url = random.choice(self.remote_urls)
            log.info(f"Delegating scrape to {url}")
            return RemoteDelegatedStrategy(
                url, client=self.remote_client, read_timeout=self.remote_read_timeout,
            )
        return PluginFanoutStrategy(self.runner, self.source_order)

    async def start_run(self, media: MediaDescriptor) -> RunOutcome:
        """Resolve a stream for media through remote delegation or the plugin runtime."""
        return await self.run_with(media, self.select_strategy())

    async def run_mirrors(self, media: MediaDescriptor) -> RunOutcome:
        """Resolve a stream by walking the descriptor's pre-resolved mirror list."""
        if self.mirrors is None and media.mirrors:
            raise RuntimeError("no mirror client configured")
        return await self.run_with(media, LocalSequentialStrategy(self.mirrors))

    async def run_with(self, media: MediaDescriptor, strategy: Strategy) -> RunOutcome:
        """Drive one run with an explicit strategy."""
        if self._status is RunState.RUNNING and self._task is not None:
            if self._media.identity != media.identity:
                raise ConcurrentRunRejected(self._media.identity, media.identity)
            # same title requested again: share the run already in flight
            return await self._outcome(self._task)

        self._run_id += 1
        run_id = self._run_id
        self._state.reset()
        self._media = media
        self._strategy = strategy
        self._status = RunState.RUNNING
        log.info(f"Run {run_id} started for {media.identity} using {type(strategy).__name__}")

        task = asyncio.create_task(self._drive(strategy, media, _RunSink(self, run_id)))
        self._task = task
        outcome: Optional[RunOutcome] = None
        try:
            outcome = await self._outcome(task)
        except asyncio.CancelledError:
            # the caller walked away; treat it like an explicit reset
            if self._run_id == run_id:
                self.reset()
            raise
        finally:
            if self._run_id == run_id:
                resolved = outcome is not None and not isinstance(outcome, Cancelled)
                self._status = RunState.RESOLVED if resolved else RunState.CANCELLED
                self._task = None
                self._strategy = None
        log.info(f"Run {run_id} finished: {outcome.status}")
        return outcome

    async def _drive(self, strategy: Strategy, media: MediaDescriptor, sink: _RunSink) -> RunOutcome:
        try:
            result = await strategy.run(media, sink)
        except TransportFailure as e:
            log.warning(f"Transport failure: {e}")
            return Cancelled(detail=str(e))
        if not sink.active:
            return Cancelled(detail="run was reset")
        if result is None:
            return NotFound()
        self._state.promote(result.source_id)
        return Success(result)

    @staticmethod
    async def _outcome(task: asyncio.Task) -> RunOutcome:
        await asyncio.wait({task})
        if task.cancelled():
            return Cancelled(detail="run was reset")
        return task.result()

    def reset(self) -> None:
        """Abandon the current run, if any, and clear all candidate state."""
        self._run_id += 1
        task, strategy = self._task, self._strategy
        if task is not None and not task.done() and strategy is not None and strategy.interruptible:
            task.cancel()
        self._task = None
        self._strategy = None
        self._media = None
        self._status = RunState.IDLE
        self._state.reset()

    def _ingest(self, run_id: int, event: ScrapeEvent) -> None:
        if run_id != self._run_id:
            log.debug(f"Dropping stale event from run {run_id}: {event!r}")
            return
        try:
            self._state.apply(event)
        except ProtocolViolation as e:
            log.warning(f"Protocol violation ignored: {e}")
