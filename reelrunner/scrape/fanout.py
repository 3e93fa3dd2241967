"""Plugin fan-out: drive the in-process provider runtime for one run."""
from __future__ import annotations
from typing import Optional, Sequence

from ..providers.base import MediaDescriptor, StreamResult
from ..providers.runner import PluginRunner
from .events import EventSink


class PluginFanoutStrategy:
    interruptible = True

    def __init__(self, runner: PluginRunner, source_order: Sequence[str] = ()):
        self.runner = runner
        self.source_order = tuple(source_order)

    async def run(self, media: MediaDescriptor, events: EventSink) -> Optional[StreamResult]:
        return await self.runner.run_all(media, source_order=self.source_order, events=events)
