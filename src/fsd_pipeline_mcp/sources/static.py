from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, Iterable, List

from fsd_pipeline_mcp.core.models import Channel
from fsd_pipeline_mcp.core.source_base import LineSource


class StaticLineSource:
    """
    Yields a fixed list of lines.

    Handy for tests and demos where no capture is available. With
    hold_open=True the source stays running after the last line until
    stop() is called, like a live capture that went quiet.
    """

    def __init__(self, lines: Iterable[str], hold_open: bool = False):
        self._lines: List[str] = list(lines)
        self._hold_open = hold_open
        self._stop = asyncio.Event()
        self._running = False
        self._emitted = 0

    async def start(self) -> None:
        self._stop.clear()
        self._running = True

    async def stop(self) -> None:
        self._stop.set()
        self._running = False

    async def lines(self) -> AsyncIterator[str]:
        for line in self._lines:
            if self._stop.is_set():
                return
            self._emitted += 1
            yield line
            # Let other channels interleave between lines.
            await asyncio.sleep(0)

        if self._hold_open:
            await self._stop.wait()

    def status(self) -> Dict[str, Any]:
        return {
            "kind": "static",
            "running": self._running,
            "lines": len(self._lines),
            "emitted": self._emitted,
        }


def build_source(lines: Iterable[str], hold_open: bool = False):
    """
    Source factory for CaptureMultiplexer that hands every channel the
    same lines.
    """

    def factory(channel: Channel) -> LineSource:
        return StaticLineSource(lines, hold_open=hold_open)

    return factory
