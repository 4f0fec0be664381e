from __future__ import annotations

import asyncio
import time
from contextlib import aclosing
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import ChannelDisabled, DuplicateChannel, UnknownChannel
from .models import Channel, ChannelStats, RawLine
from .signals import Signal
from .source_base import LineSource, SourceFactory


@dataclass
class ChannelEntry:
    channel: Channel
    source: LineSource
    stats: ChannelStats = field(default_factory=ChannelStats)
    task: Optional[asyncio.Task] = None
    running: bool = False
    dispatching: bool = False
    stopping: bool = False


class CaptureMultiplexer:
    """
    Owns one LineSource per channel and runs each in its own task.

    Notifications:
      on_line(RawLine)
        One per line read, awaited before the channel reads its next line,
        so lines of a channel are handled in arrival order.

      on_started(channel_id), on_stopped(channel_id), on_removed(channel_id)

      on_error(channel_id, error)
        A source failed to start or crashed while reading.

    Only programmer errors raise: duplicate channel ids, unknown ids and
    starting a disabled channel. Source failures go through on_error and
    never affect other channels.
    """

    def __init__(self, source_factory: SourceFactory, log: Callable[[str], None] = print):
        self._source_factory = source_factory
        self._log = log
        self._channels: Dict[int, ChannelEntry] = {}

        self.on_line = Signal("line", log=log)
        self.on_started = Signal("channel-started", log=log)
        self.on_stopped = Signal("channel-stopped", log=log)
        self.on_removed = Signal("channel-removed", log=log)
        self.on_error = Signal("channel-error", log=log)

    def _entry(self, channel_id: int) -> ChannelEntry:
        entry = self._channels.get(int(channel_id))
        if entry is None:
            raise UnknownChannel(channel_id)
        return entry

    def add_channel(self, channel: Channel) -> Channel:
        if channel.id in self._channels:
            raise DuplicateChannel(channel.id)
        source = self._source_factory(channel)
        self._channels[channel.id] = ChannelEntry(channel=channel, source=source)
        return channel

    async def remove_channel(self, channel_id: int) -> bool:
        entry = self._channels.get(int(channel_id))
        if entry is None:
            return False
        await self._stop_entry(entry)
        del self._channels[entry.channel.id]
        await self.on_removed.emit(entry.channel.id)
        return True

    async def start(self, channel_id: int) -> None:
        entry = self._entry(channel_id)
        if not entry.channel.enabled:
            raise ChannelDisabled(entry.channel.id)
        await self._start_entry(entry)

    async def stop(self, channel_id: int) -> None:
        await self._stop_entry(self._entry(channel_id))

    async def start_all(self) -> None:
        for entry in list(self._channels.values()):
            if entry.channel.enabled:
                await self._start_entry(entry)

    async def stop_all(self) -> None:
        for entry in list(self._channels.values()):
            await self._stop_entry(entry)

    async def enable(self, channel_id: int) -> None:
        self._entry(channel_id).channel.enabled = True

    async def disable(self, channel_id: int) -> None:
        entry = self._entry(channel_id)
        await self._stop_entry(entry)
        entry.channel.enabled = False

    def is_running(self, channel_id: int) -> bool:
        return self._entry(channel_id).running

    def list_channels(self) -> List[int]:
        return list(self._channels.keys())

    def channel_stats(self, channel_id: int) -> Optional[Dict[str, Any]]:
        entry = self._channels.get(int(channel_id))
        if entry is None:
            return None
        return asdict(entry.stats)

    def status(self) -> Dict[str, Any]:
        channels = []
        for entry in self._channels.values():
            channels.append(
                {
                    "id": entry.channel.id,
                    "label": entry.channel.label,
                    "decoder": entry.channel.decoder_name,
                    "enabled": entry.channel.enabled,
                    "running": entry.running,
                    "stats": asdict(entry.stats),
                    "source": entry.source.status(),
                }
            )
        return {
            "total_channels": len(channels),
            "active_channels": sum(1 for c in channels if c["running"]),
            "channels": channels,
        }

    async def _start_entry(self, entry: ChannelEntry) -> None:
        if entry.running:
            return

        try:
            await entry.source.start()
        except Exception as exc:
            self._log(f"channel {entry.channel.id} failed to start: {exc}")
            await self.on_error.emit(entry.channel.id, exc)
            return

        entry.running = True
        entry.stopping = False
        entry.stats.start_time = time.time()
        await self.on_started.emit(entry.channel.id)
        if entry.running:
            entry.task = asyncio.create_task(self._pump(entry))

    async def _stop_entry(self, entry: ChannelEntry) -> None:
        if not entry.running:
            return

        entry.stopping = True
        task = entry.task
        entry.task = None
        try:
            await entry.source.stop()
        except Exception as exc:
            self._log(f"channel {entry.channel.id} failed to stop: {exc}")
            await self.on_error.emit(entry.channel.id, exc)

        if task is not None and task is not asyncio.current_task():
            # A line being delivered finishes, the pump exits after it.
            if not entry.dispatching:
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        entry.stopping = False
        await self._mark_stopped(entry)

    async def _mark_stopped(self, entry: ChannelEntry) -> None:
        if not entry.running:
            return
        entry.running = False
        await self.on_stopped.emit(entry.channel.id)

    async def _pump(self, entry: ChannelEntry) -> None:
        channel = entry.channel
        try:
            async with aclosing(entry.source.lines()) as lines:
                async for text in lines:
                    stats = entry.stats
                    stats.message_count += 1
                    stats.bytes_received += len(text.encode("utf-8"))
                    stats.last_activity = time.time()

                    entry.dispatching = True
                    try:
                        await self.on_line.emit(
                            RawLine(
                                channel_id=channel.id,
                                decoder_name=channel.decoder_name,
                                label=channel.label,
                                text=text,
                            )
                        )
                    finally:
                        entry.dispatching = False
                    if entry.stopping:
                        break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._log(f"channel {channel.id} source failed: {exc}")
            await self.on_error.emit(channel.id, exc)

        # Source ran dry or crashed on its own. When stop() is in progress it
        # has already taken the task and finishes the bookkeeping itself.
        if entry.task is not asyncio.current_task():
            return
        entry.task = None
        try:
            await entry.source.stop()
        except Exception as exc:
            await self.on_error.emit(channel.id, exc)
        await self._mark_stopped(entry)
