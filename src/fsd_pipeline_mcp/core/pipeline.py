from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

from .bus import DistributionBus, SinkHandler
from .errors import UnknownParser
from .models import Channel, EnrichedMessage, RawLine
from .multiplexer import CaptureMultiplexer
from .registry import DecoderRegistry
from .source_base import SourceFactory


class FsdPipeline:
    """
    Connects capture, decoding and distribution.

    Responsibilities:
      Register decoders before first use
      Configure channels on the multiplexer
      Decode every line with its channel's decoder
      Dispatch each decoded message, batched lines one sub-message at a time

    The pipeline never raises out of line handling. A channel whose decoder
    is not registered has its lines counted as undecodable and logged.
    """

    def __init__(
        self,
        source_factory: SourceFactory,
        channels: Optional[List[Channel]] = None,
        decoder_imports: Optional[List[str]] = None,
        decoder_dir: Optional[str] = None,
        decoder_configs: Optional[Mapping[str, Mapping[str, Any]]] = None,
        log: Callable[[str], None] = print,
    ):
        self._log = log
        self.registry = DecoderRegistry(log=log)
        self.multiplexer = CaptureMultiplexer(source_factory, log=log)
        self.bus = DistributionBus(log=log)

        self.decoder_configs: Dict[str, Dict[str, Any]] = {
            name: dict(cfg) for name, cfg in (decoder_configs or {}).items()
        }
        self._running = False
        self._unhandled = 0
        self._undecodable = 0

        self._load_decoders(decoder_imports, decoder_dir)
        self._add_channels(channels or [])

        self.multiplexer.on_line.connect(self.handle_line)
        self.multiplexer.on_error.connect(self._on_channel_error)

    def _load_decoders(self, imports: Optional[List[str]], decoder_dir: Optional[str]) -> None:
        if imports is None:
            from fsd_pipeline_mcp.decoders import BUILTIN_DECODERS

            imports = BUILTIN_DECODERS
        self.registry.load_from_import_paths(imports)

        if decoder_dir:
            self.registry.load_from_directory(decoder_dir)

    def _add_channels(self, channels: List[Channel]) -> None:
        for channel in channels:
            try:
                self.multiplexer.add_channel(channel)
            except ValueError as exc:
                self._log(f"error adding channel {channel.id}: {exc}")

    def _on_channel_error(self, channel_id: int, error: BaseException) -> None:
        self._log(f"channel {channel_id} error: {error}")

    @property
    def running(self) -> bool:
        return self._running

    async def handle_line(self, line: RawLine) -> int:
        """
        Decode one line and dispatch the result. Returns the number of
        messages dispatched.
        """
        try:
            decoder = self.registry.create(line.decoder_name, self.decoder_configs.get(line.decoder_name))
        except UnknownParser as exc:
            self._undecodable += 1
            self._log(f"channel {line.channel_id}: {exc}")
            return 0

        if not decoder.can_handle(line.text):
            self._unhandled += 1
            return 0

        decoded = decoder.decode(line.text)

        count = 0
        for msg in decoded.flatten():
            await self.bus.dispatch(EnrichedMessage.from_decoded(msg, line.channel_id, line.decoder_name))
            count += 1
        return count

    def register_sink(self, name: str, handler: SinkHandler) -> None:
        self.bus.register_sink(name, handler)

    def unregister_sink(self, name: str) -> bool:
        return self.bus.unregister_sink(name)

    async def start(self) -> None:
        if self._running:
            return
        await self.multiplexer.start_all()
        self._running = True

    async def stop(self) -> None:
        if not self._running:
            return
        await self.multiplexer.stop_all()
        self._running = False

    async def add_channel(self, channel: Channel) -> Channel:
        """
        Add a channel at runtime. Starts it right away when the pipeline is
        running and the channel is enabled.
        """
        self.multiplexer.add_channel(channel)
        if self._running and channel.enabled:
            await self.multiplexer.start(channel.id)
        return channel

    async def remove_channel(self, channel_id: int) -> bool:
        return await self.multiplexer.remove_channel(channel_id)

    def reset_stats(self) -> None:
        self.bus.reset_stats()
        self._unhandled = 0
        self._undecodable = 0

    def status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "capture": self.multiplexer.status(),
            "pipeline": self.bus.get_stats(),
            "decoders": self.registry.list(),
            "unhandled_lines": self._unhandled,
            "undecodable_lines": self._undecodable,
        }
