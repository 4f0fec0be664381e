from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .errors import PipelineError
from .models import Channel
from .pipeline import FsdPipeline
from .store import MessageStore


class FsdMCPServer:
    """
    MCP control surface for an FsdPipeline.

    Responsibilities:
      Keep a ring buffer of recent messages as the "recent" sink
      Start the capture channels when the server starts, if autostart is on
      Expose channel, decoder, sink and stats tools
    """

    def __init__(self, pipeline: FsdPipeline, autostart: bool = True, store_maxlen: int = 10_000):
        self.pipeline = pipeline
        self.autostart = autostart
        self.store = MessageStore(maxlen=store_maxlen)
        self.pipeline.register_sink("recent", self.store)

        self.mcp = FastMCP("fsd_pipeline_mcp", lifespan=self._lifespan)
        self._register_tools()

    @asynccontextmanager
    async def _lifespan(self, server: FastMCP) -> AsyncIterator[None]:
        if self.autostart:
            await self.pipeline.start()
        try:
            yield
        finally:
            await self.pipeline.stop()

    def _register_tools(self) -> None:
        pipeline = self.pipeline

        @self.mcp.tool()
        def list_channels() -> Dict[str, Any]:
            return pipeline.multiplexer.status()

        @self.mcp.tool()
        async def start_channel(channel_id: int) -> str:
            try:
                await pipeline.multiplexer.start(channel_id)
            except PipelineError as exc:
                return str(exc)
            return f"channel {channel_id} started"

        @self.mcp.tool()
        async def stop_channel(channel_id: int) -> str:
            try:
                await pipeline.multiplexer.stop(channel_id)
            except PipelineError as exc:
                return str(exc)
            return f"channel {channel_id} stopped"

        @self.mcp.tool()
        async def start_all() -> str:
            await pipeline.start()
            return "started"

        @self.mcp.tool()
        async def stop_all() -> str:
            await pipeline.stop()
            return "stopped"

        @self.mcp.tool()
        async def add_channel(
            channel_id: int, decoder: str = "fsd", label: str = "", enabled: bool = True
        ) -> str:
            try:
                await pipeline.add_channel(
                    Channel(id=channel_id, decoder_name=decoder, label=label, enabled=enabled)
                )
            except PipelineError as exc:
                return str(exc)
            return f"channel {channel_id} added"

        @self.mcp.tool()
        async def remove_channel(channel_id: int) -> str:
            if await pipeline.remove_channel(channel_id):
                return f"channel {channel_id} removed"
            return f"channel {channel_id} not configured"

        @self.mcp.tool()
        def list_decoders() -> List[Dict[str, Any]]:
            return [pipeline.registry.get_metadata(name) or {"name": name} for name in pipeline.registry.list()]

        @self.mcp.tool()
        def decode_line(line: str, decoder: str = "fsd") -> Dict[str, Any]:
            try:
                dec = pipeline.registry.create(decoder, pipeline.decoder_configs.get(decoder))
            except PipelineError as exc:
                return {"error": str(exc)}
            return dec.decode(line).to_dict()

        @self.mcp.tool()
        def pipeline_stats() -> Dict[str, Any]:
            return pipeline.status()

        @self.mcp.tool()
        def reset_stats() -> str:
            pipeline.reset_stats()
            return "stats reset"

        @self.mcp.tool()
        def list_sinks() -> List[Dict[str, Any]]:
            return [pipeline.bus.sink_status(name) for name in pipeline.bus.list_sinks()]

        @self.mcp.tool()
        def set_sink_enabled(name: str, enabled: bool) -> str:
            ok = pipeline.bus.enable_sink(name) if enabled else pipeline.bus.disable_sink(name)
            if not ok:
                return f"sink {name} not registered"
            return f"sink {name} {'enabled' if enabled else 'disabled'}"

        @self.mcp.tool()
        def recent_messages(
            seconds: int = 300,
            msg_type: Optional[str] = None,
            channel_id: Optional[int] = None,
            limit: int = 100,
        ) -> List[Dict[str, Any]]:
            msgs = self.store.recent(seconds=seconds, msg_type=msg_type, channel_id=channel_id, limit=limit)
            return [m.to_dict() for m in msgs]

    def run(self) -> None:
        self.mcp.run()
