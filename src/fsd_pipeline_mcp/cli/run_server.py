from __future__ import annotations
import os
import json
from typing import List

from fsd_pipeline_mcp.core.models import Channel
from fsd_pipeline_mcp.core.pipeline import FsdPipeline
from fsd_pipeline_mcp.core.server import FsdMCPServer
from fsd_pipeline_mcp.core.source_base import SourceFactory
from fsd_pipeline_mcp.sources import tshark, udp

DEFAULT_CHANNELS = [{"id": 6809, "decoder": "fsd", "label": "VATSIM FSD", "enabled": True}]


def _truthy(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no", "off")


def load_channels() -> List[Channel]:
    raw = os.environ.get("FSD_CHANNELS")
    descriptors = json.loads(raw) if raw else DEFAULT_CHANNELS
    return [Channel.from_dict(d) for d in descriptors]


def build_source_factory() -> SourceFactory:
    kind = os.environ.get("FSD_SOURCE", "tshark").strip().lower()
    if kind == "udp":
        return udp.build_source(host=os.environ.get("FSD_UDP_HOST", "0.0.0.0"))
    if kind == "tshark":
        return tshark.build_source(
            interface=os.environ.get("FSD_INTERFACE", tshark.DEFAULT_INTERFACE),
            tshark_path=os.environ.get("FSD_TSHARK_PATH", tshark.DEFAULT_TSHARK_PATH),
        )
    raise SystemExit(f"unknown FSD_SOURCE {kind!r}, expected tshark or udp")


def main() -> None:
    """
    Build the pipeline from environment variables and serve it over MCP.

    Example:
      export FSD_CHANNELS='[
        {"id": 6809, "decoder": "fsd", "label": "VATSIM FSD"},
        {"id": 6810, "decoder": "raw", "label": "Sweatbox", "enabled": false}
      ]'
      export FSD_SOURCE=tshark
      export FSD_INTERFACE=eth0
      python -m fsd_pipeline_mcp.cli.run_server
    """
    pipeline = FsdPipeline(
        source_factory=build_source_factory(),
        channels=load_channels(),
        decoder_dir=os.environ.get("FSD_DECODER_DIR") or None,
    )

    server = FsdMCPServer(pipeline, autostart=_truthy(os.environ.get("FSD_AUTOSTART", "1")))
    server.run()


if __name__ == "__main__":
    main()
