"""
Decoders are pluggable modules registered with the DecoderRegistry.

Each decoder module exposes a build_decoder(config) factory and a
DECODER_NAME constant.
"""

BUILTIN_DECODERS = [
    "fsd_pipeline_mcp.decoders.fsd.decoder:build_decoder",
    "fsd_pipeline_mcp.decoders.raw.decoder:build_decoder",
]

__all__ = [
    "BUILTIN_DECODERS",
    "fsd",
    "raw",
]
