"""
fsd_pipeline_mcp

Streaming FSD protocol ingestion pipeline plus an MCP control server.

Core ideas
1. Sources produce text lines per capture channel
2. Decoders turn lines into typed DecodedMessage objects
3. The distribution bus fans each message out to sinks without letting
   one failing sink affect the others
"""

__all__ = ["core", "decoders", "sources", "cli"]
