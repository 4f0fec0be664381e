from __future__ import annotations

import asyncio
import socket
from typing import Any, AsyncIterator, Dict, Optional

from fsd_pipeline_mcp.core.models import Channel
from fsd_pipeline_mcp.core.source_base import LineSource


class UdpLineSource:
    """
    Text lines over UDP.

    Each datagram may hold one or more newline separated lines. This lets a
    capture running on another host forward its text output, and makes
    local testing possible with scripts/send_fsd_udp_samples.py.

    Port 0 asks the OS for a free port, status() reports the bound one.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 6809):
        self._host = host
        self._port = int(port)
        self._sock: Optional[socket.socket] = None
        self._stop = asyncio.Event()
        self._running = False

        self._datagrams = 0
        self._lines = 0

    async def start(self) -> None:
        if self._running:
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setblocking(False)
        try:
            sock.bind((self._host, self._port))
        except OSError:
            sock.close()
            raise

        self._port = sock.getsockname()[1]
        self._sock = sock
        self._stop.clear()
        self._running = True

    async def stop(self) -> None:
        self._stop.set()
        self._running = False

    async def lines(self) -> AsyncIterator[str]:
        sock = self._sock
        if sock is None:
            return

        loop = asyncio.get_running_loop()

        try:
            while not self._stop.is_set():
                try:
                    data, _ = await loop.sock_recvfrom(sock, 65535)
                except OSError:
                    await asyncio.sleep(0.05)
                    continue

                self._datagrams += 1
                text = data.decode("utf-8", errors="replace")
                for line in text.splitlines():
                    line = line.strip()
                    if line:
                        self._lines += 1
                        yield line
        finally:
            sock.close()
            self._sock = None

    def status(self) -> Dict[str, Any]:
        return {
            "kind": "udp",
            "running": self._running,
            "host": self._host,
            "port": self._port,
            "datagrams": self._datagrams,
            "lines": self._lines,
        }


def build_source(host: str = "0.0.0.0"):
    """
    Source factory binding each channel's id as the UDP port.
    """

    def factory(channel: Channel) -> LineSource:
        return UdpLineSource(host=host, port=channel.id)

    return factory
