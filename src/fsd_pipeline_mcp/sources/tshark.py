from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fsd_pipeline_mcp.core.models import Channel
from fsd_pipeline_mcp.core.source_base import LineSource

DEFAULT_TSHARK_PATH = "tshark"
DEFAULT_INTERFACE = "Ethernet"


class TsharkSource:
    """
    Captures TCP payload text with tshark.

    Runs:
      tshark -i IFACE -f "tcp port N" -T fields -e data.text -l

    data.text prints one line per packet, with embedded CR LF rendered as
    the literal characters \\r\\n. That is why one line can hold several FSD
    messages.
    """

    def __init__(
        self,
        port: int,
        interface: str = DEFAULT_INTERFACE,
        tshark_path: str = DEFAULT_TSHARK_PATH,
        log: Callable[[str], None] = print,
    ):
        self._port = int(port)
        self._interface = interface
        self._tshark_path = tshark_path
        self._log = log

        self._proc: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._lines = 0

    def command(self) -> List[str]:
        return [
            self._tshark_path,
            "-i", self._interface,
            "-f", f"tcp port {self._port}",
            "-T", "fields",
            "-e", "data.text",
            "-l",
        ]

    async def start(self) -> None:
        if self._proc is not None and self._proc.returncode is None:
            return

        cmd = self.command()
        self._proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        self._stderr_task = asyncio.create_task(self._drain_stderr(self._proc))

    async def stop(self) -> None:
        proc = self._proc
        if proc is None:
            return

        if proc.returncode is None:
            proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()

        task = self._stderr_task
        self._stderr_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._proc = None

    async def lines(self) -> AsyncIterator[str]:
        proc = self._proc
        if proc is None or proc.stdout is None:
            return

        while True:
            raw = await proc.stdout.readline()
            if not raw:
                break
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                self._lines += 1
                yield text

    async def _drain_stderr(self, proc: asyncio.subprocess.Process) -> None:
        if proc.stderr is None:
            return
        while True:
            raw = await proc.stderr.readline()
            if not raw:
                return
            msg = raw.decode("utf-8", errors="replace").strip()
            # "Capturing on 'eth0'" is tshark's normal banner.
            if msg and "Capturing on" not in msg:
                self._log(f"tshark port {self._port}: {msg}")

    def status(self) -> Dict[str, Any]:
        proc = self._proc
        return {
            "kind": "tshark",
            "running": proc is not None and proc.returncode is None,
            "interface": self._interface,
            "port": self._port,
            "lines": self._lines,
        }


def build_source(
    interface: str = DEFAULT_INTERFACE,
    tshark_path: str = DEFAULT_TSHARK_PATH,
    log: Callable[[str], None] = print,
):
    """
    Source factory capturing each channel's id as the TCP port.
    """

    def factory(channel: Channel) -> LineSource:
        return TsharkSource(port=channel.id, interface=interface, tshark_path=tshark_path, log=log)

    return factory
