import asyncio
import socket

import pytest

from fsd_pipeline_mcp.core.models import Channel
from fsd_pipeline_mcp.core.multiplexer import CaptureMultiplexer
from fsd_pipeline_mcp.sources.udp import UdpLineSource


@pytest.mark.asyncio
async def test_udp_source_feeds_multiplexer(log):
    source = UdpLineSource(host="127.0.0.1", port=0)
    mux = CaptureMultiplexer(lambda ch: source, log=log)
    mux.add_channel(Channel(id=6809))

    received = []
    got_two = asyncio.Event()

    def on_line(line):
        received.append(line.text)
        if len(received) == 2:
            got_two.set()

    mux.on_line.connect(on_line)
    await mux.start(6809)

    bound_port = source.status()["port"]
    assert bound_port

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.sendto(b"@N:UAL1:1200:1:0:0:0:0:0:0\r\n\r\n#TMA:B:hi\n", ("127.0.0.1", bound_port))
    sock.close()

    await asyncio.wait_for(got_two.wait(), timeout=2)
    assert received == ["@N:UAL1:1200:1:0:0:0:0:0:0", "#TMA:B:hi"]
    assert source.status()["datagrams"] == 1

    await mux.stop(6809)
    assert not source.status()["running"]


@pytest.mark.asyncio
async def test_udp_source_bind_failure_is_reported(log):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    blocker.bind(("127.0.0.1", 0))
    port = blocker.getsockname()[1]

    try:
        mux = CaptureMultiplexer(lambda ch: UdpLineSource(host="127.0.0.1", port=port), log=log)
        mux.add_channel(Channel(id=port))
        errors = []
        mux.on_error.connect(lambda cid, err: errors.append(cid))

        await mux.start(port)

        assert errors == [port]
        assert not mux.is_running(port)
    finally:
        blocker.close()
