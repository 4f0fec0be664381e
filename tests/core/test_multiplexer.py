import asyncio

import pytest

from fsd_pipeline_mcp.core.errors import ChannelDisabled, DuplicateChannel, UnknownChannel
from fsd_pipeline_mcp.core.models import Channel
from fsd_pipeline_mcp.core.multiplexer import CaptureMultiplexer
from fsd_pipeline_mcp.sources.static import StaticLineSource


class BrokenSource(StaticLineSource):
    async def start(self):
        raise OSError("interface not found")


class CrashingSource(StaticLineSource):
    async def lines(self):
        yield "first"
        raise RuntimeError("pipe closed")


def make_mux(log, sources):
    def factory(channel):
        return sources[channel.id]
    return CaptureMultiplexer(factory, log=log)


async def wait_stopped(mux, channel_id):
    for _ in range(100):
        if not mux.is_running(channel_id):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"channel {channel_id} still running")


def test_duplicate_channel_rejected(log):
    mux = make_mux(log, {1: StaticLineSource([])})
    mux.add_channel(Channel(id=1))
    with pytest.raises(DuplicateChannel):
        mux.add_channel(Channel(id=1))
    assert mux.list_channels() == [1]


@pytest.mark.asyncio
async def test_start_unknown_or_disabled(log):
    mux = make_mux(log, {2: StaticLineSource([])})
    mux.add_channel(Channel(id=2, enabled=False))

    with pytest.raises(UnknownChannel):
        await mux.start(99)
    with pytest.raises(ChannelDisabled):
        await mux.start(2)


@pytest.mark.asyncio
async def test_lines_are_tagged_and_counted(log):
    mux = make_mux(log, {6809: StaticLineSource(["@N:A", "#TMA:B:hi"])})
    mux.add_channel(Channel(id=6809, decoder_name="fsd", label="VATSIM"))

    lines = []
    events = []
    mux.on_line.connect(lines.append)
    mux.on_started.connect(lambda cid: events.append(("started", cid)))
    mux.on_stopped.connect(lambda cid: events.append(("stopped", cid)))

    await mux.start(6809)
    await wait_stopped(mux, 6809)

    assert [l.text for l in lines] == ["@N:A", "#TMA:B:hi"]
    assert all(l.channel_id == 6809 and l.decoder_name == "fsd" and l.label == "VATSIM" for l in lines)
    assert events == [("started", 6809), ("stopped", 6809)]

    stats = mux.channel_stats(6809)
    assert stats["message_count"] == 2
    assert stats["bytes_received"] == len("@N:A") + len("#TMA:B:hi")
    assert stats["start_time"] is not None
    assert stats["last_activity"] is not None


@pytest.mark.asyncio
async def test_start_all_isolates_failures(log):
    mux = make_mux(
        log,
        {
            1: BrokenSource([]),
            2: StaticLineSource(["ok"], hold_open=True),
            3: StaticLineSource(["never"]),
        },
    )
    mux.add_channel(Channel(id=1))
    mux.add_channel(Channel(id=2))
    mux.add_channel(Channel(id=3, enabled=False))

    errors = []
    mux.on_error.connect(lambda cid, err: errors.append((cid, str(err))))

    await mux.start_all()

    assert errors == [(1, "interface not found")]
    assert not mux.is_running(1)
    assert mux.is_running(2)
    assert not mux.is_running(3)

    await mux.stop_all()
    assert not mux.is_running(2)


@pytest.mark.asyncio
async def test_crashing_source_reports_error(log):
    mux = make_mux(log, {5: CrashingSource([])})
    mux.add_channel(Channel(id=5))

    lines = []
    errors = []
    mux.on_line.connect(lines.append)
    mux.on_error.connect(lambda cid, err: errors.append(cid))

    await mux.start(5)
    await wait_stopped(mux, 5)

    assert [l.text for l in lines] == ["first"]
    assert errors == [5]


@pytest.mark.asyncio
async def test_stop_and_remove_channel(log):
    source = StaticLineSource([], hold_open=True)
    mux = make_mux(log, {7: source})
    mux.add_channel(Channel(id=7))

    removed = []
    mux.on_removed.connect(removed.append)

    await mux.start(7)
    assert mux.is_running(7)
    assert mux.status()["active_channels"] == 1

    assert await mux.remove_channel(7)
    assert removed == [7]
    assert mux.list_channels() == []
    assert mux.channel_stats(7) is None
    assert not source.status()["running"]
    assert not await mux.remove_channel(7)


@pytest.mark.asyncio
async def test_disable_stops_running_channel(log):
    mux = make_mux(log, {8: StaticLineSource([], hold_open=True)})
    mux.add_channel(Channel(id=8))
    await mux.start(8)

    await mux.disable(8)
    assert not mux.is_running(8)
    with pytest.raises(ChannelDisabled):
        await mux.start(8)

    await mux.enable(8)
    await mux.start(8)
    assert mux.is_running(8)
    await mux.stop(8)


@pytest.mark.asyncio
async def test_channels_interleave(log):
    mux = make_mux(
        log,
        {
            1: StaticLineSource(["a1", "a2", "a3"]),
            2: StaticLineSource(["b1", "b2", "b3"]),
        },
    )
    mux.add_channel(Channel(id=1))
    mux.add_channel(Channel(id=2))

    seen = []
    mux.on_line.connect(lambda line: seen.append(line.text))

    await mux.start_all()
    await wait_stopped(mux, 1)
    await wait_stopped(mux, 2)

    assert [t for t in seen if t.startswith("a")] == ["a1", "a2", "a3"]
    assert [t for t in seen if t.startswith("b")] == ["b1", "b2", "b3"]


class StuckSource(StaticLineSource):
    async def stop(self):
        await super().stop()
        raise OSError("tshark already gone")


@pytest.mark.asyncio
async def test_failing_source_stop_is_reported_not_raised(log):
    mux = make_mux(log, {9: StuckSource([], hold_open=True), 10: StuckSource([], hold_open=True)})
    mux.add_channel(Channel(id=9))
    mux.add_channel(Channel(id=10))

    errors = []
    stopped = []
    mux.on_error.connect(lambda cid, err: errors.append((cid, str(err))))
    mux.on_stopped.connect(stopped.append)

    await mux.start_all()
    await mux.stop(10)
    assert not mux.is_running(10)

    assert await mux.remove_channel(9)
    assert mux.list_channels() == [10]
    assert mux.channel_stats(9) is None
    assert errors == [(10, "tshark already gone"), (9, "tshark already gone")]
    assert stopped == [10, 9]
