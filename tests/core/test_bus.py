import asyncio

import pytest

from fsd_pipeline_mcp.core.errors import SinkFailure


@pytest.mark.asyncio
async def test_dispatch_counts_by_type_and_channel(bus, make_message):
    await bus.dispatch(make_message("POSITION_FAST", channel_id=6809))
    await bus.dispatch(make_message("POSITION_FAST", channel_id=6810))
    await bus.dispatch(make_message("TEXT_MESSAGE", channel_id=6809))

    stats = bus.get_stats()
    assert stats["total_messages"] == 3
    assert stats["counts_by_type"] == {"POSITION_FAST": 2, "TEXT_MESSAGE": 1}
    assert stats["counts_by_channel"] == {6809: 2, 6810: 1}


@pytest.mark.asyncio
async def test_failing_sink_is_isolated(bus, make_message):
    received = []
    failures = []

    def good(msg):
        received.append(msg)

    def bad(msg):
        raise RuntimeError("db down")

    bus.register_sink("good", good)
    bus.register_sink("bad", bad)
    bus.on_sink_error.connect(failures.append)

    msg = make_message()
    await bus.dispatch(msg)

    assert received == [msg]
    assert bus.sink_status("good")["accepted_count"] == 1
    assert bus.sink_status("good")["error_count"] == 0
    assert bus.sink_status("bad")["accepted_count"] == 0
    assert bus.sink_status("bad")["error_count"] == 1

    assert len(failures) == 1
    failure = failures[0]
    assert isinstance(failure, SinkFailure)
    assert failure.sink == "bad"
    assert isinstance(failure.error, RuntimeError)
    assert failure.message is msg


@pytest.mark.asyncio
async def test_async_sinks_run_concurrently_and_settle(bus, make_message):
    order = []
    release = asyncio.Event()

    async def slow(msg):
        order.append("slow-start")
        await release.wait()
        order.append("slow-done")

    async def fast(msg):
        order.append("fast")
        release.set()

    async def failing(msg):
        await asyncio.sleep(0)
        raise ValueError("nope")

    bus.register_sink("slow", slow)
    bus.register_sink("fast", fast)
    bus.register_sink("failing", failing)

    await asyncio.wait_for(bus.dispatch(make_message()), timeout=2)

    assert order == ["slow-start", "fast", "slow-done"]
    stats = bus.get_stats()["sinks"]
    assert stats["slow"]["accepted_count"] == 1
    assert stats["fast"]["accepted_count"] == 1
    assert stats["failing"]["error_count"] == 1


@pytest.mark.asyncio
async def test_disabled_sink_is_skipped(bus, make_message):
    calls = []
    bus.register_sink("s", calls.append)
    assert bus.disable_sink("s")
    await bus.dispatch(make_message())
    assert calls == []

    assert bus.enable_sink("s")
    await bus.dispatch(make_message())
    assert len(calls) == 1
    assert not bus.disable_sink("missing")


@pytest.mark.asyncio
async def test_any_and_type_notifications(bus, make_message):
    seen_any = []
    seen_text = []
    seen_pos = []

    bus.on_message.connect(seen_any.append)
    bus.on_type("TEXT_MESSAGE").connect(seen_text.append)
    bus.on_type("POSITION_FAST").connect(seen_pos.append)

    await bus.dispatch(make_message("TEXT_MESSAGE"))
    await bus.dispatch(make_message("POSITION_FAST"))

    assert [m.type for m in seen_any] == ["TEXT_MESSAGE", "POSITION_FAST"]
    assert [m.type for m in seen_text] == ["TEXT_MESSAGE"]
    assert [m.type for m in seen_pos] == ["POSITION_FAST"]


@pytest.mark.asyncio
async def test_listener_failure_does_not_stop_dispatch(bus, make_message, logs):
    calls = []

    def broken(msg):
        raise RuntimeError("listener bug")

    bus.on_message.connect(broken)
    bus.register_sink("s", calls.append)

    await bus.dispatch(make_message())

    assert len(calls) == 1
    assert any("listener bug" in line for line in logs)


@pytest.mark.asyncio
async def test_stats_snapshot_is_detached(bus, make_message):
    await bus.dispatch(make_message("POSITION_FAST"))
    snap = bus.get_stats()
    snap["counts_by_type"]["POSITION_FAST"] = 99

    await bus.dispatch(make_message("POSITION_FAST"))

    assert snap["total_messages"] == 1
    assert bus.get_stats()["counts_by_type"]["POSITION_FAST"] == 2
    assert bus.get_stats()["messages_per_second"] >= 0


@pytest.mark.asyncio
async def test_reset_stats_keeps_sinks(bus, make_message):
    bus.register_sink("s", lambda m: None)
    await bus.dispatch(make_message("POSITION_FAST", channel_id=1))

    bus.reset_stats()
    stats = bus.get_stats()

    assert stats["total_messages"] == 0
    assert stats["counts_by_type"] == {}
    assert stats["counts_by_channel"] == {}
    assert stats["sinks"]["s"] == {"name": "s", "enabled": True, "accepted_count": 0, "error_count": 0}
    assert bus.list_sinks() == ["s"]


def test_register_overwrite_warns(bus, logs):
    bus.register_sink("s", lambda m: None)
    bus.register_sink("s", lambda m: None)
    assert bus.list_sinks() == ["s"]
    assert any("already registered" in line for line in logs)
    assert bus.unregister_sink("s")
    assert not bus.unregister_sink("s")


@pytest.mark.asyncio
async def test_sinks_cannot_change_a_shared_message(bus, make_message):
    seen = []
    rejected = []

    def tamper(msg):
        try:
            msg.fields["callsign"] = "HACKED"
        except TypeError:
            rejected.append(msg.type)

    bus.register_sink("tamper", tamper)
    bus.register_sink("record", lambda msg: seen.append(msg.fields["callsign"]))

    await bus.dispatch(make_message(fields={"callsign": "UAL123"}))

    assert rejected == ["POSITION_FAST"]
    assert seen == ["UAL123"]
