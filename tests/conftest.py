import pytest

from fsd_pipeline_mcp.core.bus import DistributionBus
from fsd_pipeline_mcp.core.models import EnrichedMessage
from fsd_pipeline_mcp.core.registry import DecoderRegistry


@pytest.fixture
def logs():
    return []


@pytest.fixture
def log(logs):
    return logs.append


@pytest.fixture
def registry(log):
    reg = DecoderRegistry(log=log)
    reg.load_from_import_paths(
        [
            "fsd_pipeline_mcp.decoders.fsd.decoder:build_decoder",
            "fsd_pipeline_mcp.decoders.raw.decoder:build_decoder",
        ]
    )
    return reg


@pytest.fixture
def bus(log):
    return DistributionBus(log=log)


@pytest.fixture
def make_message():
    def make(msg_type="POSITION_FAST", channel_id=6809, raw="@N:UAL123", fields=None):
        return EnrichedMessage(
            type=msg_type,
            raw=raw,
            fields=fields if fields is not None else {"callsign": "UAL123"},
            human_summary=None,
            timestamp_ms=0,
            channel_id=channel_id,
            decoder_name="fsd",
        )
    return make
